"""Typed view of verified access token claims."""

from typing import Any

from pydantic import Field

from credgate.models.base import CredgateBaseModel

BEARER_TOKEN_TYPE = "Bearer"

REGISTERED_CLAIMS = frozenset(
    {"iss", "aud", "sub", "iat", "exp", "jti", "client_id", "token_type", "scope"}
)


class TokenClaims(CredgateBaseModel):
    """Claims carried by a credgate access token.

    ``iat`` and ``exp`` are integer seconds since the epoch. Caller-supplied
    claims that are not registered here are kept in ``extra``.
    """

    sub: str
    iss: str
    aud: str
    iat: int
    exp: int
    jti: str
    client_id: str | None = None
    token_type: str = BEARER_TOKEN_TYPE
    scope: str | None = None
    extra: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "TokenClaims":
        known = {k: v for k, v in payload.items() if k in REGISTERED_CLAIMS}
        extra = {k: v for k, v in payload.items() if k not in REGISTERED_CLAIMS}
        aud = known.get("aud")
        if isinstance(aud, list):
            known["aud"] = aud[0] if aud else ""
        return cls(**known, extra=extra)

    @property
    def scopes(self) -> tuple[str, ...]:
        return tuple(self.scope.split()) if self.scope else ()

    def remaining_lifetime(self, now: float) -> int:
        return max(0, self.exp - int(now))

    def is_expired(self, now: float) -> bool:
        return now >= self.exp
