"""Wire-level response models.

- TokenResponse: successful token endpoint response (RFC 6749 §5.1)
- OAuthErrorResponse: token endpoint error response (RFC 6749 §5.2)
- IntrospectionResponse: token introspection response (RFC 7662 §2.2)
- BasicAuthResponse: Basic authentication verdict ``{allowed, message, timestamp}``

``to_wire()`` produces the JSON object a transport adapter should send;
optional fields that are ``None`` are omitted.
"""

import time
from datetime import datetime, timedelta, timezone
from typing import Any, Union

from pydantic import Field, field_validator

from credgate.models.base import CredgateBaseModel
from credgate.models.claims import BEARER_TOKEN_TYPE, TokenClaims
from credgate.models.results import AuthenticationResult


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_datetime(now: datetime | float | None) -> datetime:
    if now is None:
        return _utcnow()
    if isinstance(now, datetime):
        return now
    return datetime.fromtimestamp(now, tz=timezone.utc)


class TokenResponse(CredgateBaseModel):
    """Successful access token response.

    Example:
        >>> response = TokenResponse(access_token="eyJ...", expires_in=3600, scope="read")
        >>> sorted(response.to_wire())
        ['access_token', 'expires_in', 'issued_at', 'scope', 'token_type']
    """

    access_token: str = Field(..., repr=False)
    token_type: str = BEARER_TOKEN_TYPE
    expires_in: int = Field(..., gt=0)
    scope: str | None = None
    issued_at: datetime = Field(default_factory=_utcnow)

    @field_validator("access_token")
    @classmethod
    def validate_access_token(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Access token cannot be blank")
        return v

    @property
    def expiration_time(self) -> datetime:
        return self.issued_at + timedelta(seconds=self.expires_in)

    @property
    def is_bearer(self) -> bool:
        return self.token_type.lower() == BEARER_TOKEN_TYPE.lower()

    def remaining_lifetime(self, now: datetime | float | None = None) -> int:
        remaining = (self.expiration_time - _as_datetime(now)).total_seconds()
        return max(0, int(remaining))

    def is_expired(self, now: datetime | float | None = None) -> bool:
        return _as_datetime(now) >= self.expiration_time

    def to_wire(self) -> dict[str, Any]:
        """Token endpoint body; ``issued_at`` is epoch seconds."""
        wire = self.model_dump(exclude={"issued_at"}, exclude_none=True)
        wire["issued_at"] = int(self.issued_at.timestamp())
        return wire


class OAuthErrorResponse(CredgateBaseModel):
    """OAuth 2.0 error response body.

    Example:
        >>> OAuthErrorResponse(error="invalid_client").to_wire()
        {'error': 'invalid_client'}
    """

    error: str
    error_description: str | None = None
    error_uri: str | None = None

    @field_validator("error")
    @classmethod
    def validate_error(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Error code cannot be blank")
        return v.strip()

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class IntrospectionResponse(CredgateBaseModel):
    """RFC 7662 introspection result.

    Inactive responses carry only ``active: false`` so that nothing about an
    invalid token leaks to the caller.
    """

    active: bool
    client_id: str | None = None
    scope: str | None = None
    token_type: str | None = None
    exp: int | None = None
    iat: int | None = None
    sub: str | None = None
    iss: str | None = None
    aud: str | None = None
    jti: str | None = None

    @classmethod
    def inactive(cls) -> "IntrospectionResponse":
        return cls(active=False)

    @classmethod
    def from_claims(cls, claims: TokenClaims) -> "IntrospectionResponse":
        return cls(
            active=True,
            client_id=claims.client_id,
            scope=claims.scope,
            token_type=claims.token_type,
            exp=claims.exp,
            iat=claims.iat,
            sub=claims.sub,
            iss=claims.iss,
            aud=claims.aud,
            jti=claims.jti,
        )

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class BasicAuthResponse(CredgateBaseModel):
    """Basic authentication verdict returned to the caller.

    ``timestamp`` is epoch milliseconds. Only the caller-facing message is
    exposed; failure codes stay in the audit log.
    """

    allowed: bool
    message: str
    timestamp: int = Field(default_factory=lambda: int(time.time() * 1000))

    @classmethod
    def from_result(cls, result: AuthenticationResult) -> "BasicAuthResponse":
        return cls(
            allowed=result.allowed,
            message=result.reason,
            timestamp=int(result.timestamp.timestamp() * 1000),
        )

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump()


# Tagged result of the client credentials grant
GrantResult = Union[TokenResponse, OAuthErrorResponse]
