"""Signed bearer token issuance and verification.

Tokens are compact JWS objects (``header.payload.signature``) signed with
HMAC-SHA256 through joserfc. The payload carries ``iss``, ``aud``, ``sub``,
``iat``, ``exp`` and ``jti`` plus any caller claims; client tokens add
``client_id``, ``token_type`` and ``scope``.

The signature is checked by joserfc before any claim is read. Issuer,
audience and expiry are then checked here against the injected clock; a
token is invalid once ``now >= exp``.

Example:
    >>> engine = TokenEngine(TokenSettings(signing_secret="s" * 32))
    >>> issued = engine.issue("demo-client", {"scope": "read"})
    >>> engine.verify(issued.token)
    True
    >>> engine.verify(issued.token[:-2] + "xx")
    False
"""

from __future__ import annotations

import base64
import binascii
import json
import re
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable

from joserfc import jwt as jose_jwt
from joserfc.errors import BadSignatureError, JoseError
from joserfc.jwk import OctKey
from pydantic import ValidationError

from credgate.config import TokenSettings
from credgate.errors import InvalidTokenError, TokenDecodeError, TokenError
from credgate.models.claims import BEARER_TOKEN_TYPE, TokenClaims
from credgate.models.responses import TokenResponse
from credgate.observability.logging import get_logger, mask_identifier
from credgate.observability.metrics import MetricsCollector, get_metrics
from credgate.tokens.ids import generate_token_id

logger = get_logger(__name__)

JWT_ALG_HS256 = "HS256"
JWT_HEADER = {"alg": JWT_ALG_HS256, "typ": "JWT"}

_SEGMENT_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


def _b64url_decode(segment: str) -> bytes:
    if not _SEGMENT_PATTERN.match(segment):
        raise ValueError("Segment is not base64url")
    return base64.urlsafe_b64decode(segment + "=" * (-len(segment) % 4))


@dataclass(frozen=True)
class IssuedToken:
    """A freshly signed token and the claims it carries."""

    token: str
    claims: TokenClaims
    expires_in: int

    @property
    def issued_at(self) -> datetime:
        return datetime.fromtimestamp(self.claims.iat, tz=timezone.utc)


class TokenEngine:
    """HS256 bearer token engine.

    Args:
        settings: Signing secret, issuer, audience and lifetimes
        clock: Wall clock returning epoch seconds (injectable for tests)
        metrics: Metrics collector (defaults to the global collector)
    """

    def __init__(
        self,
        settings: TokenSettings,
        clock: Callable[[], float] = time.time,
        metrics: MetricsCollector | None = None,
    ) -> None:
        self._settings = settings
        self._key = OctKey.import_key(settings.signing_secret.encode("utf-8"))
        self._clock = clock
        self._metrics = metrics or get_metrics()

    @property
    def settings(self) -> TokenSettings:
        return self._settings

    def clamp_ttl(self, ttl_seconds: int | None) -> int:
        """Resolve a requested TTL: None means the default, otherwise clamp to [1, max_ttl]."""
        if ttl_seconds is None:
            return self._settings.default_ttl
        return max(1, min(int(ttl_seconds), self._settings.max_ttl))

    def issue(
        self,
        subject: str,
        claims: dict[str, Any] | None = None,
        ttl_seconds: int | None = None,
    ) -> IssuedToken:
        """Sign a new token for ``subject``.

        Registered claims (iss, aud, sub, iat, exp, jti) always take
        precedence over caller claims with the same name.

        Raises:
            ValueError: If the subject is blank
        """
        if not subject or not subject.strip():
            raise ValueError("Token subject cannot be blank")
        ttl = self.clamp_ttl(ttl_seconds)
        now = int(self._clock())
        payload: dict[str, Any] = {
            **(claims or {}),
            "iss": self._settings.issuer,
            "aud": self._settings.audience,
            "sub": subject,
            "iat": now,
            "exp": now + ttl,
            "jti": generate_token_id(),
        }
        token = jose_jwt.encode(JWT_HEADER, payload, self._key, algorithms=[JWT_ALG_HS256])
        self._metrics.increment_counter("credgate_token_issued_total")
        logger.debug(
            "credgate.token.issued",
            sub=mask_identifier(subject),
            jti=payload["jti"],
            expires_in=ttl,
        )
        return IssuedToken(token=token, claims=TokenClaims.from_payload(payload), expires_in=ttl)

    def issue_for_client(
        self, client_id: str, scope: str | None = None, ttl_seconds: int | None = None
    ) -> TokenResponse:
        """Issue a client credentials access token and wrap it in a TokenResponse."""
        claims: dict[str, Any] = {"client_id": client_id, "token_type": BEARER_TOKEN_TYPE}
        if scope and scope.strip():
            claims["scope"] = scope.strip()
        issued = self.issue(client_id, claims, ttl_seconds)
        return TokenResponse(
            access_token=issued.token,
            token_type=BEARER_TOKEN_TYPE,
            expires_in=issued.expires_in,
            scope=claims.get("scope"),
            issued_at=issued.issued_at,
        )

    def claims(self, token: str) -> dict[str, Any]:
        """Return the payload of a correctly signed token, without time or audience checks.

        Raises:
            TokenDecodeError: If the token is structurally malformed
            InvalidTokenError: If the signature does not match
        """
        if token is None or not token.strip():
            raise TokenDecodeError("empty token")
        parts = token.strip().split(".")
        if len(parts) != 3 or not all(parts):
            raise TokenDecodeError("expected three segments")
        try:
            for segment in parts:
                _b64url_decode(segment)
            header = json.loads(_b64url_decode(parts[0]))
        except (ValueError, binascii.Error) as exc:
            raise TokenDecodeError("invalid encoding") from exc
        if not isinstance(header, dict) or header.get("alg") != JWT_ALG_HS256:
            raise TokenDecodeError("unsupported header")

        try:
            decoded = jose_jwt.decode(token.strip(), self._key, algorithms=[JWT_ALG_HS256])
            return dict(decoded.claims)
        except BadSignatureError as exc:
            raise InvalidTokenError() from exc
        except (JoseError, ValueError, TypeError) as exc:
            raise TokenDecodeError(type(exc).__name__) from exc

    def _claims_valid(self, claims: dict[str, Any]) -> bool:
        if claims.get("iss") != self._settings.issuer:
            return False
        aud = claims.get("aud")
        audiences = aud if isinstance(aud, list) else [aud]
        if self._settings.audience not in audiences:
            return False
        exp = claims.get("exp")
        if isinstance(exp, bool) or not isinstance(exp, int):
            return False
        if not isinstance(claims.get("sub"), str) or not claims["sub"]:
            return False
        return self._clock() < exp

    def verify(self, token: str | None) -> bool:
        """True only for a well-formed, correctly signed, unexpired token of this issuer."""
        try:
            claims = self.claims(token or "")
        except TokenError as exc:
            logger.debug("credgate.token.rejected", reason=exc.code)
            return False
        return self._claims_valid(claims)

    def validated_claims(self, token: str | None) -> TokenClaims | None:
        """Typed claims of a valid token, or None."""
        try:
            claims = self.claims(token or "")
        except TokenError as exc:
            logger.debug("credgate.token.rejected", reason=exc.code)
            return None
        if not self._claims_valid(claims):
            return None
        try:
            return TokenClaims.from_payload(claims)
        except (ValidationError, TypeError):
            logger.warning("credgate.token.unexpected_claims")
            return None

    def remaining_lifetime(self, token: str | None) -> int:
        """Seconds until expiry; 0 for invalid or expired tokens."""
        claims = self.validated_claims(token)
        if claims is None:
            return 0
        return claims.remaining_lifetime(self._clock())

    def is_expired(self, token: str | None) -> bool:
        """True when the token is expired or its expiry cannot be determined."""
        try:
            claims = self.claims(token or "")
        except TokenError:
            return True
        exp = claims.get("exp")
        if isinstance(exp, bool) or not isinstance(exp, int):
            return True
        return self._clock() >= exp

    def extract_client_id(self, token: str | None) -> str | None:
        claims = self.validated_claims(token)
        return claims.client_id if claims is not None else None

    def extract_scope(self, token: str | None) -> str | None:
        claims = self.validated_claims(token)
        return claims.scope if claims is not None else None
