"""credgate Error Taxonomy.

This module defines the error hierarchy for the credential engine,
providing structured error handling with specific error codes
and context information.

Error families:
- Caller errors (malformed input) are reported synchronously.
- OAuth2 errors carry the RFC 6749 §5.2 error vocabulary and are always
  safe to show to the caller.
- Store errors mark transient infrastructure failures that are retried.
- Token errors distinguish parse failures from forgeries for logging only.
"""

from __future__ import annotations

from typing import Any

# Standard OAuth 2.0 error codes (RFC 6749 §5.2)
INVALID_REQUEST = "invalid_request"
INVALID_CLIENT = "invalid_client"
INVALID_GRANT = "invalid_grant"
UNAUTHORIZED_CLIENT = "unauthorized_client"
UNSUPPORTED_GRANT_TYPE = "unsupported_grant_type"
INVALID_SCOPE = "invalid_scope"
ACCESS_DENIED = "access_denied"
SERVER_ERROR = "server_error"
TEMPORARILY_UNAVAILABLE = "temporarily_unavailable"

OAUTH2_ERROR_CODES = frozenset(
    {
        INVALID_REQUEST,
        INVALID_CLIENT,
        INVALID_GRANT,
        UNAUTHORIZED_CLIENT,
        UNSUPPORTED_GRANT_TYPE,
        INVALID_SCOPE,
        ACCESS_DENIED,
        SERVER_ERROR,
        TEMPORARILY_UNAVAILABLE,
    }
)


class CredgateError(Exception):
    """Base exception for all credgate errors.

    Attributes:
        code: Error code following the credgate:<area>/<reason> pattern
        message: Human-readable error message
        details: Optional additional error context (never secret material)
    """

    def __init__(self, code: str, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize to ``{code, message, details}`` dict."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(CredgateError):
    """Raised when engine configuration is missing or invalid."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code="credgate:config/invalid",
            message=message,
            details=details or {},
        )


class StoreUnavailableError(CredgateError):
    """Raised by a secret store when a read or write fails transiently.

    Repositories retry this error with backoff. A definitive "not found" is
    never signalled with this exception; stores return ``None`` instead.
    """

    def __init__(self, operation: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code="credgate:store/unavailable",
            message=f"Secret store unavailable during {operation}",
            details={"operation": operation, **(details or {})},
        )
        self.operation = operation


class MalformedCredentialsError(CredgateError):
    """Raised when an Authorization header or credential pair cannot be decoded."""

    def __init__(self, reason: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code="credgate:auth/malformed_credentials",
            message=reason,
            details=details or {},
        )
        self.reason = reason


class TokenError(CredgateError):
    """Base class for token engine failures.

    Callers must treat every TokenError as "invalid token". Subclasses only
    exist so that logs can distinguish parse failures from forgeries.
    """


class TokenDecodeError(TokenError):
    """Raised when a token is structurally malformed or its claims cannot be parsed."""

    def __init__(self, reason: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code="credgate:token/decode_error",
            message=f"Token could not be decoded: {reason}",
            details=details or {},
        )
        self.reason = reason


class InvalidTokenError(TokenError):
    """Raised when a token signature does not match the signing key."""

    def __init__(self, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code="credgate:token/invalid_signature",
            message="Invalid token",
            details=details or {},
        )


class OAuth2Error(CredgateError):
    """OAuth 2.0 protocol error (RFC 6749 §5.2).

    Carries the standard error code plus an optional description and URI.
    The grant orchestrator converts it into an ``OAuthErrorResponse`` at its
    boundary; it never escapes to the transport layer as an exception.

    Attributes:
        error: Standard OAuth2 error code (e.g. ``invalid_client``)
        description: Optional human-readable description
        uri: Optional URI identifying a page with error information
    """

    def __init__(
        self,
        error: str,
        description: str | None = None,
        uri: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        if not error or not error.strip():
            raise ValueError("Error code cannot be blank")
        super().__init__(
            code=f"credgate:oauth2/{error.strip()}",
            message=description or error.strip(),
            details=details or {},
        )
        self.error = error.strip()
        self.description = description
        self.uri = uri

    @property
    def is_client_authentication_error(self) -> bool:
        return self.error == INVALID_CLIENT

    @property
    def is_server_error(self) -> bool:
        return self.error in (SERVER_ERROR, TEMPORARILY_UNAVAILABLE)

    @property
    def is_client_configuration_error(self) -> bool:
        return self.error in (UNAUTHORIZED_CLIENT, UNSUPPORTED_GRANT_TYPE, INVALID_SCOPE)

    def to_response(self) -> Any:
        """Build the wire-level error response for this error."""
        from credgate.models.responses import OAuthErrorResponse

        return OAuthErrorResponse(
            error=self.error,
            error_description=self.description,
            error_uri=self.uri,
        )

    @classmethod
    def invalid_request(cls, description: str) -> OAuth2Error:
        return cls(INVALID_REQUEST, description)

    @classmethod
    def invalid_client(cls, description: str = "Invalid client credentials") -> OAuth2Error:
        return cls(INVALID_CLIENT, description)

    @classmethod
    def invalid_grant(cls, description: str) -> OAuth2Error:
        return cls(INVALID_GRANT, description)

    @classmethod
    def unauthorized_client(cls, description: str) -> OAuth2Error:
        return cls(UNAUTHORIZED_CLIENT, description)

    @classmethod
    def unsupported_grant_type(cls, grant_type: str | None) -> OAuth2Error:
        return UnsupportedGrantTypeError(grant_type)

    @classmethod
    def invalid_scope(cls, requested_scope: str | None) -> OAuth2Error:
        return cls(
            INVALID_SCOPE,
            f"Requested scope '{requested_scope}' is invalid or not allowed",
        )

    @classmethod
    def access_denied(cls, reason: str) -> OAuth2Error:
        return cls(ACCESS_DENIED, reason)

    @classmethod
    def server_error(cls, description: str = "Internal authentication error") -> OAuth2Error:
        return cls(SERVER_ERROR, description)

    @classmethod
    def temporarily_unavailable(cls, description: str) -> OAuth2Error:
        return cls(TEMPORARILY_UNAVAILABLE, description)


class UnsupportedGrantTypeError(OAuth2Error):
    """Raised when a token request names a grant type other than client_credentials."""

    def __init__(self, grant_type: str | None) -> None:
        super().__init__(
            UNSUPPORTED_GRANT_TYPE,
            f"Grant type '{grant_type}' is not supported",
            details={"grant_type": grant_type},
        )
        self.grant_type = grant_type
