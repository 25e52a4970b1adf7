"""Request models for the authentication flows.

Both models validate on construction, so a flow that receives one can rely
on non-blank credentials. Raw secrets are excluded from ``repr``.
"""

from pydantic import Field, field_validator, model_validator

from credgate.errors import UnsupportedGrantTypeError
from credgate.models.base import CredgateBaseModel
from credgate.models.enums import GrantType


class AuthenticationRequest(CredgateBaseModel):
    """HTTP Basic credential pair.

    Example:
        >>> request = AuthenticationRequest(username="demo", password="demo123")
        >>> "demo123" in repr(request)
        False
    """

    username: str
    password: str = Field(..., repr=False)

    @field_validator("username", "password")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Credentials cannot be blank")
        return v


class TokenRequest(CredgateBaseModel):
    """OAuth 2.0 client credentials token request (RFC 6749 §4.4.2).

    Constructing a request with any grant type other than
    ``client_credentials`` raises ``UnsupportedGrantTypeError`` (not a
    pydantic ValidationError) so parsers can map it to the matching OAuth2
    error code.

    Example:
        >>> request = TokenRequest(
        ...     grant_type="client_credentials",
        ...     client_id="test-client",
        ...     client_secret="test-secret",
        ...     scope="read  write",
        ... )
        >>> request.requested_scopes
        ('read', 'write')
        >>> request.normalized_scope
        'read write'
    """

    grant_type: str
    client_id: str
    client_secret: str = Field(..., repr=False)
    scope: str | None = None

    @model_validator(mode="before")
    @classmethod
    def check_grant_type(cls, data: object) -> object:
        if isinstance(data, dict):
            grant_type = data.get("grant_type")
            if GrantType.from_value(grant_type) is not GrantType.CLIENT_CREDENTIALS:
                raise UnsupportedGrantTypeError(grant_type)
        return data

    @field_validator("grant_type")
    @classmethod
    def normalize_grant_type(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("client_id")
    @classmethod
    def validate_client_id(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("Client ID cannot be blank")
        return stripped

    @field_validator("client_secret")
    @classmethod
    def validate_client_secret(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Client secret cannot be blank")
        return v

    @field_validator("scope")
    @classmethod
    def blank_scope_is_none(cls, v: str | None) -> str | None:
        if v is None or not v.strip():
            return None
        return v

    @property
    def requested_scopes(self) -> tuple[str, ...]:
        if self.scope is None:
            return ()
        return tuple(self.scope.split())

    @property
    def normalized_scope(self) -> str | None:
        scopes = self.requested_scopes
        return " ".join(dict.fromkeys(scopes)) if scopes else None

    @property
    def is_client_credentials_grant(self) -> bool:
        return self.grant_type == GrantType.CLIENT_CREDENTIALS.value

    def has_scope_requested(self, scope: str | None) -> bool:
        return scope is not None and scope.strip() in self.requested_scopes

    def with_scope(self, scope: str | None) -> "TokenRequest":
        return self.model_validate({**self.model_dump(), "scope": scope})
