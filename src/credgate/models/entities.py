"""Core entity models for credgate.

This module defines the principals the engine authenticates:
- User: an end-user principal authenticated with HTTP Basic credentials
- OAuthClient: a machine client authenticated with the client credentials grant

Both carry only secret hashes, never raw secrets, and neither includes the
hash in its ``repr``.
"""

import re
from typing import Any

from pydantic import Field, field_validator, model_validator

from credgate.models.base import CredgateBaseModel
from credgate.models.enums import ClientStatus, GrantType, UserStatus

MAX_USERNAME_LENGTH = 255
USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9._@-]+$")

DEFAULT_TOKEN_EXPIRATION_SECONDS = 3600


def _dedupe(values: tuple[str, ...]) -> tuple[str, ...]:
    seen: dict[str, None] = {}
    for value in values:
        stripped = value.strip()
        if stripped:
            seen.setdefault(stripped, None)
    return tuple(seen)


class User(CredgateBaseModel):
    """End-user principal.

    The username keeps its original case; lookups go through
    ``normalized_username``.

    Attributes:
        username: Login name, 1-255 characters of ``[A-Za-z0-9._@-]``
        password_hash: Stored Argon2id hash (or legacy format)
        status: Account status
        roles: Ordered role names

    Example:
        >>> user = User(username="Demo", password_hash="$argon2id$...")
        >>> user.normalized_username
        'demo'
        >>> user.with_role("admin").has_role("admin")
        True
    """

    username: str = Field(..., max_length=MAX_USERNAME_LENGTH)
    password_hash: str = Field(..., repr=False)
    status: UserStatus = UserStatus.ACTIVE
    roles: tuple[str, ...] = ()

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("Username cannot be blank")
        if not USERNAME_PATTERN.match(stripped):
            raise ValueError("Username contains invalid characters")
        return stripped

    @field_validator("password_hash")
    @classmethod
    def validate_password_hash(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Password hash cannot be blank")
        return v

    @field_validator("roles")
    @classmethod
    def validate_roles(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        return _dedupe(v)

    @property
    def normalized_username(self) -> str:
        return self.username.strip().lower()

    def is_active(self) -> bool:
        return self.status is UserStatus.ACTIVE

    def has_role(self, role: str | None) -> bool:
        return role is not None and role.strip() in self.roles

    def with_status(self, status: UserStatus) -> "User":
        return self.model_copy(update={"status": status})

    def with_role(self, role: str) -> "User":
        """Return a copy with ``role`` appended; unchanged if already present."""
        if not role or not role.strip():
            raise ValueError("Role cannot be blank")
        if self.has_role(role):
            return self
        return self.model_copy(update={"roles": (*self.roles, role.strip())})


class OAuthClient(CredgateBaseModel):
    """OAuth 2.0 machine client.

    Equality and hashing use ``client_id`` alone, so two snapshots of the
    same client taken at different times compare equal.

    Attributes:
        client_id: Client identifier
        client_secret_hash: Stored Argon2id hash of the client secret
        status: Lifecycle status
        allowed_scopes: Ordered, de-duplicated scopes the client may request
        allowed_grant_types: Grant types; must include client_credentials
        token_expiration_seconds: Default token lifetime for this client
        description: Free text, defaults to ``"<client_id> client"``

    Example:
        >>> client = OAuthClient(
        ...     client_id="demo-client",
        ...     client_secret_hash="$argon2id$...",
        ...     allowed_scopes=["read", "write"],
        ... )
        >>> client.is_scope_allowed("write")
        True
        >>> client.effective_token_expiration(None, 1800)
        1800
    """

    client_id: str
    client_secret_hash: str = Field(..., repr=False)
    status: ClientStatus = ClientStatus.ACTIVE
    allowed_scopes: tuple[str, ...] = ()
    allowed_grant_types: tuple[GrantType, ...] = (GrantType.CLIENT_CREDENTIALS,)
    token_expiration_seconds: int = Field(default=DEFAULT_TOKEN_EXPIRATION_SECONDS, gt=0)
    description: str = ""

    @model_validator(mode="before")
    @classmethod
    def default_description(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("description"):
            client_id = data.get("client_id") or data.get("clientId") or ""
            data = {**data, "description": f"{str(client_id).strip()} client"}
        return data

    @field_validator("client_id")
    @classmethod
    def validate_client_id(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("Client ID cannot be blank")
        return stripped

    @field_validator("client_secret_hash")
    @classmethod
    def validate_secret_hash(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Client secret hash cannot be blank")
        return v

    @field_validator("allowed_scopes")
    @classmethod
    def validate_scopes(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        return _dedupe(v)

    @field_validator("allowed_grant_types")
    @classmethod
    def validate_grant_types(cls, v: tuple[GrantType, ...]) -> tuple[GrantType, ...]:
        if GrantType.CLIENT_CREDENTIALS not in v:
            raise ValueError("Client must support the client_credentials grant type")
        return tuple(dict.fromkeys(v))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, OAuthClient):
            return NotImplemented
        return self.client_id == other.client_id

    def __hash__(self) -> int:
        return hash(self.client_id)

    def is_active(self) -> bool:
        return self.status.can_authenticate

    def is_scope_allowed(self, scope: str | None) -> bool:
        """Blank scopes are always allowed; otherwise exact membership."""
        if scope is None or not scope.strip():
            return True
        return scope.strip() in self.allowed_scopes

    def is_grant_type_supported(self, grant_type: str | GrantType | None) -> bool:
        if isinstance(grant_type, GrantType):
            return grant_type in self.allowed_grant_types
        parsed = GrantType.from_value(grant_type)
        return parsed is not None and parsed in self.allowed_grant_types

    def effective_token_expiration(self, requested: int | None, maximum: int) -> int:
        """Token lifetime: the requested value (or client default), capped at ``maximum``."""
        if requested is not None and requested > 0:
            return min(requested, maximum)
        return min(self.token_expiration_seconds, maximum)

    def with_status(self, status: ClientStatus) -> "OAuthClient":
        return self.model_copy(update={"status": status})
