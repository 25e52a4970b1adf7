"""Enumerations for credgate.

This module defines the status and grant type enums used by the domain
models so that store records and wire payloads never carry magic strings.
"""

from enum import Enum


class UserStatus(str, Enum):
    """Account status of an end-user principal.

    Example:
        >>> UserStatus.parse("enabled")
        <UserStatus.DISABLED: 'DISABLED'>
    """

    ACTIVE = "ACTIVE"
    DISABLED = "DISABLED"

    @classmethod
    def parse(cls, value: str | None) -> "UserStatus":
        """Parse a stored status, falling back to the most restrictive value."""
        if value is None:
            return cls.DISABLED
        try:
            return cls(value.strip().upper())
        except ValueError:
            return cls.DISABLED


class ClientStatus(str, Enum):
    """Lifecycle status of an OAuth client.

    Only ACTIVE clients may authenticate. SUSPENDED is a temporary state that
    an operator can lift; DISABLED is permanent.

    Example:
        >>> ClientStatus.SUSPENDED.is_temporary
        True
        >>> ClientStatus.ACTIVE.display_name
        'Active'
    """

    ACTIVE = "ACTIVE"
    DISABLED = "DISABLED"
    SUSPENDED = "SUSPENDED"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()

    @property
    def description(self) -> str:
        return _CLIENT_STATUS_DESCRIPTIONS[self]

    @property
    def can_authenticate(self) -> bool:
        return self is ClientStatus.ACTIVE

    @property
    def is_temporary(self) -> bool:
        return self is ClientStatus.SUSPENDED

    @classmethod
    def parse(cls, value: str | None) -> "ClientStatus":
        """Parse a stored status, falling back to the most restrictive value."""
        if value is None:
            return cls.DISABLED
        try:
            return cls(value.strip().upper())
        except ValueError:
            return cls.DISABLED


_CLIENT_STATUS_DESCRIPTIONS = {
    ClientStatus.ACTIVE: "Client is operational and can authenticate",
    ClientStatus.DISABLED: "Client is permanently disabled",
    ClientStatus.SUSPENDED: "Client is temporarily suspended",
}


class GrantType(str, Enum):
    """OAuth 2.0 grant types a client record may list.

    Only CLIENT_CREDENTIALS is served by this engine; the others are known so
    that client records listing them still parse.
    """

    CLIENT_CREDENTIALS = "client_credentials"
    AUTHORIZATION_CODE = "authorization_code"
    REFRESH_TOKEN = "refresh_token"
    PASSWORD = "password"
    IMPLICIT = "implicit"

    @classmethod
    def from_value(cls, value: str | None) -> "GrantType | None":
        if value is None:
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None
