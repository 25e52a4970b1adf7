"""Immutable domain and wire models for credgate.

Example:
    >>> from credgate.models import OAuthClient, TokenRequest
    >>> request = TokenRequest(
    ...     grant_type="client_credentials", client_id="demo-client", client_secret="s"
    ... )
"""

from credgate.models.base import CredgateBaseModel
from credgate.models.claims import BEARER_TOKEN_TYPE, TokenClaims
from credgate.models.entities import OAuthClient, User
from credgate.models.enums import ClientStatus, GrantType, UserStatus
from credgate.models.requests import AuthenticationRequest, TokenRequest
from credgate.models.responses import (
    BasicAuthResponse,
    GrantResult,
    IntrospectionResponse,
    OAuthErrorResponse,
    TokenResponse,
)
from credgate.models.results import AuthenticationResult

__all__ = [
    "AuthenticationRequest",
    "AuthenticationResult",
    "BEARER_TOKEN_TYPE",
    "BasicAuthResponse",
    "ClientStatus",
    "CredgateBaseModel",
    "GrantResult",
    "GrantType",
    "IntrospectionResponse",
    "OAuthClient",
    "OAuthErrorResponse",
    "TokenClaims",
    "TokenRequest",
    "TokenResponse",
    "User",
    "UserStatus",
]
