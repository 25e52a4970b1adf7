"""Authentication flows: HTTP Basic, client credentials and introspection."""

from credgate.auth.basic import BasicAuthenticator
from credgate.auth.client_credentials import ClientCredentialsGrant, GrantSettings
from credgate.auth.introspection import TokenIntrospector
from credgate.auth.parsing import (
    create_basic_auth_header,
    decode_basic_auth,
    is_valid_basic_auth_header,
    parse_token_request,
)
from credgate.auth.scopes import (
    SCOPE_ADMIN,
    SCOPE_DELETE,
    SCOPE_READ,
    SCOPE_WRITE,
    create_scope_string,
    default_scope,
    is_valid_scope_format,
    normalize_scope,
    parse_scopes,
    scopes_allowed,
)

__all__ = [
    "SCOPE_ADMIN",
    "SCOPE_DELETE",
    "SCOPE_READ",
    "SCOPE_WRITE",
    "BasicAuthenticator",
    "ClientCredentialsGrant",
    "GrantSettings",
    "TokenIntrospector",
    "create_basic_auth_header",
    "create_scope_string",
    "decode_basic_auth",
    "default_scope",
    "is_valid_basic_auth_header",
    "is_valid_scope_format",
    "normalize_scope",
    "parse_scopes",
    "parse_token_request",
    "scopes_allowed",
]
