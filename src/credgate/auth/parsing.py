"""Request parsing for the Basic and token endpoints.

Transport adapters hand raw header values and form parameters to these
helpers and get validated request models back.
"""

from __future__ import annotations

import base64
import binascii
import unicodedata
from typing import Mapping

from credgate.auth.scopes import is_valid_scope_format
from credgate.errors import MalformedCredentialsError, OAuth2Error
from credgate.models.requests import AuthenticationRequest, TokenRequest
from credgate.observability.logging import get_logger, mask_identifier

logger = get_logger(__name__)

BASIC_PREFIX = "Basic "
BEARER_PREFIX = "Bearer "

MAX_USERNAME_LENGTH = 255
MAX_PASSWORD_LENGTH = 1000

PARAM_GRANT_TYPE = "grant_type"
PARAM_CLIENT_ID = "client_id"
PARAM_CLIENT_SECRET = "client_secret"
PARAM_SCOPE = "scope"

# Control characters tolerated in usernames
_ALLOWED_CONTROL = frozenset({"\t", "\n", "\r"})


def _contains_control_characters(value: str) -> bool:
    return any(
        unicodedata.category(ch) == "Cc" and ch not in _ALLOWED_CONTROL for ch in value
    )


def _decode_credentials(header: str | None) -> tuple[str, str]:
    if header is None or not header.strip():
        raise MalformedCredentialsError("Authorization header cannot be empty")
    trimmed = header.strip()
    if not trimmed.startswith(BASIC_PREFIX):
        if trimmed.startswith(BEARER_PREFIX):
            raise MalformedCredentialsError(
                "Bearer token authentication is not supported, use Basic authentication"
            )
        raise MalformedCredentialsError("Authorization header must start with 'Basic '")

    encoded = trimmed[len(BASIC_PREFIX):].strip()
    if not encoded:
        raise MalformedCredentialsError("No credentials found in Authorization header")
    try:
        decoded = base64.b64decode(encoded, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as exc:
        raise MalformedCredentialsError("Invalid base64 encoding in Authorization header") from exc

    username, sep, password = decoded.partition(":")
    if not sep:
        raise MalformedCredentialsError("Invalid credentials format: missing colon separator")
    if not username:
        raise MalformedCredentialsError("Invalid credentials format: username cannot be empty")
    return username, password


def decode_basic_auth(header: str | None) -> AuthenticationRequest:
    """Decode an ``Authorization: Basic ...`` header.

    The username is everything before the first colon; the password may
    itself contain colons.

    Raises:
        MalformedCredentialsError: If the header cannot be decoded or the
            credentials fail the length and character checks

    Example:
        >>> decode_basic_auth("Basic ZGVtbzpkZW1vMTIz").username
        'demo'
    """
    username, password = _decode_credentials(header)
    if len(username) > MAX_USERNAME_LENGTH:
        raise MalformedCredentialsError(
            f"Username exceeds maximum length of {MAX_USERNAME_LENGTH} characters"
        )
    if _contains_control_characters(username):
        raise MalformedCredentialsError("Username contains invalid control characters")
    if len(password) > MAX_PASSWORD_LENGTH:
        raise MalformedCredentialsError(
            f"Password exceeds maximum length of {MAX_PASSWORD_LENGTH} characters"
        )
    if "\0" in password:
        raise MalformedCredentialsError("Password contains null bytes")
    if not username.strip() or not password.strip():
        raise MalformedCredentialsError("Username and password cannot be blank")
    return AuthenticationRequest(username=username, password=password)


def is_valid_basic_auth_header(header: str | None) -> bool:
    try:
        decode_basic_auth(header)
    except MalformedCredentialsError:
        return False
    return True


def create_basic_auth_header(username: str, password: str) -> str:
    """Build an ``Authorization`` header value for the given credentials."""
    if username is None or password is None:
        raise ValueError("Username and password cannot be None")
    encoded = base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")
    return BASIC_PREFIX + encoded


def _client_credentials(
    form: Mapping[str, str], authorization: str | None
) -> tuple[str, str]:
    if authorization is not None and authorization.strip().startswith(BASIC_PREFIX):
        try:
            client_id, client_secret = _decode_credentials(authorization)
        except MalformedCredentialsError as exc:
            logger.debug("credgate.parsing.invalid_basic_client_credentials", reason=exc.reason)
            raise OAuth2Error.invalid_client("Invalid Basic Authentication credentials") from exc
        if not client_secret.strip():
            raise OAuth2Error.invalid_client("Invalid Basic Authentication credentials")
        return client_id.strip(), client_secret

    client_id = form.get(PARAM_CLIENT_ID)
    client_secret = form.get(PARAM_CLIENT_SECRET)
    if client_id is None or not client_id.strip():
        raise OAuth2Error.invalid_request("Missing client_id parameter")
    if client_secret is None or not client_secret.strip():
        raise OAuth2Error.invalid_request("Missing client_secret parameter")
    return client_id.strip(), client_secret


def parse_token_request(
    form: Mapping[str, str] | None, authorization: str | None = None
) -> TokenRequest:
    """Parse token endpoint form parameters into a TokenRequest.

    Client credentials in a Basic ``Authorization`` header take precedence
    over ``client_id``/``client_secret`` form fields.

    Raises:
        OAuth2Error: ``invalid_request`` for missing parameters,
            ``invalid_client`` for an undecodable Basic header,
            ``invalid_scope`` for a malformed scope and
            ``unsupported_grant_type`` for any grant but client_credentials
    """
    if form is None:
        raise OAuth2Error.invalid_request("Form parameters cannot be empty")

    grant_type = form.get(PARAM_GRANT_TYPE)
    if grant_type is None or not grant_type.strip():
        raise OAuth2Error.invalid_request("Missing grant_type parameter")

    scope = form.get(PARAM_SCOPE)
    if scope is not None and not is_valid_scope_format(scope):
        raise OAuth2Error.invalid_scope(scope)

    client_id, client_secret = _client_credentials(form, authorization)

    try:
        request = TokenRequest(
            grant_type=grant_type.strip(),
            client_id=client_id,
            client_secret=client_secret,
            scope=scope.strip() if scope is not None else None,
        )
    except ValueError as exc:
        logger.debug("credgate.parsing.invalid_token_request", error=type(exc).__name__)
        raise OAuth2Error.invalid_request("Invalid request format") from exc

    logger.debug("credgate.parsing.token_request", client_id=mask_identifier(client_id))
    return request
