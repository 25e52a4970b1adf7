"""Tests for the credgate error taxonomy."""

import pytest

from credgate.errors import (
    ACCESS_DENIED,
    INVALID_CLIENT,
    INVALID_SCOPE,
    OAUTH2_ERROR_CODES,
    SERVER_ERROR,
    ConfigurationError,
    CredgateError,
    InvalidTokenError,
    MalformedCredentialsError,
    OAuth2Error,
    StoreUnavailableError,
    TokenDecodeError,
    TokenError,
    UnsupportedGrantTypeError,
)
from credgate.models.responses import OAuthErrorResponse


class TestCredgateError:
    """Tests for the base error."""

    def test_to_dict(self) -> None:
        error = CredgateError("credgate:test/code", "Something failed", {"key": "value"})

        assert error.to_dict() == {
            "code": "credgate:test/code",
            "message": "Something failed",
            "details": {"key": "value"},
        }
        assert str(error) == "Something failed"

    def test_details_default_to_empty_dict(self) -> None:
        assert CredgateError("credgate:test/code", "msg").details == {}

    def test_configuration_error_code(self) -> None:
        error = ConfigurationError("bad value", {"variable": "CREDGATE_PROFILE"})

        assert error.code == "credgate:config/invalid"
        assert error.details == {"variable": "CREDGATE_PROFILE"}

    def test_store_unavailable_records_operation(self) -> None:
        error = StoreUnavailableError("get", {"error": "timeout"})

        assert error.operation == "get"
        assert error.details == {"operation": "get", "error": "timeout"}
        assert "get" in error.message

    def test_malformed_credentials_keeps_reason(self) -> None:
        error = MalformedCredentialsError("missing colon")

        assert error.reason == "missing colon"
        assert error.message == "missing colon"


class TestTokenErrors:
    """Token errors share a base so callers can catch them together."""

    def test_subclasses(self) -> None:
        assert issubclass(TokenDecodeError, TokenError)
        assert issubclass(InvalidTokenError, TokenError)

    def test_codes_differ(self) -> None:
        assert TokenDecodeError("bad").code != InvalidTokenError().code

    def test_invalid_token_message(self) -> None:
        assert InvalidTokenError().message == "Invalid token"


class TestOAuth2Error:
    """Tests for OAuth2Error and its factories."""

    def test_blank_error_code_rejected(self) -> None:
        with pytest.raises(ValueError):
            OAuth2Error("  ")

    def test_message_defaults_to_error_code(self) -> None:
        assert OAuth2Error(INVALID_CLIENT).message == INVALID_CLIENT

    def test_invalid_client_default_description(self) -> None:
        error = OAuth2Error.invalid_client()

        assert error.error == INVALID_CLIENT
        assert error.description == "Invalid client credentials"
        assert error.is_client_authentication_error

    def test_invalid_scope_description(self) -> None:
        error = OAuth2Error.invalid_scope("admin")

        assert error.error == INVALID_SCOPE
        assert error.description == "Requested scope 'admin' is invalid or not allowed"
        assert error.is_client_configuration_error

    def test_server_error_default(self) -> None:
        error = OAuth2Error.server_error()

        assert error.error == SERVER_ERROR
        assert error.description == "Internal authentication error"
        assert error.is_server_error

    def test_access_denied(self) -> None:
        error = OAuth2Error.access_denied("Client is not active: Suspended")

        assert error.error == ACCESS_DENIED
        assert not error.is_server_error
        assert not error.is_client_authentication_error

    def test_unsupported_grant_type_factory(self) -> None:
        error = OAuth2Error.unsupported_grant_type("password")

        assert isinstance(error, UnsupportedGrantTypeError)
        assert error.grant_type == "password"
        assert error.description == "Grant type 'password' is not supported"

    def test_to_response(self) -> None:
        response = OAuth2Error("invalid_request", "Missing grant_type parameter").to_response()

        assert isinstance(response, OAuthErrorResponse)
        assert response.to_wire() == {
            "error": "invalid_request",
            "error_description": "Missing grant_type parameter",
        }

    def test_to_response_includes_uri(self) -> None:
        response = OAuth2Error("invalid_request", "x", uri="https://docs/errors").to_response()

        assert response.error_uri == "https://docs/errors"

    @pytest.mark.parametrize(
        "factory",
        [
            OAuth2Error.invalid_request,
            OAuth2Error.invalid_grant,
            OAuth2Error.unauthorized_client,
            OAuth2Error.access_denied,
            OAuth2Error.temporarily_unavailable,
        ],
    )
    def test_factories_use_standard_codes(self, factory) -> None:
        assert factory("description").error in OAUTH2_ERROR_CODES
