"""Tests for HTTP Basic authentication."""

from __future__ import annotations

import pytest

from credgate.auth.basic import (
    AUTH_METHOD_BASIC,
    MESSAGE_ACCOUNT_DISABLED,
    MESSAGE_INTERNAL_ERROR,
    MESSAGE_INVALID_CREDENTIALS,
    BasicAuthenticator,
)
from credgate.auth.parsing import create_basic_auth_header
from credgate.config import HashingParams
from credgate.crypto.hashing import SecretHasher
from credgate.models.requests import AuthenticationRequest
from credgate.observability.metrics import MetricsCollector, get_metrics
from credgate.storage.local import LocalUserRepository


class ExplodingHasher(SecretHasher):
    """Hasher whose verification always fails with an unexpected error."""

    def verify(self, secret: str, stored: str) -> bool:
        raise RuntimeError("argon2 backend unavailable")


class CountingHasher(SecretHasher):
    """Hasher that records the stored value of every verification."""

    def __init__(self, params: HashingParams) -> None:
        super().__init__(params)
        self.verified: list[str] = []

    def verify(self, secret: str, stored: str) -> bool:
        self.verified.append(stored)
        return super().verify(secret, stored)


@pytest.fixture
def authenticator(
    user_repository: LocalUserRepository, hasher: SecretHasher, metrics: MetricsCollector
) -> BasicAuthenticator:
    return BasicAuthenticator(user_repository, hasher, metrics=metrics)


class TestSuccessfulAuthentication:
    """Valid credentials for the built-in users."""

    @pytest.mark.parametrize(
        ("username", "password"),
        [("demo", "demo123"), ("admin", "admin123"), ("test", "test123")],
    )
    def test_default_users(
        self, authenticator: BasicAuthenticator, username: str, password: str
    ) -> None:
        result = authenticator.authenticate(
            AuthenticationRequest(username=username, password=password)
        )

        assert result.allowed is True
        assert result.reason == "Authentication successful"
        assert result.username == username

    def test_success_metadata(self, authenticator: BasicAuthenticator) -> None:
        result = authenticator.authenticate_credentials("admin", "admin123")

        assert result.get_metadata("roles") == ["admin", "user"]
        assert result.get_metadata("user_status") == "ACTIVE"
        assert result.get_metadata("auth_method") == AUTH_METHOD_BASIC
        assert result.get_metadata("duration") >= 0

    def test_username_lookup_is_case_insensitive(
        self, authenticator: BasicAuthenticator
    ) -> None:
        result = authenticator.authenticate_credentials("DEMO", "demo123")

        assert result.allowed is True
        assert result.username == "demo"

    def test_header(self, authenticator: BasicAuthenticator) -> None:
        result = authenticator.authenticate_header("Basic ZGVtbzpkZW1vMTIz")

        assert result.allowed is True


class TestFailedAuthentication:
    def test_wrong_password(self, authenticator: BasicAuthenticator) -> None:
        result = authenticator.authenticate_credentials("demo", "wrong")

        assert result.allowed is False
        assert result.reason == MESSAGE_INVALID_CREDENTIALS
        assert result.failure_code == "invalid_password"

    def test_unknown_user(self, authenticator: BasicAuthenticator) -> None:
        result = authenticator.authenticate_credentials("nobody", "demo123")

        assert result.allowed is False
        assert result.reason == MESSAGE_INVALID_CREDENTIALS
        assert result.failure_code == "user_not_found"

    def test_unknown_user_and_wrong_password_look_identical(
        self, authenticator: BasicAuthenticator
    ) -> None:
        """Callers cannot tell a missing user from a bad password."""
        unknown = authenticator.authenticate_credentials("nobody", "x")
        wrong = authenticator.authenticate_credentials("demo", "x")

        assert unknown.reason == wrong.reason
        assert unknown.allowed == wrong.allowed

    def test_disabled_account(self, hasher: SecretHasher, metrics: MetricsCollector) -> None:
        users = LocalUserRepository(
            hasher,
            records=[
                {"username": "locked", "password": "locked123", "status": "DISABLED"},
            ],
        )
        authenticator = BasicAuthenticator(users, hasher, metrics=metrics)

        result = authenticator.authenticate_credentials("locked", "locked123")

        assert result.allowed is False
        assert result.reason == MESSAGE_ACCOUNT_DISABLED
        assert result.failure_code == "account_disabled"

    def test_record_without_status_is_disabled(
        self, hasher: SecretHasher, metrics: MetricsCollector
    ) -> None:
        users = LocalUserRepository(hasher, records=[{"username": "ghost", "password": "pw123"}])
        authenticator = BasicAuthenticator(users, hasher, metrics=metrics)

        result = authenticator.authenticate_credentials("ghost", "pw123")

        assert result.allowed is False
        assert result.failure_code == "account_disabled"

    @pytest.mark.parametrize(
        ("username", "password"),
        [(None, "pw"), ("", "pw"), ("   ", "pw"), ("demo", None), ("demo", ""), ("demo", "  ")],
    )
    def test_blank_credentials(
        self, authenticator: BasicAuthenticator, username: str | None, password: str | None
    ) -> None:
        result = authenticator.authenticate_credentials(username, password)

        assert result.allowed is False
        assert result.failure_code == "invalid_request"

    @pytest.mark.parametrize(
        "header", [None, "", "Bearer abc", "Basic ***", "Basic bm9jb2xvbg=="]
    )
    def test_malformed_header(self, authenticator: BasicAuthenticator, header: str | None) -> None:
        result = authenticator.authenticate_header(header)

        assert result.allowed is False
        assert result.reason == MESSAGE_INVALID_CREDENTIALS
        assert result.failure_code == "invalid_request"

    def test_password_with_colon_via_header(
        self, hasher: SecretHasher, metrics: MetricsCollector
    ) -> None:
        users = LocalUserRepository(
            hasher, records=[{"username": "colon", "password": "a:b:c", "status": "ACTIVE"}]
        )
        authenticator = BasicAuthenticator(users, hasher, metrics=metrics)

        result = authenticator.authenticate_header(create_basic_auth_header("colon", "a:b:c"))

        assert result.allowed is True

    def test_none_request_raises(self, authenticator: BasicAuthenticator) -> None:
        with pytest.raises(ValueError):
            authenticator.authenticate(None)  # type: ignore[arg-type]

    def test_unexpected_error_becomes_failure(
        self, user_repository: LocalUserRepository, fast_params: HashingParams
    ) -> None:
        authenticator = BasicAuthenticator(user_repository, ExplodingHasher(fast_params))

        result = authenticator.authenticate_credentials("demo", "demo123")

        assert result.allowed is False
        assert result.reason == MESSAGE_INTERNAL_ERROR
        assert result.get_metadata("error") == "unexpected_error"
        assert "duration" in result.metadata


class TestAuthenticationMetrics:
    def test_snapshot_counts(self, authenticator: BasicAuthenticator) -> None:
        authenticator.authenticate_credentials("demo", "demo123")
        authenticator.authenticate_credentials("demo", "wrong")
        authenticator.authenticate_header(None)

        assert authenticator.metrics_snapshot() == {
            "total_attempts": 3,
            "successful_attempts": 1,
            "failed_attempts": 2,
        }

    def test_collector_counters(
        self, authenticator: BasicAuthenticator, metrics: MetricsCollector
    ) -> None:
        authenticator.authenticate_credentials("demo", "demo123")
        authenticator.authenticate_credentials("nobody", "demo123")

        labels = {"method": AUTH_METHOD_BASIC}
        assert metrics.get_counter("credgate_auth_attempts_total", labels) == 2
        assert metrics.get_counter("credgate_auth_success_total", labels) == 1
        assert (
            metrics.get_counter(
                "credgate_auth_failures_total", {**labels, "reason": "user_not_found"}
            )
            == 1
        )
        assert metrics.get_histogram_count("credgate_auth_duration_seconds", labels) == 2

    def test_defaults_to_global_collector(
        self, user_repository: LocalUserRepository, hasher: SecretHasher
    ) -> None:
        authenticator = BasicAuthenticator(user_repository, hasher)

        authenticator.authenticate_credentials("demo", "demo123")

        assert get_metrics().get_counter_total("credgate_auth_success_total") == 1


class TestTimingMitigation:
    """Every failure branch pays for exactly one hash verification."""

    @pytest.fixture
    def counting(self, fast_params: HashingParams) -> CountingHasher:
        return CountingHasher(fast_params)

    @pytest.fixture
    def counted(self, counting: CountingHasher, metrics: MetricsCollector) -> BasicAuthenticator:
        users = LocalUserRepository(
            counting,
            records=[
                {"username": "demo", "password": "demo123", "status": "ACTIVE"},
                {"username": "locked", "password": "locked123", "status": "DISABLED"},
            ],
        )
        authenticator = BasicAuthenticator(users, counting, metrics=metrics)
        counting.verified.clear()
        return authenticator

    def test_unknown_user_verifies_placeholder(
        self, counted: BasicAuthenticator, counting: CountingHasher
    ) -> None:
        counted.authenticate_credentials("nobody", "demo123")

        assert counting.verified == [counted._dummy_hash]

    def test_disabled_user_verifies_placeholder(
        self, counted: BasicAuthenticator, counting: CountingHasher
    ) -> None:
        counted.authenticate_credentials("locked", "locked123")

        assert counting.verified == [counted._dummy_hash]

    def test_wrong_password_verifies_stored_hash(
        self, counted: BasicAuthenticator, counting: CountingHasher
    ) -> None:
        counted.authenticate_credentials("demo", "wrong")

        assert len(counting.verified) == 1
        assert counting.verified[0] != counted._dummy_hash
        assert counting.verified[0].startswith("$argon2id$")
