"""HTTP Basic authentication of end users.

Unknown users and disabled accounts still pay for one hash verification
against a placeholder Argon2id hash generated at construction, so response
times do not reveal which usernames exist.

Failure codes (``result.metadata["reason"]``):
- ``invalid_request``: missing or undecodable credentials
- ``user_not_found``: no such user (message "Invalid credentials")
- ``account_disabled``: user exists but is not active (message "Account disabled")
- ``invalid_password``: hash mismatch (message "Invalid credentials")
"""

from __future__ import annotations

import secrets
import time
from threading import Lock
from typing import Any, Callable

from credgate.auth.parsing import decode_basic_auth
from credgate.crypto.hashing import SecretHasher
from credgate.errors import MalformedCredentialsError
from credgate.models.entities import User
from credgate.models.requests import AuthenticationRequest
from credgate.models.results import AuthenticationResult
from credgate.observability.logging import get_logger, mask_identifier
from credgate.observability.metrics import MetricsCollector, get_metrics
from credgate.storage.repository import UserRepository

logger = get_logger(__name__)

AUTH_METHOD_BASIC = "basic"

MESSAGE_INVALID_CREDENTIALS = "Invalid credentials"
MESSAGE_ACCOUNT_DISABLED = "Account disabled"
MESSAGE_INTERNAL_ERROR = "Internal authentication error"

REASON_INVALID_REQUEST = "invalid_request"
REASON_USER_NOT_FOUND = "user_not_found"
REASON_ACCOUNT_DISABLED = "account_disabled"
REASON_INVALID_PASSWORD = "invalid_password"


class BasicAuthenticator:
    """Authenticates username/password pairs against a user repository.

    Args:
        users: Repository of end users
        hasher: Hasher used to verify stored password hashes
        metrics: Metrics collector (defaults to the global collector)
        timer: Monotonic timer used for duration metadata

    Example:
        >>> authenticator = BasicAuthenticator(users, hasher)
        >>> result = authenticator.authenticate(
        ...     AuthenticationRequest(username="demo", password="demo123")
        ... )
        >>> result.allowed
        True
    """

    def __init__(
        self,
        users: UserRepository,
        hasher: SecretHasher,
        metrics: MetricsCollector | None = None,
        timer: Callable[[], float] = time.perf_counter,
    ) -> None:
        self._users = users
        self._hasher = hasher
        self._metrics = metrics or get_metrics()
        self._timer = timer
        self._dummy_hash = hasher.hash(secrets.token_urlsafe(32))
        self._lock = Lock()
        self._attempts = 0
        self._successes = 0
        self._failures = 0

    def authenticate(self, request: AuthenticationRequest) -> AuthenticationResult:
        """Authenticate a decoded credential pair.

        Never raises for authentication failures; unexpected errors become a
        failure result with ``metadata["error"] == "unexpected_error"``.

        Raises:
            ValueError: If ``request`` is None
        """
        if request is None:
            raise ValueError("Authentication request cannot be None")
        start = self._timer()
        try:
            result = self._authenticate(request, start)
        except Exception as exc:
            logger.error(
                "credgate.basic.unexpected_error",
                username=mask_identifier(request.username),
                error=type(exc).__name__,
            )
            result = (
                AuthenticationResult.failure(request.username, MESSAGE_INTERNAL_ERROR)
                .with_metadata("duration", self._elapsed_ms(start))
                .with_metadata("error", "unexpected_error")
            )
        return self._record(result, start)

    def authenticate_credentials(
        self, username: str | None, password: str | None
    ) -> AuthenticationResult:
        """Authenticate raw values; blank input yields an ``invalid_request`` failure."""
        if not username or not username.strip() or not password or not password.strip():
            start = self._timer()
            return self._record(self._invalid_request(username, start), start)
        return self.authenticate(AuthenticationRequest(username=username, password=password))

    def authenticate_header(self, authorization: str | None) -> AuthenticationResult:
        """Decode an ``Authorization: Basic`` header and authenticate it."""
        try:
            request = decode_basic_auth(authorization)
        except MalformedCredentialsError as exc:
            start = self._timer()
            logger.info("credgate.basic.malformed_header", reason=exc.reason)
            return self._record(self._invalid_request(None, start), start)
        return self.authenticate(request)

    def metrics_snapshot(self) -> dict[str, int]:
        with self._lock:
            return {
                "total_attempts": self._attempts,
                "successful_attempts": self._successes,
                "failed_attempts": self._failures,
            }

    def _elapsed_ms(self, start: float) -> float:
        return round((self._timer() - start) * 1000.0, 3)

    def _invalid_request(self, username: str | None, start: float) -> AuthenticationResult:
        return AuthenticationResult.failure(
            username,
            MESSAGE_INVALID_CREDENTIALS,
            {"reason": REASON_INVALID_REQUEST, "duration": self._elapsed_ms(start)},
        )

    def _lookup(self, username: str) -> User | None:
        try:
            return self._users.find(username)
        except Exception as exc:
            logger.warning(
                "credgate.basic.lookup_failed",
                username=mask_identifier(username),
                error=type(exc).__name__,
            )
            return None

    def _dummy_verify(self, password: str) -> None:
        self._hasher.verify(password, self._dummy_hash)

    def _authenticate(self, request: AuthenticationRequest, start: float) -> AuthenticationResult:
        masked = mask_identifier(request.username)
        user = self._lookup(request.username)

        if user is None:
            self._dummy_verify(request.password)
            logger.info("credgate.basic.user_not_found", username=masked)
            return AuthenticationResult.failure(
                request.username,
                MESSAGE_INVALID_CREDENTIALS,
                {"reason": REASON_USER_NOT_FOUND, "duration": self._elapsed_ms(start)},
            )

        if not user.is_active():
            self._dummy_verify(request.password)
            logger.info("credgate.basic.account_disabled", username=masked)
            return AuthenticationResult.failure(
                user.username,
                MESSAGE_ACCOUNT_DISABLED,
                {"reason": REASON_ACCOUNT_DISABLED, "duration": self._elapsed_ms(start)},
            )

        if not self._hasher.verify(request.password, user.password_hash):
            logger.info("credgate.basic.invalid_password", username=masked)
            return AuthenticationResult.failure(
                user.username,
                MESSAGE_INVALID_CREDENTIALS,
                {"reason": REASON_INVALID_PASSWORD, "duration": self._elapsed_ms(start)},
            )

        metadata: dict[str, Any] = {
            "duration": self._elapsed_ms(start),
            "roles": list(user.roles),
            "user_status": user.status.value,
            "auth_method": AUTH_METHOD_BASIC,
        }
        logger.info("credgate.basic.authenticated", username=masked)
        return AuthenticationResult.success(user.username, metadata)

    def _record(self, result: AuthenticationResult, start: float) -> AuthenticationResult:
        labels = {"method": AUTH_METHOD_BASIC}
        with self._lock:
            self._attempts += 1
            if result.allowed:
                self._successes += 1
            else:
                self._failures += 1
        self._metrics.increment_counter("credgate_auth_attempts_total", labels)
        if result.allowed:
            self._metrics.increment_counter("credgate_auth_success_total", labels)
        else:
            reason = result.failure_code or "unexpected_error"
            self._metrics.increment_counter(
                "credgate_auth_failures_total", {**labels, "reason": reason}
            )
        self._metrics.observe_histogram(
            "credgate_auth_duration_seconds", self._timer() - start, labels
        )
        return result
