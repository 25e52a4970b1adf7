"""Shared pytest fixtures for credgate tests.

Hashing fixtures use the cheapest Argon2id parameters argon2-cffi accepts so
that the suite stays fast; verification reads parameters from the stored
hash, so behaviour is identical to production settings.
"""

from __future__ import annotations

from collections.abc import Iterator

import pytest

from credgate.config import HashingParams, TokenSettings
from credgate.crypto.hashing import SecretHasher
from credgate.observability.metrics import MetricsCollector, reset_metrics
from credgate.storage.local import LocalClientRepository, LocalUserRepository
from credgate.tokens.engine import TokenEngine

TEST_SIGNING_SECRET = "test-signing-secret-0123456789-abcdef"

# 2023-11-14T22:13:20Z
FIXED_EPOCH = 1_700_000_000.0


class FakeClock:
    """Manually advanced clock usable as a monotonic or wall clock."""

    def __init__(self, start: float = FIXED_EPOCH) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def _reset_global_metrics() -> Iterator[None]:
    """Keep the process-wide metrics collector isolated between tests."""
    reset_metrics()
    yield
    reset_metrics()


@pytest.fixture
def fast_params() -> HashingParams:
    """Minimal Argon2id parameters for tests."""
    return HashingParams(iterations=1, memory_kib=8, parallelism=1)


@pytest.fixture
def hasher(fast_params: HashingParams) -> SecretHasher:
    return SecretHasher(fast_params)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def metrics() -> MetricsCollector:
    """Private collector so assertions are not affected by other components."""
    return MetricsCollector()


@pytest.fixture
def token_settings() -> TokenSettings:
    return TokenSettings(signing_secret=TEST_SIGNING_SECRET)


@pytest.fixture
def token_engine(
    token_settings: TokenSettings, clock: FakeClock, metrics: MetricsCollector
) -> TokenEngine:
    return TokenEngine(token_settings, clock=clock, metrics=metrics)


@pytest.fixture
def user_repository(hasher: SecretHasher, metrics: MetricsCollector) -> LocalUserRepository:
    """Local repository seeded with demo/admin/test users."""
    return LocalUserRepository(hasher, metrics=metrics)


@pytest.fixture
def client_repository(hasher: SecretHasher, metrics: MetricsCollector) -> LocalClientRepository:
    """Local repository seeded with demo-client/test-client/admin-client."""
    return LocalClientRepository(hasher, metrics=metrics)
