"""Engine assembly.

``build_engine`` wires hashers, repositories, the token engine and the three
authentication flows from an ``EngineConfig``. The profile decides where
principals come from:

- ``local``: in-memory repositories seeded from JSON files or the built-in
  development principals
- ``store``: cached repositories over a ``SecretStore`` (a JSON file store
  at ``store_path`` unless a store is passed in)

Example:
    >>> engine = build_engine(EngineConfig.from_env({"CREDGATE_PROFILE": "local"}))
    >>> engine.basic.authenticate_credentials("demo", "demo123").allowed
    True
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from credgate.auth.basic import BasicAuthenticator
from credgate.auth.client_credentials import ClientCredentialsGrant, GrantSettings
from credgate.auth.introspection import TokenIntrospector
from credgate.config import EngineConfig
from credgate.crypto.hashing import SecretHasher
from credgate.errors import ConfigurationError
from credgate.observability.logging import get_logger
from credgate.observability.metrics import MetricsCollector, get_metrics
from credgate.storage.local import LocalClientRepository, LocalUserRepository
from credgate.storage.repository import ClientRepository, UserRepository
from credgate.storage.store import JsonFileSecretStore, SecretStore
from credgate.tokens.engine import TokenEngine

logger = get_logger(__name__)


@dataclass(frozen=True)
class Engine:
    """Fully wired credential engine."""

    config: EngineConfig
    users: UserRepository
    clients: ClientRepository
    tokens: TokenEngine
    basic: BasicAuthenticator
    grant: ClientCredentialsGrant
    introspector: TokenIntrospector
    metrics: MetricsCollector

    def health(self) -> dict[str, Any]:
        """Repository health and sizes, suitable for a readiness probe."""
        users_ok = self.users.is_healthy()
        clients_ok = self.clients.is_healthy()
        return {
            "healthy": users_ok and clients_ok,
            "profile": self.config.profile,
            "users": self.users.metadata(),
            "clients": self.clients.metadata(),
        }


def _build_repositories(
    config: EngineConfig,
    password_hasher: SecretHasher,
    client_hasher: SecretHasher,
    store: SecretStore | None,
    metrics: MetricsCollector,
) -> tuple[UserRepository, ClientRepository]:
    if config.profile == "local":
        users: UserRepository = LocalUserRepository(
            password_hasher,
            seed_file=config.users_file,
            cache_settings=config.cache,
            metrics=metrics,
        )
        clients: ClientRepository = LocalClientRepository(
            client_hasher,
            seed_file=config.clients_file,
            cache_settings=config.cache,
            metrics=metrics,
        )
        return users, clients

    if store is None:
        if config.store_path is None:
            raise ConfigurationError(
                "store_path must be set for the store profile",
                details={"profile": config.profile},
            )
        store = JsonFileSecretStore(config.store_path)
    users = UserRepository(store, password_hasher, config.cache, config.retry, metrics=metrics)
    clients = ClientRepository(store, client_hasher, config.cache, config.retry, metrics=metrics)
    return users, clients


def build_engine(
    config: EngineConfig | None = None,
    *,
    store: SecretStore | None = None,
    metrics: MetricsCollector | None = None,
) -> Engine:
    """Assemble an ``Engine`` from configuration.

    Args:
        config: Engine configuration (defaults to ``EngineConfig.from_env()``)
        store: Secret store for the store profile (overrides ``store_path``)
        metrics: Metrics collector (defaults to the global collector)

    Raises:
        ConfigurationError: If the configuration is incomplete
    """
    config = config or EngineConfig.from_env()
    metrics = metrics or get_metrics()

    password_hasher = SecretHasher(config.password_hashing, config.allow_plaintext_secrets)
    client_hasher = SecretHasher(config.client_secret_hashing, config.allow_plaintext_secrets)
    users, clients = _build_repositories(config, password_hasher, client_hasher, store, metrics)

    tokens = TokenEngine(config.tokens, metrics=metrics)
    grant_settings = GrantSettings(
        max_token_lifetime=config.tokens.max_ttl,
        enable_client_status_check=config.enable_client_status_check,
    )
    engine = Engine(
        config=config,
        users=users,
        clients=clients,
        tokens=tokens,
        basic=BasicAuthenticator(users, password_hasher, metrics=metrics),
        grant=ClientCredentialsGrant(
            clients, client_hasher, tokens, grant_settings, metrics=metrics
        ),
        introspector=TokenIntrospector(tokens, metrics=metrics),
        metrics=metrics,
    )
    logger.info(
        "credgate.engine.ready",
        profile=config.profile,
        issuer=config.tokens.issuer,
        client_status_check=config.enable_client_status_check,
    )
    return engine
