"""Local development repositories.

``LocalUserRepository`` and ``LocalClientRepository`` keep their records in an
``InMemorySecretStore`` so they share the full repository contract with the
store-backed repositories. They are seeded from a JSON file (a list of records
in the store record format, plain secrets allowed) or, when no file is given,
from the default development principals:

Users: ``demo``/``demo123``, ``admin``/``admin123``, ``test``/``test123``

Clients:
- ``demo-client``/``demo-secret``: read, write; 3600 s
- ``test-client``/``test-secret``: read; 1800 s
- ``admin-client``/``admin-secret``: read, write, admin; 7200 s

Secrets are hashed once at construction.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from credgate.config import CacheSettings, RetryConfig
from credgate.crypto.hashing import SecretHasher
from credgate.errors import ConfigurationError
from credgate.observability.logging import get_logger
from credgate.observability.metrics import MetricsCollector
from credgate.storage.repository import ClientRepository, UserRepository
from credgate.storage.store import InMemorySecretStore

logger = get_logger(__name__)

DEFAULT_USERS: tuple[dict[str, Any], ...] = (
    {"username": "demo", "password": "demo123", "status": "ACTIVE", "roles": ["user"]},
    {"username": "admin", "password": "admin123", "status": "ACTIVE", "roles": ["admin", "user"]},
    {"username": "test", "password": "test123", "status": "ACTIVE", "roles": ["test"]},
)

DEFAULT_CLIENTS: tuple[dict[str, Any], ...] = (
    {
        "clientId": "demo-client",
        "clientSecret": "demo-secret",
        "status": "ACTIVE",
        "allowedScopes": ["read", "write"],
        "allowedGrantTypes": ["client_credentials"],
        "tokenExpirationSeconds": 3600,
        "description": "Demo Client",
    },
    {
        "clientId": "test-client",
        "clientSecret": "test-secret",
        "status": "ACTIVE",
        "allowedScopes": ["read"],
        "allowedGrantTypes": ["client_credentials"],
        "tokenExpirationSeconds": 1800,
        "description": "Test Client",
    },
    {
        "clientId": "admin-client",
        "clientSecret": "admin-secret",
        "status": "ACTIVE",
        "allowedScopes": ["read", "write", "admin"],
        "allowedGrantTypes": ["client_credentials"],
        "tokenExpirationSeconds": 7200,
        "description": "Admin Client",
    },
)


def load_seed_file(path: str | Path) -> list[dict[str, Any]]:
    """Read a JSON list of records.

    Raises:
        ConfigurationError: If the file is missing or not a JSON list of objects
    """
    seed_path = Path(path)
    try:
        data = json.loads(seed_path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ConfigurationError(
            f"Seed file not found: {seed_path}", details={"path": str(seed_path)}
        ) from exc
    except json.JSONDecodeError as exc:
        raise ConfigurationError(
            f"Seed file is not valid JSON: {seed_path}", details={"path": str(seed_path)}
        ) from exc
    if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
        raise ConfigurationError(
            f"Seed file must contain a JSON list of objects: {seed_path}",
            details={"path": str(seed_path)},
        )
    return data


def _hash_plain(
    records: list[dict[str, Any]], hasher: SecretHasher, hash_field: str, plain_field: str
) -> list[dict[str, Any]]:
    prepared = []
    for record in records:
        record = dict(record)
        plain = record.pop(plain_field, None)
        if not record.get(hash_field) and isinstance(plain, str) and plain.strip():
            record[hash_field] = hasher.hash(plain)
        prepared.append(record)
    return prepared


def _seed_store(
    records: list[dict[str, Any]], id_field: str, key_prefix: str, index_key: str
) -> InMemorySecretStore:
    initial: dict[str, str] = {}
    ids: list[str] = []
    for record in records:
        identifier = record.get(id_field)
        if not isinstance(identifier, str) or not identifier.strip():
            logger.warning("credgate.local.seed_record_skipped", reason=f"missing {id_field}")
            continue
        key = identifier.strip().lower()
        initial[key_prefix + key] = json.dumps(record)
        ids.append(key)
    initial[index_key] = json.dumps(sorted(set(ids)))
    return InMemorySecretStore(initial)


class LocalUserRepository(UserRepository):
    """In-memory user repository for the local profile.

    Example:
        >>> repo = LocalUserRepository(SecretHasher(HashingParams(iterations=1, memory_kib=8)))
        >>> repo.find("DEMO").username
        'demo'
    """

    def __init__(
        self,
        hasher: SecretHasher,
        seed_file: str | Path | None = None,
        records: list[dict[str, Any]] | None = None,
        cache_settings: CacheSettings | None = None,
        metrics: MetricsCollector | None = None,
    ) -> None:
        if records is None:
            records = load_seed_file(seed_file) if seed_file else [dict(r) for r in DEFAULT_USERS]
        prepared = _hash_plain(records, hasher, "passwordHash", "password")
        store = _seed_store(prepared, "username", self.key_prefix, self.index_key)
        super().__init__(
            store,
            hasher,
            cache_settings,
            RetryConfig(max_attempts=1),
            metrics=metrics,
        )
        logger.info(
            "credgate.local.users_loaded",
            count=len(prepared),
            source=str(seed_file) if seed_file else "defaults",
        )


class LocalClientRepository(ClientRepository):
    """In-memory OAuth client repository for the local profile."""

    def __init__(
        self,
        hasher: SecretHasher,
        seed_file: str | Path | None = None,
        records: list[dict[str, Any]] | None = None,
        cache_settings: CacheSettings | None = None,
        metrics: MetricsCollector | None = None,
    ) -> None:
        if records is None:
            records = load_seed_file(seed_file) if seed_file else [dict(r) for r in DEFAULT_CLIENTS]
        prepared = _hash_plain(records, hasher, "clientSecretHash", "clientSecret")
        store = _seed_store(prepared, "clientId", self.key_prefix, self.index_key)
        super().__init__(
            store,
            hasher,
            cache_settings,
            RetryConfig(max_attempts=1),
            metrics=metrics,
        )
        logger.info(
            "credgate.local.clients_loaded",
            count=len(prepared),
            source=str(seed_file) if seed_file else "defaults",
        )
