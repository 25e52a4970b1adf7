"""Cached credential repositories over a secret store.

Each repository fronts a slow, possibly failing ``SecretStore`` with a
``TTLCache``. Records are JSON objects stored under ``<prefix><id>``; an index
key holds the JSON list of known identifiers.

Lookup semantics:
- identifiers are normalized (trimmed, lowercased) before any access
- cache hits, positive or negative, never touch the store
- ``StoreUnavailableError`` is retried with exponential backoff and jitter
  within a per-lookup time budget
- a definitive "not found" is cached as a negative entry
- a failed lookup returns None and is not cached, so recovery is observed
  on the next call
"""

from __future__ import annotations

import json
import random
import time
from abc import ABC, abstractmethod
from threading import Lock
from typing import Any, Callable, ClassVar, Generic, TypeVar

from pydantic import ValidationError

from credgate.config import CacheSettings, RetryConfig
from credgate.crypto.hashing import SecretHasher
from credgate.errors import StoreUnavailableError
from credgate.models.entities import DEFAULT_TOKEN_EXPIRATION_SECONDS, OAuthClient, User
from credgate.models.enums import ClientStatus, GrantType, UserStatus
from credgate.observability.logging import get_logger, mask_identifier
from credgate.observability.metrics import MetricsCollector, get_metrics
from credgate.storage.cache import TTLCache
from credgate.storage.store import SecretStore

logger = get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")

HEALTH_CHECK_KEY = "health-check"
INDEX_CACHE_SIZE = 10


class MalformedRecordError(ValueError):
    """Raised internally when a stored record cannot be turned into an entity."""


class CachedRepository(ABC, Generic[T]):
    """Base class for TTL-cached repositories over a secret store.

    Subclasses define the key prefix, the index key and the record mapping.

    Args:
        store: Secret store holding the JSON records
        hasher: Hasher used to hash plaintext secrets found in records
        cache_settings: Cache TTL and size
        retry: Retry policy for store reads and writes
        clock: Monotonic clock shared by the cache and the retry budget
        sleep: Sleep function used between retries
        metrics: Metrics collector (defaults to the global collector)
    """

    key_prefix: ClassVar[str]
    index_key: ClassVar[str]
    entity_name: ClassVar[str]

    def __init__(
        self,
        store: SecretStore,
        hasher: SecretHasher,
        cache_settings: CacheSettings | None = None,
        retry: RetryConfig | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        metrics: MetricsCollector | None = None,
    ) -> None:
        settings = cache_settings or CacheSettings()
        self._store = store
        self._hasher = hasher
        self._retry = retry or RetryConfig()
        self._clock = clock
        self._sleep = sleep
        self._metrics = metrics or get_metrics()
        self._cache: TTLCache[T] = TTLCache(settings.ttl_seconds, settings.max_size, clock)
        self._index_cache: TTLCache[list[str]] = TTLCache(
            settings.ttl_seconds, INDEX_CACHE_SIZE, clock
        )
        self._stats_lock = Lock()
        self._hits = 0
        self._misses = 0
        self._store_calls = 0

    # Record mapping

    @abstractmethod
    def _parse(self, data: dict[str, Any], identifier: str) -> T:
        """Build an entity from a decoded record; raise MalformedRecordError if unusable."""

    @abstractmethod
    def _serialize(self, entity: T) -> dict[str, Any]:
        """Encode an entity as a store record."""

    @abstractmethod
    def _identifier(self, entity: T) -> str:
        """Return the (unnormalized) identifier of an entity."""

    @staticmethod
    def normalize_id(identifier: str) -> str:
        return identifier.strip().lower()

    def _labels(self) -> dict[str, str]:
        return {"repository": self.entity_name}

    # Store access with retry

    def _calculate_backoff(self, attempt: int) -> float:
        """Exponential backoff: ``base_delay * 2**attempt`` capped at max_delay, plus jitter."""
        delay = self._retry.base_delay * (2**attempt)
        delay = min(delay, self._retry.max_delay)
        if self._retry.jitter:
            jitter_amount: float = random.uniform(0, delay * 0.1)  # nosec B311
            delay += jitter_amount
        return float(delay)

    def _with_retry(self, operation: str, call: Callable[[], R]) -> R:
        """Run a store call, retrying StoreUnavailableError within the retry budget.

        Raises:
            StoreUnavailableError: When attempts or the time budget run out
        """
        deadline = self._clock() + self._retry.budget_seconds
        last_error: StoreUnavailableError | None = None
        for attempt in range(self._retry.max_attempts):
            with self._stats_lock:
                self._store_calls += 1
            self._metrics.increment_counter("credgate_store_fetch_total", self._labels())
            try:
                return call()
            except StoreUnavailableError as exc:
                last_error = exc
                if attempt + 1 >= self._retry.max_attempts:
                    break
                delay = self._calculate_backoff(attempt)
                if self._clock() + delay > deadline:
                    logger.warning(
                        "credgate.repository.retry_budget_exhausted",
                        repository=self.entity_name,
                        operation=operation,
                        attempt=attempt + 1,
                    )
                    break
                self._metrics.increment_counter("credgate_store_retries_total", self._labels())
                logger.warning(
                    "credgate.repository.retry",
                    repository=self.entity_name,
                    operation=operation,
                    attempt=attempt + 1,
                    max_attempts=self._retry.max_attempts,
                    delay_seconds=round(delay, 3),
                )
                self._sleep(delay)

        self._metrics.increment_counter("credgate_store_failures_total", self._labels())
        if last_error is None:
            last_error = StoreUnavailableError(operation)
        raise last_error

    def _decode(self, raw: str, identifier: str) -> T | None:
        try:
            data = json.loads(raw)
            if not isinstance(data, dict):
                raise MalformedRecordError("Record is not a JSON object")
            return self._parse(data, identifier)
        except (json.JSONDecodeError, MalformedRecordError, ValidationError, TypeError) as exc:
            logger.warning(
                "credgate.repository.malformed_record",
                repository=self.entity_name,
                id=mask_identifier(identifier),
                error=type(exc).__name__,
            )
            return None

    # Lookups

    def find(self, identifier: str) -> T | None:
        """Find an entity by identifier.

        Raises:
            ValueError: If the identifier is blank
        """
        if identifier is None or not identifier.strip():
            raise ValueError(f"{self.entity_name} identifier cannot be blank")
        key = self.normalize_id(identifier)

        hit, cached = self._cache.get(key)
        if hit:
            with self._stats_lock:
                self._hits += 1
            self._metrics.increment_counter("credgate_cache_hits_total", self._labels())
            return cached

        with self._stats_lock:
            self._misses += 1
        self._metrics.increment_counter("credgate_cache_misses_total", self._labels())

        try:
            raw = self._with_retry("get", lambda: self._store.get(self.key_prefix + key))
        except StoreUnavailableError:
            logger.error(
                "credgate.repository.lookup_failed",
                repository=self.entity_name,
                id=mask_identifier(key),
            )
            return None
        except Exception as exc:
            logger.error(
                "credgate.repository.lookup_error",
                repository=self.entity_name,
                id=mask_identifier(key),
                error=type(exc).__name__,
            )
            return None

        if raw is None:
            logger.debug(
                "credgate.repository.not_found",
                repository=self.entity_name,
                id=mask_identifier(key),
            )
            self._cache.set(key, None)
            return None

        entity = self._decode(raw, key)
        if entity is not None:
            self._cache.set(key, entity)
        return entity

    def exists(self, identifier: str) -> bool:
        return self.find(identifier) is not None

    def _load_index(self) -> list[str]:
        hit, cached = self._index_cache.get(self.index_key)
        if hit and cached is not None:
            return list(cached)
        try:
            raw = self._with_retry("get_index", lambda: self._store.get(self.index_key))
        except StoreUnavailableError:
            logger.error("credgate.repository.index_unavailable", repository=self.entity_name)
            return []
        ids: list[str] = []
        if raw is not None:
            try:
                decoded = json.loads(raw)
            except json.JSONDecodeError:
                logger.warning("credgate.repository.malformed_index", repository=self.entity_name)
                return []
            if not isinstance(decoded, list):
                logger.warning("credgate.repository.malformed_index", repository=self.entity_name)
                return []
            ids = [self.normalize_id(str(item)) for item in decoded if str(item).strip()]
        ids = list(dict.fromkeys(ids))
        self._index_cache.set(self.index_key, ids)
        return list(ids)

    def _write_index(self, ids: list[str]) -> None:
        ordered = sorted(set(ids))
        self._with_retry("put_index", lambda: self._store.put(self.index_key, json.dumps(ordered)))
        self._index_cache.set(self.index_key, ordered)

    def all(self) -> dict[str, T]:
        """Return every indexed entity that can currently be loaded, keyed by normalized id."""
        result: dict[str, T] = {}
        for identifier in self._load_index():
            entity = self.find(identifier)
            if entity is not None:
                result[identifier] = entity
        return result

    def count(self) -> int:
        return len(self._load_index())

    # Writes

    def save(self, entity: T) -> None:
        """Persist an entity and add it to the index.

        Raises:
            StoreUnavailableError: If the store write fails after retries
        """
        if entity is None:
            raise ValueError(f"{self.entity_name} cannot be None")
        key = self.normalize_id(self._identifier(entity))
        payload = json.dumps(self._serialize(entity))
        self._with_retry("put", lambda: self._store.put(self.key_prefix + key, payload))
        index = self._load_index()
        if key not in index:
            self._write_index([*index, key])
        self._cache.set(key, entity)
        logger.info(
            "credgate.repository.saved", repository=self.entity_name, id=mask_identifier(key)
        )

    def delete(self, identifier: str) -> None:
        """Remove an entity and drop it from the index.

        Raises:
            ValueError: If the identifier is blank
            StoreUnavailableError: If the store delete fails after retries
        """
        if identifier is None or not identifier.strip():
            raise ValueError(f"{self.entity_name} identifier cannot be blank")
        key = self.normalize_id(identifier)
        self._with_retry("delete", lambda: self._store.delete(self.key_prefix + key))
        index = self._load_index()
        if key in index:
            self._write_index([item for item in index if item != key])
        self._cache.invalidate(key)
        logger.info(
            "credgate.repository.deleted", repository=self.entity_name, id=mask_identifier(key)
        )

    # Maintenance

    def clear_cache(self) -> None:
        self._cache.clear_all()
        self._index_cache.clear_all()
        logger.info("credgate.repository.cache_cleared", repository=self.entity_name)

    def cache_stats(self) -> dict[str, int]:
        with self._stats_lock:
            return {
                "hits": self._hits,
                "misses": self._misses,
                "store_calls": self._store_calls,
                "size": self._cache.size(),
                "max_size": self._cache.max_size,
            }

    def is_healthy(self) -> bool:
        """Probe the store with a single read of a well-known key."""
        try:
            self._store.get(HEALTH_CHECK_KEY)
        except Exception as exc:
            logger.warning(
                "credgate.repository.health_check_failed",
                repository=self.entity_name,
                error=type(exc).__name__,
            )
            return False
        return True

    def metadata(self) -> dict[str, Any]:
        return {
            "type": type(self).__name__,
            "total": self.count(),
            "cache": self.cache_stats(),
        }

    # Record helpers

    def _secret_hash(
        self, data: dict[str, Any], hash_field: str, plain_field: str, identifier: str
    ) -> str:
        stored = data.get(hash_field)
        if isinstance(stored, str) and stored.strip():
            return stored
        plain = data.get(plain_field)
        if isinstance(plain, str) and plain.strip():
            logger.warning(
                "credgate.repository.plaintext_secret_hashed",
                repository=self.entity_name,
                id=mask_identifier(identifier),
            )
            return self._hasher.hash(plain)
        raise MalformedRecordError(f"Record has neither {hash_field} nor {plain_field}")

    def _string_list(self, data: dict[str, Any], field: str) -> list[str]:
        value = data.get(field)
        if value is None:
            return []
        if not isinstance(value, list):
            raise MalformedRecordError(f"{field} must be a list")
        return [str(item) for item in value if str(item).strip()]

    def _warn_unknown_status(self, raw: Any, parsed: Any, identifier: str) -> None:
        if not isinstance(raw, str) or raw.strip().upper() != parsed.value:
            logger.warning(
                "credgate.repository.unknown_status",
                repository=self.entity_name,
                id=mask_identifier(identifier),
                status=str(raw),
                fallback=parsed.value,
            )


class UserRepository(CachedRepository[User]):
    """End-user repository.

    Record format::

        {"username": "demo", "passwordHash": "$argon2id$...",
         "status": "ACTIVE", "roles": ["user"]}

    A plain ``password`` field is accepted in place of ``passwordHash`` and
    hashed on load.
    A missing or unrecognised ``status`` loads as DISABLED.
    """

    key_prefix = "user-"
    index_key = "user-list"
    entity_name = "user"

    def _parse(self, data: dict[str, Any], identifier: str) -> User:
        username = data.get("username") or identifier
        if not isinstance(username, str):
            raise MalformedRecordError("username must be a string")
        password_hash = self._secret_hash(data, "passwordHash", "password", identifier)
        raw_status = data.get("status")
        status = UserStatus.parse(raw_status if isinstance(raw_status, str) else None)
        self._warn_unknown_status(raw_status, status, identifier)
        return User(
            username=username,
            password_hash=password_hash,
            status=status,
            roles=tuple(self._string_list(data, "roles")),
        )

    def _serialize(self, entity: User) -> dict[str, Any]:
        return {
            "username": entity.username,
            "passwordHash": entity.password_hash,
            "status": entity.status.value,
            "roles": list(entity.roles),
        }

    def _identifier(self, entity: User) -> str:
        return entity.username

    def find_by_username(self, username: str) -> User | None:
        return self.find(username)

    def active_count(self) -> int:
        return sum(1 for user in self.all().values() if user.is_active())


class ClientRepository(CachedRepository[OAuthClient]):
    """OAuth client repository.

    Record format::

        {"clientId": "demo-client", "clientSecretHash": "$argon2id$...",
         "status": "ACTIVE", "allowedScopes": ["read", "write"],
         "allowedGrantTypes": ["client_credentials"],
         "tokenExpirationSeconds": 3600, "description": "Demo Client"}

    Unknown grant types are skipped; an empty list defaults to
    ``client_credentials``. A plain ``clientSecret`` is hashed on load.
    A missing or unrecognised ``status`` loads as DISABLED.
    """

    key_prefix = "oauth-client-"
    index_key = "oauth-client-list"
    entity_name = "oauth_client"

    def _parse(self, data: dict[str, Any], identifier: str) -> OAuthClient:
        client_id = data.get("clientId") or identifier
        if not isinstance(client_id, str):
            raise MalformedRecordError("clientId must be a string")
        secret_hash = self._secret_hash(data, "clientSecretHash", "clientSecret", identifier)

        raw_status = data.get("status")
        status = ClientStatus.parse(raw_status if isinstance(raw_status, str) else None)
        self._warn_unknown_status(raw_status, status, identifier)

        grant_types: list[GrantType] = []
        for value in self._string_list(data, "allowedGrantTypes"):
            grant_type = GrantType.from_value(value)
            if grant_type is None:
                logger.warning(
                    "credgate.repository.unknown_grant_type",
                    repository=self.entity_name,
                    id=mask_identifier(identifier),
                    grant_type=value,
                )
                continue
            grant_types.append(grant_type)
        if not grant_types:
            grant_types = [GrantType.CLIENT_CREDENTIALS]

        expiration = data.get("tokenExpirationSeconds")
        if expiration is None:
            expiration = DEFAULT_TOKEN_EXPIRATION_SECONDS
        elif isinstance(expiration, bool) or not isinstance(expiration, int):
            raise MalformedRecordError("tokenExpirationSeconds must be an integer")

        description = data.get("description")
        return OAuthClient(
            client_id=client_id,
            client_secret_hash=secret_hash,
            status=status,
            allowed_scopes=tuple(self._string_list(data, "allowedScopes")),
            allowed_grant_types=tuple(grant_types),
            token_expiration_seconds=expiration,
            description=description if isinstance(description, str) else "",
        )

    def _serialize(self, entity: OAuthClient) -> dict[str, Any]:
        return {
            "clientId": entity.client_id,
            "clientSecretHash": entity.client_secret_hash,
            "status": entity.status.value,
            "allowedScopes": list(entity.allowed_scopes),
            "allowedGrantTypes": [grant_type.value for grant_type in entity.allowed_grant_types],
            "tokenExpirationSeconds": entity.token_expiration_seconds,
            "description": entity.description,
        }

    def _identifier(self, entity: OAuthClient) -> str:
        return entity.client_id

    def find_by_client_id(self, client_id: str) -> OAuthClient | None:
        return self.find(client_id)

    def find_by_allowed_scope(self, scope: str) -> dict[str, OAuthClient]:
        """Return all clients whose allow-list contains ``scope``.

        Raises:
            ValueError: If the scope is blank
        """
        if scope is None or not scope.strip():
            raise ValueError("Scope cannot be blank")
        return {
            client_id: client
            for client_id, client in self.all().items()
            if scope.strip() in client.allowed_scopes
        }

    def active_count(self) -> int:
        return sum(1 for client in self.all().values() if client.is_active())

    def metadata(self) -> dict[str, Any]:
        return {**super().metadata(), "active": self.active_count()}
