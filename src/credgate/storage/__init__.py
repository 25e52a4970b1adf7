"""Secret store contract, TTL cache and cached credential repositories."""

from credgate.storage.cache import TTLCache
from credgate.storage.local import LocalClientRepository, LocalUserRepository
from credgate.storage.repository import CachedRepository, ClientRepository, UserRepository
from credgate.storage.store import InMemorySecretStore, JsonFileSecretStore, SecretStore

__all__ = [
    "CachedRepository",
    "ClientRepository",
    "InMemorySecretStore",
    "JsonFileSecretStore",
    "LocalClientRepository",
    "LocalUserRepository",
    "SecretStore",
    "TTLCache",
    "UserRepository",
]
