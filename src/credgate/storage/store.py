"""Secret store contract and local implementations.

A secret store is a flat key/value store of JSON strings. ``get`` returns
``None`` for a definitive "not found"; transient failures raise
``StoreUnavailableError`` so that repositories can retry them.

Implementations:
- InMemorySecretStore: dict guarded by a lock (tests, local profile)
- JsonFileSecretStore: single JSON object file, rewritten atomically
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from threading import Lock
from typing import Mapping, Protocol, runtime_checkable

from credgate.errors import StoreUnavailableError
from credgate.observability.logging import get_logger

logger = get_logger(__name__)


@runtime_checkable
class SecretStore(Protocol):
    """Narrow get/put/delete contract over an external secret store."""

    def get(self, key: str) -> str | None:
        """Return the stored value, or None if the key does not exist."""
        ...

    def put(self, key: str, value: str) -> None:
        ...

    def delete(self, key: str) -> None:
        """Remove a key. Deleting a missing key is not an error."""
        ...


class InMemorySecretStore:
    """Thread-safe in-memory secret store.

    Example:
        >>> store = InMemorySecretStore({"user-demo": '{"username": "demo"}'})
        >>> store.get("user-missing") is None
        True
    """

    def __init__(self, initial: Mapping[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})
        self._lock = Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._data.get(key)

    def put(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._data)


class JsonFileSecretStore:
    """Secret store backed by one JSON object file.

    The file is re-read on every ``get`` so that edits made by operators are
    picked up once the repository cache expires. Writes go to a temporary
    file in the same directory and replace the original atomically.

    Args:
        path: JSON file path; a missing file is treated as an empty store
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._lock = Lock()

    def _read(self, operation: str) -> dict[str, str]:
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as exc:
            raise StoreUnavailableError(operation, details={"error": type(exc).__name__}) from exc
        try:
            data = json.loads(text) if text.strip() else {}
        except json.JSONDecodeError as exc:
            raise StoreUnavailableError(operation, details={"error": "invalid_json"}) from exc
        if not isinstance(data, dict):
            raise StoreUnavailableError(operation, details={"error": "not_an_object"})
        return {str(k): v if isinstance(v, str) else json.dumps(v) for k, v in data.items()}

    def _write(self, data: dict[str, str], operation: str) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    json.dump(data, handle, indent=2, sort_keys=True)
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise StoreUnavailableError(operation, details={"error": type(exc).__name__}) from exc

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._read("get").get(key)

    def put(self, key: str, value: str) -> None:
        with self._lock:
            data = self._read("put")
            data[key] = value
            self._write(data, "put")
        logger.debug("credgate.store.put", path=str(self.path))

    def delete(self, key: str) -> None:
        with self._lock:
            data = self._read("delete")
            if data.pop(key, None) is not None:
                self._write(data, "delete")
