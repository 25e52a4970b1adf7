"""OAuth 2.0 scope handling.

Scopes are space-separated permission names (RFC 6749 §3.3). A request is
granted only if every requested scope is in the client's allow-list; there
are no partial grants.
"""

from __future__ import annotations

import re
from typing import Iterable, Sequence

# Scope constants for the default clients
SCOPE_READ = "read"
SCOPE_WRITE = "write"
SCOPE_ADMIN = "admin"
SCOPE_DELETE = "delete"

SCOPE_SEPARATOR = " "
MAX_SCOPE_LENGTH = 50
SCOPE_PATTERN = re.compile(r"^[A-Za-z0-9._:-]+$")


def parse_scopes(scope: str | Iterable[str] | None) -> list[str]:
    """Split a scope string (or normalize a list) into individual scopes.

    Example:
        >>> parse_scopes("  read   write ")
        ['read', 'write']
        >>> parse_scopes(None)
        []
    """
    if scope is None:
        return []
    if isinstance(scope, str):
        return scope.split()
    return [item.strip() for item in scope if item and item.strip()]


def scopes_allowed(requested: str | Iterable[str] | None, allowed: Iterable[str]) -> bool:
    """True if every requested scope is in ``allowed``. An empty request is always allowed."""
    requested_scopes = parse_scopes(requested)
    if not requested_scopes:
        return True
    allowed_set = {item.strip() for item in allowed}
    if not allowed_set:
        return False
    return all(item in allowed_set for item in requested_scopes)


def default_scope(allowed: Sequence[str]) -> str | None:
    """Scope granted when none is requested: ``read`` if allowed, else the first allowed scope."""
    if not allowed:
        return None
    if SCOPE_READ in allowed:
        return SCOPE_READ
    return allowed[0]


def create_scope_string(scopes: Iterable[str] | None) -> str | None:
    """Join scopes into a trimmed, de-duplicated, sorted, space-separated string.

    Example:
        >>> create_scope_string(["write", " read", "write"])
        'read write'
    """
    if scopes is None:
        return None
    cleaned = sorted({item.strip() for item in scopes if item and item.strip()})
    return SCOPE_SEPARATOR.join(cleaned) if cleaned else None


def normalize_scope(scope: str | None) -> str | None:
    if scope is None or not scope.strip():
        return None
    return create_scope_string(parse_scopes(scope))


def _is_valid_individual_scope(scope: str) -> bool:
    return len(scope) <= MAX_SCOPE_LENGTH and SCOPE_PATTERN.match(scope) is not None


def is_valid_scope_format(scope: str | None) -> bool:
    """Each scope must be at most 50 characters of ``[A-Za-z0-9._:-]``. Empty is valid."""
    if scope is None or not scope.strip():
        return True
    return all(_is_valid_individual_scope(item) for item in parse_scopes(scope))
