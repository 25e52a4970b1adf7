"""Secret hashing and verification.

Passwords and client secrets are stored as Argon2id PHC strings::

    $argon2id$v=19$m=65536,t=3,p=1$<base64 salt>$<base64 digest>

Verification parses the parameters embedded in the stored string, recomputes
the digest with ``argon2.low_level.hash_secret_raw`` and compares with
``constant_time_equals``, so hashes produced under older cost settings keep
verifying after the configuration changes.

Two legacy formats are still recognised for local development data:
- ``$2a$10$<base64 secret>``: deprecated shim, logged on every use
- ``{plain}<secret>`` or an unprefixed value: only with ``allow_plaintext``

Example:
    >>> hasher = SecretHasher(HashingParams(iterations=1, memory_kib=8))
    >>> stored = hasher.hash("demo123")
    >>> hasher.verify("demo123", stored)
    True
    >>> hasher.verify("wrong", stored)
    False
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
from enum import Enum

from argon2 import PasswordHasher
from argon2.exceptions import HashingError, InvalidHashError
from argon2.low_level import ARGON2_VERSION, Type, hash_secret_raw

from credgate.config import HashingParams
from credgate.observability.logging import get_logger

logger = get_logger(__name__)

ARGON2ID_PREFIX = "$argon2id$"
LEGACY_PREFIX = "$2a$10$"
PLAIN_PREFIX = "{plain}"

# Upper bounds for parameters parsed from stored hashes
MAX_MEMORY_KIB = 4 * 1024 * 1024
MAX_ITERATIONS = 64
MAX_PARALLELISM = 64


class HashFormat(str, Enum):
    """Stored secret formats recognised by ``SecretHasher.verify``."""

    ARGON2ID = "argon2id"
    LEGACY_BASE64 = "legacy_base64"
    PLAIN_PREFIXED = "plain_prefixed"
    PLAINTEXT = "plaintext"
    UNKNOWN = "unknown"


def detect_format(stored: str) -> HashFormat:
    """Sniff the format of a stored secret by its prefix."""
    if stored.startswith(ARGON2ID_PREFIX):
        return HashFormat.ARGON2ID
    if stored.startswith(LEGACY_PREFIX):
        return HashFormat.LEGACY_BASE64
    if stored.startswith(PLAIN_PREFIX):
        return HashFormat.PLAIN_PREFIXED
    if stored.startswith("$"):
        return HashFormat.UNKNOWN
    return HashFormat.PLAINTEXT


def constant_time_equals(a: bytes | str, b: bytes | str) -> bool:
    """Compare two values without exiting early on the first difference.

    Every byte position up to the longer length is visited and differences
    are accumulated with OR; a length mismatch is folded into the result.
    """
    left = a.encode("utf-8") if isinstance(a, str) else a
    right = b.encode("utf-8") if isinstance(b, str) else b
    result = len(left) ^ len(right)
    for i in range(max(len(left), len(right))):
        x = left[i] if i < len(left) else 0
        y = right[i] if i < len(right) else 0
        result |= x ^ y
    return result == 0


def _b64decode(value: str) -> bytes:
    return base64.b64decode(value + "=" * (-len(value) % 4), validate=True)


@dataclass(frozen=True)
class ParsedHash:
    """Components of an Argon2id PHC string."""

    version: int
    memory_kib: int
    iterations: int
    parallelism: int
    salt: bytes
    digest: bytes


def parse_argon2id(stored: str) -> ParsedHash:
    """Parse an Argon2id PHC string.

    Raises:
        ValueError: If the string is not a well-formed Argon2id hash
    """
    parts = stored.split("$")
    # ['', 'argon2id', 'v=19', 'm=..,t=..,p=..', salt, digest]
    if len(parts) != 6 or parts[0] != "" or parts[1] != "argon2id":
        raise ValueError("Not an Argon2id PHC string")
    if not parts[2].startswith("v="):
        raise ValueError("Missing version")
    version = int(parts[2][2:])

    params: dict[str, int] = {}
    for item in parts[3].split(","):
        key, sep, value = item.partition("=")
        if not sep or key not in ("m", "t", "p") or key in params:
            raise ValueError("Malformed parameter list")
        params[key] = int(value)
    if set(params) != {"m", "t", "p"}:
        raise ValueError("Missing cost parameter")

    memory, iterations, parallelism = params["m"], params["t"], params["p"]
    if not 1 <= parallelism <= MAX_PARALLELISM:
        raise ValueError("Parallelism out of range")
    if not 1 <= iterations <= MAX_ITERATIONS:
        raise ValueError("Iterations out of range")
    if not 8 * parallelism <= memory <= MAX_MEMORY_KIB:
        raise ValueError("Memory out of range")

    try:
        salt = _b64decode(parts[4])
        digest = _b64decode(parts[5])
    except binascii.Error as exc:
        raise ValueError("Invalid base64 in hash") from exc
    if len(salt) < 8 or len(digest) < 4:
        raise ValueError("Salt or digest too short")

    return ParsedHash(
        version=version,
        memory_kib=memory,
        iterations=iterations,
        parallelism=parallelism,
        salt=salt,
        digest=digest,
    )


class SecretHasher:
    """Argon2id hasher with constant-time verification.

    Args:
        params: Cost parameters used for new hashes
        allow_plaintext: Accept ``{plain}`` and unprefixed stored values
            (local development only)

    Example:
        >>> hasher = SecretHasher(HashingParams.for_client_secrets())
        >>> hasher.is_valid_format(hasher.hash("test-secret"))
        True
    """

    def __init__(self, params: HashingParams | None = None, allow_plaintext: bool = False) -> None:
        self.params = params or HashingParams()
        self.allow_plaintext = allow_plaintext
        self._hasher = PasswordHasher(
            time_cost=self.params.iterations,
            memory_cost=self.params.memory_kib,
            parallelism=self.params.parallelism,
            hash_len=self.params.hash_length,
            salt_len=self.params.salt_length,
            type=Type.ID,
        )

    def hash(self, secret: str) -> str:
        """Hash a secret with a fresh random salt.

        Raises:
            ValueError: If the secret is blank
        """
        if not secret or not secret.strip():
            raise ValueError("Secret cannot be blank")
        return self._hasher.hash(secret)

    def verify(self, secret: str, stored: str) -> bool:
        """Check ``secret`` against a stored hash.

        Returns False for mismatches and for malformed stored values.

        Raises:
            ValueError: If either argument is blank
        """
        if not secret or not secret.strip():
            raise ValueError("Secret cannot be blank")
        if not stored or not stored.strip():
            raise ValueError("Stored hash cannot be blank")

        fmt = detect_format(stored)
        if fmt is HashFormat.ARGON2ID:
            return self._verify_argon2id(secret, stored)
        if fmt is HashFormat.LEGACY_BASE64:
            return self._verify_legacy(secret, stored)
        if fmt in (HashFormat.PLAIN_PREFIXED, HashFormat.PLAINTEXT):
            if not self.allow_plaintext:
                logger.warning("credgate.hashing.plaintext_rejected", format=fmt.value)
                return False
            raw = stored[len(PLAIN_PREFIX):] if fmt is HashFormat.PLAIN_PREFIXED else stored
            return constant_time_equals(secret, raw)

        logger.warning("credgate.hashing.unknown_format", length=len(stored))
        return False

    def _verify_argon2id(self, secret: str, stored: str) -> bool:
        try:
            parsed = parse_argon2id(stored)
            computed = hash_secret_raw(
                secret=secret.encode("utf-8"),
                salt=parsed.salt,
                time_cost=parsed.iterations,
                memory_cost=parsed.memory_kib,
                parallelism=parsed.parallelism,
                hash_len=len(parsed.digest),
                type=Type.ID,
                version=parsed.version,
            )
        except (ValueError, HashingError) as exc:
            logger.warning(
                "credgate.hashing.malformed_hash",
                format=HashFormat.ARGON2ID.value,
                error=type(exc).__name__,
            )
            return False
        return constant_time_equals(computed, parsed.digest)

    def _verify_legacy(self, secret: str, stored: str) -> bool:
        logger.warning("credgate.hashing.legacy_format_used", format=HashFormat.LEGACY_BASE64.value)
        try:
            decoded = _b64decode(stored[len(LEGACY_PREFIX):])
        except binascii.Error:
            logger.warning("credgate.hashing.malformed_hash", format=HashFormat.LEGACY_BASE64.value)
            return False
        return constant_time_equals(secret.encode("utf-8"), decoded)

    def is_valid_format(self, stored: str | None) -> bool:
        """True only for parseable Argon2id hashes."""
        if not stored or detect_format(stored) is not HashFormat.ARGON2ID:
            return False
        try:
            parse_argon2id(stored)
        except ValueError:
            return False
        return True

    def needs_rehash(self, stored: str) -> bool:
        """True for legacy or plaintext values and for Argon2id hashes with other parameters."""
        if not self.is_valid_format(stored):
            return True
        try:
            parsed = parse_argon2id(stored)
            if parsed.version != ARGON2_VERSION:
                return True
            return self._hasher.check_needs_rehash(stored)
        except (ValueError, InvalidHashError):
            return True
