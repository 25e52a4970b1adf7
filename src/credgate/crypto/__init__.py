"""Secret hashing, verification and generation."""

from credgate.crypto.hashing import (
    HashFormat,
    SecretHasher,
    constant_time_equals,
    detect_format,
)
from credgate.crypto.secrets import generate_secure_secret, validate_secret_strength

__all__ = [
    "HashFormat",
    "SecretHasher",
    "constant_time_equals",
    "detect_format",
    "generate_secure_secret",
    "validate_secret_strength",
]
