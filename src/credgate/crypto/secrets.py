"""Client secret strength checks and generation."""

from __future__ import annotations

import secrets
import string

MIN_SECRET_LENGTH = 32

UPPERCASE = string.ascii_uppercase
LOWERCASE = string.ascii_lowercase
DIGITS = string.digits
SPECIAL = "!@#$%^&*()_+-=[]{}|;:,.<>?"


def validate_secret_strength(secret: str | None) -> bool:
    """Return True if the secret is long enough and mixes all character classes.

    Requires at least 32 characters with an uppercase letter, a lowercase
    letter, a digit and a non-alphanumeric character.
    """
    if secret is None or len(secret) < MIN_SECRET_LENGTH:
        return False
    has_upper = any(ch.isupper() for ch in secret)
    has_lower = any(ch.islower() for ch in secret)
    has_digit = any(ch.isdigit() for ch in secret)
    has_special = any(not ch.isalnum() for ch in secret)
    return has_upper and has_lower and has_digit and has_special


def generate_secure_secret(length: int = MIN_SECRET_LENGTH) -> str:
    """Generate a random secret that passes ``validate_secret_strength``.

    Raises:
        ValueError: If ``length`` is below 32
    """
    if length < MIN_SECRET_LENGTH:
        raise ValueError(f"Secret length must be at least {MIN_SECRET_LENGTH} characters")

    alphabet = UPPERCASE + LOWERCASE + DIGITS + SPECIAL
    chars = [
        secrets.choice(UPPERCASE),
        secrets.choice(LOWERCASE),
        secrets.choice(DIGITS),
        secrets.choice(SPECIAL),
    ]
    chars.extend(secrets.choice(alphabet) for _ in range(length - len(chars)))
    secrets.SystemRandom().shuffle(chars)
    return "".join(chars)
