"""Tests for Argon2id secret hashing."""

import base64

import pytest

from credgate.config import HashingParams
from credgate.crypto.hashing import (
    ARGON2ID_PREFIX,
    LEGACY_PREFIX,
    PLAIN_PREFIX,
    HashFormat,
    SecretHasher,
    constant_time_equals,
    detect_format,
    parse_argon2id,
)


class TestConstantTimeEquals:
    @pytest.mark.parametrize(
        ("a", "b", "expected"),
        [
            ("secret", "secret", True),
            ("secret", "secreT", False),
            ("secret", "secret1", False),
            ("", "", True),
            (b"\x00", b"", False),
            ("abc", b"abc", True),
        ],
    )
    def test_comparison(self, a: str | bytes, b: str | bytes, expected: bool) -> None:
        assert constant_time_equals(a, b) is expected


class TestDetectFormat:
    @pytest.mark.parametrize(
        ("stored", "expected"),
        [
            ("$argon2id$v=19$m=8,t=1,p=1$abc$def", HashFormat.ARGON2ID),
            ("$2a$10$ZGVtbzEyMw==", HashFormat.LEGACY_BASE64),
            ("{plain}demo123", HashFormat.PLAIN_PREFIXED),
            ("demo123", HashFormat.PLAINTEXT),
            ("$argon2i$v=19$m=8,t=1,p=1$abc$def", HashFormat.UNKNOWN),
        ],
    )
    def test_detects_prefix(self, stored: str, expected: HashFormat) -> None:
        assert detect_format(stored) is expected


class TestParseArgon2id:
    def test_parses_generated_hash(self, hasher: SecretHasher) -> None:
        parsed = parse_argon2id(hasher.hash("demo123"))

        assert parsed.version == 19
        assert parsed.memory_kib == 8
        assert parsed.iterations == 1
        assert parsed.parallelism == 1
        assert len(parsed.salt) == 16
        assert len(parsed.digest) == 32

    @pytest.mark.parametrize(
        "stored",
        [
            "$argon2id$v=19$m=8,t=1$c2FsdHNhbHQ$ZGlnZXN0",
            "$argon2id$v=19$m=8,t=1,p=1$c2FsdHNhbHQ",
            "$argon2id$v=19$m=4,t=1,p=1$c2FsdHNhbHQ$ZGlnZXN0",
            "$argon2id$v=19$m=8,t=0,p=1$c2FsdHNhbHQ$ZGlnZXN0",
            "$argon2id$v=19$m=8,t=1,p=1$c2FsdA$ZGlnZXN0",
            "$argon2id$v=19$m=8,t=1,p=1$!!!!$ZGlnZXN0",
            "$argon2id$19$m=8,t=1,p=1$c2FsdHNhbHQ$ZGlnZXN0",
            "$argon2id$v=19$m=8,t=1,p=1,p=1$c2FsdHNhbHQ$ZGlnZXN0",
        ],
    )
    def test_rejects_malformed(self, stored: str) -> None:
        with pytest.raises(ValueError):
            parse_argon2id(stored)


class TestSecretHasher:
    """Tests for SecretHasher."""

    def test_hash_has_argon2id_prefix_and_params(self, hasher: SecretHasher) -> None:
        stored = hasher.hash("demo123")

        assert stored.startswith(ARGON2ID_PREFIX)
        assert "$m=8,t=1,p=1$" in stored

    def test_same_secret_gets_different_salts(self, hasher: SecretHasher) -> None:
        first = hasher.hash("demo123")
        second = hasher.hash("demo123")

        assert first != second
        assert hasher.verify("demo123", first)
        assert hasher.verify("demo123", second)

    def test_verify_rejects_wrong_secret(self, hasher: SecretHasher) -> None:
        stored = hasher.hash("demo123")

        assert not hasher.verify("demo124", stored)

    def test_verify_uses_parameters_from_stored_hash(self, hasher: SecretHasher) -> None:
        other = SecretHasher(HashingParams(iterations=2, memory_kib=16, parallelism=2))
        stored = other.hash("demo-secret")

        assert hasher.verify("demo-secret", stored)

    @pytest.mark.parametrize(("secret", "stored"), [("", "$argon2id$x"), ("x", " ")])
    def test_verify_blank_arguments_raise(
        self, hasher: SecretHasher, secret: str, stored: str
    ) -> None:
        with pytest.raises(ValueError):
            hasher.verify(secret, stored)

    def test_hash_blank_raises(self, hasher: SecretHasher) -> None:
        with pytest.raises(ValueError):
            hasher.hash("   ")

    def test_malformed_argon2id_returns_false(self, hasher: SecretHasher) -> None:
        assert not hasher.verify("demo123", "$argon2id$v=19$m=8,t=1,p=1$!!$!!")

    def test_unknown_format_returns_false(self, hasher: SecretHasher) -> None:
        assert not hasher.verify("demo123", "$6$rounds=5000$salt$hash")

    def test_legacy_shim(self, hasher: SecretHasher) -> None:
        stored = LEGACY_PREFIX + base64.b64encode(b"demo123").decode("ascii")

        assert hasher.verify("demo123", stored)
        assert not hasher.verify("demo124", stored)
        assert not hasher.verify("demo123", LEGACY_PREFIX + "***")

    def test_plaintext_rejected_by_default(self, hasher: SecretHasher) -> None:
        assert not hasher.verify("demo123", "demo123")
        assert not hasher.verify("demo123", PLAIN_PREFIX + "demo123")

    def test_plaintext_allowed_when_enabled(self, fast_params: HashingParams) -> None:
        hasher = SecretHasher(fast_params, allow_plaintext=True)

        assert hasher.verify("demo123", "demo123")
        assert hasher.verify("demo123", PLAIN_PREFIX + "demo123")
        assert not hasher.verify("demo123", PLAIN_PREFIX + "other")

    def test_is_valid_format(self, hasher: SecretHasher) -> None:
        assert hasher.is_valid_format(hasher.hash("demo123"))
        assert not hasher.is_valid_format("demo123")
        assert not hasher.is_valid_format(None)
        assert not hasher.is_valid_format("$argon2id$broken")

    def test_needs_rehash(self, hasher: SecretHasher) -> None:
        current = hasher.hash("demo123")
        stronger = SecretHasher(HashingParams(iterations=2, memory_kib=8, parallelism=1))

        assert not hasher.needs_rehash(current)
        assert stronger.needs_rehash(current)
        assert hasher.needs_rehash("{plain}demo123")
        assert hasher.needs_rehash(LEGACY_PREFIX + "ZGVtbzEyMw==")
