"""Engine configuration for credgate.

All settings are frozen pydantic models. ``EngineConfig.from_env()`` builds a
configuration from ``CREDGATE_*`` environment variables and raises
``ConfigurationError`` for any invalid value.

Environment Variables:
    CREDGATE_PROFILE: "local" (in-memory principals) or "store" (secret store)
    CREDGATE_SIGNING_SECRET: HMAC signing secret, at least 32 characters
    CREDGATE_TOKEN_ISSUER / CREDGATE_TOKEN_AUDIENCE: token ``iss`` / ``aud``
    CREDGATE_TOKEN_DEFAULT_TTL / CREDGATE_TOKEN_MAX_TTL: lifetimes in seconds
    CREDGATE_CACHE_TTL_MINUTES / CREDGATE_CACHE_MAX_SIZE: repository cache
    CREDGATE_HASH_ITERATIONS / CREDGATE_HASH_MEMORY_KIB / CREDGATE_HASH_PARALLELISM
    CREDGATE_RETRY_MAX_ATTEMPTS / CREDGATE_RETRY_BASE_DELAY / CREDGATE_RETRY_MAX_DELAY
    CREDGATE_RETRY_BUDGET_SECONDS
    CREDGATE_STORE_PATH: JSON file backing the secret store (store profile)
    CREDGATE_USERS_FILE / CREDGATE_CLIENTS_FILE: seed files (local profile)
    CREDGATE_CLIENT_STATUS_CHECK: "true"/"false"
    CREDGATE_ALLOW_PLAINTEXT_SECRETS: "true"/"false"

Example:
    >>> config = EngineConfig.from_env({"CREDGATE_PROFILE": "local"})
    >>> config.tokens.issuer
    'https://auth.example.com'
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal, Mapping

from pydantic import Field, ValidationError, field_validator, model_validator

from credgate.errors import ConfigurationError
from credgate.models.base import CredgateBaseModel
from credgate.observability.logging import get_logger

logger = get_logger(__name__)

# Token defaults
DEFAULT_ISSUER = "https://auth.example.com"
DEFAULT_AUDIENCE = "https://api.example.com"
DEFAULT_TOKEN_TTL = 3600
DEFAULT_MAX_TOKEN_TTL = 7200
MIN_SIGNING_SECRET_LENGTH = 32

# Only used by the local profile when no signing secret is configured
DEVELOPMENT_SIGNING_SECRET = "credgate-local-development-signing-secret-do-not-deploy"

# Cache defaults
DEFAULT_CACHE_TTL_MINUTES = 5
DEFAULT_CACHE_MAX_SIZE = 100

# Argon2id defaults (RFC 9106 second recommended option, reduced memory)
DEFAULT_SALT_LENGTH = 16
DEFAULT_HASH_LENGTH = 32
DEFAULT_ITERATIONS = 3
DEFAULT_MEMORY_KIB = 65536
DEFAULT_PARALLELISM = 1
CLIENT_SECRET_PARALLELISM = 4

# Retry defaults for secret store reads
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY = 0.05
DEFAULT_MAX_DELAY = 1.0
DEFAULT_RETRY_BUDGET = 2.0

# Environment variable names
ENV_PROFILE = "CREDGATE_PROFILE"
ENV_SIGNING_SECRET = "CREDGATE_SIGNING_SECRET"
ENV_TOKEN_ISSUER = "CREDGATE_TOKEN_ISSUER"
ENV_TOKEN_AUDIENCE = "CREDGATE_TOKEN_AUDIENCE"
ENV_TOKEN_DEFAULT_TTL = "CREDGATE_TOKEN_DEFAULT_TTL"
ENV_TOKEN_MAX_TTL = "CREDGATE_TOKEN_MAX_TTL"
ENV_CACHE_TTL_MINUTES = "CREDGATE_CACHE_TTL_MINUTES"
ENV_CACHE_MAX_SIZE = "CREDGATE_CACHE_MAX_SIZE"
ENV_HASH_ITERATIONS = "CREDGATE_HASH_ITERATIONS"
ENV_HASH_MEMORY_KIB = "CREDGATE_HASH_MEMORY_KIB"
ENV_HASH_PARALLELISM = "CREDGATE_HASH_PARALLELISM"
ENV_RETRY_MAX_ATTEMPTS = "CREDGATE_RETRY_MAX_ATTEMPTS"
ENV_RETRY_BASE_DELAY = "CREDGATE_RETRY_BASE_DELAY"
ENV_RETRY_MAX_DELAY = "CREDGATE_RETRY_MAX_DELAY"
ENV_RETRY_BUDGET = "CREDGATE_RETRY_BUDGET_SECONDS"
ENV_STORE_PATH = "CREDGATE_STORE_PATH"
ENV_USERS_FILE = "CREDGATE_USERS_FILE"
ENV_CLIENTS_FILE = "CREDGATE_CLIENTS_FILE"
ENV_CLIENT_STATUS_CHECK = "CREDGATE_CLIENT_STATUS_CHECK"
ENV_ALLOW_PLAINTEXT = "CREDGATE_ALLOW_PLAINTEXT_SECRETS"

Profile = Literal["local", "store"]

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off"})


class TokenSettings(CredgateBaseModel):
    """Signing and lifetime settings for the token engine."""

    signing_secret: str = Field(..., repr=False)
    issuer: str = DEFAULT_ISSUER
    audience: str = DEFAULT_AUDIENCE
    default_ttl: int = Field(default=DEFAULT_TOKEN_TTL, gt=0)
    max_ttl: int = Field(default=DEFAULT_MAX_TOKEN_TTL, gt=0)

    @field_validator("signing_secret")
    @classmethod
    def validate_signing_secret(cls, v: str) -> str:
        if len(v) < MIN_SIGNING_SECRET_LENGTH:
            raise ValueError(
                f"Signing secret must be at least {MIN_SIGNING_SECRET_LENGTH} characters"
            )
        return v

    @field_validator("issuer", "audience")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Issuer and audience cannot be blank")
        return v.strip()

    @model_validator(mode="after")
    def validate_ttls(self) -> TokenSettings:
        if self.default_ttl > self.max_ttl:
            raise ValueError("default_ttl cannot exceed max_ttl")
        return self


class CacheSettings(CredgateBaseModel):
    """Repository cache settings. A TTL of zero disables caching."""

    ttl_minutes: float = Field(default=DEFAULT_CACHE_TTL_MINUTES, ge=0)
    max_size: int = Field(default=DEFAULT_CACHE_MAX_SIZE, ge=0)

    @property
    def ttl_seconds(self) -> float:
        return self.ttl_minutes * 60.0


class HashingParams(CredgateBaseModel):
    """Argon2id cost parameters.

    Attributes:
        salt_length: Salt length in bytes
        hash_length: Digest length in bytes
        iterations: Time cost (t)
        memory_kib: Memory cost in KiB (m); at least 8 * parallelism
        parallelism: Lanes (p)
    """

    salt_length: int = Field(default=DEFAULT_SALT_LENGTH, ge=8)
    hash_length: int = Field(default=DEFAULT_HASH_LENGTH, ge=4)
    iterations: int = Field(default=DEFAULT_ITERATIONS, ge=1)
    memory_kib: int = Field(default=DEFAULT_MEMORY_KIB, ge=8)
    parallelism: int = Field(default=DEFAULT_PARALLELISM, ge=1)

    @model_validator(mode="after")
    def validate_memory(self) -> HashingParams:
        if self.memory_kib < 8 * self.parallelism:
            raise ValueError("memory_kib must be at least 8 * parallelism")
        return self

    @classmethod
    def for_passwords(cls) -> HashingParams:
        return cls()

    @classmethod
    def for_client_secrets(cls) -> HashingParams:
        return cls(parallelism=CLIENT_SECRET_PARALLELISM)


@dataclass(frozen=True)
class RetryConfig:
    """Retry policy for secret store reads.

    Attributes:
        max_attempts: Total attempts including the first (default: 3)
        base_delay: Base delay in seconds for exponential backoff (default: 0.05)
        max_delay: Maximum delay in seconds for a single wait (default: 1.0)
        jitter: Whether to add random jitter to backoff delays (default: True)
        budget_seconds: Total wall-clock budget for one lookup (default: 2.0)
    """

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    base_delay: float = DEFAULT_BASE_DELAY
    max_delay: float = DEFAULT_MAX_DELAY
    jitter: bool = True
    budget_seconds: float = DEFAULT_RETRY_BUDGET

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ConfigurationError("max_attempts must be at least 1")
        if self.base_delay < 0 or self.max_delay < 0 or self.budget_seconds < 0:
            raise ConfigurationError("Retry delays and budget cannot be negative")


class EngineConfig(CredgateBaseModel):
    """Complete engine configuration.

    Example:
        >>> config = EngineConfig(tokens=TokenSettings(signing_secret="x" * 32))
        >>> config.profile
        'local'
    """

    profile: Profile = "local"
    tokens: TokenSettings
    cache: CacheSettings = Field(default_factory=CacheSettings)
    password_hashing: HashingParams = Field(default_factory=HashingParams.for_passwords)
    client_secret_hashing: HashingParams = Field(default_factory=HashingParams.for_client_secrets)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    store_path: Path | None = None
    users_file: Path | None = None
    clients_file: Path | None = None
    enable_client_status_check: bool = True
    allow_plaintext_secrets: bool = False

    @model_validator(mode="after")
    def validate_profile(self) -> EngineConfig:
        if self.profile == "store" and self.allow_plaintext_secrets:
            raise ValueError("Plaintext secrets are only allowed with the local profile")
        return self

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> EngineConfig:
        """Build configuration from ``CREDGATE_*`` environment variables.

        Args:
            environ: Mapping to read instead of ``os.environ`` (tests)

        Raises:
            ConfigurationError: If a value is missing or invalid
        """
        env = os.environ if environ is None else environ
        profile = env.get(ENV_PROFILE, "local").strip().lower()
        if profile not in ("local", "store"):
            raise ConfigurationError(
                f"Unknown profile {profile!r}", details={"variable": ENV_PROFILE}
            )

        signing_secret = env.get(ENV_SIGNING_SECRET)
        if not signing_secret:
            if profile == "store":
                raise ConfigurationError(
                    f"{ENV_SIGNING_SECRET} must be set for the store profile",
                    details={"variable": ENV_SIGNING_SECRET},
                )
            logger.warning(
                "credgate.config.development_signing_secret",
                message="No signing secret configured; using the local development secret",
            )
            signing_secret = DEVELOPMENT_SIGNING_SECRET

        token_values: dict[str, Any] = {"signing_secret": signing_secret}
        _put_str(env, token_values, "issuer", ENV_TOKEN_ISSUER)
        _put_str(env, token_values, "audience", ENV_TOKEN_AUDIENCE)
        _put_int(env, token_values, "default_ttl", ENV_TOKEN_DEFAULT_TTL)
        _put_int(env, token_values, "max_ttl", ENV_TOKEN_MAX_TTL)

        cache_values: dict[str, Any] = {}
        _put_float(env, cache_values, "ttl_minutes", ENV_CACHE_TTL_MINUTES)
        _put_int(env, cache_values, "max_size", ENV_CACHE_MAX_SIZE)

        hash_values: dict[str, Any] = {}
        _put_int(env, hash_values, "iterations", ENV_HASH_ITERATIONS)
        _put_int(env, hash_values, "memory_kib", ENV_HASH_MEMORY_KIB)
        _put_int(env, hash_values, "parallelism", ENV_HASH_PARALLELISM)

        retry_values: dict[str, Any] = {}
        _put_int(env, retry_values, "max_attempts", ENV_RETRY_MAX_ATTEMPTS)
        _put_float(env, retry_values, "base_delay", ENV_RETRY_BASE_DELAY)
        _put_float(env, retry_values, "max_delay", ENV_RETRY_MAX_DELAY)
        _put_float(env, retry_values, "budget_seconds", ENV_RETRY_BUDGET)

        values: dict[str, Any] = {"profile": profile}
        _put_str(env, values, "store_path", ENV_STORE_PATH)
        _put_str(env, values, "users_file", ENV_USERS_FILE)
        _put_str(env, values, "clients_file", ENV_CLIENTS_FILE)
        _put_bool(env, values, "enable_client_status_check", ENV_CLIENT_STATUS_CHECK)
        _put_bool(env, values, "allow_plaintext_secrets", ENV_ALLOW_PLAINTEXT)

        try:
            client_hash_values = {"parallelism": CLIENT_SECRET_PARALLELISM, **hash_values}
            return cls(
                tokens=TokenSettings(**token_values),
                cache=CacheSettings(**cache_values),
                password_hashing=HashingParams(**hash_values),
                client_secret_hashing=HashingParams(**client_hash_values),
                retry=RetryConfig(**retry_values),
                **values,
            )
        except ValidationError as exc:
            raise ConfigurationError(
                "Invalid engine configuration",
                details={"errors": [_describe(err) for err in exc.errors()]},
            ) from exc


def _describe(error: Any) -> str:
    location = ".".join(str(part) for part in error.get("loc", ()))
    return f"{location}: {error.get('msg', 'invalid value')}" if location else error.get("msg", "")


def _put_str(env: Mapping[str, str], target: dict[str, Any], key: str, var: str) -> None:
    value = env.get(var)
    if value is not None and value.strip():
        target[key] = value.strip()


def _put_int(env: Mapping[str, str], target: dict[str, Any], key: str, var: str) -> None:
    value = env.get(var)
    if value is None or not value.strip():
        return
    try:
        target[key] = int(value)
    except ValueError as exc:
        raise ConfigurationError(
            f"{var} must be an integer", details={"variable": var}
        ) from exc


def _put_float(env: Mapping[str, str], target: dict[str, Any], key: str, var: str) -> None:
    value = env.get(var)
    if value is None or not value.strip():
        return
    try:
        target[key] = float(value)
    except ValueError as exc:
        raise ConfigurationError(f"{var} must be a number", details={"variable": var}) from exc


def _put_bool(env: Mapping[str, str], target: dict[str, Any], key: str, var: str) -> None:
    value = env.get(var)
    if value is None or not value.strip():
        return
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        target[key] = True
    elif lowered in _FALSE_VALUES:
        target[key] = False
    else:
        raise ConfigurationError(f"{var} must be a boolean", details={"variable": var})
