"""Authentication outcome model for the Basic authentication flow."""

from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Mapping

from pydantic import Field, field_serializer, field_validator

from credgate.models.base import CredgateBaseModel

SUCCESS_MESSAGE = "Authentication successful"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuthenticationResult(CredgateBaseModel):
    """Outcome of a Basic authentication attempt.

    ``reason`` is the caller-facing message; the machine-readable failure
    code (``user_not_found``, ``account_disabled``, ``invalid_password``,
    ``invalid_request``) travels in ``metadata["reason"]``. The username is
    kept for audit logging and is never echoed to the caller. ``metadata`` is
    a read-only mapping; ``with_metadata`` returns a new result.

    Example:
        >>> result = AuthenticationResult.failure("demo", "Invalid credentials")
        >>> result.with_metadata("reason", "invalid_password").failure_code
        'invalid_password'
    """

    allowed: bool
    reason: str
    username: str | None = None
    timestamp: datetime = Field(default_factory=_utcnow)
    metadata: Mapping[str, Any] = Field(default_factory=lambda: MappingProxyType({}))

    @field_validator("metadata", mode="after")
    @classmethod
    def freeze_metadata(cls, v: Mapping[str, Any]) -> Mapping[str, Any]:
        return MappingProxyType(dict(v))

    @field_serializer("metadata")
    def serialize_metadata(self, v: Mapping[str, Any]) -> dict[str, Any]:
        return dict(v)

    @classmethod
    def success(
        cls, username: str, metadata: dict[str, Any] | None = None
    ) -> "AuthenticationResult":
        return cls(
            allowed=True,
            reason=SUCCESS_MESSAGE,
            username=username,
            metadata=dict(metadata or {}),
        )

    @classmethod
    def failure(
        cls,
        username: str | None,
        reason: str,
        metadata: dict[str, Any] | None = None,
    ) -> "AuthenticationResult":
        return cls(
            allowed=False,
            reason=reason,
            username=username,
            metadata=dict(metadata or {}),
        )

    @property
    def failure_code(self) -> str | None:
        if self.allowed:
            return None
        code = self.metadata.get("reason")
        return code if isinstance(code, str) else None

    def get_metadata(self, key: str) -> Any:
        return self.metadata.get(key)

    def with_metadata(self, key: str, value: Any) -> "AuthenticationResult":
        metadata = MappingProxyType({**self.metadata, key: value})
        return self.model_copy(update={"metadata": metadata})
