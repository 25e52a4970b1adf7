"""Base Pydantic model configuration for credgate models.

All credgate models inherit from CredgateBaseModel to ensure consistent behavior:
- Immutability (frozen=True) so entities can be shared across threads and caches
- Strict validation (extra="forbid") to catch typos in store records
- Flexible field naming (populate_by_name=True) for camelCase aliases
"""

from pydantic import BaseModel, ConfigDict


class CredgateBaseModel(BaseModel):
    """Base model for all credgate entities and wire payloads.

    Example:
        >>> class MyModel(CredgateBaseModel):
        ...     name: str
        >>>
        >>> obj = MyModel(name="demo")
        >>> obj.name = "other"  # Raises ValidationError (frozen)
        Traceback (most recent call last):
        ...
        pydantic_core._pydantic_core.ValidationError: ...
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        populate_by_name=True,
        use_enum_values=False,
        validate_default=True,
    )
