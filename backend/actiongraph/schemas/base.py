"""Base Pydantic schemas with common patterns.

Workflow definitions arrive from the workflow compiler as camelCase JSON
(`componentId`, `joinStrategy`, ...). Every schema accepts both the camelCase
alias and the snake_case field name and dumps camelCase with ``by_alias``.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class BaseSchema(BaseModel):
    """Base schema with common configuration for all schemas.

    Configures Pydantic v2 settings for consistent behavior across all schemas.
    """

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        alias_generator=to_camel,
        arbitrary_types_allowed=True,
    )


class FrozenSchema(BaseSchema):
    """Immutable schema for values that must not change during a run."""

    model_config = ConfigDict(frozen=True)


__all__ = [
    "BaseSchema",
    "FrozenSchema",
]
