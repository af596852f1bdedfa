"""Shared base model."""

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class RefactorModel(BaseModel):
    """Base model with camelCase wire names and immutable instances."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    def model_dump(self, **kwargs) -> dict[str, Any]:
        """Convert to dict with exclude_none and camelCase keys by default."""
        kwargs.setdefault("exclude_none", True)
        kwargs.setdefault("by_alias", True)
        return super().model_dump(**kwargs)
