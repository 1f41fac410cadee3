"""Shared pydantic base for wire-facing models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """Model exchanged with callers, serialized with camelCase keys."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True, alias_generator=to_camel)

    def to_wire(self) -> dict:
        """Return a JSON-compatible payload using wire key names.

        Returns:
            dict: Dumped model, unset optionals omitted.
        """
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
