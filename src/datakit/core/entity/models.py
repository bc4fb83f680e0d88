"""Entity values returned by fetches.

Usage:
    entity = Entity.from_wire("Person", {"_id": "4f1c", "name": "Ada"})
    entity.entity_id  # "4f1c"
    entity["name"]    # "Ada"
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

ID_KEY = "_id"


@dataclass(frozen=True, slots=True)
class Entity:
    """Schema-less record from a remote collection.

    Field values are kept exactly as decoded from the wire.
    """

    entity_name: str
    entity_id: str | None = None
    fields: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_wire(cls, entity_name: str, payload: Mapping[str, Any]) -> Entity:
        """Build an entity from a decoded response object.

        Raises:
            TypeError: If payload is not a mapping.
        """
        if not isinstance(payload, Mapping):
            raise TypeError(f"Expected entity object, got {type(payload).__name__}")
        data = dict(payload)
        raw_id = data.pop(ID_KEY, None)
        return cls(
            entity_name=entity_name,
            entity_id=str(raw_id) if raw_id is not None else None,
            fields=data,
        )

    def __getitem__(self, key: str) -> Any:
        return self.fields[key]

    def get(self, key: str, default: Any = None) -> Any:
        return self.fields.get(key, default)
