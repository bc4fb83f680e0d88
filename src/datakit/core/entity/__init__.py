"""Entity values: opaque records returned by queries."""

from datakit.core.entity.models import ID_KEY, Entity

__all__ = [
    "Entity",
    "ID_KEY",
]
