"""Aggregation job handles."""

from datakit.core.aggregation.models import MapReduce

__all__ = [
    "MapReduce",
]
