"""Cache protocol for swappable local result caches.

The cache stores raw transport responses keyed by request. How a query uses
it is decided by its CachePolicy in the dispatcher.

Usage:
    cache = MemoryCache(max_entries=128)
    dispatcher = Dispatcher(transport, cache=cache)
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Protocol, runtime_checkable

from datakit.core.query.models import CachePolicy
from datakit.transport.protocol import TransportRequest


def cache_key(request: TransportRequest) -> str:
    """Stable key for a request: operation, id and description digest.

    The cache policy is part of the description but not of the key, so a
    response stored under one policy can be read under another.
    """
    description = replace(request.description, cache_policy=CachePolicy.IGNORE_CACHE)
    return f"{request.operation.value}:{request.entity_id or ''}:{description.digest()}"


@runtime_checkable
class ResultCache(Protocol):
    """Local store of raw responses."""

    def get(self, key: str) -> tuple[bool, Any]:
        """Look up a response. Returns (hit, response)."""
        ...

    def put(self, key: str, response: Any) -> None:
        """Store or replace a response."""
        ...

    def clear(self) -> None:
        """Drop every stored response."""
        ...
