"""In-memory LRU result cache.

Usage:
    cache = MemoryCache(max_entries=2)
    cache.put("a", {"count": 1})
    cache.get("a")  # (True, {"count": 1})
"""

from __future__ import annotations

import copy as cp
import logging
import threading
from collections import OrderedDict
from typing import Any

logger = logging.getLogger(__name__)


class MemoryCache:
    """Bounded least-recently-used cache of raw responses.

    Guarded by a lock: background executions read and write it from the
    runner thread. Stored and returned values are deep copies.

    Args:
        max_entries: Capacity; the least recently used entry is evicted first.
    """

    def __init__(self, max_entries: int = 256):
        if max_entries < 1:
            raise ValueError(f"max_entries must be at least 1, got {max_entries}")
        self._max_entries = max_entries
        self._entries: OrderedDict[str, Any] = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, key: str) -> tuple[bool, Any]:
        with self._lock:
            if key not in self._entries:
                return False, None
            self._entries.move_to_end(key)
            return True, cp.deepcopy(self._entries[key])

    def put(self, key: str, response: Any) -> None:
        with self._lock:
            self._entries[key] = cp.deepcopy(response)
            self._entries.move_to_end(key)
            while len(self._entries) > self._max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("Evicted cached response %s", evicted)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
