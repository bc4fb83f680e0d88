"""Background event loop for non-blocking executions."""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import threading
from collections.abc import Coroutine
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

RUNNER_THREAD_NAME = "datakit-runner-loop"


class BackgroundRunner:
    """Thread-owned event loop that runs background queries. Singleton per process.

    Every completion callback fires on this loop's thread, so callers get one
    consistent context that is never their own thread.
    """

    _instance: BackgroundRunner | None = None
    _lock = threading.Lock()

    def __init__(self) -> None:
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None

    @classmethod
    def get(cls) -> BackgroundRunner:
        """Get the singleton BackgroundRunner instance, creating it if necessary."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    inst = cls()
                    inst._start()
                    cls._instance = inst
        return cls._instance

    def _start(self) -> None:
        """Start the background event loop thread."""
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(
            target=self._loop.run_forever,
            daemon=True,
            name=RUNNER_THREAD_NAME,
        )
        self._thread.start()
        logger.debug("Started background runner thread %s", RUNNER_THREAD_NAME)

    @property
    def thread(self) -> threading.Thread | None:
        return self._thread

    def submit(self, coro: Coroutine[Any, Any, T]) -> concurrent.futures.Future[T]:
        """Schedule a coroutine on the runner loop and return immediately."""
        if self._loop is None:
            raise RuntimeError("Runner not initialized")
        return asyncio.run_coroutine_threadsafe(coro, self._loop)
