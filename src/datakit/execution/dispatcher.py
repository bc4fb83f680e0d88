"""Execution dispatcher: cache policy, transport submission, resolution.

Every execution mode goes through the same steps: consult the cache as the
policy allows, send through the transport, resolve the raw response, then
refresh the cache. Remote failures come back as ``QueryResult.error``.

Usage:
    dispatcher = Dispatcher(HttpTransport(settings), settings=settings)
    people = dispatcher.query("Person")

    # Or install a process default used by Query objects without a dispatcher
    datakit.configure(ClientSettings(endpoint="https://data.example.com"))
    Query("Person").find_all()
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from datakit.cache import MemoryCache, ResultCache, cache_key
from datakit.config import ClientSettings
from datakit.core.query.builder import Query
from datakit.core.query.models import CachePolicy
from datakit.errors import CacheMissError, NotConfiguredError, RemoteError
from datakit.execution.result import QueryResult, resolve
from datakit.execution.runner import BackgroundRunner
from datakit.transport.http import HttpTransport
from datakit.transport.protocol import Transport, TransportRequest

logger = logging.getLogger(__name__)

_READS_CACHE = (CachePolicy.CACHE_ONLY, CachePolicy.CACHE_ELSE_LOAD)
_WRITES_CACHE = (CachePolicy.CACHE_ELSE_LOAD, CachePolicy.LOAD_AND_CACHE)


class Dispatcher:
    """Submits compiled requests and resolves their outcomes.

    Holds no per-request state, so one dispatcher serves any number of
    queries and concurrent executions.

    Attributes:
        transport: Backend requests are sent through.
        cache: Local response cache used by cache policies.
        settings: Client settings (default cache policy, cache size).
    """

    def __init__(
        self,
        transport: Transport,
        cache: ResultCache | None = None,
        settings: ClientSettings | None = None,
    ) -> None:
        self._transport = transport
        self._settings = settings or ClientSettings()
        self._cache = cache if cache is not None else MemoryCache(self._settings.cache_max_entries)

    @classmethod
    def from_settings(cls, settings: ClientSettings | None = None) -> Dispatcher:
        """Create a dispatcher with an HTTP transport built from settings."""
        settings = settings or ClientSettings()
        return cls(HttpTransport(settings), settings=settings)

    @property
    def transport(self) -> Transport:
        return self._transport

    @property
    def cache(self) -> ResultCache:
        return self._cache

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    def query(self, entity_name: str) -> Query:
        """Create a query bound to this dispatcher with the default cache policy."""
        return Query(entity_name, dispatcher=self)

    # Execution

    def execute(self, request: TransportRequest) -> QueryResult[Any]:
        """Execute a request, blocking until the transport returns."""
        logger.debug("Dispatching %s on %s", request.operation.value, request.description.entity)
        try:
            hit, raw = self._read_cache(request)
            if not hit:
                raw = self._transport.send(request)
            value = resolve(request, raw)
        except RemoteError as e:
            return self._failure(request, e)
        if not hit:
            self._write_cache(request, raw)
        return QueryResult(value=value)

    async def execute_async(self, request: TransportRequest) -> QueryResult[Any]:
        """Execute a request without blocking the running event loop."""
        logger.debug(
            "Dispatching %s on %s (async)", request.operation.value, request.description.entity
        )
        try:
            hit, raw = self._read_cache(request)
            if not hit:
                raw = await self._transport.send_async(request)
            value = resolve(request, raw)
        except RemoteError as e:
            return self._failure(request, e)
        if not hit:
            self._write_cache(request, raw)
        return QueryResult(value=value)

    def execute_in_background(
        self,
        request: TransportRequest,
        callback: Callable[[Any, RemoteError | None], None],
    ) -> None:
        """Schedule a request on the background runner and return immediately.

        ``callback(value, error)`` runs exactly once on the runner thread.
        """
        BackgroundRunner.get().submit(self._execute_and_notify(request, callback))

    async def _execute_and_notify(
        self,
        request: TransportRequest,
        callback: Callable[[Any, RemoteError | None], None],
    ) -> None:
        try:
            result = await self.execute_async(request)
        except Exception as e:
            # The callback runs exactly once, also for non-remote failures
            logger.exception(
                "%s on %s failed unexpectedly", request.operation.value, request.description.entity
            )
            error = RemoteError(f"Execution failed: {e}")
            error.__cause__ = e
            result = QueryResult(error=error)

        try:
            callback(result.value, result.error)
        except Exception:
            logger.exception(
                "Callback for %s on %s raised", request.operation.value, request.description.entity
            )

    # Cache policy

    def _read_cache(self, request: TransportRequest) -> tuple[bool, Any]:
        policy = request.description.cache_policy
        if policy not in _READS_CACHE:
            return False, None

        hit, raw = self._cache.get(cache_key(request))
        if hit:
            logger.debug(
                "Cache hit for %s on %s", request.operation.value, request.description.entity
            )
            return True, raw
        if policy is CachePolicy.CACHE_ONLY:
            raise CacheMissError(
                f"No cached {request.operation.value} response for {request.description.entity}"
            )
        logger.debug("Cache miss for %s on %s", request.operation.value, request.description.entity)
        return False, None

    def _write_cache(self, request: TransportRequest, raw: Any) -> None:
        if request.description.cache_policy in _WRITES_CACHE:
            self._cache.put(cache_key(request), raw)

    def _failure(self, request: TransportRequest, error: RemoteError) -> QueryResult[Any]:
        logger.warning(
            "%s on %s failed: %s", request.operation.value, request.description.entity, error
        )
        return QueryResult(error=error)


_default_dispatcher: Dispatcher | None = None


def configure(
    settings: ClientSettings | None = None,
    transport: Transport | None = None,
    cache: ResultCache | None = None,
) -> Dispatcher:
    """Install the process default dispatcher.

    Args:
        settings: Client settings. Loaded from the environment if omitted.
        transport: Custom transport. Defaults to HttpTransport(settings).
        cache: Custom cache. Defaults to a MemoryCache sized from settings.

    Returns:
        The installed dispatcher.
    """
    global _default_dispatcher
    settings = settings or ClientSettings()
    if transport is None:
        transport = HttpTransport(settings)
    _default_dispatcher = Dispatcher(transport, cache=cache, settings=settings)
    return _default_dispatcher


def get_default_dispatcher() -> Dispatcher:
    """Return the dispatcher installed by ``configure``.

    Raises:
        NotConfiguredError: If ``configure`` has not been called.
    """
    if _default_dispatcher is None:
        raise NotConfiguredError(
            "No dispatcher configured. Call datakit.configure() or pass dispatcher= to Query"
        )
    return _default_dispatcher


def reset_default_dispatcher() -> None:
    """Remove the process default dispatcher."""
    global _default_dispatcher
    _default_dispatcher = None
