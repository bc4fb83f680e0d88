"""Query results and response resolution.

Usage:
    result = query.find_one()
    if result.error is not None:
        ...             # remote failure
    elif not result.found:
        ...             # valid empty outcome
    else:
        entity = result.value
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from datakit.core.entity import Entity
from datakit.errors import MalformedResponseError, RemoteError
from datakit.transport.protocol import Operation, TransportRequest

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class QueryResult(Generic[T]):
    """Outcome of one execution: a value or a remote error, never both.

    A successful single-entity fetch that matched nothing has both fields
    set to None; ``ok`` is True and ``found`` is False.
    """

    value: T | None = None
    error: RemoteError | None = None

    def __post_init__(self) -> None:
        if self.value is not None and self.error is not None:
            raise ValueError("QueryResult cannot hold both a value and an error")

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def found(self) -> bool:
        """True when the execution succeeded and produced a value."""
        return self.error is None and self.value is not None

    def unwrap(self) -> T | None:
        """Return the value, raising the remote error if there is one.

        Raises:
            RemoteError: If the execution failed.
        """
        if self.error is not None:
            raise self.error
        return self.value


def _field(raw: Any, name: str) -> Any:
    if not isinstance(raw, dict) or name not in raw:
        raise MalformedResponseError(f"Expected an object with {name!r}, got {raw!r:.200}")
    return raw[name]


def _entity(entity_name: str, payload: Any) -> Entity:
    try:
        return Entity.from_wire(entity_name, payload)
    except TypeError as e:
        raise MalformedResponseError(str(e)) from e


def resolve_entities(request: TransportRequest, raw: Any) -> Any:
    """Resolve a FIND_ALL response.

    Returns:
        List of entities, or whatever the map reduce result processor returns.

    Raises:
        MalformedResponseError: If ``results`` is missing or not a list.
    """
    results = _field(raw, "results")
    if not isinstance(results, list):
        raise MalformedResponseError(f"Expected a list of results, got {type(results).__name__}")

    map_reduce = request.description.map_reduce
    if map_reduce is not None and map_reduce.result_processor is not None:
        return map_reduce.result_processor(results)
    return [_entity(request.description.entity, item) for item in results]


def resolve_entity(request: TransportRequest, raw: Any) -> Entity | None:
    """Resolve a FIND_ONE / FIND_BY_ID response. None means no match."""
    result = _field(raw, "result")
    if result is None:
        return None
    return _entity(request.description.entity, result)


def resolve_count(raw: Any) -> int:
    """Resolve a COUNT_ALL response.

    Raises:
        MalformedResponseError: If ``count`` is missing or not a non-negative int.
    """
    count = _field(raw, "count")
    if isinstance(count, bool) or not isinstance(count, int) or count < 0:
        raise MalformedResponseError(f"Expected a non-negative integer count, got {count!r}")
    return count


def resolve(request: TransportRequest, raw: Any) -> Any:
    """Map a raw response to the value for the request's operation."""
    if request.operation is Operation.FIND_ALL:
        return resolve_entities(request, raw)
    if request.operation is Operation.COUNT_ALL:
        return resolve_count(raw)
    return resolve_entity(request, raw)
