"""Local in-memory transport implementation.

Evaluates compiled query descriptions against dict-based collections.
Suitable for single-process use, offline development and testing. Map
reduce jobs need the server and are rejected.

Usage:
    transport = LocalTransport()
    transport.insert("Person", {"name": "Ada", "age": 36})
    dispatcher = Dispatcher(transport)
"""

from __future__ import annotations

import asyncio
import copy as cp
import re
import threading
import uuid
from collections.abc import Iterable, Mapping
from typing import Any

from datakit.core.entity import ID_KEY
from datakit.core.query.models import (
    Condition,
    Group,
    Logic,
    Operator,
    QueryDescription,
    RegexOption,
    SortDirection,
)
from datakit.errors import RemoteError
from datakit.transport.protocol import Operation, TransportRequest

_MISSING = object()

_REGEX_FLAGS = {
    RegexOption.CASE_INSENSITIVE: re.IGNORECASE,
    RegexOption.MULTILINE: re.MULTILINE,
    RegexOption.DOTALL: re.DOTALL,
    RegexOption.VERBOSE: re.VERBOSE,
}


def _lookup(document: Mapping[str, Any], key: str) -> Any:
    """Resolve a dotted key path. Returns _MISSING if any segment is absent."""
    value: Any = document
    for part in key.split("."):
        if not isinstance(value, Mapping) or part not in value:
            return _MISSING
        value = value[part]
    return value


def _equals(value: Any, operand: Any) -> bool:
    # Array fields match when any element equals the operand
    if isinstance(value, list) and not isinstance(operand, list):
        return operand in value
    return bool(value == operand)


def _compare(value: Any, operand: Any, operator: Operator) -> bool:
    try:
        if operator is Operator.LESS_THAN:
            return bool(value < operand)
        if operator is Operator.LESS_THAN_OR_EQUAL_TO:
            return bool(value <= operand)
        if operator is Operator.GREATER_THAN:
            return bool(value > operand)
        return bool(value >= operand)
    except TypeError:
        return False


def _regex_flags(options: RegexOption) -> int:
    flags = 0
    for option, flag in _REGEX_FLAGS.items():
        if option in options:
            flags |= flag
    return flags


def evaluate_condition(document: Mapping[str, Any], condition: Condition) -> bool:
    """Check a single condition against a document.

    Missing keys satisfy only NOT_EXISTS, NOT_EQUAL_TO and NOT_CONTAINED_IN.
    """
    value = _lookup(document, condition.key)
    operator = condition.operator
    operand = condition.operand

    if operator is Operator.EXISTS:
        return value is not _MISSING
    if operator is Operator.NOT_EXISTS:
        return value is _MISSING
    if operator is Operator.NOT_EQUAL_TO:
        return value is _MISSING or not _equals(value, operand)
    if operator is Operator.NOT_CONTAINED_IN:
        return value is _MISSING or not any(_equals(value, o) for o in operand)
    if value is _MISSING:
        return False

    if operator is Operator.EQUAL_TO:
        return _equals(value, operand)
    if operator in (
        Operator.LESS_THAN,
        Operator.LESS_THAN_OR_EQUAL_TO,
        Operator.GREATER_THAN,
        Operator.GREATER_THAN_OR_EQUAL_TO,
    ):
        return _compare(value, operand, operator)
    if operator is Operator.CONTAINED_IN:
        return any(_equals(value, o) for o in operand)
    if operator is Operator.CONTAINS_ALL_IN:
        return isinstance(value, list) and all(o in value for o in operand)

    if not isinstance(value, str):
        return False
    if operator is Operator.MATCHES_REGEX:
        return re.search(operand.pattern, value, _regex_flags(operand.options)) is not None
    if operator is Operator.CONTAINS_STRING:
        return operand in value
    if operator is Operator.HAS_PREFIX:
        return value.startswith(operand)
    if operator is Operator.HAS_SUFFIX:
        return value.endswith(operand)
    raise RemoteError(f"Unsupported operator: {operator!r}")


def evaluate_group(document: Mapping[str, Any], group: Group) -> bool:
    """Check a group. An empty group does not constrain anything."""
    if not group.members:
        return True
    results = (evaluate_condition(document, member) for member in group.members)
    return any(results) if group.logic is Logic.OR else all(results)


def matches(document: Mapping[str, Any], description: QueryDescription) -> bool:
    """Root conditions and every group, all AND-combined."""
    return all(evaluate_condition(document, c) for c in description.conditions) and all(
        evaluate_group(document, g) for g in description.groups
    )


class LocalTransport:
    """In-memory entity store speaking the Transport protocol.

    Structure:
        _collections[entity_name] = [document, ...] in insertion order

    Documents carry their id under ``_id``. Responses are deep copies, so
    callers never alias stored documents.
    """

    def __init__(self, collections: Mapping[str, Iterable[Mapping[str, Any]]] | None = None):
        """Initialize local transport.

        Args:
            collections: Optional initial documents per entity name.
        """
        self._collections: dict[str, list[dict[str, Any]]] = {}
        self._lock = threading.Lock()
        for entity_name, documents in (collections or {}).items():
            self.insert_many(entity_name, documents)

    def insert(self, entity_name: str, document: Mapping[str, Any]) -> str:
        """Store a document, assigning an id if it has none.

        Returns:
            The document id.
        """
        stored = cp.deepcopy(dict(document))
        stored.setdefault(ID_KEY, uuid.uuid4().hex)
        stored[ID_KEY] = str(stored[ID_KEY])
        with self._lock:
            self._collections.setdefault(entity_name, []).append(stored)
        return str(stored[ID_KEY])

    def insert_many(self, entity_name: str, documents: Iterable[Mapping[str, Any]]) -> list[str]:
        return [self.insert(entity_name, d) for d in documents]

    def count(self, entity_name: str) -> int:
        with self._lock:
            return len(self._collections.get(entity_name, []))

    def send(self, request: TransportRequest) -> Any:
        """Evaluate a request against the stored collections.

        Raises:
            RemoteError: If a map reduce is attached or ordering compares
                incompatible values.
        """
        description = request.description
        if description.map_reduce is not None:
            raise RemoteError("Map reduce is not supported by LocalTransport", status_code=501)

        with self._lock:
            documents = list(self._collections.get(description.entity, []))

        if request.operation is Operation.FIND_BY_ID:
            found = next((d for d in documents if d.get(ID_KEY) == request.entity_id), None)
            return {"result": cp.deepcopy(found)}

        selected = [d for d in documents if matches(d, description)]
        if request.operation is Operation.COUNT_ALL:
            return {"count": len(selected)}

        selected = self._page(self._order(selected, description), description)
        if request.operation is Operation.FIND_ONE:
            return {"result": cp.deepcopy(selected[0]) if selected else None}
        return {"results": cp.deepcopy(selected)}

    async def send_async(self, request: TransportRequest) -> Any:
        """Evaluate a request (async).

        Note: evaluation is synchronous, this runs in thread executor.
        """
        return await asyncio.get_running_loop().run_in_executor(None, lambda: self.send(request))

    def close(self) -> None:
        pass

    @staticmethod
    def _order(
        documents: list[dict[str, Any]], description: QueryDescription
    ) -> list[dict[str, Any]]:
        order = description.order
        if order is None:
            return documents

        key = order.key
        # Missing keys sort before present ones in both directions
        missing = [d for d in documents if _lookup(d, key) is _MISSING]
        present = [d for d in documents if _lookup(d, key) is not _MISSING]
        try:
            present.sort(
                key=lambda d: _lookup(d, key),
                reverse=order.direction is SortDirection.DESCENDING,
            )
        except TypeError as e:
            raise RemoteError(f"Cannot order by {key!r}: {e}", status_code=400) from e
        return missing + present

    @staticmethod
    def _page(
        documents: list[dict[str, Any]], description: QueryDescription
    ) -> list[dict[str, Any]]:
        start = description.skip
        if description.limit:
            return documents[start : start + description.limit]
        return documents[start:]
