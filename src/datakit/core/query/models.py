"""Condition model types and the compiled query description.

Usage:
    Condition("age", Operator.GREATER_THAN, 18)
    Group(Logic.OR, (Condition("city", Operator.EQUAL_TO, "NYC"),))

    description = compile_query(query)
    description.encode()  # canonical JSON bytes
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum, Flag
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from datakit.core.aggregation import MapReduce


class OperandShape(Enum):
    """Operand arity an operator accepts."""

    VALUE = "value"  # single scalar
    ARRAY = "array"  # list or tuple of values
    STRING = "string"  # str only
    REGEX = "regex"  # RegexOperand
    NONE = "none"  # operand must be None


class Operator(Enum):
    """Per-key predicates. Values are the operator names used on the wire."""

    EQUAL_TO = "eq"
    LESS_THAN = "lt"
    LESS_THAN_OR_EQUAL_TO = "lte"
    GREATER_THAN = "gt"
    GREATER_THAN_OR_EQUAL_TO = "gte"
    NOT_EQUAL_TO = "ne"
    CONTAINED_IN = "in"
    NOT_CONTAINED_IN = "nin"
    CONTAINS_ALL_IN = "all"
    MATCHES_REGEX = "regex"
    CONTAINS_STRING = "contains"
    HAS_PREFIX = "prefix"
    HAS_SUFFIX = "suffix"
    EXISTS = "exists"
    NOT_EXISTS = "notExists"

    @property
    def shape(self) -> OperandShape:
        return _OPERAND_SHAPES[self]


_OPERAND_SHAPES = {
    Operator.EQUAL_TO: OperandShape.VALUE,
    Operator.LESS_THAN: OperandShape.VALUE,
    Operator.LESS_THAN_OR_EQUAL_TO: OperandShape.VALUE,
    Operator.GREATER_THAN: OperandShape.VALUE,
    Operator.GREATER_THAN_OR_EQUAL_TO: OperandShape.VALUE,
    Operator.NOT_EQUAL_TO: OperandShape.VALUE,
    Operator.CONTAINED_IN: OperandShape.ARRAY,
    Operator.NOT_CONTAINED_IN: OperandShape.ARRAY,
    Operator.CONTAINS_ALL_IN: OperandShape.ARRAY,
    Operator.MATCHES_REGEX: OperandShape.REGEX,
    Operator.CONTAINS_STRING: OperandShape.STRING,
    Operator.HAS_PREFIX: OperandShape.STRING,
    Operator.HAS_SUFFIX: OperandShape.STRING,
    Operator.EXISTS: OperandShape.NONE,
    Operator.NOT_EXISTS: OperandShape.NONE,
}


class Logic(Enum):
    """How members of a group combine."""

    AND = "and"
    OR = "or"


class SortDirection(Enum):
    ASCENDING = "asc"
    DESCENDING = "desc"


class CachePolicy(Enum):
    """How a query's local cache interacts with the remote fetch."""

    IGNORE_CACHE = "ignore_cache"
    """Always fetch remotely; the cache is neither read nor written. Default."""

    CACHE_ONLY = "cache_only"
    """Only read the cache; a miss is reported as CacheMissError."""

    CACHE_ELSE_LOAD = "cache_else_load"
    """Serve from cache on hit, otherwise fetch remotely and store the response."""

    LOAD_AND_CACHE = "load_and_cache"
    """Always fetch remotely and refresh the cache with the response."""


class RegexOption(Flag):
    """Regex matching options, serialized as flag letters."""

    NONE = 0
    CASE_INSENSITIVE = 1
    MULTILINE = 2
    DOTALL = 4
    VERBOSE = 8

    def letters(self) -> str:
        return "".join(
            letter for option, letter in _REGEX_OPTION_LETTERS if option in self
        )


_REGEX_OPTION_LETTERS = (
    (RegexOption.CASE_INSENSITIVE, "i"),
    (RegexOption.MULTILINE, "m"),
    (RegexOption.DOTALL, "s"),
    (RegexOption.VERBOSE, "x"),
)


@dataclass(frozen=True, slots=True)
class RegexOperand:
    """Pattern plus options for MATCHES_REGEX."""

    pattern: str
    options: RegexOption = RegexOption.NONE


@dataclass(frozen=True, slots=True)
class Condition:
    """Single predicate over one entity key.

    Attributes:
        key: Entity key the predicate applies to.
        operator: Predicate operator.
        operand: Scalar, tuple of values, RegexOperand or None, per operator.shape.
    """

    key: str
    operator: Operator
    operand: Any = None

    def to_wire(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "op": self.operator.value,
            "operand": encode_operand(self.operand),
        }


@dataclass(frozen=True, slots=True)
class Group:
    """One level of grouped conditions, AND-combined with the query root."""

    logic: Logic
    members: tuple[Condition, ...] = ()

    def to_wire(self) -> dict[str, Any]:
        return {"logic": self.logic.value, "members": [m.to_wire() for m in self.members]}


@dataclass(frozen=True, slots=True)
class Ordering:
    key: str
    direction: SortDirection = SortDirection.ASCENDING

    def to_wire(self) -> dict[str, str]:
        return {"key": self.key, "dir": self.direction.value}


@dataclass(frozen=True)
class QueryDescription:
    """Immutable snapshot of a query, ready to hand to a transport.

    Safe to share between threads and to dispatch concurrently.

    Attributes:
        entity: Target entity collection.
        conditions: Root conditions in insertion order.
        groups: Groups in the order they were opened.
        order: Active ordering, if any.
        limit: Maximum results (0 = backend default).
        skip: Results to skip. Always 0 when a map reduce is attached.
        map_reduce: Attached map reduce job, forwarded untouched.
        cache_policy: Cache directive for this execution.
    """

    entity: str
    conditions: tuple[Condition, ...] = ()
    groups: tuple[Group, ...] = ()
    order: Ordering | None = None
    limit: int = 0
    skip: int = 0
    map_reduce: MapReduce | None = None
    cache_policy: CachePolicy = CachePolicy.IGNORE_CACHE

    def to_wire(self) -> dict[str, Any]:
        """Plain-dict form. ``order`` and ``aggregation`` are omitted when unset."""
        wire: dict[str, Any] = {
            "entity": self.entity,
            "conditions": [c.to_wire() for c in self.conditions],
            "groups": [g.to_wire() for g in self.groups],
            "limit": self.limit,
            "skip": self.skip,
            "cachePolicy": self.cache_policy.value,
        }
        if self.order is not None:
            wire["order"] = self.order.to_wire()
        if self.map_reduce is not None:
            wire["aggregation"] = self.map_reduce.to_wire()
        return wire

    def encode(self) -> bytes:
        """Canonical JSON bytes. Identical state always encodes identically."""
        return json.dumps(
            self.to_wire(), sort_keys=True, separators=(",", ":"), ensure_ascii=False
        ).encode("utf-8")

    def digest(self) -> str:
        """Stable content hash, used as the cache key."""
        return hashlib.sha256(self.encode()).hexdigest()


def encode_operand(operand: Any) -> Any:
    """Convert an operand to JSON-compatible values."""
    if isinstance(operand, RegexOperand):
        return {"pattern": operand.pattern, "options": operand.options.letters()}
    if isinstance(operand, list | tuple):
        return [encode_operand(v) for v in operand]
    if isinstance(operand, datetime | date):
        return {"$date": operand.isoformat()}
    return operand
