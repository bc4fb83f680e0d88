"""Query operations: operand validation and compilation."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from datakit.core.query.models import (
    Condition,
    Operator,
    OperandShape,
    QueryDescription,
    RegexOperand,
    encode_operand,
)
from datakit.errors import InvalidKeyError, InvalidOperandError

if TYPE_CHECKING:
    from datakit.core.query.builder import Query

_COLLECTION_TYPES = (list, tuple, set, frozenset, dict)


def validate_key(key: Any) -> str:
    """Check that a condition or ordering key is usable.

    Raises:
        InvalidKeyError: If key is not a non-empty string.
    """
    if not isinstance(key, str) or not key:
        raise InvalidKeyError(f"Key must be a non-empty string, got {key!r}")
    return key


def validate_operand(operator: Operator, operand: Any) -> Any:
    """Check operand shape against the operator and normalize it.

    Array operands are normalized to tuples so a stored Condition cannot be
    mutated through the caller's list.

    Args:
        operator: Predicate operator.
        operand: Value supplied by the caller.

    Returns:
        Normalized operand.

    Raises:
        InvalidOperandError: If operand does not match operator.shape.
    """
    shape = operator.shape

    if shape is OperandShape.NONE:
        if operand is not None:
            raise InvalidOperandError(f"{operator.name} takes no operand, got {operand!r}")
        return None

    if shape is OperandShape.ARRAY:
        if not isinstance(operand, list | tuple):
            raise InvalidOperandError(
                f"{operator.name} requires a list or tuple operand, got {type(operand).__name__}"
            )
        return _check_encodable(operator, tuple(operand))

    if shape is OperandShape.STRING:
        if not isinstance(operand, str):
            raise InvalidOperandError(
                f"{operator.name} requires a string operand, got {type(operand).__name__}"
            )
        return operand

    if shape is OperandShape.REGEX:
        if isinstance(operand, str):
            return RegexOperand(operand)
        if not isinstance(operand, RegexOperand) or not isinstance(operand.pattern, str):
            raise InvalidOperandError(
                f"{operator.name} requires a pattern string or RegexOperand, "
                f"got {type(operand).__name__}"
            )
        return operand

    # VALUE
    if operand is None or isinstance(operand, (*_COLLECTION_TYPES, RegexOperand)):
        raise InvalidOperandError(
            f"{operator.name} requires a single value, got {type(operand).__name__}"
        )
    return _check_encodable(operator, operand)


def _check_encodable(operator: Operator, operand: Any) -> Any:
    """Reject operands with no JSON form (Decimal, bytes, NaN, arbitrary objects)."""
    try:
        json.dumps(encode_operand(operand), allow_nan=False)
    except (TypeError, ValueError) as e:
        raise InvalidOperandError(f"{operator.name} operand cannot be encoded: {e}") from e
    return operand


def make_condition(key: Any, operator: Operator, operand: Any = None) -> Condition:
    """Validate and build a Condition."""
    if not isinstance(operator, Operator):
        raise InvalidOperandError(f"Unknown operator: {operator!r}")
    return Condition(validate_key(key), operator, validate_operand(operator, operand))


def compile_query(query: Query) -> QueryDescription:
    """Snapshot a query's current state.

    Condition and group order is preserved verbatim. ``skip`` compiles to 0
    whenever a map reduce is attached.

    Args:
        query: Query to compile.

    Returns:
        Immutable description for dispatch.
    """
    conditions = query.conditions
    return QueryDescription(
        entity=query.entity_name,
        conditions=conditions.root_conditions(),
        groups=conditions.groups(),
        order=query.ordering,
        limit=query.limit,
        skip=0 if query.map_reduce is not None else query.skip,
        map_reduce=query.map_reduce,
        cache_policy=query.cache_policy,
    )
