"""Condition tree: root conditions plus one level of AND/OR groups.

Usage:
    conditions = ConditionSet()
    conditions.add_root_condition("age", Operator.GREATER_THAN, 18)

    handle = conditions.open_group(Logic.OR)
    conditions.add_grouped_condition(handle, "city", Operator.EQUAL_TO, "NYC")
    conditions.add_grouped_condition(handle, "city", Operator.EQUAL_TO, "LA")

    conditions.clear()  # handle is now stale
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from datakit.core.query.models import Condition, Group, Logic, Operator
from datakit.core.query.operations import make_condition
from datakit.errors import InvalidScopeError


@dataclass(frozen=True, slots=True)
class ScopeHandle:
    """Reference to one group of a ConditionSet.

    Valid only for the set that issued it and only until that set is cleared.
    """

    owner: int  # id() of the issuing ConditionSet
    generation: int
    index: int


@dataclass(slots=True)
class _GroupSlot:
    logic: Logic
    members: list[Condition] = field(default_factory=list)


class ConditionSet:
    """Mutable predicate tree owned by a single query.

    Not thread-safe for mutation. Snapshots returned by ``root_conditions``
    and ``groups`` are immutable tuples.
    """

    def __init__(self) -> None:
        self._root: list[Condition] = []
        self._groups: list[_GroupSlot] = []
        self._generation = 0

    def add_root_condition(self, key: str, operator: Operator, operand: Any = None) -> Condition:
        """Append a condition to the root (implicit AND).

        Raises:
            InvalidOperandError: If operand shape does not match operator.
            InvalidKeyError: If key is empty.
        """
        condition = make_condition(key, operator, operand)
        self._root.append(condition)
        return condition

    def open_group(self, logic: Logic) -> ScopeHandle:
        """Append a new empty group and return a handle bound to it."""
        self._groups.append(_GroupSlot(Logic(logic)))
        return ScopeHandle(id(self), self._generation, len(self._groups) - 1)

    def add_grouped_condition(
        self, handle: ScopeHandle, key: str, operator: Operator, operand: Any = None
    ) -> Condition:
        """Append a condition to the group the handle refers to.

        Raises:
            InvalidScopeError: If handle is stale or was issued by another set.
            InvalidOperandError: If operand shape does not match operator.
        """
        self._check_handle(handle)
        condition = make_condition(key, operator, operand)
        self._groups[handle.index].members.append(condition)
        return condition

    def is_valid(self, handle: ScopeHandle) -> bool:
        return (
            handle.owner == id(self)
            and handle.generation == self._generation
            and 0 <= handle.index < len(self._groups)
        )

    def clear(self) -> None:
        """Drop all conditions and groups; outstanding handles become stale."""
        self._root.clear()
        self._groups.clear()
        self._generation += 1

    def root_conditions(self) -> tuple[Condition, ...]:
        return tuple(self._root)

    def groups(self) -> tuple[Group, ...]:
        return tuple(Group(slot.logic, tuple(slot.members)) for slot in self._groups)

    def is_empty(self) -> bool:
        return not self._root and not self._groups

    def _check_handle(self, handle: ScopeHandle) -> None:
        if not isinstance(handle, ScopeHandle) or handle.owner != id(self):
            raise InvalidScopeError("Scope handle does not belong to this query")
        if handle.generation != self._generation:
            raise InvalidScopeError("Scope handle is stale: the query was reset after opening it")
        if not 0 <= handle.index < len(self._groups):
            raise InvalidScopeError(f"Scope handle refers to missing group {handle.index}")
