"""Query builder and grouped-condition scopes.

Usage:
    query = Query("Person")
    query.where_key_greater_than("age", 18)

    # Conditions added through a scope land in that group only
    query.or_().where_key_equal_to("city", "NYC").where_key_equal_to("city", "LA")

    query.order_descending_by_key("age")
    query.limit = 10

    result = query.find_all()
    if result.ok:
        for person in result.value:
            print(person["name"])
"""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Any

from datakit.core.aggregation import MapReduce
from datakit.core.query.conditions import ConditionSet, ScopeHandle
from datakit.core.query.models import (
    CachePolicy,
    Logic,
    Operator,
    Ordering,
    QueryDescription,
    RegexOperand,
    RegexOption,
    SortDirection,
)
from datakit.core.query.operations import compile_query, validate_key
from datakit.errors import (
    InvalidEntityNameError,
    InvalidOperandError,
    InvalidOptionError,
    MapReduceNotAllowedError,
    NotConfiguredError,
)
from datakit.transport.protocol import Operation, TransportRequest

if TYPE_CHECKING:
    from datakit.core.entity import Entity
    from datakit.errors import RemoteError
    from datakit.execution.dispatcher import Dispatcher
    from datakit.execution.result import QueryResult


class ConditionBuilder:
    """Predicate methods shared by Query and GroupScope.

    Subclasses decide where a condition goes by implementing ``_add_condition``
    and ``_owner``. Every predicate returns ``self`` so calls chain.
    """

    __slots__ = ()

    def _add_condition(self, key: str, operator: Operator, operand: Any = None) -> None:
        raise NotImplementedError

    def _owner(self) -> Query:
        raise NotImplementedError

    # Logical grouping

    def or_(self) -> GroupScope:
        """Open a new OR group on the owning query and return its scope."""
        return self._owner()._open_scope(Logic.OR)

    def and_(self) -> GroupScope:
        """Open a new AND group on the owning query and return its scope."""
        return self._owner()._open_scope(Logic.AND)

    # Comparison

    def where_key_equal_to(self, key: str, value: Any) -> ConditionBuilder:
        self._add_condition(key, Operator.EQUAL_TO, value)
        return self

    def where_key_less_than(self, key: str, value: Any) -> ConditionBuilder:
        self._add_condition(key, Operator.LESS_THAN, value)
        return self

    def where_key_less_than_or_equal_to(self, key: str, value: Any) -> ConditionBuilder:
        self._add_condition(key, Operator.LESS_THAN_OR_EQUAL_TO, value)
        return self

    def where_key_greater_than(self, key: str, value: Any) -> ConditionBuilder:
        self._add_condition(key, Operator.GREATER_THAN, value)
        return self

    def where_key_greater_than_or_equal_to(self, key: str, value: Any) -> ConditionBuilder:
        self._add_condition(key, Operator.GREATER_THAN_OR_EQUAL_TO, value)
        return self

    def where_key_not_equal_to(self, key: str, value: Any) -> ConditionBuilder:
        self._add_condition(key, Operator.NOT_EQUAL_TO, value)
        return self

    # Membership

    def where_key_contained_in(self, key: str, values: Sequence[Any]) -> ConditionBuilder:
        """Key value must be one of ``values``."""
        self._add_condition(key, Operator.CONTAINED_IN, values)
        return self

    def where_key_not_contained_in(self, key: str, values: Sequence[Any]) -> ConditionBuilder:
        """Key value must not be any of ``values``."""
        self._add_condition(key, Operator.NOT_CONTAINED_IN, values)
        return self

    def where_key_contains_all_in(self, key: str, values: Sequence[Any]) -> ConditionBuilder:
        """Key value (an array) must contain every one of ``values``."""
        self._add_condition(key, Operator.CONTAINS_ALL_IN, values)
        return self

    # Strings

    def where_key_matches_regex(
        self, key: str, pattern: str, options: RegexOption = RegexOption.NONE
    ) -> ConditionBuilder:
        """Key value must match ``pattern``.

        The pattern is checked locally so syntax errors surface here rather
        than as a remote failure.
        """
        if isinstance(pattern, str):
            try:
                re.compile(pattern)
            except re.error as e:
                raise InvalidOperandError(f"Invalid regex {pattern!r}: {e}") from e
        if not isinstance(options, RegexOption):
            raise InvalidOperandError(f"Regex options must be RegexOption, got {options!r}")
        self._add_condition(key, Operator.MATCHES_REGEX, RegexOperand(pattern, options))
        return self

    def where_key_contains_string(self, key: str, string: str) -> ConditionBuilder:
        self._add_condition(key, Operator.CONTAINS_STRING, string)
        return self

    def where_key_has_prefix(self, key: str, prefix: str) -> ConditionBuilder:
        self._add_condition(key, Operator.HAS_PREFIX, prefix)
        return self

    def where_key_has_suffix(self, key: str, suffix: str) -> ConditionBuilder:
        self._add_condition(key, Operator.HAS_SUFFIX, suffix)
        return self

    # Existence

    def where_key_exists(self, key: str) -> ConditionBuilder:
        self._add_condition(key, Operator.EXISTS)
        return self

    def where_key_does_not_exist(self, key: str) -> ConditionBuilder:
        self._add_condition(key, Operator.NOT_EXISTS)
        return self


class GroupScope(ConditionBuilder):
    """Query-shaped proxy that directs predicates into one group.

    Borrows the query: anything that is not a predicate or a grouping call
    (ordering, limit, execution) is forwarded to the query itself, for both
    reads and assignments. Becomes
    unusable for predicates once the query is reset.
    """

    __slots__ = ("_query", "_handle")

    def __init__(self, query: Query, handle: ScopeHandle):
        self._query = query
        self._handle = handle

    @property
    def handle(self) -> ScopeHandle:
        return self._handle

    def _add_condition(self, key: str, operator: Operator, operand: Any = None) -> None:
        self._query.conditions.add_grouped_condition(self._handle, key, operator, operand)

    def _owner(self) -> Query:
        return self._query

    def __getattr__(self, name: str) -> Any:
        return getattr(self._query, name)

    def __setattr__(self, name: str, value: Any) -> None:
        if name in GroupScope.__slots__:
            object.__setattr__(self, name, value)
        else:
            setattr(self._query, name, value)

    def __repr__(self) -> str:
        return f"GroupScope({self._query.entity_name!r}, group={self._handle.index})"


ResultCallback = Callable[[Any, "RemoteError | None"], None]


class Query(ConditionBuilder):
    """Filtered, ordered, paginated fetch against one entity collection.

    A single Query is not safe for concurrent mutation. Executions compile
    an immutable snapshot first, so one query can be dispatched many times,
    including concurrently.

    Args:
        entity_name: Collection to query. Fixed for the lifetime of the query.
        dispatcher: Dispatcher to execute with. Defaults to the one installed
            by ``datakit.configure`` at execution time.
        cache_policy: Initial cache policy, restored by ``reset()``. Defaults to
            the dispatcher settings' ``default_cache_policy``, or IGNORE_CACHE
            when no dispatcher is bound or configured.
    """

    def __init__(
        self,
        entity_name: str,
        dispatcher: Dispatcher | None = None,
        cache_policy: CachePolicy | None = None,
    ):
        if not isinstance(entity_name, str) or not entity_name:
            raise InvalidEntityNameError(
                f"Entity name must be a non-empty string, got {entity_name!r}"
            )
        self._entity_name = entity_name
        self._dispatcher = dispatcher
        self._default_cache_policy = (
            CachePolicy(cache_policy) if cache_policy is not None else self._configured_policy()
        )
        self._conditions = ConditionSet()
        self._ordering: Ordering | None = None
        self._limit = 0
        self._skip = 0
        self._map_reduce: MapReduce | None = None
        self._cache_policy = self._default_cache_policy

    def __repr__(self) -> str:
        return f"Query({self._entity_name!r})"

    # Options

    @property
    def entity_name(self) -> str:
        return self._entity_name

    @property
    def conditions(self) -> ConditionSet:
        return self._conditions

    @property
    def ordering(self) -> Ordering | None:
        return self._ordering

    @property
    def limit(self) -> int:
        """Maximum number of results. 0 leaves it to the backend."""
        return self._limit

    @limit.setter
    def limit(self, value: int) -> None:
        self._limit = _unsigned("limit", value)

    @property
    def skip(self) -> int:
        """Results to skip. Ignored while a map reduce is attached."""
        return self._skip

    @skip.setter
    def skip(self, value: int) -> None:
        self._skip = _unsigned("skip", value)

    @property
    def map_reduce(self) -> MapReduce | None:
        return self._map_reduce

    @map_reduce.setter
    def map_reduce(self, value: MapReduce | None) -> None:
        if value is not None and not isinstance(value, MapReduce):
            raise InvalidOptionError(f"map_reduce must be a MapReduce, got {type(value).__name__}")
        self._map_reduce = value

    @property
    def cache_policy(self) -> CachePolicy:
        return self._cache_policy

    @cache_policy.setter
    def cache_policy(self, value: CachePolicy) -> None:
        if not isinstance(value, CachePolicy):
            raise InvalidOptionError(f"cache_policy must be a CachePolicy, got {value!r}")
        self._cache_policy = value

    # Ordering

    def order_ascending_by_key(self, key: str) -> Query:
        """Sort ascending by key, replacing any previous ordering."""
        self._ordering = Ordering(validate_key(key), SortDirection.ASCENDING)
        return self

    def order_descending_by_key(self, key: str) -> Query:
        """Sort descending by key, replacing any previous ordering."""
        self._ordering = Ordering(validate_key(key), SortDirection.DESCENDING)
        return self

    # Conditions

    def _add_condition(self, key: str, operator: Operator, operand: Any = None) -> None:
        self._conditions.add_root_condition(key, operator, operand)

    def _owner(self) -> Query:
        return self

    def _open_scope(self, logic: Logic) -> GroupScope:
        return GroupScope(self, self._conditions.open_group(logic))

    def reset(self) -> None:
        """Clear conditions, groups, ordering, pagination and map reduce.

        The entity name is kept and the cache policy returns to its initial
        value. Scopes opened before the reset can no longer add conditions.
        """
        self._conditions.clear()
        self._ordering = None
        self._limit = 0
        self._skip = 0
        self._map_reduce = None
        self._cache_policy = self._default_cache_policy

    def describe(self) -> QueryDescription:
        """Compile the current state into an immutable description."""
        return compile_query(self)

    # Executing queries (blocking)

    def find_all(self) -> QueryResult[list[Entity]]:
        """Find all matching entities, blocking until the response arrives."""
        request = self._request(Operation.FIND_ALL)
        return self._get_dispatcher().execute(request)

    def find_one(self) -> QueryResult[Entity]:
        """Find the first matching entity.

        Raises:
            MapReduceNotAllowedError: If a map reduce is attached.
        """
        request = self._request(Operation.FIND_ONE)
        return self._get_dispatcher().execute(request)

    def find_by_id(self, entity_id: str) -> QueryResult[Entity]:
        """Find an entity by its unique id. Other conditions are not sent.

        Raises:
            MapReduceNotAllowedError: If a map reduce is attached.
        """
        request = self._request(Operation.FIND_BY_ID, entity_id)
        return self._get_dispatcher().execute(request)

    def count_all(self) -> QueryResult[int]:
        """Count matching entities."""
        request = self._request(Operation.COUNT_ALL)
        return self._get_dispatcher().execute(request)

    # Executing queries (asyncio)

    async def find_all_async(self) -> QueryResult[list[Entity]]:
        request = self._request(Operation.FIND_ALL)
        return await self._get_dispatcher().execute_async(request)

    async def find_one_async(self) -> QueryResult[Entity]:
        request = self._request(Operation.FIND_ONE)
        return await self._get_dispatcher().execute_async(request)

    async def find_by_id_async(self, entity_id: str) -> QueryResult[Entity]:
        request = self._request(Operation.FIND_BY_ID, entity_id)
        return await self._get_dispatcher().execute_async(request)

    async def count_all_async(self) -> QueryResult[int]:
        request = self._request(Operation.COUNT_ALL)
        return await self._get_dispatcher().execute_async(request)

    # Executing queries (background thread with callback)

    def find_all_in_background(self, callback: ResultCallback) -> None:
        """Find all matching entities without blocking.

        ``callback(entities, error)`` is invoked exactly once on the background
        runner thread, never on the calling thread.
        """
        request = self._request(Operation.FIND_ALL)
        self._get_dispatcher().execute_in_background(request, callback)

    def find_one_in_background(self, callback: ResultCallback) -> None:
        """Find the first matching entity without blocking.

        ``callback(entity, error)``; entity is None when nothing matched.

        Raises:
            MapReduceNotAllowedError: If a map reduce is attached. Raised here,
                the callback is not invoked.
        """
        request = self._request(Operation.FIND_ONE)
        self._get_dispatcher().execute_in_background(request, callback)

    def find_by_id_in_background(self, entity_id: str, callback: ResultCallback) -> None:
        request = self._request(Operation.FIND_BY_ID, entity_id)
        self._get_dispatcher().execute_in_background(request, callback)

    def count_all_in_background(self, callback: ResultCallback) -> None:
        request = self._request(Operation.COUNT_ALL)
        self._get_dispatcher().execute_in_background(request, callback)

    def _request(self, operation: Operation, entity_id: str | None = None) -> TransportRequest:
        """Validate usage for the operation and compile the request."""
        if operation in (Operation.FIND_ONE, Operation.FIND_BY_ID) and self._map_reduce is not None:
            raise MapReduceNotAllowedError(
                f"{operation.value} cannot be used while a map reduce is attached"
            )
        if operation is Operation.FIND_BY_ID:
            if not isinstance(entity_id, str) or not entity_id:
                raise InvalidOptionError(f"Entity id must be a non-empty string, got {entity_id!r}")
        return TransportRequest(operation, self.describe(), entity_id)

    def _configured_policy(self) -> CachePolicy:
        dispatcher = self._dispatcher
        if dispatcher is None:
            from datakit.execution.dispatcher import get_default_dispatcher

            try:
                dispatcher = get_default_dispatcher()
            except NotConfiguredError:
                return CachePolicy.IGNORE_CACHE
        return dispatcher.settings.default_cache_policy

    def _get_dispatcher(self) -> Dispatcher:
        if self._dispatcher is not None:
            return self._dispatcher
        from datakit.execution.dispatcher import get_default_dispatcher

        return get_default_dispatcher()


def _unsigned(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidOptionError(f"{name} must be a non-negative integer, got {value!r}")
    return value
