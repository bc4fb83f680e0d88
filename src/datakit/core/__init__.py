"""Core functionalities: query model, entities and aggregation handles.

Architecture Note:
    core/ holds the query building blocks with no I/O. Execution, transport
    and caching live in execution/, transport/ and cache/.
"""

from datakit.core.aggregation import MapReduce
from datakit.core.entity import Entity
from datakit.core.query import (
    CachePolicy,
    Condition,
    ConditionSet,
    Group,
    GroupScope,
    Logic,
    Operator,
    Ordering,
    Query,
    QueryDescription,
    RegexOption,
    SortDirection,
    compile_query,
)

__all__ = [
    # Entity
    "Entity",
    # Aggregation
    "MapReduce",
    # Query
    "Query",
    "GroupScope",
    "ConditionSet",
    "Condition",
    "Group",
    "Logic",
    "Operator",
    "RegexOption",
    "Ordering",
    "SortDirection",
    "CachePolicy",
    "QueryDescription",
    "compile_query",
]
