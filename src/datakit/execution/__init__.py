"""Query execution: dispatch, cache policies and result resolution.

Usage:
    from datakit.execution import Dispatcher, QueryResult, configure
"""

from datakit.execution.dispatcher import (
    Dispatcher,
    configure,
    get_default_dispatcher,
    reset_default_dispatcher,
)
from datakit.execution.result import (
    QueryResult,
    resolve,
    resolve_count,
    resolve_entities,
    resolve_entity,
)
from datakit.execution.runner import BackgroundRunner

__all__ = [
    # Dispatch
    "Dispatcher",
    "configure",
    "get_default_dispatcher",
    "reset_default_dispatcher",
    "BackgroundRunner",
    # Results
    "QueryResult",
    "resolve",
    "resolve_entities",
    "resolve_entity",
    "resolve_count",
]
