"""DataKit: query building and execution for a schema-less remote entity store.

Usage:
    import datakit
    from datakit import Query, ClientSettings

    datakit.configure(ClientSettings(endpoint="https://data.example.com", secret="..."))

    query = Query("Person")
    query.where_key_greater_than("age", 18)
    query.or_().where_key_equal_to("city", "NYC").where_key_equal_to("city", "LA")
    query.order_ascending_by_key("name")
    query.limit = 10

    result = query.find_all()
    if result.ok:
        for person in result.value:
            print(person["name"])

    query.count_all_in_background(lambda count, error: print(count, error))
"""

__version__ = "0.1.0"

# Core primitives
from datakit.core import (
    CachePolicy,
    Condition,
    Entity,
    Group,
    GroupScope,
    Logic,
    MapReduce,
    Operator,
    Ordering,
    Query,
    QueryDescription,
    RegexOption,
    SortDirection,
    compile_query,
)

# Errors
from datakit.errors import (
    AuthenticationError,
    CacheMissError,
    DataKitError,
    InvalidEntityNameError,
    InvalidKeyError,
    InvalidOperandError,
    InvalidOptionError,
    InvalidScopeError,
    MalformedResponseError,
    MapReduceNotAllowedError,
    NetworkError,
    NotConfiguredError,
    RemoteError,
    UsageError,
)

# Configuration
from datakit.config import ClientSettings

# Cache
from datakit.cache import MemoryCache, ResultCache

# Transport
from datakit.transport import (
    HttpTransport,
    LocalTransport,
    Operation,
    Transport,
    TransportRequest,
)

# Execution
from datakit.execution import (
    Dispatcher,
    QueryResult,
    configure,
    get_default_dispatcher,
)

__all__ = [
    # Version
    "__version__",
    # Core
    "Query",
    "GroupScope",
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
    "Entity",
    "MapReduce",
    # Execution
    "Dispatcher",
    "QueryResult",
    "configure",
    "get_default_dispatcher",
    # Transport
    "Transport",
    "TransportRequest",
    "Operation",
    "HttpTransport",
    "LocalTransport",
    # Cache
    "ResultCache",
    "MemoryCache",
    # Config
    "ClientSettings",
    # Errors
    "DataKitError",
    "UsageError",
    "InvalidOperandError",
    "InvalidKeyError",
    "InvalidScopeError",
    "InvalidEntityNameError",
    "InvalidOptionError",
    "MapReduceNotAllowedError",
    "NotConfiguredError",
    "RemoteError",
    "NetworkError",
    "AuthenticationError",
    "MalformedResponseError",
    "CacheMissError",
]
