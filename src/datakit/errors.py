"""Error taxonomy for query construction and execution.

Two families that callers must never confuse:

- ``UsageError``: the caller broke the query contract (bad operand shape, stale
  group scope, single-result fetch with a map reduce attached, ...). Raised
  synchronously at the offending call, before anything is dispatched.
- ``RemoteError``: the request was dispatched and failed (network, auth,
  malformed response, cache miss under ``CACHE_ONLY``). Never raised by the
  execution methods; delivered as ``QueryResult.error`` or as the ``error``
  argument of a background callback.

Usage:
    result = query.find_all()
    if result.error is not None:
        ...  # RemoteError subclass
"""

from __future__ import annotations

from typing import Any


class DataKitError(Exception):
    """Base class for all DataKit errors."""

    pass


class UsageError(DataKitError):
    """Caller-contract violation. Programmer error, never a remote failure."""

    pass


class InvalidOperandError(UsageError, TypeError):
    """Operand shape does not match the operator's declared shape."""

    pass


class InvalidKeyError(UsageError, ValueError):
    """Condition or ordering key is not a non-empty string."""

    pass


class InvalidScopeError(UsageError):
    """Condition added through a group scope that no longer exists."""

    pass


class InvalidEntityNameError(UsageError, ValueError):
    """Query created without a usable entity name."""

    pass


class InvalidOptionError(UsageError, ValueError):
    """Limit, skip or cache policy set to an unusable value."""

    pass


class MapReduceNotAllowedError(UsageError):
    """Single-result fetch requested on a query with a map reduce attached."""

    pass


class NotConfiguredError(UsageError):
    """Query executed without a dispatcher and no process default configured."""

    pass


class RemoteError(DataKitError):
    """Dispatched request failed.

    Attributes:
        detail: Human readable description, usually taken from the server.
        status_code: HTTP status when the failure came from a response.
    """

    def __init__(self, detail: Any = None, status_code: int | None = None):
        self.detail = detail or "The remote service reported an error."
        self.status_code = status_code
        super().__init__(str(self.detail))


class NetworkError(RemoteError):
    """Service unreachable or connection dropped."""

    pass


class AuthenticationError(RemoteError):
    """Service rejected the configured credentials."""

    pass


class MalformedResponseError(RemoteError):
    """Response body could not be interpreted."""

    pass


class CacheMissError(RemoteError):
    """``CACHE_ONLY`` query found nothing in the local cache."""

    pass
