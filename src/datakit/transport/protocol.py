"""Transport protocol for swappable backends.

A transport takes a compiled request and returns the raw decoded response
body, or raises a RemoteError. Retries and timeouts are the transport's
business; the dispatcher never retries.

Usage:
    transport = HttpTransport(ClientSettings(endpoint="https://api.example.com"))
    dispatcher = Dispatcher(transport)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from datakit.core.query.models import QueryDescription


class Operation(Enum):
    """What the remote side should do with a query description."""

    FIND_ALL = "findAll"
    FIND_ONE = "findOne"
    FIND_BY_ID = "findById"
    COUNT_ALL = "countAll"


@dataclass(frozen=True, slots=True)
class TransportRequest:
    """One dispatch: an operation over an immutable query description."""

    operation: Operation
    description: QueryDescription
    entity_id: str | None = None

    def to_wire(self) -> dict[str, Any]:
        wire: dict[str, Any] = {
            "operation": self.operation.value,
            "query": self.description.to_wire(),
        }
        if self.entity_id is not None:
            wire["id"] = self.entity_id
        return wire


@runtime_checkable
class Transport(Protocol):
    """Submits requests to the remote entity store.

    Expected raw responses, by operation:
        FIND_ALL:   {"results": [entity, ...]}
        FIND_ONE:   {"result": entity | None}
        FIND_BY_ID: {"result": entity | None}
        COUNT_ALL:  {"count": int}
    """

    def send(self, request: TransportRequest) -> Any:
        """Blocking send. Returns the decoded response body.

        Raises:
            RemoteError: On network, authentication or server failure.
        """
        ...

    async def send_async(self, request: TransportRequest) -> Any:
        """Non-blocking send (async variant of ``send``)."""
        ...

    def close(self) -> None:
        """Release connections held by the transport."""
        ...
