"""Transport layer: how compiled queries reach the remote store.

Provides:
- Transport: protocol every backend implements
- HttpTransport: JSON over HTTP (httpx)
- LocalTransport: in-memory evaluation for tests and offline use

Usage:
    from datakit.transport import HttpTransport, LocalTransport
"""

from datakit.transport.http import HttpTransport
from datakit.transport.local import LocalTransport
from datakit.transport.protocol import Operation, Transport, TransportRequest

__all__ = [
    # Protocol
    "Transport",
    "TransportRequest",
    "Operation",
    # Implementations
    "HttpTransport",
    "LocalTransport",
]
