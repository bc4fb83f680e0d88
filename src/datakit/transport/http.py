"""HTTP transport implementing the Transport protocol with httpx.

Usage:
    from datakit.config import ClientSettings
    from datakit.transport.http import HttpTransport

    transport = HttpTransport(ClientSettings(endpoint="https://data.example.com", secret="..."))
    raw = transport.send(request)

    # Custom clients (proxies, mocks)
    transport = HttpTransport(settings, client=httpx.Client(transport=mock))
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from datakit.config import ClientSettings
from datakit.errors import (
    AuthenticationError,
    MalformedResponseError,
    NetworkError,
    RemoteError,
)
from datakit.transport.protocol import Operation, TransportRequest

logger = logging.getLogger(__name__)

QUERY_PATH = "/query"
SECRET_HEADER = "x-datakit-secret"


def _error_detail(response: httpx.Response) -> str:
    """Pull a readable message out of an error response."""
    try:
        data = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(data, dict):
        return str(data.get("detail") or data.get("error") or data)
    return str(data)


def _parse_response(request: TransportRequest, response: httpx.Response) -> Any:
    """Turn an HTTP response into a raw body or a RemoteError.

    A 404 on a lookup by id is a valid empty outcome, not a failure.
    """
    status = response.status_code
    if status in (401, 403):
        raise AuthenticationError(_error_detail(response), status_code=status)
    if status == 404 and request.operation is Operation.FIND_BY_ID:
        return {"result": None}
    if status >= 400:
        raise RemoteError(_error_detail(response), status_code=status)

    try:
        return response.json()
    except ValueError as e:
        raise MalformedResponseError(
            f"Response is not valid JSON: {response.text[:200]!r}", status_code=status
        ) from e


class HttpTransport:
    """Sends query requests to ``{endpoint}/query`` as JSON.

    Attributes:
        settings: Endpoint, secret and timeout in use.
    """

    def __init__(
        self,
        settings: ClientSettings | None = None,
        client: httpx.Client | None = None,
        async_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            settings: Client settings. Loaded from the environment if omitted.
            client: Sync client to use instead of building one from settings.
            async_client: Async client to use. When omitted, each async send
                opens a short-lived client so the transport is not tied to one
                event loop.
        """
        self._settings = settings or ClientSettings()
        self._client = client or httpx.Client(**self._client_kwargs())
        self._async_client = async_client

    @property
    def settings(self) -> ClientSettings:
        return self._settings

    def _client_kwargs(self) -> dict[str, Any]:
        headers = {"Accept": "application/json"}
        if self._settings.secret:
            headers[SECRET_HEADER] = self._settings.secret
        return {
            "base_url": self._settings.endpoint.rstrip("/"),
            "headers": headers,
            "timeout": self._settings.timeout,
        }

    def send(self, request: TransportRequest) -> Any:
        """Blocking send.

        Raises:
            NetworkError: If the service could not be reached.
            AuthenticationError: On 401/403.
            RemoteError: On any other error status.
            MalformedResponseError: If the body is not JSON.
        """
        logger.debug(
            "POST %s %s on %s", QUERY_PATH, request.operation.value, request.description.entity
        )
        try:
            response = self._client.post(QUERY_PATH, json=request.to_wire())
        except httpx.TransportError as e:
            raise NetworkError(f"Request to {self._settings.endpoint} failed: {e}") from e
        return _parse_response(request, response)

    async def send_async(self, request: TransportRequest) -> Any:
        """Non-blocking send. Same error mapping as ``send``."""
        logger.debug(
            "POST %s %s on %s (async)",
            QUERY_PATH,
            request.operation.value,
            request.description.entity,
        )
        try:
            if self._async_client is not None:
                response = await self._async_client.post(QUERY_PATH, json=request.to_wire())
            else:
                async with httpx.AsyncClient(**self._client_kwargs()) as client:
                    response = await client.post(QUERY_PATH, json=request.to_wire())
        except httpx.TransportError as e:
            raise NetworkError(f"Request to {self._settings.endpoint} failed: {e}") from e
        return _parse_response(request, response)

    def close(self) -> None:
        self._client.close()
