"""Generation collaborator client — posts one request and streams back the SSE body."""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from typing import Optional, Protocol

import httpx

from inkdiagram.config import settings
from inkdiagram.engine.cancellation import CancellationToken
from inkdiagram.engine.errors import UpstreamError
from inkdiagram.models.requests import InterpretStreamRequest

logger = logging.getLogger(__name__)


class Collaborator(Protocol):
    """Anything that turns one request into a stream of SSE bytes."""

    def stream(
        self, request: InterpretStreamRequest, token: CancellationToken
    ) -> AsyncIterator[bytes]: ...


def _error_message(body: bytes, status_code: int) -> str:
    try:
        data = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        data = None
    if isinstance(data, dict) and data.get("error"):
        return str(data["error"])
    return f"Generation request failed with HTTP {status_code}"


class HttpCollaborator:
    """
    Async client for the interpret-stream endpoint.

    No timeout or retry is applied here; pass a configured `httpx.AsyncClient`
    to control transport behaviour.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.url = url or settings.collaborator_url
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client (lazy init)."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=None)
        return self._client

    async def aclose(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._client and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "HttpCollaborator":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    async def stream(
        self, request: InterpretStreamRequest, token: CancellationToken
    ) -> AsyncIterator[bytes]:
        """
        POST the request and yield raw body chunks.

        Raises:
            Cancelled: If `token` has already fired.
            UpstreamError: On a non-2xx response.
        """
        token.raise_if_cancelled()
        client = await self._get_client()

        async with client.stream("POST", self.url, json=request.to_wire()) as response:
            if response.is_error:
                body = await response.aread()
                message = _error_message(body, response.status_code)
                logger.warning("Collaborator answered HTTP %d: %s", response.status_code, message)
                raise UpstreamError(message, status_code=response.status_code)

            async for chunk in response.aiter_bytes():
                yield chunk
