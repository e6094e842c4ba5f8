# src/botflow/runtime/http.py
"""HTTP client handed to routines as ``http``.

A thin wrapper over a shared httpx.AsyncClient. Only http and https URLs
are accepted; anything else (file://, ftp://, data:) is refused before a
request is built.
"""

from __future__ import annotations

import urllib.parse
from collections.abc import Mapping
from typing import Any

import httpx
import structlog

from botflow.contracts.errors import ForbiddenUrlError
from botflow.core.logging import get_logger

ALLOWED_SCHEMES = frozenset({"http", "https"})


def validate_url_scheme(url: str) -> None:
    """Raise ForbiddenUrlError unless ``url`` is http or https with a host."""
    parsed = urllib.parse.urlparse(url)
    if parsed.scheme.lower() not in ALLOWED_SCHEMES:
        raise ForbiddenUrlError(f"Forbidden scheme: {parsed.scheme or '(none)'}")
    if not parsed.netloc:
        raise ForbiddenUrlError(f"URL has no host: {url}")


class PluginHttpClient:
    """Async HTTP access for routines.

    The underlying client is created lazily and reused across invocations;
    call ``aclose`` on shutdown.
    """

    def __init__(
        self,
        timeout: float = 10.0,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._logger = logger if logger is not None else get_logger(__name__)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout),
                follow_redirects=False,
                transport=self._transport,
            )
        return self._client

    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str] | None = None,
        content: str | bytes | None = None,
    ) -> httpx.Response:
        """Send one request. Transport errors propagate to the routine's handler."""
        validate_url_scheme(url)
        self._logger.debug("http_request", method=method, url=url)
        response = await self._get_client().request(method, url, headers=dict(headers or {}), content=content)
        self._logger.debug("http_response", method=method, url=url, status_code=response.status_code)
        return response

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> PluginHttpClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
