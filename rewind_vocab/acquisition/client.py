"""Async HTTP client for page documents and hosted caption tracks.

WHY: Two acquisition strategies need the network: fetching the watch page
to find caption tracks, and fetching a caption track itself. This module
keeps every HTTP detail (timeouts, status handling, format coercion) behind
one client class so strategies only see text or typed failures.

HOW: Uses httpx.AsyncClient for non-blocking HTTP. CaptionHttpClient is an
async context manager: enter it to open the connection pool, exit to close
it. A transport can be injected (httpx.MockTransport in tests).

RULES:
- Always use the async context manager (async with CaptionHttpClient() as c:)
- Non-2xx responses and httpx errors raise TransientIOFailure
- No retries here: the acquisition chain is the retry mechanism
- subtitle_url() forces fmt=json3 regardless of what the track URL carries
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from rewind_vocab.config import (
    HTTP_TIMEOUT_S,
    SUBTITLE_FORMAT_PARAM,
    SUBTITLE_STRUCTURED_FORMAT,
)
from rewind_vocab.errors import TransientIOFailure

logger = logging.getLogger(__name__)


def subtitle_url(base_url: str) -> str:
    """Coerce a caption track URL to the structured JSON3 format."""
    url = httpx.URL(base_url)
    return str(url.copy_set_param(SUBTITLE_FORMAT_PARAM, SUBTITLE_STRUCTURED_FORMAT))


class CaptionHttpClient:
    """Async client for fetching page documents and caption payloads.

    RULES:
    - Use as: async with CaptionHttpClient() as client: ...
    - timeout defaults to HTTP_TIMEOUT_S from config
    - transport is only for tests and custom routing
    """

    def __init__(
        self,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._timeout = timeout or HTTP_TIMEOUT_S
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "CaptionHttpClient":
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self._timeout, connect=self._timeout),
            follow_redirects=True,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._client:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        """Return the active httpx client, raising if not in context manager."""
        if self._client is None:
            raise RuntimeError(
                "CaptionHttpClient must be used as an async context manager: "
                "async with CaptionHttpClient() as client: ..."
            )
        return self._client

    async def get_text(self, url: str, strategy: str) -> str:
        """GET ``url`` and return the body as text.

        Raises:
            TransientIOFailure: On transport errors or non-2xx status.
        """
        client = self._ensure_client()
        try:
            resp = await client.get(url)
        except httpx.HTTPError as exc:
            raise TransientIOFailure(strategy, "Request to {} failed: {}".format(url, exc))

        if resp.status_code != 200:
            raise TransientIOFailure(
                strategy, "Fetch of {} failed with status {}".format(url, resp.status_code)
            )
        return resp.text

    async def fetch_page(self, url: str, strategy: str = "page_document") -> str:
        return await self.get_text(url, strategy)

    async def fetch_subtitle(self, base_url: str, strategy: str = "subtitle_file") -> str:
        url = subtitle_url(base_url)
        logger.debug("Fetching subtitle track %s", url)
        return await self.get_text(url, strategy)
