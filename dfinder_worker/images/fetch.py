"""Resolve a picture source location to raw bytes."""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional
from urllib.parse import unquote, urlparse

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from ..config import settings
from ..errors import FetchError

logger = logging.getLogger(__name__)

USER_AGENT = "dfinder/0.1"


def _is_transient(exc: BaseException) -> bool:
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code >= 500
    return False


class SourceFetcher:
    """
    Fetches picture bytes from http(s) URLs, ``file://`` URLs or local paths.
    Local sources are refused when ``allow_local`` is off.

    Transient HTTP failures (connection errors, 5xx) are retried with
    exponential backoff; anything else surfaces as ``FetchError``.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
        retries: Optional[int] = None,
        allow_local: bool = True,
    ):
        self._client = client
        self.allow_local = allow_local
        self._owns_client = client is None
        self.timeout = timeout if timeout is not None else settings.http_timeout
        self.retries = retries if retries is not None else settings.http_retries

    async def __aenter__(self) -> "SourceFetcher":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                headers={"User-Agent": USER_AGENT},
            )
        return self._client

    async def fetch(self, location: str) -> bytes:
        if not location:
            raise FetchError(location, "empty source location")

        parsed = urlparse(location)
        if parsed.scheme in ("http", "https"):
            return await self._fetch_http(location)
        if not self.allow_local:
            raise FetchError(location, "only http(s) sources are allowed")
        if parsed.scheme == "file":
            return await self._read_file(Path(unquote(parsed.path)), location)
        if not parsed.scheme or len(parsed.scheme) == 1:
            # bare path (a single-letter scheme is a Windows drive)
            return await self._read_file(Path(location), location)

        raise FetchError(location, f"unsupported scheme `{parsed.scheme}`")

    async def _fetch_http(self, url: str) -> bytes:
        client = self._get_client()
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(max(self.retries, 1)),
                wait=wait_exponential(multiplier=0.5, min=0.5, max=10),
                retry=retry_if_exception(_is_transient),
                reraise=True,
            ):
                with attempt:
                    response = await client.get(url)
                    response.raise_for_status()
                    return response.content
        except httpx.HTTPStatusError as e:
            raise FetchError(url, f"HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise FetchError(url, str(e) or type(e).__name__) from e

    async def _read_file(self, path: Path, location: str) -> bytes:
        try:
            return await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            raise FetchError(location, str(e)) from e
