"""HTTP fetch adapter.

A fetcher turns an absolute URL into a :class:`FetchResponse` (status code,
post-redirect URL, body bytes) or raises :class:`TransportError`. Anything
with an ``async fetch(url)`` method satisfies :class:`Fetcher`; the default
implementation is :class:`HttpxFetcher`.

``HttpxFetcher`` opens a client per call unless it is used as an async
context manager, in which case all fetches inside the block share one
connection pool::

    async with HttpxFetcher(timeout=10) as fetcher:
        first = await fetcher.fetch("https://example.com/")
        second = await fetcher.fetch("https://example.com/about")
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Protocol, Union

import httpx

from .auth import AuthConfig
from .config import DEFAULT_USER_AGENT

LOGGER = logging.getLogger(__name__)

_ACCEPT = "text/html,application/xhtml+xml;q=0.9,*/*;q=0.8"


@dataclass(slots=True)
class FetchResponse:
    """What the graph needs from one HTTP exchange."""

    status_code: int
    final_url: str
    body: bytes
    encoding: Optional[str] = None
    headers: Dict[str, str] = field(default_factory=dict)


class TransportError(Exception):
    """Raised when a URL could not be fetched at all (DNS, TLS, timeout ...)."""

    def __init__(self, message: str, url: str = ""):
        self.url = url
        super().__init__(message)


class DecodeError(Exception):
    """Raised when a response body is not representable as text."""

    def __init__(self, message: str, url: str = "", encoding: str = ""):
        self.url = url
        self.encoding = encoding
        super().__init__(message)


class Fetcher(Protocol):
    async def fetch(self, url: str) -> FetchResponse: ...


def decode_body(response: FetchResponse) -> Union[str, bytes]:
    """Decode a body for the link extractor.

    A charset declared by the server is applied strictly. Without one the
    body is tried as UTF-8, and if that fails the raw bytes are returned so
    the HTML tokenizer can honour an in-document ``<meta charset>``.

    Raises:
        DecodeError: On an unknown declared charset or bytes invalid for it.
    """
    if response.encoding is None:
        try:
            return response.body.decode("utf-8")
        except UnicodeDecodeError:
            LOGGER.debug(
                "%s is not UTF-8 and declares no charset; deferring to markup",
                response.final_url,
            )
            return response.body

    encoding = response.encoding
    try:
        return response.body.decode(encoding)
    except LookupError as exc:
        raise DecodeError(
            f"Unknown charset {encoding!r}",
            url=response.final_url,
            encoding=encoding,
        ) from exc
    except UnicodeDecodeError as exc:
        raise DecodeError(
            f"Body is not valid {encoding}: {exc.reason} at byte {exc.start}",
            url=response.final_url,
            encoding=encoding,
        ) from exc


class HttpxFetcher:
    """Fetcher backed by ``httpx.AsyncClient`` that follows redirects."""

    def __init__(
        self,
        *,
        timeout: float = 30.0,
        user_agent: str = DEFAULT_USER_AGENT,
        auth: Optional[AuthConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.timeout = timeout
        self.user_agent = user_agent
        self.auth = auth
        self._transport = transport
        # Storage state is read here, never during a fetch
        self._cookies: Optional[httpx.Cookies] = None
        if auth is not None and not auth.is_empty:
            self._cookies = auth.build_httpx_cookies()
        self._client: Optional[httpx.AsyncClient] = None
        self._depth = 0

    def _build_client(self) -> httpx.AsyncClient:
        headers = {"User-Agent": self.user_agent, "Accept": _ACCEPT}
        if self.auth is not None:
            headers.update(self.auth.headers or {})
        return httpx.AsyncClient(
            headers=headers,
            cookies=self._cookies,
            timeout=self.timeout,
            follow_redirects=True,
            transport=self._transport,
        )

    async def __aenter__(self) -> "HttpxFetcher":
        if self._client is None:
            self._client = self._build_client()
        self._depth += 1
        return self

    async def __aexit__(self, *exc_info) -> None:
        self._depth -= 1
        if self._depth == 0 and self._client is not None:
            client, self._client = self._client, None
            await client.aclose()

    async def fetch(self, url: str) -> FetchResponse:
        if self._client is not None:
            return await self._get(self._client, url)
        async with self._build_client() as client:
            return await self._get(client, url)

    async def _get(self, client: httpx.AsyncClient, url: str) -> FetchResponse:
        LOGGER.debug("GET %s", url)
        try:
            response = await client.get(url)
        except (httpx.RequestError, httpx.InvalidURL) as exc:
            raise TransportError(f"Request failed: {exc}", url=url) from exc

        final_url = str(response.url)
        if final_url != url:
            LOGGER.debug("Redirected %s -> %s", url, final_url)
        return FetchResponse(
            status_code=response.status_code,
            final_url=final_url,
            body=response.content,
            encoding=response.charset_encoding,
            headers=dict(response.headers),
        )
