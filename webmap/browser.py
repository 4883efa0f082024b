"""Fetch adapter that renders pages in crawl4ai's headless browser.

Use this backend for sites whose links are written by client-side scripts;
the extracted markup is the rendered DOM rather than the raw response body.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from crawl4ai import AsyncWebCrawler, CrawlerRunConfig

from .auth import AuthConfig, build_browser_config
from .config import build_fetch_run_config
from .fetcher import FetchResponse, TransportError

LOGGER = logging.getLogger(__name__)


class BrowserFetcher:
    """Fetcher backed by ``crawl4ai.AsyncWebCrawler``."""

    def __init__(
        self,
        *,
        timeout: float = 30.0,
        auth: Optional[AuthConfig] = None,
        run_config: Optional[CrawlerRunConfig] = None,
    ) -> None:
        self.timeout = timeout
        self.auth = auth
        self.run_config = run_config
        self.browser_config = build_browser_config(auth)

    async def fetch(self, url: str) -> FetchResponse:
        run_config = self.run_config or build_fetch_run_config(timeout=self.timeout)
        LOGGER.debug("Rendering %s", url)
        try:
            async with AsyncWebCrawler(config=self.browser_config) as crawler:
                container = await crawler.arun(url=url, config=run_config)
        except Exception as exc:
            raise TransportError(f"Browser fetch failed: {exc}", url=url) from exc

        result = _first_result(container)
        if result is None:
            raise TransportError(f"Crawler returned no results for {url}", url=url)
        return response_from_result(result, url)


def response_from_result(result: Any, requested_url: str) -> FetchResponse:
    """Map a crawl4ai ``CrawlResult`` onto a :class:`FetchResponse`."""
    html = result.html or ""
    if not result.success and not html:
        reason = result.error_message or "Crawler returned no content"
        raise TransportError(reason, url=requested_url)

    status_code = result.status_code
    if status_code is None:
        raise TransportError(
            f"Crawler reported no status code for {requested_url}", url=requested_url
        )

    final_url = (
        getattr(result, "redirected_url", None) or result.url or requested_url
    )
    return FetchResponse(
        status_code=int(status_code),
        final_url=str(final_url),
        body=html.encode("utf-8"),
        encoding="utf-8",
        headers=dict(result.response_headers or {}),
    )


def _first_result(container: Any) -> Any:
    try:
        return container[0]
    except (IndexError, TypeError):
        return None
