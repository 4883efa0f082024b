"""Shared fixtures: a small in-memory site served through httpx.MockTransport."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Tuple

import httpx
import pytest

from webmap.config import MapperSettings
from webmap.fetcher import HttpxFetcher
from webmap.mapper import SiteMapper

HOST = "https://example.com"

HOME_HTML = """<!DOCTYPE html>
<html>
<head>
  <link rel="stylesheet" href="/style.css">
  <script src="/app.js"></script>
</head>
<body>
  <a href="/about">About</a>
  <a href="docs/intro">Intro</a>
  <img src="/logo.png">
  <a href="https://other.org/x">Elsewhere</a>
</body>
</html>
"""

SITE: Dict[str, Tuple[int, str]] = {
    "https://example.com/": (200, HOME_HTML),
    "https://example.com/about": (
        200,
        '<p><a href="/">Home</a> <a href="::::bad">Broken</a></p><img src="/team.jpg">',
    ),
    "https://example.com/missing": (
        404,
        '<html><body><a href="/">Back home</a><img src="/404.png"></body></html>',
    ),
    "https://example.com/self": (200, '<a href="/self">This page</a>'),
}


@dataclass
class FakeSite:
    """Request log plus the transport that serves ``SITE``."""

    requests: List[str] = field(default_factory=list)

    def handle(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requests.append(url)
        if request.url.host == "down.example.com":
            raise httpx.ConnectError("connection refused", request=request)
        if url == "https://example.com/old":
            return httpx.Response(301, headers={"Location": "/about"})
        if url == "https://example.com/binary":
            return httpx.Response(
                200,
                content=b"\xff\xfe<a href='/x'>",
                headers={"Content-Type": "text/html; charset=utf-8"},
            )
        status, body = SITE.get(url, (404, "<p>Not found</p>"))
        return httpx.Response(
            status,
            content=body.encode("utf-8"),
            headers={"Content-Type": "text/html; charset=utf-8"},
        )

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)


@pytest.fixture
def site() -> FakeSite:
    return FakeSite()


@pytest.fixture
def settings() -> MapperSettings:
    return MapperSettings()


@pytest.fixture
def mapper(site: FakeSite, settings: MapperSettings) -> SiteMapper:
    return SiteMapper(fetcher=HttpxFetcher(transport=site.transport), settings=settings)
