"""Tests for webmap.fetcher."""

from __future__ import annotations

import json

import httpx
import pytest

from webmap.auth import AuthConfig, AuthConfigError
from webmap.fetcher import (
    DecodeError,
    FetchResponse,
    HttpxFetcher,
    TransportError,
    decode_body,
)


def _recording_transport(seen, status=200, content=b"<p>ok</p>", headers=None):
    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(status, content=content, headers=headers or {})

    return httpx.MockTransport(handler)


class TestHttpxFetcher:
    @pytest.mark.asyncio
    async def test_fetch_returns_status_and_body(self):
        seen = []
        fetcher = HttpxFetcher(
            transport=_recording_transport(
                seen, status=201, headers={"Content-Type": "text/html; charset=iso-8859-1"}
            )
        )
        response = await fetcher.fetch("https://example.com/")
        assert response.status_code == 201
        assert response.final_url == "https://example.com/"
        assert response.body == b"<p>ok</p>"
        assert response.encoding == "iso-8859-1"
        assert response.headers["content-type"].startswith("text/html")

    @pytest.mark.asyncio
    async def test_default_headers(self):
        seen = []
        fetcher = HttpxFetcher(user_agent="webmap-test/1", transport=_recording_transport(seen))
        await fetcher.fetch("https://example.com/")
        assert seen[0].headers["User-Agent"] == "webmap-test/1"
        assert "text/html" in seen[0].headers["Accept"]

    @pytest.mark.asyncio
    async def test_auth_headers_and_cookies_sent(self):
        seen = []
        auth = AuthConfig(
            headers={"Authorization": "Bearer xyz"},
            cookies=[{"name": "sid", "value": "abc123"}],
        )
        fetcher = HttpxFetcher(auth=auth, transport=_recording_transport(seen))
        await fetcher.fetch("https://example.com/")
        assert seen[0].headers["Authorization"] == "Bearer xyz"
        assert "sid=abc123" in seen[0].headers["Cookie"]

    @pytest.mark.asyncio
    async def test_follows_redirects(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/start":
                return httpx.Response(302, headers={"Location": "https://example.com/end"})
            return httpx.Response(200, content=b"done")

        fetcher = HttpxFetcher(transport=httpx.MockTransport(handler))
        response = await fetcher.fetch("https://example.com/start")
        assert response.status_code == 200
        assert response.final_url == "https://example.com/end"

    @pytest.mark.asyncio
    async def test_transport_error_wrapped(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("no route to host", request=request)

        fetcher = HttpxFetcher(transport=httpx.MockTransport(handler))
        with pytest.raises(TransportError) as excinfo:
            await fetcher.fetch("https://example.com/")
        assert excinfo.value.url == "https://example.com/"
        assert isinstance(excinfo.value.__cause__, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_timeout_is_transport_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timed out", request=request)

        fetcher = HttpxFetcher(timeout=0.01, transport=httpx.MockTransport(handler))
        with pytest.raises(TransportError):
            await fetcher.fetch("https://example.com/")

    @pytest.mark.asyncio
    async def test_context_manager_shares_client(self):
        seen = []
        fetcher = HttpxFetcher(transport=_recording_transport(seen))
        async with fetcher:
            client = fetcher._client
            async with fetcher:
                assert fetcher._client is client
            assert fetcher._client is client
            await fetcher.fetch("https://example.com/a")
            await fetcher.fetch("https://example.com/b")
        assert fetcher._client is None
        assert len(seen) == 2


class TestDecodeBody:
    def test_utf8_default(self):
        response = FetchResponse(200, "https://example.com/", "héllo".encode("utf-8"))
        assert decode_body(response) == "héllo"

    def test_declared_charset(self):
        response = FetchResponse(
            200, "https://example.com/", "héllo".encode("latin-1"), encoding="latin-1"
        )
        assert decode_body(response) == "héllo"

    def test_invalid_bytes_for_declared_charset(self):
        response = FetchResponse(
            200, "https://example.com/", b"\xff\xfe\xfa", encoding="utf-8"
        )
        with pytest.raises(DecodeError) as excinfo:
            decode_body(response)
        assert excinfo.value.encoding == "utf-8"
        assert excinfo.value.url == "https://example.com/"

    def test_undeclared_non_utf8_returns_bytes(self):
        body = '<meta charset="iso-8859-1"><p>Men\xfc</p>'.encode("latin-1")
        assert decode_body(FetchResponse(200, "https://example.com/", body)) == body

    def test_unknown_charset(self):
        response = FetchResponse(200, "https://example.com/", b"abc", encoding="no-such-codec")
        with pytest.raises(DecodeError) as excinfo:
            decode_body(response)
        assert "Unknown charset" in str(excinfo.value)

    def test_empty_body(self):
        assert decode_body(FetchResponse(204, "https://example.com/", b"")) == ""


class TestHttpxFetcherAuth:
    def test_missing_storage_state_fails_at_construction(self):
        with pytest.raises(AuthConfigError, match="not found"):
            HttpxFetcher(auth=AuthConfig(storage_state="/nonexistent/state.json"))

    @pytest.mark.asyncio
    async def test_storage_state_cookies_sent(self, tmp_path):
        state = tmp_path / "state.json"
        state.write_text(
            json.dumps({"cookies": [{"name": "session", "value": "s1"}], "origins": []}),
            encoding="utf-8",
        )
        seen = []
        fetcher = HttpxFetcher(
            auth=AuthConfig(storage_state=str(state)),
            transport=_recording_transport(seen),
        )
        state.unlink()
        await fetcher.fetch("https://example.com/")
        assert "session=s1" in seen[0].headers["Cookie"]
