"""Tests for webmap.mcp_server; the tool functions are called directly."""

from __future__ import annotations

import json

import pytest

from conftest import HOST

from webmap import mcp_server
from webmap.mapper import SiteMapper


@pytest.fixture
def shared_mapper(mapper):
    mcp_server.set_mapper(mapper)
    yield mapper
    mcp_server.set_mapper(None)


class TestTools:
    @pytest.mark.asyncio
    async def test_register_host(self, shared_mapper):
        result = json.loads(await mcp_server.register_host(HOST))
        assert result == {"host": HOST, "registered": True}
        assert json.loads(await mcp_server.list_hosts()) == [HOST]

    @pytest.mark.asyncio
    async def test_register_invalid_host(self, shared_mapper):
        result = json.loads(await mcp_server.register_host("example.com"))
        assert result["registered"] is False

    @pytest.mark.asyncio
    async def test_insert_root(self, shared_mapper):
        first = json.loads(await mcp_server.insert_root(HOST))
        second = json.loads(await mcp_server.insert_root(HOST, "/"))
        assert first["status"] == "extracted"
        assert len(first["identity"]) == 16
        assert second["status"] == "already_visited"
        assert second["identity"] is None

    @pytest.mark.asyncio
    async def test_insert_root_failure(self, shared_mapper):
        result = json.loads(await mcp_server.insert_root(HOST, "/binary"))
        assert result["status"] == "decode_failed"
        assert result["error"]

    @pytest.mark.asyncio
    async def test_list_resources(self, shared_mapper):
        await mcp_server.insert_root(HOST, "/about")
        assert json.loads(await mcp_server.list_resources()) == ["https://example.com/team.jpg"]

    @pytest.mark.asyncio
    async def test_graph_summary(self, shared_mapper):
        await mcp_server.register_host(HOST)
        await mcp_server.insert_root(HOST, "/")
        markdown = await mcp_server.graph_summary()
        assert markdown.startswith(f"# Site map: {HOST}")
        data = json.loads(await mcp_server.graph_summary(output_format="json"))
        assert data["stats"]["visited_pages"] == 1


class TestSharedMapper:
    def test_get_mapper_creates_default(self, monkeypatch):
        monkeypatch.delenv("WEBMAP_BACKEND", raising=False)
        for name in ("WEBMAP_AUTH_FILE", "WEBMAP_AUTH_STORAGE_STATE", "WEBMAP_AUTH_COOKIES_FILE"):
            monkeypatch.delenv(name, raising=False)
        mcp_server.set_mapper(None)
        try:
            first = mcp_server.get_mapper()
            assert isinstance(first, SiteMapper)
            assert mcp_server.get_mapper() is first
        finally:
            mcp_server.set_mapper(None)

    def test_set_mapper(self, mapper):
        mcp_server.set_mapper(mapper)
        try:
            assert mcp_server.get_mapper() is mapper
        finally:
            mcp_server.set_mapper(None)

    def test_server_name(self):
        assert mcp_server.mcp.name == "Web Map"
