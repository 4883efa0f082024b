"""MCP server exposing the site graph operations as tools.

All tools share one process-wide graph, so hosts and pages accumulate across
calls for the lifetime of the server.

Usage:
    # STDIO (for desktop MCP clients)
    python -m webmap.mcp_server

    # HTTP (for remote access)
    python -m webmap.mcp_server --transport http --port 8000

Environment Variables:
    WEBMAP_FETCH_TIMEOUT, WEBMAP_BACKEND, WEBMAP_HOST_SCOPED_IDENTITY, ...
    (see webmap.config.load_settings)
"""

from __future__ import annotations

import argparse
import json
import logging
from typing import Optional

from dotenv import load_dotenv
from fastmcp import FastMCP

from .auth import load_auth_from_env
from .config import load_settings
from .mapper import SiteMapper, build_fetcher
from .report import format_graph_markdown, graph_to_dict, outcome_to_dict

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%H:%M:%S",
)
LOGGER = logging.getLogger(__name__)

load_dotenv()

mcp = FastMCP(
    name="Web Map",
    instructions="""
    Builds an in-memory graph of a web site's pages, links and resources.

    1. register_host: register a crawl root (the URL is fetched once)
    2. insert_root: fetch one page under a host and record its links
    3. list_hosts / list_resources: inspect what has been collected
    4. graph_summary: the whole graph as markdown or JSON

    A page is fetched at most once per server lifetime; repeated
    insert_root calls for it report "already_visited".
    """,
)

_MAPPER: Optional[SiteMapper] = None


def get_mapper() -> SiteMapper:
    """Return the shared mapper, creating it from the environment on first use."""
    global _MAPPER
    if _MAPPER is None:
        settings = load_settings()
        _MAPPER = SiteMapper(
            fetcher=build_fetcher(settings, auth=load_auth_from_env()),
            settings=settings,
        )
    return _MAPPER


def set_mapper(mapper: Optional[SiteMapper]) -> None:
    """Replace the shared mapper (None resets to a fresh one on next use)."""
    global _MAPPER
    _MAPPER = mapper


async def register_host(name: str) -> str:
    """
    Register a host URL as a crawl root.

    Args:
        name: Absolute URL of the host, e.g. "https://example.com".

    Returns:
        JSON object with "host" and "registered" (false if the URL is invalid
        or could not be fetched).
    """
    registered = await get_mapper().register_host_async(name)
    return json.dumps({"host": name, "registered": registered})


async def insert_root(host: str, path: str = "/") -> str:
    """
    Fetch one page and add it, its links and its resources to the graph.

    Args:
        host: Host URL the path is resolved against.
        path: Relative path or absolute URL of the page (default "/").

    Returns:
        JSON object with "status" (extracted, already_visited,
        resolution_failed, fetch_failed, decode_failed), "url",
        "identity" and "error".
    """
    outcome = await get_mapper().insert_root_async(host, path)
    return json.dumps(outcome_to_dict(outcome))


async def list_hosts() -> str:
    """List registered host names as a JSON array."""
    return json.dumps(get_mapper().list_hosts())


async def list_resources() -> str:
    """List the URLs of every embedded resource found so far as a JSON array."""
    return json.dumps(get_mapper().list_resources())


async def graph_summary(output_format: str = "markdown") -> str:
    """
    Describe the whole graph.

    Args:
        output_format: "markdown" (default) or "json".
    """
    graph = get_mapper().graph
    if output_format == "json":
        return json.dumps(graph_to_dict(graph), indent=2, ensure_ascii=False)
    return format_graph_markdown(graph)


for _tool in (register_host, insert_root, list_hosts, list_resources, graph_summary):
    mcp.tool(_tool)


def main():
    parser = argparse.ArgumentParser(
        description="Run the web map MCP server.",
    )
    parser.add_argument(
        "--transport",
        choices=["stdio", "http"],
        default="stdio",
        help="Transport protocol (default: stdio)",
    )
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host to bind to for HTTP transport (default: 127.0.0.1)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to bind to for HTTP transport (default: 8000)",
    )
    args = parser.parse_args()

    if args.transport == "http":
        LOGGER.info("Starting MCP server on http://%s:%d/mcp", args.host, args.port)
        mcp.run(transport="http", host=args.host, port=args.port)
    else:
        LOGGER.info("Starting MCP server with STDIO transport")
        mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
