"""In-memory link graph of a web site.

Starting from a host, ``webmap`` fetches pages, extracts ``href`` targets
(references) and ``src`` targets (resources), resolves them to canonical
absolute URLs, keys them by a 64-bit content identity and records which page
links to what.

Example usage:

    from webmap import SiteMapper, map_site

    # One call: register the host and map a few roots
    mapper, outcomes = map_site("https://example.com", ["/", "/about"])
    for outcome in outcomes:
        print(outcome.status, outcome.url)
    print(mapper.list_resources())

    # Step by step
    mapper = SiteMapper()
    mapper.register_host("https://example.com")
    mapper.insert_root("https://example.com", "/docs/")
    mapper.insert_root("https://example.com", "/docs/")  # already_visited

    # Async
    outcome = await mapper.insert_root_async("https://example.com", "/blog/")
"""

from __future__ import annotations

from .auth import AuthConfig, AuthConfigError
from .config import MapperSettings, load_settings
from .extractor import ATTRIBUTE_KINDS, ExtractedLinks, LinkExtractor, LinkKind, extract
from .fetcher import DecodeError, FetchResponse, Fetcher, HttpxFetcher, TransportError
from .graph import SiteGraph
from .identity import format_identity, identity
from .mapper import SiteMapper, build_fetcher, map_site, map_site_async
from .models import Host, InsertOutcome, InsertStatus, Page, Resource
from .resolver import ResolutionError, ResolutionErrorKind, normalize_url, resolve

__version__ = "0.1.0"

__all__ = [
    # Graph types
    "Host",
    "Page",
    "Resource",
    "InsertOutcome",
    "InsertStatus",
    "SiteGraph",
    # Crawl step
    "SiteMapper",
    "map_site",
    "map_site_async",
    "build_fetcher",
    # Resolution and identity
    "resolve",
    "normalize_url",
    "ResolutionError",
    "ResolutionErrorKind",
    "identity",
    "format_identity",
    # Extraction
    "extract",
    "LinkExtractor",
    "ExtractedLinks",
    "LinkKind",
    "ATTRIBUTE_KINDS",
    # Fetching
    "Fetcher",
    "FetchResponse",
    "HttpxFetcher",
    "TransportError",
    "DecodeError",
    # Configuration
    "AuthConfig",
    "AuthConfigError",
    "MapperSettings",
    "load_settings",
    # MCP Server
    "mcp",
]


def get_mcp_server():
    """Get the MCP server instance (imported lazily: it configures logging on import)."""
    from .mcp_server import mcp

    return mcp


def __getattr__(name):
    if name == "mcp":
        from .mcp_server import mcp

        return mcp
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
