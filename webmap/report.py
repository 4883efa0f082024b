"""Serialisation and output helpers for a site graph."""

from __future__ import annotations

import json
import logging
from collections import Counter
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import urlsplit

import tldextract

from .graph import SiteGraph
from .identity import format_identity
from .models import InsertOutcome

LOGGER = logging.getLogger(__name__)

# Bundled public-suffix snapshot only; never fetched over the network.
_EXTRACT = tldextract.TLDExtract(suffix_list_urls=())


@lru_cache(maxsize=256)
def registrable_domain(host: str) -> Optional[str]:
    """Extract the registrable domain from a hostname."""
    if not host:
        return None
    extracted = _EXTRACT(host)
    if not extracted.domain or not extracted.suffix:
        return host
    return f"{extracted.domain}.{extracted.suffix}"


def domain_counts(graph: SiteGraph) -> Dict[str, int]:
    """Number of pages per registrable domain, largest first."""
    counts: Counter[str] = Counter()
    for _, page in graph.pages():
        hostname = (urlsplit(page.url).hostname or "").lower()
        counts[registrable_domain(hostname) or "(none)"] += 1
    return dict(counts.most_common())


def outcome_to_dict(outcome: InsertOutcome) -> Dict[str, Any]:
    return {
        "status": outcome.status.value,
        "url": outcome.url,
        "identity": (
            format_identity(outcome.identity) if outcome.identity is not None else None
        ),
        "error": outcome.error,
    }


def graph_to_dict(
    graph: SiteGraph,
    outcomes: Optional[Sequence[InsertOutcome]] = None,
) -> Dict[str, Any]:
    """Convert the graph to a JSON-serializable dict (identities as hex)."""
    data: Dict[str, Any] = {
        "hosts": [
            {
                "name": host.name,
                "last_status": host.last_status,
                "canonical_url": host.canonical_url,
            }
            for host in graph.hosts
        ],
        "pages": [
            {
                "id": format_identity(page_id),
                "url": page.url,
                "status": page.status,
                "references": [format_identity(i) for i in page.reference_ids],
                "resources": [format_identity(i) for i in page.resource_ids],
                "children": [format_identity(i) for i in page.child_ids],
            }
            for page_id, page in graph.pages()
        ],
        "resources": [
            {
                "id": format_identity(resource_id),
                "url": resource.url,
                "resource_type": resource.resource_type,
            }
            for resource_id, resource in graph.resources()
        ],
        "stats": graph.stats(),
        "domains": domain_counts(graph),
    }
    if outcomes is not None:
        data["outcomes"] = [outcome_to_dict(o) for o in outcomes]
    return data


def format_graph_markdown(
    graph: SiteGraph,
    outcomes: Optional[Sequence[InsertOutcome]] = None,
) -> str:
    """Human-readable summary: visited pages with their links, then totals."""
    lines: List[str] = []
    hosts = graph.list_hosts()
    lines.append(f"# Site map: {', '.join(hosts) if hosts else '(no hosts)'}")
    stats = graph.stats()
    lines.append(
        f"_{stats['visited_pages']} visited page(s), {stats['stub_pages']} "
        f"discovered page(s), {stats['resources']} resource(s)_"
    )
    lines.append("")

    if outcomes:
        lines.append("## Crawl results")
        for outcome in outcomes:
            suffix = f" ({outcome.error})" if outcome.error else ""
            lines.append(f"- `{outcome.status.value}` {outcome.url}{suffix}")
        lines.append("")

    for _, page in graph.pages():
        if page.is_stub:
            continue
        lines.append(f"## {page.url}")
        lines.append(f"HTTP {page.status}")
        lines.append("")
        for label, ids, lookup in (
            ("References", page.reference_ids, graph.get_page),
            ("Resources", page.resource_ids, graph.get_resource),
        ):
            if not ids:
                continue
            lines.append(f"**{label}:**")
            for item_id in ids:
                item = lookup(item_id)
                lines.append(f"- {item.url if item else format_identity(item_id)}")
            lines.append("")
        lines.append("---")
        lines.append("")

    domains = domain_counts(graph)
    if domains:
        lines.append("**Pages by domain:** " + ", ".join(
            f"{domain} ({count})" for domain, count in domains.items()
        ))
        lines.append("")

    return "\n".join(lines)


def render(
    graph: SiteGraph,
    outcomes: Optional[Sequence[InsertOutcome]] = None,
    *,
    json_output: bool = False,
) -> str:
    if json_output:
        return json.dumps(graph_to_dict(graph, outcomes), indent=2, ensure_ascii=False)
    return format_graph_markdown(graph, outcomes)


def write_output(text: str, output: Optional[str]) -> None:
    """Write to ``output`` (creating parent directories) or print to stdout."""
    if output is None:
        print(text)
        return
    path = Path(output)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    LOGGER.info("Wrote %s", path)
