"""In-memory graph of hosts, pages and embedded resources.

Pages and resources live in two tables keyed by 64-bit identity (see
:mod:`webmap.identity`). Pages refer to other pages and to resources by id
only, so the graph has no back-references and nothing is ever removed.

All mutation goes through :meth:`SiteGraph.reserve` / :meth:`SiteGraph.commit`
under one lock: a root identity is reserved before its fetch starts and the
page plus every stub it discovered are written in a single commit.
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, List, Optional, Sequence, Set, Tuple

from .identity import identity
from .models import Host, Page, Resource

LOGGER = logging.getLogger(__name__)

# (identity, absolute url) pairs in document order
LinkTargets = Sequence[Tuple[int, str]]


class SiteGraph:
    """Mutable index of discovered hosts, pages and resources."""

    def __init__(self, *, host_scoped_identity: bool = True) -> None:
        self.host_scoped_identity = host_scoped_identity
        self._hosts: List[Host] = []
        self._pages: Dict[int, Page] = {}
        self._resources: Dict[int, Resource] = {}
        self._pending: Set[int] = set()
        self._lock = threading.Lock()

    def identity_for(self, base: str, url: str) -> int:
        """Identity of ``url`` discovered from ``base``."""
        return identity(base if self.host_scoped_identity else "", url)

    # ------------------------------------------------------------------
    # Hosts
    # ------------------------------------------------------------------

    def add_host(self, host: Host) -> None:
        with self._lock:
            self._hosts.append(host)

    @property
    def hosts(self) -> List[Host]:
        with self._lock:
            return list(self._hosts)

    def list_hosts(self) -> List[str]:
        return [host.name for host in self.hosts]

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get_page(self, page_id: int) -> Optional[Page]:
        with self._lock:
            return self._pages.get(page_id)

    def get_resource(self, resource_id: int) -> Optional[Resource]:
        with self._lock:
            return self._resources.get(resource_id)

    def has_page(self, page_id: int) -> bool:
        with self._lock:
            return page_id in self._pages

    def has_resource(self, resource_id: int) -> bool:
        with self._lock:
            return resource_id in self._resources

    def is_visited(self, page_id: int) -> bool:
        """True once a root crawl for ``page_id`` has been committed."""
        with self._lock:
            return self._is_visited(page_id)

    def pages(self) -> List[Tuple[int, Page]]:
        with self._lock:
            return list(self._pages.items())

    def resources(self) -> List[Tuple[int, Resource]]:
        with self._lock:
            return list(self._resources.items())

    def list_pages(self) -> List[str]:
        return [page.url for _, page in self.pages()]

    def list_resources(self) -> List[str]:
        return [resource.url for _, resource in self.resources()]

    # ------------------------------------------------------------------
    # Insertion
    # ------------------------------------------------------------------

    def reserve(self, page_id: int) -> bool:
        """Claim ``page_id`` for a root crawl.

        Returns False if the id is already visited or another crawl holds it.
        A stub under the same id does not block the reservation.
        """
        with self._lock:
            if page_id in self._pending or self._is_visited(page_id):
                return False
            self._pending.add(page_id)
            return True

    def release(self, page_id: int) -> None:
        """Drop a reservation without writing anything."""
        with self._lock:
            self._pending.discard(page_id)

    def commit(
        self,
        page_id: int,
        page: Page,
        *,
        references: LinkTargets = (),
        resources: LinkTargets = (),
    ) -> None:
        """Write a crawled root page together with the links it discovered.

        Unknown references become stub pages and unknown resources become
        resource records; existing entries are left untouched. The root page
        itself always replaces whatever is stored under ``page_id``.
        """
        with self._lock:
            new_stubs = 0
            for ref_id, url in references:
                if ref_id not in self._pages:
                    self._pages[ref_id] = Page(url=url)
                    new_stubs += 1
            new_resources = 0
            for res_id, url in resources:
                if res_id not in self._resources:
                    self._resources[res_id] = Resource(url=url)
                    new_resources += 1
            self._pages[page_id] = page
            self._pending.discard(page_id)
        LOGGER.debug(
            "Committed %s with %d new stub(s) and %d new resource(s)",
            page.url,
            new_stubs,
            new_resources,
        )

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def stats(self) -> Dict[str, int]:
        with self._lock:
            visited = sum(1 for page in self._pages.values() if not page.is_stub)
            return {
                "hosts": len(self._hosts),
                "pages": len(self._pages),
                "visited_pages": visited,
                "stub_pages": len(self._pages) - visited,
                "resources": len(self._resources),
            }

    def dangling_ids(self) -> List[Tuple[int, str, int]]:
        """Every (page id, link kind, missing id) whose target is not stored."""
        missing: List[Tuple[int, str, int]] = []
        with self._lock:
            for page_id, page in self._pages.items():
                for ref_id in page.reference_ids:
                    if ref_id not in self._pages:
                        missing.append((page_id, "reference", ref_id))
                for res_id in page.resource_ids:
                    if res_id not in self._resources:
                        missing.append((page_id, "resource", res_id))
        return missing

    def _is_visited(self, page_id: int) -> bool:
        page = self._pages.get(page_id)
        return page is not None and not page.is_stub
