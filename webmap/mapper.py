"""Crawl step: fetch one URL, extract its links and commit them to the graph.

Example usage:

    from webmap import SiteMapper

    mapper = SiteMapper()
    mapper.register_host("https://example.com")
    outcome = mapper.insert_root("https://example.com", "/docs/")
    print(outcome.status, mapper.list_resources())

Every network-facing method has an ``*_async`` coroutine; the plain method is
a synchronous wrapper around it.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import AsyncIterator, Iterable, List, Optional, Sequence, Tuple

from .auth import AuthConfig
from .browser import BrowserFetcher
from .config import (
    MapperSettings,
    RunConfigOverrides,
    build_fetch_run_config,
    load_settings,
)
from .extractor import extract
from .fetcher import DecodeError, Fetcher, HttpxFetcher, TransportError, decode_body
from .graph import SiteGraph
from .models import Host, InsertOutcome, InsertStatus, Page
from .resolver import ResolutionError, normalize_url, resolve

LOGGER = logging.getLogger(__name__)


def build_fetcher(
    settings: MapperSettings,
    *,
    auth: Optional[AuthConfig] = None,
    overrides: Optional[RunConfigOverrides] = None,
) -> Fetcher:
    """Create the fetch backend named by ``settings.backend``."""
    if settings.backend == "browser":
        return BrowserFetcher(
            timeout=settings.fetch_timeout,
            auth=auth,
            run_config=build_fetch_run_config(
                timeout=settings.fetch_timeout, overrides=overrides
            ),
        )
    return HttpxFetcher(
        timeout=settings.fetch_timeout,
        user_agent=settings.user_agent,
        auth=auth,
    )


class SiteMapper:
    """Runs crawl steps against one :class:`SiteGraph`."""

    def __init__(
        self,
        graph: Optional[SiteGraph] = None,
        fetcher: Optional[Fetcher] = None,
        settings: Optional[MapperSettings] = None,
    ) -> None:
        self.settings = settings or load_settings()
        self.graph = graph or SiteGraph(
            host_scoped_identity=self.settings.host_scoped_identity
        )
        self.fetcher = fetcher or build_fetcher(self.settings)

    @contextlib.asynccontextmanager
    async def session(self) -> AsyncIterator["SiteMapper"]:
        """Share one fetcher connection pool across the calls in the block."""
        if hasattr(self.fetcher, "__aenter__"):
            async with self.fetcher:  # type: ignore[attr-defined]
                yield self
        else:
            yield self

    # ------------------------------------------------------------------
    # Hosts
    # ------------------------------------------------------------------

    async def register_host_async(self, name: str) -> bool:
        """Fetch ``name`` and record it as a crawl root.

        Returns False, registering nothing, if ``name`` is not an absolute URL
        or cannot be fetched. Hosts are never deduplicated.
        """
        try:
            url = normalize_url(name, schemes=self.settings.allowed_schemes)
        except ResolutionError as exc:
            LOGGER.warning("Not registering %r: %s", name, exc)
            return False

        try:
            response = await self.fetcher.fetch(url)
        except TransportError as exc:
            LOGGER.warning("Not registering %s: %s", name, exc)
            return False

        self.graph.add_host(
            Host(
                name=name,
                last_status=response.status_code,
                canonical_url=response.final_url,
            )
        )
        LOGGER.info("Registered host %s (HTTP %d)", name, response.status_code)
        return True

    def register_host(self, name: str) -> bool:
        """Synchronous wrapper for :meth:`register_host_async`."""
        return asyncio.run(self.register_host_async(name))

    def list_hosts(self) -> List[str]:
        return self.graph.list_hosts()

    def list_resources(self) -> List[str]:
        return self.graph.list_resources()

    # ------------------------------------------------------------------
    # Root insertion
    # ------------------------------------------------------------------

    async def insert_root_async(self, host: str, path: str) -> InsertOutcome:
        """Fetch ``path`` (resolved against ``host``) and add it to the graph.

        The root identity is ``identity(host, resolved url)`` both for the
        visited check and for the stored key. Links found on the page are
        resolved against ``host`` as well. Nothing is written unless the
        whole step succeeds; links that fail to resolve are skipped.

        Returns:
            An :class:`InsertOutcome`; this method does not raise for
            resolution, transport or decoding failures.
        """
        try:
            target = resolve(host, path, schemes=self.settings.allowed_schemes)
        except ResolutionError as exc:
            LOGGER.warning("Cannot resolve %r against %r: %s", path, host, exc)
            return InsertOutcome(
                status=InsertStatus.RESOLUTION_FAILED, url=path, error=str(exc)
            )

        root_id = self.graph.identity_for(host, target)
        if not self.graph.reserve(root_id):
            LOGGER.debug("Already visited %s", target)
            return InsertOutcome(status=InsertStatus.ALREADY_VISITED, url=target)

        try:
            return await self._crawl_reserved(host, target, root_id)
        finally:
            self.graph.release(root_id)

    def insert_root(self, host: str, path: str) -> InsertOutcome:
        """Synchronous wrapper for :meth:`insert_root_async`."""
        return asyncio.run(self.insert_root_async(host, path))

    async def insert_roots_async(
        self,
        targets: Iterable[Tuple[str, str]],
        *,
        concurrency: Optional[int] = None,
    ) -> List[InsertOutcome]:
        """Insert several ``(host, path)`` roots, returning outcomes in input order."""
        semaphore = asyncio.Semaphore(max(1, concurrency or self.settings.concurrency))

        async def _bounded(host: str, path: str) -> InsertOutcome:
            async with semaphore:
                return await self.insert_root_async(host, path)

        async with self.session():
            outcomes = await asyncio.gather(
                *(_bounded(host, path) for host, path in targets)
            )
        return list(outcomes)

    def insert_roots(
        self,
        targets: Iterable[Tuple[str, str]],
        *,
        concurrency: Optional[int] = None,
    ) -> List[InsertOutcome]:
        """Synchronous wrapper for :meth:`insert_roots_async`."""
        return asyncio.run(self.insert_roots_async(targets, concurrency=concurrency))

    async def _crawl_reserved(
        self, host: str, target: str, root_id: int
    ) -> InsertOutcome:
        try:
            response = await self.fetcher.fetch(target)
        except TransportError as exc:
            LOGGER.warning("Fetch failed for %s: %s", target, exc)
            return InsertOutcome(
                status=InsertStatus.FETCH_FAILED, url=target, error=str(exc)
            )

        try:
            markup = decode_body(response)
        except DecodeError as exc:
            LOGGER.warning("Cannot decode %s: %s", response.final_url, exc)
            return InsertOutcome(
                status=InsertStatus.DECODE_FAILED, url=target, error=str(exc)
            )

        links = extract(markup)
        references = self._resolve_links(host, links.references)
        resources = self._resolve_links(host, links.resources)

        page = Page(
            url=response.final_url,
            status=response.status_code,
            resource_ids=[res_id for res_id, _ in resources],
            reference_ids=[ref_id for ref_id, _ in references],
        )
        self.graph.commit(root_id, page, references=references, resources=resources)
        LOGGER.info(
            "Mapped %s (HTTP %d): %d reference(s), %d resource(s)",
            response.final_url,
            response.status_code,
            len(references),
            len(resources),
        )
        return InsertOutcome(
            status=InsertStatus.EXTRACTED, url=response.final_url, identity=root_id
        )

    def _resolve_links(self, host: str, raw_links: Sequence[str]) -> List[Tuple[int, str]]:
        resolved: List[Tuple[int, str]] = []
        for raw in raw_links:
            try:
                url = resolve(host, raw, schemes=self.settings.allowed_schemes)
            except ResolutionError as exc:
                LOGGER.debug("Dropping link %r: %s", raw, exc)
                continue
            resolved.append((self.graph.identity_for(host, url), url))
        return resolved


async def map_site_async(
    host: str,
    paths: Sequence[str] = ("/",),
    *,
    settings: Optional[MapperSettings] = None,
    fetcher: Optional[Fetcher] = None,
    graph: Optional[SiteGraph] = None,
) -> Tuple[SiteMapper, List[InsertOutcome]]:
    """Register ``host`` and insert each of ``paths`` as a root.

    Returns the mapper (holding the graph) and one outcome per path. If the
    host cannot be registered, the paths are still attempted: registration
    and root insertion are independent operations.
    """
    mapper = SiteMapper(graph=graph, fetcher=fetcher, settings=settings)
    async with mapper.session():
        await mapper.register_host_async(host)
        outcomes = await mapper.insert_roots_async([(host, path) for path in paths])
    return mapper, outcomes


def map_site(
    host: str,
    paths: Sequence[str] = ("/",),
    *,
    settings: Optional[MapperSettings] = None,
    fetcher: Optional[Fetcher] = None,
    graph: Optional[SiteGraph] = None,
) -> Tuple[SiteMapper, List[InsertOutcome]]:
    """Synchronous wrapper for :func:`map_site_async`."""
    return asyncio.run(
        map_site_async(host, paths, settings=settings, fetcher=fetcher, graph=graph)
    )
