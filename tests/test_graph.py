"""Tests for webmap.graph."""

from __future__ import annotations

from webmap.graph import SiteGraph
from webmap.identity import identity
from webmap.models import Host, Page, Resource

HOST = "https://example.com"


def _root(url: str, status: int = 200, **kwargs) -> Page:
    return Page(url=url, status=status, **kwargs)


class TestIdentityFor:
    def test_host_scoped(self):
        graph = SiteGraph()
        assert graph.identity_for(HOST, f"{HOST}/a") == identity(HOST, f"{HOST}/a")

    def test_global(self):
        graph = SiteGraph(host_scoped_identity=False)
        url = f"{HOST}/a"
        assert graph.identity_for(HOST, url) == graph.identity_for("https://other.org", url)
        assert graph.identity_for(HOST, url) == identity("", url)


class TestHosts:
    def test_hosts_are_not_deduplicated(self):
        graph = SiteGraph()
        graph.add_host(Host(name=HOST, last_status=200, canonical_url=f"{HOST}/"))
        graph.add_host(Host(name=HOST, last_status=200, canonical_url=f"{HOST}/"))
        assert graph.list_hosts() == [HOST, HOST]

    def test_hosts_returns_copy(self):
        graph = SiteGraph()
        graph.hosts.append(Host(name=HOST, last_status=200, canonical_url=HOST))
        assert graph.hosts == []


class TestReserve:
    def test_reserve_once(self):
        graph = SiteGraph()
        assert graph.reserve(1) is True
        assert graph.reserve(1) is False

    def test_release_allows_retry(self):
        graph = SiteGraph()
        graph.reserve(1)
        graph.release(1)
        assert graph.reserve(1) is True

    def test_visited_blocks(self):
        graph = SiteGraph()
        graph.reserve(1)
        graph.commit(1, _root(f"{HOST}/"))
        assert graph.is_visited(1)
        assert graph.reserve(1) is False

    def test_stub_does_not_block(self):
        graph = SiteGraph()
        graph.reserve(1)
        graph.commit(1, _root(f"{HOST}/"), references=[(2, f"{HOST}/about")])
        assert graph.has_page(2)
        assert not graph.is_visited(2)
        assert graph.reserve(2) is True

    def test_release_unknown_id(self):
        SiteGraph().release(42)


class TestCommit:
    def test_stubs_and_resources_created(self):
        graph = SiteGraph()
        page = _root(f"{HOST}/", reference_ids=[2, 3], resource_ids=[10])
        graph.commit(
            1,
            page,
            references=[(2, f"{HOST}/a"), (3, f"{HOST}/b")],
            resources=[(10, f"{HOST}/img.png")],
        )
        assert graph.get_page(1) is page
        assert graph.get_page(2) == Page(url=f"{HOST}/a")
        assert graph.get_page(3).is_stub
        assert graph.get_resource(10) == Resource(url=f"{HOST}/img.png")
        assert graph.dangling_ids() == []

    def test_existing_entries_untouched(self):
        graph = SiteGraph()
        graph.commit(1, _root(f"{HOST}/"), resources=[(10, f"{HOST}/first.png")])
        graph.commit(2, _root(f"{HOST}/x"), references=[(1, f"{HOST}/")], resources=[(10, f"{HOST}/second.png")])
        assert graph.get_page(1).status == 200
        assert graph.get_resource(10).url == f"{HOST}/first.png"

    def test_root_overwrites_stub(self):
        graph = SiteGraph()
        graph.commit(1, _root(f"{HOST}/"), references=[(2, f"{HOST}/about")])
        graph.commit(2, _root(f"{HOST}/about", status=404))
        assert graph.get_page(2).status == 404

    def test_self_reference(self):
        graph = SiteGraph()
        graph.reserve(1)
        page = _root(f"{HOST}/self", reference_ids=[1])
        graph.commit(1, page, references=[(1, f"{HOST}/self")])
        assert graph.get_page(1) is page
        assert graph.stats()["pages"] == 1

    def test_commit_clears_reservation(self):
        graph = SiteGraph()
        graph.reserve(1)
        graph.commit(1, _root(f"{HOST}/"))
        graph.release(1)
        assert graph.is_visited(1)


class TestInspection:
    def test_stats(self):
        graph = SiteGraph()
        graph.add_host(Host(name=HOST, last_status=200, canonical_url=f"{HOST}/"))
        graph.commit(
            1,
            _root(f"{HOST}/"),
            references=[(2, f"{HOST}/a")],
            resources=[(10, f"{HOST}/i.png"), (11, f"{HOST}/j.png")],
        )
        assert graph.stats() == {
            "hosts": 1,
            "pages": 2,
            "visited_pages": 1,
            "stub_pages": 1,
            "resources": 2,
        }

    def test_dangling_ids_reports_missing(self):
        graph = SiteGraph()
        graph.commit(1, _root(f"{HOST}/", reference_ids=[5], resource_ids=[6]))
        assert sorted(graph.dangling_ids()) == [(1, "reference", 5), (1, "resource", 6)]

    def test_listings(self):
        graph = SiteGraph()
        graph.commit(1, _root(f"{HOST}/"), references=[(2, f"{HOST}/a")], resources=[(10, f"{HOST}/i.png")])
        assert graph.list_pages() == [f"{HOST}/a", f"{HOST}/"]
        assert graph.list_resources() == [f"{HOST}/i.png"]
        assert not graph.has_resource(11)
