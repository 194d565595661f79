import pytest

from linksaver.client import ApiError, LinkSyncSession, Notifier
from linksaver.schemas import LinkFilters


def _methods(requests):
    return [(request.method, request.url.path) for request in requests]


class StubClient:
    """In-memory API double; ``failures`` maps (method, id) to the error to raise."""

    def __init__(self, links=(), collections=()):
        self.links = {link["id"]: dict(link) for link in links}
        self.collections = {item["id"]: dict(item) for item in collections}
        self.failures = {}
        self.calls = []
        self.observe = None

    def _call(self, name, key):
        self.calls.append((name, key))
        if self.observe:
            self.observe()
        error = self.failures.get((name, key))
        if error:
            raise error

    def get_links(self, filters=None):
        filters = filters or LinkFilters()
        return [dict(link) for link in self.links.values() if filters.matches(link)]

    def delete_link(self, link_id):
        self._call("delete_link", link_id)
        self.links.pop(link_id, None)

    def update_link(self, link_id, patch):
        self._call("update_link", link_id)
        self.links[link_id] = patch.apply_to(self.links[link_id])
        return dict(self.links[link_id])

    def toggle_favorite(self, link_id):
        self._call("toggle_favorite", link_id)
        link = self.links[link_id]
        link["is_favorite"] = not link["is_favorite"]
        return dict(link)

    def get_collections(self):
        return [dict(item) for item in self.collections.values()]

    def delete_collection(self, collection_id):
        self._call("delete_collection", collection_id)
        self.collections.pop(collection_id, None)


def _link(link_id, **fields):
    link = {
        "id": link_id,
        "url": f"https://example.com/{link_id}",
        "title": link_id,
        "note": "",
        "description": None,
        "tags": [],
        "is_favorite": False,
        "collection_id": None,
        "created_at": f"2026-01-0{link_id[-1]}T00:00:00",
    }
    link.update(fields)
    return link


@pytest.fixture
def stub():
    return StubClient(
        links=[_link("l1", collection_id="c1"), _link("l2", collection_id="c1"), _link("l3")],
        collections=[{"id": "c1", "name": "Reading", "created_at": "2026-01-01"}],
    )


@pytest.fixture
def stub_session(stub, scheduler):
    session = LinkSyncSession(stub, scheduler=scheduler)
    session.load()
    session.load_collections()
    yield session
    session.close()


@pytest.fixture
def session(api, scheduler):
    session = LinkSyncSession(api, scheduler=scheduler)
    yield session
    session.close()


def test_undo_within_window_sends_no_delete(session, api, scheduler, sent_requests):
    link = session.create_link("https://example.com/keep")
    sent_requests.clear()

    assert session.delete_with_undo(link["id"])
    assert link["id"] not in session.store
    assert session.notifier.history[-1].action == "undo"

    assert session.undo()
    scheduler.run_pending()

    assert session.store.get(link["id"])["url"] == "https://example.com/keep"
    assert sent_requests == []
    assert [item["id"] for item in api.get_links()] == [link["id"]]


def test_delete_is_sent_once_undo_window_expires(session, api, scheduler, sent_requests):
    link = session.create_link("https://example.com/gone")
    session.delete_with_undo(link["id"])

    assert session.load() == []
    assert [item["id"] for item in api.get_links()] == [link["id"]]

    sent_requests.clear()
    scheduler.run_pending()

    assert ("DELETE", f"/api/links/{link['id']}") in _methods(sent_requests)
    assert api.get_links() == []
    assert not session.undo()


def test_second_delete_commits_the_first(session, api, scheduler):
    first = session.create_link("https://example.com/first")
    second = session.create_link("https://example.com/second")

    session.delete_with_undo(first["id"])
    session.delete_with_undo(second["id"])

    assert [item["id"] for item in api.get_links()] == [second["id"]]
    assert session.undo()
    assert second["id"] in session.store
    assert first["id"] not in session.store
    scheduler.run_pending()
    assert [item["id"] for item in api.get_links()] == [second["id"]]


def test_close_flushes_pending_delete(api, scheduler):
    with LinkSyncSession(api, scheduler=scheduler) as session:
        link = session.create_link("https://example.com/flush")
        session.delete_with_undo(link["id"])

    assert api.get_links() == []


def test_debounced_search_fetches_only_final_value(session, scheduler, sent_requests):
    session.create_link("https://example.com/python-tips")
    sent_requests.clear()

    for text in ("p", "py", "pyt"):
        session.set_search(text)

    assert sent_requests == []
    assert session.search.raw == "pyt"
    assert session.search.query == ""

    scheduler.run_pending()

    assert len(sent_requests) == 1
    assert sent_requests[0].url.params["search"] == "pyt"
    assert session.filters.search == "pyt"
    assert [link["url"] for link in session.view()] == ["https://example.com/python-tips"]


def test_stats_are_refetched_only_when_stale(session, sent_requests):
    session.create_link("https://example.com/1")
    sent_requests.clear()

    assert session.stats()["total"] == 1
    assert session.stats()["total"] == 1
    assert len(sent_requests) == 1

    session.create_link("https://example.com/2")
    assert session.stats()["total"] == 2


def test_create_link_conflict_notifies_and_leaves_store(session):
    session.create_link("https://example.com/dup")

    result = session.create_link("https://example.com/dup", allow_duplicate=False)

    assert result is None
    assert len(session.store) == 1
    assert session.notifier.history[-1].level == "error"
    assert session.notifier.history[-1].message == "Link already saved"


def test_bulk_import_through_session(session):
    result = session.bulk_import(["https://example.com/a", "bad url"])

    assert len(result["success"]) == 1
    assert len(session.store) == 1
    assert session.notifier.history[-1].message == (
        "Imported 1 link, 0 duplicates, 1 failed"
    )


def test_failed_deferred_delete_restores_link(stub, stub_session, scheduler):
    stub.failures[("delete_link", "l3")] = ApiError(500, "boom")

    stub_session.delete_with_undo("l3")
    assert "l3" not in stub_session.store
    scheduler.run_pending()

    assert "l3" in stub_session.store
    assert stub_session.notifier.history[-1].level == "error"
    assert "boom" in stub_session.notifier.history[-1].message


def test_deferred_delete_of_missing_link_counts_as_success(stub, stub_session, scheduler):
    stub.failures[("delete_link", "l3")] = ApiError(404, "Link not found")

    stub_session.delete_with_undo("l3")
    scheduler.run_pending()

    assert "l3" not in stub_session.store
    assert stub_session.notifier.history[-1].level == "info"


def test_optimistic_update_applies_then_rolls_back(stub, stub_session):
    seen = []
    stub.observe = lambda: seen.append(stub_session.store.get("l1")["note"])
    stub.failures[("update_link", "l1")] = ApiError(500, "boom")

    result = stub_session.update_link("l1", {"note": "edited"})

    assert result is None
    assert seen == ["edited"]
    assert stub_session.store.get("l1")["note"] == ""
    assert stub_session.notifier.history[-1].message == "Failed to update link"


def test_optimistic_update_keeps_server_response(stub, stub_session):
    result = stub_session.update_link("l1", {"tags": ["b", "a"]})

    assert result["tags"] == ["a", "b"]
    assert stub_session.store.get("l1")["tags"] == ["a", "b"]


def test_failed_update_keeps_concurrent_undo(stub, stub_session, scheduler):
    stub.failures[("update_link", "l1")] = ApiError(500, "boom")
    stub_session.delete_with_undo("l3")
    stub.observe = stub_session.undo

    assert stub_session.update_link("l1", {"note": "edited"}) is None

    assert "l3" in stub_session.store
    assert stub_session.store.get("l1")["note"] == ""
    scheduler.run_pending()
    assert ("delete_link", "l3") not in stub.calls
    assert "l3" in stub_session.store


def test_failed_update_keeps_concurrent_create(stub, stub_session):
    stub.failures[("update_link", "l1")] = ApiError(500, "boom")
    stub.observe = lambda: stub_session.store.upsert(_link("l4"), at_head=True)

    stub_session.update_link("l1", {"note": "edited"})

    assert "l4" in stub_session.store
    assert stub_session.store.get("l1")["note"] == ""


def test_unexpected_error_rolls_back_and_propagates(stub, stub_session):
    stub.failures[("update_link", "l1")] = KeyError("link")

    with pytest.raises(KeyError):
        stub_session.update_link("l1", {"note": "edited"})

    assert stub_session.store.get("l1")["note"] == ""


def test_toggle_favorite_rolls_back_every_view(stub, stub_session):
    favorites = LinkFilters(favorite=True)
    seen = []
    stub.observe = lambda: seen.append(
        [link["id"] for link in stub_session.view(favorites)]
    )
    stub.failures[("toggle_favorite", "l1")] = ApiError(None, "offline")

    assert stub_session.toggle_favorite("l1") is None

    assert seen == [["l1"]]
    assert stub_session.view(favorites) == []
    assert stub_session.store.get("l1")["is_favorite"] is False


def test_failed_immediate_delete_restores_link(stub, stub_session):
    stub.failures[("delete_link", "l2")] = ApiError(500, "boom")

    assert stub_session.delete_link("l2") is False
    assert "l2" in stub_session.store
    assert stub_session.delete_link("l3") is True
    assert "l3" not in stub_session.store


def test_batch_delete_reports_each_item(stub, stub_session):
    stub.failures[("delete_link", "l2")] = ApiError(500, "nope")

    result = stub_session.batch_delete(["l1", "l2", "l3", "l1"])

    assert sorted(result.succeeded) == ["l1", "l3"]
    assert result.failed == {"l2": "nope"}
    assert [link["id"] for link in stub_session.view()] == ["l2"]
    assert stub_session.notifier.history[-1].message == "Deleted 2 links, 1 failed"
    assert sorted(key for _name, key in stub.calls) == ["l1", "l2", "l3"]


def test_batch_move_updates_only_succeeded_items(stub, stub_session):
    stub.failures[("update_link", "l3")] = ApiError(500, "nope")

    result = stub_session.batch_move(["l1", "l3"], "c2")

    assert result.succeeded == ["l1"]
    assert stub_session.store.get("l1")["collection_id"] == "c2"
    assert stub_session.store.get("l3")["collection_id"] is None
    assert not stub_session.store.is_loaded(LinkFilters())


def test_batch_move_all_succeeded_notifies_success(stub, stub_session):
    result = stub_session.batch_move(["l3"], None)

    assert result.failure_count == 0
    assert stub_session.notifier.history[-1].level == "success"
    assert stub_session.notifier.history[-1].message == "Moved 1 link"


def test_delete_collection_unassigns_links_optimistically(stub, stub_session):
    assert stub_session.delete_collection("c1")

    assert stub_session.store.get_collection("c1") is None
    assert stub_session.store.get("l1")["collection_id"] is None
    assert stub_session.store.get("l2")["collection_id"] is None


def test_delete_collection_rolls_back_on_failure(stub, stub_session):
    stub.failures[("delete_collection", "c1")] = ApiError(500, "boom")

    assert not stub_session.delete_collection("c1")

    assert stub_session.store.get_collection("c1")["name"] == "Reading"
    assert stub_session.store.get("l1")["collection_id"] == "c1"


def test_collection_sharing_through_session(session, api):
    collection = session.create_collection("Shared")

    share_url = session.share_collection(collection["id"])
    slug = session.store.get_collection(collection["id"])["share_slug"]

    assert share_url == f"/shared/{slug}"
    assert api.get_shared(slug)["collection"]["name"] == "Shared"
    assert session.unshare_collection(collection["id"])
    assert session.store.get_collection(collection["id"])["is_public"] is False
    with pytest.raises(ApiError) as excinfo:
        api.get_shared(slug)
    assert excinfo.value.status_code == 404


def test_notifier_forwards_to_listeners():
    notifier = Notifier()
    received = []
    notifier.subscribe(received.append)

    notifier.info("Link deleted", action="undo")

    assert received == notifier.history
    assert received[0].action == "undo"
