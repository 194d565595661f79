"""Optimistic synchronization between a :class:`LinkStore` and the API.

Edits, favorite toggles and deletes are applied to the store before the
request is sent. A failed request restores the touched entities from a
snapshot taken just before the edit and raises an error notification.
Deletes can be deferred through a per-session undo slot, and search input is
debounced before it triggers a fetch.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field, replace
from typing import Callable

from apscheduler.schedulers.background import BackgroundScheduler

from linksaver.client.api import ApiError, LinkSaverClient
from linksaver.client.debounce import DEFAULT_DEBOUNCE_SECONDS, DebouncedSearch
from linksaver.client.notifications import Notifier
from linksaver.client.store import LinkStore, StoreSnapshot
from linksaver.client.undo import DEFAULT_UNDO_SECONDS, UndoDelete
from linksaver.schemas import LinkFilters, LinkPatch

logger = logging.getLogger(__name__)


@dataclass
class BatchResult:
    succeeded: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def success_count(self) -> int:
        return len(self.succeeded)

    @property
    def failure_count(self) -> int:
        return len(self.failed)


def _plural(count: int) -> str:
    return "link" if count == 1 else "links"


class LinkSyncSession:
    def __init__(
        self,
        client: LinkSaverClient,
        store: LinkStore | None = None,
        notifier: Notifier | None = None,
        scheduler=None,
        undo_seconds: float = DEFAULT_UNDO_SECONDS,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        max_workers: int = 8,
    ) -> None:
        self.client = client
        self.store = store or LinkStore()
        self.notifier = notifier or Notifier()
        self._owns_scheduler = scheduler is None
        if scheduler is None:
            scheduler = BackgroundScheduler()
            scheduler.start()
        self.scheduler = scheduler
        self.max_workers = max_workers
        self.filters = LinkFilters()
        self.undo_delete = UndoDelete(
            scheduler,
            on_commit=self._commit_delete,
            on_restore=self._restore_deleted,
            delay=undo_seconds,
        )
        self.search = DebouncedSearch(
            scheduler, on_commit=self._apply_search, delay=debounce_seconds
        )

    def close(self) -> None:
        self.undo_delete.flush()
        self.search.cancel()
        if self._owns_scheduler:
            self.scheduler.shutdown(wait=False)

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    # reads

    def load(self, filters: LinkFilters | None = None) -> list[dict]:
        filters = filters or self.filters
        links = self.client.get_links(filters)
        pending = self.undo_delete.pending_id
        self.store.merge_view(filters, links, exclude={pending} if pending else None)
        return self.store.view(filters)

    def view(self, filters: LinkFilters | None = None) -> list[dict]:
        return self.store.view(filters or self.filters)

    def stats(self) -> dict:
        if self.store.stats_stale or self.store.stats is None:
            self.store.set_stats(self.client.get_stats())
        return self.store.stats

    def set_filters(self, **changes) -> list[dict]:
        self.filters = replace(self.filters, **changes)
        return self.load()

    def set_search(self, text: str) -> None:
        self.search.set_input(text)

    def _apply_search(self, term: str) -> None:
        self.filters = replace(self.filters, search=term or None)
        try:
            self.load()
        except ApiError as exc:
            self.notifier.error(exc.message or "Failed to fetch links")

    # creation

    def check_duplicate(self, url: str) -> dict:
        return self.client.check_duplicate(url)

    def create_link(self, url: str, **fields) -> dict | None:
        try:
            link = self.client.create_link(url, **fields)
        except ApiError as exc:
            self.notifier.error(exc.message or "Failed to save link")
            return None
        self.store.upsert(link, at_head=True)
        self.store.invalidate_stats()
        self.notifier.success("Link saved successfully")
        return link

    def bulk_import(
        self,
        urls: list,
        tags: list[str] | None = None,
        collection_id: str | None = None,
    ) -> dict | None:
        try:
            result = self.client.bulk_import(urls, tags=tags, collection_id=collection_id)
        except ApiError as exc:
            self.notifier.error(exc.message or "Failed to bulk import")
            return None
        for link in result["success"]:
            self.store.upsert(link, at_head=True)
        self.store.invalidate_stats()
        self.notifier.success(
            f"Imported {len(result['success'])} {_plural(len(result['success']))}, "
            f"{len(result['duplicates'])} duplicates, {len(result['failed'])} failed"
        )
        return result

    # optimistic mutations

    def _optimistic(
        self,
        snapshot: StoreSnapshot,
        apply: Callable[[], None],
        send: Callable[[], object],
        failure: str,
    ):
        apply()
        try:
            return send()
        except ApiError as exc:
            self.store.restore(snapshot)
            logger.info("Rolled back optimistic change: %s", exc.message)
            self.notifier.error(failure)
            return None
        except Exception:
            self.store.restore(snapshot)
            raise

    def update_link(self, link_id: str, patch: LinkPatch | dict) -> dict | None:
        if not isinstance(patch, LinkPatch):
            patch = LinkPatch.from_payload(patch)
        link = self._optimistic(
            self.store.snapshot(link_ids=[link_id]),
            lambda: self.store.patch(link_id, patch.apply_to({})),
            lambda: self.client.update_link(link_id, patch),
            "Failed to update link",
        )
        if link is not None:
            self.store.upsert(link)
        return link

    def toggle_favorite(self, link_id: str) -> dict | None:
        def apply():
            current = self.store.get(link_id)
            if current is not None:
                self.store.patch(link_id, {"is_favorite": not current["is_favorite"]})

        link = self._optimistic(
            self.store.snapshot(link_ids=[link_id]),
            apply,
            lambda: self.client.toggle_favorite(link_id),
            "Failed to update favorite",
        )
        if link is not None:
            self.store.upsert(link)
        return link

    def delete_link(self, link_id: str) -> bool:
        deleted = self._optimistic(
            self.store.snapshot(link_ids=[link_id]),
            lambda: self.store.remove(link_id),
            lambda: self.client.delete_link(link_id) or True,
            "Failed to delete link",
        )
        if deleted:
            self.store.invalidate_stats()
        return bool(deleted)

    # undo-delete

    def delete_with_undo(self, link_id: str) -> bool:
        link = self.store.remove(link_id)
        if link is None:
            return False
        self.undo_delete.start(link)
        self.notifier.info("Link deleted", action="undo")
        return True

    def undo(self) -> bool:
        return self.undo_delete.undo() is not None

    def _restore_deleted(self, link: dict) -> None:
        self.store.insert_at_head(link)

    def _commit_delete(self, link: dict) -> None:
        try:
            self.client.delete_link(link["id"])
        except ApiError as exc:
            if exc.status_code != 404:
                self.store.insert_at_head(link)
                self.notifier.error(
                    f"Failed to delete link, it has been restored: {exc.message}"
                )
                return
        self.store.invalidate_stats()

    # batch operations

    def _fan_out(self, ids: list[str], call: Callable[[str], object]) -> tuple[BatchResult, dict]:
        result = BatchResult()
        responses: dict = {}
        unique_ids = list(dict.fromkeys(ids))
        if not unique_ids:
            return result, responses
        workers = max(1, min(self.max_workers, len(unique_ids)))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {executor.submit(call, link_id): link_id for link_id in unique_ids}
            for future in as_completed(futures):
                link_id = futures[future]
                try:
                    responses[link_id] = future.result()
                    result.succeeded.append(link_id)
                except ApiError as exc:
                    result.failed[link_id] = exc.message
        return result, responses

    def _report_batch(self, result: BatchResult, verb: str) -> None:
        if result.failure_count:
            self.notifier.error(
                f"{verb} {result.success_count} {_plural(result.success_count)}, "
                f"{result.failure_count} failed"
            )
        else:
            self.notifier.success(
                f"{verb} {result.success_count} {_plural(result.success_count)}"
            )

    def batch_delete(self, ids: list[str]) -> BatchResult:
        result, _responses = self._fan_out(ids, self.client.delete_link)
        for link_id in result.succeeded:
            self.store.remove(link_id)
        self.store.invalidate_views()
        self.store.invalidate_stats()
        self._report_batch(result, "Deleted")
        return result

    def batch_move(self, ids: list[str], collection_id: str | None) -> BatchResult:
        patch = LinkPatch(collection_id=collection_id)
        result, responses = self._fan_out(
            ids, lambda link_id: self.client.update_link(link_id, patch)
        )
        for link_id in result.succeeded:
            self.store.upsert(responses[link_id])
        self.store.invalidate_views()
        self.store.invalidate_stats()
        self._report_batch(result, "Moved")
        return result

    # collections

    def load_collections(self) -> list[dict]:
        self.store.set_collections(self.client.get_collections())
        return self.store.collections()

    def create_collection(self, name: str, **fields) -> dict | None:
        try:
            collection = self.client.create_collection(name, **fields)
        except ApiError as exc:
            self.notifier.error(exc.message or "Failed to create collection")
            return None
        self.store.upsert_collection(collection)
        return collection

    def update_collection(self, collection_id: str, changes: dict) -> dict | None:
        def apply():
            if self.store.get_collection(collection_id) is not None:
                self.store.upsert_collection({"id": collection_id, **changes})

        collection = self._optimistic(
            self.store.snapshot(collection_ids=[collection_id]),
            apply,
            lambda: self.client.update_collection(collection_id, changes),
            "Failed to update collection",
        )
        if collection is not None:
            self.store.upsert_collection(collection)
        return collection

    def delete_collection(self, collection_id: str) -> bool:
        def apply():
            self.store.remove_collection(collection_id)
            self.store.unassign_collection(collection_id)

        deleted = self._optimistic(
            self.store.snapshot(
                link_ids=self.store.collection_member_ids(collection_id),
                collection_ids=[collection_id],
            ),
            apply,
            lambda: self.client.delete_collection(collection_id) or True,
            "Failed to delete collection",
        )
        return bool(deleted)

    def share_collection(self, collection_id: str) -> str | None:
        try:
            response = self.client.share_collection(collection_id)
        except ApiError as exc:
            self.notifier.error(exc.message or "Failed to share collection")
            return None
        self.store.upsert_collection(response["collection"])
        return response["share_url"]

    def unshare_collection(self, collection_id: str) -> bool:
        try:
            collection = self.client.unshare_collection(collection_id)
        except ApiError as exc:
            self.notifier.error(exc.message or "Failed to unshare collection")
            return False
        self.store.upsert_collection(collection)
        return True
