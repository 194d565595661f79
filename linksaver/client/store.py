"""Normalized client-side cache of links, collections and stats.

Links are stored once, keyed by id, next to an ordering list. Filtered views
are never stored: :meth:`LinkStore.view` recomputes them from the entities with
:class:`~linksaver.schemas.LinkFilters`, so patching one entity updates every
view that contains it. Snapshots hold only the entities a mutation touches,
so restoring one never undoes concurrent changes to other entities.
"""

from __future__ import annotations

import copy
import threading
from dataclasses import dataclass

from linksaver.schemas import LinkFilters


@dataclass
class StoreSnapshot:
    """Saved copies of selected entities. ``None`` marks an entity that was absent."""

    links: dict[str, tuple[int, dict] | None]
    collections: dict[str, dict | None]


class LinkStore:
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._links: dict[str, dict] = {}
        self._order: list[str] = []
        self._collections: dict[str, dict] = {}
        self._loaded: set[LinkFilters] = set()
        self._stats: dict | None = None
        self._stats_stale = True

    # links

    def get(self, link_id: str) -> dict | None:
        with self._lock:
            link = self._links.get(link_id)
            return dict(link) if link else None

    def __contains__(self, link_id: str) -> bool:
        with self._lock:
            return link_id in self._links

    def __len__(self) -> int:
        with self._lock:
            return len(self._links)

    def upsert(self, link: dict, at_head: bool = False) -> None:
        with self._lock:
            link_id = link["id"]
            if link_id in self._links:
                self._links[link_id] = dict(link)
                if at_head:
                    self._order.remove(link_id)
                    self._order.insert(0, link_id)
                return
            self._links[link_id] = dict(link)
            if at_head:
                self._order.insert(0, link_id)
            else:
                self._order.append(link_id)

    def insert_at_head(self, link: dict) -> None:
        self.upsert(link, at_head=True)

    def remove(self, link_id: str) -> dict | None:
        with self._lock:
            link = self._links.pop(link_id, None)
            if link is None:
                return None
            self._order.remove(link_id)
            return link

    def patch(self, link_id: str, changes: dict) -> dict | None:
        with self._lock:
            link = self._links.get(link_id)
            if link is None:
                return None
            link.update(copy.deepcopy(changes))
            return dict(link)

    def merge_view(
        self, filters: LinkFilters, links: list[dict], exclude: set[str] | None = None
    ) -> None:
        """Reconcile the entities covered by ``filters`` with a server listing.

        Local links that match ``filters`` but are missing from ``links`` are
        dropped; ids in ``exclude`` are never re-added.
        """
        exclude = exclude or set()
        with self._lock:
            incoming = {link["id"] for link in links}
            for link_id in list(self._order):
                if link_id not in incoming and filters.matches(self._links[link_id]):
                    self.remove(link_id)
            for link in links:
                if link["id"] not in exclude:
                    self.upsert(link)
            self._loaded.add(filters)

    def view(self, filters: LinkFilters | None = None) -> list[dict]:
        filters = filters or LinkFilters()
        with self._lock:
            matching = [
                dict(self._links[link_id])
                for link_id in self._order
                if filters.matches(self._links[link_id])
            ]
        return filters.sort_links(matching)

    def is_loaded(self, filters: LinkFilters) -> bool:
        with self._lock:
            return filters in self._loaded

    def invalidate_views(self) -> None:
        with self._lock:
            self._loaded.clear()

    # collections

    def set_collections(self, collections: list[dict]) -> None:
        with self._lock:
            self._collections = {item["id"]: dict(item) for item in collections}

    def upsert_collection(self, collection: dict) -> None:
        with self._lock:
            current = self._collections.get(collection["id"], {})
            self._collections[collection["id"]] = {**current, **collection}

    def remove_collection(self, collection_id: str) -> dict | None:
        with self._lock:
            return self._collections.pop(collection_id, None)

    def get_collection(self, collection_id: str) -> dict | None:
        with self._lock:
            collection = self._collections.get(collection_id)
            return dict(collection) if collection else None

    def collections(self) -> list[dict]:
        with self._lock:
            items = [dict(item) for item in self._collections.values()]
        return sorted(items, key=lambda item: item.get("created_at") or "", reverse=True)

    def collection_member_ids(self, collection_id: str) -> list[str]:
        with self._lock:
            return [
                link_id
                for link_id, link in self._links.items()
                if link.get("collection_id") == collection_id
            ]

    def unassign_collection(self, collection_id: str) -> list[str]:
        with self._lock:
            affected = self.collection_member_ids(collection_id)
            for link_id in affected:
                self._links[link_id]["collection_id"] = None
            return affected

    # stats

    @property
    def stats(self) -> dict | None:
        with self._lock:
            return dict(self._stats) if self._stats is not None else None

    @property
    def stats_stale(self) -> bool:
        with self._lock:
            return self._stats_stale

    def set_stats(self, stats: dict) -> None:
        with self._lock:
            self._stats = dict(stats)
            self._stats_stale = False

    def invalidate_stats(self) -> None:
        with self._lock:
            self._stats_stale = True

    # snapshots

    def snapshot(self, link_ids=(), collection_ids=()) -> StoreSnapshot:
        """Save the listed entities; ids not held by the store are saved as absent."""
        with self._lock:
            links: dict[str, tuple[int, dict] | None] = {}
            for link_id in link_ids:
                if link_id in self._links:
                    links[link_id] = (
                        self._order.index(link_id),
                        copy.deepcopy(self._links[link_id]),
                    )
                else:
                    links[link_id] = None
            collections = {
                collection_id: copy.deepcopy(self._collections.get(collection_id))
                for collection_id in collection_ids
            }
            return StoreSnapshot(links=links, collections=collections)

    def restore(self, snapshot: StoreSnapshot) -> None:
        with self._lock:
            for link_id, saved in snapshot.links.items():
                if saved is None:
                    self.remove(link_id)
                    continue
                position, link = saved
                if link_id not in self._links:
                    self._order.insert(min(position, len(self._order)), link_id)
                self._links[link_id] = copy.deepcopy(link)
            for collection_id, saved in snapshot.collections.items():
                if saved is None:
                    self._collections.pop(collection_id, None)
                else:
                    self._collections[collection_id] = copy.deepcopy(saved)
