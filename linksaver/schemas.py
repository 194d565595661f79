"""Typed request payloads shared by the API and the client library.

Incoming JSON is converted into these dataclasses at the route boundary, so
everything past the route works with validated values. Patch types use the
:data:`UNSET` sentinel to tell "field omitted" apart from "field set to null",
which matters for ``collection_id`` where ``None`` means unassign.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from linksaver.errors import ValidationError
from linksaver.services.common import is_valid_url, normalize_tag, parse_tags, to_bool

MAX_URL_LENGTH = 2048
MAX_NOTE_LENGTH = 5000
SORT_FIELDS = ("created_at", "updated_at", "title")
SEARCH_FIELDS = ("title", "note", "url", "description")


class _Unset:
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


def validate_url(raw) -> str:
    if not isinstance(raw, str) or not raw.strip():
        raise ValidationError("url", "URL is required")
    url = raw.strip()
    if not is_valid_url(url):
        raise ValidationError("url", "Invalid URL format")
    if len(url) > MAX_URL_LENGTH:
        raise ValidationError("url", "URL is too long")
    return url


def _validate_note(raw) -> str:
    if raw is None:
        return ""
    if not isinstance(raw, str):
        raise ValidationError("note", "Note must be a string")
    if len(raw) > MAX_NOTE_LENGTH:
        raise ValidationError(
            "note", f"Note is too long (max {MAX_NOTE_LENGTH} characters)"
        )
    return raw.strip()


def _validate_tags(raw) -> list[str]:
    if raw is None:
        return []
    if not isinstance(raw, (list, str)):
        raise ValidationError("tags", "Tags must be a list of strings")
    if isinstance(raw, list) and not all(isinstance(item, str) for item in raw):
        raise ValidationError("tags", "Tags must be a list of strings")
    return parse_tags(raw)


def _validate_bool(name: str, raw) -> bool:
    if raw is None:
        return False
    if not isinstance(raw, bool):
        raise ValidationError(name, f"{name} must be a boolean")
    return raw


def _validate_id(name: str, raw) -> str | None:
    if raw is None or raw == "":
        return None
    if not isinstance(raw, str):
        raise ValidationError(name, f"{name} must be a string")
    return raw.strip() or None


def _validate_optional_text(name: str, raw) -> str | None:
    if raw is None:
        return None
    if not isinstance(raw, str):
        raise ValidationError(name, f"{name} must be a string")
    return raw.strip() or None


def require_object(payload) -> Mapping:
    if payload is None:
        return {}
    if not isinstance(payload, Mapping):
        raise ValidationError(None, "Request body must be a JSON object")
    return payload


@dataclass
class LinkInput:
    url: str
    note: str = ""
    tags: list[str] = field(default_factory=list)
    is_favorite: bool = False
    collection_id: str | None = None
    allow_duplicate: bool | None = None

    @classmethod
    def from_payload(cls, payload) -> "LinkInput":
        payload = require_object(payload)
        allow_duplicate = None
        if payload.get("allow_duplicate") is not None:
            allow_duplicate = to_bool(payload.get("allow_duplicate"))
        return cls(
            url=validate_url(payload.get("url")),
            note=_validate_note(payload.get("note")),
            tags=_validate_tags(payload.get("tags")),
            is_favorite=_validate_bool("is_favorite", payload.get("is_favorite")),
            collection_id=_validate_id("collection_id", payload.get("collection_id")),
            allow_duplicate=allow_duplicate,
        )


@dataclass
class BulkItem:
    url: Any
    note: str = ""


@dataclass
class BulkInput:
    items: list[BulkItem]
    tags: list[str] = field(default_factory=list)
    collection_id: str | None = None

    @classmethod
    def from_payload(cls, payload, max_urls: int) -> "BulkInput":
        payload = require_object(payload)
        urls = payload.get("urls")
        if not isinstance(urls, list) or not urls:
            raise ValidationError("urls", "URLs array required")
        if len(urls) > max_urls:
            raise ValidationError("urls", f"Maximum {max_urls} URLs at once")

        items = []
        for entry in urls:
            if isinstance(entry, Mapping):
                note = entry.get("note")
                items.append(
                    BulkItem(
                        url=entry.get("url"),
                        note=note if isinstance(note, str) else "",
                    )
                )
            else:
                items.append(BulkItem(url=entry))
        return cls(
            items=items,
            tags=_validate_tags(payload.get("tags")),
            collection_id=_validate_id("collection_id", payload.get("collection_id")),
        )


@dataclass
class LinkPatch:
    note: Any = UNSET
    tags: Any = UNSET
    is_favorite: Any = UNSET
    collection_id: Any = UNSET

    @classmethod
    def from_payload(cls, payload) -> "LinkPatch":
        payload = require_object(payload)
        patch = cls()
        if "note" in payload:
            patch.note = _validate_note(payload["note"])
        if "tags" in payload:
            patch.tags = _validate_tags(payload["tags"])
        if "is_favorite" in payload:
            if not isinstance(payload["is_favorite"], bool):
                raise ValidationError("is_favorite", "is_favorite must be a boolean")
            patch.is_favorite = payload["is_favorite"]
        if "collection_id" in payload:
            patch.collection_id = _validate_id("collection_id", payload["collection_id"])
        return patch

    def changes(self) -> dict:
        return {
            name: value
            for name, value in (
                ("note", self.note),
                ("tags", self.tags),
                ("is_favorite", self.is_favorite),
                ("collection_id", self.collection_id),
            )
            if value is not UNSET
        }

    def is_empty(self) -> bool:
        return not self.changes()

    def apply_to(self, link: dict) -> dict:
        updated = dict(link)
        for name, value in self.changes().items():
            updated[name] = sorted(value) if name == "tags" else value
        return updated


@dataclass
class CollectionInput:
    name: str
    description: str | None = None
    color: str | None = None

    @classmethod
    def from_payload(cls, payload) -> "CollectionInput":
        payload = require_object(payload)
        name = payload.get("name")
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("name", "Name is required")
        return cls(
            name=name.strip(),
            description=_validate_optional_text("description", payload.get("description")),
            color=_validate_optional_text("color", payload.get("color")),
        )


@dataclass
class CollectionPatch:
    name: Any = UNSET
    description: Any = UNSET
    color: Any = UNSET

    @classmethod
    def from_payload(cls, payload) -> "CollectionPatch":
        payload = require_object(payload)
        patch = cls()
        if "name" in payload:
            name = payload["name"]
            if not isinstance(name, str) or not name.strip():
                raise ValidationError("name", "Name is required")
            patch.name = name.strip()
        if "description" in payload:
            patch.description = _validate_optional_text(
                "description", payload["description"]
            )
        if "color" in payload:
            color = _validate_optional_text("color", payload["color"])
            if color is None:
                raise ValidationError("color", "Color must not be empty")
            patch.color = color
        return patch

    def changes(self) -> dict:
        return {
            name: value
            for name, value in (
                ("name", self.name),
                ("description", self.description),
                ("color", self.color),
            )
            if value is not UNSET
        }


@dataclass(frozen=True)
class LinkFilters:
    favorite: bool = False
    collection_id: str | None = None
    tag: str | None = None
    search: str | None = None
    sort: str = "created_at"
    order: str = "desc"

    def __post_init__(self):
        if self.sort not in SORT_FIELDS:
            object.__setattr__(self, "sort", "created_at")
        if self.order != "asc":
            object.__setattr__(self, "order", "desc")
        if self.tag is not None:
            object.__setattr__(self, "tag", normalize_tag(self.tag) or None)
        if self.search is not None:
            object.__setattr__(self, "search", self.search.strip() or None)
        if self.collection_id == "":
            object.__setattr__(self, "collection_id", None)

    @classmethod
    def from_args(cls, args: Mapping) -> "LinkFilters":
        return cls(
            favorite=to_bool(args.get("favorite")),
            collection_id=args.get("collection_id") or None,
            tag=args.get("tag") or None,
            search=args.get("search") or None,
            sort=args.get("sort") or "created_at",
            order=args.get("order") or "desc",
        )

    def to_params(self) -> dict:
        params = {"sort": self.sort, "order": self.order}
        if self.favorite:
            params["favorite"] = "true"
        if self.collection_id:
            params["collection_id"] = self.collection_id
        if self.tag:
            params["tag"] = self.tag
        if self.search:
            params["search"] = self.search
        return params

    def matches(self, link: Mapping) -> bool:
        if self.favorite and not link.get("is_favorite"):
            return False
        if self.collection_id and link.get("collection_id") != self.collection_id:
            return False
        if self.tag and self.tag not in (link.get("tags") or []):
            return False
        if self.search:
            term = self.search.lower()
            return any(term in (link.get(name) or "").lower() for name in SEARCH_FIELDS)
        return True

    def sort_links(self, links: list[dict]) -> list[dict]:
        return sorted(
            links,
            key=lambda link: (link.get(self.sort) or ""),
            reverse=self.order == "desc",
        )
