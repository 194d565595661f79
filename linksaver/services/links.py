from __future__ import annotations

import csv
import io

from sqlalchemy import or_

from linksaver.errors import NotFoundError, ValidationError
from linksaver.extensions import db
from linksaver.models import Collection, Link, Tag, utcnow
from linksaver.schemas import LinkFilters, LinkPatch

EXPORT_FORMATS = ("json", "csv")
CSV_COLUMNS = ["url", "title", "note", "tags", "is_favorite", "collection_id", "created_at"]
_SORT_COLUMNS = {
    "created_at": Link.created_at,
    "updated_at": Link.updated_at,
    "title": Link.title,
}


def owned_links(user_id: int):
    return Link.query.filter(Link.user_id == user_id)


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def list_links(user_id: int, filters: LinkFilters) -> list[Link]:
    query = owned_links(user_id)
    if filters.favorite:
        query = query.filter(Link.is_favorite.is_(True))
    if filters.collection_id:
        query = query.filter(Link.collection_id == filters.collection_id)
    if filters.tag:
        query = query.filter(Link.tags.any(Tag.name == filters.tag))
    if filters.search:
        pattern = f"%{_escape_like(filters.search)}%"
        query = query.filter(
            or_(
                Link.title.ilike(pattern, escape="\\"),
                Link.note.ilike(pattern, escape="\\"),
                Link.url.ilike(pattern, escape="\\"),
                Link.description.ilike(pattern, escape="\\"),
            )
        )

    column = _SORT_COLUMNS[filters.sort]
    ordering = column.asc() if filters.order == "asc" else column.desc()
    return query.order_by(ordering).all()


def get_link(user_id: int, link_id: str) -> Link:
    link = owned_links(user_id).filter(Link.id == link_id).first()
    if not link:
        raise NotFoundError("Link not found")
    return link


def find_duplicate(user_id: int, url: str) -> Link | None:
    return (
        owned_links(user_id)
        .filter(Link.url == url.strip())
        .order_by(Link.created_at.desc())
        .first()
    )


def check_duplicate(user_id: int, url: str) -> dict:
    existing = find_duplicate(user_id, url)
    return {
        "exists": existing is not None,
        "existing": existing.as_preview() if existing else None,
    }


def ensure_collection_owned(user_id: int, collection_id: str | None) -> None:
    if collection_id is None:
        return
    owned = Collection.query.filter_by(id=collection_id, user_id=user_id).first()
    if not owned:
        raise ValidationError("collection_id", "Collection not found")


def assign_tags(user_id: int, link: Link, names: list[str]) -> None:
    link.tags.clear()
    for name in names:
        tag = Tag.query.filter_by(user_id=user_id, name=name).first()
        if not tag:
            tag = Tag(user_id=user_id, name=name)
            db.session.add(tag)
        link.tags.append(tag)


def update_link(user_id: int, link_id: str, patch: LinkPatch) -> Link:
    link = get_link(user_id, link_id)
    changes = patch.changes()
    if "collection_id" in changes:
        ensure_collection_owned(user_id, changes["collection_id"])
        link.collection_id = changes["collection_id"]
    if "note" in changes:
        link.note = changes["note"]
    if "is_favorite" in changes:
        link.is_favorite = changes["is_favorite"]
    if "tags" in changes:
        assign_tags(user_id, link, changes["tags"])
        # tag-only edits do not dirty a column, so bump the timestamp by hand
        link.updated_at = utcnow()
    db.session.commit()
    return link


def toggle_favorite(user_id: int, link_id: str) -> Link:
    link = get_link(user_id, link_id)
    link.is_favorite = not link.is_favorite
    db.session.commit()
    return link


def delete_link(user_id: int, link_id: str) -> None:
    link = get_link(user_id, link_id)
    db.session.delete(link)
    db.session.commit()


def link_stats(user_id: int) -> dict:
    links = owned_links(user_id).all()
    tags = set()
    favorites = 0
    for link in links:
        if link.is_favorite:
            favorites += 1
        tags.update(tag.name for tag in link.tags)
    return {"total": len(links), "favorites": favorites, "tags": sorted(tags)}


def export_links(user_id: int, fmt: str) -> dict | str:
    if fmt not in EXPORT_FORMATS:
        raise ValidationError("format", "Format must be json or csv")
    links = owned_links(user_id).order_by(Link.created_at.desc()).all()
    rows = [link.as_dict() for link in links]
    if fmt == "json":
        return {
            "exported_at": utcnow().isoformat(),
            "count": len(rows),
            "links": rows,
        }

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_COLUMNS)
    for row in rows:
        writer.writerow(
            [
                ";".join(row["tags"]) if column == "tags" else _csv_value(row[column])
                for column in CSV_COLUMNS
            ]
        )
    return buffer.getvalue()


def _csv_value(value):
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return value
