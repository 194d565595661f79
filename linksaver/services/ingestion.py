"""Link ingestion: validation, metadata enrichment, duplicate accounting.

Single saves always create a row unless the caller explicitly sends
``allow_duplicate: false``, in which case an existing row with the same URL
turns the request into a conflict. Bulk saves skip duplicates, isolate every
URL's failure and process URLs one at a time so the metadata fetcher never
fans out.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from flask import current_app

from linksaver.errors import ConflictError, ValidationError
from linksaver.extensions import db
from linksaver.models import Link
from linksaver.schemas import MAX_NOTE_LENGTH, BulkInput, LinkInput, validate_url
from linksaver.services.links import (
    assign_tags,
    ensure_collection_owned,
    find_duplicate,
)
from linksaver.services.metadata import LinkMetadata, resolve_metadata

logger = logging.getLogger(__name__)


@dataclass
class BulkResult:
    success: list[dict] = field(default_factory=list)
    failed: list[dict] = field(default_factory=list)
    duplicates: list[dict] = field(default_factory=list)

    def as_dict(self):
        return {
            "success": self.success,
            "failed": self.failed,
            "duplicates": self.duplicates,
        }


def _resolve(url: str) -> LinkMetadata:
    config = current_app.config
    return resolve_metadata(
        url,
        timeout=config["METADATA_FETCH_TIMEOUT"],
        max_bytes=config["METADATA_MAX_BYTES"],
        favicon_template=config["FAVICON_SERVICE_URL"],
    )


def _persist_link(
    user_id: int,
    url: str,
    note: str,
    tags: list[str],
    is_favorite: bool,
    collection_id: str | None,
) -> Link:
    metadata = _resolve(url)
    link = Link(
        user_id=user_id,
        url=url,
        note=note,
        is_favorite=is_favorite,
        collection_id=collection_id,
        title=metadata.title or None,
        description=metadata.description or None,
        image_url=metadata.image or None,
        favicon_url=metadata.favicon or None,
    )
    db.session.add(link)
    db.session.flush()
    assign_tags(user_id, link, tags)
    db.session.commit()
    return link


def ingest_link(user_id: int, data: LinkInput) -> Link:
    ensure_collection_owned(user_id, data.collection_id)
    if data.allow_duplicate is False:
        existing = find_duplicate(user_id, data.url)
        if existing:
            raise ConflictError("Link already saved", existing=existing.as_preview())

    link = _persist_link(
        user_id,
        url=data.url,
        note=data.note,
        tags=data.tags,
        is_favorite=data.is_favorite,
        collection_id=data.collection_id,
    )
    logger.info("Link saved: %s", link.id)
    return link


def ingest_bulk(user_id: int, data: BulkInput) -> BulkResult:
    ensure_collection_owned(user_id, data.collection_id)
    result = BulkResult()

    for item in data.items:
        raw_url = item.url if isinstance(item.url, str) else str(item.url)
        try:
            url = validate_url(item.url)
            existing = find_duplicate(user_id, url)
            if existing:
                result.duplicates.append({"url": raw_url, "id": existing.id})
                continue
            if len(item.note or "") > MAX_NOTE_LENGTH:
                raise ValidationError(
                    "note", f"Note is too long (max {MAX_NOTE_LENGTH} characters)"
                )
            link = _persist_link(
                user_id,
                url=url,
                note=(item.note or "").strip(),
                tags=data.tags,
                is_favorite=False,
                collection_id=data.collection_id,
            )
            result.success.append(link.as_dict())
        except Exception as exc:
            db.session.rollback()
            message = exc.message if isinstance(exc, ValidationError) else str(exc)
            result.failed.append({"url": raw_url, "error": message or exc.__class__.__name__})

    logger.info(
        "Bulk import for user %s: %d saved, %d failed, %d duplicates",
        user_id,
        len(result.success),
        len(result.failed),
        len(result.duplicates),
    )
    return result
