from __future__ import annotations

import logging
import secrets

from sqlalchemy import func

from linksaver.errors import NotFoundError
from linksaver.extensions import db
from linksaver.models import Collection, Link
from linksaver.schemas import CollectionInput, CollectionPatch

logger = logging.getLogger(__name__)

SHARE_SLUG_BYTES = 8


def owned_collections(user_id: int):
    return Collection.query.filter(Collection.user_id == user_id)


def get_collection(user_id: int, collection_id: str) -> Collection:
    collection = owned_collections(user_id).filter(Collection.id == collection_id).first()
    if not collection:
        raise NotFoundError("Collection not found")
    return collection


def list_collections(user_id: int) -> list[dict]:
    counts = dict(
        db.session.query(Link.collection_id, func.count(Link.id))
        .filter(Link.user_id == user_id, Link.collection_id.is_not(None))
        .group_by(Link.collection_id)
        .all()
    )
    collections = owned_collections(user_id).order_by(Collection.created_at.desc()).all()
    return [item.as_dict(link_count=counts.get(item.id, 0)) for item in collections]


def collection_links(collection: Collection) -> list[Link]:
    return (
        Link.query.filter_by(collection_id=collection.id, user_id=collection.user_id)
        .order_by(Link.created_at.desc())
        .all()
    )


def create_collection(
    user_id: int, data: CollectionInput, default_color: str
) -> Collection:
    collection = Collection(
        user_id=user_id,
        name=data.name,
        description=data.description,
        color=data.color or default_color,
    )
    db.session.add(collection)
    db.session.commit()
    return collection


def update_collection(
    user_id: int, collection_id: str, patch: CollectionPatch
) -> Collection:
    collection = get_collection(user_id, collection_id)
    for name, value in patch.changes().items():
        setattr(collection, name, value)
    db.session.commit()
    return collection


def delete_collection(user_id: int, collection_id: str) -> int:
    """Delete a collection and unassign its links. Returns the unassigned count."""
    collection = get_collection(user_id, collection_id)
    members = Link.query.filter_by(collection_id=collection.id).all()
    for link in members:
        link.collection_id = None
    db.session.delete(collection)
    db.session.commit()
    logger.info(
        "Deleted collection %s, unassigned %d links", collection_id, len(members)
    )
    return len(members)


def _new_slug() -> str:
    while True:
        slug = secrets.token_hex(SHARE_SLUG_BYTES)
        if not Collection.query.filter_by(share_slug=slug).first():
            return slug


def share_collection(user_id: int, collection_id: str) -> Collection:
    collection = get_collection(user_id, collection_id)
    collection.share_slug = _new_slug()
    collection.is_public = True
    db.session.commit()
    return collection


def unshare_collection(user_id: int, collection_id: str) -> Collection:
    collection = get_collection(user_id, collection_id)
    collection.share_slug = None
    collection.is_public = False
    db.session.commit()
    return collection


def get_shared_collection(slug: str) -> tuple[Collection, list[Link]]:
    collection = Collection.query.filter_by(share_slug=slug, is_public=True).first()
    if not collection:
        raise NotFoundError("Collection not found")
    return collection, collection_links(collection)
