from __future__ import annotations

from flask import Response, current_app, g, jsonify, request

from linksaver.api import api_bp
from linksaver.errors import ValidationError
from linksaver.schemas import (
    BulkInput,
    CollectionInput,
    CollectionPatch,
    LinkFilters,
    LinkInput,
    LinkPatch,
)
from linksaver.services import collections as collection_store
from linksaver.services import links as link_store
from linksaver.services.health import check_link_health
from linksaver.services.ingestion import ingest_bulk, ingest_link
from linksaver.services.security import api_auth_required


@api_bp.route("/health")
def health():
    return jsonify({"status": "ok", "service": "LinkSaver"})


@api_bp.route("/links", methods=["GET"])
@api_auth_required
def links_list():
    filters = LinkFilters.from_args(request.args)
    items = link_store.list_links(g.api_user.id, filters)
    return jsonify({"links": [item.as_dict() for item in items]})


@api_bp.route("/links", methods=["POST"])
@api_auth_required
def links_create():
    data = LinkInput.from_payload(request.get_json(silent=True))
    current_app.logger.info("Fetching metadata for: %s", data.url)
    link = ingest_link(g.api_user.id, data)
    return jsonify({"link": link.as_dict()}), 201


@api_bp.route("/links/check-duplicate", methods=["GET"])
@api_auth_required
def links_check_duplicate():
    url = (request.args.get("url") or "").strip()
    if not url:
        raise ValidationError("url", "URL required")
    return jsonify(link_store.check_duplicate(g.api_user.id, url))


@api_bp.route("/links/stats", methods=["GET"])
@api_auth_required
def links_stats():
    return jsonify(link_store.link_stats(g.api_user.id))


@api_bp.route("/links/export", methods=["GET"])
@api_auth_required
def links_export():
    fmt = (request.args.get("format") or "json").strip().lower()
    exported = link_store.export_links(g.api_user.id, fmt)
    if fmt == "csv":
        return Response(
            exported,
            content_type="text/csv; charset=utf-8",
            headers={"Content-Disposition": "attachment; filename=links-export.csv"},
        )
    return jsonify(exported)


@api_bp.route("/links/bulk", methods=["POST"])
@api_auth_required
def links_bulk_create():
    data = BulkInput.from_payload(
        request.get_json(silent=True),
        max_urls=current_app.config["BULK_MAX_URLS"],
    )
    result = ingest_bulk(g.api_user.id, data)
    return jsonify(result.as_dict()), 201


@api_bp.route("/links/<link_id>", methods=["GET"])
@api_auth_required
def links_get(link_id: str):
    link = link_store.get_link(g.api_user.id, link_id)
    return jsonify({"link": link.as_dict()})


@api_bp.route("/links/<link_id>", methods=["PATCH"])
@api_auth_required
def links_update(link_id: str):
    patch = LinkPatch.from_payload(request.get_json(silent=True))
    link = link_store.update_link(g.api_user.id, link_id, patch)
    return jsonify({"link": link.as_dict()})


@api_bp.route("/links/<link_id>", methods=["DELETE"])
@api_auth_required
def links_delete(link_id: str):
    link_store.delete_link(g.api_user.id, link_id)
    return jsonify({"message": "Link deleted successfully"})


@api_bp.route("/links/<link_id>/favorite", methods=["PATCH"])
@api_auth_required
def links_toggle_favorite(link_id: str):
    link = link_store.toggle_favorite(g.api_user.id, link_id)
    return jsonify({"link": link.as_dict()})


@api_bp.route("/links/<link_id>/check-health", methods=["POST"])
@api_auth_required
def links_check_health(link_id: str):
    link = link_store.get_link(g.api_user.id, link_id)
    result = check_link_health(
        link.url, timeout=current_app.config["HEALTH_CHECK_TIMEOUT"]
    )
    return jsonify(
        {
            "id": link.id,
            "url": link.url,
            "is_alive": result.is_alive,
            "status_code": result.status_code,
            "checked_at": result.checked_at,
        }
    )


@api_bp.route("/collections", methods=["GET"])
@api_auth_required
def collections_list():
    return jsonify({"collections": collection_store.list_collections(g.api_user.id)})


@api_bp.route("/collections", methods=["POST"])
@api_auth_required
def collections_create():
    data = CollectionInput.from_payload(request.get_json(silent=True))
    collection = collection_store.create_collection(
        g.api_user.id, data, current_app.config["DEFAULT_COLLECTION_COLOR"]
    )
    return jsonify({"collection": collection.as_dict()}), 201


@api_bp.route("/collections/<collection_id>", methods=["GET"])
@api_auth_required
def collections_get(collection_id: str):
    collection = collection_store.get_collection(g.api_user.id, collection_id)
    links = collection_store.collection_links(collection)
    return jsonify(
        {
            "collection": collection.as_dict(),
            "links": [item.as_dict() for item in links],
        }
    )


@api_bp.route("/collections/<collection_id>", methods=["PATCH"])
@api_auth_required
def collections_update(collection_id: str):
    patch = CollectionPatch.from_payload(request.get_json(silent=True))
    collection = collection_store.update_collection(g.api_user.id, collection_id, patch)
    return jsonify({"collection": collection.as_dict()})


@api_bp.route("/collections/<collection_id>", methods=["DELETE"])
@api_auth_required
def collections_delete(collection_id: str):
    collection_store.delete_collection(g.api_user.id, collection_id)
    return jsonify({"message": "Collection deleted successfully"})


@api_bp.route("/collections/<collection_id>/share", methods=["POST"])
@api_auth_required
def collections_share(collection_id: str):
    collection = collection_store.share_collection(g.api_user.id, collection_id)
    return jsonify(
        {
            "collection": collection.as_dict(),
            "share_url": f"/shared/{collection.share_slug}",
        }
    )


@api_bp.route("/collections/<collection_id>/share", methods=["DELETE"])
@api_auth_required
def collections_unshare(collection_id: str):
    collection = collection_store.unshare_collection(g.api_user.id, collection_id)
    return jsonify({"collection": collection.as_dict()})


@api_bp.route("/shared/<slug>", methods=["GET"])
def shared_collection(slug: str):
    collection, links = collection_store.get_shared_collection(slug)
    return jsonify(
        {
            "collection": collection.as_public_dict(),
            "links": [item.as_public_dict() for item in links],
        }
    )
