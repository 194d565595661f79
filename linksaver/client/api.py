from __future__ import annotations

import logging

import httpx

from linksaver.schemas import LinkFilters, LinkPatch

logger = logging.getLogger(__name__)


class ApiError(Exception):
    def __init__(
        self, status_code: int | None, message: str, body: dict | None = None
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.body = body or {}


class LinkSaverClient:
    """Thin httpx wrapper over the LinkSaver REST API.

    Every non-2xx response and every transport failure raises :class:`ApiError`
    carrying the server's ``error`` message. No retries are attempted.
    """

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
        event_hooks: dict | None = None,
    ) -> None:
        self._client = httpx.Client(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            event_hooks=event_hooks,
            headers={"Accept": "application/json"},
        )
        if token:
            self.set_token(token)

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def close(self) -> None:
        self._client.close()

    def set_token(self, token: str) -> None:
        self._client.headers["Authorization"] = f"Bearer {token}"

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        logger.debug("%s %s", method, path)
        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise ApiError(None, str(exc) or exc.__class__.__name__) from exc
        if response.is_error:
            try:
                body = response.json()
            except ValueError:
                body = None
            if not isinstance(body, dict):
                body = {}
            raise ApiError(
                response.status_code,
                body.get("error") or f"Request failed ({response.status_code})",
                body,
            )
        return response

    def _json(self, method: str, path: str, key: str | None = None, **kwargs):
        response = self._request(method, path, **kwargs)
        try:
            body = response.json()
            return body[key] if key else body
        except (ValueError, KeyError, TypeError) as exc:
            raise ApiError(
                response.status_code, f"Malformed response from {path}"
            ) from exc

    # auth

    def register(self, username: str, password: str) -> int:
        return self._json(
            "POST",
            "/api/auth/register",
            key="user_id",
            json={"username": username, "password": password},
        )

    def login(self, username: str, password: str, token_name: str | None = None) -> str:
        payload = {"username": username, "password": password}
        if token_name:
            payload["token_name"] = token_name
        token = self._json("POST", "/api/auth/token", json=payload, key="token")
        self.set_token(token)
        return token

    # links

    def get_links(self, filters: LinkFilters | None = None) -> list[dict]:
        params = (filters or LinkFilters()).to_params()
        return self._json("GET", "/api/links", params=params, key="links")

    def get_link(self, link_id: str) -> dict:
        return self._json("GET", f"/api/links/{link_id}", key="link")

    def create_link(
        self,
        url: str,
        note: str | None = None,
        tags: list[str] | None = None,
        is_favorite: bool | None = None,
        collection_id: str | None = None,
        allow_duplicate: bool | None = None,
    ) -> dict:
        payload = {"url": url}
        optional = {
            "note": note,
            "tags": tags,
            "is_favorite": is_favorite,
            "collection_id": collection_id,
            "allow_duplicate": allow_duplicate,
        }
        payload.update({key: value for key, value in optional.items() if value is not None})
        return self._json("POST", "/api/links", json=payload, key="link")

    def update_link(self, link_id: str, patch: LinkPatch) -> dict:
        return self._json(
            "PATCH", f"/api/links/{link_id}", key="link", json=patch.changes()
        )

    def delete_link(self, link_id: str) -> None:
        self._request("DELETE", f"/api/links/{link_id}")

    def toggle_favorite(self, link_id: str) -> dict:
        return self._json("PATCH", f"/api/links/{link_id}/favorite", key="link")

    def check_duplicate(self, url: str) -> dict:
        return self._json(
            "GET", "/api/links/check-duplicate", params={"url": url}
        )

    def check_health(self, link_id: str) -> dict:
        return self._json("POST", f"/api/links/{link_id}/check-health")

    def bulk_import(
        self,
        urls: list,
        tags: list[str] | None = None,
        collection_id: str | None = None,
    ) -> dict:
        payload: dict = {"urls": urls}
        if tags is not None:
            payload["tags"] = tags
        if collection_id is not None:
            payload["collection_id"] = collection_id
        return self._json("POST", "/api/links/bulk", json=payload)

    def get_stats(self) -> dict:
        return self._json("GET", "/api/links/stats")

    def export_links(self, fmt: str = "json") -> dict | str:
        if fmt == "csv":
            return self._request("GET", "/api/links/export", params={"format": fmt}).text
        return self._json("GET", "/api/links/export", params={"format": fmt})

    # collections

    def get_collections(self) -> list[dict]:
        return self._json("GET", "/api/collections", key="collections")

    def get_collection(self, collection_id: str) -> dict:
        return self._json("GET", f"/api/collections/{collection_id}")

    def create_collection(
        self, name: str, description: str | None = None, color: str | None = None
    ) -> dict:
        payload = {"name": name}
        if description is not None:
            payload["description"] = description
        if color is not None:
            payload["color"] = color
        return self._json("POST", "/api/collections", json=payload, key="collection")

    def update_collection(self, collection_id: str, changes: dict) -> dict:
        return self._json(
            "PATCH", f"/api/collections/{collection_id}", key="collection", json=changes
        )

    def delete_collection(self, collection_id: str) -> None:
        self._request("DELETE", f"/api/collections/{collection_id}")

    def share_collection(self, collection_id: str) -> dict:
        return self._json("POST", f"/api/collections/{collection_id}/share")

    def unshare_collection(self, collection_id: str) -> dict:
        return self._json(
            "DELETE", f"/api/collections/{collection_id}/share", key="collection"
        )

    def get_shared(self, slug: str) -> dict:
        return self._json("GET", f"/api/shared/{slug}")
