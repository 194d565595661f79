from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from linksaver.models import utcnow
from linksaver.services.metadata import DEFAULT_HEADERS

logger = logging.getLogger(__name__)


@dataclass
class LinkHealth:
    url: str
    is_alive: bool
    status_code: int | None
    checked_at: str


def check_link_health(
    url: str, timeout: float, transport: httpx.BaseTransport | None = None
) -> LinkHealth:
    status_code = None
    with httpx.Client(
        follow_redirects=True,
        timeout=timeout,
        headers=DEFAULT_HEADERS,
        transport=transport,
    ) as client:
        try:
            response = client.head(url)
            status_code = response.status_code
            if status_code in {405, 501}:
                response = client.get(url)
                status_code = response.status_code
        except httpx.HTTPError as exc:
            logger.info("Health check failed for %s: %s", url, str(exc) or exc.__class__.__name__)

    return LinkHealth(
        url=url,
        is_alive=status_code is not None and 200 <= status_code < 400,
        status_code=status_code,
        checked_at=utcnow().isoformat(),
    )
