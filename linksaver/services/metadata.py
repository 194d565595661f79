from __future__ import annotations

import logging
import time
import warnings
from dataclasses import asdict, dataclass
from urllib.parse import urljoin, urlparse

import httpx
from bs4 import BeautifulSoup, XMLParsedAsHTMLWarning

from linksaver.services.common import url_hostname

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "User-Agent": "Mozilla/5.0 (compatible; LinkSaver/1.0)",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
}
DEFAULT_FAVICON_SERVICE = "https://www.google.com/s2/favicons?domain={domain}&sz=64"
DEFAULT_TIMEOUT = 8.0
DEFAULT_MAX_BYTES = 2_000_000
FALLBACK_TITLE = "Saved Link"

_TITLE_KEYS = ("og:title", "twitter:title", "dc.title", "dcterms.title")
_DESCRIPTION_KEYS = (
    "og:description",
    "twitter:description",
    "dc.description",
    "dcterms.description",
    "description",
)
_IMAGE_KEYS = (
    "og:image",
    "og:image:url",
    "og:image:secure_url",
    "twitter:image",
    "twitter:image:src",
)


@dataclass
class LinkMetadata:
    title: str | None
    description: str | None
    image: str | None
    favicon: str | None

    def as_dict(self):
        return asdict(self)


class MetadataFetchError(Exception):
    pass


def domain_title(url: str) -> str:
    hostname = url_hostname(url)
    if not hostname:
        return FALLBACK_TITLE
    if hostname.startswith("www."):
        hostname = hostname[len("www.") :]
    return hostname.split(".")[0] or FALLBACK_TITLE


def favicon_service_url(url: str, template: str = DEFAULT_FAVICON_SERVICE) -> str | None:
    hostname = url_hostname(url)
    if not hostname:
        return None
    return template.format(domain=hostname)


def fallback_metadata(url: str, favicon_template: str = DEFAULT_FAVICON_SERVICE) -> LinkMetadata:
    return LinkMetadata(
        title=domain_title(url),
        description=None,
        image=None,
        favicon=favicon_service_url(url, favicon_template),
    )


def fetch_page(
    url: str,
    timeout: float,
    max_bytes: int,
    transport: httpx.BaseTransport | None = None,
) -> tuple[str, str]:
    """Download at most ``max_bytes`` of an HTML page.

    ``timeout`` bounds the whole download as well as each connect and read.
    """
    deadline = time.monotonic() + timeout
    with httpx.Client(
        follow_redirects=True,
        timeout=timeout,
        headers=DEFAULT_HEADERS,
        transport=transport,
    ) as client:
        with client.stream("GET", url) as response:
            if not response.is_success:
                raise MetadataFetchError(f"HTTP {response.status_code}")
            content_type = response.headers.get("content-type", "")
            if content_type and "html" not in content_type and "xml" not in content_type:
                raise MetadataFetchError(f"Unsupported content type: {content_type}")
            chunks = []
            total = 0
            for chunk in response.iter_bytes():
                if time.monotonic() > deadline:
                    raise MetadataFetchError("timed out")
                chunks.append(chunk[: max_bytes - total])
                total += len(chunks[-1])
                if total >= max_bytes:
                    break
            data = b"".join(chunks)
            encoding = response.encoding or "utf-8"
            return data.decode(encoding, errors="ignore"), str(response.url)


def _build_soup(html: str) -> BeautifulSoup:
    with warnings.catch_warnings():
        warnings.filterwarnings("ignore", category=XMLParsedAsHTMLWarning)
        return BeautifulSoup(html, "lxml")


def _meta_values(soup: BeautifulSoup) -> dict[str, str]:
    values: dict[str, str] = {}
    for tag in soup.find_all("meta"):
        key = tag.get("property") or tag.get("name") or tag.get("itemprop")
        content = tag.get("content")
        if not isinstance(key, str) or not isinstance(content, str):
            continue
        key = key.strip().lower()
        content = content.strip()
        if key and content and key not in values:
            values[key] = content
    return values


def _first(values: dict[str, str], keys: tuple[str, ...]) -> str | None:
    for key in keys:
        if values.get(key):
            return values[key]
    return None


def _favicon_href(soup: BeautifulSoup) -> str | None:
    for link in soup.find_all("link"):
        rel = link.get("rel") or []
        if isinstance(rel, str):
            rel = rel.split()
        if any("icon" in (value or "").lower() for value in rel):
            href = link.get("href")
            if isinstance(href, str) and href.strip():
                return href.strip()
    return None


def _origin(url: str) -> str:
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc}"


def _absolute(value: str | None, origin: str) -> str | None:
    if not value:
        return None
    if value.startswith(("http://", "https://")):
        return value
    return urljoin(origin + "/", value)


def extract_metadata(
    html: str, url: str, favicon_template: str = DEFAULT_FAVICON_SERVICE
) -> LinkMetadata:
    soup = _build_soup(html)
    values = _meta_values(soup)
    origin = _origin(url)

    title = _first(values, _TITLE_KEYS)
    if not title and soup.title and soup.title.string:
        title = soup.title.string.strip() or None

    return LinkMetadata(
        title=title or domain_title(url),
        description=_first(values, _DESCRIPTION_KEYS),
        image=_absolute(_first(values, _IMAGE_KEYS), origin),
        favicon=_absolute(_favicon_href(soup), origin)
        or favicon_service_url(url, favicon_template),
    )


def resolve_metadata(
    url: str,
    timeout: float = DEFAULT_TIMEOUT,
    max_bytes: int = DEFAULT_MAX_BYTES,
    favicon_template: str = DEFAULT_FAVICON_SERVICE,
    transport: httpx.BaseTransport | None = None,
) -> LinkMetadata:
    """Return preview metadata for ``url``, falling back to URL-derived values.

    Never raises: fetch errors, timeouts, non-HTML responses and parse errors
    all produce :func:`fallback_metadata`.
    """
    try:
        html, _final_url = fetch_page(
            url, timeout=timeout, max_bytes=max_bytes, transport=transport
        )
        return extract_metadata(html, url, favicon_template)
    except Exception as exc:
        logger.warning("Metadata fetch failed for %s: %s", url, exc)
        return fallback_metadata(url, favicon_template)
