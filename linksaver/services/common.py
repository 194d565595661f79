from urllib.parse import urlparse


def to_bool(value, default=False):
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def parse_tags(raw) -> list[str]:
    if not raw:
        return []
    if isinstance(raw, (list, tuple, set)):
        raw = ",".join(str(item) for item in raw if item is not None)
    tokens = [t.strip().lower() for t in str(raw).replace(";", ",").split(",")]
    return sorted({t for t in tokens if t})


def normalize_tag(raw: str | None) -> str:
    return (raw or "").strip().lower()


def url_hostname(url: str) -> str | None:
    try:
        return urlparse(url).hostname
    except ValueError:
        return None


def is_valid_url(url: str) -> bool:
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in {"http", "https"} and bool(parsed.hostname)
