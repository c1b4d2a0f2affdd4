# File: link_scout/utils.py
"""link_scout.utils: URL helpers shared by the classifier, robots policy and scheduler."""

from __future__ import annotations

import posixpath
from typing import Iterable, Optional, Sequence
from urllib.parse import urldefrag, urljoin, urlsplit, urlunsplit

from link_scout.logger import logger

__all__: Sequence[str] = (
    "WEB_SCHEMES",
    "resolve_url",
    "strip_fragment",
    "origin_of",
    "hostname_of",
    "scheme_of",
    "url_extension",
    "url_path",
    "is_absolute",
    "find_banned_string",
)

WEB_SCHEMES = ("http", "https")


def resolve_url(base: str, raw: str) -> Optional[str]:
    """Resolve *raw* (an href/src attribute) against *base* the way a browser does.

    Scheme and host are lower-cased and an empty web path becomes ``/``.
    Returns ``None`` when the result cannot be parsed (e.g. broken IPv6 host).
    """
    try:
        joined = urljoin(base, raw.strip())
        parts = urlsplit(joined)
    except ValueError as exc:
        logger.debug("Unparseable URL %r on %s: %s", raw, base, exc)
        return None
    scheme = parts.scheme.lower()
    if scheme not in WEB_SCHEMES:
        return joined
    path = parts.path or "/"
    return urlunsplit((scheme, parts.netloc.lower(), path, parts.query, parts.fragment))


def strip_fragment(url: str) -> str:
    """Canonical URL: everything but the ``#fragment``."""
    return urldefrag(url).url


def origin_of(url: str) -> str:
    """Return ``scheme://host[:port]`` of *url*."""
    parts = urlsplit(url)
    return f"{parts.scheme.lower()}://{parts.netloc.lower()}"


def hostname_of(url: str) -> str:
    """Lower-cased hostname, or ``""`` if the URL has none or cannot be parsed."""
    try:
        return (urlsplit(url).hostname or "").lower()
    except ValueError:
        return ""


def scheme_of(url: str) -> str:
    """Lower-cased scheme, or ``""`` if the URL cannot be parsed."""
    try:
        return urlsplit(url).scheme.lower()
    except ValueError:
        return ""


def url_extension(url: str) -> str:
    """File extension of the URL path without the dot (``"pdf"``), or ``""``."""
    ext = posixpath.splitext(urlsplit(url).path)[1]
    return ext[1:].lower()


def url_path(url: str) -> str:
    """Path plus query: what remains of *url* once its origin is removed."""
    parts = urlsplit(url)
    path = parts.path or "/"
    return f"{path}?{parts.query}" if parts.query else path


def is_absolute(raw: str) -> bool:
    """True when the attribute value itself carries a scheme (``https://…``)."""
    try:
        return bool(urlsplit(raw.strip()).scheme)
    except ValueError:
        return False


def find_banned_string(url: str, banned: Iterable[str]) -> Optional[str]:
    """Return the first entry of *banned* found in *url* (case-insensitive)."""
    lowered = url.lower()
    for entry in banned:
        if entry and entry.lower() in lowered:
            return entry
    return None
