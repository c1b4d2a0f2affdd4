# link_scout/crawler/fetcher.py
"""
Fetcher module: issues GET requests under a concurrency cap and exposes the
response headers before the body is read.
"""
from __future__ import annotations

import asyncio
import io
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from aiohttp import ClientError, ClientSession
from PIL import Image, UnidentifiedImageError

__all__ = ("FetchResult", "Fetcher", "HeadersCallback", "ImageInfo")


@dataclass(slots=True)
class FetchResult:
    """Outcome of one request.

    ``status`` is 0 when no HTTP response was obtained (network failure,
    per-request timeout) or when the response is unusable for the crawl
    (redirect off the crawl host).
    """

    url: str
    final_url: str
    status: int
    content_type: str = ""
    text: Optional[str] = None
    resolved_to_file: bool = False
    error: Optional[str] = None

    @property
    def is_html(self) -> bool:
        return self.content_type.lower().startswith("text/html")


@dataclass(slots=True)
class ImageInfo:
    """Outcome of an image load check; ``size`` is the natural (width, height)."""

    loaded: bool
    size: Optional[Tuple[int, int]] = None


#: Called once headers are in; returning False drops the body unread.
HeadersCallback = Callable[[FetchResult], bool]


class Fetcher:
    """Handles HTTP fetching for the crawler with a shared concurrency limit."""

    def __init__(self, session: ClientSession, concurrency: int) -> None:
        self.session = session
        self._slots = asyncio.Semaphore(concurrency)

    async def fetch(self, url: str, on_headers: Optional[HeadersCallback] = None) -> FetchResult:
        """
        GET *url*, following redirects.

        The body is read only for HTTP 200 responses that *on_headers* did not
        reject. Network errors never propagate: they come back as status 0.
        """
        async with self._slots:
            try:
                async with self.session.get(url, allow_redirects=True) as resp:
                    result = FetchResult(
                        url=url,
                        final_url=str(resp.url),
                        status=resp.status,
                        content_type=resp.headers.get("Content-Type", ""),
                    )
                    if on_headers is not None and not on_headers(result):
                        return result
                    if result.status == 200:
                        result.text = await resp.text(errors="replace")
                    return result
            except (ClientError, asyncio.TimeoutError) as exc:
                return FetchResult(url=url, final_url=url, status=0, error=str(exc) or type(exc).__name__)

    async def check_image(self, url: str) -> ImageInfo:
        """
        Load *url* the way an <img> would: it counts as loaded only for a
        non-empty HTTP 200 image that can be decoded. SVG has no natural size.
        """
        async with self._slots:
            try:
                async with self.session.get(url, allow_redirects=True) as resp:
                    if resp.status != 200:
                        return ImageInfo(loaded=False)
                    ctype = resp.headers.get("Content-Type", "").split(";", 1)[0].strip().lower()
                    if ctype and not (ctype.startswith("image/") or ctype == "application/octet-stream"):
                        return ImageInfo(loaded=False)
                    body = await resp.read()
            except (ClientError, asyncio.TimeoutError):
                return ImageInfo(loaded=False)
        if not body:
            return ImageInfo(loaded=False)
        if ctype == "image/svg+xml":
            return ImageInfo(loaded=True)
        return _decode_size(body)


def _decode_size(body: bytes) -> ImageInfo:
    try:
        with Image.open(io.BytesIO(body)) as img:
            return ImageInfo(loaded=True, size=img.size)
    except (UnidentifiedImageError, OSError, ValueError):
        return ImageInfo(loaded=False)
