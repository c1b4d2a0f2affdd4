# File: tests/conftest.py
from __future__ import annotations

from collections import Counter
from typing import AsyncIterator, Callable, Dict, Optional, Tuple, Union

import pytest
import pytest_asyncio
from aiohttp import web

from link_scout.config import CrawlerConfig

#: page body (text/html, 200), a (status, body, content_type) tuple, or a request handler
PageT = Union[str, Tuple[int, Union[str, bytes], str], Callable]


class FakeSite:
    """aiohttp test server built from a path → page mapping; counts hits per path."""

    def __init__(self) -> None:
        self.hits: Counter = Counter()
        self.base: Optional[str] = None
        self._runner: Optional[web.AppRunner] = None

    async def start(self, pages: Dict[str, PageT]) -> str:
        hits = self.hits

        @web.middleware
        async def count(request: web.Request, handler):
            hits[request.path] += 1
            return await handler(request)

        app = web.Application(middlewares=[count])
        for path, page in pages.items():
            app.router.add_get(path, self._handler(page))
        self._runner = web.AppRunner(app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, "127.0.0.1", 0)
        await site.start()
        host, port = self._runner.addresses[0][:2]
        self.base = f"http://{host}:{port}"
        return self.base

    async def close(self) -> None:
        if self._runner is not None:
            await self._runner.cleanup()

    @staticmethod
    def _handler(page: PageT):
        if callable(page):
            return page

        async def handle(_):
            if isinstance(page, str):
                return web.Response(text=page, content_type="text/html")
            status, body, content_type = page
            if isinstance(body, str):
                body = body.encode("utf-8")
            return web.Response(status=status, body=body, content_type=content_type)

        return handle


@pytest_asyncio.fixture
async def site() -> AsyncIterator[FakeSite]:
    server = FakeSite()
    yield server
    await server.close()


@pytest.fixture()
def make_config() -> Callable[..., CrawlerConfig]:
    """Return a factory for small, fast CrawlerConfig objects."""

    def _make(start_url: str, **overrides) -> CrawlerConfig:
        params = dict(
            start_url=start_url,
            max_timeout_ms=5000,
            request_timeout=2.0,
            user_agent="TestAgent/1.0",
        )
        params.update(overrides)
        return CrawlerConfig(**params)

    return _make
