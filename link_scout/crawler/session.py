# link_scout/crawler/session.py
"""
Mutable state of one crawl run and the global crawl deadline.
"""
from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

__all__ = ("CrawlSession", "TimeoutGuard")


class CrawlSession:
    """In-flight request bookkeeping for a single crawl.

    ``request_counter`` counts live requests; when it drops back to zero the
    crawl is complete and :attr:`finished` is set.
    """

    def __init__(self) -> None:
        self.request_counter = 0
        self.max_in_flight = 0
        self.timed_out = False
        self.handles: List[asyncio.Future] = []
        self.finished = asyncio.Event()
        self.error: Optional[BaseException] = None

    def register(self, handle: asyncio.Future) -> None:
        """Make *handle* cancellable by the deadline without counting it."""
        self.handles.append(handle)

    def begin_request(self, handle: asyncio.Future) -> None:
        self.register(handle)
        self.request_counter += 1
        self.max_in_flight = max(self.max_in_flight, self.request_counter)

    def end_request(self) -> None:
        if self.request_counter <= 0:
            raise RuntimeError("request counter decremented below zero")
        self.request_counter -= 1

    @property
    def idle(self) -> bool:
        return self.request_counter == 0

    def fail(self, exc: BaseException) -> None:
        """Record the first invariant violation and stop waiting."""
        if self.error is None:
            self.error = exc
        self.finished.set()

    def abort_pending(self) -> int:
        """Cancel every handle that has not completed yet; return how many."""
        aborted = 0
        for handle in self.handles:
            if not handle.done():
                handle.cancel()
                aborted += 1
        return aborted


class TimeoutGuard:
    """Cancels all pending requests once the crawl deadline passes."""

    def __init__(self, session: CrawlSession, seconds: Optional[float]) -> None:
        self.session = session
        self.seconds = seconds
        self._timer: Optional[asyncio.TimerHandle] = None
        self.logger = logging.getLogger("LinkScout")

    @property
    def armed(self) -> bool:
        return self._timer is not None

    def start(self) -> None:
        if self.seconds is None:
            self.logger.debug("Crawl deadline disabled")
            return
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.seconds, self.fire)

    def cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def fire(self) -> None:
        self._timer = None
        self.session.timed_out = True
        aborted = self.session.abort_pending()
        self.logger.warning(
            "Crawl deadline of %.1f s reached, aborting %d pending request(s)", self.seconds or 0, aborted
        )
