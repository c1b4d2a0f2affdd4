# === FILE: link_scout/crawler/crawler.py ===
"""
Асинхронный планировщик обхода: проверка robots.txt, дедупликация через метку
``visited``, запросы, разбор ответов и рекурсия по внутренним ссылкам.

Классификация страницы и планирование её ссылок никогда не делают ``await``,
поэтому между продолжениями запросов они выполняются целиком: страница,
помеченная ``visited``, не может быть запрошена повторно.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from functools import partial
from typing import Dict, Iterable, Optional, Tuple

from aiohttp import ClientSession, ClientTimeout

from link_scout.aggregator import CrawlReport
from link_scout.config import CrawlerConfig
from link_scout.crawler.classifier import PageClassifier
from link_scout.crawler.fetcher import Fetcher, FetchResult, ImageInfo
from link_scout.crawler.models import Element, ElementLabel, ElementSnapshot, Group, GroupLabel
from link_scout.crawler.records import RecordStore
from link_scout.crawler.robots import RobotsPolicy
from link_scout.crawler.session import CrawlSession, TimeoutGuard
from link_scout.utils import WEB_SCHEMES, hostname_of, scheme_of, strip_fragment, url_extension

__all__ = ("VisitTask", "CrawlScheduler", "STATUS_LABELS")

#: HTTP status → group label for failed requests. 0 means no usable response.
STATUS_LABELS: Dict[int, GroupLabel] = {
    0: GroupLabel.REDIRECTS,
    400: GroupLabel.BAD_REQUEST,
    401: GroupLabel.ACCESS_DENIED,
    403: GroupLabel.FORBIDDEN,
    404: GroupLabel.NOT_FOUND,
}

_STATUS_MESSAGES: Dict[int, str] = {
    0: (
        "The request to %s caused an undefined error. The url probably either redirects "
        "to an external site, or is invalid. There may also be a networking issue."
    ),
    400: "A 400 Error occurred when requesting %s. The request sent to the server was malformed.",
    401: "A 401 Error occurred when requesting %s. Access was denied to the client by the server.",
    403: "A 403 Error occurred when requesting %s. The server considers access to the resource forbidden.",
    404: "A 404 Error occurred when requesting %s. The server could not find the given page.",
}

_START_TEXT = "(Initial page for crawler)"


@dataclass(slots=True)
class VisitTask:
    """One scheduled fetch: which group, which URL, found on which page."""

    target_url: str
    referrer: str
    group: Group
    is_start: bool = False


class CrawlScheduler:
    """Асинхронный обход одного сайта с учётом robots.txt и общего таймаута."""

    def __init__(self, config: CrawlerConfig) -> None:
        self.config = config
        self.start_url = strip_fragment(str(config.start_url))
        self.host = hostname_of(self.start_url)
        self.store = RecordStore()
        self.session = CrawlSession()
        self.guard = TimeoutGuard(self.session, config.deadline)
        self.policy = RobotsPolicy(self.start_url, ignore_file=config.ignore_robots_txt)
        self.classifier = PageClassifier(
            self.store,
            self.start_url,
            banned_strings=() if config.ignore_banned_strings else config.banned_strings,
            excluded_selectors=config.excluded_selectors,
            image_checker=self._check_image if config.check_images else None,
        )
        self.http: Optional[ClientSession] = None
        self._fetcher: Optional[Fetcher] = None
        self.logger = logging.getLogger("LinkScout")
        self._image_checks: Dict[str, asyncio.Task] = {}

    async def __aenter__(self) -> CrawlScheduler:
        self.http = ClientSession(
            timeout=ClientTimeout(total=self.config.request_timeout),
            headers={"User-Agent": self.config.user_agent},
            raise_for_status=False,
        )
        self._fetcher = Fetcher(self.http, self.config.concurrency)
        return self

    @property
    def fetcher(self) -> Fetcher:
        if self._fetcher is None:
            raise RuntimeError("Session not initialized")
        return self._fetcher

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.guard.cancel()
        self.session.abort_pending()
        if self.http and not self.http.closed:
            await self.http.close()

    # ------------------------------------------------------------------ #
    # Crawl entry point                                                  #
    # ------------------------------------------------------------------ #

    async def crawl(self) -> CrawlReport:
        if self._fetcher is None or self.http is None:
            raise RuntimeError("Session not initialized")
        self.logger.info("Старт обхода: %s", self.start_url)
        started = time.monotonic()

        await self.policy.fetch_and_parse(self.http)
        self.policy.add_disallow(*self.config.extra_disallow_patterns)
        self.policy.freeze()

        self.guard.start()
        start_group = self.store.get_or_create_group(self.start_url)
        start_group.add_label(GroupLabel.VISITED)
        spoof = ElementSnapshot(tag="a", attributes=(("href", self.start_url),), text=_START_TEXT)
        self.store.record_element(start_group, self.start_url, spoof, self.start_url).add_label(
            ElementLabel.START_PAGE
        )

        visit = VisitTask(self.start_url, self.start_url, start_group, is_start=True)
        handle = asyncio.create_task(self._visit(visit))
        self.session.register(handle)
        try:
            await handle
        except asyncio.CancelledError:
            if not (handle.cancelled() and self.session.timed_out):
                raise
            self.logger.warning("Start page %s aborted by the crawl deadline", self.start_url)

        # a start page without crawlable links never issues a counted request
        self._check_complete()
        await self.session.finished.wait()
        self.guard.cancel()
        if self.session.error is not None:
            raise self.session.error

        duration = time.monotonic() - started
        self.logger.info(
            "Завершено: %d адресов за %.2f с%s",
            len(self.store), duration, " (не полностью, таймаут)" if self.session.timed_out else "",
        )
        return CrawlReport(
            start_url=self.start_url,
            store=self.store,
            timed_out=self.session.timed_out,
            duration=duration,
            robots_sitemaps=list(self.policy.sitemap),
        )

    # ------------------------------------------------------------------ #
    # Scheduling                                                         #
    # ------------------------------------------------------------------ #

    def schedule(self, groups: Iterable[Group], referrer: str) -> None:
        """Launch a fetch for every crawlable group not visited yet."""
        self.logger.debug("Checking links found on: %s", referrer)
        for group in groups:
            if self.session.timed_out:
                self.logger.debug("Deadline passed, not scheduling links from %s", referrer)
                return
            if not self.policy.is_allowed(group.target_url):
                group.add_label(GroupLabel.ROBOTS_DISALLOWED)
                continue
            if group.has_label(GroupLabel.VISITED):
                continue
            group.add_label(GroupLabel.VISITED)
            self._launch(VisitTask(group.target_url, referrer, group))

    def _launch(self, visit: VisitTask) -> None:
        handle = asyncio.create_task(self._visit(visit))
        self.session.begin_request(handle)
        handle.add_done_callback(self._request_done)

    async def _visit(self, visit: VisitTask) -> None:
        result = await self.fetcher.fetch(visit.target_url, partial(self._check_headers, visit.group))
        self._handle_result(visit, result)

    def _request_done(self, handle: asyncio.Future) -> None:
        if handle.cancelled():
            if not self.session.timed_out:
                self.logger.warning("Request cancelled outside of the crawl deadline")
        elif handle.exception() is not None:
            self.session.fail(handle.exception())
        self.session.end_request()
        self._check_complete()

    def _check_complete(self) -> None:
        if self.session.idle and not self.session.finished.is_set():
            self.guard.cancel()
            self.session.finished.set()

    # ------------------------------------------------------------------ #
    # Response handling                                                  #
    # ------------------------------------------------------------------ #

    def _check_headers(self, group: Group, result: FetchResult) -> bool:
        """Decide from the headers whether the body is worth reading."""
        group.status = result.status
        if hostname_of(result.final_url) != self.host:
            result.error = f"redirected off-site to {result.final_url}"
            result.status = 0
            return False
        if result.status != 200:
            return True

        is_file = url_extension(result.final_url) in self.config.recognized_file_types
        if is_file:
            group.add_label(GroupLabel.FILE)
        if not result.is_html:
            if not is_file:
                group.add_label(GroupLabel.UNKNOWN_CONTENT_TYPE)
            result.resolved_to_file = True
            return False
        return True

    def _handle_result(self, visit: VisitTask, result: FetchResult) -> None:
        if result.resolved_to_file:
            return
        if result.status == 200:
            if self.config.recursive or visit.is_start:
                crawlable = self.classifier.classify_page(result.text, visit.target_url, result.final_url)
                self.schedule(crawlable, visit.target_url)
            return
        self._report_failure(visit, result)

    def _report_failure(self, visit: VisitTask, result: FetchResult) -> None:
        label = STATUS_LABELS.get(result.status)
        if label is None:
            self.logger.error(
                "An unidentified error occurred (HTTP %s) when requesting %s. Linked-to from: %s",
                result.status, visit.target_url, visit.referrer,
            )
            return
        visit.group.add_label(label)
        message = _STATUS_MESSAGES[result.status] % visit.target_url
        if result.error:
            message = f"{message} ({result.error})"
        self.logger.error("%s Linked-to from: %s", message, visit.referrer)

    # ------------------------------------------------------------------ #
    # Images                                                             #
    # ------------------------------------------------------------------ #

    def _check_image(self, group: Group, element: Element) -> None:
        """Start (once per src) the load check of an image; never blocks."""
        if element.resolved_url is None or scheme_of(group.target_url) not in WEB_SCHEMES:
            return
        check = self._image_checks.get(group.target_url)
        if check is None:
            if self.session.timed_out:
                return
            check = asyncio.create_task(self.fetcher.check_image(group.target_url))
            self.session.begin_request(check)
            check.add_done_callback(self._request_done)
            self._image_checks[group.target_url] = check
        check.add_done_callback(partial(self._image_settled, element))

    @staticmethod
    def _image_settled(element: Element, check: asyncio.Future) -> None:
        if check.cancelled() or check.exception() is not None:
            return
        image: ImageInfo = check.result()
        if not image.loaded:
            element.add_label(ElementLabel.UNLOADED)
        elif image.size is not None and not _declared_size_matches(element, image.size):
            element.add_label(ElementLabel.IMPROPER_SIZE)


def _declared_size_matches(element: Element, natural: Tuple[int, int]) -> bool:
    """Compare the width/height attributes (when present) with the natural size."""
    for name, actual in zip(("width", "height"), natural):
        declared = element.snapshot.get(name)
        if declared is None:
            continue
        try:
            if float(declared.strip()) != actual:
                return False
        except ValueError:
            return False
    return True
