# link_scout/crawler/classifier.py
"""
Page classification: record every link, image and iframe of a document and
label it by what its href/src points to.
"""
from __future__ import annotations

import logging
from typing import Callable, Iterable, List, Optional, Sequence, Set, Tuple, Union
from urllib.parse import urlsplit

from bs4 import BeautifulSoup
from bs4.element import Tag

from link_scout.crawler.models import NULL_TARGET, Element, ElementLabel, Group, GroupLabel
from link_scout.crawler.records import RecordStore
from link_scout.utils import (
    WEB_SCHEMES,
    find_banned_string,
    hostname_of,
    is_absolute,
    resolve_url,
    strip_fragment,
)

__all__ = ("PageClassifier", "ImageChecker", "RECOGNIZED_SCHEMES", "parse_document")

#: Non-web schemes that are expected in links; anything else is "unusual".
RECOGNIZED_SCHEMES = ("mailto", "file", "tel", "javascript")

_SCHEME_LABELS = {
    "mailto": GroupLabel.EMAIL,
    "file": GroupLabel.LOCAL_FILE,
    "javascript": GroupLabel.JAVASCRIPT_LINK,
}

#: Hook started for every recorded image; must not block.
ImageChecker = Callable[[Group, Element], None]

DocumentT = Union[BeautifulSoup, str]


def parse_document(document: DocumentT) -> BeautifulSoup:
    if isinstance(document, BeautifulSoup):
        return document
    return BeautifulSoup(document, "html.parser")


class PageClassifier:
    """Creates Group/Element records for one crawl and labels them.

    ``start_url`` fixes the crawl host and protocol: links to the same host are
    internal, and only internal links with the same protocol are crawlable.
    """

    def __init__(
        self,
        store: RecordStore,
        start_url: str,
        *,
        banned_strings: Sequence[str] = (),
        excluded_selectors: Sequence[str] = (),
        image_checker: Optional[ImageChecker] = None,
    ) -> None:
        self.store = store
        self.host = hostname_of(start_url)
        self.scheme = urlsplit(start_url).scheme.lower()
        self.banned_strings = tuple(banned_strings)
        self.excluded_selectors = tuple(excluded_selectors)
        self.image_checker = image_checker
        self.logger = logging.getLogger("LinkScout")

    # ------------------------------------------------------------------ #
    # Public API                                                         #
    # ------------------------------------------------------------------ #

    def classify_page(
        self, document: DocumentT, page_url: str, base_url: Optional[str] = None
    ) -> List[Group]:
        """Classify images, iframes and links; return the crawlable link groups."""
        soup = parse_document(document)
        self.classify_images(soup, page_url, base_url)
        self.classify_frames(soup, page_url, base_url)
        return self.classify_links(soup, page_url, base_url)

    def classify_links(
        self, document: DocumentT, page_url: str, base_url: Optional[str] = None
    ) -> List[Group]:
        soup = parse_document(document)
        base = self._base_url(soup, base_url or page_url)
        excluded = self._excluded(soup)
        crawlable: List[Group] = []

        for link in soup.find_all("a"):
            if id(link) in excluded:
                self.logger.debug("Skipping excluded link %s on %s", link.get("href"), page_url)
                continue
            href = link.get("href")
            if href is None:
                self._record_null(link, page_url)
                continue

            resolved = resolve_url(base, href)
            target = strip_fragment(resolved) if resolved is not None else href.strip()
            group = self.store.get_or_create_group(target)
            element = self.store.record_element(group, page_url, link, resolved)
            group.add_label(GroupLabel.LINK)
            if resolved is None:
                group.add_label(GroupLabel.EXTERNAL, GroupLabel.UNUSUAL_SCHEME)
                continue

            banned = find_banned_string(resolved, self.banned_strings)
            if banned:
                element.add_label(ElementLabel.BANNED_STRING)
                self.logger.error(
                    "Found link %s containing a banned string: %s. Linked-to from: %s",
                    href, banned, page_url,
                )
                continue

            parts = urlsplit(resolved)
            scheme = parts.scheme.lower()
            if parts.fragment:
                element.add_label(ElementLabel.ANCHOR)

            if scheme in WEB_SCHEMES and (parts.hostname or "").lower() == self.host:
                group.add_label(GroupLabel.INTERNAL)
                if scheme == self.scheme:
                    crawlable.append(group)
                else:
                    group.add_label(GroupLabel.HTTP_HTTPS_ERROR)
                if is_absolute(href):
                    element.add_label(ElementLabel.ABSOLUTE_INTERNAL)
                continue

            group.add_label(GroupLabel.EXTERNAL)
            if scheme in WEB_SCHEMES:
                continue
            if scheme not in RECOGNIZED_SCHEMES:
                group.add_label(GroupLabel.UNUSUAL_SCHEME)
            elif scheme in _SCHEME_LABELS:
                group.add_label(_SCHEME_LABELS[scheme])

        return crawlable

    def classify_images(
        self, document: DocumentT, page_url: str, base_url: Optional[str] = None
    ) -> None:
        """Record images; whether each one loads is settled later by the image checker."""
        soup = parse_document(document)
        base = self._base_url(soup, base_url or page_url)
        for image in soup.find_all("img"):
            found = self._classify_embedded(image, page_url, base, GroupLabel.IMAGE)
            if found is None:
                continue
            group, element = found
            if not image.get("alt"):
                element.add_label(ElementLabel.NO_ALT_TEXT)
            if self.image_checker is not None and element.resolved_url is not None:
                self.image_checker(group, element)

    def classify_frames(
        self, document: DocumentT, page_url: str, base_url: Optional[str] = None
    ) -> None:
        soup = parse_document(document)
        base = self._base_url(soup, base_url or page_url)
        for frame in soup.find_all("iframe"):
            found = self._classify_embedded(frame, page_url, base, GroupLabel.IFRAME)
            if found is not None and not frame.get("title"):
                found[1].add_label(ElementLabel.EMPTY_TITLE)

    # ------------------------------------------------------------------ #
    # Helpers                                                            #
    # ------------------------------------------------------------------ #

    def _classify_embedded(
        self, tag: Tag, page_url: str, base: str, kind: GroupLabel
    ) -> Optional[Tuple[Group, Element]]:
        """Shared handling of ``src`` elements (images, iframes)."""
        src = tag.get("src")
        if src is None:
            self._record_null(tag, page_url)
            return None

        resolved = resolve_url(base, src)
        target = resolved if resolved is not None else src.strip()
        group = self.store.get_or_create_group(target)
        element = self.store.record_element(group, page_url, tag, resolved)
        group.add_label(kind)

        if find_banned_string(target, self.banned_strings):
            element.add_label(ElementLabel.BANNED_STRING)
        if resolved is not None and hostname_of(resolved) == self.host:
            group.add_label(GroupLabel.INTERNAL)
            if src.strip() == resolved:
                element.add_label(ElementLabel.ABSOLUTE_INTERNAL)
        else:
            group.add_label(GroupLabel.EXTERNAL)
        return group, element

    def _record_null(self, tag: Tag, page_url: str) -> None:
        group = self.store.get_or_create_group(NULL_TARGET)
        self.store.record_element(group, page_url, tag).add_label(ElementLabel.NULL)

    def _excluded(self, soup: BeautifulSoup) -> Set[int]:
        return {id(tag) for tag in _select_all(soup, self.excluded_selectors)}

    @staticmethod
    def _base_url(soup: BeautifulSoup, page_url: str) -> str:
        """Honour ``<base href>`` like a browser does."""
        base = soup.find("base", href=True)
        if base is None:
            return page_url
        return resolve_url(page_url, base["href"]) or page_url


def _select_all(soup: BeautifulSoup, selectors: Iterable[str]) -> List[Tag]:
    found: List[Tag] = []
    for selector in selectors:
        found.extend(soup.select(selector))
    return found
