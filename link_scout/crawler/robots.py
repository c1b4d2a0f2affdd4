# link_scout/crawler/robots.py
"""
Parser and checker for robots.txt rules.

Only the ``User-agent: *`` sections apply: the crawler does not identify
itself by any other name. Allow patterns take precedence over disallow
patterns, and anything matched by neither is allowed.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Sequence, Tuple

from aiohttp import ClientError, ClientSession

from link_scout.crawler.patterns import matches_pattern
from link_scout.errors import DomainMismatchError, FrozenPolicyError
from link_scout.logger import logger
from link_scout.utils import hostname_of, origin_of, url_path

__all__ = ("RobotsRules", "RobotsPolicy", "parse_robots_txt")


@dataclass
class RobotsRules:
    """Rules from robots.txt that apply to this crawler."""

    allow: List[str] = field(default_factory=list)
    disallow: List[str] = field(default_factory=list)
    sitemap: List[str] = field(default_factory=list)


def parse_robots_txt(text: str) -> RobotsRules:
    """Parse robots.txt content into allow/disallow/sitemap lists."""
    rules = RobotsRules()
    # directives before the first user-agent line apply to everyone
    active = True
    for directive, value, line in _prepare_lines(text):
        if directive == "sitemap":
            rules.sitemap.append(value)
        elif directive == "user-agent":
            active = value == "*"
        elif not active:
            continue
        elif directive == "disallow":
            # an empty Disallow is a global allow
            if value:
                rules.disallow.append(value)
            else:
                rules.allow.append("/")
        elif directive == "allow":
            if value:
                rules.allow.append(value)
        else:
            logger.warning('Unknown robots.txt clause: "%s"', line)
    return rules


def _prepare_lines(text: str) -> Iterator[Tuple[str, str, str]]:
    """Strip comments and split each line into (directive, value, line)."""
    for raw in text.splitlines():
        line = raw.split("#", 1)[0].strip()
        if not line:
            continue
        if ":" not in line:
            logger.warning("Don't understand robots.txt line: \"%s\"", line)
            continue
        key, val = (part.strip() for part in line.split(":", 1))
        yield key.lower(), val, line


class RobotsPolicy:
    """Allow/deny decisions for URLs of one origin.

    The policy is filled once (:meth:`fetch_and_parse`, :meth:`add_disallow`)
    and then :meth:`freeze`-d; every later mutation raises
    :class:`~link_scout.errors.FrozenPolicyError`.
    """

    def __init__(self, origin: str, *, ignore_file: bool = False) -> None:
        self.origin = origin_of(origin)
        self.host = hostname_of(origin)
        self.ignore_file = ignore_file
        self.allow: Sequence[str] = []
        self.disallow: Sequence[str] = []
        self.sitemap: Sequence[str] = []
        self.raw_text: Optional[str] = None
        self._frozen = False

    def __setattr__(self, name: str, value: object) -> None:
        if getattr(self, "_frozen", False):
            raise FrozenPolicyError(f"Cannot set {name!r}: robots policy is frozen")
        super().__setattr__(name, value)

    @property
    def frozen(self) -> bool:
        return self._frozen

    def load(self, rules: RobotsRules) -> None:
        """Replace the current patterns with *rules*."""
        self.allow = list(rules.allow)
        self.disallow = list(rules.disallow)
        self.sitemap = list(rules.sitemap)

    def add_disallow(self, *patterns: str) -> None:
        """Append operator-supplied disallow patterns."""
        if self._frozen:
            raise FrozenPolicyError("Cannot add disallow patterns: robots policy is frozen")
        self.disallow = [*self.disallow, *(p for p in patterns if p)]

    def freeze(self) -> RobotsPolicy:
        self.allow = tuple(self.allow)
        self.disallow = tuple(self.disallow)
        self.sitemap = tuple(self.sitemap)
        self._frozen = True
        return self

    def is_allowed(self, full_url: str) -> bool:
        """Return True if the crawler may fetch *full_url*."""
        if hostname_of(full_url) != self.host:
            raise DomainMismatchError(full_url, self.host)
        if self.ignore_file:
            return True
        path = url_path(full_url)
        for pattern in self.allow:
            if matches_pattern(path, pattern):
                return True
        for pattern in self.disallow:
            if matches_pattern(path, pattern):
                return False
        return True

    async def fetch_and_parse(self, session: ClientSession) -> RobotsPolicy:
        """Load ``/robots.txt`` of the origin; anything but HTTP 200 means no rules."""
        if self.ignore_file:
            logger.debug("robots.txt ignored for %s", self.origin)
            return self
        robots_url = f"{self.origin}/robots.txt"
        try:
            async with session.get(robots_url) as resp:
                if resp.status == 200:
                    self.raw_text = await resp.text()
                    self.load(parse_robots_txt(self.raw_text))
                else:
                    logger.debug("robots.txt %s -> HTTP %s", robots_url, resp.status)
        except (ClientError, asyncio.TimeoutError) as exc:
            logger.warning("Error loading robots.txt: %s", exc)
        return self
