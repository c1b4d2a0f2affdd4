# link_scout/errors.py
"""
Exceptions raised on invariant violations.

Crawl-time conditions (404, robots exclusions, banned strings…) are recorded as
labels and never raised; the classes below indicate a programming or
configuration bug and stop the crawl.
"""
from __future__ import annotations


class LinkScoutError(Exception):
    """Base class for all LinkScout errors."""


class InvalidLabelError(LinkScoutError, ValueError):
    """A label outside the group/element vocabulary was applied or queried."""

    def __init__(self, label: object, vocabulary: str) -> None:
        super().__init__(f'"{label}" is not a valid {vocabulary} label')
        self.label = label
        self.vocabulary = vocabulary


class DomainMismatchError(LinkScoutError, ValueError):
    """A robots.txt query was made for a URL outside the crawl origin."""

    def __init__(self, url: str, host: str) -> None:
        super().__init__(f"URL {url} is not within the domain {host}")
        self.url = url
        self.host = host


class FrozenPolicyError(LinkScoutError, AttributeError):
    """The robots policy was modified after it had been frozen."""


__all__ = ["LinkScoutError", "InvalidLabelError", "DomainMismatchError", "FrozenPolicyError"]
