# link_scout/crawler/models.py
"""
Data models for the LinkScout crawler: label vocabularies, element snapshots,
elements (one per tag occurrence) and groups (one per target URL).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Set, Tuple, Type, TypeVar, Union

from bs4.element import Tag

from link_scout.errors import InvalidLabelError

__all__ = (
    "GroupLabel",
    "ElementLabel",
    "LabelT",
    "coerce_label",
    "ElementSnapshot",
    "Element",
    "Group",
    "NULL_TARGET",
)

#: Key of the group holding every occurrence without an href/src attribute.
NULL_TARGET = ""


class GroupLabel(str, Enum):
    """Labels shared by every occurrence of the same target URL."""

    LINK = "link"
    IMAGE = "image"
    IFRAME = "iframe"
    INTERNAL = "internal"
    EXTERNAL = "external"
    EMAIL = "Email"
    LOCAL_FILE = "localFile"
    JAVASCRIPT_LINK = "javascriptLink"
    HTTP_HTTPS_ERROR = "http-httpsError"
    UNUSUAL_SCHEME = "unusualScheme"
    VISITED = "visited"
    UNKNOWN_CONTENT_TYPE = "unknownContentType"
    FILE = "file"
    REDIRECTS = "redirects"
    BAD_REQUEST = "badRequest"
    ACCESS_DENIED = "accessDenied"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "notFound"
    ROBOTS_DISALLOWED = "robotsDisallowed"

    def __str__(self) -> str:
        return self.value


class ElementLabel(str, Enum):
    """Labels of a single occurrence; may differ within one group."""

    START_PAGE = "startPage"
    BANNED_STRING = "bannedString"
    ABSOLUTE_INTERNAL = "absoluteInternal"
    ANCHOR = "anchor"
    UNLOADED = "unloaded"
    NULL = "null"
    IMPROPER_SIZE = "improperSize"
    NO_ALT_TEXT = "noAltText"
    EMPTY_TITLE = "emptyTitle"

    def __str__(self) -> str:
        return self.value


LabelT = Union[GroupLabel, ElementLabel, str]
_E = TypeVar("_E", GroupLabel, ElementLabel)

_VOCABULARY_NAMES = {GroupLabel: "group", ElementLabel: "element"}


def coerce_label(label: LabelT, vocabulary: Type[_E]) -> _E:
    """Return *label* as a member of *vocabulary* or raise InvalidLabelError."""
    if isinstance(label, vocabulary):
        return label
    try:
        return vocabulary(label)
    except ValueError:
        raise InvalidLabelError(label, _VOCABULARY_NAMES[vocabulary]) from None


_SNAPSHOT_ATTRS = ("href", "src", "alt", "title", "width", "height", "id", "class")


@dataclass(frozen=True, slots=True)
class ElementSnapshot:
    """Detached copy of the parts of a tag the report needs."""

    tag: str
    attributes: Tuple[Tuple[str, str], ...] = ()
    text: str = ""

    @classmethod
    def from_tag(cls, tag: Tag) -> ElementSnapshot:
        attrs: list[Tuple[str, str]] = []
        for name in _SNAPSHOT_ATTRS:
            value = tag.get(name)
            if value is None:
                continue
            if isinstance(value, list):
                value = " ".join(value)
            attrs.append((name, str(value)))
        return cls(tag=tag.name, attributes=tuple(attrs), text=tag.get_text(" ", strip=True)[:200])

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        for key, value in self.attributes:
            if key == name:
                return value
        return default

    @property
    def reference(self) -> Optional[str]:
        """Raw href/src attribute as written in the page."""
        return self.get("href", self.get("src"))


@dataclass(slots=True, eq=False)
class Element:
    """One link/image/iframe tag found on one page."""

    source_document: str
    snapshot: ElementSnapshot
    target_url: str
    resolved_url: Optional[str] = None
    labels: Set[ElementLabel] = field(default_factory=set)

    def add_label(self, *labels: LabelT) -> None:
        for label in labels:
            self.labels.add(coerce_label(label, ElementLabel))

    def has_label(self, label: LabelT) -> bool:
        return coerce_label(label, ElementLabel) in self.labels


@dataclass(slots=True, eq=False)
class Group:
    """All occurrences that reference one canonical target URL."""

    target_url: str
    labels: Set[GroupLabel] = field(default_factory=set)
    elements: List[Element] = field(default_factory=list)
    status: Optional[int] = None

    def add_label(self, *labels: LabelT) -> None:
        for label in labels:
            self.labels.add(coerce_label(label, GroupLabel))

    def has_label(self, label: LabelT) -> bool:
        return coerce_label(label, GroupLabel) in self.labels
