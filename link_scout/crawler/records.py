# link_scout/crawler/records.py
"""
Record store: one Group per target URL, one Element per occurrence.
"""
from __future__ import annotations

from typing import Dict, Iterator, List, Optional, Union

from bs4.element import Tag

from link_scout.crawler.models import (
    Element,
    ElementLabel,
    ElementSnapshot,
    Group,
    GroupLabel,
    LabelT,
    coerce_label,
)
from link_scout.errors import InvalidLabelError

__all__ = ("RecordStore",)


class RecordStore:
    """Identity and labeling model of one crawl.

    Groups are created lazily by :meth:`get_or_create_group`; the store never
    removes anything. All access happens from the event loop thread, and no
    method awaits, so lookups and creation cannot interleave.
    """

    def __init__(self) -> None:
        self._groups: Dict[str, Group] = {}

    def __len__(self) -> int:
        return len(self._groups)

    def __contains__(self, target_url: object) -> bool:
        return target_url in self._groups

    def __iter__(self) -> Iterator[Group]:
        return iter(self._groups.values())

    def get(self, target_url: str) -> Optional[Group]:
        return self._groups.get(target_url)

    def get_or_create_group(self, target_url: str) -> Group:
        group = self._groups.get(target_url)
        if group is None:
            group = Group(target_url)
            self._groups[target_url] = group
        return group

    def record_element(
        self,
        group: Group,
        source_document: str,
        node: Union[Tag, ElementSnapshot],
        resolved_url: Optional[str] = None,
    ) -> Element:
        """Snapshot *node* and attach it to *group* as a new occurrence."""
        snapshot = node if isinstance(node, ElementSnapshot) else ElementSnapshot.from_tag(node)
        element = Element(
            source_document=source_document,
            snapshot=snapshot,
            target_url=group.target_url,
            resolved_url=resolved_url,
        )
        group.elements.append(element)
        return element

    def groups_with_label(self, label: LabelT) -> List[Group]:
        wanted = coerce_label(label, GroupLabel)
        return [g for g in self._groups.values() if wanted in g.labels]

    def query_by_label(self, label: LabelT) -> List[Element]:
        """Every element carrying *label*, either directly or through its group."""
        if isinstance(label, GroupLabel) or _is_member(label, GroupLabel):
            return [e for g in self.groups_with_label(label) for e in g.elements]
        if isinstance(label, ElementLabel) or _is_member(label, ElementLabel):
            wanted = coerce_label(label, ElementLabel)
            return [e for g in self._groups.values() for e in g.elements if wanted in e.labels]
        raise InvalidLabelError(label, "group or element")


def _is_member(label: object, vocabulary: type) -> bool:
    try:
        vocabulary(label)
    except ValueError:
        return False
    return True
