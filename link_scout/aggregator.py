# File: link_scout/aggregator.py
"""link_scout.aggregator: итоговый отчёт обхода и его представления."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from link_scout.crawler.models import ElementLabel, GroupLabel, LabelT, coerce_label
from link_scout.crawler.records import RecordStore

__all__ = ["CrawlReport"]


@dataclass(slots=True)
class CrawlReport:
    """Результат одного обхода: хранилище групп и признак полноты."""

    start_url: str
    store: RecordStore
    timed_out: bool = False
    duration: float = 0.0
    robots_sitemaps: List[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        """False, если обход остановлен общим таймаутом."""
        return not self.timed_out

    def records(self, label: LabelT) -> list:
        """Все элементы с меткой *label* (групповой или элементной)."""
        return self.store.query_by_label(label)

    def label_mapping(self, label: LabelT, *, invert: bool = False) -> Dict[str, List[str]]:
        """
        Страница → исходные значения href/src элементов с меткой *label*.

        С ``invert=True``: адрес цели → страницы, где она встречается. Для
        метки ``anchor`` адрес берётся вместе с фрагментом.
        """
        keep_fragment = _is_anchor(label)
        mapping: Dict[str, List[str]] = {}
        for element in self.records(label):
            if invert:
                key = element.resolved_url if keep_fragment and element.resolved_url else element.target_url
                mapping.setdefault(key, []).append(element.source_document)
            else:
                mapping.setdefault(element.source_document, []).append(element.snapshot.reference or "")
        return mapping

    def summary(self) -> Dict[str, int]:
        """Число элементов для каждой метки, встретившейся в обходе."""
        counts: Dict[str, int] = {}
        for label in (*GroupLabel, *ElementLabel):
            found = len(self.records(label))
            if found:
                counts[label.value] = found
        return counts

    def as_dict(self, label: Optional[LabelT] = None, *, invert: bool = False) -> Dict[str, Any]:
        output: Dict[str, Any] = {
            "start_url": self.start_url,
            "complete": self.complete,
            "duration": round(self.duration, 3),
            "targets": len(self.store),
        }
        if label is None:
            output["summary"] = self.summary()
            output["sitemaps"] = list(self.robots_sitemaps)
        else:
            output["label"] = str(label)
            output["inverted"] = invert
            output["mapping"] = self.label_mapping(label, invert=invert)
        return output

    def json(self, label: Optional[LabelT] = None, *, invert: bool = False, pretty: bool = False) -> str:
        """JSON-представление сводки или отображения одной метки."""
        return json.dumps(
            self.as_dict(label, invert=invert), ensure_ascii=False, indent=2 if pretty else None
        )


def _is_anchor(label: LabelT) -> bool:
    if isinstance(label, GroupLabel):
        return False
    try:
        return coerce_label(label, ElementLabel) is ElementLabel.ANCHOR
    except ValueError:
        return False
