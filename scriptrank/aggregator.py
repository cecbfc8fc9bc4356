from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Iterable, Mapping

from scriptrank.config import DEFAULT_LIMIT

REPORT_HEADER = ("Libraries", "Occurrences")


@dataclass(frozen=True, slots=True)
class RankedEntry:
    key: str
    count: int


class FrequencyAggregator:
    """Resource key counts shared by every page scan of a run."""

    def __init__(self) -> None:
        self._counts: dict[str, int] = {}
        self._total = 0
        self._lock = threading.Lock()

    def merge(self, keys: Iterable[str]) -> None:
        batch = list(keys)
        if not batch:
            return
        with self._lock:
            for key in batch:
                self._counts[key] = self._counts.get(key, 0) + 1
            self._total += len(batch)

    def snapshot(self) -> dict[str, int]:
        with self._lock:
            return dict(self._counts)

    @property
    def total(self) -> int:
        with self._lock:
            return self._total

    def __len__(self) -> int:
        with self._lock:
            return len(self._counts)


def top_n(mapping: Mapping[str, int], limit: int = DEFAULT_LIMIT) -> list[RankedEntry]:
    if limit <= 0:
        return []
    ordered = sorted(mapping.items(), key=lambda item: (-item[1], item[0]))
    return [RankedEntry(key=key, count=count) for key, count in ordered[:limit]]


def format_report(entries: Iterable[RankedEntry]) -> list[str]:
    lines = [f"{REPORT_HEADER[0]} -- {REPORT_HEADER[1]}"]
    lines.extend(f"{entry.key} -- {entry.count}" for entry in entries)
    return lines
