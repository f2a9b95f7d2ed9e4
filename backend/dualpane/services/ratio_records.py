from __future__ import annotations

import logging
import math
from collections.abc import Iterator, Mapping
from dataclasses import dataclass

from dualpane.core.settings import get_settings
from dualpane.schemas.compare import PairKey, RatioRecord


logger = logging.getLogger(__name__)


class DragInProgress(RuntimeError):
    pass


def clamp_ratio(ratio: float, *, low: float | None = None, high: float | None = None) -> float:
    settings = get_settings()
    low = settings.ratio_min if low is None else low
    high = settings.ratio_max if high is None else high
    if not math.isfinite(ratio):
        return settings.default_ratio
    return max(low, min(high, ratio))


class RatioBook:
    """Per-pair ratio state for one compare session, keyed by ``PairKey``."""

    def __init__(self) -> None:
        self._records: dict[PairKey, RatioRecord] = {}
        self._drag: DragSession | None = None

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[RatioRecord]:
        return iter(self._records.values())

    def get(self, key: PairKey) -> RatioRecord:
        record = self._records.get(key)
        if record is None:
            record = RatioRecord(pair_key=key)
            self._records[key] = record
        return record

    def peek(self, key: PairKey) -> RatioRecord | None:
        return self._records.get(key)

    def is_settled(self, key: PairKey) -> bool:
        record = self._records.get(key)
        if record is None:
            return False
        return record.state != "unset" or record.measurement_failed

    def mark_auto(self, key: PairKey, ratio: float) -> RatioRecord:
        record = self.get(key)
        if record.state != "unset":
            return record
        record.ratio = clamp_ratio(ratio)
        record.state = "auto_equalized"
        record.forced_height = None
        return record

    def mark_hard(self, key: PairKey, forced_height: float, *, ratio: float | None = None) -> RatioRecord:
        record = self.get(key)
        if record.state == "manually_set":
            return record
        record.state = "hard_equalized"
        record.forced_height = forced_height
        record.ratio = clamp_ratio(ratio) if ratio is not None else None
        return record

    def mark_failed(self, key: PairKey) -> RatioRecord:
        record = self.get(key)
        if record.state == "unset":
            record.measurement_failed = True
        return record

    def set_manual(self, key: PairKey, ratio: float) -> RatioRecord:
        record = self.get(key)
        record.ratio = clamp_ratio(ratio)
        record.state = "manually_set"
        record.forced_height = None
        record.measurement_failed = False
        return record

    def clear_manual(self, key: PairKey) -> None:
        record = self._records.get(key)
        if record is not None and record.state == "manually_set":
            del self._records[key]

    def load_overrides(self, overrides: Mapping[PairKey, float]) -> int:
        loaded = 0
        for key, ratio in overrides.items():
            self.set_manual(key, ratio)
            loaded += 1
        if loaded:
            logger.info("loaded %s persisted ratio overrides", loaded)
        return loaded

    def begin_drag(self, key: PairKey) -> DragSession:
        if self._drag is not None and not self._drag.finished:
            raise DragInProgress(f"pair {tuple(self._drag.key)} is already being resized")
        record = self.get(key)
        self._drag = DragSession(book=self, key=key, ratio=record.ratio)
        return self._drag

    @property
    def active_drag(self) -> DragSession | None:
        if self._drag is not None and self._drag.finished:
            self._drag = None
        return self._drag


@dataclass
class DragSession:
    book: RatioBook
    key: PairKey
    ratio: float | None = None
    finished: bool = False

    def move(self, ratio: float) -> float:
        if self.finished:
            raise DragInProgress("drag already released")
        self.ratio = clamp_ratio(ratio)
        return self.ratio

    def release(self) -> RatioRecord | None:
        if self.finished:
            return self.book.peek(self.key)
        self.finished = True
        if self.ratio is None:
            return self.book.peek(self.key)
        return self.book.set_manual(self.key, self.ratio)

    def cancel(self) -> None:
        self.finished = True
