from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import NamedTuple

from dualpane.schemas.compare import AlignedPair, Block
from dualpane.services.block_aligner import align_chunk


logger = logging.getLogger(__name__)


class ParseCacheKey(NamedTuple):
    chunk_index: int
    left_length: int
    right_length: int


@dataclass(frozen=True)
class ParseCacheEntry:
    key: ParseCacheKey
    left_blocks: list[Block]
    right_blocks: list[Block]
    aligned_pairs: list[AlignedPair]


class ParseCache:
    def __init__(self, max_items: int = 50, *, max_items_large_doc: int = 5, large_doc: bool = False) -> None:
        self._entries: OrderedDict[ParseCacheKey, ParseCacheEntry] = OrderedDict()
        self._lock = threading.Lock()
        self.max_items = max(1, max_items)
        self.max_items_large_doc = max(1, max_items_large_doc)
        self.large_doc = large_doc
        self.hits = 0
        self.misses = 0

    @property
    def capacity(self) -> int:
        return self.max_items_large_doc if self.large_doc else self.max_items

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def set_large_doc(self, large_doc: bool) -> None:
        with self._lock:
            self.large_doc = large_doc
            self._evict_locked()

    def get(self, key: ParseCacheKey) -> ParseCacheEntry | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                self.hits += 1
            return entry

    def put(self, entry: ParseCacheEntry) -> None:
        with self._lock:
            self._entries.pop(entry.key, None)
            self._entries[entry.key] = entry
            self._evict_locked()

    def get_or_parse(self, chunk_index: int, left_text: str, right_text: str) -> ParseCacheEntry:
        key = ParseCacheKey(chunk_index, len(left_text), len(right_text))
        entry = self.get(key)
        if entry is not None:
            return entry

        alignment = align_chunk(left_text, right_text)
        entry = ParseCacheEntry(
            key=key,
            left_blocks=alignment.left_blocks,
            right_blocks=alignment.right_blocks,
            aligned_pairs=alignment.pairs,
        )
        with self._lock:
            self.misses += 1
        self.put(entry)
        return entry

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def _evict_locked(self) -> None:
        overflow = len(self._entries) - self.capacity
        if overflow <= 0:
            return
        for _ in range(overflow):
            self._entries.popitem(last=False)
        logger.info("parse cache evicted %s oldest entries (capacity=%s)", overflow, self.capacity)
