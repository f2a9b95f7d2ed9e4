from __future__ import annotations

import time
from dataclasses import dataclass, field

from dualpane.core.settings import get_settings
from dualpane.schemas.compare import AlignedPair, ImageDescriptor, PairKey, PaneSide, ShowMode
from dualpane.services.parse_cache import ParseCache
from dualpane.services.ratio_records import RatioBook


def _new_parse_cache() -> ParseCache:
    settings = get_settings()
    return ParseCache(settings.parse_cache_max_items, max_items_large_doc=settings.parse_cache_max_items_large_doc)


@dataclass
class CompareSession:
    """Everything one dual-pane view of one document needs, passed explicitly to every call."""

    doc_id: str
    parse_cache: ParseCache = field(default_factory=_new_parse_cache)
    ratio_book: RatioBook = field(default_factory=RatioBook)
    large_doc: bool = False
    left_is_original: bool = True
    original_chunks: list[str] = field(default_factory=list)
    translated_chunks: list[str] = field(default_factory=list)
    images: list[ImageDescriptor] = field(default_factory=list)
    show_modes: dict[int, ShowMode] = field(default_factory=dict)
    document_ratio: float | None = None
    text_overrides: dict[tuple[PairKey, PaneSide], str] = field(default_factory=dict)
    last_access: float = field(default_factory=time.monotonic)

    @property
    def chunk_count(self) -> int:
        return len(self.original_chunks)

    def touch(self) -> None:
        self.last_access = time.monotonic()

    def set_large_doc(self, large_doc: bool) -> None:
        self.large_doc = large_doc
        self.parse_cache.set_large_doc(large_doc)

    def chunk_texts(self, chunk_index: int) -> tuple[str, str]:
        original = self.original_chunks[chunk_index] or ""
        translated = self.translated_chunks[chunk_index] or ""
        if self.left_is_original:
            return original, translated
        return translated, original

    def raw_pairs(self, chunk_index: int) -> list[AlignedPair]:
        left, right = self.chunk_texts(chunk_index)
        return self.parse_cache.get_or_parse(chunk_index, left, right).aligned_pairs

    def pairs_for(self, chunk_index: int) -> list[AlignedPair]:
        pairs = self.raw_pairs(chunk_index)
        if not self.text_overrides:
            return pairs
        return [self._apply_text_overrides(chunk_index, pair) for pair in pairs]

    def show_mode(self, chunk_index: int) -> ShowMode:
        return self.show_modes.get(chunk_index, "both")

    def _apply_text_overrides(self, chunk_index: int, pair: AlignedPair) -> AlignedPair:
        key = PairKey(chunk_index, pair.index)
        left = self.text_overrides.get((key, "left"))
        right = self.text_overrides.get((key, "right"))
        if left is None and right is None:
            return pair
        return pair.model_copy(
            update={
                "left": pair.left if left is None else left,
                "right": pair.right if right is None else right,
            }
        )
