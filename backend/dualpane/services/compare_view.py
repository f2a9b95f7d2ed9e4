from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from dualpane.core.settings import get_settings
from dualpane.schemas.compare import (
    AlignedPair,
    ChunkView,
    ImageDescriptor,
    LayoutDirective,
    PairKey,
    ShowMode,
)
from dualpane.services.layout_directives import emit_directive
from dualpane.services.override_store import OverrideStore
from dualpane.services.ratio_records import RatioBook
from dualpane.services.ratio_search import RatioSearchEngine, SearchOutcome
from dualpane.services.scheduler import Scheduler
from dualpane.services.session import CompareSession


logger = logging.getLogger(__name__)


class AlignmentMismatch(ValueError):
    def __init__(self, original_count: int, translated_count: int) -> None:
        super().__init__(
            f"original and translated chunk counts differ ({original_count} vs {translated_count}); "
            "the document cannot be shown side by side"
        )
        self.original_count = original_count
        self.translated_count = translated_count


@dataclass
class EqualizeReport:
    outcomes: list[SearchOutcome] = field(default_factory=list)

    def count(self, status: str) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == status)


def total_text_length(original_chunks: Sequence[str | None], translated_chunks: Sequence[str | None]) -> int:
    return sum(len(text or "") for text in original_chunks) + sum(len(text or "") for text in translated_chunks)


def is_large_document(original_chunks: Sequence[str | None], translated_chunks: Sequence[str | None]) -> bool:
    return total_text_length(original_chunks, translated_chunks) > get_settings().large_doc_char_threshold


def open_session(
    session: CompareSession,
    original_chunks: Sequence[str | None],
    translated_chunks: Sequence[str | None],
    *,
    left_is_original: bool = True,
    images: Sequence[ImageDescriptor] | None = None,
    store: OverrideStore | None = None,
) -> CompareSession:
    if len(original_chunks) != len(translated_chunks):
        raise AlignmentMismatch(len(original_chunks), len(translated_chunks))

    new_original = [text or "" for text in original_chunks]
    new_translated = [text or "" for text in translated_chunks]
    if (
        session.original_chunks != new_original
        or session.translated_chunks != new_translated
        or session.left_is_original != left_is_original
    ):
        # Positions no longer mean the same pairs.
        session.parse_cache.clear()
        session.ratio_book = RatioBook()
    session.original_chunks = new_original
    session.translated_chunks = new_translated
    session.left_is_original = left_is_original
    session.images = list(images or [])
    session.set_large_doc(is_large_document(new_original, new_translated))
    logger.info(
        "document %s: %s chunks, %s chars, large_doc=%s",
        session.doc_id,
        session.chunk_count,
        total_text_length(new_original, new_translated),
        session.large_doc,
    )

    if store is not None:
        session.ratio_book.load_overrides(store.get_pair_ratios(session.doc_id))
        session.document_ratio = store.get_document_ratio(session.doc_id)
        session.text_overrides = store.get_text_overrides(session.doc_id)
    session.touch()
    return session


def chunk_directives(session: CompareSession, chunk_index: int, pairs: list[AlignedPair]) -> list[LayoutDirective]:
    show_mode = session.show_mode(chunk_index)
    directives: list[LayoutDirective] = []
    for pair in pairs:
        key = PairKey(chunk_index, pair.index)
        directives.append(
            emit_directive(
                key,
                session.ratio_book.peek(key),
                pair=pair,
                show_mode=show_mode,
                default_ratio=session.document_ratio,
            )
        )
    return directives


def chunk_view(session: CompareSession, chunk_index: int) -> ChunkView:
    pairs = session.pairs_for(chunk_index)
    return ChunkView(
        chunk_index=chunk_index,
        show_mode=session.show_mode(chunk_index),
        pairs=pairs,
        directives=chunk_directives(session, chunk_index, pairs),
    )


def build_compare_view(
    session: CompareSession,
    original_chunks: Sequence[str | None],
    translated_chunks: Sequence[str | None],
    *,
    left_is_original: bool = True,
    images: Sequence[ImageDescriptor] | None = None,
    store: OverrideStore | None = None,
) -> list[ChunkView]:
    open_session(
        session,
        original_chunks,
        translated_chunks,
        left_is_original=left_is_original,
        images=images,
        store=store,
    )
    return [chunk_view(session, index) for index in range(session.chunk_count)]


async def align_document_async(
    session: CompareSession,
    original_chunks: Sequence[str | None],
    translated_chunks: Sequence[str | None],
    scheduler: Scheduler,
    *,
    left_is_original: bool = True,
    images: Sequence[ImageDescriptor] | None = None,
    store: OverrideStore | None = None,
) -> list[ChunkView]:
    open_session(
        session,
        original_chunks,
        translated_chunks,
        left_is_original=left_is_original,
        images=images,
        store=store,
    )

    async def handle(index: int) -> ChunkView:
        return chunk_view(session, index)

    return await scheduler.run_batches(
        list(range(session.chunk_count)),
        handle,
        batch_size=get_settings().align_batch_size,
    )


def all_directives(session: CompareSession) -> list[LayoutDirective]:
    directives: list[LayoutDirective] = []
    for index in range(session.chunk_count):
        directives.extend(chunk_directives(session, index, session.pairs_for(index)))
    return directives


async def equalize_document(
    session: CompareSession,
    engine: RatioSearchEngine,
    scheduler: Scheduler,
    *,
    chunk_indices: Sequence[int] | None = None,
) -> EqualizeReport:
    report = EqualizeReport()
    if session.large_doc:
        logger.info("document %s is in large-document mode, skipping pair equalization", session.doc_id)
        return report

    targets: list[tuple[PairKey, AlignedPair]] = []
    indices = range(session.chunk_count) if chunk_indices is None else chunk_indices
    for chunk_index in indices:
        if session.show_mode(chunk_index) != "both":
            continue
        for pair in session.pairs_for(chunk_index):
            targets.append((PairKey(chunk_index, pair.index), pair))

    async def handle(target: tuple[PairKey, AlignedPair]) -> SearchOutcome:
        key, pair = target
        try:
            return await engine.equalize(session.ratio_book, key, pair, large_doc=session.large_doc)
        except Exception as exc:  # noqa: BLE001
            logger.warning("pair %s equalization aborted: %s", tuple(key), exc)
            session.ratio_book.mark_failed(key)
            return SearchOutcome(key=key, status="failed")

    report.outcomes = await scheduler.run_batches(targets, handle, batch_size=get_settings().equalize_batch_size)
    logger.info(
        "document %s equalized: auto=%s hard=%s failed=%s skipped=%s",
        session.doc_id,
        report.count("auto_equalized"),
        report.count("hard_equalized"),
        report.count("failed"),
        report.count("skipped"),
    )
    return report


def set_show_mode(session: CompareSession, chunk_index: int, show_mode: ShowMode) -> None:
    if show_mode == "both":
        session.show_modes.pop(chunk_index, None)
    else:
        session.show_modes[chunk_index] = show_mode


def export_chunk_text(pairs: Sequence[AlignedPair], mode: ShowMode = "both", *, left_is_original: bool = True) -> str:
    parts: list[str] = []
    for pair in pairs:
        if pair.kind == "hoisted-media":
            parts.append(pair.left)
            continue
        original, translated = (pair.left, pair.right) if left_is_original else (pair.right, pair.left)
        if mode == "original":
            if original:
                parts.append(original)
        elif mode == "translation":
            if translated:
                parts.append(translated)
        else:
            if original:
                parts.append(f"Original:\n{original}")
            if translated:
                parts.append(f"Translation:\n{translated}")
    return "\n\n".join(parts).strip()
