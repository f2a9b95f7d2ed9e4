from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field

from dualpane.core.settings import get_settings
from dualpane.services.block_parser import has_image_markup, has_table_markup
from dualpane.services.measurement import Measurer, wait_for_pair_media
from dualpane.services.override_store import OverrideStore
from dualpane.services.scheduler import Scheduler
from dualpane.services.session import CompareSession


logger = logging.getLogger(__name__)


@dataclass
class RatioSuggestion:
    ratio: float | None
    measured: list[float] = field(default_factory=list)
    used: list[float] = field(default_factory=list)
    reason: str | None = None


def select_candidates(original_chunks: list[str], translated_chunks: list[str], *, limit: int | None = None) -> list[int]:
    settings = get_settings()
    limit = settings.advisor_max_candidates if limit is None else limit
    min_chars = settings.advisor_min_chars
    scored: list[tuple[bool, int]] = []
    for index, (original, translated) in enumerate(zip(original_chunks, translated_chunks)):
        original = original or ""
        translated = translated or ""
        if len(original) < min_chars or len(translated) < min_chars:
            continue
        if has_table_markup(original) or has_table_markup(translated):
            continue
        scored.append((has_image_markup(original) or has_image_markup(translated), index))
    scored.sort()
    return [index for _, index in scored[:limit]]


def pane_ratio(left_height: float, right_height: float) -> float | None:
    if not math.isfinite(left_height) or not math.isfinite(right_height):
        return None
    if left_height <= 0 or right_height <= 0:
        return None
    ratio = left_height / (left_height + right_height)
    return ratio if 0 < ratio < 1 else None


def suggest_ratio(ratios: list[float]) -> RatioSuggestion:
    settings = get_settings()
    valid = sorted(r for r in ratios if isinstance(r, int | float) and math.isfinite(r) and 0 < r < 1)
    if len(valid) < settings.advisor_min_measurements:
        return RatioSuggestion(ratio=None, measured=valid, reason="not enough measurements")

    used = valid[1:-1] if len(valid) >= settings.advisor_trim_threshold else list(valid)
    average = sum(used) / len(used)
    suggested = max(settings.ratio_min, min(settings.ratio_max, average))
    return RatioSuggestion(ratio=suggested, measured=valid, used=used)


class SmartRatioAdvisor:
    def __init__(self, store: OverrideStore, measurer: Measurer | None, scheduler: Scheduler) -> None:
        self.store = store
        self.measurer = measurer
        self.scheduler = scheduler

    def is_eligible(self, session: CompareSession) -> bool:
        if session.large_doc:
            return False
        if self.store.was_prompted(session.doc_id):
            return False
        return not self.store.has_custom_document_ratio(session.doc_id)

    def candidates(self, session: CompareSession) -> list[int]:
        return select_candidates(session.original_chunks, session.translated_chunks)

    async def advise(self, session: CompareSession) -> RatioSuggestion:
        if not self.is_eligible(session):
            return RatioSuggestion(ratio=None, reason="not eligible")
        if self.measurer is None:
            return RatioSuggestion(ratio=None, reason="no measurer available")

        candidates = self.candidates(session)
        if len(candidates) < get_settings().advisor_min_measurements:
            return RatioSuggestion(ratio=None, reason="not enough candidates")

        ratios: list[float] = []
        for chunk_index in candidates:
            ratio = await self._measure_chunk(session, chunk_index, self.measurer)
            if ratio is not None:
                ratios.append(ratio)
            await self.scheduler.yield_if_needed()
        return self._finish(session.doc_id, ratios)

    def advise_from_heights(self, session: CompareSession, heights: list[tuple[int, float, float]]) -> RatioSuggestion:
        if not self.is_eligible(session):
            return RatioSuggestion(ratio=None, reason="not eligible")
        allowed = set(self.candidates(session))
        ratios = [
            ratio
            for chunk_index, left, right in heights
            if chunk_index in allowed and (ratio := pane_ratio(left, right)) is not None
        ]
        return self._finish(session.doc_id, ratios)

    def confirm(self, session: CompareSession, ratio: float) -> float:
        settings = get_settings()
        applied = max(settings.ratio_min, min(settings.ratio_max, ratio))
        self.store.set_document_ratio(session.doc_id, applied)
        session.document_ratio = applied
        logger.info("document %s smart ratio applied: %.3f", session.doc_id, applied)
        return applied

    def _finish(self, doc_id: str, ratios: list[float]) -> RatioSuggestion:
        suggestion = suggest_ratio(ratios)
        if suggestion.ratio is None:
            logger.info("document %s smart ratio skipped: %s (%s measured)", doc_id, suggestion.reason, len(ratios))
            return suggestion
        self.store.mark_prompted(doc_id)
        logger.info(
            "document %s smart ratio %.3f from %s of %s measurements",
            doc_id,
            suggestion.ratio,
            len(suggestion.used),
            len(suggestion.measured),
        )
        return suggestion

    async def _measure_chunk(self, session: CompareSession, chunk_index: int, measurer: Measurer) -> float | None:
        width = get_settings().pane_container_width_px * 0.5
        left_total = 0.0
        right_total = 0.0
        try:
            for pair in session.pairs_for(chunk_index):
                if pair.kind != "paragraph":
                    continue
                await wait_for_pair_media(measurer, self.scheduler, pair.left, pair.right)
                await self.scheduler.settle()
                left_total += (await measurer.measure(pair.left, width=width)).height
                right_total += (await measurer.measure(pair.right, width=width)).height
        except Exception as exc:  # noqa: BLE001
            logger.warning("chunk %s could not be measured for smart ratio: %s", chunk_index, exc)
            return None
        return pane_ratio(left_total, right_total)
