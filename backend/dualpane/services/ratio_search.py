from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Literal

from dualpane.core.settings import Settings, get_settings
from dualpane.schemas.compare import AlignedPair, PairKey
from dualpane.services.measurement import (
    MeasurementFailure,
    Measurer,
    PaneHeights,
    measure_pair,
    wait_for_pair_media,
)
from dualpane.services.ratio_records import RatioBook
from dualpane.services.scheduler import Scheduler


logger = logging.getLogger(__name__)

SearchStatus = Literal["auto_equalized", "hard_equalized", "skipped", "failed"]


@dataclass(frozen=True)
class SearchTuning:
    ratio_min: float = 0.3
    ratio_max: float = 0.7
    coarse_ratios: tuple[float, ...] = (0.35, 0.45, 0.5, 0.55, 0.65)
    bisect_half_window: float = 0.1
    bisect_iterations_text: int = 6
    bisect_iterations_table: int = 7
    tolerance_text: float = 6.0
    tolerance_table: float = 4.0
    refine_initial_step: float = 0.04
    refine_rounds: int = 3
    refine_stop_text: float = 3.0
    refine_stop_table: float = 2.0

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> SearchTuning:
        settings = settings or get_settings()
        return cls(
            ratio_min=settings.ratio_min,
            ratio_max=settings.ratio_max,
            coarse_ratios=tuple(settings.coarse_ratios),
            bisect_half_window=settings.bisect_half_window,
            bisect_iterations_text=settings.bisect_iterations_text,
            bisect_iterations_table=settings.bisect_iterations_table,
            tolerance_text=settings.tolerance_text_px,
            tolerance_table=settings.tolerance_table_px,
            refine_initial_step=settings.refine_initial_step,
            refine_rounds=settings.refine_rounds,
            refine_stop_text=settings.refine_stop_text_px,
            refine_stop_table=settings.refine_stop_table_px,
        )

    def clamp(self, ratio: float) -> float:
        return max(self.ratio_min, min(self.ratio_max, ratio))

    def tolerance(self, is_table: bool) -> float:
        return self.tolerance_table if is_table else self.tolerance_text

    def refine_stop(self, is_table: bool) -> float:
        return self.refine_stop_table if is_table else self.refine_stop_text

    def bisect_iterations(self, is_table: bool) -> int:
        return self.bisect_iterations_table if is_table else self.bisect_iterations_text


@dataclass
class SearchOutcome:
    key: PairKey
    status: SearchStatus
    ratio: float | None = None
    abs_diff: float | None = None
    forced_height: float | None = None
    coarse_best_abs_diff: float | None = None
    measurements: list[PaneHeights] = field(default_factory=list)


def _is_locked(book: RatioBook, key: PairKey) -> bool:
    drag = book.active_drag
    return book.is_settled(key) or (drag is not None and drag.key == key)


class RatioSearchEngine:
    def __init__(
        self,
        measurer: Measurer,
        scheduler: Scheduler,
        *,
        tuning: SearchTuning | None = None,
        container_width: float | None = None,
    ) -> None:
        self.measurer = measurer
        self.scheduler = scheduler
        self.tuning = tuning or SearchTuning.from_settings()
        self.container_width = container_width or get_settings().pane_container_width_px

    async def equalize(
        self,
        book: RatioBook,
        key: PairKey,
        pair: AlignedPair,
        *,
        large_doc: bool = False,
    ) -> SearchOutcome:
        if large_doc or pair.kind == "hoisted-media" or _is_locked(book, key):
            return SearchOutcome(key=key, status="skipped")

        try:
            outcome = await self._search(key, pair)
        except MeasurementFailure as exc:
            book.mark_failed(key)
            logger.warning("pair %s measurement failed, keeping default ratio: %s", tuple(key), exc)
            return SearchOutcome(key=key, status="failed")

        # A drag may have committed while the search was suspended.
        if _is_locked(book, key):
            return SearchOutcome(key=key, status="skipped")
        if outcome.status == "hard_equalized":
            book.mark_hard(key, outcome.forced_height or 0.0, ratio=outcome.ratio)
        else:
            book.mark_auto(key, outcome.ratio if outcome.ratio is not None else self.tuning.clamp(0.5))
        return outcome

    async def _search(self, key: PairKey, pair: AlignedPair) -> SearchOutcome:
        tuning = self.tuning
        is_table = pair.kind == "table"
        tolerance = tuning.tolerance(is_table)
        measurements: list[PaneHeights] = []

        async def probe(ratio: float) -> PaneHeights:
            heights = await measure_pair(
                self.measurer,
                self.scheduler,
                pair.left,
                pair.right,
                ratio=ratio,
                container_width=self.container_width,
            )
            measurements.append(heights)
            await self.scheduler.yield_if_needed()
            return heights

        await wait_for_pair_media(self.measurer, self.scheduler, pair.left, pair.right)
        await self.scheduler.settle()

        best = tuning.clamp(0.5)
        best_abs = float("inf")
        for ratio in tuning.coarse_ratios:
            heights = await probe(tuning.clamp(ratio))
            if heights.abs_diff < best_abs:
                best, best_abs = heights.ratio, heights.abs_diff
        coarse_best_abs = best_abs

        low = tuning.clamp(best - tuning.bisect_half_window)
        high = tuning.clamp(best + tuning.bisect_half_window)
        for _ in range(tuning.bisect_iterations(is_table)):
            mid = (low + high) / 2
            heights = await probe(mid)
            if heights.abs_diff < best_abs:
                best, best_abs = mid, heights.abs_diff
            if heights.abs_diff <= tolerance:
                break
            if heights.diff > 0:
                low = mid
            else:
                high = mid

        step = tuning.refine_initial_step
        for _ in range(tuning.refine_rounds):
            for ratio in (best - step, best, best + step):
                heights = await probe(tuning.clamp(ratio))
                if heights.abs_diff < best_abs:
                    best, best_abs = heights.ratio, heights.abs_diff
            if best_abs <= tuning.refine_stop(is_table):
                break
            step /= 2

        if best_abs > tolerance:
            last = await probe(best)
            forced = max(last.left, last.right)
            logger.info(
                "pair %s did not converge (residual %.1fpx > %.1fpx), hard-equalizing at %.1fpx",
                tuple(key),
                best_abs,
                tolerance,
                forced,
            )
            return SearchOutcome(
                key=key,
                status="hard_equalized",
                ratio=best,
                abs_diff=best_abs,
                forced_height=forced,
                coarse_best_abs_diff=coarse_best_abs,
                measurements=measurements,
            )

        return SearchOutcome(
            key=key,
            status="auto_equalized",
            ratio=best,
            abs_diff=best_abs,
            coarse_best_abs_diff=coarse_best_abs,
            measurements=measurements,
        )
