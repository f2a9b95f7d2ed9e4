from __future__ import annotations

from dualpane.core.settings import get_settings
from dualpane.schemas.compare import AlignedPair, LayoutDirective, PairKey, RatioRecord, ShowMode


def ratio_directive(key: PairKey, left_ratio: float) -> LayoutDirective:
    return LayoutDirective(
        chunk_index=key.chunk_index,
        pair_index=key.pair_index,
        mode="ratio",
        left_ratio=left_ratio,
        right_ratio=1 - left_ratio,
    )


def emit_directive(
    key: PairKey,
    record: RatioRecord | None,
    *,
    pair: AlignedPair | None = None,
    show_mode: ShowMode = "both",
    default_ratio: float | None = None,
) -> LayoutDirective:
    """Map a pair's final ratio state to the instruction the presentation layer applies.

    ``default_ratio`` is the document-wide ratio (if one was confirmed); table
    pairs that were never equalized ignore it and stay at the plain default.
    """
    settings = get_settings()
    if (pair is not None and pair.kind == "hoisted-media") or show_mode != "both":
        return LayoutDirective(chunk_index=key.chunk_index, pair_index=key.pair_index, mode="full_width")

    if record is not None:
        if record.state in {"manually_set", "auto_equalized"} and record.ratio is not None:
            return ratio_directive(key, record.ratio)
        if record.state == "hard_equalized" and record.forced_height is not None:
            return LayoutDirective(
                chunk_index=key.chunk_index,
                pair_index=key.pair_index,
                mode="forced_height",
                forced_height=record.forced_height,
            )

    fallback = settings.default_ratio
    if default_ratio is not None and not (pair is not None and pair.kind == "table"):
        fallback = max(settings.ratio_min, min(settings.ratio_max, default_ratio))
    return ratio_directive(key, fallback)
