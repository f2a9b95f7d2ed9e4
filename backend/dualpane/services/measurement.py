from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Protocol, runtime_checkable

from PIL import ImageFont

from dualpane.core.settings import get_settings
from dualpane.services.block_parser import LINE_SPLIT_RE, has_image_markup, split_paragraphs
from dualpane.services.scheduler import Scheduler


IMAGE_TOKEN_RE = re.compile(r"<img\b[\s\S]*?>|!\[[^\]]*\]\([^)]*\)", re.IGNORECASE)
HEADING_PREFIX_RE = re.compile(r"^\s*#{1,6}\s*")
TABLE_DELIMITER_LINE_RE = re.compile(r"^\s*\|?\s*:?-+:?\s*(\|\s*:?-+:?\s*)*\|?\s*$")
INLINE_MARKUP_RE = re.compile(r"(\*\*|__|\*|_|`)")
HTML_TAG_RE = re.compile(r"<[^>]+>")
logger = logging.getLogger(__name__)

FontLike = ImageFont.FreeTypeFont | ImageFont.ImageFont


class MeasurementFailure(RuntimeError):
    pass


@dataclass(frozen=True)
class Measurement:
    height: float


@dataclass(frozen=True)
class PaneHeights:
    ratio: float
    left: float
    right: float

    @property
    def diff(self) -> float:
        return self.left - self.right

    @property
    def abs_diff(self) -> float:
        return abs(self.left - self.right)


@runtime_checkable
class Measurer(Protocol):
    async def measure(self, content: str, *, width: float) -> Measurement: ...


@runtime_checkable
class MediaAwareMeasurer(Measurer, Protocol):
    async def load_media(self, content: str) -> None: ...


def validate_height(value: float, *, side: str) -> float:
    if not isinstance(value, int | float) or not math.isfinite(value) or value <= 0:
        raise MeasurementFailure(f"{side} pane reported unusable height: {value!r}")
    return float(value)


async def wait_for_pair_media(measurer: Measurer, scheduler: Scheduler, left: str, right: str) -> None:
    if not isinstance(measurer, MediaAwareMeasurer):
        return
    for content in (left, right):
        if has_image_markup(content):
            await scheduler.wait_for_media(measurer.load_media(content))


async def measure_pair(
    measurer: Measurer,
    scheduler: Scheduler,
    left: str,
    right: str,
    *,
    ratio: float,
    container_width: float,
) -> PaneHeights:
    # Geometry is only stable after the trial widths have been laid out.
    await scheduler.settle()
    left_measurement = await measurer.measure(left, width=container_width * ratio)
    right_measurement = await measurer.measure(right, width=container_width * (1 - ratio))
    return PaneHeights(
        ratio=ratio,
        left=validate_height(left_measurement.height, side="left"),
        right=validate_height(right_measurement.height, side="right"),
    )


def _font_candidates() -> list[str]:
    return [
        "/usr/share/fonts/opentype/noto/NotoSansCJK-Regular.ttc",
        "/usr/share/fonts/truetype/noto/NotoSansCJK-Regular.ttc",
        "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
        "C:/Windows/Fonts/msyh.ttc",
        "C:/Windows/Fonts/arial.ttf",
    ]


@lru_cache(maxsize=1)
def _selected_font_path() -> str | None:
    configured = get_settings().measure_font_path
    if configured and Path(configured).exists():
        return configured
    for path in _font_candidates():
        if Path(path).exists():
            return path
    return None


@lru_cache(maxsize=64)
def _cached_font(size: int, font_path: str | None) -> FontLike:
    if font_path:
        return ImageFont.truetype(font_path, size)
    return ImageFont.load_default(size)


def _load_font(size: float) -> FontLike:
    safe_size = max(1, int(round(size)))
    try:
        return _cached_font(safe_size, _selected_font_path())
    except Exception:  # noqa: BLE001
        return ImageFont.load_default()


def _wrap_line_count(text: str, font: FontLike, max_width: float) -> int:
    if not text:
        return 1
    count = 1
    current = ""
    for ch in text:
        candidate = current + ch
        if font.getlength(candidate) <= max_width or not current:
            current = candidate
        else:
            count += 1
            current = ch
    return count


def _plain_line(line: str) -> str:
    line = HEADING_PREFIX_RE.sub("", line)
    line = HTML_TAG_RE.sub(" ", line)
    return INLINE_MARKUP_RE.sub("", line).strip()


class TextLayoutMeasurer:
    """Estimates rendered pane height by laying markdown out with real font metrics.

    Paragraphs wrap character by character at the pane width, images take a
    fixed height, table delimiter rows take no space and paragraphs are
    separated by a constant gap. Good enough to drive the ratio search without
    a browser.
    """

    def __init__(
        self,
        *,
        font_size: float | None = None,
        line_spacing: float | None = None,
        block_gap: float | None = None,
        image_height: float | None = None,
    ) -> None:
        settings = get_settings()
        self.font_size = font_size or settings.measure_font_size
        self.line_spacing = line_spacing or settings.measure_line_spacing
        self.block_gap = settings.measure_block_gap_px if block_gap is None else block_gap
        self.image_height = settings.measure_image_height_px if image_height is None else image_height
        self.font = _load_font(self.font_size)
        top, bottom = self.font.getbbox("Ag")[1], self.font.getbbox("Ag")[3]
        self.line_height = max(bottom - top, self.font_size) * self.line_spacing

    async def measure(self, content: str, *, width: float) -> Measurement:
        return Measurement(height=self.layout_height(content, width=width))

    def layout_height(self, content: str, *, width: float) -> float:
        if width <= 0:
            return 0.0
        paragraphs = split_paragraphs(content)
        total = 0.0
        for position, paragraph in enumerate(paragraphs):
            if position:
                total += self.block_gap
            total += self._paragraph_height(paragraph, width)
        return total

    def _paragraph_height(self, paragraph: str, width: float) -> float:
        height = self.image_height * len(IMAGE_TOKEN_RE.findall(paragraph))
        text = IMAGE_TOKEN_RE.sub("", paragraph)
        for raw_line in LINE_SPLIT_RE.split(text):
            if not raw_line.strip() or TABLE_DELIMITER_LINE_RE.match(raw_line):
                continue
            height += self.line_height * _wrap_line_count(_plain_line(raw_line), self.font, width)
        return height
