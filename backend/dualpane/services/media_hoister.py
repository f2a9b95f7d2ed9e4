from __future__ import annotations

import re
from dataclasses import dataclass

from dualpane.schemas.compare import AlignedPair


HTML_IMG_RE = re.compile(r"<img\b[\s\S]*?>", re.IGNORECASE)
MD_IMG_RE = re.compile(r"!\[[^\]]*\]\([^)]+\)")
HTML_SRC_RE = re.compile(r"src\s*=\s*[\"']([^\"']+)[\"']", re.IGNORECASE)
MD_SRC_RE = re.compile(r"\]\(([^)]+)\)")
WHITESPACE_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class ImageMatch:
    markup: str
    start: int
    end: int

    def remove_from(self, text: str) -> str:
        return text[: self.start] + text[self.end :]


@dataclass(frozen=True)
class HoistResult:
    left: str
    right: str
    hoisted: list[AlignedPair]


def extract_first_image(text: str) -> ImageMatch | None:
    match = HTML_IMG_RE.search(text or "") or MD_IMG_RE.search(text or "")
    if not match:
        return None
    return ImageMatch(markup=match.group(0), start=match.start(), end=match.end())


def image_source(markup: str | None) -> str | None:
    if not markup:
        return None
    found = HTML_SRC_RE.search(markup) or MD_SRC_RE.search(markup)
    if not found:
        return None
    normalized = WHITESPACE_RE.sub(" ", found.group(1)).strip()
    return normalized or None


def is_same_image(left_markup: str | None, right_markup: str | None) -> bool:
    left_src = image_source(left_markup)
    right_src = image_source(right_markup)
    if not left_src or not right_src:
        return False
    return left_src == right_src


def hoist_shared_image(left: str, right: str) -> HoistResult:
    left_image = extract_first_image(left)
    right_image = extract_first_image(right)
    if not left_image or not right_image or not is_same_image(left_image.markup, right_image.markup):
        return HoistResult(left=left, right=right, hoisted=[])

    pair = AlignedPair(index=0, left=left_image.markup, right=left_image.markup, kind="hoisted-media")
    return HoistResult(
        left=left_image.remove_from(left).strip(),
        right=right_image.remove_from(right).strip(),
        hoisted=[pair],
    )
