from __future__ import annotations

import logging
import re

from dualpane.schemas.compare import Block


LINE_SPLIT_RE = re.compile(r"\r?\n")
FENCE_RE = re.compile(r"^\s*```")
HEADING_RE = re.compile(r"^\s*#")
PARAGRAPH_SPLIT_RE = re.compile(r"\n{2,}")
ZERO_WIDTH_RE = re.compile("[\u200b-\u200d\ufeff]")
HTML_TABLE_RE = re.compile(r"<table\b", re.IGNORECASE)
TABLE_DELIMITER_RE = re.compile(r"\|\s*:?-+:?\s*\|")
PIPE_ROW_RE = re.compile(r"(^|[\r\n])\s*\|.*\|")
IMAGE_MARKUP_RE = re.compile(r"!\[[^\]]*\]\([^)]*\)|<img\b", re.IGNORECASE)
logger = logging.getLogger(__name__)


def parse_markdown_blocks(markdown: str | None) -> list[Block]:
    text = markdown or ""
    if not text.strip():
        return []

    blocks: list[Block] = []
    buffer: list[str] = []
    in_code = False
    seen_heading = False

    def flush() -> None:
        if buffer:
            blocks.append(Block(content="\n".join(buffer)))
            buffer.clear()

    for line in LINE_SPLIT_RE.split(text):
        if FENCE_RE.match(line):
            in_code = not in_code
            buffer.append(line)
            continue
        if in_code:
            buffer.append(line)
            continue
        if HEADING_RE.match(line):
            if seen_heading:
                flush()
            seen_heading = True
            buffer.append(line)
            continue
        buffer.append(line)

    if in_code:
        # Unclosed fence: everything after it already sits in the current block.
        logger.warning("unbalanced code fence, keeping remainder as one block (%s lines)", len(buffer))
    flush()
    return blocks


def join_blocks(blocks: list[Block]) -> str:
    return "\n".join(block.content for block in blocks)


def strip_edge_whitespace(text: str | None) -> str:
    if not text:
        return ""
    cleaned = text.replace("\u00a0", " ")
    cleaned = ZERO_WIDTH_RE.sub("", cleaned)
    return cleaned.strip()


def split_paragraphs(text: str | None) -> list[str]:
    normalized = (text or "").replace("\r\n", "\n")
    return [part.strip() for part in PARAGRAPH_SPLIT_RE.split(normalized) if part.strip()]


def contains_table_syntax(text: str | None) -> bool:
    if not text:
        return False
    if HTML_TABLE_RE.search(text):
        return True
    lines = LINE_SPLIT_RE.split(text)
    for current, following in zip(lines, lines[1:]):
        if "|" in current and TABLE_DELIMITER_RE.search(following):
            return True
    return False


def has_table_markup(text: str | None) -> bool:
    """Looser check than ``contains_table_syntax``: any pipe row counts."""
    if not text:
        return False
    return bool(HTML_TABLE_RE.search(text) or PIPE_ROW_RE.search(text))


def has_image_markup(text: str | None) -> bool:
    return bool(text) and bool(IMAGE_MARKUP_RE.search(text or ""))
