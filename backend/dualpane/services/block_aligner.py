from __future__ import annotations

import logging
from dataclasses import dataclass, field

from dualpane.schemas.compare import AlignedPair, Block, PairKind
from dualpane.services.block_parser import (
    contains_table_syntax,
    parse_markdown_blocks,
    split_paragraphs,
    strip_edge_whitespace,
)
from dualpane.services.media_hoister import hoist_shared_image


logger = logging.getLogger(__name__)


@dataclass
class ChunkAlignment:
    left_blocks: list[Block] = field(default_factory=list)
    right_blocks: list[Block] = field(default_factory=list)
    pairs: list[AlignedPair] = field(default_factory=list)
    paragraph_mode: bool = False

    @property
    def has_hoisted_media(self) -> bool:
        return any(pair.kind == "hoisted-media" for pair in self.pairs)


def classify_pair(left: str, right: str) -> PairKind:
    if contains_table_syntax(left) and contains_table_syntax(right):
        return "table"
    return "paragraph"


def align_blocks(left_blocks: list[Block], right_blocks: list[Block], *, start_index: int = 0) -> list[AlignedPair]:
    pairs: list[AlignedPair] = []
    for offset in range(max(len(left_blocks), len(right_blocks))):
        left = left_blocks[offset].content if offset < len(left_blocks) else ""
        right = right_blocks[offset].content if offset < len(right_blocks) else ""
        pairs.append(AlignedPair(index=start_index + offset, left=left, right=right, kind=classify_pair(left, right)))
    return pairs


def align_paragraphs(left_text: str, right_text: str, *, start_index: int = 0) -> list[AlignedPair] | None:
    left_paragraphs = split_paragraphs(left_text)
    right_paragraphs = split_paragraphs(right_text)
    if not left_paragraphs or len(left_paragraphs) != len(right_paragraphs):
        return None

    pairs: list[AlignedPair] = []
    for offset, (left_raw, right_raw) in enumerate(zip(left_paragraphs, right_paragraphs, strict=True)):
        left = strip_edge_whitespace(left_raw)
        right = strip_edge_whitespace(right_raw)
        pairs.append(AlignedPair(index=start_index + offset, left=left, right=right, kind=classify_pair(left, right)))
    return pairs


def align_chunk(left_text: str, right_text: str) -> ChunkAlignment:
    hoist = hoist_shared_image(left_text or "", right_text or "")
    left_blocks = parse_markdown_blocks(hoist.left)
    right_blocks = parse_markdown_blocks(hoist.right)

    start = len(hoist.hoisted)
    # Every heading block is at least one paragraph of its own.
    paragraph_pairs = align_paragraphs(
        "\n\n".join(block.content for block in left_blocks),
        "\n\n".join(block.content for block in right_blocks),
        start_index=start,
    )
    if paragraph_pairs is not None:
        body = paragraph_pairs
    else:
        body = align_blocks(left_blocks, right_blocks, start_index=start)
        if body:
            logger.debug("paragraph counts differ, using %s positional block pairs", len(body))

    return ChunkAlignment(
        left_blocks=left_blocks,
        right_blocks=right_blocks,
        pairs=[*hoist.hoisted, *body],
        paragraph_mode=paragraph_pairs is not None,
    )
