from __future__ import annotations

from typing import Literal, NamedTuple

from pydantic import BaseModel, Field


PairKind = Literal["paragraph", "table", "hoisted-media"]
RatioState = Literal["unset", "auto_equalized", "manually_set", "hard_equalized"]
DirectiveMode = Literal["ratio", "forced_height", "full_width"]
ShowMode = Literal["both", "original", "translation"]
PaneSide = Literal["left", "right"]


class PairKey(NamedTuple):
    chunk_index: int
    pair_index: int


class Block(BaseModel):
    model_config = {"frozen": True}

    content: str


class AlignedPair(BaseModel):
    model_config = {"frozen": True}

    index: int
    left: str
    right: str
    kind: PairKind = "paragraph"


class ImageDescriptor(BaseModel):
    name: str
    src: str | None = None


class RatioRecord(BaseModel):
    pair_key: PairKey
    ratio: float | None = None
    state: RatioState = "unset"
    forced_height: float | None = None
    measurement_failed: bool = False


class LayoutDirective(BaseModel):
    chunk_index: int
    pair_index: int
    mode: DirectiveMode
    left_ratio: float | None = None
    right_ratio: float | None = None
    forced_height: float | None = None


class ChunkView(BaseModel):
    chunk_index: int
    show_mode: ShowMode = "both"
    pairs: list[AlignedPair] = Field(default_factory=list)
    directives: list[LayoutDirective] = Field(default_factory=list)


class CompareRequest(BaseModel):
    original_chunks: list[str]
    translated_chunks: list[str]
    images: list[ImageDescriptor] = Field(default_factory=list)
    left_is_original: bool = True


class CompareResponse(BaseModel):
    doc_id: str
    large_document: bool
    left_is_original: bool
    images: list[ImageDescriptor] = Field(default_factory=list)
    chunks: list[ChunkView] = Field(default_factory=list)


class DirectivesResponse(BaseModel):
    doc_id: str
    directives: list[LayoutDirective] = Field(default_factory=list)


class RatioOverrideRequest(BaseModel):
    ratio: float = Field(gt=0.0, lt=1.0)


class ShowModeRequest(BaseModel):
    show_mode: ShowMode


class TextOverrideRequest(BaseModel):
    text: str


class PaneHeightsIn(BaseModel):
    chunk_index: int = Field(ge=0)
    left_height: float
    right_height: float


class SmartRatioRequest(BaseModel):
    measurements: list[PaneHeightsIn] = Field(default_factory=list)


class SmartRatioCandidatesResponse(BaseModel):
    doc_id: str
    eligible: bool
    candidates: list[int] = Field(default_factory=list)


class SmartRatioSuggestion(BaseModel):
    doc_id: str
    suggested_ratio: float | None = None
    measured: list[float] = Field(default_factory=list)
    used: list[float] = Field(default_factory=list)
    reason: str | None = None


class ConfirmRatioRequest(BaseModel):
    ratio: float = Field(gt=0.0, lt=1.0)


class ErrorResponse(BaseModel):
    detail: str
