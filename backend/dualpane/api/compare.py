from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import PlainTextResponse

from dualpane.schemas.compare import (
    CompareRequest,
    CompareResponse,
    ConfirmRatioRequest,
    DirectivesResponse,
    ErrorResponse,
    LayoutDirective,
    PairKey,
    PaneSide,
    RatioOverrideRequest,
    ShowMode,
    ShowModeRequest,
    SmartRatioCandidatesResponse,
    SmartRatioRequest,
    SmartRatioSuggestion,
    TextOverrideRequest,
)
from dualpane.services.compare_view import (
    AlignmentMismatch,
    all_directives,
    build_compare_view,
    chunk_directives,
    equalize_document,
    export_chunk_text,
    set_show_mode,
)
from dualpane.services.layout_directives import emit_directive
from dualpane.services.measurement import TextLayoutMeasurer
from dualpane.services.override_store import OverrideStore
from dualpane.services.ratio_records import DragInProgress
from dualpane.services.ratio_search import RatioSearchEngine
from dualpane.services.scheduler import AsyncioScheduler
from dualpane.services.session import CompareSession
from dualpane.services.session_registry import SessionRegistry, get_registry
from dualpane.services.smart_ratio import RatioSuggestion, SmartRatioAdvisor

router = APIRouter(prefix="/documents", tags=["compare"])


def get_override_store() -> OverrideStore:
    return OverrideStore()


def get_measurer() -> TextLayoutMeasurer:
    return TextLayoutMeasurer()


def _session_or_404(registry: SessionRegistry, doc_id: str) -> CompareSession:
    session = registry.get(doc_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Document not opened for comparison")
    return session


def _pair_or_404(session: CompareSession, chunk_index: int, pair_index: int) -> PairKey:
    if chunk_index < 0 or chunk_index >= session.chunk_count:
        raise HTTPException(status_code=404, detail="Chunk not found")
    if not any(pair.index == pair_index for pair in session.raw_pairs(chunk_index)):
        raise HTTPException(status_code=404, detail="Pair not found")
    return PairKey(chunk_index, pair_index)


def _suggestion_response(doc_id: str, suggestion: RatioSuggestion) -> SmartRatioSuggestion:
    return SmartRatioSuggestion(
        doc_id=doc_id,
        suggested_ratio=suggestion.ratio,
        measured=suggestion.measured,
        used=suggestion.used,
        reason=suggestion.reason,
    )


@router.post("/{doc_id}/compare", response_model=CompareResponse, responses={400: {"model": ErrorResponse}})
async def open_compare_view(
    doc_id: str,
    request: CompareRequest,
    equalize: bool = False,
    registry: SessionRegistry = Depends(get_registry),
    store: OverrideStore = Depends(get_override_store),
    measurer: TextLayoutMeasurer = Depends(get_measurer),
) -> CompareResponse:
    session = registry.get_or_create(doc_id)
    try:
        chunks = build_compare_view(
            session,
            request.original_chunks,
            request.translated_chunks,
            left_is_original=request.left_is_original,
            images=request.images,
            store=store,
        )
    except AlignmentMismatch as exc:
        registry.drop(doc_id)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    if equalize and not session.large_doc:
        scheduler = AsyncioScheduler()
        await equalize_document(session, RatioSearchEngine(measurer, scheduler), scheduler)
        for view in chunks:
            view.directives = chunk_directives(session, view.chunk_index, view.pairs)

    return CompareResponse(
        doc_id=doc_id,
        large_document=session.large_doc,
        left_is_original=session.left_is_original,
        images=session.images,
        chunks=chunks,
    )


@router.get("/{doc_id}/compare/directives", response_model=DirectivesResponse, responses={404: {"model": ErrorResponse}})
def get_directives(doc_id: str, registry: SessionRegistry = Depends(get_registry)) -> DirectivesResponse:
    session = _session_or_404(registry, doc_id)
    return DirectivesResponse(doc_id=doc_id, directives=all_directives(session))


@router.put(
    "/{doc_id}/pairs/{chunk_index}/{pair_index}/ratio",
    response_model=LayoutDirective,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
def set_pair_ratio(
    doc_id: str,
    chunk_index: int,
    pair_index: int,
    request: RatioOverrideRequest,
    registry: SessionRegistry = Depends(get_registry),
    store: OverrideStore = Depends(get_override_store),
) -> LayoutDirective:
    session = _session_or_404(registry, doc_id)
    key = _pair_or_404(session, chunk_index, pair_index)
    try:
        drag = session.ratio_book.begin_drag(key)
    except DragInProgress as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    drag.move(request.ratio)
    record = drag.release()
    if record is not None and record.ratio is not None:
        store.set_pair_ratio(doc_id, key, record.ratio)
    return emit_directive(key, record, show_mode=session.show_mode(chunk_index), default_ratio=session.document_ratio)


@router.delete(
    "/{doc_id}/pairs/{chunk_index}/{pair_index}/ratio",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}},
)
def clear_pair_ratio(
    doc_id: str,
    chunk_index: int,
    pair_index: int,
    registry: SessionRegistry = Depends(get_registry),
    store: OverrideStore = Depends(get_override_store),
) -> None:
    session = _session_or_404(registry, doc_id)
    key = _pair_or_404(session, chunk_index, pair_index)
    session.ratio_book.clear_manual(key)
    store.delete_pair_ratio(doc_id, key)


@router.put("/{doc_id}/chunks/{chunk_index}/show-mode", response_model=DirectivesResponse)
def update_show_mode(
    doc_id: str,
    chunk_index: int,
    request: ShowModeRequest,
    registry: SessionRegistry = Depends(get_registry),
) -> DirectivesResponse:
    session = _session_or_404(registry, doc_id)
    if chunk_index < 0 or chunk_index >= session.chunk_count:
        raise HTTPException(status_code=404, detail="Chunk not found")
    set_show_mode(session, chunk_index, request.show_mode)
    directives = chunk_directives(session, chunk_index, session.pairs_for(chunk_index))
    return DirectivesResponse(doc_id=doc_id, directives=directives)


@router.put("/{doc_id}/pairs/{chunk_index}/{pair_index}/text/{side}", status_code=status.HTTP_204_NO_CONTENT)
def set_pair_text(
    doc_id: str,
    chunk_index: int,
    pair_index: int,
    side: PaneSide,
    request: TextOverrideRequest,
    registry: SessionRegistry = Depends(get_registry),
    store: OverrideStore = Depends(get_override_store),
) -> None:
    session = _session_or_404(registry, doc_id)
    key = _pair_or_404(session, chunk_index, pair_index)
    session.text_overrides[(key, side)] = request.text
    store.set_text_override(doc_id, key, side, request.text)


@router.delete("/{doc_id}/pairs/{chunk_index}/{pair_index}/text/{side}", status_code=status.HTTP_204_NO_CONTENT)
def reset_pair_text(
    doc_id: str,
    chunk_index: int,
    pair_index: int,
    side: PaneSide,
    registry: SessionRegistry = Depends(get_registry),
    store: OverrideStore = Depends(get_override_store),
) -> None:
    session = _session_or_404(registry, doc_id)
    key = _pair_or_404(session, chunk_index, pair_index)
    session.text_overrides.pop((key, side), None)
    store.delete_text_override(doc_id, key, side)


@router.get("/{doc_id}/chunks/{chunk_index}/export", response_class=PlainTextResponse)
def export_chunk(
    doc_id: str,
    chunk_index: int,
    mode: ShowMode = "both",
    registry: SessionRegistry = Depends(get_registry),
) -> str:
    session = _session_or_404(registry, doc_id)
    if chunk_index < 0 or chunk_index >= session.chunk_count:
        raise HTTPException(status_code=404, detail="Chunk not found")
    return export_chunk_text(session.pairs_for(chunk_index), mode, left_is_original=session.left_is_original)


@router.get("/{doc_id}/smart-ratio/candidates", response_model=SmartRatioCandidatesResponse)
def get_smart_ratio_candidates(
    doc_id: str,
    registry: SessionRegistry = Depends(get_registry),
    store: OverrideStore = Depends(get_override_store),
) -> SmartRatioCandidatesResponse:
    session = _session_or_404(registry, doc_id)
    advisor = SmartRatioAdvisor(store, None, AsyncioScheduler())
    eligible = advisor.is_eligible(session)
    return SmartRatioCandidatesResponse(
        doc_id=doc_id,
        eligible=eligible,
        candidates=advisor.candidates(session) if eligible else [],
    )


@router.post("/{doc_id}/smart-ratio", response_model=SmartRatioSuggestion)
async def suggest_smart_ratio(
    doc_id: str,
    request: SmartRatioRequest,
    registry: SessionRegistry = Depends(get_registry),
    store: OverrideStore = Depends(get_override_store),
    measurer: TextLayoutMeasurer = Depends(get_measurer),
) -> SmartRatioSuggestion:
    session = _session_or_404(registry, doc_id)
    advisor = SmartRatioAdvisor(store, measurer, AsyncioScheduler())
    if request.measurements:
        heights = [(m.chunk_index, m.left_height, m.right_height) for m in request.measurements]
        suggestion = advisor.advise_from_heights(session, heights)
    else:
        suggestion = await advisor.advise(session)
    return _suggestion_response(doc_id, suggestion)


@router.post("/{doc_id}/smart-ratio/confirm", response_model=DirectivesResponse)
def confirm_smart_ratio(
    doc_id: str,
    request: ConfirmRatioRequest,
    registry: SessionRegistry = Depends(get_registry),
    store: OverrideStore = Depends(get_override_store),
) -> DirectivesResponse:
    session = _session_or_404(registry, doc_id)
    SmartRatioAdvisor(store, None, AsyncioScheduler()).confirm(session, request.ratio)
    return DirectivesResponse(doc_id=doc_id, directives=all_directives(session))
