"""Unit tests for the document-wide ratio advisor."""

import pytest

from dualpane.services.compare_view import build_compare_view
from dualpane.services.smart_ratio import SmartRatioAdvisor, pane_ratio, select_candidates, suggest_ratio

LONG_ORIGINAL = "word " * 60
LONG_TRANSLATED = "mot " * 50


@pytest.fixture
def opened(session, store):
    build_compare_view(
        session,
        [LONG_ORIGINAL, LONG_ORIGINAL],
        [LONG_TRANSLATED, LONG_TRANSLATED],
        store=store,
    )
    return session


class TestSuggestRatio:
    """Averaging and trimming of per-chunk ratios."""

    def test_trimmed_average(self):
        """Six or more samples drop the extremes before averaging."""
        suggestion = suggest_ratio([0.48, 0.52, 0.50, 0.49, 0.51, 0.50])
        assert suggestion.used == [0.49, 0.50, 0.50, 0.51]
        assert suggestion.ratio == pytest.approx(0.50)

    def test_small_sample_not_trimmed(self):
        """Fewer than six samples are averaged as-is."""
        suggestion = suggest_ratio([0.4, 0.6, 0.5])
        assert suggestion.used == [0.4, 0.5, 0.6]
        assert suggestion.ratio == pytest.approx(0.5)

    def test_too_few_measurements(self):
        """One sample is not enough for a suggestion."""
        assert suggest_ratio([0.55]).ratio is None
        assert suggest_ratio([]).ratio is None

    def test_result_is_clamped(self):
        """Suggestions stay inside the allowed ratio range."""
        assert suggest_ratio([0.1, 0.2]).ratio == 0.3
        assert suggest_ratio([0.9, 0.85]).ratio == 0.7

    def test_invalid_samples_dropped(self):
        """Ratios outside the open unit interval are ignored."""
        suggestion = suggest_ratio([0.0, 1.0, float("nan"), 0.55, 0.45])
        assert suggestion.measured == [0.45, 0.55]

    def test_pane_ratio(self):
        """Left share of the combined height."""
        assert pane_ratio(600, 400) == pytest.approx(0.6)
        assert pane_ratio(0, 400) is None


class TestSelectCandidates:
    """Which chunks are worth measuring."""

    def test_filters_and_orders(self):
        """Short and table chunks are skipped, chunks with images go last."""
        long_text = "x" * 200
        original = [
            "short",
            long_text + " ![f](a.png)",
            long_text,
            long_text + "\n| a | b |",
            long_text,
        ]
        translated = [long_text] * 5
        assert select_candidates(original, translated) == [2, 4, 1]
        assert select_candidates(original, translated, limit=2) == [2, 4]


class TestSmartRatioAdvisor:
    """Eligibility, measuring and persistence."""

    @pytest.mark.asyncio
    async def test_advise_measures_candidates(self, opened, store, scheduler, area_measurer):
        """Height shares of the candidate chunks drive the suggestion."""
        advisor = SmartRatioAdvisor(store, area_measurer, scheduler)

        suggestion = await advisor.advise(opened)

        assert suggestion.ratio == pytest.approx(0.6, abs=0.01)
        assert len(suggestion.measured) == 2
        assert store.was_prompted(opened.doc_id)
        widths = {width for _, width in area_measurer.calls}
        assert widths == {480.0}

    @pytest.mark.asyncio
    async def test_advise_only_once_per_document(self, opened, store, scheduler, area_measurer):
        """A document that was prompted is not advised again."""
        advisor = SmartRatioAdvisor(store, area_measurer, scheduler)
        await advisor.advise(opened)

        again = await advisor.advise(opened)

        assert again.ratio is None
        assert again.reason == "not eligible"

    @pytest.mark.asyncio
    async def test_advise_without_measurer(self, opened, store, scheduler):
        """With nothing to measure with, no suggestion is made."""
        suggestion = await SmartRatioAdvisor(store, None, scheduler).advise(opened)
        assert suggestion.ratio is None
        assert suggestion.reason == "no measurer available"
        assert not store.was_prompted(opened.doc_id)

    def test_custom_document_ratio_blocks_advice(self, opened, store, scheduler):
        """A ratio other than the default means the user already chose."""
        store.set_document_ratio(opened.doc_id, 0.6)
        assert not SmartRatioAdvisor(store, None, scheduler).is_eligible(opened)

    def test_large_document_is_not_eligible(self, opened, store, scheduler):
        """Large documents never get a suggestion."""
        opened.set_large_doc(True)
        assert not SmartRatioAdvisor(store, None, scheduler).is_eligible(opened)

    def test_client_heights_only_for_candidates(self, opened, store, scheduler):
        """Heights for chunks that are not candidates are ignored."""
        advisor = SmartRatioAdvisor(store, None, scheduler)
        suggestion = advisor.advise_from_heights(opened, [(0, 600, 400), (1, 600, 400), (5, 100, 900)])
        assert suggestion.ratio == pytest.approx(0.6)
        assert len(suggestion.measured) == 2

    def test_too_few_heights_do_not_mark_prompted(self, opened, store, scheduler):
        """Without a suggestion the user can still be asked later."""
        advisor = SmartRatioAdvisor(store, None, scheduler)
        suggestion = advisor.advise_from_heights(opened, [(0, 600, 400)])
        assert suggestion.ratio is None
        assert not store.was_prompted(opened.doc_id)

    def test_confirm_persists_clamped_ratio(self, opened, store, scheduler):
        """Confirmed ratios are stored and applied to the session."""
        applied = SmartRatioAdvisor(store, None, scheduler).confirm(opened, 0.8)
        assert applied == 0.7
        assert opened.document_ratio == 0.7
        assert store.get_document_ratio(opened.doc_id) == 0.7
