"""Unit tests for session bookkeeping and idle cleanup."""

import asyncio

import pytest

from dualpane.core.settings import get_settings
from dualpane.services.cleanup import cleanup_loop, drop_idle_sessions
from dualpane.services.session import CompareSession
from dualpane.services.session_registry import SessionRegistry


class TestSessionRegistry:
    """One session per document."""

    def test_get_or_create_reuses_session(self):
        """The same document id maps to the same session."""
        registry = SessionRegistry()
        first = registry.get_or_create("doc")
        assert registry.get_or_create("doc") is first
        assert registry.get("other") is None
        assert len(registry) == 1

    def test_drop(self):
        """Dropped sessions are gone."""
        registry = SessionRegistry()
        registry.get_or_create("doc")
        assert registry.drop("doc")
        assert not registry.drop("doc")

    def test_drop_idle(self):
        """Sessions untouched for longer than the limit expire."""
        registry = SessionRegistry()
        stale = registry.get_or_create("stale")
        fresh = registry.get_or_create("fresh")
        stale.last_access = 100.0
        fresh.last_access = 1000.0

        assert registry.drop_idle(600, now=1200.0) == ["stale"]
        assert registry.get("fresh") is fresh


class TestCompareSession:
    """Session helpers."""

    def test_chunk_texts_follow_side_choice(self):
        """Sides swap when the translation is shown on the left."""
        session = CompareSession(doc_id="doc", original_chunks=["o"], translated_chunks=["t"])
        assert session.chunk_texts(0) == ("o", "t")
        session.left_is_original = False
        assert session.chunk_texts(0) == ("t", "o")

    def test_show_mode_defaults_to_both(self):
        """Chunks show both sides unless told otherwise."""
        assert CompareSession(doc_id="doc").show_mode(3) == "both"


class TestCleanup:
    """Periodic idle-session cleanup."""

    def test_drop_idle_sessions_uses_settings(self, monkeypatch):
        """The idle limit comes from settings."""
        monkeypatch.setenv("SESSION_IDLE_MINUTES", "0")
        get_settings.cache_clear()
        registry = SessionRegistry()
        registry.get_or_create("doc").last_access = 0.0

        assert drop_idle_sessions(registry) == ["doc"]

    @pytest.mark.asyncio
    async def test_cleanup_loop_stops(self):
        """Setting the stop event ends the loop."""
        stop = asyncio.Event()
        task = asyncio.create_task(cleanup_loop(stop))
        await asyncio.sleep(0)
        stop.set()
        await asyncio.wait_for(task, timeout=1.0)
        assert task.done()
