"""Shared fixtures for dualpane tests."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from dualpane.core.settings import get_settings
from dualpane.services.measurement import Measurement
from dualpane.services.override_store import OverrideStore
from dualpane.services.scheduler import AsyncioScheduler
from dualpane.services.session import CompareSession


class InMemoryRedis:
    """The handful of Redis commands the override store uses, kept in dicts."""

    def __init__(self) -> None:
        self.values: dict[str, str] = {}
        self.hashes: dict[str, dict[str, str]] = {}
        self.ttls: dict[str, int] = {}

    def get(self, key: str) -> str | None:
        return self.values.get(key)

    def set(self, key: str, value: str, ex: int | None = None) -> bool:
        self.values[key] = value
        if ex is not None:
            self.ttls[key] = ex
        return True

    def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            removed += int(self.values.pop(key, None) is not None)
            removed += int(self.hashes.pop(key, None) is not None)
        return removed

    def expire(self, key: str, seconds: int) -> bool:
        self.ttls[key] = seconds
        return True

    def hset(self, name: str, key: str | None = None, value: str | None = None, mapping: dict | None = None) -> int:
        bucket = self.hashes.setdefault(name, {})
        items = dict(mapping or {})
        if key is not None:
            items[key] = value
        added = sum(1 for k in items if k not in bucket)
        bucket.update(items)
        return added

    def hget(self, name: str, key: str) -> str | None:
        return self.hashes.get(name, {}).get(key)

    def hgetall(self, name: str) -> dict[str, str]:
        return dict(self.hashes.get(name, {}))

    def hdel(self, name: str, *keys: str) -> int:
        bucket = self.hashes.get(name, {})
        return sum(1 for key in keys if bucket.pop(key, None) is not None)


class AreaMeasurer:
    """Height = content "area" / pane width, the way wrapped text behaves.

    The area of a string is looked up in ``areas`` or, failing that, is its
    length times ``area_per_char``.
    """

    def __init__(self, areas: dict[str, float] | None = None, *, area_per_char: float = 1000.0) -> None:
        self.areas = areas or {}
        self.area_per_char = area_per_char
        self.calls: list[tuple[str, float]] = []

    async def measure(self, content: str, *, width: float) -> Measurement:
        self.calls.append((content, width))
        area = self.areas.get(content, len(content) * self.area_per_char)
        return Measurement(height=area / width if width > 0 else 0.0)


class SlowMediaMeasurer(AreaMeasurer):
    def __init__(self, delay: float, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.delay = delay
        self.media_requests: list[str] = []

    async def load_media(self, content: str) -> None:
        self.media_requests.append(content)
        await asyncio.sleep(self.delay)


@pytest.fixture(autouse=True)
def fresh_settings():
    """Each test sees settings built from the current environment."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def fake_redis() -> InMemoryRedis:
    return InMemoryRedis()


@pytest.fixture
def store(fake_redis: InMemoryRedis) -> OverrideStore:
    return OverrideStore(redis=fake_redis)  # type: ignore[arg-type]


@pytest.fixture
def scheduler() -> AsyncioScheduler:
    return AsyncioScheduler(batch_size=5, batch_delay_ms=0, media_wait_ms=20)


@pytest.fixture
def session() -> CompareSession:
    return CompareSession(doc_id="doc-1")


@pytest.fixture
def area_measurer() -> AreaMeasurer:
    return AreaMeasurer()


@pytest.fixture
def make_measurer():
    """Factory for area measurers with per-string areas."""
    return AreaMeasurer


@pytest.fixture
def make_media_measurer():
    return SlowMediaMeasurer
