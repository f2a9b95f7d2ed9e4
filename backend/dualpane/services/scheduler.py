from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from typing import Protocol, TypeVar

from dualpane.core.settings import get_settings


T = TypeVar("T")
R = TypeVar("R")
logger = logging.getLogger(__name__)


class Scheduler(Protocol):
    async def yield_if_needed(self) -> None: ...

    async def settle(self) -> None: ...

    async def wait_for_media(self, pending: Awaitable[object]) -> bool: ...

    async def run_batches(
        self,
        items: Sequence[T],
        handler: Callable[[T], Awaitable[R]],
        *,
        batch_size: int | None = None,
    ) -> list[R]: ...


class AsyncioScheduler:
    """Cooperative scheduler on top of the running asyncio loop.

    ``settle`` stands in for the two paint cycles a browser needs before layout
    reads are stable; ``yield_if_needed`` hands control back once the current
    slice has run longer than ``slice_ms``.
    """

    def __init__(
        self,
        *,
        batch_size: int | None = None,
        batch_delay_ms: float | None = None,
        media_wait_ms: float | None = None,
        slice_ms: float = 8.0,
        settle_ticks: int = 2,
    ) -> None:
        settings = get_settings()
        self.batch_size = max(1, batch_size if batch_size is not None else settings.align_batch_size)
        self.batch_delay_ms = max(0.0, batch_delay_ms if batch_delay_ms is not None else settings.batch_delay_ms)
        self.media_wait_ms = max(0.0, media_wait_ms if media_wait_ms is not None else settings.media_wait_ms)
        self.slice_ms = slice_ms
        self.settle_ticks = max(1, settle_ticks)
        self._slice_started = time.perf_counter()

    async def yield_if_needed(self) -> None:
        elapsed_ms = (time.perf_counter() - self._slice_started) * 1000
        if elapsed_ms >= self.slice_ms:
            await asyncio.sleep(0)
            self._slice_started = time.perf_counter()

    async def settle(self) -> None:
        for _ in range(self.settle_ticks):
            await asyncio.sleep(0)
        self._slice_started = time.perf_counter()

    async def wait_for_media(self, pending: Awaitable[object]) -> bool:
        try:
            await asyncio.wait_for(pending, timeout=self.media_wait_ms / 1000)
        except TimeoutError:
            logger.info("media still loading after %sms, measuring anyway", self.media_wait_ms)
            return False
        return True

    async def run_batches(
        self,
        items: Sequence[T],
        handler: Callable[[T], Awaitable[R]],
        *,
        batch_size: int | None = None,
    ) -> list[R]:
        size = max(1, batch_size or self.batch_size)
        results: list[R] = []
        for start in range(0, len(items), size):
            for item in items[start : start + size]:
                results.append(await handler(item))
                await self.yield_if_needed()
            if start + size < len(items):
                await asyncio.sleep(self.batch_delay_ms / 1000)
                self._slice_started = time.perf_counter()
        return results
