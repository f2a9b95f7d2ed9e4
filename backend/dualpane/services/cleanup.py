from __future__ import annotations

import asyncio
import logging

from dualpane.core.settings import get_settings
from dualpane.services.session_registry import SessionRegistry, get_registry


logger = logging.getLogger(__name__)


def drop_idle_sessions(registry: SessionRegistry | None = None) -> list[str]:
    settings = get_settings()
    registry = registry or get_registry()
    expired = registry.drop_idle(settings.session_idle_minutes * 60)
    if expired:
        logger.info("dropped %s idle compare sessions", len(expired))
    return expired


async def cleanup_loop(stop_event: asyncio.Event) -> None:
    settings = get_settings()
    while not stop_event.is_set():
        drop_idle_sessions()
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=settings.cleanup_interval_sec)
        except TimeoutError:
            continue
