from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass, field

from usagelens.core.config.settings import get_settings
from usagelens.core.exceptions import AppError
from usagelens.modules.usage.service import UsageService, get_usage_service

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class UsageRefreshScheduler:
    interval_seconds: int
    enabled: bool
    service: UsageService
    _task: asyncio.Task[None] | None = None
    _stop: asyncio.Event = field(default_factory=asyncio.Event)

    async def start(self) -> None:
        if not self.enabled:
            return
        if self._task and not self._task.done():
            return
        self._stop.clear()
        self._task = asyncio.create_task(self._run_loop())

    async def stop(self) -> None:
        if not self._task:
            return
        self._stop.set()
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    async def _run_loop(self) -> None:
        while not self._stop.is_set():
            await self.refresh_once()
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                continue

    async def refresh_once(self) -> None:
        try:
            cached = await self.service.refresh()
        except AppError as exc:
            logger.warning("Usage poll failed code=%s message=%s", exc.code, exc.message)
            return
        except Exception:
            logger.exception("Usage refresh loop failed")
            return
        filled = sum(1 for reading in cached.snapshot.slots.values() if reading is not None)
        logger.info(
            "Usage poll complete plan=%s slots=%d candidates=%d",
            cached.snapshot.plan_tier.value,
            filled,
            len(cached.snapshot.candidates),
        )


def build_usage_refresh_scheduler() -> UsageRefreshScheduler:
    settings = get_settings()
    return UsageRefreshScheduler(
        interval_seconds=settings.usage_refresh_interval_seconds,
        enabled=settings.usage_refresh_enabled and settings.session_cookie is not None,
        service=get_usage_service(),
    )
