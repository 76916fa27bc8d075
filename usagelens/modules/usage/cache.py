from __future__ import annotations

from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import anyio

from usagelens.core.usage.types import UsageSnapshot
from usagelens.core.utils.time import utcnow


@dataclass(frozen=True, slots=True)
class CachedSnapshot:
    snapshot: UsageSnapshot
    fetched_at: datetime


class UsageSnapshotCache:
    def __init__(self) -> None:
        self._entry: CachedSnapshot | None = None
        self._lock = anyio.Lock()

    def peek(self) -> CachedSnapshot | None:
        return self._entry

    async def get(
        self,
        compute: Callable[[], Coroutine[Any, Any, UsageSnapshot]],
    ) -> CachedSnapshot:
        if self._entry is not None:
            return self._entry

        async with self._lock:
            if self._entry is not None:
                return self._entry
            return await self._store(compute)

    async def refresh(
        self,
        compute: Callable[[], Coroutine[Any, Any, UsageSnapshot]],
    ) -> CachedSnapshot:
        async with self._lock:
            return await self._store(compute)

    async def invalidate(self) -> None:
        async with self._lock:
            self._entry = None

    async def _store(
        self,
        compute: Callable[[], Coroutine[Any, Any, UsageSnapshot]],
    ) -> CachedSnapshot:
        snapshot = await compute()
        self._entry = CachedSnapshot(snapshot=snapshot, fetched_at=utcnow())
        return self._entry


_usage_snapshot_cache = UsageSnapshotCache()


def get_usage_snapshot_cache() -> UsageSnapshotCache:
    return _usage_snapshot_cache
