from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from datetime import datetime

from usagelens.core.clients.usage import UsageFetchError
from usagelens.core.exceptions import (
    AppError,
    UpstreamAuthError,
    UpstreamForbiddenError,
    UpstreamUnavailableError,
)
from usagelens.core.types import JsonValue
from usagelens.core.usage.merge import SourceOutcome, collect, parse_document, with_plan_label
from usagelens.core.usage.slots import ProviderProfile
from usagelens.core.usage.types import UsageSnapshot
from usagelens.core.utils.request_id import bind_request_id
from usagelens.modules.usage.cache import CachedSnapshot, UsageSnapshotCache, get_usage_snapshot_cache
from usagelens.modules.usage.sources import UsageSource, build_usage_source

logger = logging.getLogger(__name__)


class UsageService:
    def __init__(
        self,
        cache: UsageSnapshotCache,
        source_factory: Callable[[], UsageSource] = build_usage_source,
    ) -> None:
        self._cache = cache
        self._source_factory = source_factory

    async def get_latest(self) -> CachedSnapshot:
        return await self._cache.get(self._fetch)

    async def refresh(self) -> CachedSnapshot:
        return await self._cache.refresh(self._fetch)

    def normalize(
        self,
        documents: Sequence[JsonValue],
        profile: ProviderProfile,
        *,
        plan_label: str | None = None,
        now: datetime | None = None,
    ) -> UsageSnapshot:
        outcomes: list[SourceOutcome] = [parse_document(document, profile, now=now) for document in documents]
        return with_plan_label(collect(outcomes, profile, now=now), plan_label, profile)

    async def _fetch(self) -> UsageSnapshot:
        source = self._source_factory()
        with bind_request_id() as request_id:
            try:
                return await source.fetch_snapshot()
            except UsageFetchError as exc:
                logger.warning(
                    "Usage refresh failed request_id=%s provider=%s status=%s message=%s",
                    request_id,
                    source.profile.name,
                    exc.status_code,
                    exc.message,
                )
                raise to_app_error(exc) from exc


def to_app_error(exc: UsageFetchError) -> AppError:
    if exc.status_code == 401:
        return UpstreamAuthError()
    if exc.status_code == 403:
        return UpstreamForbiddenError()
    return UpstreamUnavailableError(exc.message)


_usage_service = UsageService(get_usage_snapshot_cache())


def get_usage_service() -> UsageService:
    return _usage_service
