from __future__ import annotations

from fastapi import APIRouter, Body, Depends

from usagelens.core.config.settings import get_settings
from usagelens.core.usage.slots import get_profile
from usagelens.modules.usage.schemas import NormalizeRequest, UsageSnapshotResponse, to_snapshot_response
from usagelens.modules.usage.service import UsageService, get_usage_service

router = APIRouter(prefix="/api/usage", tags=["usage"])


@router.get("", response_model=UsageSnapshotResponse)
async def get_usage(service: UsageService = Depends(get_usage_service)) -> UsageSnapshotResponse:
    cached = await service.get_latest()
    return to_snapshot_response(cached.snapshot, fetched_at=cached.fetched_at)


@router.post("/refresh", response_model=UsageSnapshotResponse)
async def refresh_usage(service: UsageService = Depends(get_usage_service)) -> UsageSnapshotResponse:
    cached = await service.refresh()
    return to_snapshot_response(cached.snapshot, fetched_at=cached.fetched_at)


@router.post("/normalize", response_model=UsageSnapshotResponse)
async def normalize_usage(
    payload: NormalizeRequest = Body(...),
    service: UsageService = Depends(get_usage_service),
) -> UsageSnapshotResponse:
    profile = get_profile(payload.provider or get_settings().provider)
    snapshot = service.normalize(payload.documents, profile, plan_label=payload.plan_label, now=payload.now)
    return to_snapshot_response(snapshot)
