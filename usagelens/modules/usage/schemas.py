from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from usagelens.core.usage.types import CanonicalSlot, CreditsSummary, SlotReading, UsageSnapshot


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SlotReadingResponse(ApiModel):
    utilization: float
    remaining_percent: float
    resets_at: datetime | None = None
    display_name: str | None = None
    source_path: list[str] = Field(default_factory=list)


class CreditsResponse(ApiModel):
    prepaid_remaining: int | None = None
    prepaid_total: int | None = None
    prepaid_currency: str | None = None
    prepaid_auto_reload: bool | None = None
    prepaid_utilization: float | None = None
    overage_monthly_limit: int | None = None
    overage_used: int | None = None
    overage_currency: str | None = None
    overage_enabled: bool | None = None
    overage_out_of_credits: bool | None = None
    overage_utilization: float | None = None


class UsageSnapshotResponse(ApiModel):
    plan_label: str | None = None
    plan_tier: str
    plan_tier_name: str
    short_window: SlotReadingResponse | None = None
    long_window: SlotReadingResponse | None = None
    bucket_a: SlotReadingResponse | None = None
    bucket_b: SlotReadingResponse | None = None
    overflow: SlotReadingResponse | None = None
    credits: CreditsResponse | None = None
    fetched_at: datetime | None = None


class NormalizeRequest(ApiModel):
    documents: list[Any] = Field(min_length=1)
    provider: Literal["claude", "codex"] | None = None
    plan_label: str | None = None
    now: datetime | None = None


def to_snapshot_response(snapshot: UsageSnapshot, *, fetched_at: datetime | None = None) -> UsageSnapshotResponse:
    slots = {slot.value: _to_slot_response(snapshot.get(slot)) for slot in CanonicalSlot}
    return UsageSnapshotResponse(
        plan_label=snapshot.plan_label,
        plan_tier=snapshot.plan_tier.value,
        plan_tier_name=snapshot.plan_tier.display_name,
        credits=_to_credits_response(snapshot.credits),
        fetched_at=fetched_at,
        **slots,
    )


def _to_slot_response(reading: SlotReading | None) -> SlotReadingResponse | None:
    if reading is None:
        return None
    return SlotReadingResponse(
        utilization=reading.utilization,
        remaining_percent=reading.remaining,
        resets_at=reading.resets_at,
        display_name=reading.display_name,
        source_path=list(reading.source_path),
    )


def _to_credits_response(credits: CreditsSummary | None) -> CreditsResponse | None:
    if credits is None:
        return None
    return CreditsResponse(
        prepaid_remaining=credits.prepaid_remaining,
        prepaid_total=credits.prepaid_total,
        prepaid_currency=credits.prepaid_currency,
        prepaid_auto_reload=credits.prepaid_auto_reload,
        prepaid_utilization=credits.prepaid_utilization,
        overage_monthly_limit=credits.overage_monthly_limit,
        overage_used=credits.overage_used,
        overage_currency=credits.overage_currency,
        overage_enabled=credits.overage_enabled,
        overage_out_of_credits=credits.overage_out_of_credits,
        overage_utilization=credits.overage_utilization,
    )
