from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from usagelens.core.types import JsonPath


class CanonicalSlot(str, Enum):
    SHORT_WINDOW = "short_window"
    LONG_WINDOW = "long_window"
    BUCKET_A = "bucket_a"
    BUCKET_B = "bucket_b"
    OVERFLOW = "overflow"


SLOT_ORDER: tuple[CanonicalSlot, ...] = tuple(CanonicalSlot)


class PlanTier(str, Enum):
    FREE = "free"
    PRO = "pro"
    MAX = "max"
    TEAM = "team"
    ENTERPRISE = "enterprise"
    UNKNOWN = "unknown"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()


@dataclass(frozen=True, slots=True)
class Candidate:
    name: str
    path: JsonPath
    utilization: float
    resets_at: datetime | None = None
    window_minutes: int | None = None
    # Index of the merged document the candidate came from.
    source: int = field(default=0, compare=False)


@dataclass(frozen=True, slots=True)
class SlotReading:
    utilization: float
    resets_at: datetime | None
    display_name: str | None
    source_path: JsonPath = ()

    @property
    def remaining(self) -> float:
        return 100.0 - self.utilization


@dataclass(frozen=True, slots=True)
class AccountProfile:
    email: str | None = None
    display_name: str | None = None
    plan_label: str | None = None


@dataclass(frozen=True, slots=True)
class CreditsSummary:
    prepaid_remaining: int | None = None
    prepaid_total: int | None = None
    prepaid_currency: str | None = None
    prepaid_auto_reload: bool | None = None
    overage_monthly_limit: int | None = None
    overage_used: int | None = None
    overage_currency: str | None = None
    overage_enabled: bool | None = None
    overage_out_of_credits: bool | None = None

    @property
    def prepaid_utilization(self) -> float | None:
        if self.prepaid_remaining is None or not self.prepaid_total or self.prepaid_total <= 0:
            return None
        used = self.prepaid_total - self.prepaid_remaining
        return max(0.0, min(100.0, used / self.prepaid_total * 100.0))

    @property
    def overage_utilization(self) -> float | None:
        if self.overage_used is None or not self.overage_monthly_limit or self.overage_monthly_limit <= 0:
            return None
        return max(0.0, min(100.0, self.overage_used / self.overage_monthly_limit * 100.0))

    @property
    def has_monetary_overage(self) -> bool:
        return bool(
            self.overage_monthly_limit
            and self.overage_monthly_limit > 0
            and self.overage_used is not None
            and self.overage_used >= 0
            and self.overage_currency
        )


def empty_slots() -> dict[CanonicalSlot, SlotReading | None]:
    return {slot: None for slot in SLOT_ORDER}


@dataclass(frozen=True, slots=True)
class UsageSnapshot:
    plan_label: str | None = None
    plan_tier: PlanTier = PlanTier.UNKNOWN
    slots: dict[CanonicalSlot, SlotReading | None] = field(default_factory=empty_slots)
    candidates: tuple[Candidate, ...] = ()
    credits: CreditsSummary | None = None

    def get(self, slot: CanonicalSlot) -> SlotReading | None:
        return self.slots.get(slot)

    @property
    def is_empty(self) -> bool:
        return not self.candidates and self.plan_label is None
