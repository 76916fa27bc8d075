from __future__ import annotations

from usagelens.core.usage.slots import ProviderProfile
from usagelens.core.usage.text import fold
from usagelens.core.usage.types import PlanTier


def classify_plan_tier(plan_label: str | None, profile: ProviderProfile) -> PlanTier:
    if not plan_label:
        return PlanTier.UNKNOWN
    lowered = fold(plan_label).lower()
    for keyword, tier in profile.plan_keywords:
        if keyword in lowered:
            return tier
    return PlanTier.UNKNOWN


def classify_capabilities(capabilities: list[str] | None) -> PlanTier:
    if not capabilities:
        return PlanTier.UNKNOWN
    lowered = [fold(capability).lower() for capability in capabilities]
    if any("max" in capability for capability in lowered):
        return PlanTier.MAX
    if any("pro" in capability for capability in lowered):
        return PlanTier.PRO
    return PlanTier.UNKNOWN
