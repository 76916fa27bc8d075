from __future__ import annotations

from usagelens.core.usage.assigner import assign, display_name, to_readings
from usagelens.core.usage.dedup import deduplicate
from usagelens.core.usage.extractor import detect_plan_label, extract_candidates, find_account_profile
from usagelens.core.usage.merge import build_snapshot, collect, merge, parse_document, with_plan_label
from usagelens.core.usage.plan import classify_plan_tier
from usagelens.core.usage.slots import CLAUDE_PROFILE, CODEX_PROFILE, PROFILES, ProviderProfile, get_profile
from usagelens.core.usage.types import (
    AccountProfile,
    Candidate,
    CanonicalSlot,
    CreditsSummary,
    PlanTier,
    SlotReading,
    UsageSnapshot,
)

__all__ = [
    "CLAUDE_PROFILE",
    "CODEX_PROFILE",
    "PROFILES",
    "AccountProfile",
    "Candidate",
    "CanonicalSlot",
    "CreditsSummary",
    "PlanTier",
    "ProviderProfile",
    "SlotReading",
    "UsageSnapshot",
    "assign",
    "build_snapshot",
    "classify_plan_tier",
    "collect",
    "deduplicate",
    "detect_plan_label",
    "display_name",
    "extract_candidates",
    "find_account_profile",
    "get_profile",
    "merge",
    "parse_document",
    "to_readings",
    "with_plan_label",
]
