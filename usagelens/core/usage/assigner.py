from __future__ import annotations

from typing import TypeAlias

from collections.abc import Iterable, Sequence
from datetime import datetime

from usagelens.core.types import JsonPath
from usagelens.core.usage.slots import HoursBand, ProviderProfile, SlotRule
from usagelens.core.usage.text import tokens
from usagelens.core.usage.types import SLOT_ORDER, Candidate, CanonicalSlot, SlotReading
from usagelens.core.utils.time import hours_until, utcnow

GENERIC_NAMES = frozenset({"usage", "limit", "limits", "quota", "quotas", "data", "item", "items"})
INTERNAL_WINDOW_NAMES = frozenset(
    {
        "primary_window",
        "secondary_window",
        "tertiary_window",
        "quaternary_window",
        "weekly_window",
    }
)
YIELD_PENALTY = 300

Assignment: TypeAlias = dict[CanonicalSlot, Candidate | None]
FallbackKey: TypeAlias = tuple[int, int, float, str, JsonPath]


def display_name(name: str, profile: ProviderProfile) -> str | None:
    """Return ``name`` for display, or ``None`` when the presentation layer should label it."""
    raw = name.strip()
    if not raw:
        return None
    lowered = raw.lower()
    if lowered in GENERIC_NAMES:
        return None
    normalized = lowered.replace("-", "_")
    if normalized in INTERNAL_WINDOW_NAMES or normalized in profile.window_names:
        return None
    return raw


def score(rule: SlotRule, candidate: Candidate, profile: ProviderProfile, now: datetime) -> int:
    total = _base_score(rule, candidate, now)
    if rule.yields_to_specific and _matches_specific_slot(candidate, profile, rule, now):
        total -= YIELD_PENALTY
    return total


def assign(
    candidates: Iterable[Candidate],
    profile: ProviderProfile,
    *,
    now: datetime | None = None,
) -> Assignment:
    """Bind candidates to canonical slots.

    Slots are resolved greedily in ``profile.priority`` order, each taking the
    best-scoring remaining candidate that reaches the rule minimum. Slots still
    empty afterwards take leftovers in declaration order. A bound candidate
    removes every other candidate observed at the same path of the same
    source document.
    """
    reference = now or utcnow()
    pool = list(candidates)
    assigned: Assignment = {slot: None for slot in SLOT_ORDER}

    for slot in profile.priority:
        rule = profile.rule(slot)
        winner = _best_candidate(rule, pool, profile, reference)
        if winner is None:
            continue
        assigned[slot] = winner
        pool = _release(pool, winner)

    leftovers = sorted(pool, key=lambda candidate: fallback_key(candidate, profile))
    for slot in SLOT_ORDER:
        if assigned[slot] is not None or not leftovers:
            continue
        winner = leftovers[0]
        assigned[slot] = winner
        leftovers = _release(leftovers, winner)

    return assigned


def to_readings(
    assignment: Assignment,
    profile: ProviderProfile,
) -> dict[CanonicalSlot, SlotReading | None]:
    readings: dict[CanonicalSlot, SlotReading | None] = {}
    for slot in SLOT_ORDER:
        candidate = assignment.get(slot)
        if candidate is None:
            readings[slot] = None
            continue
        readings[slot] = SlotReading(
            utilization=candidate.utilization,
            resets_at=candidate.resets_at,
            display_name=display_name(candidate.name, profile),
            source_path=candidate.path,
        )
    return readings


def fallback_key(candidate: Candidate, profile: ProviderProfile) -> FallbackKey:
    meaningful = 0 if display_name(candidate.name, profile) is not None else 1
    if candidate.resets_at is None:
        has_reset, reset_epoch = 1, 0.0
    else:
        has_reset, reset_epoch = 0, candidate.resets_at.timestamp()
    return meaningful, has_reset, reset_epoch, candidate.name, candidate.path


def _best_candidate(
    rule: SlotRule,
    pool: Sequence[Candidate],
    profile: ProviderProfile,
    now: datetime,
) -> Candidate | None:
    best: Candidate | None = None
    best_key: tuple[int, FallbackKey] | None = None
    for candidate in pool:
        value = score(rule, candidate, profile, now)
        if value < rule.min_score:
            continue
        key = (-value, fallback_key(candidate, profile))
        if best_key is None or key < best_key:
            best, best_key = candidate, key
    return best


def _release(pool: Sequence[Candidate], winner: Candidate) -> list[Candidate]:
    return [
        candidate
        for candidate in pool
        if candidate is not winner and (candidate.path, candidate.source) != (winner.path, winner.source)
    ]


def _base_score(rule: SlotRule, candidate: Candidate, now: datetime) -> int:
    name_tokens = tokens(candidate.name)
    total = sum(weight for pattern, weight in rule.weights if name_tokens.issuperset(pattern))
    if candidate.resets_at is not None:
        hours = hours_until(candidate.resets_at, now)
        # Only future resets are banded.
        if hours > 0:
            total += _band_weight(rule.reset_bands, hours)
    if candidate.window_minutes:
        total += _band_weight(rule.window_bands, candidate.window_minutes / 60.0)
    return total


def _band_weight(bands: Sequence[HoursBand], hours: float) -> int:
    for band in bands:
        if band.contains(hours):
            return band.weight
    return 0


def _matches_specific_slot(
    candidate: Candidate,
    profile: ProviderProfile,
    own: SlotRule,
    now: datetime,
) -> bool:
    for rule in profile.rules:
        if rule is own or not rule.specific:
            continue
        if _base_score(rule, candidate, now) >= rule.min_score:
            return True
    return False
