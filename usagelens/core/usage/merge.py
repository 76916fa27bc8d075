from __future__ import annotations

from typing import TypeAlias

import logging
from collections.abc import Iterable, Sequence
from dataclasses import replace
from datetime import datetime

from usagelens.core.exceptions import UsageDataUnavailableError
from usagelens.core.types import JsonValue
from usagelens.core.usage.assigner import assign, to_readings
from usagelens.core.usage.dedup import deduplicate
from usagelens.core.usage.extractor import detect_plan_label, extract_candidates
from usagelens.core.usage.plan import classify_plan_tier
from usagelens.core.usage.slots import ProviderProfile
from usagelens.core.usage.types import Candidate, CanonicalSlot, CreditsSummary, UsageSnapshot
from usagelens.core.utils.request_id import get_request_id

logger = logging.getLogger(__name__)

SourceOutcome: TypeAlias = UsageSnapshot | BaseException


def build_snapshot(
    candidates: Iterable[Candidate],
    profile: ProviderProfile,
    *,
    plan_label: str | None = None,
    credits: CreditsSummary | None = None,
    now: datetime | None = None,
) -> UsageSnapshot:
    unique = deduplicate(candidates)
    readings = to_readings(assign(unique, profile, now=now), profile)
    if credits is not None and credits.has_monetary_overage:
        # The monetary overage and the extra-usage window describe one bucket.
        readings[CanonicalSlot.OVERFLOW] = None
    return UsageSnapshot(
        plan_label=plan_label,
        plan_tier=classify_plan_tier(plan_label, profile),
        slots=readings,
        candidates=tuple(unique),
        credits=credits,
    )


def parse_document(
    document: JsonValue,
    profile: ProviderProfile,
    *,
    plan_label: str | None = None,
    now: datetime | None = None,
) -> UsageSnapshot:
    return build_snapshot(
        extract_candidates(document, profile),
        profile,
        plan_label=plan_label or detect_plan_label(document),
        now=now,
    )


def merge(
    snapshots: Sequence[UsageSnapshot],
    profile: ProviderProfile,
    *,
    now: datetime | None = None,
) -> UsageSnapshot:
    """Merge per-endpoint snapshots given in call-declaration order."""
    plan_label = next((snapshot.plan_label for snapshot in snapshots if snapshot.plan_label), None)
    credits = next((snapshot.credits for snapshot in snapshots if snapshot.credits is not None), None)
    return build_snapshot(
        _tag_sources(snapshots),
        profile,
        plan_label=plan_label,
        credits=credits,
        now=now,
    )


def _tag_sources(snapshots: Sequence[UsageSnapshot]) -> list[Candidate]:
    # Paths are only comparable within one source document.
    tagged: list[Candidate] = []
    offset = 0
    for snapshot in snapshots:
        for candidate in snapshot.candidates:
            tagged.append(replace(candidate, source=offset + candidate.source))
        offset += 1 + max((candidate.source for candidate in snapshot.candidates), default=0)
    return tagged


def collect(
    outcomes: Sequence[SourceOutcome],
    profile: ProviderProfile,
    *,
    now: datetime | None = None,
) -> UsageSnapshot:
    """Merge the successful outcomes; fail only when nothing usable came back.

    Raises the most recent source error when every source failed or returned
    nothing usable, otherwise ``UsageDataUnavailableError``.
    """
    snapshots: list[UsageSnapshot] = []
    last_error: BaseException | None = None
    for outcome in outcomes:
        if isinstance(outcome, BaseException):
            last_error = outcome
            continue
        snapshots.append(outcome)

    merged = merge(snapshots, profile, now=now)
    if merged.candidates or merged.plan_label is not None:
        return merged

    logger.warning(
        "No usable usage data request_id=%s sources=%d failures=%d",
        get_request_id(),
        len(outcomes),
        len(outcomes) - len(snapshots),
    )
    if last_error is not None:
        raise last_error
    raise UsageDataUnavailableError()


def with_plan_label(snapshot: UsageSnapshot, plan_label: str | None, profile: ProviderProfile) -> UsageSnapshot:
    if not plan_label:
        return snapshot
    return replace(snapshot, plan_label=plan_label, plan_tier=classify_plan_tier(plan_label, profile))
