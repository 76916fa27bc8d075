from __future__ import annotations

from typing import TypeAlias

import math
from collections.abc import Iterable

from usagelens.core.usage.text import normalize_key
from usagelens.core.usage.types import Candidate

DedupKey: TypeAlias = tuple[str, int, int | None]


def dedup_key(candidate: Candidate) -> DedupKey:
    # Half-up rounding; utilization is never negative.
    bucketed = math.floor(candidate.utilization + 0.5)
    reset_minute = None
    if candidate.resets_at is not None:
        reset_minute = math.floor(candidate.resets_at.timestamp() / 60)
    return normalize_key(candidate.name), bucketed, reset_minute


def deduplicate(candidates: Iterable[Candidate]) -> list[Candidate]:
    seen: set[DedupKey] = set()
    unique: list[Candidate] = []
    for candidate in candidates:
        key = dedup_key(candidate)
        if key in seen:
            continue
        seen.add(key)
        unique.append(candidate)
    return unique
