from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from usagelens.core.usage.assigner import assign, display_name, score, to_readings
from usagelens.core.usage.dedup import deduplicate
from usagelens.core.usage.extractor import extract_candidates
from usagelens.core.usage.slots import CLAUDE_PROFILE, CODEX_PROFILE
from usagelens.core.usage.types import Candidate, CanonicalSlot

pytestmark = pytest.mark.unit

NOW = datetime(2025, 1, 1, 5, 0, tzinfo=timezone.utc)


def _assigned(document, profile):
    return assign(deduplicate(extract_candidates(document, profile)), profile, now=NOW)


def test_short_and_long_windows_by_alias():
    document = {
        "five_hour": {"utilization": 42.3, "resets_at": "2025-01-01T10:00:00Z"},
        "seven_day": {"utilization": 67.5, "resets_at": "2025-01-04T00:00:00Z"},
    }

    assigned = _assigned(document, CLAUDE_PROFILE)

    short = assigned[CanonicalSlot.SHORT_WINDOW]
    long = assigned[CanonicalSlot.LONG_WINDOW]
    assert short is not None and long is not None
    assert short.utilization == 42.3
    assert short.resets_at == datetime(2025, 1, 1, 10, 0, tzinfo=timezone.utc)
    assert long.utilization == 67.5
    assert long.resets_at == datetime(2025, 1, 4, 0, 0, tzinfo=timezone.utc)
    assert assigned[CanonicalSlot.BUCKET_A] is None
    assert assigned[CanonicalSlot.BUCKET_B] is None
    assert assigned[CanonicalSlot.OVERFLOW] is None


def test_claude_fixture_fills_every_slot(load_fixture):
    assigned = _assigned(load_fixture("claude_usage.json"), CLAUDE_PROFILE)

    paths = {slot: candidate.path for slot, candidate in assigned.items() if candidate is not None}
    assert paths == {
        CanonicalSlot.SHORT_WINDOW: ("five_hour",),
        CanonicalSlot.LONG_WINDOW: ("seven_day",),
        CanonicalSlot.BUCKET_A: ("seven_day_opus",),
        CanonicalSlot.BUCKET_B: ("seven_day_sonnet",),
        CanonicalSlot.OVERFLOW: ("extra_usage",),
    }


def test_codex_internal_window_names_resolve_by_vocabulary(load_fixture):
    assigned = _assigned(load_fixture("codex_usage.json"), CODEX_PROFILE)

    short = assigned[CanonicalSlot.SHORT_WINDOW]
    long = assigned[CanonicalSlot.LONG_WINDOW]
    assert short is not None and long is not None
    assert short.path == ("rate_limit", "primary_window")
    assert short.utilization == 7
    assert long.path == ("rate_limit", "secondary_window")
    assert long.utilization == 31
    assert assigned[CanonicalSlot.BUCKET_A] is None
    assert assigned[CanonicalSlot.OVERFLOW] is None


def test_named_credit_limit_lands_in_model_bucket():
    document = {"limits": [{"name": "Code Review", "used": 80, "limit": 100, "resets_at": 1735732800}]}

    assigned = _assigned(document, CODEX_PROFILE)
    readings = to_readings(assigned, CODEX_PROFILE)

    reading = readings[CanonicalSlot.BUCKET_A]
    assert reading is not None
    assert reading.utilization == 80.0
    assert reading.resets_at == datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)
    assert reading.display_name == "Code Review"
    assert reading.source_path == ("limits", "[0]")
    assert readings[CanonicalSlot.SHORT_WINDOW] is None


def test_slots_are_exclusive_by_source_path(load_fixture):
    candidates = deduplicate(extract_candidates(load_fixture("codex_usage.json"), CODEX_PROFILE))
    assert len(candidates) == 4

    assigned = assign(candidates, CODEX_PROFILE, now=NOW)

    filled = [candidate for candidate in assigned.values() if candidate is not None]
    assert len(filled) == 2
    assert len({candidate.path for candidate in filled}) == len(filled)


def test_same_path_in_other_document_stays_assignable():
    short = Candidate(name="five_hour", path=("data", "[0]"), utilization=10, source=0)
    long = Candidate(name="seven_day", path=("data", "[0]"), utilization=20, source=1)

    assigned = assign([short, long], CLAUDE_PROFILE, now=NOW)

    assert assigned[CanonicalSlot.SHORT_WINDOW] is short
    assert assigned[CanonicalSlot.LONG_WINDOW] is long


def test_same_path_in_same_document_is_released_with_winner():
    short = Candidate(name="five_hour", path=("data", "[0]"), utilization=10)
    long = Candidate(name="seven_day", path=("data", "[0]"), utilization=20)

    assigned = assign([short, long], CLAUDE_PROFILE, now=NOW)

    filled = [candidate for candidate in assigned.values() if candidate is not None]
    assert len(filled) == 1


def test_unrecognized_names_fill_remaining_slots_in_order():
    candidates = [
        Candidate(name="usage", path=("a",), utilization=10),
        Candidate(name="Daily Messages", path=("b",), utilization=20),
    ]

    assigned = assign(candidates, CLAUDE_PROFILE, now=NOW)

    assert assigned[CanonicalSlot.SHORT_WINDOW] is candidates[1]
    assert assigned[CanonicalSlot.LONG_WINDOW] is candidates[0]
    assert assigned[CanonicalSlot.BUCKET_A] is None


def test_leftovers_prefer_earlier_reset():
    later = Candidate(name="limit", path=("a",), utilization=1, resets_at=NOW - timedelta(days=1))
    earlier = Candidate(name="limit", path=("b",), utilization=2, resets_at=NOW - timedelta(days=2))

    assigned = assign([later, earlier], CLAUDE_PROFILE, now=NOW)

    assert assigned[CanonicalSlot.SHORT_WINDOW] is earlier
    assert assigned[CanonicalSlot.LONG_WINDOW] is later


def test_reset_proximity_separates_unnamed_windows():
    weekly = Candidate(name="window", path=("a",), utilization=50, resets_at=NOW + timedelta(days=4))
    hourly = Candidate(name="window", path=("b",), utilization=5, resets_at=NOW + timedelta(hours=3))

    assigned = assign([weekly, hourly], CLAUDE_PROFILE, now=NOW)

    assert assigned[CanonicalSlot.SHORT_WINDOW] is hourly
    assert assigned[CanonicalSlot.LONG_WINDOW] is weekly


def test_model_bucket_requires_minimum_score():
    weak = Candidate(name="seven_day", path=("a",), utilization=5, resets_at=NOW + timedelta(days=3))

    assert score(CLAUDE_PROFILE.rule(CanonicalSlot.BUCKET_A), weak, CLAUDE_PROFILE, NOW) < 150
    assigned = assign([weak], CLAUDE_PROFILE, now=NOW)
    assert assigned[CanonicalSlot.BUCKET_A] is None
    assert assigned[CanonicalSlot.LONG_WINDOW] is weak


def test_overflow_yields_to_model_specific_candidates():
    candidate = Candidate(name="extra_opus", path=("a",), utilization=5)
    overflow_rule = CLAUDE_PROFILE.rule(CanonicalSlot.OVERFLOW)

    assert score(overflow_rule, candidate, CLAUDE_PROFILE, NOW) < overflow_rule.min_score
    assert score(overflow_rule, Candidate(name="extra", path=("b",), utilization=5), CLAUDE_PROFILE, NOW) > 0


def test_past_resets_carry_no_reset_bias():
    rule = CLAUDE_PROFILE.rule(CanonicalSlot.SHORT_WINDOW)
    stale = Candidate(name="five_hour", path=("a",), utilization=5, resets_at=NOW - timedelta(hours=1))
    undated = Candidate(name="five_hour", path=("b",), utilization=5)

    assert score(rule, stale, CLAUDE_PROFILE, NOW) == score(rule, undated, CLAUDE_PROFILE, NOW)


def test_assignment_is_deterministic(load_fixture):
    document = load_fixture("claude_usage.json")

    first = _assigned(document, CLAUDE_PROFILE)
    second = _assigned(document, CLAUDE_PROFILE)

    assert first == second


def test_empty_pool_leaves_every_slot_empty():
    assert all(candidate is None for candidate in assign([], CLAUDE_PROFILE, now=NOW).values())


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("Code Review", "Code Review"),
        ("usage", None),
        ("Limits", None),
        ("primary_window", None),
        ("five_hour", None),
        ("seven-day", None),
        ("  ", None),
        ("Opus weekly", "Opus weekly"),
    ],
)
def test_display_name_suppression(name, expected):
    assert display_name(name, CLAUDE_PROFILE) == expected
