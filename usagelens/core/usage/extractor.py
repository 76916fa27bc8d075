from __future__ import annotations

import math
from collections.abc import Iterator
from datetime import datetime
from typing import cast

from usagelens.core.types import JsonObject, JsonPath, JsonValue
from usagelens.core.usage.dates import coerce_number, parse_instant
from usagelens.core.usage.slots import ProviderProfile, match_window
from usagelens.core.usage.text import fold, normalize_key, tokens
from usagelens.core.usage.types import AccountProfile, Candidate

PERCENT_KEYS = (
    "utilization",
    "percentage",
    "percent_used",
    "used_percent",
    "usage_percent",
    "usage_pct",
    "percent",
)
USED_KEYS = ("used", "consumed", "current")
LIMIT_KEYS = ("limit", "max", "quota", "total")
REMAINING_KEYS = ("remaining",)
NAME_KEYS = ("name", "label", "title", "slug", "model", "kind", "type", "limit_name", "model_slug")
WINDOW_SECONDS_KEYS = ("limit_window_seconds", "window_seconds")
WINDOW_MINUTES_KEYS = ("window_minutes", "limit_window_minutes")
RESET_KEY_MARKERS = ("reset", "expire")
PLAN_KEY_MARKERS = ("plan", "tier", "subscription")
KNOWN_PLANS = ("free", "plus", "pro", "max", "team", "enterprise", "business")
FALLBACK_NAME = "usage"

_EMAIL_KEYS = ("email", "email_address")
_DISPLAY_NAME_KEYS = ("display_name", "name", "full_name")
_PROFILE_PLAN_KEYS = ("plan", "plan_type", "tier", "subscription_plan", "rate_limit_tier")


def extract_candidates(document: JsonValue, profile: ProviderProfile) -> list[Candidate]:
    """Collect every usage-period observation found anywhere in ``document``.

    Each object contributes up to one candidate per child whose key matches a
    canonical window alias, plus one for the object itself when it carries
    enough numeric evidence. Nested periods are collected independently.
    """
    candidates: list[Candidate] = []
    for path, node in iter_objects(document):
        for key, child in node.items():
            if not isinstance(child, dict):
                continue
            rule = match_window(profile, tokens(key))
            if rule is None:
                continue
            candidate = parse_period(cast(JsonObject, child), path + (key,), name=rule.window_name)
            if candidate is not None:
                candidates.append(candidate)
        candidate = parse_period(node, path)
        if candidate is not None:
            candidates.append(candidate)
    return candidates


def parse_period(node: JsonObject, path: JsonPath, *, name: str | None = None) -> Candidate | None:
    fields = _normalized_fields(node)
    utilization = _utilization(fields)
    if utilization is None:
        return None
    return Candidate(
        name=name or _candidate_name(fields, path),
        path=path,
        utilization=utilization,
        resets_at=_reset_instant(node),
        window_minutes=_window_minutes(fields),
    )


def detect_plan_label(document: JsonValue) -> str | None:
    for _, node in iter_objects(document):
        for key, value in node.items():
            if not isinstance(value, str) or not value.strip():
                continue
            normalized = normalize_key(key)
            if not any(marker in normalized for marker in PLAN_KEY_MARKERS):
                continue
            lowered = fold(value).lower()
            if any(plan in lowered for plan in KNOWN_PLANS):
                return value.strip()
    return None


def find_account_profile(document: JsonValue) -> AccountProfile:
    return AccountProfile(
        email=_find_string(document, _EMAIL_KEYS),
        display_name=_find_string(document, _DISPLAY_NAME_KEYS),
        plan_label=_find_string(document, _PROFILE_PLAN_KEYS),
    )


def iter_objects(document: JsonValue) -> Iterator[tuple[JsonPath, JsonObject]]:
    """Yield ``(path, object)`` for every object in pre-order, document order."""
    stack: list[tuple[JsonPath, JsonValue]] = [((), document)]
    while stack:
        path, value = stack.pop()
        if isinstance(value, dict):
            node = cast(JsonObject, value)
            yield path, node
            children = [(path + (str(key),), child) for key, child in node.items()]
        elif isinstance(value, list):
            children = [(path + (f"[{index}]",), child) for index, child in enumerate(value)]
        else:
            continue
        stack.extend(
            (child_path, child) for child_path, child in reversed(children) if isinstance(child, (dict, list))
        )


def _normalized_fields(node: JsonObject) -> dict[str, JsonValue]:
    fields: dict[str, JsonValue] = {}
    for key, value in node.items():
        fields.setdefault(normalize_key(str(key)), value)
    return fields


def _first_number(fields: dict[str, JsonValue], keys: tuple[str, ...]) -> float | None:
    for key in keys:
        value = coerce_number(fields.get(key))
        if value is not None:
            return value
    return None


def _utilization(fields: dict[str, JsonValue]) -> float | None:
    raw = _first_number(fields, PERCENT_KEYS)
    if raw is None:
        limit = _first_number(fields, LIMIT_KEYS)
        if limit is None or limit <= 0:
            return None
        used = _first_number(fields, USED_KEYS)
        if used is not None:
            raw = used / limit * 100.0
        else:
            remaining = _first_number(fields, REMAINING_KEYS)
            if remaining is None:
                return None
            raw = (limit - remaining) / limit * 100.0
    return clamp_percent(raw)


def clamp_percent(value: float) -> float:
    return max(0.0, min(100.0, value))


def _reset_instant(node: JsonObject) -> datetime | None:
    for key, value in node.items():
        normalized = normalize_key(str(key))
        if not any(marker in normalized for marker in RESET_KEY_MARKERS):
            continue
        parsed = parse_instant(value)
        if parsed is not None:
            return parsed
    return None


def _window_minutes(fields: dict[str, JsonValue]) -> int | None:
    seconds = _first_number(fields, WINDOW_SECONDS_KEYS)
    if seconds is not None and seconds > 0:
        return max(1, math.ceil(seconds / 60))
    minutes = _first_number(fields, WINDOW_MINUTES_KEYS)
    if minutes is not None and minutes > 0:
        return max(1, math.ceil(minutes))
    return None


def _candidate_name(fields: dict[str, JsonValue], path: JsonPath) -> str:
    for key in NAME_KEYS:
        value = fields.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    for segment in reversed(path):
        if not segment.startswith("["):
            return segment
    return FALLBACK_NAME


def _find_string(document: JsonValue, keys: tuple[str, ...]) -> str | None:
    for _, node in iter_objects(document):
        for key, value in node.items():
            if normalize_key(str(key)) in keys and isinstance(value, str) and value.strip():
                return value.strip()
    return None
