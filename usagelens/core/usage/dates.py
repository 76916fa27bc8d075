from __future__ import annotations

import re
from datetime import datetime, timezone

from usagelens.core.utils.time import from_epoch_seconds

EPOCH_MILLIS_THRESHOLD = 1_000_000_000_000
EPOCH_SECONDS_THRESHOLD = 1_000_000_000

_ISO_DATETIME = re.compile(
    r"^(?P<base>\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})"
    r"(?:\.(?P<fraction>\d+))?"
    r"(?P<zone>Z|z|[+-]\d{2}:?\d{2})?$"
)
_PLAIN_FORMAT = "%Y-%m-%d %H:%M:%S"


def parse_instant(value: object) -> datetime | None:
    """Parse a reset/expiry value into an aware UTC datetime.

    Attempts, in order: numeric epoch (milliseconds above 1e12, seconds above
    1e9), ISO-8601 with fractional seconds and zone, ISO-8601 with zone,
    ISO-8601 without zone (read as UTC), and ``yyyy-MM-dd HH:mm:ss`` as UTC.
    Anything else yields ``None``.
    """
    numeric = coerce_number(value)
    if numeric is not None:
        magnitude = abs(numeric)
        if magnitude > EPOCH_MILLIS_THRESHOLD:
            return _safe_epoch(numeric / 1000.0)
        if magnitude > EPOCH_SECONDS_THRESHOLD:
            return _safe_epoch(numeric)
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None
    return _parse_iso8601(text) or _parse_plain(text)


def coerce_number(value: object) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        numeric = float(value)
    elif isinstance(value, str):
        try:
            numeric = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if numeric != numeric or numeric in (float("inf"), float("-inf")):
        return None
    return numeric


def _safe_epoch(seconds: float) -> datetime | None:
    try:
        return from_epoch_seconds(seconds)
    except (OverflowError, OSError, ValueError):
        return None


def _parse_iso8601(text: str) -> datetime | None:
    match = _ISO_DATETIME.match(text)
    if match is None:
        return None
    normalized = match.group("base")
    fraction = match.group("fraction")
    if fraction:
        normalized += "." + fraction[:6].ljust(6, "0")
    zone = match.group("zone")
    if zone in ("Z", "z"):
        normalized += "+00:00"
    elif zone:
        normalized += zone if ":" in zone else f"{zone[:3]}:{zone[3:]}"
    try:
        parsed = datetime.fromisoformat(normalized)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _parse_plain(text: str) -> datetime | None:
    try:
        parsed = datetime.strptime(text, _PLAIN_FORMAT)
    except ValueError:
        return None
    return parsed.replace(tzinfo=timezone.utc)
