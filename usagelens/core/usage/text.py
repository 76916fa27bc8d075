from __future__ import annotations

import re
import unicodedata

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")
_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def fold(value: str) -> str:
    decomposed = unicodedata.normalize("NFKD", value)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_key(value: str) -> str:
    """Return ``value`` as lowercase underscore-joined tokens.

    ``"sevenDayOpus"``, ``"Seven-Day Opus"`` and ``"séven_day_opus"`` all
    normalize to ``"seven_day_opus"``.
    """
    split = _CAMEL_BOUNDARY.sub("_", fold(value).strip())
    return _NON_ALNUM.sub("_", split.lower()).strip("_")


def tokens(value: str) -> frozenset[str]:
    normalized = normalize_key(value)
    if not normalized:
        return frozenset()
    return frozenset(normalized.split("_"))
