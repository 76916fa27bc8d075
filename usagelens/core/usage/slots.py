from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, TypeAlias

from usagelens.core.usage.types import SLOT_ORDER, CanonicalSlot, PlanTier

TokenPattern: TypeAlias = tuple[str, ...]


def _patterns(*patterns: str) -> tuple[TokenPattern, ...]:
    return tuple(tuple(pattern.split()) for pattern in patterns)


def _weights(table: Mapping[str, int]) -> tuple[tuple[TokenPattern, int], ...]:
    return tuple((tuple(pattern.split()), weight) for pattern, weight in table.items())


@dataclass(frozen=True, slots=True)
class WindowAlias:
    patterns: tuple[TokenPattern, ...]
    exclude: frozenset[str] = frozenset()

    def strength(self, key_tokens: frozenset[str]) -> int:
        """Size of the largest pattern contained in ``key_tokens``, 0 when none."""
        if not key_tokens or key_tokens & self.exclude:
            return 0
        best = 0
        for pattern in self.patterns:
            if key_tokens.issuperset(pattern):
                best = max(best, len(pattern))
        return best


@dataclass(frozen=True, slots=True)
class HoursBand:
    low: float
    high: float | None
    weight: int

    def contains(self, hours: float) -> bool:
        if hours < self.low:
            return False
        return self.high is None or hours < self.high


@dataclass(frozen=True, slots=True)
class SlotRule:
    slot: CanonicalSlot
    window_name: str
    alias: WindowAlias
    weights: tuple[tuple[TokenPattern, int], ...]
    reset_bands: tuple[HoursBand, ...] = ()
    window_bands: tuple[HoursBand, ...] = ()
    min_score: int = 1
    specific: bool = False
    yields_to_specific: bool = False


@dataclass(frozen=True, slots=True)
class ProviderProfile:
    name: str
    rules: tuple[SlotRule, ...]
    priority: tuple[CanonicalSlot, ...]
    plan_keywords: tuple[tuple[str, PlanTier], ...]
    _by_slot: Mapping[CanonicalSlot, SlotRule] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        by_slot = {rule.slot: rule for rule in self.rules}
        if set(by_slot) != set(SLOT_ORDER) or len(self.rules) != len(SLOT_ORDER):
            raise ValueError(f"profile {self.name!r} must define exactly one rule per slot")
        if set(self.priority) != set(SLOT_ORDER) or len(self.priority) != len(SLOT_ORDER):
            raise ValueError(f"profile {self.name!r} priority must list every slot once")
        object.__setattr__(self, "_by_slot", MappingProxyType(by_slot))

    def rule(self, slot: CanonicalSlot) -> SlotRule:
        return self._by_slot[slot]

    @property
    def window_names(self) -> frozenset[str]:
        return frozenset(rule.window_name for rule in self.rules)


# Hours-until-reset and window-length bands shared by both vocabularies.
SHORT_RESET_BANDS = (
    HoursBand(0, 12, 90),
    HoursBand(12, 36, 30),
    HoursBand(36, None, -120),
)
LONG_RESET_BANDS = (
    HoursBand(0, 16, -90),
    HoursBand(24, 240, 90),
    HoursBand(240, None, -30),
)
MODEL_RESET_BANDS = (
    HoursBand(0, 16, -40),
    HoursBand(24, 240, 40),
)
SHORT_WINDOW_BANDS = (
    HoursBand(0, 13, 60),
    HoursBand(24, None, -80),
)
LONG_WINDOW_BANDS = (
    HoursBand(0, 16, -80),
    HoursBand(72, None, 60),
)

MODEL_SLOT_PRIORITY = (
    CanonicalSlot.BUCKET_A,
    CanonicalSlot.BUCKET_B,
    CanonicalSlot.SHORT_WINDOW,
    CanonicalSlot.LONG_WINDOW,
    CanonicalSlot.OVERFLOW,
)


CLAUDE_PROFILE = ProviderProfile(
    name="claude",
    rules=(
        SlotRule(
            slot=CanonicalSlot.SHORT_WINDOW,
            window_name="five_hour",
            alias=WindowAlias(
                _patterns("five hour", "5h", "hourly"),
                exclude=frozenset({"opus", "sonnet", "week", "weekly", "seven"}),
            ),
            weights=_weights(
                {
                    "five hour": 220,
                    "5h": 220,
                    "hourly": 200,
                    "hour": 100,
                    "session": 80,
                    "short": 80,
                    "primary": 60,
                    "week": -160,
                    "weekly": -160,
                    "seven": -120,
                    "7d": -160,
                    "opus": -150,
                    "sonnet": -150,
                    "extra": -150,
                }
            ),
            reset_bands=SHORT_RESET_BANDS,
            window_bands=SHORT_WINDOW_BANDS,
        ),
        SlotRule(
            slot=CanonicalSlot.LONG_WINDOW,
            window_name="seven_day",
            alias=WindowAlias(
                _patterns("seven day", "7d", "weekly"),
                exclude=frozenset({"opus", "sonnet", "oauth", "apps", "cowork", "extra", "additional", "review"}),
            ),
            weights=_weights(
                {
                    "seven day": 220,
                    "7d": 220,
                    "weekly": 200,
                    "week": 100,
                    "secondary": 60,
                    "day": 20,
                    "hour": -160,
                    "5h": -160,
                    "opus": -200,
                    "sonnet": -200,
                    "oauth": -200,
                    "cowork": -200,
                    "extra": -200,
                }
            ),
            reset_bands=LONG_RESET_BANDS,
            window_bands=LONG_WINDOW_BANDS,
        ),
        SlotRule(
            slot=CanonicalSlot.BUCKET_A,
            window_name="seven_day_opus",
            alias=WindowAlias(_patterns("opus")),
            weights=_weights({"opus": 260, "week": 20, "seven day": 20, "sonnet": -200, "hour": -80}),
            reset_bands=MODEL_RESET_BANDS,
            min_score=150,
            specific=True,
        ),
        SlotRule(
            slot=CanonicalSlot.BUCKET_B,
            window_name="seven_day_sonnet",
            alias=WindowAlias(_patterns("sonnet")),
            weights=_weights({"sonnet": 260, "week": 20, "seven day": 20, "opus": -200, "hour": -80}),
            reset_bands=MODEL_RESET_BANDS,
            min_score=150,
            specific=True,
        ),
        SlotRule(
            slot=CanonicalSlot.OVERFLOW,
            window_name="extra_usage",
            alias=WindowAlias(_patterns("extra usage", "extra", "overage")),
            weights=_weights(
                {
                    "extra": 220,
                    "additional": 200,
                    "bonus": 200,
                    "overage": 200,
                    "credit": 100,
                    "credits": 100,
                    "hour": -60,
                }
            ),
            yields_to_specific=True,
        ),
    ),
    priority=MODEL_SLOT_PRIORITY,
    plan_keywords=(
        ("max", PlanTier.MAX),
        ("pro", PlanTier.PRO),
        ("team", PlanTier.TEAM),
        ("enterprise", PlanTier.ENTERPRISE),
        ("free", PlanTier.FREE),
    ),
)


CODEX_PROFILE = ProviderProfile(
    name="codex",
    rules=(
        SlotRule(
            slot=CanonicalSlot.SHORT_WINDOW,
            window_name="five_hour",
            alias=WindowAlias(
                _patterns("five hour", "5h", "hourly", "primary window"),
                exclude=frozenset({"week", "weekly", "secondary", "additional", "review"}),
            ),
            weights=_weights(
                {
                    "five hour": 220,
                    "5h": 220,
                    "hourly": 200,
                    "primary": 120,
                    "hour": 100,
                    "short": 80,
                    "week": -160,
                    "weekly": -160,
                    "secondary": -120,
                    "7d": -160,
                    "review": -200,
                    "additional": -120,
                    "extra": -150,
                }
            ),
            reset_bands=SHORT_RESET_BANDS,
            window_bands=SHORT_WINDOW_BANDS,
        ),
        SlotRule(
            slot=CanonicalSlot.LONG_WINDOW,
            window_name="weekly",
            alias=WindowAlias(
                _patterns("weekly", "seven day", "7d", "secondary window"),
                exclude=frozenset({"primary", "additional", "review", "extra"}),
            ),
            weights=_weights(
                {
                    "weekly": 200,
                    "seven day": 200,
                    "7d": 200,
                    "secondary": 120,
                    "week": 100,
                    "hour": -160,
                    "5h": -160,
                    "primary": -120,
                    "review": -200,
                    "additional": -160,
                    "extra": -200,
                }
            ),
            reset_bands=LONG_RESET_BANDS,
            window_bands=LONG_WINDOW_BANDS,
        ),
        SlotRule(
            slot=CanonicalSlot.BUCKET_A,
            window_name="code_review",
            alias=WindowAlias(_patterns("code review")),
            weights=_weights({"code review": 240, "review": 120, "credit": 20, "additional": -60}),
            min_score=120,
            specific=True,
        ),
        SlotRule(
            slot=CanonicalSlot.BUCKET_B,
            window_name="additional_weekly",
            alias=WindowAlias(_patterns("additional weekly", "additional week")),
            weights=_weights(
                {
                    "additional weekly": 220,
                    "additional week": 220,
                    "additional": 60,
                    "review": -200,
                    "hour": -80,
                }
            ),
            reset_bands=MODEL_RESET_BANDS,
            min_score=150,
            specific=True,
        ),
        SlotRule(
            slot=CanonicalSlot.OVERFLOW,
            window_name="extra_usage",
            alias=WindowAlias(_patterns("extra usage", "extra", "bonus")),
            weights=_weights(
                {
                    "extra": 200,
                    "additional": 160,
                    "bonus": 200,
                    "overage": 180,
                    "credit": 80,
                    "credits": 80,
                }
            ),
            yields_to_specific=True,
        ),
    ),
    priority=MODEL_SLOT_PRIORITY,
    plan_keywords=(
        ("enterprise", PlanTier.ENTERPRISE),
        ("team", PlanTier.TEAM),
        ("business", PlanTier.TEAM),
        ("pro", PlanTier.PRO),
        ("plus", PlanTier.PRO),
        ("max", PlanTier.MAX),
        ("free", PlanTier.FREE),
    ),
)


PROFILES: Mapping[str, ProviderProfile] = MappingProxyType(
    {
        CLAUDE_PROFILE.name: CLAUDE_PROFILE,
        CODEX_PROFILE.name: CODEX_PROFILE,
    }
)


def get_profile(name: str) -> ProviderProfile:
    try:
        return PROFILES[name.strip().lower()]
    except KeyError:
        raise ValueError(f"Unknown provider profile: {name}") from None


def match_window(profile: ProviderProfile, key_tokens: frozenset[str]) -> SlotRule | None:
    """Return the rule whose window aliases match ``key_tokens`` most specifically."""
    best: SlotRule | None = None
    best_strength = 0
    for rule in profile.rules:
        strength = rule.alias.strength(key_tokens)
        if strength > best_strength:
            best = rule
            best_strength = strength
    return best
