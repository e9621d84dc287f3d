"""Difficulty curves and the profiles that bundle them.

Every curve is a pure function of the round number. Tolerance only ever
shrinks and fill rate only ever grows as rounds advance, each settling at a
floor or ceiling that depends on the profile.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable
import math

from .utils import clamp

TARGET_MIN = 20
TARGET_MAX = 90

SIMPLE_TOLERANCE_FLOOR = 1.0
TIERED_TOLERANCE_FLOOR = 0.1
SIMPLE_FILL_RATE_CEILING = 0.8
TIERED_FILL_RATE_CEILING = 2.5

TIME_SAFETY_MARGIN = 1.3
MIN_TIME_BUDGET_MS = 1000
MAX_TIME_BUDGET_MS = 5000

Curve = Callable[[int], float]


def simple_tolerance(round_number: int) -> float:
    """5% at round one, half a point less per round, never below 1%."""
    r = max(1, round_number)
    return round(max(5 - (r - 1) * 0.5, SIMPLE_TOLERANCE_FLOOR), 2)


def tiered_tolerance(round_number: int) -> float:
    """Steep early drop, then slow grind down to a 0.1% floor."""
    r = max(1, round_number)
    if r <= 5:
        value = 3 - (r - 1) * 0.5
    elif r <= 10:
        value = max(1 - (r - 5) * 0.2, TIERED_TOLERANCE_FLOOR)
    else:
        value = TIERED_TOLERANCE_FLOOR
    return round(value, 2)


def simple_fill_rate(round_number: int) -> float:
    r = max(1, round_number)
    return round(min(0.3 + (r - 1) * 0.05, SIMPLE_FILL_RATE_CEILING), 2)


def tiered_fill_rate(round_number: int) -> float:
    """+0.05 per round inside each band of five, with a jump between bands."""
    r = max(1, round_number)
    if r <= 5:
        value = 0.5 + (r - 1) * 0.05
    elif r <= 10:
        value = 0.8 + (r - 6) * 0.05
    elif r <= 15:
        value = 1.1 + (r - 11) * 0.05
    else:
        value = 1.4 + (r - 16) * 0.05
    return round(min(value, TIERED_FILL_RATE_CEILING), 2)


def time_budget_ms(target_level: float, fill_rate: float) -> int:
    """Countdown for a round: theoretical pour time plus 30%, in 0.1 s steps.

    The result is clamped to [1 s, 5 s].
    """
    if fill_rate <= 0:
        return MAX_TIME_BUDGET_MS
    tenths = math.ceil(round(target_level / fill_rate * TIME_SAFETY_MARGIN * 10, 6))
    return int(clamp(tenths * 100, MIN_TIME_BUDGET_MS, MAX_TIME_BUDGET_MS))


class DifficultyVariant(str, Enum):
    """Selectable difficulty profiles."""

    CLASSIC = "classic"
    EXPERT = "expert"
    TIMED = "timed"


@dataclass(frozen=True, slots=True)
class DifficultyProfile:
    """Curves and countdown behaviour selected when the engine is built."""

    variant: DifficultyVariant
    label: str
    tolerance: Curve
    fill_rate: Curve
    tolerance_floor: float
    fill_rate_ceiling: float
    timed: bool = False

    def time_budget(self, target_level: float, fill_rate: float) -> int | None:
        """Return the round countdown in ms, or None for untimed profiles."""
        if not self.timed:
            return None
        return time_budget_ms(target_level, fill_rate)


PROFILES: dict[DifficultyVariant, DifficultyProfile] = {
    DifficultyVariant.CLASSIC: DifficultyProfile(
        variant=DifficultyVariant.CLASSIC,
        label="Classic",
        tolerance=simple_tolerance,
        fill_rate=simple_fill_rate,
        tolerance_floor=SIMPLE_TOLERANCE_FLOOR,
        fill_rate_ceiling=SIMPLE_FILL_RATE_CEILING,
    ),
    DifficultyVariant.EXPERT: DifficultyProfile(
        variant=DifficultyVariant.EXPERT,
        label="Expert",
        tolerance=tiered_tolerance,
        fill_rate=tiered_fill_rate,
        tolerance_floor=TIERED_TOLERANCE_FLOOR,
        fill_rate_ceiling=TIERED_FILL_RATE_CEILING,
    ),
    DifficultyVariant.TIMED: DifficultyProfile(
        variant=DifficultyVariant.TIMED,
        label="Against the Clock",
        tolerance=tiered_tolerance,
        fill_rate=tiered_fill_rate,
        tolerance_floor=TIERED_TOLERANCE_FLOOR,
        fill_rate_ceiling=TIERED_FILL_RATE_CEILING,
        timed=True,
    ),
}


def get_profile(variant: DifficultyVariant | str) -> DifficultyProfile:
    """Look up a profile by enum member or its string value."""
    try:
        return PROFILES[DifficultyVariant(variant)]
    except ValueError as exc:
        raise ValueError(f"Unknown difficulty variant: {variant!r}") from exc
