"""XP curve and level-up resolution."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Protocol

XP_CURVE_SCALE = 10
XP_CURVE_EXPONENT = 1.5
# Upper bound for a single award and for stored carry-over xp. Resolving the
# largest award from level 1 takes a few thousand steps.
MAX_XP_AWARD = 1_000_000


class Progressable(Protocol):
    """Anything carrying level, xp and the threshold for the next level."""

    level: int
    xp: int
    xp_to_next_level: int


@dataclass(slots=True)
class LevelUpResult:
    """Outcome of applying an XP award to a class."""

    previous_level: int
    new_level: int
    xp_gained: int

    @property
    def levels_gained(self) -> int:
        return self.new_level - self.previous_level

    @property
    def leveled_up(self) -> bool:
        return self.new_level > self.previous_level


def xp_threshold_total(level: int) -> float:
    """Cumulative XP needed to reach ``level`` starting from level 1."""

    if level <= 1:
        return 0.0
    return XP_CURVE_SCALE * (level - 1) ** XP_CURVE_EXPONENT


def xp_for_level(level: int) -> int:
    """XP needed to advance from ``level`` to ``level + 1``.

    Levels below 1 are treated as level 1. The ceiling keeps the result at least 1.
    """

    level = max(1, int(level))
    return max(1, math.ceil(xp_threshold_total(level + 1) - xp_threshold_total(level)))


def resolve_level_up(target: Progressable, xp_gain: int) -> LevelUpResult:
    """Add ``xp_gain`` to ``target`` and apply every level-up it pays for.

    Mutates ``target`` in place. A gain of zero only settles a target whose
    stored xp already reaches its threshold. Gains or stored xp above
    ``MAX_XP_AWARD`` raise ``ValueError``.
    """

    if xp_gain < 0:
        raise ValueError("xp_gain must be >= 0")
    if xp_gain > MAX_XP_AWARD or target.xp > MAX_XP_AWARD:
        raise ValueError(f"xp awards are limited to {MAX_XP_AWARD}")

    previous_level = target.level
    if target.xp_to_next_level <= 0:
        target.xp_to_next_level = xp_for_level(target.level)

    target.xp += xp_gain
    while target.xp >= target.xp_to_next_level:
        target.level += 1
        target.xp -= target.xp_to_next_level
        target.xp_to_next_level = xp_for_level(target.level)

    return LevelUpResult(previous_level=previous_level, new_level=target.level, xp_gained=xp_gain)


__all__ = [
    "MAX_XP_AWARD",
    "LevelUpResult",
    "Progressable",
    "resolve_level_up",
    "xp_for_level",
    "xp_threshold_total",
]
