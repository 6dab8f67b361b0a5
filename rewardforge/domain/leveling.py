"""Experience curves shared by account, character, mastery and battle pass levels."""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import Sequence


@dataclass(slots=True)
class LevelProgress:
    level: int = 1
    exp: int = 0


@dataclass(slots=True)
class LevelUp:
    progress: LevelProgress
    levels_gained: int = 0


@dataclass(slots=True)
class LevelingCurve:
    """``required_exp(level) = floor(base_exp * (1 + increment) ** (level - 1))``.

    ``table`` optionally pins the requirement of the first ``len(table)``
    levels, the formula covers the rest.
    """

    base_exp: int = 100
    increment: float = 0.1
    max_level: int = 50
    table: Sequence[int] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if self.base_exp <= 0:
            raise ValueError("base_exp must be positive")
        if self.increment < 0:
            raise ValueError("increment cannot be negative")
        if self.max_level < 1:
            raise ValueError("max_level must be at least 1")

    def required_exp(self, level: int) -> int:
        if level < 1:
            raise ValueError(f"Level must be >= 1, got {level}")
        if level <= len(self.table):
            return int(self.table[level - 1])
        return math.floor(self.base_exp * (1 + self.increment) ** (level - 1))

    def total_exp_to(self, level: int) -> int:
        """Cumulative exp needed to reach ``level`` from level 1."""
        return sum(self.required_exp(lvl) for lvl in range(1, min(level, self.max_level)))

    def is_max(self, progress: LevelProgress) -> bool:
        return progress.level >= self.max_level

    def apply_exp(self, progress: LevelProgress, amount: int) -> LevelUp:
        if amount < 0:
            raise ValueError("Experience amount cannot be negative")
        level = progress.level
        pool = progress.exp + amount
        gained = 0
        while level < self.max_level:
            required = self.required_exp(level)
            if pool < required:
                break
            pool -= required
            level += 1
            gained += 1
        if level >= self.max_level:
            level = self.max_level
            pool = 0
        return LevelUp(progress=LevelProgress(level=level, exp=pool), levels_gained=gained)


@dataclass(slots=True)
class LevelingCurves:
    """One curve per progression axis."""

    account: LevelingCurve = field(default_factory=LevelingCurve)
    character: LevelingCurve = field(default_factory=lambda: LevelingCurve(max_level=30))
    mastery: LevelingCurve = field(default_factory=lambda: LevelingCurve(max_level=20))
    battle_pass: LevelingCurve = field(
        default_factory=lambda: LevelingCurve(base_exp=1000, increment=0.0, max_level=50)
    )

    def for_character(self, max_level: int | None) -> LevelingCurve:
        """Character curve with a per-character level cap applied."""
        if max_level is None or max_level == self.character.max_level:
            return self.character
        return replace(self.character, max_level=max_level)
