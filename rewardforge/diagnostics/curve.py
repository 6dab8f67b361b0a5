"""Leveling curve tables."""

from __future__ import annotations

from dataclasses import dataclass

from ..domain.leveling import LevelingCurve


@dataclass(slots=True)
class CurveRow:
    level: int
    required_exp: int
    cumulative_exp: int


def curve_table(curve: LevelingCurve, *, until: int | None = None) -> list[CurveRow]:
    """Per-level requirement and the cumulative exp needed to reach each level.

    The last row is the max level itself, which has no requirement.
    """
    last = min(until or curve.max_level, curve.max_level)
    rows: list[CurveRow] = []
    cumulative = 0
    for level in range(1, last + 1):
        required = curve.required_exp(level) if level < curve.max_level else 0
        rows.append(CurveRow(level=level, required_exp=required, cumulative_exp=cumulative))
        cumulative += required
    return rows


def exp_to_reach(curve: LevelingCurve, level: int) -> int:
    if level < 1:
        raise ValueError(f"Level must be >= 1, got {level}")
    return curve.total_exp_to(level)
