"""Balancing diagnostics for reward catalogs and leveling curves."""

from .checklist import ChecklistIssue, run_checklist
from .curve import CurveRow, curve_table, exp_to_reach

__all__ = [
    "ChecklistIssue",
    "run_checklist",
    "CurveRow",
    "curve_table",
    "exp_to_reach",
]
