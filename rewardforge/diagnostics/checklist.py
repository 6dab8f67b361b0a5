"""Automated checks to highlight balancing issues."""

from __future__ import annotations

from dataclasses import dataclass
from statistics import mean

from ..app import EconomyApp
from ..domain.rewards import QuestKind, RewardKind, TrackKind


@dataclass(slots=True)
class ChecklistIssue:
    severity: str
    message: str


def run_checklist(app: EconomyApp) -> list[ChecklistIssue]:
    issues: list[ChecklistIssue] = []
    catalog = app.rewards.catalog

    for kind in TrackKind:
        rewards = catalog.track_rewards(kind)
        amounts = [reward.amount for reward in rewards if reward.kind is RewardKind.CURRENCY and reward.amount]
        if amounts and any(amount > mean(amounts) * 5 for amount in amounts):
            issues.append(
                ChecklistIssue(
                    "warning",
                    f"Track '{kind.value}' has slots paying far more than the track average.",
                )
            )

    curve = app.rules.curves.battle_pass
    items = list(catalog.iter_battle_pass())
    if not items:
        issues.append(ChecklistIssue("warning", "No battle pass items registered."))
    elif max(item.level for item in items) < curve.max_level // 2:
        issues.append(
            ChecklistIssue(
                "warning",
                f"Battle pass rewards stop at level {max(item.level for item in items)} of {curve.max_level}.",
            )
        )

    for quest in catalog.iter_quests():
        grants_nothing = not (quest.reward or quest.account_exp or quest.battle_pass_exp or quest.character_exp)
        if grants_nothing:
            severity = "error" if quest.kind is QuestKind.REPEATABLE else "warning"
            issues.append(ChecklistIssue(severity, f"Quest {quest.quest_id} grants nothing."))

    for item in catalog.iter_shop():
        if item.price == 0:
            issues.append(ChecklistIssue("warning", f"Shop item {item.item_id} is free."))

    if not list(app.currencies.registry.all()):
        issues.append(ChecklistIssue("warning", "No currencies defined."))

    return issues
