"""Authoritative check-and-mutate rules.

Every rule reads and writes exclusively through a :class:`LedgerView`, checks
all of its preconditions before the first write and returns a
:class:`Result`. Backends run a rule inside their atomic unit and discard the
unit's writes whenever the returned result is a failure.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from random import Random
from typing import Any, Iterable, Mapping

from .catalog import RewardCatalog
from .claims import validate_claim
from .economy import CurrencyRegistry
from .granter import EntitlementGranter, GrantDelta
from .ledger import LedgerView, QuestProgress
from .leveling import LevelingCurve, LevelingCurves, LevelProgress, LevelUp
from .results import ReasonCode, Result
from .rewards import (
    EntitlementKind,
    PassTier,
    QuestKind,
    QuestRequirement,
    RequirementType,
    RewardKind,
    TrackKind,
)
from .tracks import mark_claimed, refresh_track

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SessionSummary:
    """Outcome of one finished gameplay session."""

    map_id: str
    character_id: str
    won: bool = False
    monsters_killed: int = 0
    gained_gold: int = 0

    def __post_init__(self) -> None:
        if self.monsters_killed < 0 or self.gained_gold < 0:
            raise ValueError("Session totals cannot be negative")

    def to_dict(self) -> dict[str, Any]:
        return {
            "mapId": self.map_id,
            "characterId": self.character_id,
            "won": self.won,
            "monstersKilled": self.monsters_killed,
            "gainedGold": self.gained_gold,
        }


@dataclass(slots=True)
class EconomyRules:
    """Everything the rules need besides the ledger itself."""

    catalog: RewardCatalog
    curves: LevelingCurves = field(default_factory=LevelingCurves)
    granter: EntitlementGranter = field(default_factory=EntitlementGranter)
    gold_currency: str = "gold"
    battle_pass_currency: str = "gems"
    battle_pass_price: int = 0
    currencies: CurrencyRegistry = field(default_factory=CurrencyRegistry)
    rng: Random = field(default_factory=Random)

    def opening_balances(self, overrides: Mapping[str, int] | None = None) -> dict[str, int]:
        """Balances of a freshly provisioned account: initial amounts, then ``overrides``."""
        balances = {
            currency.code: currency.initial_amount
            for currency in self.currencies.all()
            if currency.initial_amount
        }
        balances.update(overrides or {})
        return balances


def _balances(view: LedgerView, currencies: Iterable[str]) -> dict[str, int]:
    return {currency: view.balance(currency) for currency in currencies}


def _require_amount(amount: int) -> None:
    if amount < 0:
        raise ValueError(f"Amount cannot be negative: {amount}")


# reward tracks


def claim_track_reward(
    rules: EconomyRules,
    view: LedgerView,
    kind: TrackKind,
    day_index: int,
    today: date,
) -> Result:
    length = rules.catalog.track_length(kind)
    track = view.track(kind)
    reset = refresh_track(track, length, today)
    failure = validate_claim(track, day_index, today, length)
    if failure is not None:
        return Result.fail(failure.reason)

    reward = rules.catalog.track_reward(kind, day_index)
    delta = rules.granter.plan(reward, view) if reward else GrantDelta()
    rules.granter.apply(delta, view)
    mark_claimed(track, day_index, today)
    view.save_track(track)
    return Result.ok(
        balances=_balances(view, delta.currencies),
        delta=delta,
        payload={"track": kind.value, "day_index": day_index, "reset": reset},
    )


# battle pass


def claim_battle_pass_reward(rules: EconomyRules, view: LedgerView, pass_id: str) -> Result:
    item = rules.catalog.find_battle_pass_item(pass_id)
    if item is None:
        return Result.fail(ReasonCode.NOT_FOUND)
    progress = view.battle_pass()
    if pass_id in progress.claimed:
        return Result.fail(ReasonCode.ALREADY_CLAIMED)
    if item.tier is PassTier.PREMIUM and not progress.premium:
        return Result.fail(ReasonCode.REQUIREMENT_NOT_MET)
    if progress.level < item.level:
        return Result.fail(ReasonCode.NOT_AVAILABLE_YET)

    delta = rules.granter.grant(item.reward, view)
    progress.claimed.add(pass_id)
    view.save_battle_pass(progress)
    return Result.ok(
        balances=_balances(view, delta.currencies),
        delta=delta,
        payload={"pass_id": pass_id},
    )


def unlock_battle_pass_premium(rules: EconomyRules, view: LedgerView) -> Result:
    progress = view.battle_pass()
    if progress.premium:
        return Result.fail(ReasonCode.ALREADY_CLAIMED)
    currency = rules.battle_pass_currency
    balance = view.balance(currency)
    if balance < rules.battle_pass_price:
        return Result.fail(ReasonCode.INSUFFICIENT_CURRENCY)

    view.set_balance(currency, balance - rules.battle_pass_price)
    progress.premium = True
    view.save_battle_pass(progress)
    return Result.ok(balances=_balances(view, [currency]))


# experience


def _grant_battle_pass_xp(rules: EconomyRules, view: LedgerView, amount: int) -> LevelUp:
    progress = view.battle_pass()
    up = rules.curves.battle_pass.apply_exp(LevelProgress(progress.level, progress.xp), amount)
    progress.level = up.progress.level
    progress.xp = up.progress.exp
    view.save_battle_pass(progress)
    return up


def _character_curve(rules: EconomyRules, character_id: str) -> LevelingCurve | None:
    character = rules.catalog.find_character(character_id)
    if character is None:
        return None
    return rules.curves.for_character(character.max_level)


def refresh_level_quests(rules: EconomyRules, view: LedgerView) -> None:
    """Level-gated quests read their progress straight from level state."""
    account_level = view.account_progress().level
    for quest in rules.catalog.iter_quests():
        requirement = quest.requirement
        if requirement.type is RequirementType.ACCOUNT_LEVEL:
            level = account_level
        elif requirement.type is RequirementType.CHARACTER_LEVEL and requirement.character_id:
            level = view.character_progress(requirement.character_id).level
        else:
            continue
        state = view.quest(quest.quest_id)
        if state.completed and quest.kind is QuestKind.ONE_TIME:
            continue
        if level >= requirement.target and state.progress < requirement.target:
            view.save_quest(quest.quest_id, QuestProgress(requirement.target, state.completed, quest.kind))


def _level_result(up: LevelUp) -> Result:
    return Result.ok(progress=up.progress, levels_gained=up.levels_gained)


def add_account_exp(rules: EconomyRules, view: LedgerView, amount: int) -> Result:
    _require_amount(amount)
    curve = rules.curves.account
    current = view.account_progress()
    if curve.is_max(current):
        return Result.fail(ReasonCode.MAX_LEVEL)
    up = curve.apply_exp(current, amount)
    view.save_account_progress(up.progress)
    refresh_level_quests(rules, view)
    return _level_result(up)


def add_character_exp(rules: EconomyRules, view: LedgerView, character_id: str, amount: int) -> Result:
    _require_amount(amount)
    curve = _character_curve(rules, character_id)
    if curve is None:
        return Result.fail(ReasonCode.NOT_FOUND)
    current = view.character_progress(character_id)
    if curve.is_max(current):
        return Result.fail(ReasonCode.MAX_LEVEL)
    up = curve.apply_exp(current, amount)
    view.save_character_progress(character_id, up.progress)
    refresh_level_quests(rules, view)
    return _level_result(up)


def add_mastery_exp(rules: EconomyRules, view: LedgerView, character_id: str, amount: int) -> Result:
    _require_amount(amount)
    if rules.catalog.find_character(character_id) is None:
        return Result.fail(ReasonCode.NOT_FOUND)
    curve = rules.curves.mastery
    current = view.mastery_progress(character_id)
    if curve.is_max(current):
        return Result.fail(ReasonCode.MAX_LEVEL)
    up = curve.apply_exp(current, amount)
    view.save_mastery_progress(character_id, up.progress)
    return _level_result(up)


def add_battle_pass_xp(rules: EconomyRules, view: LedgerView, amount: int) -> Result:
    _require_amount(amount)
    current = view.battle_pass()
    if current.level >= rules.curves.battle_pass.max_level:
        return Result.fail(ReasonCode.MAX_LEVEL)
    return _level_result(_grant_battle_pass_xp(rules, view, amount))


# sessions and quests


def _session_increment(requirement: QuestRequirement, summary: SessionSummary) -> int:
    kind = requirement.type
    if kind is RequirementType.KILL_MONSTERS:
        return summary.monsters_killed
    if kind is RequirementType.KILL_MONSTERS_WITH_CHARACTER:
        return summary.monsters_killed if requirement.character_id == summary.character_id else 0
    if kind is RequirementType.COMPLETE_MAP:
        return 1 if summary.won and requirement.map_id == summary.map_id else 0
    if kind is RequirementType.COMPLETE_MAP_WITH_CHARACTER:
        matches = requirement.map_id == summary.map_id and requirement.character_id == summary.character_id
        return 1 if summary.won and matches else 0
    return 0


def complete_game_session(rules: EconomyRules, view: LedgerView, summary: SessionSummary) -> Result:
    gold = rules.gold_currency
    if summary.gained_gold:
        view.set_balance(gold, view.balance(gold) + summary.gained_gold)
    view.set_score(view.score() + summary.monsters_killed)

    advanced: dict[str, int] = {}
    for quest in rules.catalog.iter_quests():
        state = view.quest(quest.quest_id)
        if state.completed and quest.kind is QuestKind.ONE_TIME:
            continue
        increment = _session_increment(quest.requirement, summary)
        if not increment:
            continue
        state.progress += increment
        state.kind = quest.kind
        view.save_quest(quest.quest_id, state)
        advanced[quest.quest_id] = state.progress

    return Result.ok(
        balances=_balances(view, [gold]),
        payload={"score": view.score(), "quests": advanced},
    )


def complete_quest(
    rules: EconomyRules,
    view: LedgerView,
    quest_id: str,
    *,
    character_id: str | None = None,
) -> Result:
    quest = rules.catalog.find_quest(quest_id)
    if quest is None:
        return Result.fail(ReasonCode.NOT_FOUND)
    state = view.quest(quest_id)
    if state.completed and quest.kind is QuestKind.ONE_TIME:
        return Result.fail(ReasonCode.ALREADY_CLAIMED)
    if state.progress < quest.requirement.target:
        return Result.fail(ReasonCode.REQUIREMENT_NOT_MET)

    delta = rules.granter.grant(quest.reward, view) if quest.reward else GrantDelta()

    levels: dict[str, dict[str, int]] = {}
    if quest.account_exp:
        curve = rules.curves.account
        current = view.account_progress()
        if not curve.is_max(current):
            up = curve.apply_exp(current, quest.account_exp)
            view.save_account_progress(up.progress)
            levels["account"] = {"level": up.progress.level, "exp": up.progress.exp}
    if quest.battle_pass_exp:
        up = _grant_battle_pass_xp(rules, view, quest.battle_pass_exp)
        levels["battle_pass"] = {"level": up.progress.level, "exp": up.progress.exp}
    if quest.character_exp and character_id:
        curve = _character_curve(rules, character_id)
        if curve is not None:
            current = view.character_progress(character_id)
            if not curve.is_max(current):
                up = curve.apply_exp(current, quest.character_exp)
                view.save_character_progress(character_id, up.progress)
                levels["character"] = {"level": up.progress.level, "exp": up.progress.exp}

    if quest.kind is QuestKind.REPEATABLE:
        view.save_quest(quest_id, QuestProgress(0, False, quest.kind))
    else:
        view.save_quest(quest_id, QuestProgress(state.progress, True, quest.kind))
    refresh_level_quests(rules, view)

    return Result.ok(
        balances=_balances(view, delta.currencies),
        delta=delta,
        payload={"quest_id": quest_id, "levels": levels, "character_id": character_id},
    )


# coupons and shop


def redeem_coupon(rules: EconomyRules, view: LedgerView, code: str) -> Result:
    coupon = rules.catalog.find_coupon(code)
    if coupon is None:
        return Result.fail(ReasonCode.NOT_FOUND)
    if view.coupon_used(coupon.coupon_id):
        return Result.fail(ReasonCode.ALREADY_CLAIMED)

    delta = GrantDelta()
    if coupon.amount:
        delta.add_currency(coupon.currency, coupon.amount)
    rules.granter.apply(delta, view)
    view.mark_coupon_used(coupon.coupon_id)
    return Result.ok(
        balances=_balances(view, [coupon.currency]),
        delta=delta,
        payload={"coupon_id": coupon.coupon_id},
    )


def purchase_shop_item(rules: EconomyRules, view: LedgerView, item_id: str) -> Result:
    item = rules.catalog.find_shop_item(item_id)
    if item is None:
        return Result.fail(ReasonCode.NOT_FOUND)
    # currency packages can be bought repeatedly, everything else once
    unique = item.reward.kind is not RewardKind.CURRENCY
    if unique and view.owns(EntitlementKind.SHOP_ITEM, item_id):
        return Result.fail(ReasonCode.ALREADY_CLAIMED)
    balance = view.balance(item.currency)
    if balance < item.price:
        return Result.fail(ReasonCode.INSUFFICIENT_CURRENCY)

    view.set_balance(item.currency, balance - item.price)
    delta = rules.granter.plan(item.reward, view)
    if unique:
        delta.add_entitlement(EntitlementKind.SHOP_ITEM, item_id)
    rules.granter.apply(delta, view)
    return Result.ok(
        balances=_balances(view, {item.currency, *delta.currencies}),
        delta=delta,
        payload={"item_id": item_id, "price": item.price, "currency": item.currency},
    )


# inventory


def upgrade_inventory_item(rules: EconomyRules, view: LedgerView, unique_id: str) -> Result:
    """Spend one upgrade step's cost and roll its success rate.

    A failed roll still commits: the cost is gone and, when the step says
    so, the item drops one level. ``payload["upgraded"]`` tells the caller
    which way the roll went.
    """
    instance = view.inventory_item(unique_id)
    if instance is None:
        return Result.fail(ReasonCode.NOT_FOUND)
    definition = rules.catalog.find_item(instance.template_id)
    if definition is None:
        return Result.fail(ReasonCode.NOT_FOUND)
    if instance.level >= definition.max_level:
        return Result.fail(ReasonCode.MAX_LEVEL)
    upgrade = definition.upgrades[instance.level]
    balance = view.balance(upgrade.currency)
    if balance < upgrade.cost:
        return Result.fail(ReasonCode.INSUFFICIENT_CURRENCY)

    view.set_balance(upgrade.currency, balance - upgrade.cost)
    previous = instance.level
    upgraded = rules.rng.random() < upgrade.success_rate
    if upgraded:
        instance.level += 1
    elif upgrade.decrease_on_fail and instance.level > 0:
        instance.level -= 1
    view.put_inventory_item(instance)
    if not upgraded:
        logger.debug("Upgrade roll failed for %s (level %s -> %s)", unique_id, previous, instance.level)
    return Result.ok(
        balances=_balances(view, [upgrade.currency]),
        payload={
            "unique_id": unique_id,
            "level": instance.level,
            "previous_level": previous,
            "upgraded": upgraded,
        },
    )


def delete_inventory_item(rules: EconomyRules, view: LedgerView, unique_id: str) -> Result:
    instance = view.inventory_item(unique_id)
    if instance is None:
        return Result.fail(ReasonCode.NOT_FOUND)
    view.remove_inventory_item(unique_id)
    logger.debug("Deleted inventory instance %s (%s)", unique_id, instance.template_id)
    return Result.ok(payload={"unique_id": unique_id, "template_id": instance.template_id})
