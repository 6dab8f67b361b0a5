"""Validation utilities for RewardForge applications."""

from __future__ import annotations

from .app import EconomyApp
from .domain.rewards import RewardDescriptor, RewardKind, TrackKind
from .domain.tracks import COMPACT_LIMIT


def validate_app(app: EconomyApp) -> list[str]:
    """Return list of validation errors discovered in configured app."""
    errors: list[str] = []
    catalog = app.rewards.catalog

    currency_codes = {currency.code for currency in app.currencies.registry.all()}
    if not currency_codes:
        errors.append("No currencies registered in application.")

    economy = app.config.economy
    for label, code in (
        ("gold_currency", economy.gold_currency),
        ("battle_pass_currency", economy.battle_pass_currency),
    ):
        if code not in currency_codes:
            errors.append(f"Economy configuration '{label}' references unknown currency '{code}'.")
    if economy.battle_pass_price < 0:
        errors.append("Economy configuration 'battle_pass_price' cannot be negative.")
    for code in economy.starting_balances:
        if code not in currency_codes:
            errors.append(f"Starting balance references unknown currency '{code}'.")

    item_ids = {item.item_id for item in catalog.iter_items()}
    character_ids = {character.character_id for character in catalog.iter_characters()}

    def check_reward(owner: str, reward: RewardDescriptor) -> None:
        if reward.kind is RewardKind.CURRENCY:
            if reward.currency not in currency_codes:
                errors.append(f"{owner} references unknown currency '{reward.currency}'.")
            if reward.amount < 0:
                errors.append(f"{owner} has negative amount '{reward.amount}'.")
        elif not reward.template_ids:
            errors.append(f"{owner} does not grant any template ids.")
        elif reward.kind is RewardKind.INVENTORY_ITEM:
            for template_id in reward.template_ids:
                if template_id not in item_ids:
                    errors.append(f"{owner} references unknown item '{template_id}'.")
        elif reward.kind is RewardKind.CHARACTER:
            for template_id in reward.template_ids:
                if template_id not in character_ids:
                    errors.append(f"{owner} references unknown character '{template_id}'.")

    for kind in TrackKind:
        rewards = catalog.track_rewards(kind)
        if not rewards:
            errors.append(f"Reward track '{kind.value}' is empty.")
        if app.config.backend.kind == "rpc" and len(rewards) > COMPACT_LIMIT:
            errors.append(
                f"Reward track '{kind.value}' has {len(rewards)} slots; the RPC claimed mask holds {COMPACT_LIMIT}."
            )
        for index, reward in enumerate(rewards):
            check_reward(f"Reward track '{kind.value}' slot {index}", reward)

    max_pass_level = app.rules.curves.battle_pass.max_level
    for position, item in enumerate(catalog.iter_battle_pass()):
        if item.level > max_pass_level:
            errors.append(
                f"Battle pass item '{item.pass_id}' requires level {item.level} beyond max {max_pass_level}."
            )
        if app.config.backend.kind == "rpc" and position >= COMPACT_LIMIT:
            errors.append(f"Battle pass item '{item.pass_id}' does not fit the {COMPACT_LIMIT}-bit claimed mask.")
        check_reward(f"Battle pass item '{item.pass_id}'", item.reward)

    for coupon in catalog.iter_coupons():
        if coupon.currency not in currency_codes:
            errors.append(f"Coupon '{coupon.coupon_id}' references unknown currency '{coupon.currency}'.")
        if coupon.amount < 0:
            errors.append(f"Coupon '{coupon.coupon_id}' has negative amount '{coupon.amount}'.")

    for quest in catalog.iter_quests():
        requirement = quest.requirement
        if requirement.target <= 0:
            errors.append(f"Quest '{quest.quest_id}' has non-positive target '{requirement.target}'.")
        if requirement.character_id and requirement.character_id not in character_ids:
            errors.append(
                f"Quest '{quest.quest_id}' references unknown character '{requirement.character_id}'."
            )
        if quest.reward is not None:
            check_reward(f"Quest '{quest.quest_id}'", quest.reward)

    for character in catalog.iter_characters():
        if character.max_level is not None and character.max_level < 1:
            errors.append(f"Character '{character.character_id}' has invalid max level '{character.max_level}'.")

    for item in catalog.iter_items():
        for level, upgrade in enumerate(item.upgrades):
            if upgrade.currency not in currency_codes:
                errors.append(
                    f"Item '{item.item_id}' upgrade {level} references unknown currency '{upgrade.currency}'."
                )
            if upgrade.cost < 0:
                errors.append(f"Item '{item.item_id}' upgrade {level} has negative cost '{upgrade.cost}'.")
            if not 0 <= upgrade.success_rate <= 1:
                errors.append(
                    f"Item '{item.item_id}' upgrade {level} has success rate {upgrade.success_rate} outside 0..1."
                )

    for shop_item in catalog.iter_shop():
        if shop_item.currency not in currency_codes:
            errors.append(f"Shop item '{shop_item.item_id}' references unknown currency '{shop_item.currency}'.")
        if shop_item.price < 0:
            errors.append(f"Shop item '{shop_item.item_id}' has negative price '{shop_item.price}'.")
        check_reward(f"Shop item '{shop_item.item_id}'", shop_item.reward)

    return errors


__all__ = ["validate_app"]
