"""Load currencies and the reward catalog from JSON definitions."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Sequence, TYPE_CHECKING

from ..domain.economy import Currency
from ..domain.rewards import (
    BattlePassItem,
    CharacterDefinition,
    CouponDefinition,
    ItemDefinition,
    ItemUpgrade,
    PassTier,
    QuestDefinition,
    QuestKind,
    QuestRequirement,
    RequirementType,
    RewardDescriptor,
    RewardKind,
    ShopItem,
    TrackKind,
)

if TYPE_CHECKING:
    from ..app import EconomyApp


@dataclass(slots=True)
class CatalogDefinition:
    currencies: Sequence[Currency]
    daily_rewards: Sequence[RewardDescriptor]
    new_player_rewards: Sequence[RewardDescriptor]
    battle_pass: Sequence[BattlePassItem]
    coupons: Sequence[CouponDefinition]
    quests: Sequence[QuestDefinition]
    characters: Sequence[CharacterDefinition]
    items: Sequence[ItemDefinition]
    shop: Sequence[ShopItem]


def load_catalog_from_json(app: "EconomyApp", path: str | Path) -> CatalogDefinition:
    """Load a reward catalog from a JSON file and register it on the app."""
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    definition = parse_catalog_dict(data)
    for currency in definition.currencies:
        # catalog definitions replace the built-in defaults
        app.currencies.currency(currency, replace=True)
    registry = app.rewards
    registry.daily(definition.daily_rewards).new_player(definition.new_player_rewards)
    for item in definition.battle_pass:
        registry.battle_pass(item)
    for coupon in definition.coupons:
        registry.coupon(coupon)
    for character in definition.characters:
        registry.character(character)
    for quest in definition.quests:
        registry.quest(quest)
    for inventory_item in definition.items:
        registry.item(inventory_item)
    for shop_item in definition.shop:
        registry.shop_item(shop_item)
    return definition


def parse_catalog_dict(data: dict[str, Any]) -> CatalogDefinition:
    """Parse a JSON dict (already decoded) into domain objects."""
    errors = validate_catalog_dict(data)
    if errors:
        raise ValueError(_format_errors("Catalog validation failed", errors))
    return CatalogDefinition(
        currencies=tuple(parse_currency(entry) for entry in data.get("currencies", [])),
        daily_rewards=tuple(parse_reward(entry) for entry in data.get("dailyRewards", [])),
        new_player_rewards=tuple(parse_reward(entry) for entry in data.get("newPlayerRewards", [])),
        battle_pass=tuple(parse_battle_pass_item(entry) for entry in data.get("battlePass", [])),
        coupons=tuple(parse_coupon(entry) for entry in data.get("coupons", [])),
        quests=tuple(parse_quest(entry) for entry in data.get("quests", [])),
        characters=tuple(parse_character(entry) for entry in data.get("characters", [])),
        items=tuple(parse_item(entry) for entry in data.get("items", [])),
        shop=tuple(parse_shop_item(entry) for entry in data.get("shop", [])),
    )


def parse_currency(entry: dict[str, Any]) -> Currency:
    return Currency(
        code=entry["code"],
        name=entry.get("name", entry["code"].title()),
        initial_amount=int(entry.get("initialAmount", 0)),
        max_amount=entry.get("maxAmount"),
    )


def parse_reward(entry: dict[str, Any]) -> RewardDescriptor:
    return RewardDescriptor.from_dict(entry)


def parse_battle_pass_item(entry: dict[str, Any]) -> BattlePassItem:
    return BattlePassItem(
        pass_id=entry["id"],
        reward=parse_reward(entry["reward"]),
        level=int(entry.get("level", 1)),
        tier=PassTier(entry.get("tier", PassTier.FREE.value)),
    )


def parse_coupon(entry: dict[str, Any]) -> CouponDefinition:
    return CouponDefinition(
        coupon_id=entry["id"],
        code=entry["code"],
        currency=entry["currency"],
        amount=int(entry["amount"]),
    )


def parse_quest(entry: dict[str, Any]) -> QuestDefinition:
    requirement = entry["requirement"]
    reward = entry.get("reward")
    return QuestDefinition(
        quest_id=entry["id"],
        requirement=QuestRequirement(
            type=RequirementType(requirement["type"]),
            target=int(requirement["target"]),
            map_id=requirement.get("map"),
            character_id=requirement.get("character"),
        ),
        kind=QuestKind(entry.get("kind", QuestKind.ONE_TIME.value)),
        reward=parse_reward(reward) if reward else None,
        account_exp=int(entry.get("accountExp", 0)),
        battle_pass_exp=int(entry.get("battlePassExp", 0)),
        character_exp=int(entry.get("characterExp", 0)),
    )


def parse_character(entry: dict[str, Any]) -> CharacterDefinition:
    max_level = entry.get("maxLevel")
    return CharacterDefinition(
        character_id=entry["id"],
        name=entry.get("name", entry["id"]),
        max_level=int(max_level) if max_level is not None else None,
    )


def parse_item(entry: dict[str, Any]) -> ItemDefinition:
    return ItemDefinition(
        item_id=entry["id"],
        name=entry.get("name", entry["id"]),
        upgrades=tuple(
            ItemUpgrade(
                currency=step["currency"],
                cost=int(step["cost"]),
                success_rate=float(step.get("successRate", 1.0)),
                decrease_on_fail=bool(step.get("decreaseLevelIfFail", False)),
            )
            for step in entry.get("upgrades", ())
        ),
    )


def parse_shop_item(entry: dict[str, Any]) -> ShopItem:
    return ShopItem(
        item_id=entry["id"],
        currency=entry["currency"],
        price=int(entry["price"]),
        reward=parse_reward(entry["reward"]),
    )


def validate_catalog_file(path: str | Path) -> list[str]:
    """Validate catalog JSON file and return a list of errors."""
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    return validate_catalog_dict(data)


def validate_catalog_dict(data: dict[str, Any]) -> list[str]:
    errors: list[str] = []
    if not isinstance(data, dict):
        return ["Catalog must be a JSON object."]

    currencies_raw = data.get("currencies")
    currency_codes: set[str] = set()
    if not isinstance(currencies_raw, list) or not currencies_raw:
        errors.append("Catalog must contain non-empty 'currencies' array.")
    else:
        for idx, entry in enumerate(currencies_raw, start=1):
            if not isinstance(entry, dict):
                errors.append(f"Currency #{idx} must be an object.")
                continue
            code = entry.get("code")
            if not isinstance(code, str) or not code.strip():
                errors.append(f"Currency #{idx} must define non-empty 'code'.")
                continue
            if code in currency_codes:
                errors.append(f"Currency code '{code}' defined multiple times.")
            currency_codes.add(code)

    for key, label in (("dailyRewards", "Daily reward"), ("newPlayerRewards", "New player reward")):
        track_raw = data.get(key, [])
        if not isinstance(track_raw, list):
            errors.append(f"Catalog '{key}' must be an array.")
            continue
        for idx, entry in enumerate(track_raw):
            errors.extend(_validate_reward(entry, f"{label} #{idx}", currency_codes))

    character_ids = _collect_ids(data, "characters", "Character", errors)
    item_ids = _collect_ids(data, "items", "Item", errors)
    _collect_ids(data, "battlePass", "Battle pass item", errors)
    _collect_ids(data, "coupons", "Coupon", errors)
    _collect_ids(data, "quests", "Quest", errors)
    _collect_ids(data, "shop", "Shop item", errors)

    for entry in _entries(data, "battlePass"):
        pass_id = entry["id"]
        level = entry.get("level", 1)
        if not isinstance(level, int) or level < 1:
            errors.append(f"Battle pass item '{pass_id}' has invalid 'level' value '{level}'.")
        tier = entry.get("tier", PassTier.FREE.value)
        if tier not in {t.value for t in PassTier}:
            errors.append(f"Battle pass item '{pass_id}' has invalid tier '{tier}'.")
        errors.extend(_validate_reward(entry.get("reward"), f"Battle pass item '{pass_id}'", currency_codes))

    seen_codes: set[str] = set()
    for entry in _entries(data, "coupons"):
        coupon_id = entry["id"]
        code = entry.get("code")
        if not isinstance(code, str) or not code.strip():
            errors.append(f"Coupon '{coupon_id}' must define non-empty 'code'.")
        elif code.lower() in seen_codes:
            errors.append(f"Coupon code '{code}' defined multiple times.")
        else:
            seen_codes.add(code.lower())
        errors.extend(_validate_currency_amount(entry, f"Coupon '{coupon_id}'", currency_codes, "amount"))

    for entry in _entries(data, "quests"):
        quest_id = entry["id"]
        kind = entry.get("kind", QuestKind.ONE_TIME.value)
        if kind not in {k.value for k in QuestKind}:
            errors.append(f"Quest '{quest_id}' has invalid kind '{kind}'.")
        requirement = entry.get("requirement")
        if not isinstance(requirement, dict):
            errors.append(f"Quest '{quest_id}' must define 'requirement' object.")
        else:
            req_type = requirement.get("type")
            if req_type not in {t.value for t in RequirementType}:
                errors.append(f"Quest '{quest_id}' has invalid requirement type '{req_type}'.")
            target = requirement.get("target")
            if not isinstance(target, int) or target <= 0:
                errors.append(f"Quest '{quest_id}' requirement 'target' must be positive integer.")
            character = requirement.get("character")
            if character is not None and character_ids and character not in character_ids:
                errors.append(f"Quest '{quest_id}' references unknown character '{character}'.")
        if entry.get("reward") is not None:
            errors.extend(_validate_reward(entry["reward"], f"Quest '{quest_id}'", currency_codes))
        for exp_key in ("accountExp", "battlePassExp", "characterExp"):
            value = entry.get(exp_key, 0)
            if not isinstance(value, int) or value < 0:
                errors.append(f"Quest '{quest_id}' '{exp_key}' must be non-negative integer.")

    for entry in _entries(data, "items"):
        upgrades = entry.get("upgrades", [])
        if not isinstance(upgrades, list):
            errors.append(f"Item '{entry['id']}' 'upgrades' must be an array.")
            continue
        for idx, step in enumerate(upgrades):
            if not isinstance(step, dict):
                errors.append(f"Item '{entry['id']}' upgrade #{idx} must be an object.")
                continue
            errors.extend(
                _validate_currency_amount(step, f"Item '{entry['id']}' upgrade #{idx}", currency_codes, "cost")
            )
            rate = step.get("successRate", 1.0)
            if isinstance(rate, bool) or not isinstance(rate, (int, float)) or not 0 <= rate <= 1:
                errors.append(f"Item '{entry['id']}' upgrade #{idx} 'successRate' must be between 0 and 1.")

    for entry in _entries(data, "shop"):
        item_id = entry["id"]
        errors.extend(_validate_currency_amount(entry, f"Shop item '{item_id}'", currency_codes, "price"))
        errors.extend(_validate_reward(entry.get("reward"), f"Shop item '{item_id}'", currency_codes))
        reward = entry.get("reward")
        if isinstance(reward, dict) and reward.get("kind") == RewardKind.INVENTORY_ITEM.value and item_ids:
            for template_id in reward.get("ids", ()):
                if template_id not in item_ids:
                    errors.append(f"Shop item '{item_id}' references unknown item '{template_id}'.")

    return errors


def _entries(data: dict[str, Any], key: str) -> list[dict[str, Any]]:
    """Entries of an optional array that carry a usable id; shape errors are reported by _collect_ids."""
    raw = data.get(key, [])
    if not isinstance(raw, list):
        return []
    return [
        entry
        for entry in raw
        if isinstance(entry, dict) and isinstance(entry.get("id"), str) and entry["id"].strip()
    ]


def _collect_ids(data: dict[str, Any], key: str, label: str, errors: list[str]) -> set[str]:
    ids: set[str] = set()
    raw = data.get(key, [])
    if not isinstance(raw, list):
        errors.append(f"Catalog '{key}' must be an array.")
        return ids
    for idx, entry in enumerate(raw, start=1):
        if not isinstance(entry, dict):
            errors.append(f"{label} #{idx} must be an object.")
            continue
        entry_id = entry.get("id")
        if not isinstance(entry_id, str) or not entry_id.strip():
            errors.append(f"{label} #{idx} must define non-empty 'id'.")
            continue
        if entry_id in ids:
            errors.append(f"{label} id '{entry_id}' defined multiple times.")
        ids.add(entry_id)
    return ids


def _validate_currency_amount(
    entry: dict[str, Any], label: str, currency_codes: set[str], amount_key: str
) -> list[str]:
    errors: list[str] = []
    currency = entry.get("currency")
    if not isinstance(currency, str) or not currency.strip():
        errors.append(f"{label} must define non-empty 'currency'.")
    elif currency_codes and currency not in currency_codes:
        errors.append(f"{label} references unknown currency '{currency}'.")
    amount = entry.get(amount_key)
    if not isinstance(amount, int) or amount < 0:
        errors.append(f"{label} '{amount_key}' must be non-negative integer.")
    return errors


def _validate_reward(reward: Any, label: str, currency_codes: set[str]) -> list[str]:
    if not isinstance(reward, dict):
        return [f"{label} must define 'reward' object."]
    kind = reward.get("kind")
    if kind not in {k.value for k in RewardKind}:
        return [f"{label} reward has invalid kind '{kind}'."]
    if kind == RewardKind.CURRENCY.value:
        return _validate_currency_amount(reward, f"{label} reward", currency_codes, "amount")
    ids = reward.get("ids")
    if not isinstance(ids, list) or not ids:
        return [f"{label} reward must define non-empty 'ids' array."]
    if not all(isinstance(template_id, str) and template_id.strip() for template_id in ids):
        return [f"{label} reward 'ids' must be non-empty strings."]
    return []


def _format_errors(prefix: str, errors: Iterable[str]) -> str:
    formatted = "\n".join(f"- {err}" for err in errors)
    return f"{prefix}:\n{formatted}"
