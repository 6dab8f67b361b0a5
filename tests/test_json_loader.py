import json
from pathlib import Path

import pytest

from rewardforge.app import EconomyApp
from rewardforge.config import RewardForgeConfig
from rewardforge.domain.rewards import PassTier, QuestKind, RequirementType, RewardKind, TrackKind
from rewardforge.loaders import (
    load_catalog_from_json,
    parse_catalog_dict,
    validate_catalog_dict,
)


def _catalog_payload():
    return {
        "currencies": [{"code": "gold", "name": "Gold"}, {"code": "gems", "maxAmount": 9999}],
        "dailyRewards": [
            {"kind": "currency", "currency": "gold", "amount": 10},
            {"kind": "icon", "ids": ["icon_sun"]},
        ],
        "newPlayerRewards": [{"kind": "character", "ids": ["archer"]}],
        "battlePass": [
            {"id": "bp_1", "level": 1, "reward": {"kind": "currency", "currency": "gold", "amount": 100}},
            {"id": "bp_2", "level": 2, "tier": "premium", "reward": {"kind": "frame", "ids": ["frame_gold"]}},
        ],
        "coupons": [{"id": "welcome", "code": "WELCOME", "currency": "gems", "amount": 25}],
        "characters": [{"id": "archer", "name": "Archer", "maxLevel": 10}],
        "quests": [
            {
                "id": "archer_runs",
                "kind": "repeatable",
                "requirement": {"type": "complete_map_with_character", "target": 3, "map": "forest", "character": "archer"},
                "reward": {"kind": "currency", "currency": "gems", "amount": 5},
                "accountExp": 50,
            }
        ],
        "items": [
            {
                "id": "sword",
                "upgrades": [
                    {"currency": "gold", "cost": 50},
                    {"currency": "gold", "cost": 80, "successRate": 0.5, "decreaseLevelIfFail": True},
                ],
            }
        ],
        "shop": [
            {"id": "sword_offer", "currency": "gems", "price": 30, "reward": {"kind": "inventory_item", "ids": ["sword"]}}
        ],
    }


def test_parse_catalog_dict_builds_every_section():
    definition = parse_catalog_dict(_catalog_payload())

    assert definition.currencies[1].max_amount == 9999
    assert definition.daily_rewards[1].kind is RewardKind.ICON
    assert definition.daily_rewards[1].template_ids == ("icon_sun",)
    assert definition.battle_pass[1].tier is PassTier.PREMIUM
    assert definition.coupons[0].code == "WELCOME"
    quest = definition.quests[0]
    assert quest.kind is QuestKind.REPEATABLE
    assert quest.requirement.type is RequirementType.COMPLETE_MAP_WITH_CHARACTER
    assert quest.requirement.map_id == "forest"
    assert quest.requirement.character_id == "archer"
    assert quest.account_exp == 50
    assert definition.characters[0].max_level == 10
    first, second = definition.items[0].upgrades
    assert (first.success_rate, first.decrease_on_fail) == (1.0, False)
    assert (second.success_rate, second.decrease_on_fail) == (0.5, True)
    assert definition.items[0].max_level == 2
    assert definition.shop[0].price == 30


def test_parse_catalog_dict_invalid_reward_raises():
    payload = _catalog_payload()
    payload["dailyRewards"].append({"kind": "currency", "currency": "gold"})
    with pytest.raises(ValueError) as excinfo:
        parse_catalog_dict(payload)
    assert "Daily reward #2" in str(excinfo.value)


def test_validate_catalog_dict_unknown_currency():
    payload = _catalog_payload()
    payload["coupons"][0]["currency"] = "tokens"
    errors = validate_catalog_dict(payload)
    assert any("unknown currency 'tokens'" in err for err in errors)


def test_validate_catalog_dict_reports_shape_errors():
    payload = _catalog_payload()
    payload["battlePass"].append({"level": 3})
    payload["coupons"].append(dict(payload["coupons"][0], id="welcome_again"))
    payload["shop"][0]["reward"]["ids"] = ["shield"]
    payload["quests"][0]["requirement"]["target"] = 0

    errors = validate_catalog_dict(payload)

    assert "Battle pass item #3 must define non-empty 'id'." in errors
    assert "Coupon code 'WELCOME' defined multiple times." in errors
    assert "Shop item 'sword_offer' references unknown item 'shield'." in errors
    assert any("'target' must be positive integer" in err for err in errors)


def test_validate_catalog_dict_requires_currencies():
    assert "Catalog must contain non-empty 'currencies' array." in validate_catalog_dict({})


def test_load_catalog_from_json_registers_entities(tmp_path: Path):
    json_path = tmp_path / "catalog.json"
    json_path.write_text(json.dumps(_catalog_payload()), encoding="utf-8")

    app = EconomyApp(RewardForgeConfig())
    load_catalog_from_json(app, json_path)

    catalog = app.catalog
    assert catalog is app.rewards.catalog
    assert catalog.track_length(TrackKind.DAILY) == 2
    assert catalog.track_length(TrackKind.NEW_PLAYER) == 1
    assert [item.pass_id for item in catalog.iter_battle_pass()] == ["bp_1", "bp_2"]
    assert catalog.find_coupon("welcome") is not None
    assert catalog.find_quest("archer_runs") is not None
    assert catalog.find_shop_item("sword_offer").reward.template_ids == ("sword",)
    assert app.currencies.registry.get("gold").name == "Gold"
    assert app.currencies.registry.get("gems").max_amount == 9999


def test_validate_catalog_dict_rejects_out_of_range_success_rate():
    payload = _catalog_payload()
    payload["items"][0]["upgrades"][1]["successRate"] = 1.5
    errors = validate_catalog_dict(payload)
    assert "Item 'sword' upgrade #1 'successRate' must be between 0 and 1." in errors
