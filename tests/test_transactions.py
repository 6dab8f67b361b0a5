import pytest

from rewardforge.domain.ledger import InventoryItemInstance, LedgerCache
from rewardforge.domain.leveling import LevelProgress
from rewardforge.domain.results import ReasonCode
from rewardforge.domain.rewards import EntitlementKind, ItemDefinition, ItemUpgrade
from rewardforge.domain import transactions
from rewardforge.domain.transactions import EconomyRules, SessionSummary
from rewardforge.testing import CatalogFactory, fixed_roll


@pytest.fixture()
def rules():
    return EconomyRules(catalog=CatalogFactory().build(), battle_pass_price=100)


@pytest.fixture()
def ledger():
    cache = LedgerCache("p1")
    cache.set_balance("gold", 200)
    cache.set_balance("gems", 150)
    return cache


def test_premium_battle_pass_item_requires_premium(rules, ledger):
    result = transactions.claim_battle_pass_reward(rules, ledger, "bp_premium")
    assert result.reason is ReasonCode.REQUIREMENT_NOT_MET

    unlocked = transactions.unlock_battle_pass_premium(rules, ledger)
    assert unlocked.success
    assert unlocked.balances == {"gems": 50}
    assert transactions.unlock_battle_pass_premium(rules, ledger).reason is ReasonCode.ALREADY_CLAIMED

    claimed = transactions.claim_battle_pass_reward(rules, ledger, "bp_premium")
    assert claimed.success
    assert ledger.balance("gems") == 100


def test_premium_unlock_needs_funds(rules, ledger):
    ledger.set_balance("gems", 99)
    result = transactions.unlock_battle_pass_premium(rules, ledger)
    assert result.reason is ReasonCode.INSUFFICIENT_CURRENCY
    assert ledger.battle_pass().premium is False
    assert ledger.balance("gems") == 99


def test_battle_pass_level_gate(rules, ledger):
    assert transactions.claim_battle_pass_reward(rules, ledger, "bp_2").reason is ReasonCode.NOT_AVAILABLE_YET
    leveled = transactions.add_battle_pass_xp(rules, ledger, 1000)
    assert leveled.progress == LevelProgress(2, 0)
    assert leveled.levels_gained == 1

    claimed = transactions.claim_battle_pass_reward(rules, ledger, "bp_2")
    assert claimed.success
    assert ledger.owns(EntitlementKind.FRAME, "frame_gold")
    again = transactions.claim_battle_pass_reward(rules, ledger, "bp_2")
    assert again.reason is ReasonCode.ALREADY_CLAIMED
    assert transactions.claim_battle_pass_reward(rules, ledger, "missing").reason is ReasonCode.NOT_FOUND


def test_account_level_feeds_level_quests(rules, ledger):
    result = transactions.add_account_exp(rules, ledger, 100)
    assert result.progress == LevelProgress(2, 0)
    assert ledger.quest("veteran").progress == 2

    completed = transactions.complete_quest(rules, ledger, "veteran")
    assert completed.success
    assert ledger.owns(EntitlementKind.ICON, "icon_veteran")
    assert ledger.quest("veteran").completed


def test_max_level_rejects_more_exp(rules, ledger):
    ledger.save_account_progress(LevelProgress(50, 0))
    assert transactions.add_account_exp(rules, ledger, 10).reason is ReasonCode.MAX_LEVEL


def test_character_curve_uses_character_cap(rules, ledger):
    ledger.save_character_progress("archer", LevelProgress(10, 0))
    assert transactions.add_character_exp(rules, ledger, "archer", 10).reason is ReasonCode.MAX_LEVEL
    assert transactions.add_character_exp(rules, ledger, "ghost", 10).reason is ReasonCode.NOT_FOUND
    assert transactions.add_character_exp(rules, ledger, "knight", 100).progress == LevelProgress(2, 0)


def test_mastery_exp_is_tracked_separately(rules, ledger):
    result = transactions.add_mastery_exp(rules, ledger, "knight", 150)
    assert result.progress == LevelProgress(2, 50)
    assert ledger.character_progress("knight") == LevelProgress(1, 0)


def test_negative_exp_is_a_programming_error(rules, ledger):
    with pytest.raises(ValueError):
        transactions.add_account_exp(rules, ledger, -5)


def test_session_advances_quests_and_score(rules, ledger):
    summary = SessionSummary(map_id="forest", character_id="knight", won=True, monsters_killed=10, gained_gold=30)
    result = transactions.complete_game_session(rules, ledger, summary)

    assert result.balances == {"gold": 230}
    assert result.payload == {"score": 10, "quests": {"slayer": 10, "forest_runs": 1}}
    assert ledger.score() == 10


def test_lost_session_does_not_complete_maps(rules, ledger):
    summary = SessionSummary(map_id="forest", character_id="knight", won=False, monsters_killed=3)
    transactions.complete_game_session(rules, ledger, summary)
    assert ledger.quest("forest_runs").progress == 0
    assert ledger.quest("slayer").progress == 3


def test_one_time_quest_grants_reward_and_exp_once(rules, ledger):
    transactions.complete_game_session(
        rules, ledger, SessionSummary(map_id="cave", character_id="knight", monsters_killed=12)
    )
    result = transactions.complete_quest(rules, ledger, "slayer")

    assert result.success
    assert ledger.balance("gold") == 240
    assert ledger.account_progress() == LevelProgress(2, 50)
    assert ledger.battle_pass().xp == 500
    assert result.payload["levels"]["account"] == {"level": 2, "exp": 50}
    assert transactions.complete_quest(rules, ledger, "slayer").reason is ReasonCode.ALREADY_CLAIMED


def test_repeatable_quest_resets_progress(rules, ledger):
    won = SessionSummary(map_id="forest", character_id="knight", won=True)
    assert transactions.complete_quest(rules, ledger, "forest_runs").reason is ReasonCode.REQUIREMENT_NOT_MET

    transactions.complete_game_session(rules, ledger, won)
    transactions.complete_game_session(rules, ledger, won)
    assert transactions.complete_quest(rules, ledger, "forest_runs").success
    assert ledger.quest("forest_runs").progress == 0
    assert ledger.balance("gems") == 155

    transactions.complete_game_session(rules, ledger, won)
    transactions.complete_game_session(rules, ledger, won)
    assert transactions.complete_quest(rules, ledger, "forest_runs").success


def test_session_summary_rejects_negative_totals():
    with pytest.raises(ValueError):
        SessionSummary(map_id="forest", character_id="knight", monsters_killed=-1)


def test_coupon_redeems_once(rules, ledger):
    assert transactions.redeem_coupon(rules, ledger, "welcome").success
    assert ledger.balance("gems") == 200
    assert transactions.redeem_coupon(rules, ledger, "WELCOME").reason is ReasonCode.ALREADY_CLAIMED
    assert transactions.redeem_coupon(rules, ledger, "nope").reason is ReasonCode.NOT_FOUND


def test_shop_item_is_bought_once(rules, ledger):
    result = transactions.purchase_shop_item(rules, ledger, "sword_offer")
    assert result.success
    assert result.balances["gems"] == 120
    assert len(ledger.inventory_items("sword")) == 1
    assert ledger.owns(EntitlementKind.SHOP_ITEM, "sword_offer")
    assert transactions.purchase_shop_item(rules, ledger, "sword_offer").reason is ReasonCode.ALREADY_CLAIMED


def test_currency_packs_can_be_bought_repeatedly(rules, ledger):
    assert transactions.purchase_shop_item(rules, ledger, "gold_pack").success
    assert transactions.purchase_shop_item(rules, ledger, "gold_pack").success
    assert ledger.balance("gold") == 1200
    assert ledger.balance("gems") == 130


def test_purchase_without_funds_changes_nothing(rules, ledger):
    ledger.set_balance("gems", 5)
    before = ledger.export()
    assert transactions.purchase_shop_item(rules, ledger, "sword_offer").reason is ReasonCode.INSUFFICIENT_CURRENCY
    assert ledger.export() == before


def test_upgrade_walks_cost_table_until_max(rules, ledger):
    transactions.purchase_shop_item(rules, ledger, "sword_offer")
    unique_id = ledger.inventory_items("sword")[0].unique_id

    assert transactions.upgrade_inventory_item(rules, ledger, unique_id).payload["level"] == 1
    assert ledger.balance("gold") == 150
    assert transactions.upgrade_inventory_item(rules, ledger, unique_id).payload["level"] == 2
    assert ledger.balance("gold") == 50
    assert transactions.upgrade_inventory_item(rules, ledger, unique_id).reason is ReasonCode.MAX_LEVEL
    assert transactions.upgrade_inventory_item(rules, ledger, "missing").reason is ReasonCode.NOT_FOUND


def test_delete_removes_only_the_instance(rules, ledger):
    transactions.purchase_shop_item(rules, ledger, "sword_offer")
    unique_id = ledger.inventory_items("sword")[0].unique_id
    result = transactions.delete_inventory_item(rules, ledger, unique_id)
    assert result.payload == {"unique_id": unique_id, "template_id": "sword"}
    assert ledger.inventory_items() == []
    assert ledger.owns(EntitlementKind.SHOP_ITEM, "sword_offer")
    assert transactions.delete_inventory_item(rules, ledger, unique_id).reason is ReasonCode.NOT_FOUND


def _risky_rules(roll):
    catalog = CatalogFactory().build()
    catalog.register_item(
        ItemDefinition(
            "bow",
            upgrades=(
                ItemUpgrade("gold", 10),
                ItemUpgrade("gold", 20, success_rate=0.5, decrease_on_fail=True),
                ItemUpgrade("gold", 30, success_rate=0.5),
            ),
        )
    )
    return EconomyRules(catalog=catalog, rng=fixed_roll(roll))


def _bow(ledger, level):
    ledger.put_inventory_item(InventoryItemInstance("bow-1", "bow", level=level))
    return "bow-1"


def test_upgrade_roll_success_raises_level(ledger):
    rules = _risky_rules(0.1)
    unique_id = _bow(ledger, 1)

    result = transactions.upgrade_inventory_item(rules, ledger, unique_id)

    assert result.success
    assert result.payload["upgraded"] is True
    assert (result.payload["previous_level"], result.payload["level"]) == (1, 2)
    assert ledger.inventory_item(unique_id).level == 2
    assert ledger.balance("gold") == 180


def test_failed_roll_still_spends_cost(ledger):
    rules = _risky_rules(0.9)
    unique_id = _bow(ledger, 2)

    result = transactions.upgrade_inventory_item(rules, ledger, unique_id)

    assert result.success
    assert result.payload["upgraded"] is False
    assert result.balances == {"gold": 170}
    assert ledger.inventory_item(unique_id).level == 2


def test_failed_roll_can_drop_a_level(ledger):
    rules = _risky_rules(0.9)
    unique_id = _bow(ledger, 1)

    result = transactions.upgrade_inventory_item(rules, ledger, unique_id)

    assert result.payload == {"unique_id": unique_id, "level": 0, "previous_level": 1, "upgraded": False}
    assert ledger.inventory_item(unique_id).level == 0
    assert ledger.balance("gold") == 180
