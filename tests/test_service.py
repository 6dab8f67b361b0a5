import pytest

from rewardforge.domain import events
from rewardforge.domain.exceptions import (
    ClaimValidationError,
    ConflictError,
    InsufficientResourceError,
    NotFoundError,
)
from rewardforge.domain.results import ReasonCode
from rewardforge.domain.ledger import InventoryItemInstance
from rewardforge.domain.rewards import EntitlementKind, ItemDefinition, ItemUpgrade, TrackKind
from rewardforge.domain.tracks import TrackState
from rewardforge.domain.transactions import SessionSummary
from rewardforge.testing import fixed_roll
from rewardforge.testing.fixtures import app_fixture


def _record(app, *names):
    seen = []

    async def listener(payload):
        seen.append(dict(payload))

    for name in names:
        app.event_bus.subscribe(name, listener)
    return seen


def _authoritative(app):
    return app.backend.ledger(app.backend.account_id)


@pytest.mark.asyncio()
async def test_login_reconciles_cache_from_backend(memory_app):
    reconciled = _record(memory_app, events.LEDGER_RECONCILED)

    report = await memory_app.service.login("p1")

    assert report.account_id == "p1"
    assert memory_app.cache.balances == {"gold": 200, "gems": 150}
    assert memory_app.cache.track(TrackKind.NEW_PLAYER).anchor_date == memory_app.service.today()
    assert reconciled and reconciled[0]["account_id"] == "p1"


@pytest.mark.asyncio()
async def test_daily_claim_updates_cache_and_emits_event(memory_app, frozen_clock):
    claimed = _record(memory_app, events.REWARD_TRACK_CLAIMED)
    await memory_app.service.login("p1")

    await memory_app.service.claim_daily_reward(0)

    assert memory_app.cache.balance("gold") == 210
    assert memory_app.service.track_status(TrackKind.DAILY).state is TrackState.LOCKED_TODAY
    assert claimed[0]["track"] == "daily"
    assert claimed[0]["granted"]["currencies"] == {"gold": 10}

    with pytest.raises(ClaimValidationError) as excinfo:
        await memory_app.service.claim_daily_reward(1)
    assert excinfo.value.reason is ReasonCode.ALREADY_CLAIMED_TODAY
    assert len(claimed) == 1

    frozen_clock.advance(days=1)
    await memory_app.service.claim_daily_reward(1)
    assert memory_app.cache.balance("gold") == 230
    assert _authoritative(memory_app).balance("gold") == 230


@pytest.mark.asyncio()
async def test_local_rejection_never_reaches_backend(memory_app):
    await memory_app.service.login("p1")

    with pytest.raises(ClaimValidationError) as excinfo:
        await memory_app.service.claim_new_player_reward(3)

    assert excinfo.value.reason is ReasonCode.NOT_AVAILABLE_YET
    assert _authoritative(memory_app).track(TrackKind.NEW_PLAYER).claimed == set()


@pytest.mark.asyncio()
async def test_account_exp_levels_up_and_unlocks_level_quest(memory_app):
    level_ups = _record(memory_app, events.LEVEL_UP)
    await memory_app.service.login("p1")

    await memory_app.service.add_account_exp(150)

    progress = memory_app.cache.account_progress()
    assert (progress.level, progress.exp) == (2, 50)
    assert level_ups == [{"account_id": "p1", "axis": "account", "level": 2, "levels_gained": 1}]
    assert memory_app.cache.quest("veteran").progress == 2

    await memory_app.service.complete_quest("veteran")
    assert memory_app.cache.owns(EntitlementKind.ICON, "icon_veteran")
    assert memory_app.cache.quest("veteran").completed
    with pytest.raises(ClaimValidationError):
        await memory_app.service.complete_quest("veteran")


@pytest.mark.asyncio()
async def test_negative_exp_and_unknown_character_are_rejected(memory_app):
    await memory_app.service.login("p1")
    with pytest.raises(ValueError):
        await memory_app.service.add_account_exp(-1)
    with pytest.raises(NotFoundError):
        await memory_app.service.add_character_exp("ghost", 10)


@pytest.mark.asyncio()
async def test_premium_battle_pass_flow(memory_app):
    await memory_app.service.login("p1")

    with pytest.raises(ClaimValidationError) as excinfo:
        await memory_app.service.claim_battle_pass_reward("bp_premium")
    assert excinfo.value.reason is ReasonCode.REQUIREMENT_NOT_MET

    await memory_app.service.unlock_battle_pass_premium()
    assert memory_app.cache.balance("gems") == 50
    assert memory_app.cache.battle_pass().premium

    await memory_app.service.claim_battle_pass_reward("bp_premium")
    assert memory_app.cache.balance("gems") == 100
    with pytest.raises(ClaimValidationError):
        await memory_app.service.claim_battle_pass_reward("bp_premium")

    with pytest.raises(ConflictError):
        await memory_app.service.claim_battle_pass_reward("bp_2")


@pytest.mark.asyncio()
async def test_battle_pass_xp_unlocks_level_gated_reward(memory_app):
    await memory_app.service.login("p1")
    await memory_app.service.add_battle_pass_xp(1000)
    assert memory_app.cache.battle_pass().level == 2

    await memory_app.service.claim_battle_pass_reward("bp_2")
    assert memory_app.cache.owns(EntitlementKind.FRAME, "frame_gold")


@pytest.mark.asyncio()
async def test_shop_purchase_then_upgrade_and_delete(memory_app):
    upgraded = _record(memory_app, events.ITEM_UPGRADED)
    await memory_app.service.login("p1")

    await memory_app.service.purchase_shop_item("sword_offer")
    assert memory_app.cache.balance("gems") == 120
    assert memory_app.cache.owns(EntitlementKind.SHOP_ITEM, "sword_offer")
    [sword] = memory_app.cache.inventory_items("sword")

    with pytest.raises(ClaimValidationError):
        await memory_app.service.purchase_shop_item("sword_offer")

    await memory_app.service.upgrade_inventory_item(sword.unique_id)
    assert memory_app.cache.inventory_item(sword.unique_id).level == 1
    assert memory_app.cache.balance("gold") == 150
    assert upgraded[0]["level"] == 1

    await memory_app.service.delete_inventory_item(sword.unique_id)
    assert memory_app.cache.inventory_item(sword.unique_id) is None
    assert not _authoritative(memory_app).has_unique_id(sword.unique_id)


@pytest.mark.asyncio()
async def test_insufficient_funds_leave_cache_untouched(frozen_clock):
    app = app_fixture(clock=frozen_clock, starting_balances={})
    await app.service.login("p1")

    with pytest.raises(InsufficientResourceError):
        await app.service.purchase_shop_item("gold_pack")

    assert app.cache.balances == {}
    assert app.cache.entitlements(EntitlementKind.SHOP_ITEM) == frozenset()


@pytest.mark.asyncio()
async def test_coupon_redeemed_once(memory_app):
    await memory_app.service.login("p1")

    await memory_app.service.redeem_coupon("WELCOME")
    assert memory_app.cache.balance("gems") == 200
    assert memory_app.cache.coupon_used("welcome")

    with pytest.raises(ConflictError):
        await memory_app.service.redeem_coupon("WELCOME")
    with pytest.raises(NotFoundError):
        await memory_app.service.redeem_coupon("NOPE")
    with pytest.raises(ClaimValidationError):
        await memory_app.service.redeem_coupon("  ")


@pytest.mark.asyncio()
async def test_game_session_advances_quests_and_score(memory_app):
    completed = _record(memory_app, events.SESSION_COMPLETED)
    await memory_app.service.login("p1")

    summary = SessionSummary("forest", "knight", won=True, monsters_killed=10, gained_gold=25)
    await memory_app.service.complete_game_session(summary)

    assert memory_app.cache.balance("gold") == 225
    assert memory_app.cache.score() == 10
    assert memory_app.cache.quest("slayer").progress == 10
    assert memory_app.cache.quest("forest_runs").progress == 1
    assert completed[0]["score"] == 10

    await memory_app.service.complete_quest("slayer")
    assert memory_app.cache.balance("gold") == 265
    assert memory_app.cache.account_progress().level == 2

    await memory_app.service.reconcile()
    assert memory_app.cache.balance("gold") == 265
    assert memory_app.cache.quest("slayer").completed


@pytest.mark.asyncio()
async def test_unsubscribed_listener_is_not_called(memory_app):
    seen = []
    redeemed = _record(memory_app, events.COUPON_REDEEMED)

    async def listener(payload):
        seen.append(payload)

    memory_app.event_bus.subscribe(events.COUPON_REDEEMED, listener)
    memory_app.event_bus.unsubscribe(events.COUPON_REDEEMED, listener)
    await memory_app.service.login("p1")
    await memory_app.service.redeem_coupon("WELCOME")

    assert seen == []
    assert redeemed[0]["coupon_id"] == "welcome"


@pytest.mark.asyncio()
async def test_failed_upgrade_roll_mirrors_debit_and_level_drop(memory_app):
    upgraded = _record(memory_app, events.ITEM_UPGRADED)
    memory_app.catalog.register_item(
        ItemDefinition("bow", upgrades=(ItemUpgrade("gold", 10), ItemUpgrade("gold", 40, 0.25, True)))
    )
    memory_app.rules.rng = fixed_roll(0.5)
    await memory_app.service.login("p1")
    memory_app.backend.seed("p1", lambda ledger: ledger.put_inventory_item(InventoryItemInstance("bow-1", "bow", 1)))
    await memory_app.service.reconcile()

    result = await memory_app.service.upgrade_inventory_item("bow-1")

    assert result.payload["upgraded"] is False
    assert memory_app.cache.inventory_item("bow-1").level == 0
    assert memory_app.cache.balance("gold") == 160
    assert _authoritative(memory_app).inventory_item("bow-1").level == 0
    assert upgraded[0]["upgraded"] is False
    assert upgraded[0]["level"] == 0


@pytest.mark.asyncio()
async def test_failing_listener_does_not_fail_committed_claim(memory_app, caplog):
    async def broken(payload):
        raise RuntimeError("renderer crashed")

    memory_app.event_bus.subscribe(events.REWARD_TRACK_CLAIMED, broken)
    claimed = _record(memory_app, events.REWARD_TRACK_CLAIMED)
    await memory_app.service.login("p1")

    with caplog.at_level("ERROR", logger="rewardforge.domain.events"):
        result = await memory_app.service.claim_daily_reward(0)

    assert result.success
    assert memory_app.cache.balance("gold") == 210
    assert claimed[0]["day_index"] == 0
    assert "renderer crashed" in caplog.text
