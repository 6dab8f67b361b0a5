import asyncio

import pytest

from rewardforge.backends.memory import InMemoryBackend
from rewardforge.domain.economy import Currency
from rewardforge.domain.exceptions import UnauthenticatedError
from rewardforge.domain.results import ReasonCode
from rewardforge.domain.rewards import RewardDescriptor, TrackKind
from rewardforge.domain.transactions import EconomyRules
from rewardforge.testing import CatalogFactory, FrozenClock


@pytest.fixture()
def clock():
    return FrozenClock()


@pytest.fixture()
def backend(clock):
    rules = EconomyRules(catalog=CatalogFactory().build(), battle_pass_price=100)
    return InMemoryBackend(rules, clock=clock, initial_balances={"gold": 200, "gems": 150})


@pytest.mark.asyncio()
async def test_operations_require_a_session(backend):
    result = await backend.claim_daily_reward(0)
    assert result.reason is ReasonCode.INVALID_CREDENTIALS
    with pytest.raises(UnauthenticatedError):
        await backend.fetch_account_snapshot()


@pytest.mark.asyncio()
async def test_open_session_provisions_new_player_track(backend, clock):
    await backend.open_session("p1")
    track = await backend.fetch_reward_track(TrackKind.NEW_PLAYER)
    assert track is not None
    assert track.anchor_date == clock().date()
    assert await backend.fetch_reward_track(TrackKind.DAILY) is None
    snapshot = await backend.fetch_account_snapshot()
    assert snapshot.balances == {"gold": 200, "gems": 150}


@pytest.mark.asyncio()
async def test_reopening_a_session_keeps_state(backend):
    await backend.open_session("p1")
    assert (await backend.claim_daily_reward(0)).success
    await backend.close()
    await backend.open_session("p1")
    assert (await backend.claim_daily_reward(0)).reason is ReasonCode.ALREADY_CLAIMED


@pytest.mark.asyncio()
async def test_concurrent_claims_grant_exactly_once(backend):
    await backend.open_session("p1")
    results = await asyncio.gather(*(backend.claim_daily_reward(0) for _ in range(5)))

    assert sum(result.success for result in results) == 1
    assert {result.reason for result in results if not result.success} == {ReasonCode.ALREADY_CLAIMED}
    assert backend.ledger("p1").balance("gold") == 210


@pytest.mark.asyncio()
async def test_concurrent_different_slots_respect_one_per_day(backend, clock):
    await backend.open_session("p1")
    results = await asyncio.gather(backend.claim_daily_reward(0), backend.claim_daily_reward(1))
    assert [result.success for result in results] == [True, False]
    assert results[1].reason is ReasonCode.ALREADY_CLAIMED_TODAY

    clock.advance(days=1)
    assert (await backend.claim_daily_reward(1)).success


@pytest.mark.asyncio()
async def test_failed_rule_discards_draft(backend):
    await backend.open_session("p1")
    backend.seed("p1", lambda ledger: ledger.set_balance("gems", 5))
    before = backend.ledger("p1").export()
    result = await backend.purchase_shop_item("sword_offer")
    assert result.reason is ReasonCode.INSUFFICIENT_CURRENCY
    assert backend.ledger("p1").export() == before


@pytest.mark.asyncio()
async def test_client_reward_descriptor_is_ignored(backend, caplog):
    await backend.open_session("p1")
    with caplog.at_level("WARNING"):
        result = await backend.claim_daily_reward(0, RewardDescriptor.currency_reward("gems", 9999))
    assert result.balances == {"gold": 210}
    assert "differs from catalog" in caplog.text


@pytest.mark.asyncio()
async def test_accounts_are_isolated(backend):
    factory = CatalogFactory()
    first, second = factory.account_id(), factory.account_id()
    await backend.open_session(first)
    await backend.claim_daily_reward(0)
    await backend.open_session(second)
    assert (await backend.claim_daily_reward(0)).success
    assert first != second
    assert backend.ledger(first).balance("gold") == 210
    assert backend.ledger(second).balance("gold") == 210


@pytest.mark.asyncio()
async def test_new_accounts_open_with_initial_amounts(clock):
    rules = EconomyRules(catalog=CatalogFactory().build())
    rules.currencies.register(Currency("gold", "Gold", initial_amount=500))
    rules.currencies.register(Currency("gems", "Gems", initial_amount=20))
    rules.currencies.register(Currency("tickets", "Tickets"))
    backend = InMemoryBackend(rules, clock=clock, initial_balances={"gems": 5})

    await backend.open_session("p1")
    snapshot = await backend.fetch_account_snapshot()

    assert snapshot.balances == {"gold": 500, "gems": 5}
