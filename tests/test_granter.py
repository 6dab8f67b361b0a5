import itertools

import pytest

from rewardforge.domain.economy import Currency, CurrencyRegistry
from rewardforge.domain.granter import EntitlementGranter, GrantDelta
from rewardforge.domain.ledger import InventoryItemInstance, LedgerCache
from rewardforge.domain.rewards import EntitlementKind, RewardDescriptor, RewardKind
from rewardforge.testing import RewardFactory


def test_inventory_grants_create_distinct_instances():
    ledger = LedgerCache("p1")
    granter = EntitlementGranter()
    reward = RewardDescriptor.entitlement(RewardKind.INVENTORY_ITEM, "sword")

    first = granter.grant(reward, ledger)
    second = granter.grant(reward, ledger)

    swords = ledger.inventory_items("sword")
    assert len(swords) == 2
    assert first.items[0].unique_id != second.items[0].unique_id

    upgraded = ledger.inventory_item(first.items[0].unique_id)
    upgraded.level = 3
    ledger.put_inventory_item(upgraded)
    assert ledger.inventory_item(second.items[0].unique_id).level == 0


def test_character_grants_are_idempotent():
    ledger = LedgerCache("p1")
    granter = EntitlementGranter()
    reward = RewardDescriptor.entitlement(RewardKind.CHARACTER, "knight")

    first = granter.grant(reward, ledger)
    second = granter.grant(reward, ledger)

    assert first.entitlements == {EntitlementKind.CHARACTER: ["knight"]}
    assert second.is_empty
    assert ledger.entitlements(EntitlementKind.CHARACTER) == frozenset({"knight"})


def test_unique_id_collisions_are_retried():
    ids = itertools.chain(["DUP"], ["DUP", "FRESH"])
    granter = EntitlementGranter(id_factory=lambda: next(ids))
    ledger = LedgerCache("p1")
    reward = RewardDescriptor.entitlement(RewardKind.INVENTORY_ITEM, "sword")

    granter.grant(reward, ledger)
    delta = granter.grant(reward, ledger)
    assert delta.items[0].unique_id == "FRESH"


def test_exhausted_id_factory_raises():
    granter = EntitlementGranter(id_factory=lambda: "SAME")
    ledger = LedgerCache("p1")
    ledger.put_inventory_item(InventoryItemInstance("SAME", "sword"))
    with pytest.raises(RuntimeError):
        granter.plan(RewardDescriptor.entitlement(RewardKind.INVENTORY_ITEM, "sword"), ledger)


def test_pending_delta_counts_as_owned():
    ledger = LedgerCache("p1")
    granter = EntitlementGranter()
    pending = granter.plan(RewardDescriptor.entitlement(RewardKind.ICON, "star"), ledger)
    again = granter.plan(RewardDescriptor.entitlement(RewardKind.ICON, "star"), ledger, pending=pending)
    assert again.is_empty


def test_currency_reward_credits_wallet():
    ledger = LedgerCache("p1")
    delta = EntitlementGranter().grant(RewardDescriptor.currency_reward("gold", 25), ledger)
    assert delta.currencies == {"gold": 25}
    assert ledger.balance("gold") == 25


def test_negative_currency_reward_is_rejected():
    with pytest.raises(ValueError):
        EntitlementGranter().plan(RewardDescriptor.currency_reward("gold", -5), LedgerCache())


def test_delta_serializes_with_wire_keys():
    delta = GrantDelta()
    delta.add_currency("gems", 5)
    delta.add_entitlement(EntitlementKind.FRAME, "gold_frame")
    delta.items.append(InventoryItemInstance("ABC12345", "sword"))

    data = delta.to_dict()
    assert data == {
        "currencies": {"gems": 5},
        "entitlements": {"frame": ["gold_frame"]},
        "items": [{"uniqueId": "ABC12345", "templateId": "sword", "level": 0}],
    }
    restored = GrantDelta.from_dict(data)
    assert restored.currencies == delta.currencies
    assert restored.entitlements == delta.entitlements
    assert [item.unique_id for item in restored.items] == ["ABC12345"]


def test_merge_combines_without_mutating_inputs():
    left = GrantDelta(currencies={"gold": 5})
    right = GrantDelta(currencies={"gold": 7, "gems": 1})
    merged = left.merge(right)
    assert merged.currencies == {"gold": 12, "gems": 1}
    assert left.currencies == {"gold": 5}


def test_multi_id_entitlement_reward_grants_each_template():
    ledger = LedgerCache("p1")
    reward = RewardFactory().entitlement(RewardKind.FRAME, count=3)

    delta = EntitlementGranter().grant(reward, ledger)

    assert sorted(delta.entitlements[EntitlementKind.FRAME]) == sorted(reward.template_ids)
    assert len(ledger.entitlements(EntitlementKind.FRAME)) == 3


def test_currency_grants_stop_at_max_amount():
    currencies = CurrencyRegistry()
    currencies.register(Currency("gems", "Gems", max_amount=100))
    granter = EntitlementGranter(currencies=currencies)
    ledger = LedgerCache("p1")
    ledger.set_balance("gems", 90)
    ledger.set_balance("gold", 90)

    granter.grant(RewardDescriptor.currency_reward("gems", 25), ledger)
    granter.grant(RewardDescriptor.currency_reward("gold", 25), ledger)

    assert ledger.balance("gems") == 100
    assert ledger.balance("gold") == 115

    ledger.set_balance("gems", 150)
    granter.grant(RewardDescriptor.currency_reward("gems", 5), ledger)
    assert ledger.balance("gems") == 150
