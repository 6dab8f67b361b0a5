"""Runtime registries for the reward catalog and currencies."""

from __future__ import annotations

from typing import Sequence

from .domain.catalog import RewardCatalog
from .domain.economy import Currency, CurrencyRegistry
from .domain.rewards import (
    BattlePassItem,
    CharacterDefinition,
    CouponDefinition,
    ItemDefinition,
    QuestDefinition,
    RewardDescriptor,
    ShopItem,
    TrackKind,
)


class RewardRegistry:
    """Facade around RewardCatalog with chainable API."""

    def __init__(self, catalog: RewardCatalog | None = None) -> None:
        self.catalog = catalog or RewardCatalog()

    def daily(self, rewards: Sequence[RewardDescriptor]) -> "RewardRegistry":
        self.catalog.set_track(TrackKind.DAILY, rewards)
        return self

    def new_player(self, rewards: Sequence[RewardDescriptor]) -> "RewardRegistry":
        self.catalog.set_track(TrackKind.NEW_PLAYER, rewards)
        return self

    def battle_pass(self, item: BattlePassItem) -> "RewardRegistry":
        self.catalog.register_battle_pass_item(item)
        return self

    def coupon(self, coupon: CouponDefinition) -> "RewardRegistry":
        self.catalog.register_coupon(coupon)
        return self

    def quest(self, quest: QuestDefinition) -> "RewardRegistry":
        self.catalog.register_quest(quest)
        return self

    def character(self, character: CharacterDefinition) -> "RewardRegistry":
        self.catalog.register_character(character)
        return self

    def item(self, item: ItemDefinition) -> "RewardRegistry":
        self.catalog.register_item(item)
        return self

    def shop_item(self, item: ShopItem) -> "RewardRegistry":
        self.catalog.register_shop_item(item)
        return self


class CurrencyRegistryFacade:
    """Provide a convenient registration facade."""

    def __init__(self) -> None:
        self.registry = CurrencyRegistry()

    def currency(self, currency: Currency, *, replace: bool = False) -> "CurrencyRegistryFacade":
        self.registry.register(currency, replace=replace)
        return self


__all__ = [
    "CurrencyRegistryFacade",
    "RewardRegistry",
]
