"""Factories for tests and prototyping."""

from __future__ import annotations

from dataclasses import dataclass, field
from random import Random
from faker import Faker

from ..domain.catalog import RewardCatalog
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


@dataclass(slots=True)
class RewardFactory:
    faker: Faker = field(default_factory=Faker)
    rng: Random = field(default_factory=Random)
    currencies: tuple[str, ...] = ("gold", "gems")

    def currency(self, currency: str | None = None, amount: int | None = None) -> RewardDescriptor:
        return RewardDescriptor.currency_reward(
            currency or self.rng.choice(self.currencies),
            amount if amount is not None else self.rng.randint(1, 100),
        )

    def entitlement(self, kind: RewardKind = RewardKind.ICON, count: int = 1) -> RewardDescriptor:
        ids = [f"{kind.value}_{self.faker.unique.lexify(text='????')}" for _ in range(count)]
        return RewardDescriptor.entitlement(kind, *ids)

    def track(self, length: int, currency: str = "gold") -> list[RewardDescriptor]:
        return [self.currency(currency, (index + 1) * 10) for index in range(length)]


@dataclass(slots=True)
class CatalogFactory:
    """Build a small but complete catalog covering every definition type."""

    faker: Faker = field(default_factory=Faker)
    rewards: RewardFactory = field(default_factory=RewardFactory)

    def build(
        self,
        catalog: RewardCatalog | None = None,
        *,
        daily_length: int = 7,
        new_player_length: int = 7,
    ) -> RewardCatalog:
        """Populate ``catalog`` (or a fresh one) and return it."""
        catalog = catalog if catalog is not None else RewardCatalog()
        catalog.set_track(TrackKind.DAILY, self.rewards.track(daily_length))
        catalog.set_track(TrackKind.NEW_PLAYER, self.rewards.track(new_player_length))

        catalog.register_character(CharacterDefinition("knight", name="Knight"))
        catalog.register_character(CharacterDefinition("archer", name="Archer", max_level=10))

        catalog.register_item(
            ItemDefinition(
                "sword",
                name="Sword",
                upgrades=(ItemUpgrade("gold", 50), ItemUpgrade("gold", 100)),
            )
        )

        catalog.register_battle_pass_item(
            BattlePassItem("bp_1", RewardDescriptor.currency_reward("gold", 100), level=1)
        )
        catalog.register_battle_pass_item(
            BattlePassItem("bp_2", RewardDescriptor.entitlement(RewardKind.FRAME, "frame_gold"), level=2)
        )
        catalog.register_battle_pass_item(
            BattlePassItem(
                "bp_premium",
                RewardDescriptor.currency_reward("gems", 50),
                level=1,
                tier=PassTier.PREMIUM,
            )
        )

        catalog.register_coupon(CouponDefinition("welcome", "WELCOME", "gems", 50))

        catalog.register_quest(
            QuestDefinition(
                "slayer",
                QuestRequirement(RequirementType.KILL_MONSTERS, target=10),
                reward=RewardDescriptor.currency_reward("gold", 40),
                account_exp=150,
                battle_pass_exp=500,
            )
        )
        catalog.register_quest(
            QuestDefinition(
                "forest_runs",
                QuestRequirement(RequirementType.COMPLETE_MAP, target=2, map_id="forest"),
                kind=QuestKind.REPEATABLE,
                reward=RewardDescriptor.currency_reward("gems", 5),
            )
        )
        catalog.register_quest(
            QuestDefinition(
                "veteran",
                QuestRequirement(RequirementType.ACCOUNT_LEVEL, target=2),
                reward=RewardDescriptor.entitlement(RewardKind.ICON, "icon_veteran"),
            )
        )

        catalog.register_shop_item(
            ShopItem("sword_offer", "gems", 30, RewardDescriptor.entitlement(RewardKind.INVENTORY_ITEM, "sword"))
        )
        catalog.register_shop_item(
            ShopItem("gold_pack", "gems", 10, RewardDescriptor.currency_reward("gold", 500))
        )
        return catalog

    def account_id(self) -> str:
        return f"acct_{self.faker.unique.lexify(text='????????')}"
