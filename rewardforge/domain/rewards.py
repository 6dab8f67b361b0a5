"""Reward descriptors and catalog definitions."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Sequence


class RewardKind(str, Enum):
    CURRENCY = "currency"
    CHARACTER = "character"
    ICON = "icon"
    FRAME = "frame"
    INVENTORY_ITEM = "inventory_item"
    SHOP_ITEM = "shop_item"


class EntitlementKind(str, Enum):
    """Unique-per-account resources."""

    CHARACTER = "character"
    ICON = "icon"
    FRAME = "frame"
    SHOP_ITEM = "shop_item"


ENTITLEMENT_REWARDS: Mapping[RewardKind, EntitlementKind] = {
    RewardKind.CHARACTER: EntitlementKind.CHARACTER,
    RewardKind.ICON: EntitlementKind.ICON,
    RewardKind.FRAME: EntitlementKind.FRAME,
    RewardKind.SHOP_ITEM: EntitlementKind.SHOP_ITEM,
}


class TrackKind(str, Enum):
    DAILY = "daily"
    NEW_PLAYER = "new_player"


@dataclass(slots=True, frozen=True)
class RewardDescriptor:
    """Generic reward: a currency amount or a set of template ids."""

    kind: RewardKind
    template_ids: tuple[str, ...] = ()
    currency: str | None = None
    amount: int = 0

    @classmethod
    def currency_reward(cls, currency: str, amount: int) -> "RewardDescriptor":
        return cls(kind=RewardKind.CURRENCY, currency=currency, amount=amount)

    @classmethod
    def entitlement(cls, kind: RewardKind, *template_ids: str) -> "RewardDescriptor":
        return cls(kind=kind, template_ids=tuple(template_ids))

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"kind": self.kind.value}
        if self.kind is RewardKind.CURRENCY:
            data["currency"] = self.currency
            data["amount"] = self.amount
        else:
            data["ids"] = list(self.template_ids)
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RewardDescriptor":
        kind = RewardKind(data["kind"])
        if kind is RewardKind.CURRENCY:
            return cls.currency_reward(str(data["currency"]), int(data.get("amount", 0)))
        return cls.entitlement(kind, *(str(tid) for tid in data.get("ids", ())))


class PassTier(str, Enum):
    FREE = "free"
    PREMIUM = "premium"


@dataclass(slots=True)
class BattlePassItem:
    pass_id: str
    reward: RewardDescriptor
    level: int = 1
    tier: PassTier = PassTier.FREE


@dataclass(slots=True)
class CouponDefinition:
    coupon_id: str
    code: str
    currency: str
    amount: int


class QuestKind(str, Enum):
    ONE_TIME = "one_time"
    REPEATABLE = "repeatable"


class RequirementType(str, Enum):
    KILL_MONSTERS = "kill_monsters"
    KILL_MONSTERS_WITH_CHARACTER = "kill_monsters_with_character"
    COMPLETE_MAP = "complete_map"
    COMPLETE_MAP_WITH_CHARACTER = "complete_map_with_character"
    ACCOUNT_LEVEL = "account_level"
    CHARACTER_LEVEL = "character_level"


@dataclass(slots=True)
class QuestRequirement:
    type: RequirementType
    target: int
    map_id: str | None = None
    character_id: str | None = None


@dataclass(slots=True)
class QuestDefinition:
    quest_id: str
    requirement: QuestRequirement
    kind: QuestKind = QuestKind.ONE_TIME
    reward: RewardDescriptor | None = None
    account_exp: int = 0
    battle_pass_exp: int = 0
    character_exp: int = 0


@dataclass(slots=True)
class CharacterDefinition:
    character_id: str
    name: str = ""
    max_level: int | None = None


@dataclass(slots=True)
class ItemUpgrade:
    """One upgrade step. The cost is spent whether or not the roll succeeds."""

    currency: str
    cost: int
    success_rate: float = 1.0
    decrease_on_fail: bool = False


@dataclass(slots=True)
class ItemDefinition:
    item_id: str
    name: str = ""
    upgrades: Sequence[ItemUpgrade] = field(default_factory=tuple)

    @property
    def max_level(self) -> int:
        return len(self.upgrades)


@dataclass(slots=True)
class ShopItem:
    item_id: str
    currency: str
    price: int
    reward: RewardDescriptor
