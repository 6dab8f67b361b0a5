"""Reward catalog: tracks, battle pass, coupons, quests, characters, items, shop."""

from __future__ import annotations

from typing import Iterable, Sequence

from .rewards import (
    BattlePassItem,
    CharacterDefinition,
    CouponDefinition,
    ItemDefinition,
    QuestDefinition,
    RewardDescriptor,
    ShopItem,
    TrackKind,
)


class RewardCatalog:
    """Registry of every definition the economy rules consult."""

    def __init__(self) -> None:
        self._tracks: dict[TrackKind, list[RewardDescriptor]] = {kind: [] for kind in TrackKind}
        self._battle_pass: dict[str, BattlePassItem] = {}
        self._coupons: dict[str, CouponDefinition] = {}
        self._quests: dict[str, QuestDefinition] = {}
        self._characters: dict[str, CharacterDefinition] = {}
        self._items: dict[str, ItemDefinition] = {}
        self._shop: dict[str, ShopItem] = {}

    # reward tracks

    def set_track(self, kind: TrackKind, rewards: Sequence[RewardDescriptor]) -> None:
        self._tracks[kind] = list(rewards)

    def track_rewards(self, kind: TrackKind) -> Sequence[RewardDescriptor]:
        return tuple(self._tracks[kind])

    def track_length(self, kind: TrackKind) -> int:
        return len(self._tracks[kind])

    def track_reward(self, kind: TrackKind, index: int) -> RewardDescriptor | None:
        rewards = self._tracks[kind]
        if 0 <= index < len(rewards):
            return rewards[index]
        return None

    # battle pass

    def register_battle_pass_item(self, item: BattlePassItem) -> None:
        if item.pass_id in self._battle_pass:
            raise ValueError(f"Battle pass item {item.pass_id} already registered")
        self._battle_pass[item.pass_id] = item

    def find_battle_pass_item(self, pass_id: str) -> BattlePassItem | None:
        return self._battle_pass.get(pass_id)

    def iter_battle_pass(self) -> Iterable[BattlePassItem]:
        """Items in registration order; bitmask positions follow this order."""
        return self._battle_pass.values()

    # coupons

    def register_coupon(self, coupon: CouponDefinition) -> None:
        if coupon.coupon_id in self._coupons:
            raise ValueError(f"Coupon {coupon.coupon_id} already registered")
        self._coupons[coupon.coupon_id] = coupon

    def find_coupon(self, code: str) -> CouponDefinition | None:
        """Resolve a coupon by id, or by code ignoring case."""
        if code in self._coupons:
            return self._coupons[code]
        needle = code.strip().lower()
        for coupon in self._coupons.values():
            if coupon.code.lower() == needle:
                return coupon
        return None

    def iter_coupons(self) -> Iterable[CouponDefinition]:
        return self._coupons.values()

    # quests

    def register_quest(self, quest: QuestDefinition) -> None:
        if quest.quest_id in self._quests:
            raise ValueError(f"Quest {quest.quest_id} already registered")
        self._quests[quest.quest_id] = quest

    def find_quest(self, quest_id: str) -> QuestDefinition | None:
        return self._quests.get(quest_id)

    def iter_quests(self) -> Iterable[QuestDefinition]:
        return self._quests.values()

    # characters

    def register_character(self, character: CharacterDefinition) -> None:
        if character.character_id in self._characters:
            raise ValueError(f"Character {character.character_id} already registered")
        self._characters[character.character_id] = character

    def find_character(self, character_id: str) -> CharacterDefinition | None:
        return self._characters.get(character_id)

    def iter_characters(self) -> Iterable[CharacterDefinition]:
        return self._characters.values()

    # inventory items

    def register_item(self, item: ItemDefinition) -> None:
        if item.item_id in self._items:
            raise ValueError(f"Item {item.item_id} already registered")
        self._items[item.item_id] = item

    def find_item(self, item_id: str) -> ItemDefinition | None:
        return self._items.get(item_id)

    def iter_items(self) -> Iterable[ItemDefinition]:
        return self._items.values()

    # shop

    def register_shop_item(self, item: ShopItem) -> None:
        if item.item_id in self._shop:
            raise ValueError(f"Shop item {item.item_id} already registered")
        self._shop[item.item_id] = item

    def find_shop_item(self, item_id: str) -> ShopItem | None:
        return self._shop.get(item_id)

    def iter_shop(self) -> Iterable[ShopItem]:
        return self._shop.values()
