"""Local, process-resident mirror of a player's economic state."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Protocol

from .economy import Wallet
from .leveling import LevelProgress
from .rewards import EntitlementKind, QuestKind, TrackKind
from .tracks import ClaimedSet, RewardTrack


@dataclass(slots=True)
class InventoryItemInstance:
    unique_id: str
    template_id: str
    level: int = 0
    upgrades: dict[int, int] = field(default_factory=dict)

    def copy(self) -> "InventoryItemInstance":
        return InventoryItemInstance(
            unique_id=self.unique_id,
            template_id=self.template_id,
            level=self.level,
            upgrades=dict(self.upgrades),
        )


@dataclass(slots=True)
class BattlePassProgress:
    xp: int = 0
    level: int = 1
    premium: bool = False
    claimed: set[str] = field(default_factory=set)

    def copy(self) -> "BattlePassProgress":
        return BattlePassProgress(
            xp=self.xp, level=self.level, premium=self.premium, claimed=set(self.claimed)
        )


@dataclass(slots=True)
class QuestProgress:
    progress: int = 0
    completed: bool = False
    kind: QuestKind = QuestKind.ONE_TIME


class LedgerView(Protocol):
    """Accessor surface shared by the local cache and authoritative stores.

    Getters return detached copies; mutations only take effect through the
    matching ``save_*``/``set_*`` call.
    """

    def balance(self, currency: str) -> int: ...
    def set_balance(self, currency: str, amount: int) -> None: ...
    def owns(self, kind: EntitlementKind, template_id: str) -> bool: ...
    def add_entitlement(self, kind: EntitlementKind, template_id: str) -> None: ...
    def has_unique_id(self, unique_id: str) -> bool: ...
    def inventory_item(self, unique_id: str) -> InventoryItemInstance | None: ...
    def put_inventory_item(self, item: InventoryItemInstance) -> None: ...
    def remove_inventory_item(self, unique_id: str) -> None: ...
    def account_progress(self) -> LevelProgress: ...
    def save_account_progress(self, progress: LevelProgress) -> None: ...
    def character_progress(self, character_id: str) -> LevelProgress: ...
    def save_character_progress(self, character_id: str, progress: LevelProgress) -> None: ...
    def mastery_progress(self, character_id: str) -> LevelProgress: ...
    def save_mastery_progress(self, character_id: str, progress: LevelProgress) -> None: ...
    def track(self, kind: TrackKind) -> RewardTrack: ...
    def save_track(self, track: RewardTrack) -> None: ...
    def battle_pass(self) -> BattlePassProgress: ...
    def save_battle_pass(self, progress: BattlePassProgress) -> None: ...
    def quest(self, quest_id: str) -> QuestProgress: ...
    def save_quest(self, quest_id: str, progress: QuestProgress) -> None: ...
    def coupon_used(self, coupon_id: str) -> bool: ...
    def mark_coupon_used(self, coupon_id: str) -> None: ...
    def score(self) -> int: ...
    def set_score(self, score: int) -> None: ...


class LedgerCache:
    """In-memory ledger implementing :class:`LedgerView`.

    Used as the client-side mirror that the UI reads from, and as the
    authoritative per-account state of the in-memory backend.
    """

    def __init__(self, account_id: str | None = None) -> None:
        self.account_id = account_id
        self.reset()

    def reset(self) -> None:
        self.wallet = Wallet()
        self._entitlements: dict[EntitlementKind, set[str]] = {kind: set() for kind in EntitlementKind}
        self._inventory: dict[str, InventoryItemInstance] = {}
        self._account = LevelProgress()
        self._characters: dict[str, LevelProgress] = {}
        self._mastery: dict[str, LevelProgress] = {}
        self._tracks: dict[TrackKind, RewardTrack] = {}
        self._battle_pass = BattlePassProgress()
        self._quests: dict[str, QuestProgress] = {}
        self._coupons: set[str] = set()
        self._score = 0

    def adopt(self, other: "LedgerCache") -> None:
        """Take over every field of a fully built ``other`` in one step."""
        self.__dict__.update(vars(other))

    # currencies

    @property
    def balances(self) -> dict[str, int]:
        return dict(self.wallet.balances)

    def balance(self, currency: str) -> int:
        return self.wallet.get(currency)

    def set_balance(self, currency: str, amount: int) -> None:
        self.wallet.set(currency, amount)

    # entitlements

    def owns(self, kind: EntitlementKind, template_id: str) -> bool:
        return template_id in self._entitlements[kind]

    def add_entitlement(self, kind: EntitlementKind, template_id: str) -> None:
        self._entitlements[kind].add(template_id)

    def entitlements(self, kind: EntitlementKind) -> frozenset[str]:
        return frozenset(self._entitlements[kind])

    def replace_entitlements(self, kind: EntitlementKind, template_ids: Iterable[str]) -> None:
        self._entitlements[kind] = set(template_ids)

    # inventory

    def has_unique_id(self, unique_id: str) -> bool:
        return unique_id in self._inventory

    def inventory_item(self, unique_id: str) -> InventoryItemInstance | None:
        item = self._inventory.get(unique_id)
        return item.copy() if item else None

    def put_inventory_item(self, item: InventoryItemInstance) -> None:
        self._inventory[item.unique_id] = item.copy()

    def remove_inventory_item(self, unique_id: str) -> None:
        self._inventory.pop(unique_id, None)

    def inventory_items(self, template_id: str | None = None) -> list[InventoryItemInstance]:
        return [
            item.copy()
            for item in self._inventory.values()
            if template_id is None or item.template_id == template_id
        ]

    # levels

    def account_progress(self) -> LevelProgress:
        return LevelProgress(self._account.level, self._account.exp)

    def save_account_progress(self, progress: LevelProgress) -> None:
        self._account = LevelProgress(progress.level, progress.exp)

    def character_progress(self, character_id: str) -> LevelProgress:
        current = self._characters.get(character_id, LevelProgress())
        return LevelProgress(current.level, current.exp)

    def save_character_progress(self, character_id: str, progress: LevelProgress) -> None:
        self._characters[character_id] = LevelProgress(progress.level, progress.exp)

    def mastery_progress(self, character_id: str) -> LevelProgress:
        current = self._mastery.get(character_id, LevelProgress())
        return LevelProgress(current.level, current.exp)

    def save_mastery_progress(self, character_id: str, progress: LevelProgress) -> None:
        self._mastery[character_id] = LevelProgress(progress.level, progress.exp)

    def character_ids(self) -> list[str]:
        return sorted(set(self._characters) | set(self._mastery))

    # reward tracks

    def track(self, kind: TrackKind) -> RewardTrack:
        current = self._tracks.get(kind)
        return current.copy() if current else RewardTrack(kind=kind)

    def save_track(self, track: RewardTrack) -> None:
        self._tracks[track.kind] = track.copy()

    def track_kinds(self) -> list[TrackKind]:
        return [kind for kind in TrackKind if kind in self._tracks]

    # battle pass

    def battle_pass(self) -> BattlePassProgress:
        return self._battle_pass.copy()

    def save_battle_pass(self, progress: BattlePassProgress) -> None:
        self._battle_pass = progress.copy()

    # quests

    def quest(self, quest_id: str) -> QuestProgress:
        current = self._quests.get(quest_id)
        if current is None:
            return QuestProgress()
        return QuestProgress(current.progress, current.completed, current.kind)

    def save_quest(self, quest_id: str, progress: QuestProgress) -> None:
        self._quests[quest_id] = QuestProgress(progress.progress, progress.completed, progress.kind)

    def quest_ids(self) -> list[str]:
        return sorted(self._quests)

    # coupons and score

    def coupon_used(self, coupon_id: str) -> bool:
        return coupon_id in self._coupons

    def mark_coupon_used(self, coupon_id: str) -> None:
        self._coupons.add(coupon_id)

    def used_coupons(self) -> frozenset[str]:
        return frozenset(self._coupons)

    def score(self) -> int:
        return self._score

    def set_score(self, score: int) -> None:
        self._score = max(0, score)

    def export(self) -> dict[str, Any]:
        """Plain-dict view for debugging and diagnostics."""
        return {
            "account_id": self.account_id,
            "balances": self.balances,
            "entitlements": {kind.value: sorted(ids) for kind, ids in self._entitlements.items()},
            "inventory": {
                uid: {"template_id": item.template_id, "level": item.level, "upgrades": dict(item.upgrades)}
                for uid, item in sorted(self._inventory.items())
            },
            "account": {"level": self._account.level, "exp": self._account.exp},
            "characters": {
                cid: {"level": p.level, "exp": p.exp} for cid, p in sorted(self._characters.items())
            },
            "mastery": {cid: {"level": p.level, "exp": p.exp} for cid, p in sorted(self._mastery.items())},
            "tracks": {
                kind.value: {
                    "anchor_date": track.anchor_date.isoformat() if track.anchor_date else None,
                    "last_claim_date": track.last_claim_date.isoformat() if track.last_claim_date else None,
                    "claimed": list(track.claimed),
                }
                for kind, track in self._tracks.items()
            },
            "battle_pass": {
                "xp": self._battle_pass.xp,
                "level": self._battle_pass.level,
                "premium": self._battle_pass.premium,
                "claimed": sorted(self._battle_pass.claimed),
            },
            "quests": {
                qid: {"progress": q.progress, "completed": q.completed} for qid, q in sorted(self._quests.items())
            },
            "coupons": sorted(self._coupons),
            "score": self._score,
        }


__all__ = [
    "BattlePassProgress",
    "ClaimedSet",
    "InventoryItemInstance",
    "LedgerCache",
    "LedgerView",
    "QuestProgress",
]
