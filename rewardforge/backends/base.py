"""Backend service abstraction shared by every transport."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from functools import partial
from typing import Any, Callable, Protocol, TypeVar

from ..domain.exceptions import UnauthenticatedError
from ..domain.ledger import BattlePassProgress, InventoryItemInstance, LedgerView, QuestProgress
from ..domain.leveling import LevelProgress
from ..domain.results import ReasonCode, Result
from ..domain.rewards import EntitlementKind, RewardDescriptor, TrackKind
from ..domain.tracks import RewardTrack
from ..domain import transactions
from ..domain.transactions import EconomyRules, SessionSummary

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
T = TypeVar("T")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class CharacterProgress:
    level: LevelProgress = field(default_factory=LevelProgress)
    mastery: LevelProgress = field(default_factory=LevelProgress)


@dataclass(slots=True)
class AccountSnapshot:
    """Consolidated account state; ``None`` marks a field the store did not include."""

    account_id: str
    balances: dict[str, int] | None = None
    entitlements: dict[EntitlementKind, list[str]] | None = None
    inventory: list[InventoryItemInstance] | None = None
    account: LevelProgress | None = None
    characters: dict[str, CharacterProgress] | None = None
    tracks: dict[TrackKind, RewardTrack] | None = None
    battle_pass: BattlePassProgress | None = None
    battle_pass_mask: int | None = None
    quests: dict[str, QuestProgress] | None = None
    coupons: list[str] | None = None
    score: int | None = None


class BackendService(Protocol):
    """Operations every transport implements. All of them are session-bound."""

    @property
    def account_id(self) -> str | None: ...

    async def open_session(self, account_id: str, token: str | None = None) -> None: ...
    async def close(self) -> None: ...

    async def claim_daily_reward(self, day_index: int, reward: RewardDescriptor | None = None) -> Result: ...
    async def claim_new_player_reward(self, day_index: int, reward: RewardDescriptor | None = None) -> Result: ...
    async def claim_battle_pass_reward(self, pass_id: str) -> Result: ...
    async def unlock_battle_pass_premium(self) -> Result: ...
    async def add_account_exp(self, amount: int) -> Result: ...
    async def add_character_exp(self, character_id: str, amount: int) -> Result: ...
    async def add_character_mastery_exp(self, character_id: str, amount: int) -> Result: ...
    async def add_battle_pass_xp(self, amount: int) -> Result: ...
    async def complete_game_session(self, summary: SessionSummary) -> Result: ...
    async def complete_quest(self, quest_id: str, character_id: str | None = None) -> Result: ...
    async def redeem_coupon(self, code: str) -> Result: ...
    async def purchase_shop_item(self, item_id: str) -> Result: ...
    async def upgrade_inventory_item(self, unique_id: str) -> Result: ...
    async def delete_inventory_item(self, unique_id: str) -> Result: ...

    async def fetch_account_snapshot(self) -> AccountSnapshot: ...
    async def fetch_reward_track(self, kind: TrackKind) -> RewardTrack | None: ...
    async def fetch_quest_progress(self) -> dict[str, QuestProgress]: ...
    async def fetch_character_progress(self, character_id: str) -> CharacterProgress | None: ...
    async def fetch_inventory(self) -> list[InventoryItemInstance]: ...
    async def fetch_entitlements(self) -> dict[EntitlementKind, list[str]]: ...


class LedgerBackend:
    """Backend that executes the shared rules against a store it owns.

    Subclasses provide ``_provision``, ``_execute`` (run a rule inside one
    atomic unit, keeping writes only on success) and ``_read``.
    """

    name = "ledger"

    def __init__(self, rules: EconomyRules, *, clock: Clock | None = None) -> None:
        self.rules = rules
        self._clock = clock or utc_now
        self._account_id: str | None = None

    @property
    def account_id(self) -> str | None:
        return self._account_id

    def today(self) -> date:
        now = self._clock()
        if now.tzinfo is not None:
            now = now.astimezone(timezone.utc)
        return now.date()

    async def open_session(self, account_id: str, token: str | None = None) -> None:
        if not account_id:
            raise ValueError("account_id is required")
        await self._provision(account_id, self.today())
        self._account_id = account_id
        logger.info("Opened %s session for account %s", self.name, account_id)

    async def close(self) -> None:
        self._account_id = None

    async def _provision(self, account_id: str, today: date) -> None:
        raise NotImplementedError

    async def _execute(self, account_id: str, operation: Callable[[LedgerView], Result]) -> Result:
        raise NotImplementedError

    async def _read(self, account_id: str, reader: Callable[[Any], T]) -> T:
        raise NotImplementedError

    async def _run(self, action: str, rule: Callable[..., Result], *args: Any, **kwargs: Any) -> Result:
        account_id = self._account_id
        if account_id is None:
            logger.warning("%s rejected: no open session", action)
            return Result.fail(ReasonCode.INVALID_CREDENTIALS)
        result = await self._execute(account_id, lambda view: rule(self.rules, view, *args, **kwargs))
        if result.success:
            logger.info("%s committed for account %s", action, account_id)
        else:
            logger.warning("%s rejected for account %s: %s", action, account_id, result.reason_code)
        return result

    def _session_account(self) -> str:
        if self._account_id is None:
            raise UnauthenticatedError()
        return self._account_id

    def _check_descriptor(self, kind: TrackKind, day_index: int, reward: RewardDescriptor | None) -> None:
        if reward is None:
            return
        expected = self.rules.catalog.track_reward(kind, day_index)
        if expected is not None and expected != reward:
            logger.warning(
                "Client %s reward for slot %s differs from catalog; granting the catalog reward",
                kind.value,
                day_index,
            )

    # operations

    async def claim_daily_reward(self, day_index: int, reward: RewardDescriptor | None = None) -> Result:
        self._check_descriptor(TrackKind.DAILY, day_index, reward)
        return await self._run(
            "claim_daily_reward", transactions.claim_track_reward, TrackKind.DAILY, day_index, self.today()
        )

    async def claim_new_player_reward(self, day_index: int, reward: RewardDescriptor | None = None) -> Result:
        self._check_descriptor(TrackKind.NEW_PLAYER, day_index, reward)
        return await self._run(
            "claim_new_player_reward",
            transactions.claim_track_reward,
            TrackKind.NEW_PLAYER,
            day_index,
            self.today(),
        )

    async def claim_battle_pass_reward(self, pass_id: str) -> Result:
        return await self._run("claim_battle_pass_reward", transactions.claim_battle_pass_reward, pass_id)

    async def unlock_battle_pass_premium(self) -> Result:
        return await self._run("unlock_battle_pass_premium", transactions.unlock_battle_pass_premium)

    async def add_account_exp(self, amount: int) -> Result:
        return await self._run("add_account_exp", transactions.add_account_exp, amount)

    async def add_character_exp(self, character_id: str, amount: int) -> Result:
        return await self._run("add_character_exp", transactions.add_character_exp, character_id, amount)

    async def add_character_mastery_exp(self, character_id: str, amount: int) -> Result:
        return await self._run("add_character_mastery_exp", transactions.add_mastery_exp, character_id, amount)

    async def add_battle_pass_xp(self, amount: int) -> Result:
        return await self._run("add_battle_pass_xp", transactions.add_battle_pass_xp, amount)

    async def complete_game_session(self, summary: SessionSummary) -> Result:
        return await self._run("complete_game_session", transactions.complete_game_session, summary)

    async def complete_quest(self, quest_id: str, character_id: str | None = None) -> Result:
        return await self._run(
            "complete_quest", transactions.complete_quest, quest_id, character_id=character_id
        )

    async def redeem_coupon(self, code: str) -> Result:
        return await self._run("redeem_coupon", transactions.redeem_coupon, code)

    async def purchase_shop_item(self, item_id: str) -> Result:
        return await self._run("purchase_shop_item", transactions.purchase_shop_item, item_id)

    async def upgrade_inventory_item(self, unique_id: str) -> Result:
        return await self._run("upgrade_inventory_item", transactions.upgrade_inventory_item, unique_id)

    async def delete_inventory_item(self, unique_id: str) -> Result:
        return await self._run("delete_inventory_item", transactions.delete_inventory_item, unique_id)

    # reads

    async def fetch_account_snapshot(self) -> AccountSnapshot:
        return await self._read(self._session_account(), partial(build_snapshot, self._session_account()))

    async def fetch_reward_track(self, kind: TrackKind) -> RewardTrack | None:
        def reader(view: Any) -> RewardTrack | None:
            return view.track(kind) if kind in view.track_kinds() else None

        return await self._read(self._session_account(), reader)

    async def fetch_quest_progress(self) -> dict[str, QuestProgress]:
        return await self._read(
            self._session_account(), lambda view: {qid: view.quest(qid) for qid in view.quest_ids()}
        )

    async def fetch_character_progress(self, character_id: str) -> CharacterProgress | None:
        def reader(view: Any) -> CharacterProgress | None:
            if character_id not in view.character_ids():
                return None
            return CharacterProgress(view.character_progress(character_id), view.mastery_progress(character_id))

        return await self._read(self._session_account(), reader)

    async def fetch_inventory(self) -> list[InventoryItemInstance]:
        return await self._read(self._session_account(), lambda view: view.inventory_items())

    async def fetch_entitlements(self) -> dict[EntitlementKind, list[str]]:
        return await self._read(
            self._session_account(),
            lambda view: {kind: sorted(view.entitlements(kind)) for kind in EntitlementKind},
        )


def build_snapshot(account_id: str, view: Any) -> AccountSnapshot:
    """Snapshot any enumerable ledger (the in-memory cache or a SQL view)."""
    return AccountSnapshot(
        account_id=account_id,
        balances=dict(view.balances),
        entitlements={kind: sorted(view.entitlements(kind)) for kind in EntitlementKind},
        inventory=view.inventory_items(),
        account=view.account_progress(),
        characters={
            cid: CharacterProgress(view.character_progress(cid), view.mastery_progress(cid))
            for cid in view.character_ids()
        },
        tracks={kind: view.track(kind) for kind in view.track_kinds()},
        battle_pass=view.battle_pass(),
        quests={qid: view.quest(qid) for qid in view.quest_ids()},
        coupons=sorted(view.used_coupons()),
        score=view.score(),
    )


__all__ = [
    "AccountSnapshot",
    "BackendService",
    "CharacterProgress",
    "Clock",
    "LedgerBackend",
    "SessionSummary",
    "build_snapshot",
    "utc_now",
]
