"""Client-side orchestration: validate locally, call the backend once, mirror the outcome."""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import TYPE_CHECKING, Any, Callable, Mapping

from . import events, transactions
from .catalog import RewardCatalog
from .claims import ClaimValidator
from .events import EventBus
from .exceptions import ClaimValidationError, NotFoundError, TransportError, raise_for_result
from .granter import GrantDelta
from .ledger import LedgerCache, QuestProgress
from .leveling import LevelingCurve, LevelProgress
from .reconciliation import ReconciliationLoader, ReconciliationReport
from .results import ReasonCode, Result
from .rewards import EntitlementKind, QuestDefinition, QuestKind, RewardDescriptor, RewardKind, TrackKind
from .tracks import TrackStatus, mark_claimed, track_status
from .transactions import EconomyRules, SessionSummary

if TYPE_CHECKING:
    from ..backends.base import BackendService

logger = logging.getLogger(__name__)


class EconomyService:
    """Single entry point the presentation layer talks to.

    Every mutating call follows the same steps: a network-free pre-check,
    exactly one backend call, and on success an update of the local
    :class:`LedgerCache` followed by an event. Failures raise and leave the
    cache untouched.
    """

    def __init__(
        self,
        backend: "BackendService",
        rules: EconomyRules,
        *,
        cache: LedgerCache | None = None,
        event_bus: EventBus | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._backend = backend
        self._rules = rules
        self._cache = cache or LedgerCache()
        self._event_bus = event_bus or EventBus()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._validator = ClaimValidator(rules.catalog)
        self._loader = ReconciliationLoader(backend, rules.catalog)

    @property
    def cache(self) -> LedgerCache:
        return self._cache

    @property
    def catalog(self) -> RewardCatalog:
        return self._rules.catalog

    @property
    def backend(self) -> "BackendService":
        return self._backend

    def today(self) -> date:
        now = self._clock()
        if now.tzinfo is not None:
            now = now.astimezone(timezone.utc)
        return now.date()

    # session

    async def login(self, account_id: str, token: str | None = None) -> ReconciliationReport:
        await self._backend.open_session(account_id, token)
        return await self.reconcile()

    async def reconcile(self) -> ReconciliationReport:
        report = await self._loader.load(self._cache)
        await self._event_bus.publish(events.LEDGER_RECONCILED, report.to_dict())
        return report

    async def logout(self) -> None:
        await self._backend.close()

    def track_status(self, kind: TrackKind) -> TrackStatus:
        today = self.today()
        track = self._validator.current_track(self._cache, kind, today)
        return track_status(track, self.catalog.track_length(kind), today)

    # mirroring helpers

    def _mirror(self, result: Result, delta: GrantDelta | None) -> GrantDelta:
        """Apply a confirmed grant: entitlements and instances from the delta, balances from the store."""
        delta = delta or GrantDelta()
        local = GrantDelta(
            currencies={c: a for c, a in delta.currencies.items() if c not in result.balances},
            entitlements=delta.entitlements,
            items=delta.items,
        )
        self._rules.granter.apply(local, self._cache)
        for currency, amount in result.balances.items():
            self._cache.set_balance(currency, amount)
        return delta

    async def _granted(self, result: Result, reward: RewardDescriptor | None) -> GrantDelta | None:
        if result.delta is not None:
            return result.delta
        if reward is None:
            return None
        if reward.kind is RewardKind.INVENTORY_ITEM:
            # instance ids are minted by the store; read them back instead of inventing local ones
            return await self._fetch_new_instances()
        # the store did not echo its grant; rebuild it locally
        return self._rules.granter.plan(reward, self._cache)

    async def _fetch_new_instances(self) -> GrantDelta:
        try:
            items = await self._backend.fetch_inventory()
        except TransportError:
            logger.warning("Inventory read-back failed; new items appear after the next reconcile", exc_info=True)
            return GrantDelta()
        return GrantDelta(items=[item for item in items if not self._cache.has_unique_id(item.unique_id)])

    def _debit_locally(self, result: Result, currency: str, amount: int) -> None:
        if currency not in result.balances:
            self._cache.set_balance(currency, max(0, self._cache.balance(currency) - amount))

    def _payload(self, **extra: Any) -> dict[str, Any]:
        return {"account_id": self._backend.account_id, **extra}

    # reward tracks

    async def claim_daily_reward(self, day_index: int) -> Result:
        return await self._claim_track(TrackKind.DAILY, day_index)

    async def claim_new_player_reward(self, day_index: int) -> Result:
        return await self._claim_track(TrackKind.NEW_PLAYER, day_index)

    async def _claim_track(self, kind: TrackKind, day_index: int) -> Result:
        today = self.today()
        self._validator.ensure(self._cache, kind, day_index, today)
        reward = self.catalog.track_reward(kind, day_index)

        if kind is TrackKind.DAILY:
            result = await self._backend.claim_daily_reward(day_index, reward)
        else:
            result = await self._backend.claim_new_player_reward(day_index, reward)
        raise_for_result(result, action=f"Claim {kind.value} reward {day_index}")

        delta = self._mirror(result, await self._granted(result, reward))
        track = self._validator.current_track(self._cache, kind, today)
        mark_claimed(track, day_index, today)
        self._cache.save_track(track)
        await self._event_bus.publish(
            events.REWARD_TRACK_CLAIMED,
            self._payload(track=kind.value, day_index=day_index, granted=delta.to_dict()),
        )
        return result

    # battle pass

    async def claim_battle_pass_reward(self, pass_id: str) -> Result:
        item = self.catalog.find_battle_pass_item(pass_id)
        if item is None:
            raise NotFoundError(f"Battle pass item {pass_id} not found")
        if pass_id in self._cache.battle_pass().claimed:
            raise ClaimValidationError(
                f"Battle pass reward {pass_id} already claimed", reason=ReasonCode.ALREADY_CLAIMED
            )

        result = await self._backend.claim_battle_pass_reward(pass_id)
        raise_for_result(result, action=f"Claim battle pass reward {pass_id}")

        delta = self._mirror(result, await self._granted(result, item.reward))
        progress = self._cache.battle_pass()
        progress.claimed.add(pass_id)
        self._cache.save_battle_pass(progress)
        await self._event_bus.publish(
            events.BATTLE_PASS_REWARD_CLAIMED, self._payload(pass_id=pass_id, granted=delta.to_dict())
        )
        return result

    async def unlock_battle_pass_premium(self) -> Result:
        if self._cache.battle_pass().premium:
            raise ClaimValidationError("Battle pass premium already unlocked", reason=ReasonCode.ALREADY_CLAIMED)

        result = await self._backend.unlock_battle_pass_premium()
        raise_for_result(result, action="Unlock battle pass premium")

        self._mirror(result, None)
        self._debit_locally(result, self._rules.battle_pass_currency, self._rules.battle_pass_price)
        progress = self._cache.battle_pass()
        progress.premium = True
        self._cache.save_battle_pass(progress)
        await self._event_bus.publish(events.BATTLE_PASS_PREMIUM_UNLOCKED, self._payload())
        return result

    # experience

    def _settle_progress(self, result: Result, curve: LevelingCurve, current: LevelProgress, amount: int) -> tuple[LevelProgress, int]:
        if result.progress is not None:
            gained = result.levels_gained or max(0, result.progress.level - current.level)
            return result.progress, gained
        up = curve.apply_exp(current, amount)
        return up.progress, up.levels_gained

    async def _level_up(self, axis: str, progress: LevelProgress, gained: int, **extra: Any) -> None:
        if gained:
            await self._event_bus.publish(
                events.LEVEL_UP,
                self._payload(axis=axis, level=progress.level, levels_gained=gained, **extra),
            )

    async def add_account_exp(self, amount: int) -> Result:
        if amount < 0:
            raise ValueError("Experience amount cannot be negative")
        result = await self._backend.add_account_exp(amount)
        raise_for_result(result, action="Add account exp")

        progress, gained = self._settle_progress(
            result, self._rules.curves.account, self._cache.account_progress(), amount
        )
        self._cache.save_account_progress(progress)
        transactions.refresh_level_quests(self._rules, self._cache)
        await self._level_up("account", progress, gained)
        return result

    async def add_character_exp(self, character_id: str, amount: int) -> Result:
        if amount < 0:
            raise ValueError("Experience amount cannot be negative")
        character = self.catalog.find_character(character_id)
        if character is None:
            raise NotFoundError(f"Character {character_id} not found")
        result = await self._backend.add_character_exp(character_id, amount)
        raise_for_result(result, action=f"Add exp to character {character_id}")

        curve = self._rules.curves.for_character(character.max_level)
        progress, gained = self._settle_progress(
            result, curve, self._cache.character_progress(character_id), amount
        )
        self._cache.save_character_progress(character_id, progress)
        transactions.refresh_level_quests(self._rules, self._cache)
        await self._level_up("character", progress, gained, character_id=character_id)
        return result

    async def add_character_mastery_exp(self, character_id: str, amount: int) -> Result:
        if amount < 0:
            raise ValueError("Experience amount cannot be negative")
        if self.catalog.find_character(character_id) is None:
            raise NotFoundError(f"Character {character_id} not found")
        result = await self._backend.add_character_mastery_exp(character_id, amount)
        raise_for_result(result, action=f"Add mastery exp to character {character_id}")

        progress, gained = self._settle_progress(
            result, self._rules.curves.mastery, self._cache.mastery_progress(character_id), amount
        )
        self._cache.save_mastery_progress(character_id, progress)
        await self._level_up("mastery", progress, gained, character_id=character_id)
        return result

    async def add_battle_pass_xp(self, amount: int) -> Result:
        if amount < 0:
            raise ValueError("Experience amount cannot be negative")
        result = await self._backend.add_battle_pass_xp(amount)
        raise_for_result(result, action="Add battle pass xp")

        current = self._cache.battle_pass()
        progress, gained = self._settle_progress(
            result, self._rules.curves.battle_pass, LevelProgress(current.level, current.xp), amount
        )
        current.level = progress.level
        current.xp = progress.exp
        self._cache.save_battle_pass(current)
        await self._level_up("battle_pass", progress, gained)
        return result

    # sessions and quests

    async def complete_game_session(self, summary: SessionSummary) -> Result:
        result = await self._backend.complete_game_session(summary)
        raise_for_result(result, action="Complete game session")

        # replay the deterministic increments, then pin whatever the store reported
        transactions.complete_game_session(self._rules, self._cache, summary)
        for quest_id, value in (result.payload.get("quests") or {}).items():
            state = self._cache.quest(quest_id)
            state.progress = int(value)
            self._cache.save_quest(quest_id, state)
        if "score" in result.payload:
            self._cache.set_score(int(result.payload["score"]))
        self._mirror(result, None)
        await self._event_bus.publish(
            events.SESSION_COMPLETED,
            self._payload(
                map_id=summary.map_id,
                character_id=summary.character_id,
                won=summary.won,
                score=self._cache.score(),
            ),
        )
        return result

    async def complete_quest(self, quest_id: str, *, character_id: str | None = None) -> Result:
        quest = self.catalog.find_quest(quest_id)
        if quest is None:
            raise NotFoundError(f"Quest {quest_id} not found")
        state = self._cache.quest(quest_id)
        if state.completed and quest.kind is QuestKind.ONE_TIME:
            raise ClaimValidationError(f"Quest {quest_id} already completed", reason=ReasonCode.ALREADY_CLAIMED)
        if state.progress < quest.requirement.target:
            raise ClaimValidationError(
                f"Quest {quest_id} progress {state.progress}/{quest.requirement.target}",
                reason=ReasonCode.REQUIREMENT_NOT_MET,
            )

        result = await self._backend.complete_quest(quest_id, character_id)
        raise_for_result(result, action=f"Complete quest {quest_id}")

        delta = self._mirror(result, await self._granted(result, quest.reward))
        self._mirror_quest_levels(result.payload.get("levels"), quest, character_id)
        if quest.kind is QuestKind.REPEATABLE:
            self._cache.save_quest(quest_id, QuestProgress(0, False, quest.kind))
        else:
            self._cache.save_quest(quest_id, QuestProgress(state.progress, True, quest.kind))
        transactions.refresh_level_quests(self._rules, self._cache)
        await self._event_bus.publish(
            events.QUEST_COMPLETED, self._payload(quest_id=quest_id, granted=delta.to_dict())
        )
        return result

    def _mirror_quest_levels(
        self, levels: Mapping[str, Mapping[str, int]] | None, quest: QuestDefinition, character_id: str | None
    ) -> None:
        curves = self._rules.curves
        if levels is not None:
            if "account" in levels:
                raw = levels["account"]
                self._cache.save_account_progress(LevelProgress(int(raw["level"]), int(raw["exp"])))
            if "battle_pass" in levels:
                raw = levels["battle_pass"]
                progress = self._cache.battle_pass()
                progress.level, progress.xp = int(raw["level"]), int(raw["exp"])
                self._cache.save_battle_pass(progress)
            if "character" in levels and character_id:
                raw = levels["character"]
                self._cache.save_character_progress(character_id, LevelProgress(int(raw["level"]), int(raw["exp"])))
            return

        if quest.account_exp and not curves.account.is_max(self._cache.account_progress()):
            up = curves.account.apply_exp(self._cache.account_progress(), quest.account_exp)
            self._cache.save_account_progress(up.progress)
        if quest.battle_pass_exp:
            progress = self._cache.battle_pass()
            up = curves.battle_pass.apply_exp(LevelProgress(progress.level, progress.xp), quest.battle_pass_exp)
            progress.level, progress.xp = up.progress.level, up.progress.exp
            self._cache.save_battle_pass(progress)
        if quest.character_exp and character_id:
            character = self.catalog.find_character(character_id)
            if character is not None:
                curve = curves.for_character(character.max_level)
                current = self._cache.character_progress(character_id)
                if not curve.is_max(current):
                    self._cache.save_character_progress(
                        character_id, curve.apply_exp(current, quest.character_exp).progress
                    )

    # coupons and shop

    async def redeem_coupon(self, code: str) -> Result:
        if not code or not code.strip():
            raise ClaimValidationError("Coupon code is empty", reason=ReasonCode.NOT_FOUND)
        result = await self._backend.redeem_coupon(code)
        raise_for_result(result, action="Redeem coupon")

        coupon = self.catalog.find_coupon(code)
        reward = RewardDescriptor.currency_reward(coupon.currency, coupon.amount) if coupon else None
        delta = self._mirror(result, await self._granted(result, reward))
        coupon_id = result.payload.get("coupon_id") or (coupon.coupon_id if coupon else code)
        self._cache.mark_coupon_used(str(coupon_id))
        await self._event_bus.publish(
            events.COUPON_REDEEMED, self._payload(coupon_id=coupon_id, granted=delta.to_dict())
        )
        return result

    async def purchase_shop_item(self, item_id: str) -> Result:
        item = self.catalog.find_shop_item(item_id)
        if item is None:
            raise NotFoundError(f"Shop item {item_id} not found")
        unique = item.reward.kind is not RewardKind.CURRENCY
        if unique and self._cache.owns(EntitlementKind.SHOP_ITEM, item_id):
            raise ClaimValidationError(f"Shop item {item_id} already owned", reason=ReasonCode.ALREADY_CLAIMED)

        result = await self._backend.purchase_shop_item(item_id)
        raise_for_result(result, action=f"Purchase shop item {item_id}")

        delta = await self._granted(result, item.reward) or GrantDelta()
        if unique and result.delta is None:
            delta.add_entitlement(EntitlementKind.SHOP_ITEM, item_id)
        self._debit_locally(result, item.currency, item.price)
        self._mirror(result, delta)
        await self._event_bus.publish(
            events.SHOP_ITEM_PURCHASED, self._payload(item_id=item_id, granted=delta.to_dict())
        )
        return result

    # inventory

    async def upgrade_inventory_item(self, unique_id: str) -> Result:
        instance = self._cache.inventory_item(unique_id)
        if instance is None:
            raise NotFoundError(f"Inventory item {unique_id} not found")
        definition = self.catalog.find_item(instance.template_id)
        if definition is not None and instance.level >= definition.max_level:
            raise ClaimValidationError(f"Inventory item {unique_id} is at max level", reason=ReasonCode.MAX_LEVEL)

        result = await self._backend.upgrade_inventory_item(unique_id)
        raise_for_result(result, action=f"Upgrade inventory item {unique_id}")

        if definition is not None and instance.level < definition.max_level:
            upgrade = definition.upgrades[instance.level]
            self._debit_locally(result, upgrade.currency, upgrade.cost)
        self._mirror(result, None)
        upgraded = bool(result.payload.get("upgraded", True))
        default_level = instance.level + 1 if upgraded else instance.level
        instance.level = int(result.payload.get("level", default_level))
        self._cache.put_inventory_item(instance)
        await self._event_bus.publish(
            events.ITEM_UPGRADED,
            self._payload(unique_id=unique_id, level=instance.level, upgraded=upgraded),
        )
        return result

    async def delete_inventory_item(self, unique_id: str) -> Result:
        instance = self._cache.inventory_item(unique_id)
        if instance is None:
            raise NotFoundError(f"Inventory item {unique_id} not found")
        result = await self._backend.delete_inventory_item(unique_id)
        raise_for_result(result, action=f"Delete inventory item {unique_id}")

        self._cache.remove_inventory_item(unique_id)
        await self._event_bus.publish(
            events.ITEM_DELETED, self._payload(unique_id=unique_id, template_id=instance.template_id)
        )
        return result
