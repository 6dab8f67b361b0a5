"""Rebuild the local ledger from the authoritative store at session start."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .catalog import RewardCatalog
from .ledger import BattlePassProgress, LedgerCache
from .rewards import EntitlementKind, TrackKind
from .tracks import COMPACT_LIMIT, RewardTrack

if TYPE_CHECKING:
    from ..backends.base import AccountSnapshot, BackendService

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ReconciliationReport:
    account_id: str
    from_snapshot: list[str] = field(default_factory=list)
    from_fallback: list[str] = field(default_factory=list)
    defaulted: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        return {
            "account_id": self.account_id,
            "from_snapshot": list(self.from_snapshot),
            "from_fallback": list(self.from_fallback),
            "defaulted": list(self.defaulted),
        }


def decode_battle_pass_mask(catalog: RewardCatalog, mask: int) -> set[str]:
    """Map bit ``i`` onto the ``i``-th battle pass item in catalog order."""
    items = list(catalog.iter_battle_pass())[:COMPACT_LIMIT]
    return {item.pass_id for index, item in enumerate(items) if mask & (1 << index)}


class ReconciliationLoader:
    """Fetch one snapshot, then fill absent fields with itemized fetches.

    Safe to call repeatedly: state is built into a scratch cache and only
    swapped into the live one once every fetch has succeeded, so the result
    depends only on remote state and a failed load leaves the cache as it was.
    """

    def __init__(self, backend: "BackendService", catalog: RewardCatalog) -> None:
        self._backend = backend
        self._catalog = catalog

    async def load(self, cache: LedgerCache) -> ReconciliationReport:
        snapshot = await self._backend.fetch_account_snapshot()
        report = ReconciliationReport(account_id=snapshot.account_id)

        scratch = LedgerCache(snapshot.account_id)

        self._load_balances(scratch, snapshot, report)
        await self._load_entitlements(scratch, snapshot, report)
        await self._load_inventory(scratch, snapshot, report)
        await self._load_levels(scratch, snapshot, report)
        await self._load_tracks(scratch, snapshot, report)
        self._load_battle_pass(scratch, snapshot, report)
        await self._load_quests(scratch, snapshot, report)

        if snapshot.coupons is not None:
            for coupon_id in snapshot.coupons:
                scratch.mark_coupon_used(coupon_id)
            report.from_snapshot.append("coupons")
        else:
            report.defaulted.append("coupons")

        if snapshot.score is not None:
            scratch.set_score(snapshot.score)
            report.from_snapshot.append("score")
        else:
            report.defaulted.append("score")

        cache.adopt(scratch)

        logger.info(
            "Reconciled account %s (fallbacks: %s, defaults: %s)",
            report.account_id,
            ", ".join(report.from_fallback) or "none",
            ", ".join(report.defaulted) or "none",
        )
        return report

    def _load_balances(self, cache: LedgerCache, snapshot: "AccountSnapshot", report: ReconciliationReport) -> None:
        if snapshot.balances is None:
            report.defaulted.append("balances")
            return
        for currency, amount in snapshot.balances.items():
            cache.set_balance(currency, max(0, amount))
        report.from_snapshot.append("balances")

    async def _load_entitlements(
        self, cache: LedgerCache, snapshot: "AccountSnapshot", report: ReconciliationReport
    ) -> None:
        owned = snapshot.entitlements
        if owned is None:
            owned = await self._backend.fetch_entitlements()
            report.from_fallback.append("entitlements")
        else:
            report.from_snapshot.append("entitlements")
        for kind in EntitlementKind:
            cache.replace_entitlements(kind, owned.get(kind, ()))

    async def _load_inventory(
        self, cache: LedgerCache, snapshot: "AccountSnapshot", report: ReconciliationReport
    ) -> None:
        items = snapshot.inventory
        if items is None:
            items = await self._backend.fetch_inventory()
            report.from_fallback.append("inventory")
        else:
            report.from_snapshot.append("inventory")
        for item in items:
            cache.put_inventory_item(item)

    async def _load_levels(
        self, cache: LedgerCache, snapshot: "AccountSnapshot", report: ReconciliationReport
    ) -> None:
        if snapshot.account is not None:
            cache.save_account_progress(snapshot.account)
            report.from_snapshot.append("account")
        else:
            report.defaulted.append("account")

        if snapshot.characters is not None:
            for character_id, progress in snapshot.characters.items():
                cache.save_character_progress(character_id, progress.level)
                cache.save_mastery_progress(character_id, progress.mastery)
            report.from_snapshot.append("characters")
            return

        for character in self._catalog.iter_characters():
            progress = await self._backend.fetch_character_progress(character.character_id)
            if progress is None:
                continue
            cache.save_character_progress(character.character_id, progress.level)
            cache.save_mastery_progress(character.character_id, progress.mastery)
        report.from_fallback.append("characters")

    async def _load_tracks(
        self, cache: LedgerCache, snapshot: "AccountSnapshot", report: ReconciliationReport
    ) -> None:
        tracks = snapshot.tracks or {}
        for kind in TrackKind:
            label = f"tracks.{kind.value}"
            track = tracks.get(kind)
            if track is not None:
                report.from_snapshot.append(label)
            else:
                track = await self._backend.fetch_reward_track(kind)
                if track is not None:
                    report.from_fallback.append(label)
                else:
                    track = RewardTrack(kind=kind)
                    report.defaulted.append(label)
            cache.save_track(track)

    def _load_battle_pass(
        self, cache: LedgerCache, snapshot: "AccountSnapshot", report: ReconciliationReport
    ) -> None:
        progress = snapshot.battle_pass
        if progress is None:
            report.defaulted.append("battle_pass")
            progress = BattlePassProgress()
        else:
            report.from_snapshot.append("battle_pass")
            progress = progress.copy()
        if snapshot.battle_pass_mask is not None:
            progress.claimed |= decode_battle_pass_mask(self._catalog, snapshot.battle_pass_mask)
        cache.save_battle_pass(progress)

    async def _load_quests(
        self, cache: LedgerCache, snapshot: "AccountSnapshot", report: ReconciliationReport
    ) -> None:
        quests = snapshot.quests
        if quests is None:
            quests = await self._backend.fetch_quest_progress()
            report.from_fallback.append("quests")
        else:
            report.from_snapshot.append("quests")
        for quest_id, progress in quests.items():
            cache.save_quest(quest_id, progress)
