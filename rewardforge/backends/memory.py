"""In-process authoritative store used for offline mode and tests."""

from __future__ import annotations

import asyncio
import copy
from collections import defaultdict
from datetime import date
from typing import Any, Callable, DefaultDict

from ..domain.ledger import LedgerCache, LedgerView
from ..domain.results import Result
from ..domain.rewards import TrackKind
from ..domain.tracks import RewardTrack
from ..domain.transactions import EconomyRules
from .base import Clock, LedgerBackend, T


class InMemoryBackend(LedgerBackend):
    """Per-account ledgers guarded by one ``asyncio.Lock`` each.

    A rule runs against a deep copy of the account's ledger; the copy
    replaces the stored ledger only when the rule succeeds.
    """

    name = "memory"

    def __init__(
        self,
        rules: EconomyRules,
        *,
        clock: Clock | None = None,
        initial_balances: dict[str, int] | None = None,
    ) -> None:
        super().__init__(rules, clock=clock)
        self._ledgers: dict[str, LedgerCache] = {}
        self._locks: DefaultDict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._initial_balances = dict(initial_balances or {})

    async def _provision(self, account_id: str, today: date) -> None:
        async with self._locks[account_id]:
            if account_id in self._ledgers:
                return
            ledger = LedgerCache(account_id)
            for currency, amount in self.rules.opening_balances(self._initial_balances).items():
                ledger.set_balance(currency, amount)
            ledger.save_track(RewardTrack(kind=TrackKind.NEW_PLAYER, anchor_date=today))
            self._ledgers[account_id] = ledger

    async def _execute(self, account_id: str, operation: Callable[[LedgerView], Result]) -> Result:
        async with self._locks[account_id]:
            draft = copy.deepcopy(self._ledgers[account_id])
            result = operation(draft)
            if result.success:
                self._ledgers[account_id] = draft
            return result

    async def _read(self, account_id: str, reader: Callable[[Any], T]) -> T:
        async with self._locks[account_id]:
            return reader(self._ledgers[account_id])

    def ledger(self, account_id: str) -> LedgerCache:
        """Copy of an account's authoritative ledger, for inspection."""
        return copy.deepcopy(self._ledgers[account_id])

    def seed(self, account_id: str, mutate: Callable[[LedgerCache], None]) -> None:
        """Directly edit an account's ledger (test and admin tooling)."""
        ledger = self._ledgers.setdefault(account_id, LedgerCache(account_id))
        mutate(ledger)
