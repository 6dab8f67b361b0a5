"""Transactional-store backend built on async SQLAlchemy.

Every mutable row carries an optimistic version counter. Two sessions that
race on the same row both read version ``n``; the first commit bumps it and
the second one fails with ``StaleDataError`` (or ``IntegrityError`` when both
try to insert the same key). The losing unit is retried from scratch, so it
re-reads the winner's state and the rule rejects it with ``already_claimed``.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from random import Random
from typing import Any, AsyncIterator, Callable

from sqlalchemy import Date, DateTime, Integer, JSON, String, Boolean, select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column
from sqlalchemy.orm.exc import StaleDataError

from ..config import RetryConfig
from ..domain.exceptions import TransportError
from ..domain.ledger import BattlePassProgress, InventoryItemInstance, LedgerView, QuestProgress
from ..domain.leveling import LevelProgress
from ..domain.results import Result
from ..domain.rewards import EntitlementKind, QuestKind, TrackKind
from ..domain.tracks import ClaimedSet, RewardTrack
from ..domain.transactions import EconomyRules
from .base import Clock, LedgerBackend, T

logger = logging.getLogger(__name__)

ACCOUNT_AXIS = "account"
CHARACTER_AXIS = "character"
MASTERY_AXIS = "mastery"


class Base(DeclarativeBase):
    pass


class AccountTable(Base):
    __tablename__ = "rf_accounts"

    account_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    score: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class CurrencyTable(Base):
    __tablename__ = "rf_currencies"

    account_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    currency_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    amount: Mapped[int] = mapped_column(Integer, default=0)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class RewardTrackTable(Base):
    __tablename__ = "rf_reward_tracks"

    account_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    kind: Mapped[str] = mapped_column(String(32), primary_key=True)
    anchor_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    last_claim_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    claimed: Mapped[list[int]] = mapped_column(JSON, default=list)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class EntitlementTable(Base):
    __tablename__ = "rf_entitlements"

    account_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    kind: Mapped[str] = mapped_column(String(32), primary_key=True)
    template_id: Mapped[str] = mapped_column(String(128), primary_key=True)


class InventoryItemTable(Base):
    __tablename__ = "rf_inventory_items"

    unique_id: Mapped[str] = mapped_column(String(32), primary_key=True)
    account_id: Mapped[str] = mapped_column(String(64), index=True)
    template_id: Mapped[str] = mapped_column(String(128))
    level: Mapped[int] = mapped_column(Integer, default=0)
    upgrades: Mapped[dict] = mapped_column(JSON, default=dict)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class LevelProgressTable(Base):
    __tablename__ = "rf_level_progress"

    account_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    axis: Mapped[str] = mapped_column(String(16), primary_key=True)
    subject_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    level: Mapped[int] = mapped_column(Integer, default=1)
    exp: Mapped[int] = mapped_column(Integer, default=0)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class BattlePassTable(Base):
    __tablename__ = "rf_battle_pass"

    account_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    xp: Mapped[int] = mapped_column(Integer, default=0)
    level: Mapped[int] = mapped_column(Integer, default=1)
    premium: Mapped[bool] = mapped_column(Boolean, default=False)
    claimed: Mapped[list[str]] = mapped_column(JSON, default=list)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class QuestProgressTable(Base):
    __tablename__ = "rf_quest_progress"

    account_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    quest_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    progress: Mapped[int] = mapped_column(Integer, default=0)
    completed: Mapped[bool] = mapped_column(Boolean, default=False)
    kind: Mapped[str] = mapped_column(String(16), default=QuestKind.ONE_TIME.value)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class CouponRedemptionTable(Base):
    __tablename__ = "rf_coupon_redemptions"

    account_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    coupon_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    redeemed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))


class SQLLedgerView:
    """:class:`LedgerView` over one account's rows in a synchronous session.

    Runs inside ``AsyncSession.run_sync``; every write is flushed immediately
    so later reads in the same unit observe it.
    """

    def __init__(self, session: Session, account_id: str) -> None:
        self._session = session
        self.account_id = account_id

    def _get(self, table: type[Any], *key: str) -> Any:
        return self._session.get(table, (self.account_id, *key) if key else self.account_id)

    def _add(self, row: Any) -> None:
        self._session.add(row)
        self._session.flush()

    # currencies

    @property
    def balances(self) -> dict[str, int]:
        rows = self._session.scalars(
            select(CurrencyTable).where(CurrencyTable.account_id == self.account_id)
        )
        return {row.currency_id: row.amount for row in rows}

    def balance(self, currency: str) -> int:
        row = self._get(CurrencyTable, currency)
        return row.amount if row else 0

    def set_balance(self, currency: str, amount: int) -> None:
        if amount < 0:
            raise ValueError(f"Balance for {currency} cannot be negative: {amount}")
        row = self._get(CurrencyTable, currency)
        if row is None:
            self._add(CurrencyTable(account_id=self.account_id, currency_id=currency, amount=amount))
        else:
            row.amount = amount

    # entitlements

    def owns(self, kind: EntitlementKind, template_id: str) -> bool:
        return self._get(EntitlementTable, kind.value, template_id) is not None

    def add_entitlement(self, kind: EntitlementKind, template_id: str) -> None:
        if not self.owns(kind, template_id):
            self._add(EntitlementTable(account_id=self.account_id, kind=kind.value, template_id=template_id))

    def entitlements(self, kind: EntitlementKind) -> frozenset[str]:
        rows = self._session.scalars(
            select(EntitlementTable.template_id).where(
                EntitlementTable.account_id == self.account_id, EntitlementTable.kind == kind.value
            )
        )
        return frozenset(rows)

    # inventory

    def has_unique_id(self, unique_id: str) -> bool:
        return self._session.get(InventoryItemTable, unique_id) is not None

    def _inventory_row(self, unique_id: str) -> InventoryItemTable | None:
        row = self._session.get(InventoryItemTable, unique_id)
        if row is None or row.account_id != self.account_id:
            return None
        return row

    def inventory_item(self, unique_id: str) -> InventoryItemInstance | None:
        row = self._inventory_row(unique_id)
        return _to_instance(row) if row else None

    def put_inventory_item(self, item: InventoryItemInstance) -> None:
        upgrades = {str(stat): level for stat, level in item.upgrades.items()}
        row = self._inventory_row(item.unique_id)
        if row is None:
            self._add(
                InventoryItemTable(
                    unique_id=item.unique_id,
                    account_id=self.account_id,
                    template_id=item.template_id,
                    level=item.level,
                    upgrades=upgrades,
                )
            )
        else:
            row.level = item.level
            row.upgrades = upgrades

    def remove_inventory_item(self, unique_id: str) -> None:
        row = self._inventory_row(unique_id)
        if row is not None:
            self._session.delete(row)
            self._session.flush()

    def inventory_items(self, template_id: str | None = None) -> list[InventoryItemInstance]:
        stmt = select(InventoryItemTable).where(InventoryItemTable.account_id == self.account_id)
        if template_id is not None:
            stmt = stmt.where(InventoryItemTable.template_id == template_id)
        return [_to_instance(row) for row in self._session.scalars(stmt.order_by(InventoryItemTable.unique_id))]

    # levels

    def _progress(self, axis: str, subject_id: str) -> LevelProgress:
        row = self._get(LevelProgressTable, axis, subject_id)
        return LevelProgress(row.level, row.exp) if row else LevelProgress()

    def _save_progress(self, axis: str, subject_id: str, progress: LevelProgress) -> None:
        row = self._get(LevelProgressTable, axis, subject_id)
        if row is None:
            self._add(
                LevelProgressTable(
                    account_id=self.account_id,
                    axis=axis,
                    subject_id=subject_id,
                    level=progress.level,
                    exp=progress.exp,
                )
            )
        else:
            row.level = progress.level
            row.exp = progress.exp

    def account_progress(self) -> LevelProgress:
        return self._progress(ACCOUNT_AXIS, "")

    def save_account_progress(self, progress: LevelProgress) -> None:
        self._save_progress(ACCOUNT_AXIS, "", progress)

    def character_progress(self, character_id: str) -> LevelProgress:
        return self._progress(CHARACTER_AXIS, character_id)

    def save_character_progress(self, character_id: str, progress: LevelProgress) -> None:
        self._save_progress(CHARACTER_AXIS, character_id, progress)

    def mastery_progress(self, character_id: str) -> LevelProgress:
        return self._progress(MASTERY_AXIS, character_id)

    def save_mastery_progress(self, character_id: str, progress: LevelProgress) -> None:
        self._save_progress(MASTERY_AXIS, character_id, progress)

    def character_ids(self) -> list[str]:
        rows = self._session.scalars(
            select(LevelProgressTable.subject_id)
            .where(
                LevelProgressTable.account_id == self.account_id,
                LevelProgressTable.axis.in_((CHARACTER_AXIS, MASTERY_AXIS)),
            )
            .distinct()
        )
        return sorted(rows)

    # reward tracks

    def track(self, kind: TrackKind) -> RewardTrack:
        row = self._get(RewardTrackTable, kind.value)
        if row is None:
            return RewardTrack(kind=kind)
        return RewardTrack(
            kind=kind,
            anchor_date=row.anchor_date,
            last_claim_date=row.last_claim_date,
            claimed=ClaimedSet(row.claimed or ()),
        )

    def save_track(self, track: RewardTrack) -> None:
        row = self._get(RewardTrackTable, track.kind.value)
        if row is None:
            self._add(
                RewardTrackTable(
                    account_id=self.account_id,
                    kind=track.kind.value,
                    anchor_date=track.anchor_date,
                    last_claim_date=track.last_claim_date,
                    claimed=list(track.claimed),
                )
            )
        else:
            row.anchor_date = track.anchor_date
            row.last_claim_date = track.last_claim_date
            row.claimed = list(track.claimed)

    def track_kinds(self) -> list[TrackKind]:
        rows = self._session.scalars(
            select(RewardTrackTable.kind).where(RewardTrackTable.account_id == self.account_id)
        )
        present = set(rows)
        return [kind for kind in TrackKind if kind.value in present]

    # battle pass

    def battle_pass(self) -> BattlePassProgress:
        row = self._get(BattlePassTable)
        if row is None:
            return BattlePassProgress()
        return BattlePassProgress(xp=row.xp, level=row.level, premium=row.premium, claimed=set(row.claimed or ()))

    def save_battle_pass(self, progress: BattlePassProgress) -> None:
        row = self._get(BattlePassTable)
        if row is None:
            self._add(
                BattlePassTable(
                    account_id=self.account_id,
                    xp=progress.xp,
                    level=progress.level,
                    premium=progress.premium,
                    claimed=sorted(progress.claimed),
                )
            )
        else:
            row.xp = progress.xp
            row.level = progress.level
            row.premium = progress.premium
            row.claimed = sorted(progress.claimed)

    # quests

    def quest(self, quest_id: str) -> QuestProgress:
        row = self._get(QuestProgressTable, quest_id)
        if row is None:
            return QuestProgress()
        return QuestProgress(row.progress, row.completed, QuestKind(row.kind))

    def save_quest(self, quest_id: str, progress: QuestProgress) -> None:
        row = self._get(QuestProgressTable, quest_id)
        if row is None:
            self._add(
                QuestProgressTable(
                    account_id=self.account_id,
                    quest_id=quest_id,
                    progress=progress.progress,
                    completed=progress.completed,
                    kind=progress.kind.value,
                )
            )
        else:
            row.progress = progress.progress
            row.completed = progress.completed
            row.kind = progress.kind.value

    def quest_ids(self) -> list[str]:
        rows = self._session.scalars(
            select(QuestProgressTable.quest_id).where(QuestProgressTable.account_id == self.account_id)
        )
        return sorted(rows)

    # coupons and score

    def coupon_used(self, coupon_id: str) -> bool:
        return self._get(CouponRedemptionTable, coupon_id) is not None

    def mark_coupon_used(self, coupon_id: str) -> None:
        if not self.coupon_used(coupon_id):
            self._add(
                CouponRedemptionTable(
                    account_id=self.account_id,
                    coupon_id=coupon_id,
                    redeemed_at=datetime.now(timezone.utc),
                )
            )

    def used_coupons(self) -> frozenset[str]:
        rows = self._session.scalars(
            select(CouponRedemptionTable.coupon_id).where(CouponRedemptionTable.account_id == self.account_id)
        )
        return frozenset(rows)

    def score(self) -> int:
        row = self._get(AccountTable)
        return row.score if row else 0

    def set_score(self, score: int) -> None:
        row = self._get(AccountTable)
        if row is None:
            raise LookupError(f"Account {self.account_id} is not provisioned")
        row.score = max(0, score)


def _to_instance(row: InventoryItemTable) -> InventoryItemInstance:
    return InventoryItemInstance(
        unique_id=row.unique_id,
        template_id=row.template_id,
        level=row.level,
        upgrades={int(stat): int(level) for stat, level in (row.upgrades or {}).items()},
    )


class _RuleRejected(Exception):
    """Raised inside a unit to roll back the writes of a failed rule."""

    def __init__(self, result: Result) -> None:
        super().__init__(result.reason_code)
        self.result = result


_CONTENTION_ERRORS = (StaleDataError, IntegrityError, OperationalError)


class SQLAlchemyBackend(LedgerBackend):
    """Run each rule in one database transaction with bounded optimistic retries."""

    name = "sqlalchemy"

    def __init__(
        self,
        rules: EconomyRules,
        dsn: str,
        *,
        echo: bool = False,
        retry: RetryConfig | None = None,
        clock: Clock | None = None,
        rng: Random | None = None,
        initial_balances: dict[str, int] | None = None,
    ) -> None:
        super().__init__(rules, clock=clock)
        self._initial_balances = dict(initial_balances or {})
        self._engine = create_async_engine(dsn, echo=echo)
        self._session_factory = async_sessionmaker(self._engine, expire_on_commit=False)
        self._retry = retry or RetryConfig()
        self._rng = rng or Random()

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        async with self._session_factory() as session:
            yield session

    async def init_models(self) -> None:
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self._engine.dispose()

    async def _provision(self, account_id: str, today: date) -> None:
        def provision(session: Session) -> None:
            if session.get(AccountTable, account_id) is not None:
                return
            session.add(AccountTable(account_id=account_id, score=0, created_at=datetime.now(timezone.utc)))
            session.add(
                RewardTrackTable(
                    account_id=account_id,
                    kind=TrackKind.NEW_PLAYER.value,
                    anchor_date=today,
                    last_claim_date=None,
                    claimed=[],
                )
            )
            session.add(BattlePassTable(account_id=account_id, xp=0, level=1, premium=False, claimed=[]))
            for currency, amount in self.rules.opening_balances(self._initial_balances).items():
                session.add(CurrencyTable(account_id=account_id, currency_id=currency, amount=amount))

        try:
            async with self._session_factory() as session:
                async with session.begin():
                    await session.run_sync(provision)
        except IntegrityError:
            # another session provisioned the account concurrently
            logger.debug("Account %s provisioned concurrently", account_id)

    async def _execute(self, account_id: str, operation: Callable[[LedgerView], Result]) -> Result:
        def unit(session: Session) -> Result:
            result = operation(SQLLedgerView(session, account_id))
            if not result.success:
                raise _RuleRejected(result)
            return result

        attempts = self._retry.max_attempts
        for attempt in range(1, attempts + 1):
            try:
                async with self._session_factory() as session:
                    async with session.begin():
                        return await session.run_sync(unit)
            except _RuleRejected as rejected:
                return rejected.result
            except _CONTENTION_ERRORS as exc:
                if attempt >= attempts:
                    raise TransportError(
                        f"Transaction for account {account_id} still contended after {attempts} attempts"
                    ) from exc
                delay = self._backoff(attempt)
                logger.warning(
                    "Contention on account %s (attempt %s/%s), retrying in %.3fs: %s",
                    account_id,
                    attempt,
                    attempts,
                    delay,
                    type(exc).__name__,
                )
                await asyncio.sleep(delay)
        raise TransportError(f"Transaction for account {account_id} was never attempted")

    async def _read(self, account_id: str, reader: Callable[[Any], T]) -> T:
        async with self._session_factory() as session:
            return await session.run_sync(lambda sync_session: reader(SQLLedgerView(sync_session, account_id)))

    def _backoff(self, attempt: int) -> float:
        ceiling = min(self._retry.max_delay, self._retry.base_delay * (2 ** (attempt - 1)))
        return self._rng.uniform(ceiling / 2, ceiling)
