"""Top level application object for RewardForge clients."""

from __future__ import annotations

from random import Random
from typing import Any

from .backends.base import BackendService, Clock
from .backends.memory import InMemoryBackend
from .backends.rpc import HttpRpcBackend
from .backends.sqlalchemy import SQLAlchemyBackend
from .config import RewardForgeConfig
from .domain.catalog import RewardCatalog
from .domain.economy import Currency
from .domain.events import EventBus
from .domain.granter import EntitlementGranter
from .domain.ledger import LedgerCache
from .domain.rewards import TrackKind
from .domain.service import EconomyService
from .domain.transactions import EconomyRules
from .registry import CurrencyRegistryFacade, RewardRegistry


class EconomyApp:
    """Central dependency container used by game clients and tooling."""

    def __init__(
        self,
        config: RewardForgeConfig,
        *,
        backend: BackendService | None = None,
        event_bus: EventBus | None = None,
        granter: EntitlementGranter | None = None,
        clock: Clock | None = None,
        rng: Random | None = None,
    ) -> None:
        self.config = config
        self.event_bus = event_bus or EventBus()
        self.rewards = RewardRegistry()
        self.currencies = CurrencyRegistryFacade()

        for code in self.config.economy.default_currencies:
            self.currencies.currency(Currency(code=code, name=code.title()))

        self._rng = rng or (Random(config.rng_seed) if config.rng_seed is not None else Random())
        self._clock = clock

        economy = self.config.economy
        self.rules = EconomyRules(
            catalog=self.rewards.catalog,
            curves=self.config.leveling.build(),
            granter=granter or EntitlementGranter(currencies=self.currencies.registry),
            currencies=self.currencies.registry,
            gold_currency=economy.gold_currency,
            battle_pass_currency=economy.battle_pass_currency,
            battle_pass_price=economy.battle_pass_price,
            rng=self._rng,
        )

        self._sqlalchemy_backend: SQLAlchemyBackend | None = None
        self.backend = self._wire_backend(backend)
        self.cache = LedgerCache()
        self.service = EconomyService(
            self.backend,
            self.rules,
            cache=self.cache,
            event_bus=self.event_bus,
            clock=clock,
        )

    @property
    def catalog(self) -> RewardCatalog:
        return self.rewards.catalog

    def _wire_backend(self, backend: BackendService | None) -> BackendService:
        if backend is not None:
            return backend

        settings = self.config.backend
        if settings.kind == "memory":
            return InMemoryBackend(
                self.rules,
                clock=self._clock,
                initial_balances=dict(self.config.economy.starting_balances),
            )
        if settings.kind == "sqlalchemy":
            dsn = settings.resolve_dsn()
            if not dsn:
                raise ValueError("SQLAlchemy backend requires a DSN")
            storage = SQLAlchemyBackend(
                self.rules,
                dsn,
                echo=settings.echo_sql,
                retry=self.config.retry,
                clock=self._clock,
                rng=self._rng,
                initial_balances=dict(self.config.economy.starting_balances),
            )
            self._sqlalchemy_backend = storage
            return storage
        if settings.kind == "rpc":
            if not settings.base_url:
                raise ValueError("RPC backend requires a base URL")
            return HttpRpcBackend(settings.base_url, timeout=settings.timeout_seconds)
        raise ValueError(f"Unsupported backend {settings.kind}")

    def snapshot(self) -> dict[str, Any]:
        """Export current configuration for debugging."""
        catalog = self.rewards.catalog
        return {
            "backend": self.config.backend.kind,
            "tracks": {kind.value: catalog.track_length(kind) for kind in TrackKind},
            "battle_pass": [item.pass_id for item in catalog.iter_battle_pass()],
            "quests": [quest.quest_id for quest in catalog.iter_quests()],
            "characters": [character.character_id for character in catalog.iter_characters()],
            "items": [item.item_id for item in catalog.iter_items()],
            "shop": [item.item_id for item in catalog.iter_shop()],
            "coupons": [coupon.coupon_id for coupon in catalog.iter_coupons()],
            "currencies": [currency.code for currency in self.currencies.registry.all()],
        }

    async def init_backend(self) -> None:
        """Initialize backend resources (e.g., database tables)."""
        if self._sqlalchemy_backend:
            await self._sqlalchemy_backend.init_models()

    async def shutdown(self) -> None:
        await self.backend.close()
        if self._sqlalchemy_backend:
            await self._sqlalchemy_backend.dispose()
