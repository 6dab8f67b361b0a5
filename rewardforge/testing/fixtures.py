"""Pytest fixtures for RewardForge."""

from __future__ import annotations

import pytest

from ..app import EconomyApp
from ..config import EconomyConfig, RewardForgeConfig
from .clock import FrozenClock
from .factory import CatalogFactory


@pytest.fixture()
def frozen_clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture()
def memory_app(frozen_clock: FrozenClock) -> EconomyApp:
    return app_fixture(clock=frozen_clock)


def app_fixture(*, clock=None, starting_balances: dict[str, int] | None = None, **kwargs) -> EconomyApp:
    """Memory-backed app with the factory catalog registered."""
    config = RewardForgeConfig(
        economy=EconomyConfig(
            battle_pass_price=100,
            starting_balances=starting_balances if starting_balances is not None else {"gold": 200, "gems": 150},
        ),
        **kwargs,
    )
    app = EconomyApp(config, clock=clock or FrozenClock())
    CatalogFactory().build(app.rewards.catalog)
    return app
