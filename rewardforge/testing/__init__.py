"""Testing utilities for RewardForge."""

from .clock import FrozenClock
from .factory import CatalogFactory, RewardFactory
from .fixtures import app_fixture, frozen_clock, memory_app
from .rng import FixedRoll, fixed_roll

__all__ = [
    "CatalogFactory",
    "FixedRoll",
    "FrozenClock",
    "RewardFactory",
    "app_fixture",
    "fixed_roll",
    "frozen_clock",
    "memory_app",
]
