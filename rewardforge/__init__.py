"""RewardForge framework public API."""

from .app import EconomyApp
from .config import RewardForgeConfig
from .domain.catalog import RewardCatalog
from .domain.service import EconomyService
from .registry import CurrencyRegistryFacade, RewardRegistry

__all__ = [
    "EconomyApp",
    "EconomyService",
    "RewardForgeConfig",
    "RewardCatalog",
    "CurrencyRegistryFacade",
    "RewardRegistry",
]
