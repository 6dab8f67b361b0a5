"""Domain models and services."""

from .catalog import RewardCatalog
from .claims import ClaimFailure, ClaimValidator, validate_claim
from .economy import Currency, CurrencyRegistry, Wallet
from .events import EventBus
from .exceptions import (
    ClaimValidationError,
    ConflictError,
    InsufficientResourceError,
    NotFoundError,
    RewardForgeError,
    TransportError,
    UnauthenticatedError,
)
from .granter import EntitlementGranter, GrantDelta
from .ledger import BattlePassProgress, InventoryItemInstance, LedgerCache, QuestProgress
from .leveling import LevelingCurve, LevelingCurves, LevelProgress, LevelUp
from .reconciliation import ReconciliationLoader, ReconciliationReport
from .results import ReasonCode, Result
from .rewards import (
    BattlePassItem,
    CharacterDefinition,
    CouponDefinition,
    EntitlementKind,
    ItemDefinition,
    ItemUpgrade,
    PassTier,
    QuestDefinition,
    QuestKind,
    QuestRequirement,
    RequirementType,
    RewardDescriptor,
    RewardKind,
    ShopItem,
    TrackKind,
)
from .service import EconomyService
from .tracks import ClaimedSet, RewardTrack, TrackState, TrackStatus
from .transactions import EconomyRules, SessionSummary

__all__ = [
    "RewardCatalog",
    "ClaimFailure",
    "ClaimValidator",
    "validate_claim",
    "Currency",
    "CurrencyRegistry",
    "Wallet",
    "EventBus",
    "ClaimValidationError",
    "ConflictError",
    "InsufficientResourceError",
    "NotFoundError",
    "RewardForgeError",
    "TransportError",
    "UnauthenticatedError",
    "EntitlementGranter",
    "GrantDelta",
    "BattlePassProgress",
    "InventoryItemInstance",
    "LedgerCache",
    "QuestProgress",
    "LevelingCurve",
    "LevelingCurves",
    "LevelProgress",
    "LevelUp",
    "ReconciliationLoader",
    "ReconciliationReport",
    "ReasonCode",
    "Result",
    "BattlePassItem",
    "CharacterDefinition",
    "CouponDefinition",
    "EntitlementKind",
    "ItemDefinition",
    "ItemUpgrade",
    "PassTier",
    "QuestDefinition",
    "QuestKind",
    "QuestRequirement",
    "RequirementType",
    "RewardDescriptor",
    "RewardKind",
    "ShopItem",
    "TrackKind",
    "EconomyService",
    "ClaimedSet",
    "RewardTrack",
    "TrackState",
    "TrackStatus",
    "EconomyRules",
    "SessionSummary",
]
