"""Authoritative store backends for RewardForge."""

from .base import AccountSnapshot, BackendService, CharacterProgress, LedgerBackend, SessionSummary
from .memory import InMemoryBackend
from .rpc import HttpRpcBackend
from .sqlalchemy import SQLAlchemyBackend

__all__ = [
    "AccountSnapshot",
    "BackendService",
    "CharacterProgress",
    "LedgerBackend",
    "SessionSummary",
    "InMemoryBackend",
    "HttpRpcBackend",
    "SQLAlchemyBackend",
]
