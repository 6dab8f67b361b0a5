"""Exceptions raised by RewardForge domain services."""

from __future__ import annotations

from typing import NoReturn

from .results import ReasonCode, Result


class RewardForgeError(RuntimeError):
    """Base class for domain exceptions."""

    retryable = False

    def __init__(self, message: str, *, reason: ReasonCode = ReasonCode.GENERIC_ERROR) -> None:
        super().__init__(message)
        self.reason = reason


class ClaimValidationError(RewardForgeError):
    """Raised when a local pre-check rejects an action before any remote call."""

    def __init__(self, message: str, *, reason: ReasonCode, failure: object | None = None) -> None:
        super().__init__(message, reason=reason)
        self.failure = failure


class NotFoundError(RewardForgeError):
    """Raised when a coupon, quest, item or character is unknown."""

    def __init__(self, message: str) -> None:
        super().__init__(message, reason=ReasonCode.NOT_FOUND)


class ConflictError(RewardForgeError):
    """Raised when the remote store rejects a claim that is already satisfied."""


class InsufficientResourceError(RewardForgeError):
    """Raised when a wallet cannot satisfy a spend operation."""

    def __init__(self, message: str) -> None:
        super().__init__(message, reason=ReasonCode.INSUFFICIENT_CURRENCY)


class TransportError(RewardForgeError):
    """Raised on network, serialization or contention failures."""

    retryable = True

    def __init__(self, message: str) -> None:
        super().__init__(message, reason=ReasonCode.GENERIC_ERROR)


class UnauthenticatedError(RewardForgeError):
    """Raised when no valid session is open."""

    def __init__(self, message: str = "No valid session") -> None:
        super().__init__(message, reason=ReasonCode.INVALID_CREDENTIALS)


_REMOTE_CONFLICTS = {
    ReasonCode.ALREADY_CLAIMED,
    ReasonCode.ALREADY_CLAIMED_TODAY,
    ReasonCode.NOT_AVAILABLE_YET,
    ReasonCode.MAX_LEVEL,
}


def raise_for_result(result: Result, *, action: str) -> None:
    """Raise the exception matching a failed result; no-op on success."""
    if result.success:
        return
    _raise(result.reason or ReasonCode.GENERIC_ERROR, action)


def _raise(reason: ReasonCode, action: str) -> NoReturn:
    message = f"{action} rejected: {reason.value}"
    if reason in _REMOTE_CONFLICTS:
        raise ConflictError(message, reason=reason)
    if reason is ReasonCode.INSUFFICIENT_CURRENCY:
        raise InsufficientResourceError(message)
    if reason is ReasonCode.INVALID_CREDENTIALS:
        raise UnauthenticatedError(message)
    if reason is ReasonCode.NOT_FOUND:
        raise NotFoundError(message)
    if reason is ReasonCode.REQUIREMENT_NOT_MET:
        raise ClaimValidationError(message, reason=reason)
    raise TransportError(message)
