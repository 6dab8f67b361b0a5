"""Uniform operation results shared by every backend."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Mapping

if TYPE_CHECKING:
    from .granter import GrantDelta
    from .leveling import LevelProgress


class ReasonCode(str, Enum):
    """Closed vocabulary of failure reasons."""

    ALREADY_CLAIMED = "already_claimed"
    ALREADY_CLAIMED_TODAY = "already_claimed_today"
    NOT_AVAILABLE_YET = "not_available_yet"
    INSUFFICIENT_CURRENCY = "insufficient_currency"
    INVALID_CREDENTIALS = "invalid_credentials"
    GENERIC_ERROR = "generic_error"
    MAX_LEVEL = "max_level"
    NOT_FOUND = "not_found"
    REQUIREMENT_NOT_MET = "requirement_not_met"

    @classmethod
    def parse(cls, raw: Any, legacy: Mapping[str, "ReasonCode"] | None = None) -> "ReasonCode":
        """Map a wire reason (including legacy codes) onto the vocabulary.

        Older servers reuse the numeric codes ``"0"``/``"1"``/``"2"`` with a
        different meaning per operation, so callers pass the table for the
        operation they issued. Without one, :data:`CLAIM_LEGACY_CODES` applies.
        """
        if isinstance(raw, ReasonCode):
            return raw
        if raw is None:
            return cls.GENERIC_ERROR
        text = str(raw).strip().strip('"').lower()
        try:
            return cls(text)
        except ValueError:
            pass
        codes = CLAIM_LEGACY_CODES if legacy is None else legacy
        if text in codes:
            return codes[text]
        return _LEGACY_ALIASES.get(text, cls.GENERIC_ERROR)


CLAIM_LEGACY_CODES: dict[str, ReasonCode] = {
    "0": ReasonCode.ALREADY_CLAIMED,
    "1": ReasonCode.NOT_AVAILABLE_YET,
    "2": ReasonCode.GENERIC_ERROR,
}

DAILY_CLAIM_LEGACY_CODES: dict[str, ReasonCode] = {
    "0": ReasonCode.ALREADY_CLAIMED_TODAY,
    "1": ReasonCode.NOT_AVAILABLE_YET,
    "2": ReasonCode.GENERIC_ERROR,
}

UPGRADE_LEGACY_CODES: dict[str, ReasonCode] = {
    "0": ReasonCode.MAX_LEVEL,
    "1": ReasonCode.INSUFFICIENT_CURRENCY,
    "2": ReasonCode.GENERIC_ERROR,
}

SHOP_LEGACY_CODES: dict[str, ReasonCode] = {
    "0": ReasonCode.NOT_FOUND,
    "1": ReasonCode.INSUFFICIENT_CURRENCY,
    "2": ReasonCode.ALREADY_CLAIMED,
}

COUPON_LEGACY_CODES: dict[str, ReasonCode] = {
    "0": ReasonCode.ALREADY_CLAIMED,
    "1": ReasonCode.NOT_FOUND,
    "2": ReasonCode.GENERIC_ERROR,
}

_LEGACY_ALIASES: dict[str, ReasonCode] = {
    "already_today": ReasonCode.ALREADY_CLAIMED_TODAY,
    "already_used": ReasonCode.ALREADY_CLAIMED,
    "already_owned": ReasonCode.ALREADY_CLAIMED,
    "invalid_index": ReasonCode.NOT_AVAILABLE_YET,
    "bad_index": ReasonCode.NOT_AVAILABLE_YET,
    "max": ReasonCode.MAX_LEVEL,
    "insufficient": ReasonCode.INSUFFICIENT_CURRENCY,
    "not_enough_currency": ReasonCode.INSUFFICIENT_CURRENCY,
    "unauthorized": ReasonCode.INVALID_CREDENTIALS,
    "invalid": ReasonCode.NOT_FOUND,
    "err": ReasonCode.GENERIC_ERROR,
}


@dataclass(slots=True)
class Result:
    """Outcome of one remote operation.

    ``balances`` holds the authoritative post-operation amount of every
    currency the operation touched. ``delta`` and ``progress`` are filled in
    when the backend echoes what it granted; callers fall back to local
    computation otherwise.
    """

    success: bool
    reason: ReasonCode | None = None
    balances: Mapping[str, int] = field(default_factory=dict)
    delta: "GrantDelta | None" = None
    progress: "LevelProgress | None" = None
    levels_gained: int = 0
    payload: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, **kwargs: Any) -> "Result":
        return cls(success=True, **kwargs)

    @classmethod
    def fail(cls, reason: ReasonCode | str) -> "Result":
        return cls(success=False, reason=ReasonCode.parse(reason))

    @property
    def reason_code(self) -> str | None:
        return self.reason.value if self.reason else None
