"""Local, network-free pre-checks for reward track claims."""

from __future__ import annotations

from datetime import date
from enum import Enum

from .catalog import RewardCatalog
from .exceptions import ClaimValidationError
from .ledger import LedgerView
from .results import ReasonCode
from .rewards import TrackKind
from .tracks import RewardTrack, elapsed_days, refresh_track


class ClaimFailure(str, Enum):
    OUT_OF_RANGE = "out_of_range"
    ALREADY_CLAIMED = "already_claimed"
    ALREADY_CLAIMED_TODAY = "already_claimed_today"
    NOT_YET_AVAILABLE = "not_yet_available"

    @property
    def reason(self) -> ReasonCode:
        return _FAILURE_REASONS[self]


_FAILURE_REASONS = {
    ClaimFailure.OUT_OF_RANGE: ReasonCode.NOT_AVAILABLE_YET,
    ClaimFailure.ALREADY_CLAIMED: ReasonCode.ALREADY_CLAIMED,
    ClaimFailure.ALREADY_CLAIMED_TODAY: ReasonCode.ALREADY_CLAIMED_TODAY,
    ClaimFailure.NOT_YET_AVAILABLE: ReasonCode.NOT_AVAILABLE_YET,
}


def validate_claim(track: RewardTrack, day_index: int, today: date, length: int) -> ClaimFailure | None:
    """Return the first rule ``day_index`` breaks, or ``None`` when claimable.

    Order matters: range, duplicate, one-per-day, strict sequence, then the
    wall-clock gate.
    """
    if day_index < 0 or day_index >= length:
        return ClaimFailure.OUT_OF_RANGE
    if day_index in track.claimed:
        return ClaimFailure.ALREADY_CLAIMED
    if track.last_claim_date == today:
        return ClaimFailure.ALREADY_CLAIMED_TODAY
    if day_index != len(track.claimed):
        return ClaimFailure.NOT_YET_AVAILABLE
    if day_index > elapsed_days(track.anchor_date, today):
        return ClaimFailure.NOT_YET_AVAILABLE
    return None


class ClaimValidator:
    """Validate claims against a ledger, applying the lazy daily reset first."""

    def __init__(self, catalog: RewardCatalog) -> None:
        self._catalog = catalog

    def current_track(self, view: LedgerView, kind: TrackKind, today: date) -> RewardTrack:
        """Detached copy of the track with any due daily reset applied."""
        track = view.track(kind)
        refresh_track(track, self._catalog.track_length(kind), today)
        return track

    def check(self, view: LedgerView, kind: TrackKind, day_index: int, today: date) -> ClaimFailure | None:
        track = self.current_track(view, kind, today)
        return validate_claim(track, day_index, today, self._catalog.track_length(kind))

    def ensure(self, view: LedgerView, kind: TrackKind, day_index: int, today: date) -> None:
        failure = self.check(view, kind, day_index, today)
        if failure is not None:
            raise ClaimValidationError(
                f"Cannot claim {kind.value} reward {day_index}: {failure.value}",
                reason=failure.reason,
                failure=failure,
            )
