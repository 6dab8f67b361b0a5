"""Date-gated reward tracks (daily and new-player).

A track is an ordered sequence of reward slots. Slot ``i`` can be claimed
only when it is the next unclaimed slot and at least ``i`` calendar days have
passed since the anchor date; at most one slot is claimed per calendar day.
The daily track restarts once every slot has been claimed and a full day has
passed since the last claim. The restart is evaluated lazily whenever the
track is read, never on a timer.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, MutableSet
from dataclasses import dataclass, field
from datetime import date
from enum import Enum

from .rewards import TrackKind

COMPACT_LIMIT = 64


class ClaimedSet(MutableSet):
    """Set of claimed slot indices with an optional 64-bit compact encoding."""

    def __init__(self, items: Iterable[int] = ()) -> None:
        self._items: set[int] = set()
        for item in items:
            self.add(item)

    def __contains__(self, value: object) -> bool:
        return value in self._items

    def __iter__(self) -> Iterator[int]:
        return iter(sorted(self._items))

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"ClaimedSet({sorted(self._items)!r})"

    def add(self, value: int) -> None:
        index = int(value)
        if index < 0:
            raise ValueError(f"Claimed index must be non-negative, got {index}")
        self._items.add(index)

    def discard(self, value: int) -> None:
        self._items.discard(value)

    def copy(self) -> "ClaimedSet":
        return ClaimedSet(self._items)

    def to_bitmask(self) -> int:
        """Encode as an unsigned 64-bit mask; refuses to truncate."""
        overflow = [index for index in self._items if index >= COMPACT_LIMIT]
        if overflow:
            raise OverflowError(
                f"Indices {sorted(overflow)} exceed the {COMPACT_LIMIT}-slot compact encoding"
            )
        bits = 0
        for index in self._items:
            bits |= 1 << index
        return bits

    @classmethod
    def from_bitmask(cls, bits: int) -> "ClaimedSet":
        bits = int(bits)
        if bits < 0 or bits >> COMPACT_LIMIT:
            raise OverflowError(f"Bitmask {bits} does not fit in {COMPACT_LIMIT} bits")
        return cls(index for index in range(COMPACT_LIMIT) if bits & (1 << index))


@dataclass(slots=True)
class RewardTrack:
    kind: TrackKind
    anchor_date: date | None = None
    last_claim_date: date | None = None
    claimed: ClaimedSet = field(default_factory=ClaimedSet)

    def copy(self) -> "RewardTrack":
        return RewardTrack(
            kind=self.kind,
            anchor_date=self.anchor_date,
            last_claim_date=self.last_claim_date,
            claimed=self.claimed.copy(),
        )


class TrackState(str, Enum):
    CLAIMABLE = "claimable"
    LOCKED_TODAY = "locked_today"
    LOCKED_NOT_YET_AVAILABLE = "locked_not_yet_available"
    CYCLE_COMPLETE = "cycle_complete"


@dataclass(slots=True)
class TrackStatus:
    state: TrackState
    next_index: int | None
    claimed_count: int
    length: int


def elapsed_days(anchor: date | None, today: date) -> int:
    """Whole calendar days since ``anchor``; an unset anchor means today."""
    if anchor is None:
        return 0
    return (today - anchor).days


def needs_reset(track: RewardTrack, length: int, today: date) -> bool:
    return (
        track.kind is TrackKind.DAILY
        and length > 0
        and len(track.claimed) >= length
        and track.last_claim_date is not None
        and (today - track.last_claim_date).days >= 1
    )


def refresh_track(track: RewardTrack, length: int, today: date) -> bool:
    """Apply the lazy daily cycle reset in place. Returns True when it fired."""
    if not needs_reset(track, length, today):
        return False
    track.claimed.clear()
    track.anchor_date = today
    track.last_claim_date = None
    return True


def mark_claimed(track: RewardTrack, index: int, today: date) -> None:
    if track.anchor_date is None:
        track.anchor_date = today
    track.claimed.add(index)
    track.last_claim_date = today


def track_status(track: RewardTrack, length: int, today: date) -> TrackStatus:
    """Evaluate the track state without mutating it."""
    if needs_reset(track, length, today):
        return TrackStatus(TrackState.CLAIMABLE, 0, 0, length)

    claimed_count = len(track.claimed)
    next_index = claimed_count
    if next_index >= length:
        return TrackStatus(TrackState.CYCLE_COMPLETE, None, claimed_count, length)
    if track.last_claim_date == today:
        return TrackStatus(TrackState.LOCKED_TODAY, next_index, claimed_count, length)
    if next_index > elapsed_days(track.anchor_date, today):
        return TrackStatus(TrackState.LOCKED_NOT_YET_AVAILABLE, next_index, claimed_count, length)
    return TrackStatus(TrackState.CLAIMABLE, next_index, claimed_count, length)
