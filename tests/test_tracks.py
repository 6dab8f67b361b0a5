from datetime import date

import pytest

from rewardforge.domain.rewards import TrackKind
from rewardforge.domain.tracks import (
    COMPACT_LIMIT,
    ClaimedSet,
    RewardTrack,
    TrackState,
    mark_claimed,
    refresh_track,
    track_status,
)

DAY = date(2024, 3, 10)


def test_bitmask_round_trip_preserves_indices():
    claimed = ClaimedSet([0, 3, 63])
    bits = claimed.to_bitmask()
    assert bits == (1 | 1 << 3 | 1 << 63)
    assert ClaimedSet.from_bitmask(bits) == claimed


def test_bitmask_refuses_to_truncate():
    with pytest.raises(OverflowError):
        ClaimedSet([COMPACT_LIMIT]).to_bitmask()
    with pytest.raises(OverflowError):
        ClaimedSet.from_bitmask(1 << COMPACT_LIMIT)


def test_claimed_set_rejects_negative_index():
    with pytest.raises(ValueError):
        ClaimedSet([-1])


def test_status_walks_through_states():
    track = RewardTrack(kind=TrackKind.DAILY)
    assert track_status(track, 3, DAY).state is TrackState.CLAIMABLE

    mark_claimed(track, 0, DAY)
    status = track_status(track, 3, DAY)
    assert status.state is TrackState.LOCKED_TODAY
    assert status.next_index == 1

    next_day = date(2024, 3, 11)
    assert track_status(track, 3, next_day).state is TrackState.CLAIMABLE


def test_slot_ahead_of_anchor_is_locked():
    # local clock behind the anchor recorded by the store
    track = RewardTrack(
        kind=TrackKind.NEW_PLAYER,
        anchor_date=date(2024, 3, 11),
        last_claim_date=date(2024, 3, 9),
        claimed=ClaimedSet([0]),
    )
    assert track_status(track, 7, DAY).state is TrackState.LOCKED_NOT_YET_AVAILABLE


def test_new_player_track_never_resets():
    track = RewardTrack(kind=TrackKind.NEW_PLAYER, anchor_date=DAY)
    for index in range(3):
        mark_claimed(track, index, date(2024, 3, 10 + index))
    later = date(2024, 4, 1)
    assert refresh_track(track, 3, later) is False
    assert track_status(track, 3, later).state is TrackState.CYCLE_COMPLETE


def test_status_does_not_mutate_track():
    track = RewardTrack(kind=TrackKind.DAILY, anchor_date=DAY, last_claim_date=DAY, claimed=ClaimedSet([0, 1]))
    status = track_status(track, 2, date(2024, 3, 11))
    assert status.state is TrackState.CLAIMABLE
    assert status.next_index == 0
    assert set(track.claimed) == {0, 1}
