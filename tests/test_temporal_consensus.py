"""Tests for the per-position majority vote."""

import pytest

from temporal_consensus import TemporalConsensus

FACE = ['R', 'O', 'Y', 'G', 'R', 'B', 'W', 'R', 'O']


def with_changes(colors, positions, new='G'):
    out = list(colors)
    for p in positions:
        out[p] = new
    return out


class TestTemporalConsensus:
    def test_all_red_after_six_frames(self):
        voter = TemporalConsensus(capacity=6, min_frames=5, quorum=5 / 6)
        results = [voter.add_frame(['R'] * 9) for _ in range(6)]
        assert results[-1] == ['R'] * 9

    def test_no_vote_before_min_frames(self):
        voter = TemporalConsensus()
        assert all(voter.add_frame(FACE) is None for _ in range(4))
        assert voter.add_frame(FACE) == FACE

    def test_wrong_length_ignored(self):
        voter = TemporalConsensus()
        assert voter.add_frame(FACE[:8]) is None
        assert len(voter) == 0

    def test_buffer_is_bounded(self):
        voter = TemporalConsensus(capacity=10)
        for _ in range(25):
            voter.add_frame(FACE)
        assert len(voter) == 10

    def test_single_flicker_outvoted(self):
        voter = TemporalConsensus()
        for _ in range(5):
            voter.add_frame(FACE)
        noisy = with_changes(FACE, [2])
        assert voter.add_frame(noisy) == FACE

    def test_big_change_clears_buffer(self):
        voter = TemporalConsensus()
        for _ in range(6):
            voter.add_frame(FACE)
        moved = with_changes(FACE, [0, 1, 2])
        assert voter.add_frame(moved) is None
        assert len(voter) == 1

    def test_two_changes_keep_buffer(self):
        voter = TemporalConsensus()
        for _ in range(6):
            voter.add_frame(FACE)
        voter.add_frame(with_changes(FACE, [0, 1]))
        assert len(voter) == 7

    def test_split_vote_has_no_quorum(self):
        voter = TemporalConsensus(capacity=10, min_frames=5, quorum=0.6, shift_reset=0)
        other = with_changes(FACE, [3], new='B')
        out = None
        for i in range(10):
            out = voter.add_frame(FACE if i % 2 else other)
        # 5 of 10 at position 3 is below the 6 needed
        assert out is None

    def test_required_votes_rounding(self):
        voter = TemporalConsensus(capacity=6, quorum=5 / 6)
        for _ in range(6):
            voter.add_frame(FACE)
        assert voter.required_votes() == 5

    def test_reset(self):
        voter = TemporalConsensus()
        for _ in range(5):
            voter.add_frame(FACE)
        voter.reset()
        assert len(voter) == 0
        assert voter.consensus() is None

    @pytest.mark.parametrize("kwargs", [dict(capacity=0), dict(min_frames=0), dict(quorum=0.0), dict(quorum=1.5)])
    def test_invalid_arguments(self, kwargs):
        with pytest.raises(ValueError):
            TemporalConsensus(**kwargs)
