"""
Tests for the TOF event-time estimator.
"""

import math

import numpy as np
import pytest

from domain.config import EventTimeConfig
from domain.species import Species
from services.event_time.combinatorics import hypothesis_combinations, split_into_sets
from services.event_time.estimator import (
    CollisionEventTime,
    EventTimeMaker,
    select_tracks_for_event_time,
)
from services.response.expected import expected_sigma, expected_time


def weighted_mean(values, weights):
    return math.fsum(w * v for v, w in zip(values, weights)) / math.fsum(weights)


class TestCombinatorics:
    """Tests for the hypothesis enumeration and the set split."""

    def test_combination_count_and_order(self):
        """Every assignment appears once, first row all zeros."""
        combinations = hypothesis_combinations(3, 4)
        assert combinations.shape == (81, 4)
        assert combinations[0].tolist() == [0, 0, 0, 0]
        assert combinations[1].tolist() == [0, 0, 0, 1]
        assert len({tuple(row) for row in combinations.tolist()}) == 81

    def test_combinations_are_read_only(self):
        """Cached enumeration cannot be modified by callers."""
        combinations = hypothesis_combinations(3, 2)
        with pytest.raises(ValueError):
            combinations[0, 0] = 2

    def test_invalid_sizes(self):
        """Zero hypotheses or tracks is rejected."""
        with pytest.raises(ValueError, match="must be positive"):
            hypothesis_combinations(0, 3)

    def test_split_is_balanced(self):
        """Set sizes differ by at most one and cover every position."""
        sets = split_into_sets(23, 10)
        sizes = [len(s) for s in sets]
        assert len(sets) == 3
        assert max(sizes) - min(sizes) <= 1
        assert sorted(np.concatenate(sets).tolist()) == list(range(23))

    def test_split_small_sample(self):
        """Fewer tracks than the set size give a single set."""
        sets = split_into_sets(4, 10)
        assert len(sets) == 1
        assert sets[0].tolist() == [0, 1, 2, 3]

    def test_split_empty(self):
        assert split_into_sets(0, 10) == []


class TestTrackSelection:
    """Tests for the event-time track predicate."""

    def test_predicate(self, make_tracks):
        """Each failing condition removes the track."""
        tracks = make_tracks(
            p=[1.0, 0.4, 2.5, 1.0, 1.0, 1.0, 1.0],
            length=[380.0] * 7,
            tof_signal=[13000.0] * 7,
            has_tof=[True, True, True, False, True, True, True],
            has_its=[True, True, True, True, False, True, True],
            has_tpc=[True] * 7,
            track_type=[1, 1, 1, 1, 1, 254, 0],
        )

        mask = select_tracks_for_event_time(tracks, 0.5, 2.0)

        assert mask.tolist() == [True, False, False, False, False, False, True]

    def test_window_is_open(self, make_tracks):
        """Tracks exactly at the momentum limits are excluded."""
        tracks = make_tracks(p=[0.5, 2.0], length=[380.0, 380.0], tof_signal=[13000.0, 13000.0])
        assert not select_tracks_for_event_time(tracks, 0.5, 2.0).any()


class TestCollisionEventTime:
    """Tests for the per-collision result and its bias removal."""

    def test_no_contributing_track_gives_diamond(self):
        """Empty collisions fall back to the diamond prior."""
        result = CollisionEventTime(
            residuals=np.zeros(3),
            weights=np.zeros(3),
            hypotheses=np.full(3, -1, dtype=np.intp),
            selected=np.zeros(3, dtype=bool),
            diamond_error=200.0,
        )

        assert result.estimate.value == 0.0
        assert result.estimate.error == 200.0
        assert result.estimate.multiplicity == 0
        assert result.estimate.is_valid is False
        assert all(e == result.estimate for e in result.bias_removed())

    def test_single_track_gives_diamond(self):
        """One track is below the minimum multiplicity."""
        result = CollisionEventTime(
            residuals=np.array([120.0]),
            weights=np.array([1.0 / 3600.0]),
            hypotheses=np.array([0]),
            selected=np.array([True]),
            diamond_error=200.0,
        )

        assert result.estimate.is_valid is False
        assert result.remove_bias(0).error == 200.0
        assert result.remove_bias(0).is_valid is False

    def test_two_tracks_single_exclusion(self):
        """Removing one of two tracks leaves exactly the other one."""
        result = CollisionEventTime(
            residuals=np.array([100.0, 200.0]),
            weights=np.array([1.0 / 400.0, 1.0 / 900.0]),
            hypotheses=np.array([0, 0]),
            selected=np.array([True, True]),
            diamond_error=200.0,
            exclusion_count=1,
        )

        assert result.estimate.is_valid
        assert result.estimate.multiplicity == 2

        first = result.remove_bias(0)
        assert first.value == pytest.approx(200.0)
        assert first.error == pytest.approx(30.0)
        assert first.multiplicity == 1
        assert first.is_valid

        second = result.remove_bias(1)
        assert second.value == pytest.approx(100.0)
        assert second.error == pytest.approx(20.0)

    def test_two_tracks_default_exclusion_gives_diamond(self):
        """Excluding the track and its look-alike leaves nothing."""
        result = CollisionEventTime(
            residuals=np.array([100.0, 200.0]),
            weights=np.array([1.0 / 400.0, 1.0 / 900.0]),
            hypotheses=np.array([0, 0]),
            selected=np.array([True, True]),
            diamond_error=200.0,
        )

        estimate = result.remove_bias(0)
        assert estimate.is_valid is False
        assert estimate.value == 0.0
        assert estimate.error == 200.0

    def test_look_alike_tie_goes_to_smaller_residual(self):
        """Equal distances on both sides pick the lower residual."""
        result = CollisionEventTime(
            residuals=np.array([20.0, 10.0, 0.0]),
            weights=np.array([1.0, 1.0, 1.0]),
            hypotheses=np.array([0, 0, 0]),
            selected=np.array([True, True, True]),
            diamond_error=1000.0,
        )

        assert result.look_alikes(1) == [1, 2]
        assert result.look_alikes(0) == [0, 1]

        estimate = result.remove_bias(1)
        assert estimate.value == pytest.approx(20.0)
        assert estimate.error == pytest.approx(1.0)
        assert estimate.multiplicity == 1

    def test_unused_track_gets_collision_estimate(self):
        """Tracks with zero weight are not bias-removed."""
        result = CollisionEventTime(
            residuals=np.array([100.0, 110.0, 120.0, 0.0]),
            weights=np.array([1e-3, 1e-3, 1e-3, 0.0]),
            hypotheses=np.array([0, 0, 0, -1]),
            selected=np.array([True, True, True, False]),
            diamond_error=200.0,
        )

        assert result.is_used(3) is False
        assert result.look_alikes(3) == []
        assert result.remove_bias(3) == result.estimate

    def test_remaining_weight_below_floor_gives_diamond(self):
        """Leftover tracks weaker than the diamond do not count."""
        result = CollisionEventTime(
            residuals=np.array([100.0, 101.0, 500.0]),
            weights=np.array([1.0, 1.0, 1e-9]),
            hypotheses=np.array([0, 0, 0]),
            selected=np.array([True, True, True]),
            diamond_error=200.0,
        )

        estimate = result.remove_bias(0)
        assert estimate.is_valid is False
        assert estimate.error == 200.0


class TestEventTimeMaker:
    """Tests for the combinatorial estimator on generated collisions."""

    def test_weighted_mean_of_pions(self, params, pion_collision):
        """All qualifying tracks are taken as pions and averaged."""
        tracks, qualifying = pion_collision
        maker = EventTimeMaker(EventTimeConfig())

        result = maker.estimate(params, tracks)

        sigma = expected_sigma(params, tracks, Species.PION)[qualifying]
        weights = 1.0 / sigma ** 2
        residuals = (tracks.tof_signal - expected_time(params, tracks, Species.PION))[qualifying]

        assert result.estimate.is_valid
        assert abs(result.estimate.value - 150.0) < 20.0
        assert result.multiplicity == len(qualifying)
        assert result.estimate.value == pytest.approx(weighted_mean(residuals, weights), abs=1e-6)
        assert result.estimate.error == pytest.approx(math.sqrt(1.0 / weights.sum()))
        assert result.hypotheses[qualifying].tolist() == [0] * len(qualifying)
        assert result.hypotheses[[2, 7]].tolist() == [-1, -1]
        assert result.selected.tolist() == [i in qualifying for i in range(len(tracks))]

    def test_bias_removal_matches_recomputation(self, params, pion_collision):
        """Each bias-removed estimate equals the mean over the other tracks."""
        tracks, qualifying = pion_collision
        result = EventTimeMaker(EventTimeConfig()).estimate(params, tracks)

        for position in qualifying:
            excluded = result.look_alikes(position)
            assert len(excluded) == 2
            assert excluded[0] == position

            others = [i for i in qualifying if i not in excluded]
            expected = weighted_mean(result.residuals[others], result.weights[others])

            estimate = result.remove_bias(position)
            assert estimate.value == pytest.approx(expected, abs=1e-6)
            assert estimate.multiplicity == len(qualifying) - 2

    def test_too_few_tracks(self, params, make_tracks):
        """A single qualifying track gives the diamond."""
        config = EventTimeConfig()
        tracks = make_tracks(p=[1.0, 0.2], length=[380.0, 380.0], tof_signal=[13000.0, 13000.0])

        result = EventTimeMaker(config).estimate(params, tracks)

        assert result.estimate.is_valid is False
        assert result.estimate.error == pytest.approx(config.diamond_error)
        assert result.weights.tolist() == [0.0, 0.0]

    def test_outlier_is_rejected(self, params, make_tracks):
        """A track measured far too early drops out of the average."""
        momenta = [0.6, 0.7, 0.8, 0.9, 1.0, 0.65, 0.75]
        lengths = [380.0] * 7
        geometry = make_tracks(p=momenta, length=lengths, tof_signal=[0.0] * 7)
        pion_time = expected_time(params, geometry, Species.PION)

        offsets = np.array([100.0] * 6 + [-500.0])
        tracks = make_tracks(p=momenta, length=lengths, tof_signal=pion_time + offsets)

        result = EventTimeMaker(EventTimeConfig()).estimate(params, tracks)

        assert result.is_used(6) is False
        assert result.multiplicity == 6
        assert result.estimate.value == pytest.approx(100.0, abs=1e-6)

    def test_custom_track_filter(self, params, pion_collision):
        """An injected predicate replaces the default selection."""
        tracks, _ = pion_collision
        maker = EventTimeMaker(EventTimeConfig(), track_filter=lambda t: t.p > 1.5)

        result = maker.estimate(params, tracks)

        assert result.selected.tolist() == (tracks.p > 1.5).tolist()
        assert result.multiplicity == 3

    def test_deterministic(self, params, pion_collision):
        """Repeated runs give bit-identical results."""
        tracks, _ = pion_collision
        maker = EventTimeMaker(EventTimeConfig())

        first = maker.estimate(params, tracks)
        second = maker.estimate(params, tracks)

        assert first.estimate == second.estimate
        assert np.array_equal(first.weights, second.weights)
        assert [e.value for e in first.bias_removed()] == [e.value for e in second.bias_removed()]
