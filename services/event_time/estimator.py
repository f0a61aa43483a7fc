"""
EventTimeMaker service - Estimates the collision time from TOF tracks.

Single responsibility: turn the TOF tracks of one collision into an
event time, and restate it per track without that track's own bias.

The true species of a track is unknown, so each track is tried under
several mass hypotheses. Tracks are split into sets of bounded size; in
each set every assignment of hypotheses is tried and the one with the
lowest chi2 is kept. The per-track residuals (measured minus expected
time) of the kept hypotheses are then combined with inverse-variance
weights, rejecting outliers iteratively.
"""

import logging
import math
from typing import Callable, Optional

import numpy as np

from domain.calibration import CalibrationParameters
from domain.config import EventTimeConfig
from domain.event_time import EventTimeEstimate
from domain.tracks import TrackSample, TRACK_TYPE_TRACK, TRACK_TYPE_TRACK_IU
from services.response.expected import expected_response
from .combinatorics import hypothesis_combinations, split_into_sets


TrackFilter = Callable[[TrackSample], np.ndarray]


def select_tracks_for_event_time(
    tracks: TrackSample,
    min_momentum: float,
    max_momentum: float
) -> np.ndarray:
    """
    Mask of tracks usable for the TOF event time.

    Requires a TOF match, ITS and TPC hits, a momentum inside
    (min_momentum, max_momentum) and a Run 3 barrel track type.
    """
    return (
        tracks.has_tof
        & (tracks.p > min_momentum)
        & (tracks.p < max_momentum)
        & tracks.has_its
        & tracks.has_tpc
        & np.isin(tracks.track_type, (TRACK_TYPE_TRACK, TRACK_TYPE_TRACK_IU))
    )


class CollisionEventTime:
    """
    Event time of one collision.

    Keeps the weighted sums and per-track contributions so that the
    bias-removed event time of any track costs O(exclusion_count).
    """

    def __init__(
        self,
        residuals: np.ndarray,
        weights: np.ndarray,
        hypotheses: np.ndarray,
        selected: np.ndarray,
        diamond_error: float,
        min_tracks: int = 2,
        exclusion_count: int = 2
    ):
        """
        Args:
            residuals: Measured minus expected time per track (ps)
            weights: Inverse variance per track, 0 for unused tracks
            hypotheses: Index of the kept hypothesis per track, -1 if none
            selected: Mask of tracks that passed the event-time selection
            diamond_error: Error of the diamond prior (ps)
            min_tracks: Minimum number of contributing tracks
            exclusion_count: Tracks removed per bias removal, the track
                itself included
        """
        self.residuals = residuals
        self.weights = weights
        self.hypotheses = hypotheses
        self.selected = selected
        self.diamond_error = diamond_error
        self.diamond_weight = 1.0 / (diamond_error * diamond_error)
        self.min_tracks = min_tracks
        self.exclusion_count = exclusion_count

        active = np.flatnonzero(weights > 0)
        self._active = active
        self._sum_of_weights = math.fsum(weights[active])
        self._sum_of_weighted_residuals = math.fsum(weights[active] * residuals[active])

        # Active tracks sorted by residual, for the look-alike search
        self._sorted_active = active[np.argsort(residuals[active], kind="stable")]
        self._rank = np.full(len(weights), -1, dtype=np.intp)
        self._rank[self._sorted_active] = np.arange(len(self._sorted_active))

        multiplicity = len(active)
        if multiplicity < min_tracks or self._sum_of_weights < self.diamond_weight:
            self.estimate = self.diamond()
        else:
            self.estimate = EventTimeEstimate(
                value=self._sum_of_weighted_residuals / self._sum_of_weights,
                error=math.sqrt(1.0 / self._sum_of_weights),
                multiplicity=multiplicity,
                is_valid=True,
            )

    def diamond(self) -> EventTimeEstimate:
        """The diamond prior, flagged as not usable."""
        return EventTimeEstimate(value=0.0, error=self.diamond_error, multiplicity=0, is_valid=False)

    @property
    def multiplicity(self) -> int:
        return self.estimate.multiplicity

    def is_used(self, position: int) -> bool:
        """Whether the track at position contributes to the event time."""
        return bool(self.weights[position] > 0)

    def look_alikes(self, position: int) -> list[int]:
        """
        The track at position followed by the contributing tracks with the
        closest residuals, up to exclusion_count tracks in total.

        Ties go to the track with the smaller residual.
        """
        rank = self._rank[position]
        if rank < 0:
            return []

        reference = self.residuals[position]
        picked = [position]
        left, right = rank - 1, rank + 1
        n_sorted = len(self._sorted_active)

        while len(picked) < self.exclusion_count and (left >= 0 or right < n_sorted):
            if right >= n_sorted:
                take_left = True
            elif left < 0:
                take_left = False
            else:
                left_distance = abs(reference - self.residuals[self._sorted_active[left]])
                right_distance = abs(self.residuals[self._sorted_active[right]] - reference)
                take_left = left_distance <= right_distance

            if take_left:
                picked.append(int(self._sorted_active[left]))
                left -= 1
            else:
                picked.append(int(self._sorted_active[right]))
                right += 1

        return picked

    def remove_bias(self, position: int) -> EventTimeEstimate:
        """
        Event time for the track at position, computed without the track
        and its closest look-alikes.

        Tracks that did not contribute get the collision event time.
        """
        if not self.estimate.is_valid or not self.is_used(position):
            return self.estimate

        excluded = self.look_alikes(position)
        excluded_weights = self.weights[excluded]
        remaining_weight = self._sum_of_weights - math.fsum(excluded_weights)
        remaining_weighted = self._sum_of_weighted_residuals - math.fsum(
            excluded_weights * self.residuals[excluded]
        )
        remaining_tracks = self.estimate.multiplicity - len(excluded)

        if remaining_tracks < 1 or remaining_weight < self.diamond_weight:
            return self.diamond()

        return EventTimeEstimate(
            value=remaining_weighted / remaining_weight,
            error=math.sqrt(1.0 / remaining_weight),
            multiplicity=remaining_tracks,
            is_valid=True,
        )

    def bias_removed(self) -> list[EventTimeEstimate]:
        """Bias-removed event time of every track, in input order."""
        return [self.remove_bias(position) for position in range(len(self.weights))]


class EventTimeMaker:
    """
    Iterative combinatorial estimator of the collision time.

    Stateless between collisions; configured once per run.
    """

    def __init__(
        self,
        config: EventTimeConfig,
        track_filter: Optional[TrackFilter] = None,
        response=expected_response
    ):
        """
        Initialize the event time maker.

        Args:
            config: Event time configuration
            track_filter: Mask of tracks usable for the event time;
                defaults to select_tracks_for_event_time with the
                configured momentum window
            response: Expected response, (params, tracks, species) ->
                (time, sigma)
        """
        self.config = config
        self.hypotheses = config.hypothesis_species
        self.response = response
        self.track_filter = track_filter or (
            lambda tracks: select_tracks_for_event_time(tracks, config.min_momentum, config.max_momentum)
        )
        self.logger = logging.getLogger(self.__class__.__name__)

    def estimate(self, params: CalibrationParameters, tracks: TrackSample) -> CollisionEventTime:
        """
        Estimate the event time of one collision.

        Args:
            params: Active calibration parameters
            tracks: Tracks of the collision, in input order

        Returns:
            CollisionEventTime; its estimate is the diamond prior when
            fewer than min_tracks tracks contribute
        """
        n_tracks = len(tracks)
        selected = np.asarray(self.track_filter(tracks), dtype=bool)
        positions = np.flatnonzero(selected)

        if len(positions) < self.config.min_tracks:
            self.logger.debug(f"Only {len(positions)} tracks for the TOF event time, using the diamond")
            result = self._make_result(
                np.zeros(n_tracks), np.zeros(n_tracks), np.full(n_tracks, -1, dtype=np.intp), selected
            )
            return result

        sample = tracks.take(positions)
        residual_table, weight_table = self._hypothesis_tables(params, sample)

        chosen = self._choose_hypotheses(residual_table, weight_table)
        rows = np.arange(len(positions))
        sample_residuals = residual_table[rows, chosen]
        sample_weights = weight_table[rows, chosen]
        sample_weights = self._reject_outliers(sample_residuals, sample_weights)

        residuals = np.zeros(n_tracks)
        weights = np.zeros(n_tracks)
        hypotheses = np.full(n_tracks, -1, dtype=np.intp)
        residuals[positions] = sample_residuals
        weights[positions] = sample_weights
        hypotheses[positions] = chosen

        result = self._make_result(residuals, weights, hypotheses, selected)
        self.logger.debug(
            f"TOF event time {result.estimate.value:.1f} +- {result.estimate.error:.1f} ps "
            f"from {result.multiplicity} of {len(positions)} selected tracks"
        )
        return result

    def _make_result(self, residuals, weights, hypotheses, selected) -> CollisionEventTime:
        return CollisionEventTime(
            residuals=residuals,
            weights=weights,
            hypotheses=hypotheses,
            selected=selected,
            diamond_error=self.config.diamond_error,
            min_tracks=self.config.min_tracks,
            exclusion_count=self.config.bias_exclusion_count,
        )

    def _hypothesis_tables(
        self,
        params: CalibrationParameters,
        sample: TrackSample
    ) -> tuple[np.ndarray, np.ndarray]:
        """
        Residual and weight of every track under every hypothesis.

        Returns:
            Two arrays of shape (n_tracks, n_hypotheses); weights are 0
            where the expected response is not defined
        """
        n_tracks = len(sample)
        residuals = np.zeros((n_tracks, len(self.hypotheses)))
        weights = np.zeros((n_tracks, len(self.hypotheses)))

        for column, species in enumerate(self.hypotheses):
            time, sigma = self.response(params, sample, species)
            valid = (time > 0) & (sigma > 0)
            safe_sigma = np.where(valid, sigma, 1.0)
            residuals[:, column] = np.where(valid, sample.tof_signal - time, 0.0)
            weights[:, column] = np.where(valid, 1.0 / (safe_sigma * safe_sigma), 0.0)

        return residuals, weights

    def _choose_hypotheses(self, residual_table: np.ndarray, weight_table: np.ndarray) -> np.ndarray:
        """Best hypothesis index per track, set by set."""
        chosen = np.zeros(len(residual_table), dtype=np.intp)

        for set_positions in split_into_sets(len(residual_table), self.config.max_tracks_in_set):
            combinations = hypothesis_combinations(len(self.hypotheses), len(set_positions))
            columns = np.arange(len(set_positions))
            set_residuals = residual_table[set_positions][columns, combinations]
            set_weights = weight_table[set_positions][columns, combinations]

            sum_of_weights = set_weights.sum(axis=1)
            usable = sum_of_weights > 0
            safe_sum = np.where(usable, sum_of_weights, 1.0)
            set_time = (set_weights * set_residuals).sum(axis=1) / safe_sum
            chi2 = (set_weights * (set_residuals - set_time[:, None]) ** 2).sum(axis=1)
            chi2 = np.where(usable, chi2, np.inf)

            # argmin keeps the first combination on ties
            chosen[set_positions] = combinations[int(np.argmin(chi2))]

        return chosen

    def _reject_outliers(self, residuals: np.ndarray, weights: np.ndarray) -> np.ndarray:
        """Zero the weight of tracks whose pull exceeds the outlier cut."""
        weights = weights.copy()

        for _ in range(self.config.max_iterations):
            active = weights > 0
            if active.sum() < self.config.min_tracks:
                break

            sum_of_weights = math.fsum(weights[active])
            event_time = math.fsum(weights[active] * residuals[active]) / sum_of_weights
            pulls = np.abs(residuals - event_time) * np.sqrt(weights)
            outliers = active & (pulls > self.config.outlier_cut)
            if not outliers.any():
                break

            self.logger.debug(f"Rejecting {int(outliers.sum())} outlier tracks from the event time")
            weights[outliers] = 0.0

        return weights
