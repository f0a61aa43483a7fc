"""
NsigmaComputer service - Separation of the measured time from a species.

Single responsibility: normalize the difference between the measured
time of flight and the expected one by the quadrature sum of the
event-time and expected-time uncertainties.
"""

import numpy as np

from domain.calibration import CalibrationParameters
from domain.event_time import CombinedTime
from domain.species import Species
from domain.tables import EventTimeTable
from domain.tracks import TrackSample
from services import consts
from services.response.expected import expected_response


class NsigmaComputer:
    """
    Computes (resolution, nsigma) per track for one species.

    Not computable tracks get NSIGMA_EMPTY_VALUE in both columns: no
    collision, no TOF match, non-positive expected time or sigma, or no
    usable combined event time.
    """

    def __init__(self, response=expected_response):
        self.response = response

    def compute(
        self,
        params: CalibrationParameters,
        tracks: TrackSample,
        event_time: EventTimeTable,
        species: Species
    ) -> tuple[np.ndarray, np.ndarray]:
        """
        Vectorized separation for all tracks of a chunk.

        Args:
            params: Active calibration parameters
            tracks: Tracks of the chunk
            event_time: Combined event time per track
            species: Mass hypothesis

        Returns:
            (resolution, nsigma) arrays aligned with tracks
        """
        expected_time, expected_sigma = self.response(params, tracks, species)
        return self._separation(
            tracks.tof_signal,
            event_time.value,
            event_time.error,
            expected_time,
            expected_sigma,
            tracks.has_collision & tracks.has_tof & event_time.usable(),
        )

    def separation(
        self,
        params: CalibrationParameters,
        track: TrackSample,
        combined: CombinedTime,
        species: Species
    ) -> tuple[float, float]:
        """
        Separation of a single track.

        Args:
            track: TrackSample holding exactly one track

        Returns:
            (sigma, nsigma) of the track
        """
        if len(track) != 1:
            raise ValueError(f"separation expects a single track, got {len(track)}")

        expected_time, expected_sigma = self.response(params, track, species)
        computable = track.has_collision & track.has_tof & np.array([combined.is_usable])
        sigma, nsigma = self._separation(
            track.tof_signal,
            np.array([combined.value]),
            np.array([combined.error]),
            expected_time,
            expected_sigma,
            computable,
        )
        return float(sigma[0]), float(nsigma[0])

    @staticmethod
    def _separation(measured, event_time, event_time_error, expected_time, expected_sigma, computable):
        valid = computable & (expected_time > 0) & (expected_sigma > 0)
        resolution = np.sqrt(event_time_error ** 2 + np.where(valid, expected_sigma, 0.0) ** 2)
        safe_resolution = np.where(valid & (resolution > 0), resolution, 1.0)
        # t0 + t_exp first, so a measurement equal to it gives exactly 0
        nsigma = (measured - (event_time + expected_time)) / safe_resolution
        return (
            np.where(valid, resolution, consts.NSIGMA_EMPTY_VALUE),
            np.where(valid, nsigma, consts.NSIGMA_EMPTY_VALUE),
        )
