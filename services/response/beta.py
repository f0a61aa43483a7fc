"""
TOF beta and TOF mass.
"""
from typing import Optional

import numpy as np

from domain.calibration import CalibrationParameters
from domain.tracks import TrackSample
from services import consts
from .expected import corrected_momentum


def compute_beta(tracks: TrackSample, event_time: np.ndarray) -> np.ndarray:
    """
    Velocity over c from track length and time of flight.

    Tracks without TOF or with a time of flight not after the event time
    get NSIGMA_EMPTY_VALUE.
    """
    flight_time = tracks.tof_signal - event_time
    valid = tracks.has_tof & (tracks.tof_signal > 0) & (flight_time > 0) & (tracks.length > 0)
    safe_time = np.where(valid, flight_time, 1.0)
    beta = tracks.length / safe_time / consts.LIGHT_SPEED_CM_PER_PS
    return np.where(valid, beta, consts.NSIGMA_EMPTY_VALUE)


def compute_beta_sigma(
    tracks: TrackSample,
    beta: np.ndarray,
    event_time: np.ndarray,
    event_time_error: np.ndarray,
    time_resolution: float
) -> np.ndarray:
    """Expected beta resolution from the TOF and event-time resolutions."""
    flight_time = tracks.tof_signal - event_time
    valid = beta > 0
    safe_time = np.where(valid, flight_time, 1.0)
    sigma = beta * np.sqrt(time_resolution ** 2 + event_time_error ** 2) / safe_time
    return np.where(valid, sigma, consts.NSIGMA_EMPTY_VALUE)


def compute_tof_mass(
    tracks: TrackSample,
    beta: np.ndarray,
    params: Optional[CalibrationParameters] = None
) -> np.ndarray:
    """
    Mass from momentum and beta.

    With params the momentum is corrected for the charge-dependent shift.
    """
    if params is not None:
        momentum = corrected_momentum(params, tracks)
    else:
        momentum = tracks.p
    valid = beta > 0
    safe_beta = np.where(valid, beta, 1.0)
    mass = (momentum / safe_beta) * np.sqrt(np.abs(1.0 - safe_beta * safe_beta))
    return np.where(valid, mass, consts.NSIGMA_EMPTY_VALUE)
