"""
Expected TOF response for a mass hypothesis.

Vectorized over the tracks of a TrackSample. Times in ps.
"""
import numpy as np

from domain.calibration import CalibrationParameters, RESOLUTION_LAYOUT_RUN2
from domain.species import Species
from domain.tracks import TrackSample
from services import consts


def corrected_momentum(params: CalibrationParameters, tracks: TrackSample) -> np.ndarray:
    """Momentum corrected for the charge-dependent shift."""
    if not params.momentum_shift:
        return tracks.p.astype(np.float64)
    shift = params.momentum_charge_shift(tracks.eta)
    return tracks.p / (1.0 + tracks.sign * shift)


def species_momentum(params: CalibrationParameters, tracks: TrackSample, species: Species) -> np.ndarray:
    # Tracking measures rigidity, multiply by the charge for Z > 1
    return corrected_momentum(params, tracks) * species.charge


def expected_time(params: CalibrationParameters, tracks: TrackSample, species: Species) -> np.ndarray:
    """
    Expected time of flight under a mass hypothesis.

    Returns 0 for tracks with non-positive momentum or length.
    """
    p = species_momentum(params, tracks, species)
    valid = (p > 0) & (tracks.length > 0)
    safe_p = np.where(valid, p, 1.0)

    beta_inverse = np.sqrt(1.0 + (species.mass / safe_p) ** 2)
    time = tracks.length * beta_inverse / consts.LIGHT_SPEED_CM_PER_PS

    positive = tracks.sign > 0
    shift = np.where(
        positive,
        params.time_shift(tracks.eta, True),
        params.time_shift(tracks.eta, False)
    )
    return np.where(valid, time + shift, 0.0)


def expected_sigma(params: CalibrationParameters, tracks: TrackSample, species: Species) -> np.ndarray:
    """
    Expected resolution of the time of flight under a mass hypothesis,
    without the event-time contribution.

    Returns NSIGMA_EMPTY_VALUE for tracks with non-positive momentum.
    """
    p = species_momentum(params, tracks, species)
    valid = p > 0
    safe_p = np.where(valid, p, 1.0)

    if params.layout == RESOLUTION_LAYOUT_RUN2:
        p0, p1, p2, p3, p4 = params.run2_resolution
        mass = species.mass
        # Relative momentum resolution propagated to the time of flight
        dpp = p0 + p1 * safe_p + p2 * mass / safe_p
        time = expected_time(params, tracks, species)
        sigma_momentum = dpp * time / (1.0 + safe_p * safe_p / (mass * mass))
        sigma = np.sqrt(sigma_momentum ** 2 + p3 * p3 / (safe_p * safe_p) + p4 * p4)
    else:
        track_term = np.zeros_like(safe_p)
        for power, coefficient in enumerate(params.track_resolution_for(species.short_name)):
            track_term = track_term + coefficient / safe_p ** power
        sigma = np.sqrt(params.time_resolution ** 2 + track_term ** 2)

    return np.where(valid, sigma, consts.NSIGMA_EMPTY_VALUE)


def expected_response(
    params: CalibrationParameters,
    tracks: TrackSample,
    species: Species
) -> tuple[np.ndarray, np.ndarray]:
    """Expected (time, sigma) of every track under a mass hypothesis."""
    return expected_time(params, tracks, species), expected_sigma(params, tracks, species)
