"""
Shared fixtures for the TOF PID tests.
"""

import numpy as np
import pytest

from domain.calibration import CalibrationParameters
from domain.species import Species
from domain.tracks import TrackSample
from services.response.expected import expected_time


# Measured-minus-expected offsets of the generated pion tracks (ps)
PION_JITTER = [12.0, -8.0, 15.0, -20.0, 5.0, -3.0, 18.0, -11.0]
EVENT_TIME_BIAS = 150.0


@pytest.fixture
def params():
    """Default Run 3 calibration: 60 ps TOF resolution, (10 + 30/p) ps tracking term."""
    return CalibrationParameters(pass_name="apass4")


@pytest.fixture
def make_tracks():
    """Build a TrackSample from keyword columns."""
    def _make(**columns):
        return TrackSample.from_columns(columns)
    return _make


@pytest.fixture
def pion_collision(params):
    """
    Ten tracks of one collision.

    Eight pass the event-time selection and were generated as pions
    with measured time = expected pion time + bias + jitter. Position 2
    is below the momentum window, position 7 has no TOF match.
    """
    momenta = [0.6, 0.8, 0.3, 1.0, 1.2, 1.4, 1.6, 1.0, 1.8, 1.9]
    lengths = [370.0, 375.0, 360.0, 380.0, 385.0, 390.0, 395.0, 380.0, 400.0, 405.0]
    has_tof = [True] * 10
    has_tof[7] = False
    qualifying = [0, 1, 3, 4, 5, 6, 8, 9]

    offsets = np.zeros(10)
    offsets[qualifying] = PION_JITTER

    geometry = TrackSample.from_columns({
        "p": momenta,
        "length": lengths,
        "tof_signal": np.zeros(10),
        "sign": [1, -1] * 5,
    })
    pion_time = expected_time(params, geometry, Species.PION)
    tof_signal = np.where(has_tof, pion_time + EVENT_TIME_BIAS + offsets, 0.0)

    tracks = TrackSample.from_columns({
        "collision_id": np.zeros(10, dtype=np.int64),
        "p": momenta,
        "length": lengths,
        "tof_signal": tof_signal,
        "sign": [1, -1] * 5,
        "has_tof": has_tof,
    })
    return tracks, np.array(qualifying)
