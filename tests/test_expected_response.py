"""
Tests for the expected TOF response.
"""

import math

import numpy as np
import pytest

from domain.calibration import CalibrationParameters, TimeShiftCurve
from domain.species import Species
from services import consts
from services.response.expected import corrected_momentum, expected_sigma, expected_time


class TestExpectedTime:
    """Tests for expected_time."""

    def test_pion(self, params, make_tracks):
        tracks = make_tracks(p=[1.0], length=[380.0], tof_signal=[0.0])

        time = expected_time(params, tracks, Species.PION)[0]

        beta_inverse = math.sqrt(1.0 + Species.PION.mass ** 2)
        assert time == pytest.approx(380.0 * beta_inverse / consts.LIGHT_SPEED_CM_PER_PS)

    def test_heavier_is_slower(self, params, make_tracks):
        tracks = make_tracks(p=[0.8], length=[380.0], tof_signal=[0.0])
        times = [expected_time(params, tracks, s)[0] for s in (Species.PION, Species.KAON, Species.PROTON)]
        assert times == sorted(times)

    def test_helium_uses_rigidity(self, params, make_tracks):
        """Momentum of Z=2 species is twice the reconstructed rigidity."""
        tracks = make_tracks(p=[1.0], length=[380.0], tof_signal=[0.0])

        time = expected_time(params, tracks, Species.HELIUM3)[0]

        beta_inverse = math.sqrt(1.0 + (Species.HELIUM3.mass / 2.0) ** 2)
        assert time == pytest.approx(380.0 * beta_inverse / consts.LIGHT_SPEED_CM_PER_PS)

    def test_invalid_track(self, params, make_tracks):
        tracks = make_tracks(p=[0.0, 1.0], length=[380.0, 0.0], tof_signal=[0.0, 0.0])
        assert expected_time(params, tracks, Species.PION).tolist() == [0.0, 0.0]

    def test_time_shift_by_charge(self, make_tracks):
        params = CalibrationParameters(
            time_shift_pos=TimeShiftCurve.from_points([0.0], [25.0]),
            time_shift_neg=TimeShiftCurve.from_points([0.0], [-10.0]),
        )
        tracks = make_tracks(p=[1.0, 1.0], length=[380.0, 380.0], tof_signal=[0.0, 0.0], sign=[1, -1])

        shifted = expected_time(params, tracks, Species.PION)
        unshifted = expected_time(CalibrationParameters(), tracks, Species.PION)

        assert (shifted - unshifted).tolist() == pytest.approx([25.0, -10.0])


class TestExpectedSigma:
    """Tests for expected_sigma."""

    def test_run3_parametrization(self, params, make_tracks):
        tracks = make_tracks(p=[0.5, 2.0], length=[380.0, 380.0], tof_signal=[0.0, 0.0])

        sigma = expected_sigma(params, tracks, Species.PION)

        assert sigma.tolist() == pytest.approx([math.sqrt(60.0 ** 2 + 70.0 ** 2), math.sqrt(60.0 ** 2 + 25.0 ** 2)])

    def test_run2_layout(self, make_tracks):
        params = CalibrationParameters(layout="run2")
        tracks = make_tracks(p=[1.0], length=[380.0], tof_signal=[0.0])

        sigma = expected_sigma(params, tracks, Species.KAON)[0]

        # TOF and tracking terms alone give sqrt(60^2 + 40^2)
        assert sigma > math.sqrt(60.0 ** 2 + 40.0 ** 2)

    def test_non_positive_momentum(self, params, make_tracks):
        tracks = make_tracks(p=[-1.0], length=[380.0], tof_signal=[0.0])
        assert expected_sigma(params, tracks, Species.PION)[0] == consts.NSIGMA_EMPTY_VALUE


class TestMomentumShift:
    """Tests for the charge-dependent momentum correction."""

    def test_no_shift(self, params, make_tracks):
        tracks = make_tracks(p=[1.0], length=[380.0], tof_signal=[0.0])
        assert corrected_momentum(params, tracks).tolist() == [1.0]

    def test_shift_sign(self, make_tracks):
        params = CalibrationParameters(momentum_shift=(0.01,))
        tracks = make_tracks(p=[1.0, 1.0], length=[380.0, 380.0], tof_signal=[0.0, 0.0], sign=[1, -1])

        corrected = corrected_momentum(params, tracks)

        assert corrected.tolist() == pytest.approx([1.0 / 1.01, 1.0 / 0.99])
        assert np.all(corrected > 0)
