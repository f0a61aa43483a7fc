"""
Tests for the Nsigma computation, the tiny-table binning and beta/mass.
"""

import math

import numpy as np
import pytest

from domain.config import NsigmaConfig
from domain.event_time import CombinedTime, EventTimeFlags
from domain.species import Species
from domain.tables import EventTimeTable
from services import consts
from services.nsigma.beta_mass import BETA_TABLE, MASS_TABLE, BetaMassProducer
from services.nsigma.binning import OVERFLOW_BIN, UNDERFLOW_BIN, pack_nsigma, unpack_nsigma
from services.nsigma.computer import NsigmaComputer
from services.nsigma.producer import TOF_SIGNAL_TABLE, NsigmaProducer, build_dispatch_table
from services.response.expected import expected_sigma, expected_time


def event_time_table(values, errors):
    table = EventTimeTable.unassigned(len(values))
    for position, (value, error) in enumerate(zip(values, errors)):
        table.set_combined(position, CombinedTime(value=value, error=error, flags=EventTimeFlags.TOF))
    return table


class TestNsigmaComputer:
    """Tests for the separation of one track from a species."""

    def test_exact_match_is_zero(self, params, make_tracks):
        """A measurement equal to event time plus expected time gives 0."""
        geometry = make_tracks(p=[0.8], length=[390.0], tof_signal=[0.0])
        t0 = 37.25
        measured = t0 + expected_time(params, geometry, Species.KAON)[0]
        track = make_tracks(p=[0.8], length=[390.0], tof_signal=[measured])

        sigma, nsigma = NsigmaComputer().separation(
            params, track, CombinedTime(value=t0, error=25.0, flags=EventTimeFlags.TOF), Species.KAON
        )

        assert nsigma == 0.0
        assert sigma == pytest.approx(math.sqrt(25.0 ** 2 + expected_sigma(params, track, Species.KAON)[0] ** 2))

    def test_two_sigma_offset(self, params, make_tracks):
        geometry = make_tracks(p=[1.2], length=[380.0], tof_signal=[0.0])
        t_exp = expected_time(params, geometry, Species.PION)[0]
        sigma_exp = expected_sigma(params, geometry, Species.PION)[0]
        resolution = math.sqrt(40.0 ** 2 + sigma_exp ** 2)
        track = make_tracks(p=[1.2], length=[380.0], tof_signal=[50.0 + t_exp + 2.0 * resolution])

        sigma, nsigma = NsigmaComputer().separation(
            params, track, CombinedTime(value=50.0, error=40.0), Species.PION
        )

        assert sigma == pytest.approx(resolution)
        assert nsigma == pytest.approx(2.0)

    def test_no_tof_is_sentinel(self, params, make_tracks):
        track = make_tracks(p=[1.0], length=[380.0], tof_signal=[13000.0], has_tof=[False])

        sigma, nsigma = NsigmaComputer().separation(params, track, CombinedTime(0.0, 50.0), Species.PION)

        assert sigma == consts.NSIGMA_EMPTY_VALUE
        assert nsigma == consts.NSIGMA_EMPTY_VALUE

    def test_no_collision_is_sentinel(self, params, make_tracks):
        track = make_tracks(p=[1.0], length=[380.0], tof_signal=[13000.0], collision_id=[-1])

        _, nsigma = NsigmaComputer().separation(params, track, CombinedTime(0.0, 50.0), Species.PION)

        assert nsigma == consts.NSIGMA_EMPTY_VALUE

    def test_unassigned_event_time_is_sentinel(self, params, make_tracks):
        track = make_tracks(p=[1.0], length=[380.0], tof_signal=[13000.0])

        _, nsigma = NsigmaComputer().separation(params, track, CombinedTime.unassigned(), Species.PION)

        assert nsigma == consts.NSIGMA_EMPTY_VALUE

    def test_zero_momentum_is_sentinel(self, params, make_tracks):
        track = make_tracks(p=[0.0], length=[380.0], tof_signal=[13000.0])

        _, nsigma = NsigmaComputer().separation(params, track, CombinedTime(0.0, 50.0), Species.PION)

        assert nsigma == consts.NSIGMA_EMPTY_VALUE

    def test_single_track_only(self, params, make_tracks):
        tracks = make_tracks(p=[1.0, 1.0], length=[380.0, 380.0], tof_signal=[13000.0, 13000.0])
        with pytest.raises(ValueError, match="single track"):
            NsigmaComputer().separation(params, tracks, CombinedTime(0.0, 50.0), Species.PION)

    def test_vectorized_matches_single(self, params, pion_collision):
        """The chunk-wide computation agrees with the per-track one."""
        tracks, _ = pion_collision
        table = event_time_table([140.0 + i for i in range(len(tracks))], [30.0] * len(tracks))
        computer = NsigmaComputer()

        resolution, nsigma = computer.compute(params, tracks, table, Species.PROTON)

        for position in range(len(tracks)):
            sigma, single = computer.separation(
                params, tracks.take([position]), table.combined_time(position), Species.PROTON
            )
            assert resolution[position] == sigma
            assert nsigma[position] == single

        assert nsigma[7] == consts.NSIGMA_EMPTY_VALUE


class TestBinning:
    """Tests for the int8 quantization of the tiny tables."""

    def test_rounding(self):
        assert pack_nsigma([0.1, -0.1, 0.0, 0.024, 0.026]).tolist() == [2, -2, 0, 0, 1]

    def test_symmetric(self):
        assert pack_nsigma([0.06, -0.06, 2.0, -2.0]).tolist() == [1, -1, 40, -40]

    def test_saturation(self):
        packed = pack_nsigma([10.0, -10.0, 6.35, -6.35])
        assert packed.tolist() == [OVERFLOW_BIN, UNDERFLOW_BIN, OVERFLOW_BIN, UNDERFLOW_BIN]

    def test_sentinel_and_nan_underflow(self):
        packed = pack_nsigma([consts.NSIGMA_EMPTY_VALUE, np.nan])
        assert packed.tolist() == [UNDERFLOW_BIN, UNDERFLOW_BIN]
        assert packed.dtype == np.int8

    def test_unpack(self):
        assert unpack_nsigma(pack_nsigma([1.0]))[0] == pytest.approx(1.0)


class TestNsigmaProducer:
    """Tests for the species dispatch and the produced tables."""

    def test_dispatch_order(self):
        """Tiny tables first, species in index order."""
        config = NsigmaConfig(
            enable={"Pr": 1, "Pi": 1},
            enable_full={"Ka": -1},
            requested_tables=("pidTOFFullKa",),
        )

        names = [entry.name for entry in build_dispatch_table(config)]

        assert names == ["pidTOFPi", "pidTOFPr", "pidTOFFullKa"]

    def test_disabled_flag_wins_over_request(self):
        config = NsigmaConfig(enable={"Pi": 0}, requested_tables=("pidTOFPi",))
        assert build_dispatch_table(config) == []

    def test_unknown_species(self):
        with pytest.raises(ValueError, match="Unknown species"):
            NsigmaConfig(enable={"Xx": 1})

    def test_produce(self, params, pion_collision):
        tracks, _ = pion_collision
        producer = NsigmaProducer(NsigmaConfig(enable={"Pi": 1}, enable_full={"Pi": 1}))
        table = event_time_table([150.0] * len(tracks), [30.0] * len(tracks))

        tables = producer.produce(params, tracks, table)

        assert set(tables) == {TOF_SIGNAL_TABLE, "pidTOFPi", "pidTOFFullPi"}
        full = tables["pidTOFFullPi"].columns
        packed = tables["pidTOFPi"].columns["tof_nsigma_packed"]
        assert packed.tolist() == pack_nsigma(full["tof_nsigma"]).tolist()
        assert packed[7] == UNDERFLOW_BIN

        signal = tables[TOF_SIGNAL_TABLE].columns
        assert signal["tof_signal"][7] == consts.NSIGMA_EMPTY_VALUE
        assert signal["good_tof_match"].tolist() == tracks.has_tof.tolist()

    def test_produce_without_species(self, params, pion_collision):
        """Only the signal table is written when no species is enabled."""
        tracks, _ = pion_collision
        producer = NsigmaProducer(NsigmaConfig())

        tables = producer.produce(params, tracks, event_time_table([0.0] * len(tracks), [30.0] * len(tracks)))

        assert list(tables) == [TOF_SIGNAL_TABLE]


class TestBetaMass:
    """Tests for the beta and TOF mass tables."""

    def test_pion_mass_recovered(self, params, make_tracks):
        """A track timed exactly as a pion gives the pion mass."""
        geometry = make_tracks(p=[1.0], length=[380.0], tof_signal=[0.0])
        t0 = 25.0
        track = make_tracks(
            p=[1.0], length=[380.0], tof_signal=[t0 + expected_time(params, geometry, Species.PION)[0]]
        )
        producer = BetaMassProducer(NsigmaConfig(enable_beta=True, enable_mass=True))

        tables = producer.produce(params, track, event_time_table([t0], [20.0]))

        beta = tables[BETA_TABLE].columns["beta"][0]
        assert beta == pytest.approx(1.0 / math.sqrt(1.0 + Species.PION.mass ** 2))
        assert tables[BETA_TABLE].columns["beta_error"][0] > 0
        assert tables[MASS_TABLE].columns["mass"][0] == pytest.approx(Species.PION.mass, rel=1e-6)

    def test_no_tof_is_sentinel(self, params, make_tracks):
        track = make_tracks(p=[1.0], length=[380.0], tof_signal=[0.0], has_tof=[False])
        producer = BetaMassProducer(NsigmaConfig(enable_beta=True, enable_mass=True))

        tables = producer.produce(params, track, event_time_table([0.0], [20.0]))

        assert tables[BETA_TABLE].columns["beta"][0] == consts.NSIGMA_EMPTY_VALUE
        assert tables[MASS_TABLE].columns["mass"][0] == consts.NSIGMA_EMPTY_VALUE

    def test_disabled(self, params, make_tracks):
        track = make_tracks(p=[1.0], length=[380.0], tof_signal=[13000.0])
        producer = BetaMassProducer(NsigmaConfig())

        assert producer.enabled is False
        assert producer.produce(params, track, event_time_table([0.0], [20.0])) == {}
