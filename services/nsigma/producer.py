"""
NsigmaProducer service - Fills the per-species PID tables.

Single responsibility: map every enabled species to its output tables
and fill them from the NsigmaComputer.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np

from domain.calibration import CalibrationParameters
from domain.config import NsigmaConfig
from domain.species import Species
from domain.tables import EventTimeTable, OutputTable
from domain.tracks import TrackSample
from services import consts
from .binning import pack_nsigma
from .computer import NsigmaComputer


TOF_SIGNAL_TABLE = "pidTOFSignal"


@dataclass(frozen=True)
class SpeciesTable:
    """One entry of the species dispatch table."""

    species: Species
    full: bool

    @property
    def name(self) -> str:
        prefix = consts.FULL_TABLE_PREFIX if self.full else consts.TINY_TABLE_PREFIX
        return f"{prefix}{self.species.short_name}"


def build_dispatch_table(config: NsigmaConfig) -> list[SpeciesTable]:
    """Output tables to fill, tiny tables first, species in index order."""
    return (
        [SpeciesTable(species, full=False) for species in config.enabled_species()]
        + [SpeciesTable(species, full=True) for species in config.enabled_species_full()]
    )


class NsigmaProducer:
    """Produces the tiny and full nsigma tables of the enabled species."""

    def __init__(self, config: NsigmaConfig, computer: Optional[NsigmaComputer] = None):
        self.config = config
        self.computer = computer or NsigmaComputer()
        self.dispatch = build_dispatch_table(config)
        self.logger = logging.getLogger(self.__class__.__name__)

        if self.dispatch:
            self.logger.info(f"Nsigma tables: {', '.join(entry.name for entry in self.dispatch)}")
        else:
            self.logger.warning("No nsigma table enabled")

    def produce(
        self,
        params: CalibrationParameters,
        tracks: TrackSample,
        event_time: EventTimeTable
    ) -> dict[str, OutputTable]:
        """
        Fill every table of the dispatch table, plus the TOF signal table.

        Returns:
            Mapping of table name to OutputTable
        """
        tables = {TOF_SIGNAL_TABLE: self.signal_table(tracks)}
        separations = {}

        for entry in self.dispatch:
            if entry.species not in separations:
                separations[entry.species] = self.computer.compute(params, tracks, event_time, entry.species)
            resolution, nsigma = separations[entry.species]

            if entry.full:
                columns = {"tof_exp_sigma": resolution, "tof_nsigma": nsigma}
            else:
                columns = {"tof_nsigma_packed": pack_nsigma(nsigma)}
            tables[entry.name] = OutputTable(entry.name, columns)

        return tables

    @staticmethod
    def signal_table(tracks: TrackSample) -> OutputTable:
        """TOF signal with the good-match flag used by PID."""
        return OutputTable(TOF_SIGNAL_TABLE, {
            "tof_signal": np.where(tracks.has_tof, tracks.tof_signal, consts.NSIGMA_EMPTY_VALUE),
            "good_tof_match": tracks.has_tof.copy(),
        })
