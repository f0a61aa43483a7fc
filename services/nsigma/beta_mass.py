"""
BetaMassProducer service - Fills the TOF beta and mass tables.
"""

import logging

import numpy as np

from domain.calibration import CalibrationParameters
from domain.config import NsigmaConfig
from domain.tables import EventTimeTable, OutputTable
from domain.tracks import TrackSample
from services import consts
from services.response.beta import compute_beta, compute_beta_sigma, compute_tof_mass


BETA_TABLE = "pidTOFbeta"
MASS_TABLE = "pidTOFmass"


class BetaMassProducer:
    """Beta with its expected sigma, and the TOF mass."""

    def __init__(self, config: NsigmaConfig):
        self.config = config
        self.logger = logging.getLogger(self.__class__.__name__)

    @property
    def enabled(self) -> bool:
        return self.config.enable_beta or self.config.enable_mass

    def produce(
        self,
        params: CalibrationParameters,
        tracks: TrackSample,
        event_time: EventTimeTable
    ) -> dict[str, OutputTable]:
        """
        Args:
            params: Active calibration parameters
            tracks: Tracks of the chunk
            event_time: Combined event time per track

        Returns:
            Mapping of table name to OutputTable, empty if neither beta
            nor mass is enabled
        """
        tables = {}
        if not self.enabled:
            return tables

        usable = tracks.has_collision & event_time.usable()
        beta = compute_beta(tracks, event_time.value)
        beta = np.where(usable, beta, consts.NSIGMA_EMPTY_VALUE)

        if self.config.enable_beta:
            beta_sigma = compute_beta_sigma(
                tracks, beta, event_time.value, event_time.error, params.time_resolution
            )
            tables[BETA_TABLE] = OutputTable(BETA_TABLE, {"beta": beta, "beta_error": beta_sigma})

        if self.config.enable_mass:
            mass_params = params if self.config.use_tof_params_for_beta_mass else None
            tables[MASS_TABLE] = OutputTable(MASS_TABLE, {"mass": compute_tof_mass(tracks, beta, mass_params)})

        self.logger.debug(f"Beta for {int((beta > 0).sum())} of {len(tracks)} tracks")
        return tables
