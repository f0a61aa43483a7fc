"""
CalibrationParameterStore service - Keeps the TOF response parameters current.

Single responsibility: load the resolution, momentum-shift and time-shift
parameters at setup and refresh them when the run number changes.
"""

import logging
from typing import Optional

from domain.calibration import (
    CalibrationParameters,
    ParameterCollection,
    TimeShiftCurve,
    RESOLUTION_LAYOUT_RUN2,
    RESOLUTION_LAYOUT_RUN3,
)
from domain.config import CalibrationConfig, ConfigurationError
from domain.metadata import CollisionSystem, DataTakingPeriod, DatasetMetadata
from domain.tracks import RunInfo
from services import consts
from .collision_system import classify_collision_system
from .readers import is_file_source, read_parameter_file, read_time_shift_file
from .store import CalibrationStore


class CalibrationParameterStore:
    """
    Owner of the active CalibrationParameters.

    Lifecycle: setup() once at run start, refresh() at every bunch-crossing
    batch; parameters only change when the run number does. Readers get
    an immutable snapshot through the parameters property.
    """

    def __init__(
        self,
        config: CalibrationConfig,
        store: CalibrationStore,
        metadata: Optional[DatasetMetadata] = None,
        period: DataTakingPeriod = DataTakingPeriod.RUN3
    ):
        """
        Initialize the parameter store.

        Args:
            config: Calibration configuration
            store: Keyed calibration store
            metadata: Dataset metadata, used for the pass and MC detection
            period: Data taking period, selects the resolution layout
        """
        self.config = config
        self.store = store
        self.metadata = metadata or DatasetMetadata()
        self.period = period
        self.logger = logging.getLogger(self.__class__.__name__)

        self._parameters = CalibrationParameters(layout=self._layout)
        self._param_file_collection: Optional[ParameterCollection] = None
        self._last_run_number = -1
        self._timestamp = config.timestamp
        self._reconstruction_pass = config.reconstruction_pass
        self._collision_system = CollisionSystem.from_code(config.collision_system)
        self._is_setup = False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def parameters(self) -> CalibrationParameters:
        return self._parameters

    @property
    def collision_system(self) -> CollisionSystem:
        return self._collision_system

    @property
    def last_run_number(self) -> int:
        return self._last_run_number

    @property
    def reconstruction_pass(self) -> str:
        return self._reconstruction_pass

    def setup(self) -> CalibrationParameters:
        """
        Load the parameters available at start time.

        Parameters from a file are loaded here and never refreshed; store
        parameters are loaded here only when the response is not time
        dependent.

        Raises:
            ConfigurationError: If no usable pass can be loaded
        """
        if self.config.pass_from_metadata:
            self.logger.info("Getting pass from metadata")
            self._reconstruction_pass = self.metadata.reconstruction_pass()
            self.logger.info(f"Passed autodetect mode for pass. Taking '{self._reconstruction_pass}'")
        self.logger.info(f"Using parameter collection, starting from pass '{self._reconstruction_pass}'")

        if self.config.param_file_name:
            self.logger.info(
                f"Loading exp. sigma parametrization from file {self.config.param_file_name}, "
                f"using param: {self.config.parametrization_path} and pass {self._reconstruction_pass}"
            )
            if self.config.param_file_name.endswith(".root"):
                raise ConfigurationError(
                    f"Parameter file {self.config.param_file_name} must be YAML or JSON"
                )
            self._param_file_collection = read_parameter_file(
                self.config.param_file_name,
                self.config.parametrization_path
            )
            self._apply_collection(self._param_file_collection, "file")
        elif not self.config.enable_time_dependent_response:
            self.logger.info(
                f"Loading initial exp. sigma parametrization from store, using path: "
                f"{self.config.parametrization_path} for timestamp {self._timestamp}"
            )
            self._apply_collection(self._fetch_collection(self._timestamp), "store")

        for path, positive in self._time_shift_sources():
            self._update_time_shift(path, positive, at_setup=True)

        self._is_setup = True
        self.logger.info(f"Parametrization at init time: {self._parameters.describe()}")
        return self._parameters

    def refresh(self, run_info: RunInfo) -> CalibrationParameters:
        """
        Update the parameters for the run of the current batch.

        Does nothing when the run number is the one seen last.

        Args:
            run_info: Run number and timestamp of the current batch

        Returns:
            The active parameters after the refresh
        """
        if not self._is_setup:
            self.setup()

        self.logger.debug(
            f"Processing setup for run number {run_info.run_number} from run {self._last_run_number}"
        )
        if run_info.run_number == self._last_run_number:
            return self._parameters

        self.logger.info(
            f"Updating the parametrization from last run {self._last_run_number} to {run_info.run_number} "
            f"and timestamp from {self._timestamp} {run_info.timestamp}"
        )
        self._last_run_number = run_info.run_number
        self._timestamp = run_info.timestamp

        if self._collision_system == CollisionSystem.UNDEFINED:
            grp = self.store.fetch(self.config.grplhcif_path, self._timestamp)
            self._collision_system = classify_collision_system(grp)
            self.logger.info(f"Collision system from {self.config.grplhcif_path}: {self._collision_system}")
        else:
            self.logger.debug(f"Not setting collision system as already set to {self._collision_system}")

        if not self.config.enable_time_dependent_response:
            return self._parameters

        if not self.config.param_file_name:
            self.logger.info(
                f"Updating parametrization from path '{self.config.parametrization_path}' and timestamp "
                f"{self._timestamp} and reconstruction pass '{self._reconstruction_pass}' "
                f"for run number {run_info.run_number}"
            )
            self._apply_collection(self._fetch_collection(self._timestamp), "store")

        for path, positive in self._time_shift_sources():
            self._update_time_shift(path, positive, at_setup=False)

        self.logger.info(f"Parametrization at setup time: {self._parameters.describe()}")
        return self._parameters

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @property
    def _layout(self) -> str:
        if self.period == DataTakingPeriod.RUN2:
            return RESOLUTION_LAYOUT_RUN2
        return RESOLUTION_LAYOUT_RUN3

    @property
    def _store_metadata(self) -> dict:
        if not self._reconstruction_pass:
            return {}
        return {consts.PASS_METADATA_KEY: self._reconstruction_pass}

    def _fetch_collection(self, timestamp: int) -> ParameterCollection:
        payload = self.store.fetch(self.config.parametrization_path, timestamp)
        if payload is None:
            raise ConfigurationError(
                f"No parameter collection at '{self.config.parametrization_path}' for timestamp {timestamp}"
            )
        return ParameterCollection.from_dict(payload)

    def _apply_collection(self, collection: ParameterCollection, origin: str):
        """
        Activate the parameters of the configured pass, falling back to
        the default pass when allowed.
        """
        pass_name = self._reconstruction_pass or self.config.reconstruction_pass_default
        parameters = collection.retrieve(pass_name)

        if parameters is None:
            if self.config.fatal_on_pass_not_available:
                raise ConfigurationError(
                    f"Pass '{pass_name}' not available in the retrieved object from {origin}"
                )
            default_pass = self.config.reconstruction_pass_default
            self.logger.warning(
                f"Pass '{pass_name}' not available in the retrieved object from {origin}, "
                f"fetching '{default_pass}'"
            )
            parameters = collection.retrieve(default_pass)
            if parameters is None:
                self.logger.error(f"Available passes: {collection.pass_names}")
                raise ConfigurationError(f"Cannot get default pass for calibration {default_pass}")
            pass_name = default_pass

        self._parameters = self._parameters.with_pass_parameters(pass_name, parameters, self._layout)

    def _time_shift_sources(self) -> list[tuple[str, bool]]:
        if self.metadata.is_mc:
            return [
                (self.config.time_shift_path_pos_mc, True),
                (self.config.time_shift_path_neg_mc, False),
            ]
        return [
            (self.config.time_shift_path_pos, True),
            (self.config.time_shift_path_neg, False),
        ]

    def _update_time_shift(self, path: str, positive: bool, at_setup: bool):
        if not path:
            return

        charge = "positive" if positive else "negative"
        curve: Optional[TimeShiftCurve]

        if is_file_source(path):
            # File curves are read once
            if not at_setup:
                return
            self.logger.info(f"Initializing the time shift for {charge} from file '{path}'")
            curve = read_time_shift_file(path)
        else:
            if at_setup and self.config.enable_time_dependent_response:
                return
            self.logger.info(
                f"Updating the time shift for {charge} from store '{path}' and timestamp "
                f"{self._timestamp} and pass '{self._reconstruction_pass}'"
            )
            payload = self.store.fetch(path, self._timestamp, self._store_metadata)
            if payload is None:
                self.logger.warning(f"No time shift for {charge} tracks at '{path}', using none")
                curve = None
            else:
                curve = TimeShiftCurve.from_dict(payload, source=path)

        self._parameters = self._parameters.with_time_shift(curve, positive)
        self.logger.info(f"Time shift at eta 0 for {charge} tracks: {float(self._parameters.time_shift(0.0, positive))}")
