"""
PipelineExecutor - High-level pipeline orchestrator.

Wires together all services and executes the state machine, then
writes the produced tables next to each input file's name.
"""

import logging
from typing import Optional

from domain.config import PipelineConfig
from domain.metadata import DataTakingPeriod, DatasetMetadata
from domain.tracks import DataChunk
from orchestration import PipelineState, PipelineContext, StateMachine
from orchestration.handlers import (
    CalibrationSetupHandler,
    EventTimeHandler,
    NsigmaHandler,
    BetaMassHandler,
)
from services.calibration import (
    CalibrationCache,
    CalibrationParameterStore,
    CalibrationStore,
    HttpCalibrationStore,
    LocalCalibrationStore,
)
from services.event_time.estimator import EventTimeMaker
from services.nsigma.beta_mass import BetaMassProducer
from services.nsigma.producer import NsigmaProducer
from services.parsing import FileParser, OutputWriter, list_input_files
from services.processing_variant import resolve_data_taking_period


class PipelineExecutor:
    """
    High-level pipeline executor.

    Responsible for:
    1. Resolving the data-taking period once at startup
    2. Creating all services with dependency injection
    3. Building the state machine with handlers
    4. Running the pipeline and saving its outputs
    """

    def __init__(self, config: PipelineConfig, store: Optional[CalibrationStore] = None):
        """
        Initialize the executor.

        Args:
            config: Validated pipeline configuration
            store: Calibration store; built from the configuration if None

        Raises:
            ConfigurationError: If the data-taking period cannot be resolved
        """
        self.config = config
        self.logger = logging.getLogger(self.__class__.__name__)
        self.metadata = DatasetMetadata.from_dict(config.dataset_metadata)
        self.period = resolve_data_taking_period(config, self.metadata)
        self.store = store or self._create_store()
        self.state_machine = self._build_state_machine()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def run(self, chunks: Optional[list[DataChunk]] = None) -> PipelineContext:
        """
        Execute the pipeline and return final context.

        Args:
            chunks: Input chunks; read from config.input_path if None
        """
        self.logger.info("Initializing pipeline execution")
        if chunks is None:
            chunks = self.load_chunks()
        initial_context = self._create_initial_context(chunks)
        final_context = self.state_machine.run(initial_context)
        self._log_results(final_context)
        return final_context

    def load_chunks(self) -> list[DataChunk]:
        """Parse every input file into a DataChunk, in file order."""
        if not self.config.input_path:
            raise ValueError("No input_path configured")

        files = list_input_files(self.config.input_path)
        if not files:
            self.logger.warning(f"No input files found at {self.config.input_path}")

        return [
            FileParser.parse_file(
                file_path,
                tracks_tree=self.config.tracks_tree,
                collisions_tree=self.config.collisions_tree,
                bc_tree=self.config.bc_tree,
                schema=self.config.input_schema,
            )
            for file_path in files
        ]

    def save_outputs(self, context: PipelineContext, output_dir: Optional[str] = None) -> list[str]:
        """
        Write the tables of every chunk to output_dir.

        Returns:
            Paths of the written files
        """
        output_dir = output_dir or self.config.output_path
        if not output_dir:
            raise ValueError("No output_path configured")

        writer = OutputWriter(output_dir)
        return [
            writer.write(chunk.source, context.tables.get(index, {}))
            for index, chunk in enumerate(context.chunks)
        ]

    # ------------------------------------------------------------------
    # Pipeline internals
    # ------------------------------------------------------------------

    def _create_initial_context(self, chunks: list[DataChunk]) -> PipelineContext:
        self.logger.info(f"Starting with {len(chunks)} chunks, period {self.period}")
        return PipelineContext(
            config=self.config,
            current_state=PipelineState.IDLE,
            period=self.period,
            chunks=chunks,
        )

    def _create_store(self) -> CalibrationStore:
        calibration = self.config.calibration
        if calibration.local_store_path:
            self.logger.info(f"Using local calibration store at {calibration.local_store_path}")
            return LocalCalibrationStore(calibration.local_store_path)

        cache = None
        if calibration.cache_path:
            cache = CalibrationCache(cache_path=calibration.cache_path, max_wait_time=300)
        self.logger.info(f"Using calibration store at {calibration.url}")
        return HttpCalibrationStore(calibration.url, timeout=calibration.request_timeout, cache=cache)

    def _build_state_machine(self) -> StateMachine:
        self.logger.info("Building state machine with services")
        services = self._create_services()
        handlers = self._create_handlers(services)
        return StateMachine(handlers)

    def _create_services(self) -> dict:
        services = {
            'parameter_store': CalibrationParameterStore(
                self.config.calibration,
                self.store,
                metadata=self.metadata,
                period=self.period
            ),
        }

        if self.config.tasks.do_event_time:
            services['event_time_maker'] = EventTimeMaker(self.config.event_time)
        if self.config.tasks.do_nsigma:
            services['nsigma_producer'] = NsigmaProducer(self.config.nsigma)
        if self.config.tasks.do_beta_mass:
            services['beta_mass_producer'] = BetaMassProducer(self.config.nsigma)

        return services

    def _create_handlers(self, services: dict) -> dict:
        handlers = {
            PipelineState.CALIBRATION_SETUP: CalibrationSetupHandler(services['parameter_store']),
        }

        if 'event_time_maker' in services:
            handlers[PipelineState.EVENT_TIME] = EventTimeHandler(
                parameter_store=services['parameter_store'],
                maker=services['event_time_maker']
            )
        if 'nsigma_producer' in services:
            handlers[PipelineState.NSIGMA] = NsigmaHandler(services['nsigma_producer'])
        if 'beta_mass_producer' in services:
            handlers[PipelineState.BETA_MASS] = BetaMassHandler(services['beta_mass_producer'])

        return handlers

    def _log_results(self, context: PipelineContext):
        self.logger.info("=" * 60)
        self.logger.info("Pipeline Execution Summary")
        self.logger.info("=" * 60)

        summary = context.get_summary()
        for key, value in summary.items():
            self.logger.info(f"{key:30s}: {value}")

        self.logger.info("=" * 60)
