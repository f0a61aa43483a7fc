"""
CalibrationSetupHandler - Handles the CALIBRATION_SETUP state.

Loads the start-time calibration, resolves the collision system from the
first run and fixes the event-time mode for the whole dataset.
"""

from domain.metadata import DataTakingPeriod
from orchestration.context import PipelineContext
from orchestration.states import PipelineState
from services.calibration.parameter_store import CalibrationParameterStore
from services.event_time.combiner import resolve_event_time_mode
from .base import StateHandler


class CalibrationSetupHandler(StateHandler):
    """
    Handler for CALIBRATION_SETUP state.

    Raises ConfigurationError (through the state machine) when the
    calibration or the event-time mode cannot be resolved.
    """

    def __init__(self, parameter_store: CalibrationParameterStore):
        super().__init__()
        self.parameter_store = parameter_store

    def handle(self, context: PipelineContext) -> tuple[PipelineContext, PipelineState]:
        """
        Set up the calibration and determine next state.

        Args:
            context: Current pipeline context

        Returns:
            Tuple of (updated_context, next_state)
        """
        self._log_state_entry(context)

        self.parameter_store.setup()

        if not context.chunks:
            self.logger.warning("No input chunks, nothing to process")
            return context, PipelineState.COMPLETED

        first_run = context.chunks[0].run
        parameters = self.parameter_store.refresh(first_run)
        context = context.with_parameters(first_run.run_number, parameters)

        if context.period == DataTakingPeriod.RUN2:
            self.logger.info("Run 2 event time is taken from the collision table")
            mode = None
        else:
            collision_system = self.parameter_store.collision_system
            mode = resolve_event_time_mode(context.config.event_time, collision_system)
            self.logger.info(f"Collision system {collision_system}, event time mode {mode.value}")

        context = context.with_event_time_mode(mode)
        next_state = self._determine_next_state(context)
        self._log_state_exit(context, next_state)
        return context, next_state
