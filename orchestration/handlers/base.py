"""
Base state handler.

Abstract base class for all state handlers.
"""

from abc import ABC, abstractmethod
import logging

from orchestration.context import PipelineContext
from orchestration.states import PipelineState


def next_enabled_state(context: PipelineContext) -> PipelineState:
    """
    Determine next state based on configuration.

    Follows the stage order (calibration -> event time -> nsigma ->
    beta/mass), skipping disabled stages.

    Args:
        context: Current pipeline context

    Returns:
        Next pipeline state
    """
    tasks = context.config.tasks
    current = context.current_state

    if current == PipelineState.IDLE:
        return PipelineState.CALIBRATION_SETUP

    elif current == PipelineState.CALIBRATION_SETUP:
        if tasks.do_event_time:
            return PipelineState.EVENT_TIME
        else:
            return PipelineState.COMPLETED

    elif current == PipelineState.EVENT_TIME:
        if tasks.do_nsigma:
            return PipelineState.NSIGMA
        elif tasks.do_beta_mass:
            return PipelineState.BETA_MASS
        else:
            return PipelineState.COMPLETED

    elif current == PipelineState.NSIGMA:
        if tasks.do_beta_mass:
            return PipelineState.BETA_MASS
        else:
            return PipelineState.COMPLETED

    # Default: COMPLETED
    return PipelineState.COMPLETED


class StateHandler(ABC):
    """
    Base class for state handlers.

    Each state handler implements the logic for transitioning
    from one state to the next.
    """

    def __init__(self):
        """Initialize state handler."""
        self.logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    def handle(self, context: PipelineContext) -> tuple[PipelineContext, PipelineState]:
        """
        Handle the current state and determine next state.

        Args:
            context: Current pipeline context

        Returns:
            Tuple of (updated_context, next_state)

        Raises:
            Exception: If state handling fails
        """
        pass

    def _determine_next_state(self, context: PipelineContext) -> PipelineState:
        return next_enabled_state(context)

    def _log_state_entry(self, context: PipelineContext):
        """Log entry to state."""
        self.logger.info(f"Entering state: {context.current_state}")

    def _log_state_exit(self, context: PipelineContext, next_state: PipelineState):
        """Log exit from state."""
        self.logger.info(
            f"Exiting state: {context.current_state} → {next_state}"
        )
