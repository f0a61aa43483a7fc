"""
State machine for pipeline execution.

Runs the stage handlers in order until COMPLETED or FAILED.
"""

import logging
import time
from typing import Dict

from domain.config import ConfigurationError
from .context import PipelineContext
from .states import PipelineState, is_valid_transition
from .handlers.base import StateHandler, next_enabled_state


class StateMachine:
    """
    Drives a PipelineContext through the pipeline stages.

    Any exception raised by a handler ends the run in FAILED; the
    exception type is kept in the error details so that configuration
    problems can be told apart from processing errors.
    """

    # Stages without which no table is produced
    REQUIRED_STATES = (PipelineState.CALIBRATION_SETUP, PipelineState.EVENT_TIME)

    def __init__(self, handlers: Dict[PipelineState, StateHandler]):
        self.handlers = handlers
        self.logger = logging.getLogger(self.__class__.__name__)
        self.stage_durations: Dict[PipelineState, float] = {}

        missing = [str(state) for state in self.REQUIRED_STATES if state not in handlers]
        if missing:
            self.logger.warning(f"Missing handlers for states: {missing}")

    def run(self, initial_context: PipelineContext) -> PipelineContext:
        """
        Run the stages until a terminal state is reached.

        Args:
            initial_context: Context in the IDLE state

        Returns:
            Final pipeline context
        """
        context = initial_context
        self.stage_durations = {}
        # Stages never repeat, so every state is visited at most once
        steps_left = len(PipelineState)

        self.logger.info(f"Starting pipeline with {len(context.chunks)} chunks")

        while not context.is_terminal:
            if steps_left == 0:
                context = context.with_error(
                    message="Pipeline did not reach a terminal state",
                    details={"state": str(context.current_state)}
                )
                break
            steps_left -= 1

            state = context.current_state
            started = time.perf_counter()
            try:
                context = self._step(context)
            except ConfigurationError as e:
                self.logger.error(f"Configuration error in {state}: {e}")
                context = context.with_error(
                    message=f"Error in {state}: {e}",
                    details={"state": str(state), "exception": type(e).__name__}
                )
            except Exception as e:
                self.logger.error(f"Error in state {state}: {e}", exc_info=True)
                context = context.with_error(
                    message=f"Error in {state}: {e}",
                    details={"state": str(state), "exception": type(e).__name__}
                )
            finally:
                self.stage_durations[state] = time.perf_counter() - started

        self._log_final_state(context)
        return context

    def _step(self, context: PipelineContext) -> PipelineContext:
        """Run the handler of the current state and move to the state it picks."""
        state = context.current_state
        handler = self.handlers.get(state)

        if handler is None:
            self.logger.debug(f"No handler for state {state}, moving on")
            return context.with_state(next_enabled_state(context))

        updated_context, next_state = handler.handle(context)

        if not is_valid_transition(state, next_state):
            self.logger.error(f"Invalid transition: {state} → {next_state}")
            return context.with_error(message=f"Invalid state transition: {state} → {next_state}")

        self.logger.info(f"Transition: {state} → {next_state}")
        return updated_context.with_state(next_state)

    def _log_final_state(self, context: PipelineContext):
        if context.is_successful:
            self.logger.info("✓ Pipeline completed successfully")
        else:
            self.logger.error(f"✗ Pipeline failed: {context.error_message}")

        for state, seconds in self.stage_durations.items():
            if state in self.handlers:
                self.logger.info(f"  {str(state):20s} {seconds:.2f}s")
        self.logger.info(f"Final state: {context.current_state}, elapsed {context.elapsed_time:.1f}s")
