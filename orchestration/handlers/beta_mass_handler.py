"""
BetaMassHandler - Handles the BETA_MASS state.
"""

from orchestration.context import PipelineContext
from orchestration.states import PipelineState
from services.nsigma.beta_mass import BetaMassProducer
from .base import StateHandler


class BetaMassHandler(StateHandler):
    """Handler for BETA_MASS state."""

    def __init__(self, producer: BetaMassProducer):
        super().__init__()
        self.producer = producer

    def handle(self, context: PipelineContext) -> tuple[PipelineContext, PipelineState]:
        self._log_state_entry(context)

        if not self.producer.enabled:
            self.logger.warning("Neither beta nor mass is enabled, skipping")
            return context, self._determine_next_state(context)

        for index, chunk in enumerate(context.chunks):
            tables = self.producer.produce(
                context.parameters_for(chunk),
                chunk.tracks,
                context.event_times[index]
            )
            context = context.with_tables(index, tables)

        next_state = self._determine_next_state(context)
        self._log_state_exit(context, next_state)
        return context, next_state
