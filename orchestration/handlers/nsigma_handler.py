"""
NsigmaHandler - Handles the NSIGMA state.

Fills the tiny and full nsigma tables of the enabled species for every
chunk, with the calibration recorded for the chunk's run.
"""

from orchestration.context import PipelineContext
from orchestration.states import PipelineState
from services.nsigma.producer import NsigmaProducer
from .base import StateHandler


class NsigmaHandler(StateHandler):
    """Handler for NSIGMA state."""

    def __init__(self, producer: NsigmaProducer):
        super().__init__()
        self.producer = producer

    def handle(self, context: PipelineContext) -> tuple[PipelineContext, PipelineState]:
        self._log_state_entry(context)

        for index, chunk in enumerate(context.chunks):
            event_time = context.event_times.get(index)
            if event_time is None:
                raise RuntimeError(f"No event time for chunk {chunk.source}")

            tables = self.producer.produce(context.parameters_for(chunk), chunk.tracks, event_time)
            context = context.with_tables(index, tables)
            self.logger.debug(f"Filled {len(tables)} nsigma tables for {chunk.source}")

        next_state = self._determine_next_state(context)
        self._log_state_exit(context, next_state)
        return context, next_state
