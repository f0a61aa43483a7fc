"""
EventTimeHandler - Handles the EVENT_TIME state.

Refreshes the calibration at every run transition and fills the
per-track event-time table of every chunk.
"""

from datetime import datetime

from domain.metadata import DataTakingPeriod
from orchestration.context import PipelineContext
from orchestration.states import PipelineState
from services.calibration.parameter_store import CalibrationParameterStore
from services.event_time.combiner import EventTimeCombiner
from services.event_time.estimator import EventTimeMaker
from services.event_time.producer import EventTimeProducer
from .base import StateHandler


class EventTimeHandler(StateHandler):
    """Handler for EVENT_TIME state."""

    def __init__(self, parameter_store: CalibrationParameterStore, maker: EventTimeMaker):
        super().__init__()
        self.parameter_store = parameter_store
        self.maker = maker

    def handle(self, context: PipelineContext) -> tuple[PipelineContext, PipelineState]:
        self._log_state_entry(context)
        start = datetime.now()

        config = context.config
        combiner = None
        if context.period == DataTakingPeriod.RUN3:
            combiner = EventTimeCombiner(config.event_time, context.event_time_mode)
        producer = EventTimeProducer(
            config.event_time,
            self.maker,
            combiner,
            show_progress_bar=config.show_progress_bar
        )

        event_times = {}
        for index, chunk in enumerate(context.chunks):
            # Idempotent while the run number does not change
            parameters = self.parameter_store.refresh(chunk.run)
            context = context.with_parameters(chunk.run.run_number, parameters)

            if context.period == DataTakingPeriod.RUN2:
                table = producer.produce_run2(chunk.tracks, chunk.collisions)
            else:
                table = producer.produce(parameters, chunk.tracks, chunk.collisions)

            event_times[index] = table
            context = context.with_tables(index, table.to_tables())
            self.logger.info(f"Event time for {len(chunk)} tracks of {chunk.source} (run {chunk.run.run_number})")

        context = context.with_event_times(event_times)
        self.logger.info(f"Event time stage took {(datetime.now() - start).total_seconds():.1f}s")

        next_state = self._determine_next_state(context)
        self._log_state_exit(context, next_state)
        return context, next_state
