"""
Pipeline context.

Immutable context object passed between state handlers.
"""

from dataclasses import dataclass, field, replace
from typing import Optional
from datetime import datetime

from domain.calibration import CalibrationParameters
from domain.config import PipelineConfig
from domain.metadata import DataTakingPeriod
from domain.tables import EventTimeTable, OutputTable
from domain.tracks import DataChunk
from services.event_time.combiner import EventTimeMode
from .states import PipelineState


@dataclass(frozen=True)
class PipelineContext:
    """
    Immutable context for pipeline execution.

    Contains all state needed for pipeline execution.
    Each state handler returns a new context with updated fields.
    """

    # Configuration
    config: PipelineConfig

    # Current state
    current_state: PipelineState

    # Resolved once at startup
    period: DataTakingPeriod = DataTakingPeriod.RUN3
    event_time_mode: Optional[EventTimeMode] = None

    # Execution metadata
    start_time: datetime = field(default_factory=datetime.now)

    # Input chunks, in processing order
    chunks: list[DataChunk] = field(default_factory=list)

    # Calibration snapshot per run number
    parameters: dict[int, CalibrationParameters] = field(default_factory=dict)

    # Per chunk index
    event_times: dict[int, EventTimeTable] = field(default_factory=dict)
    tables: dict[int, dict[str, OutputTable]] = field(default_factory=dict)

    # Error tracking
    error_message: Optional[str] = None
    error_details: Optional[dict] = None

    def with_state(self, new_state: PipelineState) -> 'PipelineContext':
        """
        Return new context with updated state.

        Args:
            new_state: New pipeline state

        Returns:
            New PipelineContext with updated state
        """
        return replace(self, current_state=new_state)

    def with_event_time_mode(self, mode: Optional[EventTimeMode]) -> 'PipelineContext':
        return replace(self, event_time_mode=mode)

    def with_parameters(self, run_number: int, parameters: CalibrationParameters) -> 'PipelineContext':
        """
        Return new context with the calibration snapshot of a run.

        Args:
            run_number: Run the parameters apply to
            parameters: Active parameters for that run

        Returns:
            New PipelineContext with the snapshot recorded
        """
        new_parameters = self.parameters.copy()
        new_parameters[run_number] = parameters
        return replace(self, parameters=new_parameters)

    def with_event_times(self, event_times: dict[int, EventTimeTable]) -> 'PipelineContext':
        return replace(self, event_times=event_times)

    def with_tables(self, chunk_index: int, tables: dict[str, OutputTable]) -> 'PipelineContext':
        """
        Return new context with output tables added for a chunk.

        Tables with the same name replace earlier ones.
        """
        new_tables = self.tables.copy()
        merged = dict(new_tables.get(chunk_index, {}))
        merged.update(tables)
        new_tables[chunk_index] = merged
        return replace(self, tables=new_tables)

    def with_error(self, message: str, details: Optional[dict] = None) -> 'PipelineContext':
        """
        Return new context with error information.

        Args:
            message: Error message
            details: Optional error details dict

        Returns:
            New PipelineContext with error information
        """
        return replace(
            self,
            current_state=PipelineState.FAILED,
            error_message=message,
            error_details=details or {}
        )

    def parameters_for(self, chunk: DataChunk) -> CalibrationParameters:
        """Calibration snapshot recorded for the run of a chunk."""
        if chunk.run.run_number not in self.parameters:
            raise KeyError(f"No calibration recorded for run {chunk.run.run_number}")
        return self.parameters[chunk.run.run_number]

    @property
    def elapsed_time(self) -> float:
        """Get elapsed time in seconds."""
        return (datetime.now() - self.start_time).total_seconds()

    @property
    def is_terminal(self) -> bool:
        """Check if current state is terminal."""
        return self.current_state.is_terminal()

    @property
    def is_successful(self) -> bool:
        """Check if pipeline completed successfully."""
        return self.current_state == PipelineState.COMPLETED

    @property
    def has_error(self) -> bool:
        """Check if pipeline failed."""
        return self.current_state == PipelineState.FAILED

    def get_summary(self) -> dict:
        """
        Get summary of pipeline execution.

        Returns:
            Dict with execution summary
        """
        return {
            "state": str(self.current_state),
            "elapsed_time_sec": self.elapsed_time,
            "start_time": self.start_time.isoformat(),
            "period": str(self.period),
            "event_time_mode": self.event_time_mode.value if self.event_time_mode else None,
            "chunks_count": len(self.chunks),
            "tracks_count": sum(len(chunk) for chunk in self.chunks),
            "runs": sorted(self.parameters),
            "has_error": self.has_error,
            "error_message": self.error_message,
            "is_successful": self.is_successful,
        }
