"""
Domain models for the TOF PID pipeline.

Pure data structures with validation, no business logic.
"""

from .species import Species, ALL_SPECIES, DEFAULT_EVENT_TIME_HYPOTHESES
from .tracks import TrackSample, CollisionInfo, CollisionTable, RunInfo, DataChunk
from .tables import EventTimeTable, OutputTable
from .calibration import CalibrationParameters, ParameterCollection, TimeShiftCurve
from .metadata import CollisionSystem, DataTakingPeriod, DatasetMetadata
from .event_time import (
    EventTimeFlags,
    EventTimeEstimate,
    ExternalTime,
    CombinedTime,
    TofOnlyEventTime,
)
from .config import (
    ConfigurationError,
    PipelineConfig,
    TaskConfig,
    CalibrationConfig,
    EventTimeConfig,
    NsigmaConfig,
)

__all__ = [
    "Species",
    "ALL_SPECIES",
    "DEFAULT_EVENT_TIME_HYPOTHESES",
    "TrackSample",
    "CollisionInfo",
    "CollisionTable",
    "RunInfo",
    "DataChunk",
    "EventTimeTable",
    "OutputTable",
    "CalibrationParameters",
    "ParameterCollection",
    "TimeShiftCurve",
    "CollisionSystem",
    "DataTakingPeriod",
    "DatasetMetadata",
    "EventTimeFlags",
    "EventTimeEstimate",
    "ExternalTime",
    "CombinedTime",
    "TofOnlyEventTime",
    "ConfigurationError",
    "PipelineConfig",
    "TaskConfig",
    "CalibrationConfig",
    "EventTimeConfig",
    "NsigmaConfig",
]
