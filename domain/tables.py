"""
Output table domain models.

Per-track columns produced by the pipeline stages, aligned with the
input TrackSample.
"""

from dataclasses import dataclass, field

import numpy as np

from .event_time import (
    CombinedTime,
    EventTimeFlags,
    TofOnlyEventTime,
    UNASSIGNED_EVENT_TIME_ERROR,
)


@dataclass(frozen=True, eq=False)
class EventTimeTable:
    """
    Per-track event time.

    The combined columns feed the Nsigma stage; the tof_* columns hold
    the TOF-only estimate written alongside.
    """

    value: np.ndarray
    error: np.ndarray
    flags: np.ndarray
    assigned: np.ndarray
    tof_used: np.ndarray
    tof_value: np.ndarray
    tof_error: np.ndarray
    tof_multiplicity: np.ndarray

    def __post_init__(self):
        lengths = {len(getattr(self, name)) for name in self.__dataclass_fields__}
        if len(lengths) > 1:
            raise ValueError("Event time columns must have equal lengths")

    def __len__(self) -> int:
        return len(self.value)

    @classmethod
    def unassigned(cls, n_tracks: int) -> 'EventTimeTable':
        """Table where every track has the unassigned event time."""
        unassigned_tof = TofOnlyEventTime.unassigned()
        return cls(
            value=np.zeros(n_tracks),
            error=np.full(n_tracks, UNASSIGNED_EVENT_TIME_ERROR),
            flags=np.full(n_tracks, int(EventTimeFlags.UNDEFINED), dtype=np.uint8),
            assigned=np.zeros(n_tracks, dtype=bool),
            tof_used=np.full(n_tracks, unassigned_tof.used_for_event_time, dtype=bool),
            tof_value=np.full(n_tracks, unassigned_tof.value),
            tof_error=np.full(n_tracks, unassigned_tof.error),
            tof_multiplicity=np.full(n_tracks, unassigned_tof.multiplicity, dtype=np.int16),
        )

    def set_combined(self, position: int, combined: CombinedTime):
        self.value[position] = combined.value
        self.error[position] = combined.error
        self.flags[position] = int(combined.flags)
        self.assigned[position] = combined.assigned

    def set_tof_only(self, position: int, tof_only: TofOnlyEventTime):
        self.tof_used[position] = tof_only.used_for_event_time
        self.tof_value[position] = tof_only.value
        self.tof_error[position] = tof_only.error
        self.tof_multiplicity[position] = tof_only.multiplicity

    def combined_time(self, position: int) -> CombinedTime:
        return CombinedTime(
            value=float(self.value[position]),
            error=float(self.error[position]),
            flags=EventTimeFlags(int(self.flags[position])),
            assigned=bool(self.assigned[position]),
        )

    def usable(self) -> np.ndarray:
        """Mask of tracks whose combined time can be used for PID."""
        return self.assigned & (self.error > 0) & np.isfinite(self.error) & np.isfinite(self.value)

    def to_tables(self) -> dict[str, 'OutputTable']:
        return {
            "pidEvTimeFlags": OutputTable("pidEvTimeFlags", {
                "event_time": self.value,
                "event_time_error": self.error,
                "event_time_flags": self.flags,
            }),
            "tofEvTime": OutputTable("tofEvTime", {
                "used_for_event_time": self.tof_used,
                "tof_event_time": self.tof_value,
                "tof_event_time_error": self.tof_error,
                "tof_event_time_multiplicity": self.tof_multiplicity,
            }),
        }


@dataclass(frozen=True, eq=False)
class OutputTable:
    """Named set of per-track columns written to the output file."""

    name: str
    columns: dict = field(default_factory=dict)

    def __post_init__(self):
        if not self.name:
            raise ValueError("Output table name cannot be empty")
        lengths = {len(values) for values in self.columns.values()}
        if len(lengths) > 1:
            raise ValueError(f"Columns of table '{self.name}' must have equal lengths")

    def __len__(self) -> int:
        for values in self.columns.values():
            return len(values)
        return 0
