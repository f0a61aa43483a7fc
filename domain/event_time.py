"""
Event-time domain models.

Values and errors are in ps.
"""

from dataclasses import dataclass
from enum import IntFlag

import math


# Track-level event time written for tracks with no collision
UNASSIGNED_EVENT_TIME_ERROR = 999.0


class EventTimeFlags(IntFlag):
    """Sources that contributed to a per-track event time."""

    UNDEFINED = 0
    TOF = 1
    T0AC = 2
    TOF_T0AC = 3


@dataclass(frozen=True)
class EventTimeEstimate:
    """Event time of one collision, or of one track after bias removal."""

    value: float
    error: float
    multiplicity: int = 0
    is_valid: bool = False

    def __post_init__(self):
        if self.error < 0:
            raise ValueError(f"error must be non-negative, got {self.error}")
        if self.multiplicity < 0:
            raise ValueError(f"multiplicity must be non-negative, got {self.multiplicity}")

    @property
    def weight(self) -> float:
        """Inverse variance; zero when the error is zero or infinite."""
        if self.error <= 0 or math.isinf(self.error):
            return 0.0
        return 1.0 / (self.error * self.error)


@dataclass(frozen=True)
class ExternalTime:
    """Event time measured by a separate detector (FT0)."""

    value: float
    error: float
    is_valid: bool = True

    @classmethod
    def from_ft0(cls, t0ac_ns: float, resolution_ns: float, valid: bool) -> 'ExternalTime':
        """Convert an FT0 A+C time and resolution from ns to ps."""
        return cls(value=t0ac_ns * 1000.0, error=resolution_ns * 1000.0, is_valid=valid)


@dataclass(frozen=True)
class CombinedTime:
    """Final per-track event time used for PID."""

    value: float
    error: float
    flags: EventTimeFlags = EventTimeFlags.UNDEFINED
    assigned: bool = True

    @property
    def is_usable(self) -> bool:
        return self.assigned and self.error > 0 and math.isfinite(self.error) and math.isfinite(self.value)

    @classmethod
    def unassigned(cls) -> 'CombinedTime':
        return cls(value=0.0, error=UNASSIGNED_EVENT_TIME_ERROR, flags=EventTimeFlags.UNDEFINED, assigned=False)


@dataclass(frozen=True)
class TofOnlyEventTime:
    """TOF-only event time reported per track alongside the combined one."""

    used_for_event_time: bool
    value: float
    error: float
    multiplicity: int

    @classmethod
    def unassigned(cls) -> 'TofOnlyEventTime':
        return cls(used_for_event_time=False, value=0.0, error=0.0, multiplicity=-1)

