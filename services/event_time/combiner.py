"""
EventTimeCombiner service - Merges the TOF and FT0 event times.

Single responsibility: decide, per track, which event-time sources are
usable and combine them with inverse-variance weights.
"""

import logging
import math
from enum import Enum
from typing import Optional

from domain.config import EventTimeConfig, ConfigurationError
from domain.event_time import CombinedTime, EventTimeEstimate, EventTimeFlags, ExternalTime
from domain.metadata import CollisionSystem
from .weighting import combine_inverse_variance


class EventTimeMode(Enum):
    """Which event-time sources are used for PID."""

    TOF_ONLY = "tof"
    FT0_ONLY = "ft0"
    TOF_AND_FT0 = "tof_ft0"

    @property
    def uses_tof(self) -> bool:
        return self in (EventTimeMode.TOF_ONLY, EventTimeMode.TOF_AND_FT0)

    @property
    def uses_ft0(self) -> bool:
        return self in (EventTimeMode.FT0_ONLY, EventTimeMode.TOF_AND_FT0)


# Source choice for the systems that support auto mode, as (tof, ft0)
AUTO_SOURCES = {
    CollisionSystem.PP: (False, True),
    CollisionSystem.PBPB: (True, False),
}


def resolve_event_time_mode(config: EventTimeConfig, collision_system: CollisionSystem) -> EventTimeMode:
    """
    Resolve the event-time mode once per dataset.

    Explicit compute_with_tof / compute_with_ft0 settings override the
    choice made from the collision system.

    Raises:
        ConfigurationError: If a source is left on auto for a collision
            system without a default, or if both sources end up disabled
    """
    use_tof = config.compute_with_tof
    use_ft0 = config.compute_with_ft0

    if use_tof == -1 or use_ft0 == -1:
        if collision_system not in AUTO_SOURCES:
            raise ConfigurationError(
                f"Cannot autoset the event-time sources for collision system '{collision_system}'. "
                f"Set compute_with_tof and compute_with_ft0 explicitly."
            )
        auto_tof, auto_ft0 = AUTO_SOURCES[collision_system]
        if use_tof == -1:
            use_tof = int(auto_tof)
        if use_ft0 == -1:
            use_ft0 = int(auto_ft0)

    if use_tof and use_ft0:
        return EventTimeMode.TOF_AND_FT0
    if use_tof:
        return EventTimeMode.TOF_ONLY
    if use_ft0:
        return EventTimeMode.FT0_ONLY
    raise ConfigurationError("Event time cannot be computed with both TOF and FT0 disabled")


class EventTimeCombiner:
    """Combines the TOF and external event times of one track."""

    def __init__(self, config: EventTimeConfig, mode: EventTimeMode):
        self.config = config
        self.mode = mode
        self.diamond_error = config.diamond_error
        self.logger = logging.getLogger(self.__class__.__name__)
        self.logger.info(f"Event time computed with {mode.value}")

    def is_tof_usable(self, tof: Optional[EventTimeEstimate]) -> bool:
        """
        A TOF estimate is usable if it is valid, improves on the diamond
        and, when the cut is enabled, lies within max_tof_event_time.
        """
        if tof is None or not tof.is_valid:
            return False
        if not tof.error < self.diamond_error:
            return False
        if self.config.max_tof_event_time > 0 and not abs(tof.value) < self.config.max_tof_event_time:
            return False
        return True

    @staticmethod
    def is_external_usable(external: Optional[ExternalTime]) -> bool:
        if external is None or not external.is_valid:
            return False
        return external.error > 0 and math.isfinite(external.value)

    def diamond(self) -> CombinedTime:
        return CombinedTime(value=0.0, error=self.diamond_error, flags=EventTimeFlags.UNDEFINED)

    def combine(
        self,
        tof: Optional[EventTimeEstimate],
        external: Optional[ExternalTime] = None
    ) -> CombinedTime:
        """
        Combine the event-time sources allowed by the mode.

        Args:
            tof: Bias-removed TOF estimate of the track
            external: FT0 time of the track's collision

        Returns:
            CombinedTime; a single usable source is returned unchanged,
            none gives the diamond with no flags
        """
        use_tof = self.mode.uses_tof and self.is_tof_usable(tof)
        use_external = self.mode.uses_ft0 and self.is_external_usable(external)

        if use_tof and use_external:
            value, error = combine_inverse_variance([
                (tof.value, tof.error),
                (external.value, external.error),
            ])
            return CombinedTime(value=value, error=error, flags=EventTimeFlags.TOF_T0AC)
        if use_tof:
            return CombinedTime(value=tof.value, error=tof.error, flags=EventTimeFlags.TOF)
        if use_external:
            return CombinedTime(value=external.value, error=external.error, flags=EventTimeFlags.T0AC)
        return self.diamond()
