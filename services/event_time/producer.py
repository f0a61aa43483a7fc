"""
EventTimeProducer service - Fills the per-track event-time table.

Single responsibility: walk the collisions of a processing chunk, run
the estimator and combiner, and write one row per track.
"""

import logging
from typing import Optional

from tqdm import tqdm

from domain.calibration import CalibrationParameters
from domain.config import EventTimeConfig
from domain.event_time import (
    UNASSIGNED_EVENT_TIME_ERROR,
    CombinedTime,
    EventTimeFlags,
    ExternalTime,
    TofOnlyEventTime,
)
from domain.tables import EventTimeTable
from domain.tracks import CollisionInfo, CollisionTable, TrackSample
from .combiner import EventTimeCombiner
from .estimator import EventTimeMaker


class EventTimeProducer:
    """Produces the event time of every track in a chunk."""

    def __init__(
        self,
        config: EventTimeConfig,
        maker: EventTimeMaker,
        combiner: Optional[EventTimeCombiner],
        show_progress_bar: bool = False
    ):
        self.config = config
        self.maker = maker
        self.combiner = combiner
        self.show_progress_bar = show_progress_bar
        self.logger = logging.getLogger(self.__class__.__name__)

    def produce(
        self,
        params: CalibrationParameters,
        tracks: TrackSample,
        collisions: CollisionTable
    ) -> EventTimeTable:
        """
        Event time of every track, Run 3 variant.

        Tracks without a collision keep the unassigned event time. Tracks of
        collisions failing the required event selection get the same value
        but stay assigned, so their PID is still computed.

        Args:
            params: Active calibration parameters
            tracks: Tracks of the chunk
            collisions: Collisions of the chunk

        Returns:
            EventTimeTable aligned with tracks
        """
        if self.combiner is None:
            raise ValueError("The Run 3 event time needs an EventTimeCombiner")

        table = EventTimeTable.unassigned(len(tracks))
        groups = list(tracks.group_by_collision())

        n_tof = 0
        for collision_id, indices in tqdm(
            groups,
            desc="Event time",
            unit="collision",
            disable=not self.show_progress_bar,
            mininterval=1
        ):
            collision = collisions.get(collision_id)
            if self.config.require_event_selection and not collision.sel8:
                self._fill_rejected(table, indices, collision)
                continue

            sample = tracks.take(indices)
            result = self.maker.estimate(params, sample)
            external = self._external_time(collision)

            if self.config.remove_bias:
                estimates = result.bias_removed()
            else:
                estimates = [result.estimate] * len(indices)

            for local, position in enumerate(indices):
                estimate = estimates[local]
                combined = self.combiner.combine(estimate, external)
                table.set_combined(position, combined)
                table.set_tof_only(position, TofOnlyEventTime(
                    used_for_event_time=result.is_used(local),
                    value=estimate.value,
                    error=estimate.error,
                    multiplicity=estimate.multiplicity,
                ))
                if combined.flags & EventTimeFlags.TOF:
                    n_tof += 1

        self.logger.debug(
            f"Event time for {len(tracks)} tracks in {len(groups)} collisions, "
            f"{n_tof} with a TOF contribution"
        )
        return table

    def produce_run2(self, tracks: TrackSample, collisions: CollisionTable) -> EventTimeTable:
        """
        Event time of every track, Run 2 variant.

        The event time is the collision time stored with the collision
        (ns, converted to ps), flagged as TOF.
        """
        table = EventTimeTable.unassigned(len(tracks))

        for collision_id, indices in tracks.group_by_collision():
            collision = collisions.get(collision_id)
            combined = CombinedTime(
                value=collision.collision_time * 1000.0,
                error=collision.collision_time_res * 1000.0,
                flags=EventTimeFlags.TOF,
            )
            for position in indices:
                table.set_combined(position, combined)

        return table

    def _fill_rejected(self, table: EventTimeTable, indices, collision: CollisionInfo):
        """Collisions failing the event selection get no event time, but their tracks stay assigned."""
        self.logger.debug(f"Collision {collision.collision_id} fails the event selection, no event time")
        rejected = CombinedTime(value=0.0, error=UNASSIGNED_EVENT_TIME_ERROR, flags=EventTimeFlags.UNDEFINED)
        tof_only = TofOnlyEventTime.unassigned()
        for position in indices:
            table.set_combined(position, rejected)
            table.set_tof_only(position, tof_only)

    @staticmethod
    def _external_time(collision: CollisionInfo):
        if not collision.has_ft0:
            return None
        return ExternalTime.from_ft0(collision.t0ac, collision.t0_resolution, collision.t0ac_valid)
