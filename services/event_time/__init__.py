"""
Event time services.

Estimation of the collision time from TOF tracks, combination with the
FT0 time and per-track table production.
"""

from .estimator import EventTimeMaker, CollisionEventTime, select_tracks_for_event_time
from .combiner import EventTimeCombiner, EventTimeMode, resolve_event_time_mode
from .producer import EventTimeProducer
from .weighting import combine_inverse_variance, inverse_variance_weight

__all__ = [
    "EventTimeMaker",
    "CollisionEventTime",
    "select_tracks_for_event_time",
    "EventTimeCombiner",
    "EventTimeMode",
    "resolve_event_time_mode",
    "EventTimeProducer",
    "combine_inverse_variance",
    "inverse_variance_weight",
]
