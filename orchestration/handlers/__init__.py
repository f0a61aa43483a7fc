"""
State handlers for pipeline execution.

Each handler implements logic for a specific pipeline state.
"""

from .base import StateHandler, next_enabled_state
from .calibration_setup_handler import CalibrationSetupHandler
from .event_time_handler import EventTimeHandler
from .nsigma_handler import NsigmaHandler
from .beta_mass_handler import BetaMassHandler

__all__ = [
    "StateHandler",
    "next_enabled_state",
    "CalibrationSetupHandler",
    "EventTimeHandler",
    "NsigmaHandler",
    "BetaMassHandler",
]
