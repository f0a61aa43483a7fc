"""
Calibration services.

Keyed calibration stores, their disk cache and the parameter store that
keeps the TOF response parameters current.
"""

from .cache import CalibrationCache
from .store import CalibrationStore, LocalCalibrationStore, HttpCalibrationStore
from .parameter_store import CalibrationParameterStore
from .collision_system import classify_collision_system

__all__ = [
    "CalibrationCache",
    "CalibrationStore",
    "LocalCalibrationStore",
    "HttpCalibrationStore",
    "CalibrationParameterStore",
    "classify_collision_system",
]
