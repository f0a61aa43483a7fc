"""
Calibration domain models.

Immutable calibration snapshot consumed by the TOF response, plus the
objects it is built from (per-pass parameter collections and time-shift
curves).
"""

from dataclasses import dataclass, field, replace
from typing import Optional

import numpy as np


RESOLUTION_LAYOUT_RUN3 = "run3"
RESOLUTION_LAYOUT_RUN2 = "run2"
RESOLUTION_LAYOUTS = (RESOLUTION_LAYOUT_RUN3, RESOLUTION_LAYOUT_RUN2)

DEFAULT_TRACK_RESOLUTION_KEY = "default"


@dataclass(frozen=True, eq=False)
class TimeShiftCurve:
    """
    Time shift (ps) as a function of eta.

    Evaluated by linear interpolation between the stored points and
    clamped to the end values outside of them.
    """

    x: np.ndarray
    y: np.ndarray
    source: str = ""

    def __post_init__(self):
        if len(self.x) != len(self.y):
            raise ValueError(f"x and y must have equal lengths, got {len(self.x)} and {len(self.y)}")
        if len(self.x) == 0:
            raise ValueError("TimeShiftCurve needs at least one point")
        if np.any(np.diff(self.x) < 0):
            raise ValueError("TimeShiftCurve x values must be sorted")

    def __call__(self, eta):
        return np.interp(eta, self.x, self.y)

    @classmethod
    def from_points(cls, x, y, source: str = "") -> 'TimeShiftCurve':
        x = np.asarray(x, dtype=np.float64)
        y = np.asarray(y, dtype=np.float64)
        order = np.argsort(x, kind="stable")
        return cls(x=x[order], y=y[order], source=source)

    @classmethod
    def from_dict(cls, data: dict, source: str = "") -> 'TimeShiftCurve':
        """Create a curve from {"x": [...], "y": [...]}."""
        return cls.from_points(data["x"], data["y"], source=source)


class ParameterCollection:
    """
    Calibration parameters grouped by reconstruction pass.

    Each pass maps parameter names to values, as stored in the
    calibration store or in a parameter file.
    """

    def __init__(self, passes: dict[str, dict]):
        self._passes = dict(passes)

    def has_pass(self, pass_name: str) -> bool:
        return pass_name in self._passes

    def retrieve(self, pass_name: str) -> Optional[dict]:
        """Return the parameters of a pass, or None if it is not stored."""
        return self._passes.get(pass_name)

    @property
    def pass_names(self) -> list[str]:
        return list(self._passes.keys())

    @classmethod
    def from_dict(cls, data: dict) -> 'ParameterCollection':
        """Accept either {"passes": {...}} or the pass mapping itself."""
        passes = data.get("passes", data)
        if not isinstance(passes, dict):
            raise ValueError(f"Parameter collection must map pass names to parameters, got {type(passes).__name__}")
        return cls(passes)

    def __repr__(self) -> str:
        return f"ParameterCollection(passes={self.pass_names})"


@dataclass(frozen=True)
class CalibrationParameters:
    """
    Active TOF response parameters.

    One instance is active at a time; a refresh replaces it as a whole.
    """

    pass_name: str = ""
    layout: str = RESOLUTION_LAYOUT_RUN3

    # Intrinsic TOF time resolution (ps)
    time_resolution: float = 60.0

    # Run 3 per-species track resolution, polynomial in 1/p (ps)
    track_resolution: dict = field(default_factory=lambda: {DEFAULT_TRACK_RESOLUTION_KEY: (10.0, 30.0)})

    # Run 2 layout: relative momentum resolution P0..P2, tracking term P3, TOF term P4
    run2_resolution: tuple[float, ...] = (0.008, 0.008, 0.002, 40.0, 60.0)

    # Relative momentum shift per unit charge, polynomial in eta
    momentum_shift: tuple[float, ...] = ()

    time_shift_pos: Optional[TimeShiftCurve] = None
    time_shift_neg: Optional[TimeShiftCurve] = None

    def __post_init__(self):
        if self.layout not in RESOLUTION_LAYOUTS:
            raise ValueError(f"layout must be one of {RESOLUTION_LAYOUTS}, got '{self.layout}'")
        if self.time_resolution < 0:
            raise ValueError(f"time_resolution must be non-negative, got {self.time_resolution}")
        if len(self.run2_resolution) != 5:
            raise ValueError(f"run2_resolution needs 5 parameters, got {len(self.run2_resolution)}")

    def momentum_charge_shift(self, eta):
        """Relative momentum shift at the given eta."""
        eta = np.asarray(eta, dtype=np.float64)
        shift = np.zeros_like(eta)
        for power, coefficient in enumerate(self.momentum_shift):
            shift = shift + coefficient * eta ** power
        return shift

    def time_shift(self, eta, positive: bool):
        """Time shift (ps) for tracks of the given charge sign."""
        curve = self.time_shift_pos if positive else self.time_shift_neg
        if curve is None:
            return np.zeros_like(np.asarray(eta, dtype=np.float64))
        return curve(eta)

    def track_resolution_for(self, species_name: str) -> tuple[float, ...]:
        coefficients = self.track_resolution.get(species_name)
        if coefficients is None:
            coefficients = self.track_resolution.get(DEFAULT_TRACK_RESOLUTION_KEY, ())
        return tuple(coefficients)

    def with_pass_parameters(self, pass_name: str, parameters: dict, layout: str) -> 'CalibrationParameters':
        """
        Return a copy with the resolution and momentum-shift parameters
        of a pass. Parameters missing from the pass keep their values.
        """
        track_resolution = parameters.get("track_resolution", self.track_resolution)
        return replace(
            self,
            pass_name=pass_name,
            layout=layout,
            time_resolution=float(parameters.get("time_resolution", self.time_resolution)),
            track_resolution={k: tuple(v) for k, v in track_resolution.items()},
            run2_resolution=tuple(parameters.get("run2_resolution", self.run2_resolution)),
            momentum_shift=tuple(parameters.get("momentum_shift", self.momentum_shift)),
        )

    def with_time_shift(self, curve: Optional[TimeShiftCurve], positive: bool) -> 'CalibrationParameters':
        if positive:
            return replace(self, time_shift_pos=curve)
        return replace(self, time_shift_neg=curve)

    def describe(self) -> dict:
        """Summary used when logging the active configuration."""
        return {
            "pass": self.pass_name,
            "layout": self.layout,
            "time_resolution": self.time_resolution,
            "track_resolution": self.track_resolution,
            "run2_resolution": self.run2_resolution,
            "momentum_shift": self.momentum_shift,
            "time_shift_pos": self.time_shift_pos.source if self.time_shift_pos else None,
            "time_shift_neg": self.time_shift_neg.source if self.time_shift_neg else None,
        }
