"""
Dataset metadata domain models.

Describes the dataset being processed: real data or MC, Run 2 or Run 3,
reconstruction pass and colliding system.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class CollisionSystem(Enum):
    """Colliding system, with the integer codes used in configuration."""

    UNDEFINED = -1
    PP = 0
    PBPB = 1
    XEXE = 2
    PPB = 3

    @classmethod
    def from_code(cls, code: int) -> 'CollisionSystem':
        try:
            return cls(code)
        except ValueError:
            raise ValueError(
                f"Unknown collision system code {code}. "
                f"Known codes: {[s.value for s in cls]}"
            ) from None

    def __str__(self) -> str:
        return {
            CollisionSystem.UNDEFINED: "undefined",
            CollisionSystem.PP: "pp",
            CollisionSystem.PBPB: "PbPb",
            CollisionSystem.XEXE: "XeXe",
            CollisionSystem.PPB: "pPb",
        }[self]


class DataTakingPeriod(Enum):
    """Processing variant selected once at startup."""

    RUN2 = "run2"
    RUN3 = "run3"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class DatasetMetadata:
    """
    Metadata attached to the input dataset.

    Keys follow the AO2D metadata convention (DataType, Run,
    RecoPassName, AnchorPassName, AnchorProduction).
    """

    values: dict = field(default_factory=dict)

    REQUIRED_KEYS = ("DataType", "Run", "RecoPassName")

    @property
    def is_initialized(self) -> bool:
        return bool(self.values)

    @property
    def is_fully_defined(self) -> bool:
        return all(self.values.get(key) for key in self.REQUIRED_KEYS)

    @property
    def is_mc(self) -> bool:
        return str(self.values.get("DataType", "")).upper() == "MC"

    @property
    def is_run3(self) -> bool:
        return str(self.values.get("Run", "")) == "3"

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self.values.get(key, default)

    def reconstruction_pass(self) -> str:
        """Pass name to use for calibration lookups."""
        if self.is_mc:
            return str(self.values.get("AnchorPassName", ""))
        return str(self.values.get("RecoPassName", ""))

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> 'DatasetMetadata':
        return cls(values={str(k): str(v) for k, v in (data or {}).items()})
