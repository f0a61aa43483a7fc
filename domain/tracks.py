"""
Track and collision domain models.

Column-oriented containers for the tracks and collisions of one
processing chunk. Built from awkward arrays read with uproot.
"""

from dataclasses import dataclass
from typing import Iterator, Optional

import awkward as ak
import numpy as np


# Track reconstruction categories
TRACK_TYPE_TRACK = 0
TRACK_TYPE_TRACK_IU = 1
TRACK_TYPE_STRANGE = 2
TRACK_TYPE_RUN2_TRACK = 254
TRACK_TYPE_RUN2_TRACKLET = 255

TRACK_COLUMNS = (
    "collision_id",
    "p",
    "eta",
    "sign",
    "length",
    "tof_signal",
    "has_tof",
    "has_its",
    "has_tpc",
    "track_type",
)

COLLISION_COLUMNS = (
    "collision_id",
    "sel8",
    "has_ft0",
    "t0ac_valid",
    "t0ac",
    "t0_resolution",
    "collision_time",
    "collision_time_res",
)


@dataclass(frozen=True, eq=False)
class TrackSample:
    """
    Ordered tracks of a processing chunk.

    Times are in ps, momenta in GeV/c, lengths in cm. A negative
    collision_id marks a track without collision assignment.
    """

    collision_id: np.ndarray
    p: np.ndarray
    eta: np.ndarray
    sign: np.ndarray
    length: np.ndarray
    tof_signal: np.ndarray
    has_tof: np.ndarray
    has_its: np.ndarray
    has_tpc: np.ndarray
    track_type: np.ndarray

    def __post_init__(self):
        """Validate that all columns have the same length."""
        lengths = {name: len(getattr(self, name)) for name in TRACK_COLUMNS}
        if len(set(lengths.values())) > 1:
            raise ValueError(f"Track columns must have equal lengths, got {lengths}")

    def __len__(self) -> int:
        return len(self.p)

    @property
    def has_collision(self) -> np.ndarray:
        """Mask of tracks assigned to a collision."""
        return self.collision_id >= 0

    @classmethod
    def from_columns(cls, columns: dict) -> 'TrackSample':
        """
        Create a TrackSample from a mapping of column name to values.

        Missing hit flags default to True, a missing track type to
        TRACK_TYPE_TRACK_IU.
        """
        n = len(columns["p"])
        defaults = {
            "collision_id": np.zeros(n, dtype=np.int64),
            "sign": np.ones(n, dtype=np.int8),
            "eta": np.zeros(n, dtype=np.float64),
            "has_tof": np.ones(n, dtype=bool),
            "has_its": np.ones(n, dtype=bool),
            "has_tpc": np.ones(n, dtype=bool),
            "track_type": np.full(n, TRACK_TYPE_TRACK_IU, dtype=np.uint8),
        }
        dtypes = {
            "collision_id": np.int64,
            "sign": np.int8,
            "has_tof": bool,
            "has_its": bool,
            "has_tpc": bool,
            "track_type": np.uint8,
        }

        values = {}
        for name in TRACK_COLUMNS:
            raw = columns.get(name)
            if raw is None:
                if name not in defaults:
                    raise ValueError(f"Missing required track column '{name}'")
                values[name] = defaults[name]
                continue
            values[name] = np.asarray(raw, dtype=dtypes.get(name, np.float64))

        return cls(**values)

    @classmethod
    def from_awkward(cls, tracks: ak.Array) -> 'TrackSample':
        """Create a TrackSample from a flat awkward record array."""
        columns = {
            name: ak.to_numpy(tracks[name])
            for name in TRACK_COLUMNS
            if name in tracks.fields
        }
        return cls.from_columns(columns)

    def take(self, indices: np.ndarray) -> 'TrackSample':
        """Return the tracks at the given indices, in that order."""
        return TrackSample(**{name: getattr(self, name)[indices] for name in TRACK_COLUMNS})

    def group_by_collision(self) -> Iterator[tuple[int, np.ndarray]]:
        """
        Yield (collision_id, track indices) for every assigned collision.

        Collisions come in order of their first track; indices within a
        collision keep the input order.
        """
        assigned = np.flatnonzero(self.collision_id >= 0)
        if assigned.size == 0:
            return

        ids = self.collision_id[assigned]
        order = np.argsort(ids, kind="stable")
        sorted_ids = ids[order]
        boundaries = np.flatnonzero(np.diff(sorted_ids)) + 1
        groups = np.split(assigned[order], boundaries)
        groups.sort(key=lambda group: group[0])

        for group in groups:
            yield int(self.collision_id[group[0]]), group


@dataclass(frozen=True)
class CollisionInfo:
    """
    Per-collision quantities needed by the event-time stage.

    FT0 times are in ns as stored in the collision tables; the Run 2
    collision time is in ns as well.
    """

    collision_id: int
    sel8: bool = True
    has_ft0: bool = False
    t0ac_valid: bool = False
    t0ac: float = 0.0
    t0_resolution: float = 0.0
    collision_time: float = 0.0
    collision_time_res: float = 0.0


class CollisionTable:
    """Lookup of CollisionInfo by collision id."""

    def __init__(self, collisions: Optional[list[CollisionInfo]] = None):
        self._by_id = {c.collision_id: c for c in (collisions or [])}

    def get(self, collision_id: int) -> CollisionInfo:
        """Return the collision, or a default one if it was never stored."""
        found = self._by_id.get(collision_id)
        if found is None:
            return CollisionInfo(collision_id=collision_id)
        return found

    def __len__(self) -> int:
        return len(self._by_id)

    def __contains__(self, collision_id: int) -> bool:
        return collision_id in self._by_id

    @classmethod
    def from_awkward(cls, collisions: ak.Array) -> 'CollisionTable':
        """Create a CollisionTable from a flat awkward record array."""
        fields = [name for name in COLLISION_COLUMNS if name in collisions.fields]
        columns = {name: ak.to_list(collisions[name]) for name in fields}
        rows = []
        for i in range(len(collisions)):
            rows.append(CollisionInfo(**{name: columns[name][i] for name in fields}))
        return cls(rows)


@dataclass(frozen=True)
class RunInfo:
    """Run number and timestamp (ms) of the bunch crossings being processed."""

    run_number: int
    timestamp: int

    def __post_init__(self):
        if self.timestamp < 0:
            raise ValueError(f"timestamp must be non-negative, got {self.timestamp}")


@dataclass(frozen=True, eq=False)
class DataChunk:
    """
    One processing chunk: the tracks and collisions of a single run,
    read from one input file.
    """

    source: str
    run: RunInfo
    tracks: TrackSample
    collisions: CollisionTable

    def __len__(self) -> int:
        return len(self.tracks)
