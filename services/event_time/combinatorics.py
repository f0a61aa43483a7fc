"""
Combinatorics for the event-time track sets.
"""
import itertools
from functools import lru_cache

import numpy as np


@lru_cache(maxsize=64)
def hypothesis_combinations(n_hypotheses: int, n_tracks: int) -> np.ndarray:
    """
    Enumerate every assignment of hypotheses to the tracks of a set.

    Returns:
        Array of shape (n_hypotheses ** n_tracks, n_tracks), rows in
        lexicographic order
    """
    if n_hypotheses <= 0 or n_tracks <= 0:
        raise ValueError(
            f"n_hypotheses and n_tracks must be positive, got {n_hypotheses} and {n_tracks}"
        )
    combinations = np.array(
        list(itertools.product(range(n_hypotheses), repeat=n_tracks)),
        dtype=np.intp
    )
    combinations.setflags(write=False)
    return combinations


def split_into_sets(n_tracks: int, max_tracks_in_set: int) -> list[np.ndarray]:
    """
    Split track positions into balanced sets of at most max_tracks_in_set.

    Positions are dealt round-robin so set sizes differ by at most one.
    """
    if n_tracks <= 0:
        return []
    n_sets = -(-n_tracks // max_tracks_in_set)
    positions = np.arange(n_tracks)
    return [positions[i::n_sets] for i in range(n_sets)]
