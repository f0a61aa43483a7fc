"""
FileParser service - Single responsibility: Parse input ROOT files.

Reads the track, collision and bunch-crossing trees of one input file
into a DataChunk using uproot. No orchestration logic, no state
management.
"""

import glob
import logging
import os

import awkward as ak
import numpy as np
import uproot

from domain.tracks import (
    COLLISION_COLUMNS,
    TRACK_COLUMNS,
    CollisionTable,
    DataChunk,
    RunInfo,
    TrackSample,
)
from .schemas import get_schema, resolve_branches

BC_COLUMNS = ("run_number", "timestamp")


def list_input_files(input_path: str) -> list[str]:
    """
    Expand the input path into a sorted list of ROOT files.

    Accepts a single file, a directory or a glob pattern.
    """
    if os.path.isdir(input_path):
        return sorted(glob.glob(os.path.join(input_path, "*.root")))
    if glob.has_magic(input_path):
        return sorted(glob.glob(input_path))
    if os.path.exists(input_path):
        return [input_path]
    return []


class FileParser:
    """
    Service for parsing individual input files.

    Pure function-like service with no state. All methods are static.
    """

    @staticmethod
    def parse_file(
        file_path: str,
        tracks_tree: str = "O2track",
        collisions_tree: str = "O2collision",
        bc_tree: str = "O2bc",
        schema: str = "native",
        batch_size: int = 100_000
    ) -> DataChunk:
        """
        Parse a single input file.

        Args:
            file_path: Path or URI of the ROOT file
            tracks_tree: Name of the track tree
            collisions_tree: Name of the collision tree, optional in the file
            bc_tree: Name of the bunch-crossing tree with run number and timestamp
            schema: Branch naming schema
            batch_size: Number of entries read per batch

        Returns:
            DataChunk of the file

        Raises:
            ValueError: If the track or bunch-crossing tree is missing or
                the file spans more than one run
        """
        branch_schema = get_schema(schema)

        with uproot.open(file_path) as root_file:
            available = set(root_file.keys(cycle=False))
            for required in (tracks_tree, bc_tree):
                if required not in available:
                    raise ValueError(f"Tree '{required}' not found in {file_path}")

            track_columns = FileParser._read_tree(
                root_file[tracks_tree], branch_schema["tracks"], TRACK_COLUMNS, batch_size
            )
            tracks = TrackSample.from_awkward(track_columns)

            if collisions_tree in available:
                collision_columns = FileParser._read_tree(
                    root_file[collisions_tree], branch_schema["collisions"], COLLISION_COLUMNS, batch_size
                )
                collisions = CollisionTable.from_awkward(collision_columns)
            else:
                logging.warning(f"No collision tree '{collisions_tree}' in {file_path}, using defaults")
                collisions = CollisionTable()

            bcs = FileParser._read_tree(root_file[bc_tree], branch_schema["bcs"], BC_COLUMNS, batch_size)
            run = FileParser._run_info(bcs, file_path)

        logging.debug(f"Parsed {len(tracks)} tracks and {len(collisions)} collisions from {file_path}")
        return DataChunk(source=file_path, run=run, tracks=tracks, collisions=collisions)

    @staticmethod
    def _read_tree(tree, mapping: dict[str, str], columns: tuple[str, ...], batch_size: int) -> ak.Array:
        """Read the known branches of a tree in batches, renamed to column names."""
        branches = resolve_branches(set(tree.keys()), mapping, columns)
        if not branches:
            raise ValueError(f"No known branches in tree '{tree.name}'")

        n_entries = tree.num_entries
        entry_ranges = [
            (start, min(start + batch_size, n_entries))
            for start in range(0, n_entries, batch_size)
        ] or [(0, 0)]

        batches = [
            tree.arrays(list(branches), entry_start=entry_start, entry_stop=entry_stop, library="ak")
            for entry_start, entry_stop in entry_ranges
        ]
        concatenated = ak.concatenate(batches) if len(batches) > 1 else batches[0]
        return ak.zip(
            {column: concatenated[branch] for branch, column in branches.items()},
            depth_limit=1
        )

    @staticmethod
    def _run_info(bcs: ak.Array, file_path: str) -> RunInfo:
        if len(bcs) == 0:
            raise ValueError(f"No bunch crossings in {file_path}")

        run_numbers = np.unique(ak.to_numpy(bcs["run_number"]))
        if len(run_numbers) > 1:
            raise ValueError(f"File {file_path} spans several runs: {run_numbers.tolist()}")

        return RunInfo(run_number=int(run_numbers[0]), timestamp=int(ak.to_numpy(bcs["timestamp"])[0]))
