"""
Branch naming schemas for the input trees.

Each schema maps input branch names to the column names of the domain
models. The "native" schema uses the column names directly; the "aod"
schema follows the AO2D branch naming.
"""

BRANCH_SCHEMAS = {
    "native": {
        "tracks": {},
        "collisions": {},
        "bcs": {},
    },
    "aod": {
        "tracks": {
            "fIndexCollisions": "collision_id",
            "fP": "p",
            "fEta": "eta",
            "fSign": "sign",
            "fLength": "length",
            "fTOFSignal": "tof_signal",
            "fHasTOF": "has_tof",
            "fHasITS": "has_its",
            "fHasTPC": "has_tpc",
            "fTrackType": "track_type",
        },
        "collisions": {
            "fGlobalIndex": "collision_id",
            "fSel8": "sel8",
            "fHasFT0": "has_ft0",
            "fT0ACValid": "t0ac_valid",
            "fT0AC": "t0ac",
            "fT0resolution": "t0_resolution",
            "fCollisionTime": "collision_time",
            "fCollisionTimeRes": "collision_time_res",
        },
        "bcs": {
            "fRunNumber": "run_number",
            "fTimestamp": "timestamp",
        },
    },
}


def get_schema(name: str) -> dict:
    """
    Get the branch schema by name.

    Raises:
        KeyError: If the schema is unknown
    """
    if name not in BRANCH_SCHEMAS:
        raise KeyError(f"Unknown branch schema '{name}'. Available: {list(BRANCH_SCHEMAS)}")
    return BRANCH_SCHEMAS[name]


def resolve_branches(tree_branches: set[str], mapping: dict[str, str], columns: tuple[str, ...]) -> dict[str, str]:
    """
    Branches to read from a tree, as {branch: column}.

    Branches named like the column are always accepted, so a schema only
    needs to list the renamed ones.
    """
    resolved = {}
    for branch, column in mapping.items():
        if branch in tree_branches and column in columns:
            resolved[branch] = column

    found = set(resolved.values())
    for column in columns:
        if column not in found and column in tree_branches:
            resolved[column] = column

    return resolved
