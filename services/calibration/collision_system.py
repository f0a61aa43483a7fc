"""
Collision system classification from LHC interface beam information.
"""

from typing import Optional

from domain.metadata import CollisionSystem


PROTON_Z = 1
XENON_Z = 54
LEAD_Z = 82


def beam_atomic_numbers(grp: dict) -> Optional[tuple[int, int]]:
    """
    Extract the atomic numbers of the two beams from a GRPLHCIF payload.

    Accepts {"atomic_number_b1": Z1, "atomic_number_b2": Z2} or
    {"beam_z": [Z1, Z2]}.
    """
    if "atomic_number_b1" in grp and "atomic_number_b2" in grp:
        return int(grp["atomic_number_b1"]), int(grp["atomic_number_b2"])
    if "beam_z" in grp and len(grp["beam_z"]) == 2:
        return int(grp["beam_z"][0]), int(grp["beam_z"][1])
    return None


def classify_collision_system(grp: Optional[dict]) -> CollisionSystem:
    """
    Classify the colliding system from beam information.

    Returns:
        CollisionSystem, UNDEFINED when the beams are unknown or missing
    """
    if not grp:
        return CollisionSystem.UNDEFINED

    charges = beam_atomic_numbers(grp)
    if charges is None:
        return CollisionSystem.UNDEFINED

    z1, z2 = charges
    if z1 == z2 == PROTON_Z:
        return CollisionSystem.PP
    if z1 == z2 == LEAD_Z:
        return CollisionSystem.PBPB
    if z1 == z2 == XENON_Z:
        return CollisionSystem.XEXE
    if sorted((z1, z2)) == [PROTON_Z, LEAD_Z]:
        return CollisionSystem.PPB
    return CollisionSystem.UNDEFINED
