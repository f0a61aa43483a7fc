"""
Particle species domain model.

Mass hypotheses used by the TOF response, in the fixed order of the
PID tables.
"""

from enum import Enum


class Species(Enum):
    """
    Particle species hypotheses.

    Each member carries its table index, short name, mass (GeV/c^2)
    and charge in units of e.
    """

    ELECTRON = (0, "El", 0.000510998950, 1)
    MUON = (1, "Mu", 0.1056583755, 1)
    PION = (2, "Pi", 0.13957039, 1)
    KAON = (3, "Ka", 0.493677, 1)
    PROTON = (4, "Pr", 0.93827208816, 1)
    DEUTERON = (5, "De", 1.87561294257, 1)
    TRITON = (6, "Tr", 2.80892113298, 1)
    HELIUM3 = (7, "He", 2.80839160743, 2)
    ALPHA = (8, "Al", 3.7273794066, 2)

    def __init__(self, index: int, short_name: str, mass: float, charge: int):
        self.index = index
        self.short_name = short_name
        self.mass = mass
        self.charge = charge

    @property
    def mass_over_charge(self) -> float:
        """Mass divided by charge, used with rigidity."""
        return self.mass / self.charge

    @classmethod
    def from_name(cls, name: str) -> 'Species':
        """
        Look up a species by short name ("Pi") or member name ("pion").

        Raises:
            ValueError: If the name matches no species
        """
        for species in cls:
            if name == species.short_name or name.upper() == species.name:
                return species
        known = [s.short_name for s in cls]
        raise ValueError(f"Unknown species '{name}'. Known species: {known}")

    def __str__(self) -> str:
        return self.short_name


ALL_SPECIES = tuple(Species)

# Hypotheses tried for each track by the event-time maker
DEFAULT_EVENT_TIME_HYPOTHESES = (Species.PION, Species.KAON, Species.PROTON)
