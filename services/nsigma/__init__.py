"""
Nsigma services.

Per-species separations, the quantized tiny tables and beta/mass.
"""

from .computer import NsigmaComputer
from .binning import pack_nsigma, unpack_nsigma
from .producer import NsigmaProducer, SpeciesTable, build_dispatch_table
from .beta_mass import BetaMassProducer

__all__ = [
    "NsigmaComputer",
    "pack_nsigma",
    "unpack_nsigma",
    "NsigmaProducer",
    "SpeciesTable",
    "build_dispatch_table",
    "BetaMassProducer",
]
