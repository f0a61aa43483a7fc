"""
TOF response services.

Expected times and resolutions per mass hypothesis, beta and TOF mass.
"""

from .expected import expected_time, expected_sigma, expected_response
from .beta import compute_beta, compute_beta_sigma, compute_tof_mass

__all__ = [
    "expected_time",
    "expected_sigma",
    "expected_response",
    "compute_beta",
    "compute_beta_sigma",
    "compute_tof_mass",
]
