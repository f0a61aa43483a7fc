"""
Inverse-variance weighting helpers.
"""
import math
from typing import Iterable


def inverse_variance_weight(error: float) -> float:
    """1 / error^2, zero for non-positive or infinite errors."""
    if error <= 0 or math.isinf(error):
        return 0.0
    return 1.0 / (error * error)


def combine_inverse_variance(measurements: Iterable[tuple[float, float]]) -> tuple[float, float]:
    """
    Combine (value, error) pairs with inverse-variance weights.

    Sums are exactly rounded, so the result does not depend on the order
    of the measurements.

    Raises:
        ValueError: If no measurement carries a positive weight
    """
    weights = []
    weighted_values = []
    for value, error in measurements:
        weight = inverse_variance_weight(error)
        weights.append(weight)
        weighted_values.append(value * weight)

    sum_of_weights = math.fsum(weights)
    if sum_of_weights <= 0:
        raise ValueError("Cannot combine measurements without a positive weight")

    return math.fsum(weighted_values) / sum_of_weights, math.sqrt(1.0 / sum_of_weights)
