"""
Quantization of nsigma for the tiny PID tables.

Values are stored as int8 bins of width 0.05 over (-6.35, 6.35). Values
at or beyond the edges saturate at +-127; the not-computable sentinel
lands in the underflow bin.
"""
import numpy as np

BIN_WIDTH = 0.05
OVERFLOW_BIN = 127
UNDERFLOW_BIN = -127
NSIGMA_MAX = OVERFLOW_BIN * BIN_WIDTH
NSIGMA_MIN = UNDERFLOW_BIN * BIN_WIDTH


def pack_nsigma(nsigma) -> np.ndarray:
    """
    Quantize nsigma values into int8 bins.

    Rounds half away from zero. NaN is treated as underflow.
    """
    values = np.asarray(nsigma, dtype=np.float64)
    scaled = values / BIN_WIDTH
    rounded = np.trunc(np.where(scaled >= 0, scaled + 0.5, scaled - 0.5))

    bins = np.where(values >= NSIGMA_MAX, OVERFLOW_BIN, rounded)
    bins = np.where((values <= NSIGMA_MIN) | np.isnan(values), UNDERFLOW_BIN, bins)
    return np.clip(bins, UNDERFLOW_BIN, OVERFLOW_BIN).astype(np.int8)


def unpack_nsigma(bins) -> np.ndarray:
    """Bin centers of packed nsigma values."""
    return np.asarray(bins, dtype=np.int8).astype(np.float64) * BIN_WIDTH
