"""Pitch scale conversions and speaker normalization of log-F0 contours.

Contours are natural-log Hz with NaN for unvoiced frames. Z-score
normalization removes the speaker's register and range so that a learner
can be compared with a reference voice of a different pitch: scaling all
F0 values by a constant does not change the normalized contour.
"""

from __future__ import annotations

import math

import numpy as np
from numpy.typing import NDArray

LN2 = math.log(2.0)
VARIANCE_FLOOR = 1e-6


def semitone_distance(a_log: float, b_log: float) -> float:
    """Signed distance from ``a`` to ``b`` in semitones (log-Hz inputs)."""
    return 12.0 * (b_log - a_log) / LN2


def log_to_semitones(
    f0_log: NDArray[np.floating],
    ref_hz: float = 100.0,
) -> NDArray[np.floating]:
    """Convert a log-Hz contour to semitones relative to ``ref_hz``.

    Formula: st = 12 * (log(f0) - log(ref_hz)) / log(2)

    NaN frames stay NaN.
    """
    f0_log = np.asarray(f0_log, dtype=np.float64)
    return 12.0 * (f0_log - math.log(ref_hz)) / LN2


def normalize_log_f0(values: NDArray[np.floating]) -> NDArray[np.floating]:
    """Z-score a contour using the mean and std of its finite frames.

    The variance is floored at ``VARIANCE_FLOOR`` so flat contours do not
    explode. Contours with no finite frames are returned unchanged.

    Args:
        values: Log-F0 contour, NaN for unvoiced frames.

    Returns:
        Normalized contour of the same length; NaN frames stay NaN.
    """
    values = np.asarray(values, dtype=np.float64)
    finite = np.isfinite(values)
    if not np.any(finite):
        return values.copy()

    voiced = values[finite]
    mean = float(np.mean(voiced))
    variance = max(VARIANCE_FLOOR, float(np.mean(voiced * voiced)) - mean * mean)
    std = math.sqrt(variance)

    result = np.full_like(values, np.nan)
    result[finite] = (voiced - mean) / std
    return result
