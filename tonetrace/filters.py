"""NaN-aware post-filters for log-F0 contours.

NaN marks an unvoiced frame and is kept as a value in its own right: filters
only ever combine finite neighbours and emit NaN where none exist.

The contour pipeline applies, in this order:
1. ``median_filter_nan``
2. ``jump_reject`` (threshold tracker only)
3. ``fill_short_gaps_linear``
4. ``moving_average_nan``
"""

from __future__ import annotations

import math

import numpy as np
from numpy.typing import NDArray

from .normalize import semitone_distance


def odd_window(win: int) -> int:
    """Round a filter window up to the next odd size; sizes below 1 become 1."""
    win = int(win)
    if win <= 1:
        return 1
    if win % 2 == 0:
        win += 1
    return win


def median_filter_nan(x: NDArray[np.floating], win: int) -> NDArray[np.floating]:
    """Median over the finite values of a centred window.

    For an even number of finite neighbours the upper middle value is used.
    """
    x = np.asarray(x, dtype=np.float64)
    win = odd_window(win)
    if win == 1:
        return x.copy()

    r = win // 2
    n = len(x)
    out = np.full(n, np.nan, dtype=np.float64)
    for i in range(n):
        window = x[max(0, i - r):min(n, i + r + 1)]
        finite = np.sort(window[np.isfinite(window)])
        if len(finite) > 0:
            out[i] = finite[len(finite) // 2]
    return out


def jump_reject(x: NDArray[np.floating], max_jump_semitone: float) -> NDArray[np.floating]:
    """Drop frames that jump too far from the last accepted voiced frame.

    A non-finite or non-positive limit disables the filter.
    """
    out = np.asarray(x, dtype=np.float64).copy()
    if not math.isfinite(max_jump_semitone) or max_jump_semitone <= 0:
        return out

    prev = -1
    for i in range(len(out)):
        if not math.isfinite(out[i]):
            continue
        if prev >= 0 and abs(semitone_distance(out[prev], out[i])) > max_jump_semitone:
            out[i] = np.nan
            continue
        prev = i
    return out


def fill_short_gaps_linear(x: NDArray[np.floating], max_gap: int) -> NDArray[np.floating]:
    """Linearly interpolate NaN runs of at most ``max_gap`` frames.

    Only runs bounded by finite values on both sides are filled; leading,
    trailing and longer runs stay NaN.
    """
    out = np.asarray(x, dtype=np.float64).copy()
    n = len(out)
    i = 0
    while i < n:
        if math.isfinite(out[i]):
            i += 1
            continue
        start = i
        while i < n and not math.isfinite(out[i]):
            i += 1
        gap_len = i - start
        left, right = start - 1, i
        if gap_len <= max_gap and left >= 0 and right < n:
            a, b = out[left], out[right]
            steps = np.arange(1, gap_len + 1) / (gap_len + 1)
            out[start:i] = a + (b - a) * steps
    return out


def moving_average_nan(x: NDArray[np.floating], win: int) -> NDArray[np.floating]:
    """Mean over the finite values of a centred window; NaN if there are none."""
    x = np.asarray(x, dtype=np.float64)
    win = odd_window(win)
    if win == 1 or len(x) == 0:
        return x.copy()

    r = win // 2
    n = len(x)
    finite = np.isfinite(x)
    kernel = np.ones(win, dtype=np.float64)
    sums = np.convolve(np.where(finite, x, 0.0), kernel, mode="full")[r:r + n]
    counts = np.convolve(finite.astype(np.float64), kernel, mode="full")[r:r + n]

    out = np.full(n, np.nan, dtype=np.float64)
    has = counts > 0.5
    out[has] = sums[has] / counts[has]
    return out
