"""Banded dynamic time warping.

Two front ends share one dynamic program:
- ``dtw_band`` aligns scalar log-F0 contours (NaN aware)
- ``dtw_band_features`` aligns MFCC frame sequences

Only cells with ``|i - j| <= band`` are evaluated, where
``band = max(1, floor(max(n, m) * band_ratio) + |n - m|)``. When the end
cell cannot be reached inside the band the alignment fails softly with an
infinite cost and an empty path.
"""

from __future__ import annotations

import math
from typing import Callable

import numpy as np
from numpy.typing import NDArray

from ..types import DtwResult

DEFAULT_BAND_RATIO = 0.15
DEFAULT_NAN_COST = 1.0

# Backtracking moves
_START = -1
_DIAG = 0
_UP = 1  # from (i - 1, j)
_LEFT = 2  # from (i, j - 1)

RowCost = Callable[[int, int, int], NDArray[np.floating]]


def band_width(n: int, m: int, band_ratio: float) -> int:
    """Half-width of the diagonal corridor."""
    return max(1, int(math.floor(max(n, m) * band_ratio)) + abs(n - m))


def _banded_dtw(n: int, m: int, band: int, row_cost: RowCost) -> DtwResult:
    """Fill the banded cost matrix and backtrack the best path.

    ``row_cost(i, j_min, j_max)`` returns local costs for cells
    ``(i, j_min..j_max)``. Ties prefer the diagonal, then up, then left.
    """
    inf = math.inf
    prev_row = [inf] * m
    moves = np.full((n, m), _START, dtype=np.int8)

    for i in range(n):
        cur_row = [inf] * m
        j_min = max(0, i - band)
        j_max = min(m - 1, i + band)
        if j_min > j_max:
            prev_row = cur_row
            continue

        costs = row_cost(i, j_min, j_max).tolist()
        move_row = moves[i]
        for j in range(j_min, j_max + 1):
            cost = costs[j - j_min]
            if i == 0 and j == 0:
                cur_row[0] = cost
                continue

            best = inf
            move = _START
            if i > 0 and j > 0 and prev_row[j - 1] < best:
                best = prev_row[j - 1]
                move = _DIAG
            if i > 0 and prev_row[j] < best:
                best = prev_row[j]
                move = _UP
            if j > 0 and cur_row[j - 1] < best:
                best = cur_row[j - 1]
                move = _LEFT

            cur_row[j] = best + cost
            move_row[j] = move
        prev_row = cur_row

    total = prev_row[m - 1]
    if not math.isfinite(total):
        return DtwResult(cost=inf, path=[])

    path: list[tuple[int, int]] = []
    i, j = n - 1, m - 1
    while i >= 0 and j >= 0:
        path.append((i, j))
        move = moves[i, j]
        if move == _DIAG:
            i -= 1
            j -= 1
        elif move == _UP:
            i -= 1
        elif move == _LEFT:
            j -= 1
        else:
            break

    path.reverse()
    return DtwResult(cost=float(total), path=path)


def scalar_costs(
    a: float,
    b: NDArray[np.floating],
    nan_cost: float = DEFAULT_NAN_COST,
) -> NDArray[np.floating]:
    """Local costs between one value and a run of values.

    ``(a - b)^2`` for finite pairs, 0 when both are NaN, ``nan_cost``
    when exactly one is NaN.
    """
    a_ok = math.isfinite(a)
    b_ok = np.isfinite(b)
    if a_ok:
        return np.where(b_ok, (np.where(b_ok, b, 0.0) - a) ** 2, nan_cost)
    return np.where(b_ok, nan_cost, 0.0)


def dtw_band(
    a: NDArray[np.floating],
    b: NDArray[np.floating],
    band_ratio: float = DEFAULT_BAND_RATIO,
    nan_cost: float = DEFAULT_NAN_COST,
) -> DtwResult:
    """Align two scalar contours (NaN marks unvoiced frames).

    Args:
        a: First contour, shape [n].
        b: Second contour, shape [m].
        band_ratio: Band half-width as a fraction of the longer length.
        nan_cost: Cost of pairing a NaN with a finite value.

    Returns:
        DtwResult; the path holds ``(a_idx, b_idx)`` pairs.

    Raises:
        ValueError: If either contour is not 1-D.
    """
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    if a.ndim != 1 or b.ndim != 1:
        raise ValueError(f"contours must be 1-D, got shapes {a.shape} and {b.shape}")
    n, m = len(a), len(b)
    if n == 0 or m == 0:
        return DtwResult(cost=math.inf, path=[])

    def row_cost(i: int, j_min: int, j_max: int) -> NDArray[np.floating]:
        return scalar_costs(float(a[i]), b[j_min:j_max + 1], nan_cost)

    return _banded_dtw(n, m, band_width(n, m, band_ratio), row_cost)


def dtw_band_features(
    a: NDArray[np.floating],
    b: NDArray[np.floating],
    band_ratio: float = DEFAULT_BAND_RATIO,
) -> DtwResult:
    """Align two feature sequences by squared Euclidean frame distance.

    Args:
        a: First sequence, shape [n, D].
        b: Second sequence, shape [m, D].
        band_ratio: Band half-width as a fraction of the longer length.

    Returns:
        DtwResult; the path holds ``(a_idx, b_idx)`` pairs.

    Raises:
        ValueError: If the sequences are not 2-D or their frame
            dimensionality differs.
    """
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    n, m = len(a), len(b)
    if n == 0 or m == 0:
        return DtwResult(cost=math.inf, path=[])

    if a.ndim != 2 or b.ndim != 2:
        raise ValueError(f"feature sequences must be 2-D, got shapes {a.shape} and {b.shape}")
    if a.shape[1] != b.shape[1]:
        raise ValueError(
            f"feature dimensionality mismatch: {a.shape[1]} vs {b.shape[1]} coefficients"
        )

    def row_cost(i: int, j_min: int, j_max: int) -> NDArray[np.floating]:
        diff = b[j_min:j_max + 1] - a[i]
        return np.sum(diff * diff, axis=1)

    return _banded_dtw(n, m, band_width(n, m, band_ratio), row_cost)
