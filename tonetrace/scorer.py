"""Similarity scoring of a learner contour against a reference contour.

Both contours keep their own time axes; a DTW path of
``(ref_idx, user_idx)`` pairs lines them up. All metrics skip NaN
(unvoiced) frames rather than imputing them:

- ``corr``: Pearson correlation of the aligned pairs (0 with < 2 pairs)
- ``rmse``: root mean square difference of the aligned pairs
- ``slope_match``: fraction of aligned steps whose slopes share a sign
- ``peak_shift_ms``: time offset of the learner's frame(s) aligned to the
  reference's highest point
"""

from __future__ import annotations

import math

import numpy as np
from numpy.typing import NDArray

from .align.projection import path_mapping
from .types import AlignmentPath, ComparisonResult


def align_by_path(
    ref: NDArray[np.floating],
    user: NDArray[np.floating],
    path: AlignmentPath,
) -> tuple[NDArray[np.floating], NDArray[np.floating]]:
    """Gather ``(ref[i], user[j])`` for every pair on the path.

    Raises:
        ValueError: If a path index falls outside its contour.
    """
    ref = np.asarray(ref, dtype=np.float64)
    user = np.asarray(user, dtype=np.float64)
    if len(path) == 0:
        return np.zeros(0), np.zeros(0)

    idx = np.asarray(path, dtype=np.intp)
    if idx.ndim != 2 or idx.shape[1] != 2:
        raise ValueError("path must be a sequence of (ref_idx, user_idx) pairs")
    ri, ui = idx[:, 0], idx[:, 1]
    if ri.min() < 0 or ri.max() >= len(ref) or ui.min() < 0 or ui.max() >= len(user):
        raise ValueError(
            f"path indexes outside contours (ref length {len(ref)}, user length {len(user)})"
        )
    return ref[ri], user[ui]


def pearson(a: NDArray[np.floating], b: NDArray[np.floating]) -> float:
    """Pearson correlation over pairs where both values are finite."""
    mask = np.isfinite(a) & np.isfinite(b)
    count = int(np.sum(mask))
    if count < 2:
        return 0.0

    x, y = a[mask], b[mask]
    num = count * np.dot(x, y) - x.sum() * y.sum()
    den_a = count * np.dot(x, x) - x.sum() ** 2
    den_b = count * np.dot(y, y) - y.sum() ** 2
    den = math.sqrt(max(1e-8, den_a * den_b))
    return float(num / den)


def rmse(a: NDArray[np.floating], b: NDArray[np.floating]) -> float:
    """Root mean square error over pairs where both values are finite."""
    mask = np.isfinite(a) & np.isfinite(b)
    if not np.any(mask):
        return 0.0
    diff = a[mask] - b[mask]
    return float(np.sqrt(np.mean(diff * diff)))


def slope_match_rate(a: NDArray[np.floating], b: NDArray[np.floating]) -> float:
    """Fraction of consecutive aligned steps whose slope signs agree.

    A step is comparable when all four endpoints are finite and at least
    one side moves; flat-on-both-sides steps are ignored.
    """
    if len(a) < 2:
        return 0.0
    sa = np.sign(np.diff(a))
    sb = np.sign(np.diff(b))
    comparable = np.isfinite(sa) & np.isfinite(sb) & ~((sa == 0) & (sb == 0))
    count = int(np.sum(comparable))
    if count == 0:
        return 0.0
    return float(np.sum(sa[comparable] == sb[comparable]) / count)


def peak_shift_ms(
    ref: NDArray[np.floating],
    ref_times: NDArray[np.floating],
    user_times: NDArray[np.floating],
    path: AlignmentPath,
) -> float:
    """Time offset of the user frames aligned to the reference peak, in ms.

    Returns 0 when the reference has no finite value or no path pair
    touches its peak frame.
    """
    ref = np.asarray(ref, dtype=np.float64)
    finite = np.isfinite(ref)
    if not np.any(finite):
        return 0.0
    peak_idx = int(np.argmax(np.where(finite, ref, -np.inf)))

    targets = path_mapping(path, by=0).get(peak_idx)
    if not targets:
        return 0.0
    user_idx = int(math.floor(sum(targets) / len(targets) + 0.5))

    t_ref = float(ref_times[peak_idx]) if peak_idx < len(ref_times) else 0.0
    t_user = float(user_times[user_idx]) if 0 <= user_idx < len(user_times) else 0.0
    return (t_user - t_ref) * 1000.0


def evaluate(
    ref_log: NDArray[np.floating],
    user_log: NDArray[np.floating],
    ref_times: NDArray[np.floating],
    user_times: NDArray[np.floating],
    path: AlignmentPath,
) -> ComparisonResult:
    """Score a user contour against a reference along a DTW path.

    Args:
        ref_log: Reference log-F0 contour (NaN = unvoiced).
        user_log: User log-F0 contour (NaN = unvoiced).
        ref_times: Frame times of the reference, seconds.
        user_times: Frame times of the user contour, seconds.
        path: Warping path of ``(ref_idx, user_idx)`` pairs.

    Returns:
        ComparisonResult computed from scratch for this pair.
    """
    aligned_ref, aligned_user = align_by_path(ref_log, user_log, path)
    return ComparisonResult(
        corr=pearson(aligned_ref, aligned_user),
        rmse=rmse(aligned_ref, aligned_user),
        slope_match=slope_match_rate(aligned_ref, aligned_user),
        peak_shift_ms=peak_shift_ms(ref_log, np.asarray(ref_times), np.asarray(user_times), path),
    )
