"""Projection of a reference contour onto the learner's time axis."""

from __future__ import annotations

from collections import defaultdict

import numpy as np
from numpy.typing import NDArray

from ..types import AlignmentPath


def path_mapping(path: AlignmentPath, by: int = 0) -> dict[int, list[int]]:
    """Group path pairs by one coordinate.

    Args:
        path: DTW warping path of ``(i, j)`` pairs.
        by: 0 to key on ``i`` (values are ``j``), 1 to key on ``j``.

    Returns:
        Mapping from each index to the indices it is paired with, in path order.
    """
    mapping: dict[int, list[int]] = defaultdict(list)
    for pair in path:
        mapping[pair[by]].append(pair[1 - by])
    return dict(mapping)


def project_reference(
    n_user_frames: int,
    ref_f0_log: NDArray[np.floating],
    path: AlignmentPath,
) -> NDArray[np.floating]:
    """Resample a reference contour onto user frames through a DTW path.

    Each user frame takes the mean of the finite reference values paired
    with it; frames with no finite partner are NaN.

    Args:
        n_user_frames: Number of frames on the user time axis.
        ref_f0_log: Reference log-F0 contour.
        path: Warping path of ``(ref_idx, user_idx)`` pairs.

    Returns:
        Array of shape [n_user_frames].
    """
    ref_f0_log = np.asarray(ref_f0_log, dtype=np.float64)
    out = np.full(n_user_frames, np.nan, dtype=np.float64)

    for user_idx, ref_indices in path_mapping(path, by=1).items():
        if not 0 <= user_idx < n_user_frames:
            continue
        values = ref_f0_log[[r for r in ref_indices if 0 <= r < len(ref_f0_log)]]
        values = values[np.isfinite(values)]
        if len(values) > 0:
            out[user_idx] = float(np.mean(values))

    return out
