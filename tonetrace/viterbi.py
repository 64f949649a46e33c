"""Viterbi stabilization of per-frame pitch candidates.

The best path trades each frame's observation cost against a smoothness
prior on log-F0 (``lam * dlogF0^2`` between voiced states) and a hysteresis
cost for switching between voiced and unvoiced. Runs in
``O(n_frames * S^2)`` time with ``S = top_k + 1``.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from .types import CandidateGrid


def transition_costs(
    prev_log_f0: NDArray[np.floating],
    prev_unvoiced: NDArray[np.bool_],
    cur_log_f0: NDArray[np.floating],
    cur_unvoiced: NDArray[np.bool_],
    lam: float,
    u_switch: float,
) -> NDArray[np.floating]:
    """Transition cost matrix of shape [S_prev, S_cur].

    Pairs involving an empty voiced slot (NaN pitch) get no smoothness term.
    """
    switch = prev_unvoiced[:, None] != cur_unvoiced[None, :]
    cost = np.where(switch, u_switch, 0.0)

    delta = cur_log_f0[None, :] - prev_log_f0[:, None]
    both_voiced = (~prev_unvoiced[:, None]) & (~cur_unvoiced[None, :]) & np.isfinite(delta)
    smooth = np.where(both_voiced, lam * np.nan_to_num(delta) ** 2, 0.0)
    return cost + smooth


def viterbi_decode(
    grid: CandidateGrid,
    lam: float,
    u_switch: float,
) -> tuple[NDArray[np.intp], float]:
    """Find the lowest-cost state sequence through the candidate grid.

    Ties go to the lowest state index, both when choosing a predecessor
    and when choosing the terminal state.

    Args:
        grid: Candidate grid of shape [T, S].
        lam: Smoothness weight for voiced-to-voiced moves.
        u_switch: Penalty for a voiced/unvoiced switch.

    Returns:
        Tuple of (states, total_cost). ``states`` has shape [T]; for T = 0
        it is empty and the cost is 0.
    """
    n_frames, n_states = grid.n_frames, grid.n_states
    if n_frames == 0:
        return np.zeros(0, dtype=np.intp), 0.0

    obs = grid.observation_cost
    dp = np.zeros((n_frames, n_states), dtype=np.float64)
    backptr = np.full((n_frames, n_states), -1, dtype=np.intp)
    dp[0] = obs[0]

    for t in range(1, n_frames):
        trans = transition_costs(
            grid.log_f0[t - 1],
            grid.is_unvoiced[t - 1],
            grid.log_f0[t],
            grid.is_unvoiced[t],
            lam,
            u_switch,
        )
        total = dp[t - 1][:, None] + trans  # [S_prev, S_cur]
        best_prev = np.argmin(total, axis=0)
        backptr[t] = best_prev
        dp[t] = total[best_prev, np.arange(n_states)] + obs[t]

    states = np.zeros(n_frames, dtype=np.intp)
    states[-1] = int(np.argmin(dp[-1]))
    best_cost = float(dp[-1, states[-1]])
    for t in range(n_frames - 1, 0, -1):
        states[t - 1] = backptr[t, states[t]]

    return states, best_cost


def stabilize(grid: CandidateGrid, lam: float, u_switch: float) -> NDArray[np.floating]:
    """Decode the grid into a log-F0 contour (NaN where the path is unvoiced)."""
    states, _ = viterbi_decode(grid, lam, u_switch)
    if len(states) == 0:
        return np.zeros(0, dtype=np.float64)

    frames = np.arange(len(states))
    chosen = grid.log_f0[frames, states]
    unvoiced = grid.is_unvoiced[frames, states]
    return np.where(unvoiced | ~np.isfinite(chosen), np.nan, chosen)
