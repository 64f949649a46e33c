"""YIN pitch analysis.

This module provides the frame-level pitch machinery:
- YIN difference function and cumulative mean normalized difference (CMND)
- Parabolic refinement of a lag estimate
- A threshold-based tracker (first dip below the YIN threshold)
- A candidate generator for Viterbi stabilization, producing the best
  ``top_k`` CMND minima per frame plus one unvoiced state

Frames are ``frame_size`` samples long and start every ``hop_length``
samples. Only complete frames are analyzed, so audio shorter than one frame
yields zero frames.
"""

from __future__ import annotations

import math

import numpy as np
from numpy.typing import NDArray

from .types import CandidateGrid, Params

EPS = 1e-12
CMND_FLOOR = 1e-6  # CMND minima below this are treated as equally good
SUBHARMONIC_MARGIN = 0.01  # extra cost of a minimum at a longer lag than the first dip
MISSING_COST = 1e3  # observation cost of an empty candidate slot
ENERGY_RATIO_CAP = 8.0
ENERGY_WEIGHT = 0.6


def count_frames(n_samples: int, frame_size: int, hop_length: int) -> int:
    """Number of complete frames in a buffer."""
    return max(0, (n_samples - frame_size) // hop_length + 1)


def lag_range(sr: float, fmin: float, fmax: float, frame_size: int) -> tuple[int, int]:
    """Lag search range ``(tau_min, tau_max)`` in samples."""
    tau_min = max(2, int(math.floor(sr / fmax)))
    tau_max = min(frame_size - 2, int(math.floor(sr / fmin)))
    return tau_min, tau_max


def frame_rms(frame: NDArray[np.floating]) -> float:
    """Root mean square of one frame."""
    if len(frame) == 0:
        return 0.0
    return float(np.sqrt(np.mean(frame * frame)))


def difference_function(frame: NDArray[np.floating], tau_max: int) -> NDArray[np.floating]:
    """YIN difference function ``d[tau] = sum((x[i] - x[i+tau])^2)``.

    Args:
        frame: Frame samples.
        tau_max: Largest lag to evaluate.

    Returns:
        Array of shape [tau_max + 1] with ``d[0] = 0``.
    """
    n = len(frame)
    d = np.zeros(tau_max + 1, dtype=np.float64)
    for tau in range(1, tau_max + 1):
        diff = frame[: n - tau] - frame[tau:n]
        d[tau] = np.dot(diff, diff)
    return d


def cumulative_mean_normalized_difference(d: NDArray[np.floating]) -> NDArray[np.floating]:
    """CMND: ``cmnd[0] = 1``, ``cmnd[tau] = d[tau] * tau / sum(d[1..tau])``."""
    cmnd = np.ones_like(d)
    if len(d) > 1:
        taus = np.arange(1, len(d), dtype=np.float64)
        running = np.cumsum(d[1:])
        cmnd[1:] = d[1:] * taus / (running + EPS)
    return cmnd


def parabolic_interp(
    values: NDArray[np.floating],
    x0: int,
    xmin: int,
    xmax: int,
) -> float:
    """Refine the position of an extremum by fitting a parabola.

    Uses the three points around ``x0`` (clipped to ``[xmin, xmax]``). Flat
    or edge cases return ``x0`` unchanged.
    """
    x1 = max(xmin, x0 - 1)
    x3 = min(xmax, x0 + 1)
    if x1 == x0 or x3 == x0:
        return float(x0)

    y1, y2, y3 = float(values[x1]), float(values[x0]), float(values[x3])
    denom = y1 - 2.0 * y2 + y3
    if abs(denom) < EPS:
        return float(x0)

    delta = 0.5 * (y1 - y3) / denom
    return x0 + delta


def _refined_f0(cmnd: NDArray[np.floating], tau: int, tau_max: int, sr: float) -> float:
    better_tau = parabolic_interp(cmnd, tau, 1, tau_max)
    if better_tau <= 0:
        return math.nan
    return sr / better_tau


def _yin_frame(
    frame: NDArray[np.floating],
    sr: float,
    fmin: float,
    fmax: float,
    tau_min: int,
    tau_max: int,
    threshold: float,
) -> float:
    """Estimate F0 of one frame; NaN if unvoiced."""
    d = difference_function(frame, tau_max)
    cmnd = cumulative_mean_normalized_difference(d)

    # First dip below threshold, then walk down to the local minimum
    tau_estimate = -1
    tau = tau_min
    while tau <= tau_max:
        if cmnd[tau] < threshold:
            while tau + 1 <= tau_max and cmnd[tau + 1] < cmnd[tau]:
                tau += 1
            tau_estimate = tau
            break
        tau += 1

    if tau_estimate < 0:
        return math.nan

    f0 = _refined_f0(cmnd, tau_estimate, tau_max, sr)
    if not (fmin <= f0 <= fmax):
        return math.nan
    return f0


def extract_f0_yin(
    audio: NDArray[np.floating],
    sr: int,
    frame_size: int,
    hop_length: int,
    fmin: float,
    fmax: float,
    threshold: float,
    rms_silence: float,
) -> NDArray[np.floating]:
    """Track F0 frame by frame with the classic YIN threshold rule.

    Frames quieter than ``rms_silence`` are marked unvoiced without running
    YIN at all.

    Args:
        audio: Mono samples.
        sr: Sample rate in Hz.
        frame_size: Frame length in samples.
        hop_length: Hop between frames in samples.
        fmin: Minimum F0 in Hz.
        fmax: Maximum F0 in Hz.
        threshold: CMND voicing threshold (lower = stricter).
        rms_silence: RMS below which a frame is silent.

    Returns:
        F0 in Hz per frame, NaN for unvoiced frames.
    """
    audio = np.asarray(audio, dtype=np.float64)
    n_frames = count_frames(len(audio), frame_size, hop_length)
    f0 = np.full(n_frames, np.nan, dtype=np.float64)

    tau_min, tau_max = lag_range(sr, fmin, fmax, frame_size)
    if tau_max < 1:
        return f0

    for i in range(n_frames):
        start = i * hop_length
        frame = audio[start:start + frame_size]
        if frame_rms(frame) < rms_silence:
            continue
        f0[i] = _yin_frame(frame, sr, fmin, fmax, tau_min, tau_max, threshold)

    return f0


def cmnd_minima(
    cmnd: NDArray[np.floating],
    tau_min: int,
    tau_max: int,
    threshold: float | None = None,
) -> list[tuple[int, float]]:
    """Local minima of the CMND in ``[tau_min + 1, tau_max - 1]``.

    A lag is a local minimum when ``cmnd[tau] <= cmnd[tau-1]`` and
    ``cmnd[tau] < cmnd[tau+1]``. Results are sorted best first; values are
    floored at ``CMND_FLOOR`` so numerically exact minima tie and keep
    ascending lag order.

    With ``threshold``, the shortest-lag minimum below it (the period the
    threshold YIN tracker would pick) is ranked first. Minima at longer
    lags are multiples of that period on periodic input, so their values
    are raised to at least the first dip's value plus ``SUBHARMONIC_MARGIN``.

    Returns:
        List of ``(tau, value)`` pairs.
    """
    lo, hi = tau_min + 1, tau_max - 1
    if hi < lo:
        return []

    taus = np.arange(lo, hi + 1)
    centre = cmnd[taus]
    is_min = (centre <= cmnd[taus - 1]) & (centre < cmnd[taus + 1])
    found = taus[is_min]
    values = np.maximum(cmnd[found], CMND_FLOOR)
    if threshold is not None:
        below = np.flatnonzero(values < threshold)
        if len(below) > 0:
            first = below[0]
            values[first + 1:] = np.maximum(values[first + 1:], values[first] + SUBHARMONIC_MARGIN)
    order = np.argsort(values, kind="stable")
    return [(int(found[k]), float(values[k])) for k in order]


def unvoiced_cost(rms: float, rms_silence: float, u_penalty: float) -> float:
    """Observation cost of the unvoiced state, growing with frame energy."""
    if rms < rms_silence:
        return 0.0
    ratio = min(ENERGY_RATIO_CAP, rms / (rms_silence + EPS))
    return u_penalty + ENERGY_WEIGHT * ratio


def dp_settings(params: Params) -> dict[str, float | int]:
    """DP knobs clamped to the ranges the candidate model is defined on."""
    top_k = int(math.floor(params.dp_top_k)) if math.isfinite(params.dp_top_k) else 2
    return {
        "top_k": max(2, min(6, top_k)),
        "lambda": max(0.0, params.dp_lambda),
        "u_switch": max(0.0, params.dp_u_switch),
        "u_penalty": max(0.0, params.dp_u_penalty),
        "voiced_prior": min(0.95, max(0.05, params.voiced_prior)),
        "near_silence_ratio": max(1.0, params.near_silence_ratio),
        "near_silence_voiced_bias": max(0.0, params.near_silence_voiced_bias),
        "near_silence_unvoiced_bias": max(0.0, params.near_silence_unvoiced_bias),
    }


def _shape_costs(
    log_f0: NDArray[np.floating],
    obs: NDArray[np.floating],
    top_k: int,
    near_silence: bool,
    settings: dict[str, float | int],
) -> None:
    """Apply prior and near-silence shaping to one frame's costs in place."""
    voiced_prior = float(settings["voiced_prior"])
    prior_voiced_cost = -math.log(max(1e-6, voiced_prior))
    prior_unvoiced_cost = -math.log(max(1e-6, 1.0 - voiced_prior))

    real = np.isfinite(log_f0[:top_k])
    if np.any(real):
        costs = obs[:top_k][real]
        lo, hi = float(costs.min()), float(costs.max())
        denom = max(1e-6, hi - lo)
        shaped = (costs - lo) / denom + prior_voiced_cost
        if near_silence:
            shaped = shaped + float(settings["near_silence_voiced_bias"])
        obs[:top_k][real] = shaped

    obs[top_k] += prior_unvoiced_cost
    if near_silence:
        obs[top_k] -= float(settings["near_silence_unvoiced_bias"])


def yin_candidates(
    audio: NDArray[np.floating],
    sr: int,
    params: Params,
    frame_size: int,
    hop_length: int,
) -> CandidateGrid:
    """Build the per-frame candidate grid used by the Viterbi stabilizer.

    Each frame gets ``top_k`` voiced candidates (CMND local minima, best
    first, refined by parabolic interpolation and restricted to
    ``[fmin_hz, fmax_hz]``) and one unvoiced candidate whose cost grows with
    frame energy. Empty or out-of-band voiced slots carry NaN pitch and
    ``MISSING_COST``. With ``params.prior_shaping`` the voiced costs are
    min-max scaled per frame and prior / near-silence terms are added.

    Args:
        audio: Mono samples.
        sr: Sample rate in Hz.
        params: Analysis parameters.
        frame_size: Frame length in samples.
        hop_length: Hop between frames in samples.

    Returns:
        CandidateGrid of shape [n_frames, top_k + 1].
    """
    audio = np.asarray(audio, dtype=np.float64)
    settings = dp_settings(params)
    top_k = int(settings["top_k"])
    n_states = top_k + 1
    n_frames = count_frames(len(audio), frame_size, hop_length)

    log_f0 = np.full((n_frames, n_states), np.nan, dtype=np.float64)
    obs = np.full((n_frames, n_states), MISSING_COST, dtype=np.float64)
    is_unvoiced = np.zeros((n_frames, n_states), dtype=bool)
    is_unvoiced[:, top_k] = True

    tau_min, tau_max = lag_range(sr, params.fmin_hz, params.fmax_hz, frame_size)
    near_threshold = params.rms_silence * float(settings["near_silence_ratio"])

    for i in range(n_frames):
        start = i * hop_length
        frame = audio[start:start + frame_size]
        rms = frame_rms(frame)

        if tau_max >= 1:
            d = difference_function(frame, tau_max)
            cmnd = cumulative_mean_normalized_difference(d)
            minima = cmnd_minima(cmnd, tau_min, tau_max, params.yin_threshold)
        else:
            minima = []

        for k, (tau, value) in enumerate(minima[:top_k]):
            f0 = _refined_f0(cmnd, tau, tau_max, sr)
            if not (math.isfinite(f0) and params.fmin_hz <= f0 <= params.fmax_hz):
                continue
            log_f0[i, k] = math.log(f0)
            obs[i, k] = value

        obs[i, top_k] = unvoiced_cost(rms, params.rms_silence, float(settings["u_penalty"]))

        if params.prior_shaping:
            _shape_costs(log_f0[i], obs[i], top_k, rms < near_threshold, settings)

    return CandidateGrid(log_f0=log_f0, observation_cost=obs, is_unvoiced=is_unvoiced)
