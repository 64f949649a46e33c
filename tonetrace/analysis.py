"""F0 analysis entry point.

``analyze`` turns a mono PCM buffer into a stabilized log-F0 contour:

    YIN candidates -> Viterbi path -> median -> gap fill -> moving average

or, with ``dp_enabled=False``, the threshold tracker followed by
median -> jump rejection -> gap fill -> moving average.

The function is pure: it keeps no state between calls and only raises for
contract violations (see ``check_contract``).
"""

from __future__ import annotations

import logging
import math

import numpy as np
from numpy.typing import NDArray

from .filters import fill_short_gaps_linear, jump_reject, median_filter_nan, moving_average_nan
from .pitch import dp_settings, extract_f0_yin, yin_candidates
from .types import F0Result, Params
from .viterbi import stabilize

logger = logging.getLogger(__name__)


def check_sample_rate(sample_rate: float) -> None:
    """Raise ValueError unless the sample rate is finite and positive."""
    if not isinstance(sample_rate, (int, float, np.integer, np.floating)) or not (
        math.isfinite(sample_rate) and sample_rate > 0
    ):
        raise ValueError(f"sample_rate must be a finite positive number, got {sample_rate!r}")


def check_contract(sample_rate: float, params: Params) -> None:
    """Validate the inputs the algorithm cannot work around.

    Advisory ranges (thresholds, DP weights) are not checked here; only
    values that would make framing or filtering meaningless are rejected.
    """
    check_sample_rate(sample_rate)

    for name in ("hop_ms", "window_ms"):
        value = getattr(params, name)
        if not (math.isfinite(value) and value > 0):
            raise ValueError(f"{name} must be a finite positive duration, got {value!r}")

    if not (math.isfinite(params.fmin_hz) and math.isfinite(params.fmax_hz)):
        raise ValueError(f"frequency band must be finite, got [{params.fmin_hz}, {params.fmax_hz}]")
    if not 0 < params.fmin_hz < params.fmax_hz:
        raise ValueError(f"frequency band must satisfy 0 < fmin < fmax, got [{params.fmin_hz}, {params.fmax_hz}]")

    for name in ("med_win", "smooth_win"):
        if getattr(params, name) < 0:
            raise ValueError(f"{name} must not be negative, got {getattr(params, name)!r}")


def gap_fill_frames(params: Params, sample_rate: float, hop_length: int) -> int:
    """Longest NaN run (in frames) that gap filling bridges."""
    frames = params.gap_fill_ms / 1000.0 * sample_rate / hop_length
    if not math.isfinite(frames):
        return 0
    return max(0, int(round(frames)))


def postprocess_contour(
    f0_log: NDArray[np.floating],
    params: Params,
    max_gap_frames: int,
) -> NDArray[np.floating]:
    """Run the fixed post-filter chain on a raw log-F0 contour."""
    out = median_filter_nan(f0_log, params.med_win)
    if not params.dp_enabled:
        out = jump_reject(out, params.max_jump_semitone)
    if max_gap_frames > 0:
        out = fill_short_gaps_linear(out, max_gap_frames)
    return moving_average_nan(out, params.smooth_win)


def raw_log_f0(pcm: NDArray[np.floating], sample_rate: int, params: Params) -> NDArray[np.floating]:
    """Unfiltered per-frame log-F0 from the selected tracker."""
    hop = params.hop_samples(sample_rate)
    frame_size = params.frame_size(sample_rate)

    if params.dp_enabled:
        grid = yin_candidates(pcm, sample_rate, params, frame_size, hop)
        settings = dp_settings(params)
        return stabilize(grid, float(settings["lambda"]), float(settings["u_switch"]))

    f0 = extract_f0_yin(
        pcm,
        sr=sample_rate,
        frame_size=frame_size,
        hop_length=hop,
        fmin=params.fmin_hz,
        fmax=params.fmax_hz,
        threshold=params.yin_threshold,
        rms_silence=params.rms_silence,
    )
    voiced = np.isfinite(f0) & (f0 > 0)
    log_f0 = np.full_like(f0, np.nan)
    log_f0[voiced] = np.log(f0[voiced])
    return log_f0


def analyze(
    pcm: NDArray[np.floating],
    sample_rate: int,
    params: Params | None = None,
) -> F0Result:
    """Extract a stabilized log-F0 contour from mono PCM.

    Args:
        pcm: Mono samples (float, any amplitude range).
        sample_rate: Sample rate in Hz.
        params: Analysis parameters (defaults if omitted).

    Returns:
        F0Result with one entry per complete analysis frame. Empty or
        shorter-than-one-frame input yields zero frames.

    Raises:
        ValueError: On contract violations (bad sample rate, non-mono input,
            non-positive hop/window, invalid band, negative filter window).
    """
    params = params or Params()
    check_contract(sample_rate, params)

    pcm = np.asarray(pcm, dtype=np.float64)
    if pcm.ndim != 1:
        raise ValueError(f"expected mono PCM (1-D array), got shape {pcm.shape}")

    hop = params.hop_samples(sample_rate)
    f0_log = raw_log_f0(pcm, sample_rate, params)
    f0_log = postprocess_contour(f0_log, params, gap_fill_frames(params, sample_rate, hop))

    times = np.arange(len(f0_log), dtype=np.float64) * hop / sample_rate
    result = F0Result(
        sample_rate=int(sample_rate),
        duration=len(pcm) / sample_rate,
        times=times,
        f0_log=f0_log,
    )
    logger.debug(
        "analyzed %d frames (hop=%d, frame=%d, voiced=%.2f, dp=%s)",
        len(result),
        hop,
        params.frame_size(sample_rate),
        result.voiced_ratio,
        params.dp_enabled,
    )
    return result
