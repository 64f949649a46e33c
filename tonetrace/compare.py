"""Comparison of a learner take against a reference recording."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal

import numpy as np
from numpy.typing import NDArray

from .align.dtw import DEFAULT_BAND_RATIO, DEFAULT_NAN_COST, dtw_band, dtw_band_features
from .align.projection import project_reference
from .analysis import analyze, check_sample_rate
from .mfcc import compute_mfcc
from .normalize import normalize_log_f0
from .reference import ReferenceFeature
from .scorer import evaluate
from .trim import trim_silence
from .types import AlignmentPath, ComparisonResult, DtwResult, F0Result, FeatureSequence, MfccConfig, Params

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TakeComparison:
    """Everything produced while comparing one take."""

    user: F0Result
    user_features: FeatureSequence
    alignment: DtwResult
    aligned_reference: NDArray[np.floating]  # reference log-F0 on user frames
    result: ComparisonResult | None  # None when alignment failed


def clip_path(path: AlignmentPath, n_ref: int, n_user: int) -> AlignmentPath:
    """Drop path pairs that fall outside either contour."""
    return [(r, u) for r, u in path if 0 <= r < n_ref and 0 <= u < n_user]


def compare_take(
    pcm: NDArray[np.floating],
    sample_rate: int,
    reference: ReferenceFeature,
    params: Params | None = None,
    mfcc: MfccConfig | None = None,
    band_ratio: float = DEFAULT_BAND_RATIO,
    normalize: bool = True,
    trim: bool = True,
    align_on: Literal["mfcc", "f0"] = "mfcc",
    nan_cost: float = DEFAULT_NAN_COST,
) -> TakeComparison:
    """Analyze a learner take and score it against a reference.

    The take is trimmed, its F0 contour and MFCC frames are computed on the
    reference's frame layout, the MFCC sequences (or the contours themselves)
    are aligned with banded DTW and the contours are scored along that path.

    Args:
        pcm: Mono samples of the learner take.
        sample_rate: Sample rate in Hz; must match the reference.
        reference: Precomputed reference features.
        params: F0 analysis parameters (defaults if omitted). Hop and
            window are taken from the reference.
        mfcc: MFCC settings (the reference's if omitted).
        band_ratio: DTW band half-width as a fraction of the longer sequence.
        normalize: Z-score both contours before scoring.
        trim: Trim leading and trailing silence first.
        align_on: Align on MFCC frames, or directly on the (normalized)
            log-F0 contours.
        nan_cost: Cost of pairing a voiced with an unvoiced frame when
            aligning on contours.

    Returns:
        TakeComparison; ``result`` is None if no alignment was found.

    Raises:
        ValueError: On contract violations, if the sample rates differ or
            ``align_on`` is unknown.
    """
    params = params or Params()
    check_sample_rate(sample_rate)
    if int(sample_rate) != reference.sr:
        raise ValueError(f"sample rate {sample_rate} does not match reference rate {reference.sr}")
    if align_on not in ("mfcc", "f0"):
        raise ValueError(f"align_on must be 'mfcc' or 'f0', got {align_on!r}")

    if params.hop_ms != reference.hop_ms or params.window_ms != reference.window_ms:
        logger.debug(
            "using reference frame layout (hop %.1fms, window %.1fms)",
            reference.hop_ms,
            reference.window_ms,
        )
        params = params.replace(hop_ms=reference.hop_ms, window_ms=reference.window_ms)
    mfcc = mfcc or reference.mfcc.to_config()

    pcm = np.asarray(pcm, dtype=np.float64)
    if trim:
        pcm = trim_silence(pcm, sample_rate, params.trim_rms_ratio, params.trim_pad_ms)

    user = analyze(pcm, sample_rate, params)
    frame_size, hop = reference.frame_layout()
    user_features = compute_mfcc(pcm, sample_rate, frame_size, hop, mfcc)

    ref_f0 = reference.f0_result()
    ref_log, user_log = ref_f0.f0_log, user.f0_log
    if normalize:
        ref_log, user_log = normalize_log_f0(ref_log), normalize_log_f0(user_log)

    if align_on == "f0":
        alignment = dtw_band(ref_log, user_log, band_ratio, nan_cost)
        n_ref, n_user = len(ref_log), len(user_log)
    else:
        ref_features = reference.feature_sequence()
        alignment = dtw_band_features(ref_features.features, user_features.features, band_ratio)
        n_ref, n_user = len(ref_features), len(user_features)

    if not alignment.ok:
        logger.warning(
            "no alignment for %s within band (%d reference frames, %d take frames)",
            reference.audio_id,
            n_ref,
            n_user,
        )
        return TakeComparison(
            user=user,
            user_features=user_features,
            alignment=alignment,
            aligned_reference=np.full(len(user), np.nan),
            result=None,
        )

    path = clip_path(alignment.path, len(ref_f0), len(user))
    aligned_reference = project_reference(len(user), ref_f0.f0_log, path)

    result = evaluate(ref_log, user_log, ref_f0.times, user.times, path)
    logger.debug("compared take against %s: %s", reference.audio_id, result)
    return TakeComparison(
        user=user,
        user_features=user_features,
        alignment=alignment,
        aligned_reference=aligned_reference,
        result=result,
    )
