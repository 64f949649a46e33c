"""Type definitions and data structures for pitch tracking and comparison."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

# Type aliases
AlignmentPath = list[tuple[int, int]]  # (reference_idx, user_idx) pairs


@dataclass(frozen=True)
class Params:
    """Configuration for one F0 analysis run.

    Ranges noted in comments are advisory; the pipeline still behaves
    sanely outside them (e.g. a filter window of 1 is the identity).
    """

    target_sr: int = 16000  # decode rate for callers; analyze uses the rate given with the samples
    hop_ms: float = 4.0
    window_ms: float = 100.0

    fmin_hz: float = 70.0
    fmax_hz: float = 500.0

    yin_threshold: float = 0.12  # 0.08-0.18, lower = stricter voicing
    rms_silence: float = 0.02  # 0.005-0.02

    # Leading/trailing silence trim of the whole take
    trim_rms_ratio: float = 0.02  # 0.01-0.05
    trim_pad_ms: float = 60.0  # 20-120

    # DP / Viterbi stabilization
    dp_enabled: bool = True
    dp_top_k: int = 5  # 2-6
    dp_lambda: float = 80.0  # smoothness strength for voiced->voiced (dlogF0^2)
    dp_u_switch: float = 0.5  # voiced <-> unvoiced switch penalty
    dp_u_penalty: float = 0.6  # base cost of choosing unvoiced

    # pYIN-style prior and near-silence shaping of observation costs
    prior_shaping: bool = True
    voiced_prior: float = 0.55
    near_silence_ratio: float = 1.1
    near_silence_voiced_bias: float = 0.2
    near_silence_unvoiced_bias: float = 0.15

    # Post-processing
    max_jump_semitone: float = 12.0  # legacy (non-DP) jump rejection
    gap_fill_ms: float = 30.0
    med_win: int = 3
    smooth_win: int = 7

    def replace(self, **changes: object) -> Params:
        """Return a copy with the given fields changed."""
        return dataclasses.replace(self, **changes)

    def hop_samples(self, sample_rate: float) -> int:
        """Hop length in samples (at least 1)."""
        return max(1, int(round(sample_rate * self.hop_ms / 1000.0)))

    def frame_size(self, sample_rate: float) -> int:
        """Analysis frame length in samples, rounded up to a power of two."""
        return next_pow2(int(round(sample_rate * self.window_ms / 1000.0)))


@dataclass(frozen=True)
class MfccConfig:
    """MFCC extraction settings."""

    n_mels: int = 24
    n_mfcc: int = 12
    fmin_hz: float = 20.0
    fmax_hz: float | None = None  # None = Nyquist
    pre_emphasis: float = 0.97


@dataclass(frozen=True)
class Candidate:
    """One pitch hypothesis for a frame."""

    log_f0: float  # NaN for unvoiced or empty slots
    observation_cost: float
    is_unvoiced: bool


@dataclass(frozen=True)
class CandidateGrid:
    """Per-frame candidates stored as parallel arrays.

    Every frame has ``top_k + 1`` states; the last one is the unvoiced state.
    """

    log_f0: NDArray[np.floating]  # shape [T, S]
    observation_cost: NDArray[np.floating]  # shape [T, S]
    is_unvoiced: NDArray[np.bool_]  # shape [T, S]

    @property
    def n_frames(self) -> int:
        return int(self.log_f0.shape[0])

    @property
    def n_states(self) -> int:
        return int(self.log_f0.shape[1])

    def frame(self, t: int) -> tuple[Candidate, ...]:
        """Return the candidates of frame ``t`` as value objects."""
        return tuple(
            Candidate(
                log_f0=float(self.log_f0[t, s]),
                observation_cost=float(self.observation_cost[t, s]),
                is_unvoiced=bool(self.is_unvoiced[t, s]),
            )
            for s in range(self.n_states)
        )


@dataclass(frozen=True)
class F0Result:
    """Stabilized pitch contour of one recording."""

    sample_rate: int
    duration: float  # seconds
    times: NDArray[np.floating]  # shape [T], seconds
    f0_log: NDArray[np.floating]  # shape [T], log(Hz), NaN for unvoiced

    def __len__(self) -> int:
        return len(self.f0_log)

    @property
    def voiced_ratio(self) -> float:
        if len(self.f0_log) == 0:
            return 0.0
        return float(np.mean(np.isfinite(self.f0_log)))

    def f0_hz(self) -> NDArray[np.floating]:
        """Contour in Hz (NaN stays NaN)."""
        return np.exp(self.f0_log)


@dataclass(frozen=True)
class FeatureSequence:
    """MFCC frames with their start times."""

    features: NDArray[np.floating]  # shape [T, D]
    times: NDArray[np.floating]  # shape [T], seconds

    def __len__(self) -> int:
        return int(self.features.shape[0])

    @property
    def dim(self) -> int:
        return int(self.features.shape[1]) if self.features.ndim == 2 else 0


@dataclass(frozen=True)
class DtwResult:
    """Result of a banded DTW alignment."""

    cost: float  # inf when the alignment failed
    path: AlignmentPath

    @property
    def ok(self) -> bool:
        return len(self.path) > 0


@dataclass(frozen=True)
class ComparisonResult:
    """Similarity metrics between a reference and a user contour."""

    corr: float
    rmse: float
    slope_match: float  # 0..1
    peak_shift_ms: float


def next_pow2(n: int) -> int:
    """Smallest power of two that is >= n (1 for n <= 1)."""
    p = 1
    while p < n:
        p <<= 1
    return p
