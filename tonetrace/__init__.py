"""
Tonetrace - pitch tracking and tone comparison for pronunciation practice.

This library extracts stable F0 contours from short speech recordings and
scores a learner's take against a native reference recording.

Modules:
    types: Type definitions and data structures
    trim: Leading/trailing silence removal
    pitch: YIN pitch tracking and candidate extraction
    viterbi: Dynamic-programming stabilization of candidates
    filters: NaN-aware post-filters
    analysis: F0 analysis entry point
    mfcc: MFCC features with a radix-2 FFT
    align: Banded DTW and reference projection
    scorer: Contour similarity metrics
    reference: Reference feature files and offline builder
    compare: Learner take comparison pipeline
"""

from .align import dtw_band, dtw_band_features, project_reference
from .analysis import analyze
from .compare import TakeComparison, compare_take
from .config import MfccSettings, Settings, load_settings
from .data import TARGET_SR, load_audio
from .mfcc import compute_mfcc, fft_in_place
from .normalize import log_to_semitones, normalize_log_f0
from .pitch import extract_f0_yin, yin_candidates
from .reference import (
    ReferenceAudio,
    ReferenceFeature,
    ReferenceIndex,
    ReferenceItem,
    build_feature_files,
    build_reference_feature,
)
from .scorer import evaluate
from .trim import trim_silence
from .types import (
    Candidate,
    CandidateGrid,
    ComparisonResult,
    DtwResult,
    F0Result,
    FeatureSequence,
    MfccConfig,
    Params,
)
from .viterbi import stabilize, viterbi_decode

__version__ = "0.1.0"

__all__ = [
    # Types
    "Params",
    "MfccConfig",
    "Candidate",
    "CandidateGrid",
    "F0Result",
    "FeatureSequence",
    "DtwResult",
    "ComparisonResult",
    # Config
    "Settings",
    "MfccSettings",
    "load_settings",
    # Data
    "TARGET_SR",
    "load_audio",
    # Analysis
    "trim_silence",
    "extract_f0_yin",
    "yin_candidates",
    "viterbi_decode",
    "stabilize",
    "analyze",
    "normalize_log_f0",
    "log_to_semitones",
    # Features and alignment
    "fft_in_place",
    "compute_mfcc",
    "dtw_band",
    "dtw_band_features",
    "project_reference",
    # Scoring
    "evaluate",
    "TakeComparison",
    "compare_take",
    # Reference store
    "ReferenceFeature",
    "ReferenceAudio",
    "ReferenceItem",
    "ReferenceIndex",
    "build_reference_feature",
    "build_feature_files",
]
