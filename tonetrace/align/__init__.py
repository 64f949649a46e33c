"""Alignment module for reference/learner contour matching."""

from .dtw import band_width, dtw_band, dtw_band_features
from .projection import path_mapping, project_reference

__all__ = [
    "band_width",
    "dtw_band",
    "dtw_band_features",
    "path_mapping",
    "project_reference",
]
