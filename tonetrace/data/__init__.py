"""Audio input helpers."""

from .audio import TARGET_SR, load_audio

__all__ = [
    "TARGET_SR",
    "load_audio",
]
