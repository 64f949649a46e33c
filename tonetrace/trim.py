"""Energy-based trimming of leading and trailing silence.

Trimming never fails: if the recording is silent, too quiet to measure, or
the kept span would be shorter than ``MIN_KEEP_SEC``, the input is returned
unchanged.
"""

from __future__ import annotations

import logging

import numpy as np
from numpy.typing import NDArray

logger = logging.getLogger(__name__)

MIN_KEEP_SEC = 0.2
RMS_FLOOR = 1e-9


def compute_rms_energy(
    audio: NDArray[np.floating],
    frame_length: int,
    hop_length: int,
) -> NDArray[np.floating]:
    """Compute RMS energy per frame.

    Only complete frames are measured; audio shorter than one frame yields
    an empty array.

    Args:
        audio: Audio samples.
        frame_length: Analysis window length in samples.
        hop_length: Hop between frames in samples.

    Returns:
        RMS energy per frame.
    """
    audio = np.asarray(audio, dtype=np.float64)
    n_frames = 1 + (len(audio) - frame_length) // hop_length
    if n_frames <= 0:
        return np.zeros(0, dtype=np.float64)

    energy = np.zeros(n_frames, dtype=np.float64)
    for i in range(n_frames):
        start = i * hop_length
        frame = audio[start:start + frame_length]
        energy[i] = np.sqrt(np.mean(frame ** 2))

    return energy


def trim_silence(
    audio: NDArray[np.floating],
    sr: int,
    rms_ratio: float,
    pad_ms: float,
) -> NDArray[np.floating]:
    """Remove leading and trailing silence from a recording.

    RMS is measured over 20ms windows with 50% overlap. Windows whose RMS is
    at least ``max(1e-6, peak_rms * rms_ratio)`` count as sound; the span from
    the first to the last such window is kept, widened by ``pad_ms`` on both
    sides and clipped to the buffer.

    Args:
        audio: Mono samples, any amplitude range.
        sr: Sample rate in Hz.
        rms_ratio: Fraction of the peak RMS below which a window is silent.
        pad_ms: Padding kept around the detected span, in milliseconds.

    Returns:
        A copy of the kept span, or a copy of the input when trimming
        does not apply.
    """
    audio = np.asarray(audio)
    if len(audio) == 0:
        return audio.copy()

    win = max(64, int(round(sr * 0.02)))
    hop = max(32, int(round(win / 2)))

    rms = compute_rms_energy(audio, win, hop)
    if len(rms) == 0:
        return audio.copy()

    max_rms = float(np.max(rms))
    if max_rms <= RMS_FLOOR:
        return audio.copy()

    threshold = max(1e-6, max_rms * rms_ratio)
    above = np.flatnonzero(rms >= threshold)
    if len(above) == 0:
        return audio.copy()

    first, last = int(above[0]), int(above[-1])
    pad = int(round(pad_ms / 1000.0 * sr))

    start = max(0, first * hop - pad)
    end = min(len(audio), last * hop + win + pad)

    if end - start < int(round(MIN_KEEP_SEC * sr)):
        logger.debug("trim span %d samples below minimum, keeping full take", end - start)
        return audio.copy()

    logger.debug("trimmed take to samples [%d, %d) of %d", start, end, len(audio))
    return audio[start:end].copy()
