"""MFCC features for DTW alignment.

Pipeline per frame: pre-emphasis -> Hamming window -> radix-2 FFT ->
power spectrum -> triangular mel filterbank -> log -> DCT-II projection
(unnormalized). Reference features produced offline and user features
produced at comparison time go through exactly this code, so the two
sequences are directly comparable.
"""

from __future__ import annotations

import math

import numpy as np
from numpy.typing import NDArray

from .types import FeatureSequence, MfccConfig, next_pow2

LOG_FLOOR = 1e-12


def is_power_of_two(n: int) -> bool:
    return n >= 1 and (n & (n - 1)) == 0


def frame_layout(sr: float, hop_ms: float, window_ms: float) -> tuple[int, int]:
    """``(frame_size, hop_size)`` in samples for the given durations."""
    frame_size = next_pow2(max(64, int(round(window_ms / 1000.0 * sr))))
    hop_size = max(1, int(round(hop_ms / 1000.0 * sr)))
    return frame_size, hop_size


def bit_reverse_indices(n: int) -> NDArray[np.intp]:
    """Bit-reversal permutation of ``range(n)`` for a power-of-two ``n``."""
    bits = n.bit_length() - 1
    idx = np.arange(n)
    rev = np.zeros(n, dtype=np.intp)
    for b in range(bits):
        rev |= ((idx >> b) & 1) << (bits - 1 - b)
    return rev


def fft_in_place(real: NDArray[np.floating], imag: NDArray[np.floating]) -> None:
    """Iterative radix-2 FFT over the last axis, overwriting both buffers.

    Leading axes are transformed independently, so a [frames, n] matrix is
    processed in one call.

    Raises:
        ValueError: If the length is not a power of two, the shapes differ,
            or a buffer is not a C-contiguous float array.
    """
    if real.shape != imag.shape:
        raise ValueError(f"real/imag shape mismatch: {real.shape} vs {imag.shape}")
    n = real.shape[-1]
    if not is_power_of_two(n):
        raise ValueError(f"FFT length must be a power of two, got {n}")
    for buf in (real, imag):
        if not buf.flags.c_contiguous or not np.issubdtype(buf.dtype, np.floating):
            raise ValueError("FFT buffers must be C-contiguous float arrays")
    if n == 1:
        return

    rev = bit_reverse_indices(n)
    real[...] = real[..., rev]
    imag[...] = imag[..., rev]

    lead = real.shape[:-1]
    size = 2
    while size <= n:
        half = size // 2
        angle = -2.0 * math.pi * np.arange(half) / size
        w_re, w_im = np.cos(angle), np.sin(angle)

        re = real.reshape(lead + (n // size, size))
        im = imag.reshape(lead + (n // size, size))

        u_re = re[..., :half].copy()
        u_im = im[..., :half].copy()
        v_re = re[..., half:] * w_re - im[..., half:] * w_im
        v_im = re[..., half:] * w_im + im[..., half:] * w_re

        re[..., :half] = u_re + v_re
        im[..., :half] = u_im + v_im
        re[..., half:] = u_re - v_re
        im[..., half:] = u_im - v_im
        size *= 2


def power_spectrum(real: NDArray[np.floating], imag: NDArray[np.floating]) -> NDArray[np.floating]:
    """Power of the first ``n/2 + 1`` bins."""
    n_bins = real.shape[-1] // 2 + 1
    return real[..., :n_bins] ** 2 + imag[..., :n_bins] ** 2


def hamming(n: int) -> NDArray[np.floating]:
    """Symmetric Hamming window."""
    if n == 1:
        return np.ones(1, dtype=np.float64)
    i = np.arange(n, dtype=np.float64)
    return 0.54 - 0.46 * np.cos(2.0 * math.pi * i / (n - 1))


def hz_to_mel(hz: float | NDArray[np.floating]) -> float | NDArray[np.floating]:
    return 2595.0 * np.log10(1.0 + np.asarray(hz) / 700.0)


def mel_to_hz(mel: float | NDArray[np.floating]) -> float | NDArray[np.floating]:
    return 700.0 * (10.0 ** (np.asarray(mel) / 2595.0) - 1.0)


def mel_filterbank(
    sr: float,
    n_fft: int,
    n_mels: int,
    fmin_hz: float,
    fmax_hz: float,
) -> NDArray[np.floating]:
    """Triangular filters linearly spaced on the mel scale.

    Returns:
        Weights of shape [n_mels, n_fft/2 + 1].
    """
    mel_points = np.linspace(hz_to_mel(fmin_hz), hz_to_mel(fmax_hz), n_mels + 2)
    bins = np.floor((n_fft + 1) * mel_to_hz(mel_points) / sr).astype(int)

    n_bins = n_fft // 2 + 1
    bank = np.zeros((n_mels, n_bins), dtype=np.float64)
    for m in range(1, n_mels + 1):
        left, centre, right = bins[m - 1], bins[m], bins[m + 1]
        for k in range(max(0, left), min(n_bins, centre)):
            bank[m - 1, k] = (k - left) / max(1, centre - left)
        for k in range(max(0, centre), min(n_bins, right)):
            bank[m - 1, k] = (right - k) / max(1, right - centre)
    return bank


def dct_matrix(n_mfcc: int, n_mels: int) -> NDArray[np.floating]:
    """DCT-II basis ``cos(pi * k * (n + 0.5) / n_mels)`` without scaling."""
    k = np.arange(n_mfcc, dtype=np.float64)[:, None]
    n = np.arange(n_mels, dtype=np.float64)[None, :]
    return np.cos(math.pi * k * (n + 0.5) / n_mels)


def pad_to_frame(pcm: NDArray[np.floating], frame_size: int) -> NDArray[np.floating]:
    """Zero-pad a buffer shorter than one frame."""
    if len(pcm) >= frame_size:
        return pcm
    out = np.zeros(frame_size, dtype=np.float64)
    out[: len(pcm)] = pcm
    return out


def compute_mfcc(
    pcm: NDArray[np.floating],
    sr: int,
    frame_size: int,
    hop_size: int,
    config: MfccConfig | None = None,
) -> FeatureSequence:
    """Compute MFCC frames of a mono buffer.

    Buffers shorter than one frame are zero-padded, so at least one frame
    is always produced. Pre-emphasis restarts at every frame.

    Args:
        pcm: Mono samples.
        sr: Sample rate in Hz.
        frame_size: Frame length; must be a power of two.
        hop_size: Hop between frames in samples.
        config: MFCC settings (defaults if omitted).

    Returns:
        FeatureSequence with features of shape [T, n_mfcc] and frame start
        times in seconds.
    """
    config = config or MfccConfig()
    if not is_power_of_two(frame_size):
        raise ValueError(f"frame_size must be a power of two, got {frame_size}")
    if hop_size < 1:
        raise ValueError(f"hop_size must be positive, got {hop_size}")
    fmax_hz = config.fmax_hz if config.fmax_hz is not None else sr / 2.0

    padded = pad_to_frame(np.asarray(pcm, dtype=np.float64), frame_size)
    n_frames = max(1, (len(padded) - frame_size) // hop_size + 1)
    starts = np.arange(n_frames) * hop_size

    frames = np.lib.stride_tricks.sliding_window_view(padded, frame_size)[starts]
    emphasized = frames.copy()
    emphasized[:, 1:] -= config.pre_emphasis * frames[:, :-1]

    real = np.ascontiguousarray(emphasized * hamming(frame_size))
    imag = np.zeros_like(real)
    fft_in_place(real, imag)

    power = power_spectrum(real, imag)
    mel_energy = power @ mel_filterbank(sr, frame_size, config.n_mels, config.fmin_hz, fmax_hz).T
    log_energy = np.log(np.maximum(LOG_FLOOR, mel_energy))
    features = log_energy @ dct_matrix(config.n_mfcc, config.n_mels).T

    return FeatureSequence(features=features, times=starts / sr)
