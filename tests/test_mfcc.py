"""Tests for the radix-2 FFT and MFCC features."""

import numpy as np
import pytest

from tonetrace.mfcc import (
    bit_reverse_indices,
    compute_mfcc,
    fft_in_place,
    frame_layout,
    hz_to_mel,
    mel_filterbank,
    mel_to_hz,
)
from tonetrace.types import MfccConfig


class TestFft:
    """Tests for the in-place FFT."""

    @pytest.mark.parametrize("n", [2, 8, 64, 1024])
    def test_matches_numpy(self, n: int) -> None:
        rng = np.random.default_rng(n)
        x = rng.standard_normal(n) + 1j * rng.standard_normal(n)
        real, imag = x.real.copy(), x.imag.copy()
        fft_in_place(real, imag)
        expected = np.fft.fft(x)
        np.testing.assert_allclose(real, expected.real, atol=1e-9)
        np.testing.assert_allclose(imag, expected.imag, atol=1e-9)

    def test_batched_rows(self) -> None:
        """Each row of a 2-D buffer is transformed independently."""
        rng = np.random.default_rng(0)
        x = rng.standard_normal((5, 32))
        real, imag = x.copy(), np.zeros_like(x)
        fft_in_place(real, imag)
        expected = np.fft.fft(x, axis=-1)
        np.testing.assert_allclose(real + 1j * imag, expected, atol=1e-9)

    def test_length_one(self) -> None:
        real, imag = np.array([3.0]), np.array([0.0])
        fft_in_place(real, imag)
        assert real[0] == 3.0

    def test_rejects_non_power_of_two(self) -> None:
        with pytest.raises(ValueError, match="power of two"):
            fft_in_place(np.zeros(12), np.zeros(12))

    def test_rejects_shape_mismatch(self) -> None:
        with pytest.raises(ValueError, match="shape"):
            fft_in_place(np.zeros(8), np.zeros(16))

    def test_rejects_integer_buffers(self) -> None:
        with pytest.raises(ValueError):
            fft_in_place(np.zeros(8, dtype=int), np.zeros(8, dtype=int))

    def test_bit_reverse(self) -> None:
        np.testing.assert_array_equal(bit_reverse_indices(8), [0, 4, 2, 6, 1, 5, 3, 7])


class TestMelScale:
    """Tests for mel conversions and the filterbank."""

    def test_mel_roundtrip(self) -> None:
        hz = np.array([0.0, 100.0, 1000.0, 8000.0])
        np.testing.assert_allclose(mel_to_hz(hz_to_mel(hz)), hz, atol=1e-6)

    def test_filterbank_shape(self) -> None:
        bank = mel_filterbank(16000, 512, 24, 20.0, 8000.0)
        assert bank.shape == (24, 257)
        assert np.all(bank >= 0.0)
        assert np.all(bank <= 1.0)
        assert np.all(bank.sum(axis=1) > 0.0)


class TestComputeMfcc:
    """Tests for MFCC extraction."""

    def test_frame_layout(self) -> None:
        assert frame_layout(16000, 4.0, 100.0) == (2048, 64)
        assert frame_layout(8000, 10.0, 5.0) == (64, 80)

    def test_shape_and_times(self, sine_200: np.ndarray, sr: int) -> None:
        features = compute_mfcc(sine_200, sr, 2048, 64)
        assert features.features.shape == (219, 12)
        assert features.dim == 12
        assert np.isclose(features.times[1], 0.004)
        assert np.all(np.isfinite(features.features))

    def test_short_input_padded(self, sr: int) -> None:
        """Buffers shorter than a frame still produce one frame."""
        features = compute_mfcc(np.ones(100), sr, 2048, 64)
        assert len(features) == 1

    def test_silence_is_finite(self, silence: np.ndarray, sr: int) -> None:
        """Log energies are floored, so silence does not produce -inf."""
        features = compute_mfcc(silence, sr, 2048, 64)
        assert np.all(np.isfinite(features.features))

    def test_custom_config(self, sine_200: np.ndarray, sr: int) -> None:
        config = MfccConfig(n_mels=40, n_mfcc=20, fmax_hz=4000.0)
        features = compute_mfcc(sine_200, sr, 1024, 160, config)
        assert features.dim == 20

    def test_distinguishes_pitch(self, sr: int) -> None:
        """Different tones give different features; identical tones identical ones."""
        t = np.arange(sr // 2) / sr
        low = 0.5 * np.sin(2 * np.pi * 150 * t)
        high = 0.5 * np.sin(2 * np.pi * 1500 * t)
        a = compute_mfcc(low, sr, 2048, 64).features
        b = compute_mfcc(high, sr, 2048, 64).features
        np.testing.assert_array_equal(a, compute_mfcc(low, sr, 2048, 64).features)
        assert np.linalg.norm(a - b) > 1.0

    def test_rejects_bad_frame_size(self, sine_200: np.ndarray, sr: int) -> None:
        with pytest.raises(ValueError):
            compute_mfcc(sine_200, sr, 1000, 64)
