"""Tests for leading/trailing silence trimming."""

import numpy as np

from tonetrace.trim import MIN_KEEP_SEC, compute_rms_energy, trim_silence


class TestComputeRmsEnergy:
    """Tests for framewise RMS."""

    def test_constant_signal(self) -> None:
        """RMS of a constant signal equals its magnitude."""
        energy = compute_rms_energy(np.full(1000, -0.5), frame_length=100, hop_length=50)
        assert len(energy) == 19
        np.testing.assert_allclose(energy, 0.5)

    def test_short_input_is_empty(self) -> None:
        """Audio shorter than one frame has no RMS frames."""
        assert len(compute_rms_energy(np.ones(10), frame_length=100, hop_length=50)) == 0


class TestTrimSilence:
    """Tests for trim_silence."""

    def test_trims_to_tone_plus_padding(self, padded_tone: np.ndarray, sr: int) -> None:
        """1 s silence + 0.5 s tone + 1 s silence keeps about 0.5 s + 2 * pad."""
        out = trim_silence(padded_tone, sr, rms_ratio=0.02, pad_ms=60.0)
        assert abs(len(out) / sr - 0.62) < 0.04

    def test_kept_span_contains_tone(self, padded_tone: np.ndarray, sr: int) -> None:
        """All of the tone's energy survives trimming."""
        out = trim_silence(padded_tone, sr, rms_ratio=0.02, pad_ms=60.0)
        assert np.isclose(np.sum(out ** 2), np.sum(padded_tone ** 2))

    def test_silent_input_unchanged(self, silence: np.ndarray, sr: int) -> None:
        """All-zero audio is returned as-is."""
        out = trim_silence(silence, sr, rms_ratio=0.02, pad_ms=60.0)
        np.testing.assert_array_equal(out, silence)

    def test_returns_copy(self, silence: np.ndarray, sr: int) -> None:
        """The result never aliases the input buffer."""
        out = trim_silence(silence, sr, rms_ratio=0.02, pad_ms=60.0)
        out[0] = 1.0
        assert silence[0] == 0.0

    def test_empty_input(self, sr: int) -> None:
        """Empty audio stays empty."""
        assert len(trim_silence(np.zeros(0), sr, rms_ratio=0.02, pad_ms=60.0)) == 0

    def test_short_span_keeps_full_take(self, sr: int) -> None:
        """A click shorter than the minimum kept duration does not trigger trimming."""
        audio = np.zeros(sr)
        audio[8000:8100] = 0.5
        out = trim_silence(audio, sr, rms_ratio=0.02, pad_ms=0.0)
        assert 100 / sr < MIN_KEEP_SEC
        assert len(out) == len(audio)

    def test_padding_clipped_to_buffer(self, sr: int) -> None:
        """Padding never extends past the ends of the buffer."""
        tone = 0.5 * np.sin(2 * np.pi * 150 * np.arange(sr) / sr)
        out = trim_silence(tone, sr, rms_ratio=0.02, pad_ms=500.0)
        assert len(out) == len(tone)
