"""Pytest configuration and fixtures for tonetrace tests."""

import numpy as np
import pytest
from numpy.typing import NDArray

SR = 16000


def make_sine(freq_hz: float, duration_s: float, amplitude: float = 0.5, sr: int = SR) -> NDArray[np.floating]:
    """Helper to create a pure tone."""
    t = np.arange(int(round(duration_s * sr))) / sr
    return amplitude * np.sin(2.0 * np.pi * freq_hz * t)


def make_glide(
    start_hz: float,
    end_hz: float,
    duration_s: float,
    amplitude: float = 0.5,
    sr: int = SR,
) -> NDArray[np.floating]:
    """Helper to create a tone whose pitch moves linearly between two frequencies."""
    n = int(round(duration_s * sr))
    freq = np.linspace(start_hz, end_hz, n)
    phase = 2.0 * np.pi * np.cumsum(freq) / sr
    return amplitude * np.sin(phase)


@pytest.fixture
def sr() -> int:
    return SR


@pytest.fixture
def sine_200() -> NDArray[np.floating]:
    """One second of a 200 Hz tone at amplitude 0.5."""
    return make_sine(200.0, 1.0)


@pytest.fixture
def silence() -> NDArray[np.floating]:
    """One second of digital silence."""
    return np.zeros(SR)


@pytest.fixture
def padded_tone() -> NDArray[np.floating]:
    """1 s silence, 0.5 s of a 150 Hz tone, 1 s silence."""
    gap = np.zeros(SR)
    return np.concatenate([gap, make_sine(150.0, 0.5), gap])


@pytest.fixture
def rising_glide() -> NDArray[np.floating]:
    """0.6 s tone rising from 150 Hz to 250 Hz, framed by short silences."""
    gap = np.zeros(SR // 5)
    return np.concatenate([gap, make_glide(150.0, 250.0, 0.6), gap])
