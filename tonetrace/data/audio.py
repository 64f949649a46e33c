"""Audio loading."""

from pathlib import Path

import numpy as np

# Target sample rate for all processing
TARGET_SR = 16000


def load_audio(path: Path, target_sr: int = TARGET_SR) -> np.ndarray:
    """Load an audio file as mono and resample it to the target rate.

    Args:
        path: Path to audio file (supports WAV, MP3, M4A, etc.)
        target_sr: Target sample rate in Hz

    Returns:
        Audio samples as float32 array, normalized to [-1, 1]

    Raises:
        FileNotFoundError: If the file does not exist.
    """
    import librosa

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Audio file not found: {path}")

    audio, _ = librosa.load(str(path), sr=target_sr, mono=True)
    return audio.astype(np.float32)
