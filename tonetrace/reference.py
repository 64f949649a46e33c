"""Reference feature files and the reference index.

Reference files are precomputed offline from native-speaker recordings with
the same ``analyze`` and ``compute_mfcc`` functions that process learner
takes, and are stored as camelCase JSON:

    {"id": ..., "key": ..., "audioId": ..., "sr": 16000, "duration": ...,
     "hopMs": 4, "windowMs": 100, "featureType": "mfcc", "featureDim": 12,
     "features": [[...], ...], "mfcc": {"nMels": 24, ...},
     "times": [...], "f0Log": [..., null, ...]}

Unvoiced frames are written as ``null`` and read back as NaN.
"""

from __future__ import annotations

import json
import logging
import math
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Literal

import numpy as np
from numpy.typing import NDArray
from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator, model_validator

from .analysis import analyze
from .config import MfccSettings
from .data.audio import TARGET_SR, load_audio
from .mfcc import compute_mfcc, frame_layout
from .types import F0Result, FeatureSequence, MfccConfig, Params

logger = logging.getLogger(__name__)


class ReferenceFeature(BaseModel):
    """Precomputed features of one reference recording."""

    model_config = ConfigDict(populate_by_name=True)

    id: int | str
    key: str
    audio_id: str = Field(alias="audioId")
    sr: int
    duration: float
    hop_ms: float = Field(alias="hopMs")
    window_ms: float = Field(alias="windowMs")
    feature_type: Literal["mfcc"] = Field(default="mfcc", alias="featureType")
    feature_dim: int = Field(alias="featureDim")
    features: list[list[float]]
    mfcc: MfccSettings = Field(default_factory=MfccSettings)
    times: list[float]
    f0_log: list[float] = Field(alias="f0Log")

    @field_validator("f0_log", mode="before")
    @classmethod
    def _null_to_nan(cls, value: object) -> object:
        if isinstance(value, (list, tuple)):
            return [math.nan if v is None else v for v in value]
        return value

    @field_serializer("f0_log")
    def _nan_to_null(self, value: list[float]) -> list[float | None]:
        return [v if math.isfinite(v) else None for v in value]

    @model_validator(mode="after")
    def _check_shapes(self) -> "ReferenceFeature":
        if len(self.times) != len(self.f0_log):
            raise ValueError(
                f"times and f0Log differ in length ({len(self.times)} vs {len(self.f0_log)})"
            )
        for i, row in enumerate(self.features):
            if len(row) != self.feature_dim:
                raise ValueError(f"feature frame {i} has {len(row)} values, expected {self.feature_dim}")
        return self

    @classmethod
    def from_json_file(cls, path: Path) -> "ReferenceFeature":
        """Load a reference feature file.

        Args:
            path: Path to the JSON file

        Returns:
            A ReferenceFeature populated from the JSON data
        """
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        return cls.model_validate(data)

    def to_json(self) -> str:
        """Serialize to camelCase JSON (NaN written as null)."""
        return self.model_dump_json(by_alias=True)

    def frame_layout(self) -> tuple[int, int]:
        """(frame_size, hop_size) in samples used for this reference."""
        return frame_layout(self.sr, self.hop_ms, self.window_ms)

    def feature_sequence(self) -> FeatureSequence:
        features = np.asarray(self.features, dtype=np.float64).reshape(-1, self.feature_dim)
        _, hop = self.frame_layout()
        times = np.arange(len(features), dtype=np.float64) * hop / self.sr
        return FeatureSequence(features=features, times=times)

    def f0_result(self) -> F0Result:
        return F0Result(
            sample_rate=self.sr,
            duration=self.duration,
            times=np.asarray(self.times, dtype=np.float64),
            f0_log=np.asarray(self.f0_log, dtype=np.float64),
        )


class ReferenceAudio(BaseModel):
    """One recording of a reference item."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    gender: str | None = None
    voice: str | None = None
    path: str
    feature_path: str | None = Field(default=None, alias="featurePath")


class ReferenceItem(BaseModel):
    """A phrase with its reference recordings."""

    model_config = ConfigDict(populate_by_name=True)

    id: int | str
    key: str
    text: str = ""
    pinyin: str = ""
    audio: list[ReferenceAudio] = Field(default_factory=list)


class ReferenceIndex(BaseModel):
    """Index of all reference items."""

    model_config = ConfigDict(populate_by_name=True)

    version: int = 1
    generated_at: datetime | None = Field(default=None, alias="generatedAt")
    items: list[ReferenceItem] = Field(default_factory=list)

    @classmethod
    def from_json_file(cls, path: Path) -> "ReferenceIndex":
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        return cls.model_validate(data)

    def to_json(self) -> str:
        return self.model_dump_json(indent=2, by_alias=True)

    def get_by_key(self, key: str) -> ReferenceItem | None:
        """Get an item by its key, or None if absent."""
        return next((item for item in self.items if item.key == key), None)


def build_reference_feature(
    pcm: NDArray[np.floating],
    sample_rate: int,
    *,
    id: int | str,
    key: str,
    audio_id: str,
    params: Params | None = None,
    mfcc: MfccConfig | None = None,
) -> ReferenceFeature:
    """Analyze one reference recording into a ReferenceFeature.

    MFCC frames use the F0 hop and window so both sequences share a
    time axis.

    Args:
        pcm: Mono samples of the reference recording.
        sample_rate: Sample rate in Hz.
        id: Item id.
        key: Item key.
        audio_id: Id of this recording.
        params: F0 analysis parameters (defaults if omitted).
        mfcc: MFCC settings (defaults if omitted).

    Returns:
        The reference feature record.
    """
    params = params or Params()
    mfcc = mfcc or MfccConfig()
    pcm = np.asarray(pcm, dtype=np.float64)

    f0 = analyze(pcm, sample_rate, params)
    frame_size, hop = frame_layout(sample_rate, params.hop_ms, params.window_ms)
    features = compute_mfcc(pcm, sample_rate, frame_size, hop, mfcc)

    return ReferenceFeature(
        id=id,
        key=key,
        audio_id=audio_id,
        sr=int(sample_rate),
        duration=f0.duration,
        hop_ms=params.hop_ms,
        window_ms=params.window_ms,
        feature_dim=features.dim,
        features=features.features.tolist(),
        mfcc=MfccSettings.from_config(mfcc, sample_rate),
        times=f0.times.tolist(),
        f0_log=f0.f0_log.tolist(),
    )


def build_feature_files(
    index: ReferenceIndex,
    audio_dir: Path,
    out_dir: Path,
    *,
    sample_rate: int = TARGET_SR,
    params: Params | None = None,
    mfcc: MfccConfig | None = None,
    relative_to: Path | None = None,
    loader: Callable[[Path, int], NDArray[np.floating]] | None = None,
) -> ReferenceIndex:
    """Write ``<audio_id>.json`` for every recording in the index.

    Recordings are looked up by file name in ``audio_dir``. Missing or
    undecodable files are skipped with a warning. ``feature_path`` of each
    processed recording is set to the written file, relative to
    ``relative_to`` when given.

    Returns:
        A copy of the index with feature paths and ``generated_at`` filled in.
    """
    loader = loader or load_audio
    index = index.model_copy(deep=True)
    out_dir.mkdir(parents=True, exist_ok=True)

    written = 0
    for item in index.items:
        for audio in item.audio:
            src = audio_dir / Path(audio.path).name
            try:
                pcm = loader(src, sample_rate)
            except (OSError, ValueError) as e:
                logger.warning("skipping %s: %s", src, e)
                continue

            feature = build_reference_feature(
                pcm,
                sample_rate,
                id=item.id,
                key=item.key,
                audio_id=audio.id,
                params=params,
                mfcc=mfcc,
            )
            out_path = out_dir / f"{audio.id}.json"
            out_path.write_text(feature.to_json(), encoding="utf-8")

            if relative_to is not None:
                audio.feature_path = Path(os.path.relpath(out_path, relative_to)).as_posix()
            else:
                audio.feature_path = out_path.as_posix()
            written += 1
            logger.debug("wrote %s (%d frames)", out_path, len(feature.f0_log))

    index.generated_at = datetime.now(timezone.utc)
    logger.info("built %d feature files for %d items", written, len(index.items))
    return index
