"""Configuration loading for the tonetrace CLI and offline tools."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings

from .types import MfccConfig


class MfccSettings(BaseModel):
    """MFCC settings as stored alongside reference features."""

    model_config = ConfigDict(populate_by_name=True)

    n_mels: int = Field(default=24, alias="nMels")
    n_mfcc: int = Field(default=12, alias="nMfcc")
    fmin_hz: float = Field(default=20.0, alias="fMinHz")
    fmax_hz: float | None = Field(default=None, alias="fMaxHz")  # None = Nyquist
    pre_emphasis: float = Field(default=0.97, alias="preEmphasis")

    def to_config(self) -> MfccConfig:
        return MfccConfig(
            n_mels=self.n_mels,
            n_mfcc=self.n_mfcc,
            fmin_hz=self.fmin_hz,
            fmax_hz=self.fmax_hz,
            pre_emphasis=self.pre_emphasis,
        )

    @classmethod
    def from_config(cls, config: MfccConfig, sample_rate: int | None = None) -> "MfccSettings":
        fmax_hz = config.fmax_hz
        if fmax_hz is None and sample_rate is not None:
            fmax_hz = sample_rate / 2.0
        return cls(
            n_mels=config.n_mels,
            n_mfcc=config.n_mfcc,
            fmin_hz=config.fmin_hz,
            fmax_hz=fmax_hz,
            pre_emphasis=config.pre_emphasis,
        )


class Settings(BaseSettings):
    """Application settings, read from ``TONETRACE_*`` variables or ``.env``."""

    sample_rate: int = 16000
    band_ratio: float = 0.15
    nan_cost: float = 1.0
    align_on: Literal["mfcc", "f0"] = "mfcc"
    normalize_contours: bool = True
    log_level: str = "WARNING"
    mfcc: MfccSettings = Field(default_factory=MfccSettings)

    model_config = {
        "env_prefix": "TONETRACE_",
        "env_file": ".env",
        "env_nested_delimiter": "__",
        "extra": "ignore",
    }

    def mfcc_config(self) -> MfccConfig:
        return self.mfcc.to_config()


def load_settings() -> Settings:
    """Load settings from environment."""
    return Settings()
