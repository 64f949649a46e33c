"""Tests for the tonetrace command line."""

import json
from pathlib import Path

import numpy as np
import pytest
from typer.testing import CliRunner

from tonetrace import cli, reference
from tonetrace.cli import app
from tonetrace.reference import build_reference_feature

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Run each command away from any local .env file."""
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def fake_audio(monkeypatch: pytest.MonkeyPatch, rising_glide: np.ndarray) -> None:
    """Serve the rising glide for every audio path."""

    def load(path: Path, target_sr: int = 16000) -> np.ndarray:
        return rising_glide

    monkeypatch.setattr(cli, "load_audio", load)
    monkeypatch.setattr(reference, "load_audio", load)


class TestAnalyzeCommand:
    """Tests for `tonetrace analyze`."""

    def test_prints_summary(self, fake_audio: None) -> None:
        result = runner.invoke(app, ["analyze", "take.wav"])
        assert result.exit_code == 0, result.output
        assert "Frames:" in result.output
        assert "Voiced ratio:" in result.output
        assert "Hz" in result.output

    def test_options(self, fake_audio: None) -> None:
        result = runner.invoke(app, ["analyze", "take.wav", "--no-trim", "--no-dp"])
        assert result.exit_code == 0, result.output
        assert "Frames: 219" in result.output

    def test_decodes_at_configured_rate(
        self, monkeypatch: pytest.MonkeyPatch, rising_glide: np.ndarray
    ) -> None:
        """TONETRACE_SAMPLE_RATE sets the rate audio is decoded and analyzed at."""
        rates: list[int] = []

        def load(path: Path, target_sr: int = 16000) -> np.ndarray:
            rates.append(target_sr)
            return rising_glide

        monkeypatch.setattr(cli, "load_audio", load)
        monkeypatch.setenv("TONETRACE_SAMPLE_RATE", "22050")
        result = runner.invoke(app, ["analyze", "take.wav", "--no-trim"])
        assert result.exit_code == 0, result.output
        assert rates == [22050]

    def test_missing_file(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["analyze", str(tmp_path / "nope.wav")])
        assert result.exit_code == 1
        assert "Analysis failed" in result.output


class TestCompareCommand:
    """Tests for `tonetrace compare`."""

    def test_prints_table(self, fake_audio: None, rising_glide: np.ndarray, tmp_path: Path) -> None:
        feature = build_reference_feature(rising_glide, 16000, id=1, key="ni-hao", audio_id="ni-hao-f1")
        ref_path = tmp_path / "ni-hao-f1.json"
        ref_path.write_text(feature.to_json(), encoding="utf-8")

        result = runner.invoke(app, ["compare", str(ref_path), "take.wav"])
        assert result.exit_code == 0, result.output
        assert "Correlation" in result.output
        assert "Slope match" in result.output

    def test_align_on_contours(self, fake_audio: None, rising_glide: np.ndarray, tmp_path: Path) -> None:
        feature = build_reference_feature(rising_glide, 16000, id=1, key="ni-hao", audio_id="ni-hao-f1")
        ref_path = tmp_path / "ni-hao-f1.json"
        ref_path.write_text(feature.to_json(), encoding="utf-8")

        result = runner.invoke(app, ["compare", str(ref_path), "take.wav", "--align-on", "f0"])
        assert result.exit_code == 0, result.output
        assert "RMSE" in result.output

    def test_invalid_reference(self, fake_audio: None, tmp_path: Path) -> None:
        ref_path = tmp_path / "bad.json"
        ref_path.write_text(json.dumps({"id": 1}), encoding="utf-8")

        result = runner.invoke(app, ["compare", str(ref_path), "take.wav"])
        assert result.exit_code == 1
        assert "Comparison failed" in result.output


class TestBuildFeaturesCommand:
    """Tests for `tonetrace build-features`."""

    def test_writes_features_and_index(self, fake_audio: None, tmp_path: Path) -> None:
        index_path = tmp_path / "index.json"
        index_path.write_text(
            json.dumps(
                {
                    "version": 1,
                    "items": [
                        {
                            "id": 1,
                            "key": "ni-hao",
                            "audio": [{"id": "ni-hao-f1", "path": "audio/ni-hao-f1.mp3"}],
                        }
                    ],
                }
            ),
            encoding="utf-8",
        )
        out_dir = tmp_path / "features"

        result = runner.invoke(app, ["build-features", str(index_path), str(tmp_path / "audio"), str(out_dir)])
        assert result.exit_code == 0, result.output
        assert (out_dir / "ni-hao-f1.json").exists()

        index = json.loads(index_path.read_text(encoding="utf-8"))
        assert index["items"][0]["audio"][0]["featurePath"] == "features/ni-hao-f1.json"
        assert index["generatedAt"] is not None

    def test_missing_index(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["build-features", "nope.json", str(tmp_path), str(tmp_path)])
        assert result.exit_code == 1
        assert "Cannot read index" in result.output
