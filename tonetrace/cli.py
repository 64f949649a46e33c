"""CLI entrypoint for the tonetrace command."""

import logging
import math
from pathlib import Path
from typing import Annotated, Optional

import numpy as np
import typer
from rich.console import Console
from rich.table import Table

from .analysis import analyze
from .compare import compare_take
from .config import load_settings
from .data.audio import load_audio
from .reference import ReferenceFeature, ReferenceIndex, build_feature_files
from .trim import trim_silence
from .types import Params

app = typer.Typer(help="Pitch tracking and tone comparison")
console = Console()


@app.callback()
def main(
    log_level: Annotated[Optional[str], typer.Option(help="Logging level (overrides TONETRACE_LOG_LEVEL)")] = None,
) -> None:
    """Configure logging for all commands."""
    level = (log_level or load_settings().log_level).upper()
    logging.basicConfig(level=getattr(logging, level, logging.WARNING), format="%(levelname)s %(name)s: %(message)s")


def _median_hz(f0_log: np.ndarray) -> float:
    voiced = f0_log[np.isfinite(f0_log)]
    if len(voiced) == 0:
        return math.nan
    return float(np.exp(np.median(voiced)))


@app.command("analyze")
def analyze_command(
    audio: Annotated[Path, typer.Argument(help="Audio file to analyze")],
    no_trim: Annotated[bool, typer.Option("--no-trim", help="Keep leading/trailing silence")] = False,
    no_dp: Annotated[bool, typer.Option("--no-dp", help="Use the threshold tracker instead of Viterbi")] = False,
) -> None:
    """Extract the F0 contour of a recording and print a summary."""
    settings = load_settings()
    params = Params(target_sr=settings.sample_rate, dp_enabled=not no_dp)

    try:
        pcm = load_audio(audio, params.target_sr)
        if not no_trim:
            pcm = trim_silence(pcm, params.target_sr, params.trim_rms_ratio, params.trim_pad_ms)
        result = analyze(pcm, params.target_sr, params)
    except (OSError, ValueError) as e:
        console.print(f"[red]Analysis failed: {e}[/red]")
        raise typer.Exit(1)

    median = _median_hz(result.f0_log)
    console.print(f"[bold]{audio.name}[/bold] ({result.duration:.2f}s)")
    console.print(f"Frames: {len(result)}")
    console.print(f"Voiced ratio: {result.voiced_ratio:.2f}")
    console.print(f"Median F0: {median:.1f} Hz" if math.isfinite(median) else "Median F0: n/a")


@app.command("build-features")
def build_features(
    index: Annotated[Path, typer.Argument(help="Reference index JSON")],
    audio_dir: Annotated[Path, typer.Argument(help="Directory with reference audio")],
    out_dir: Annotated[Path, typer.Argument(help="Output directory for feature files")],
) -> None:
    """Precompute reference feature files and update the index."""
    settings = load_settings()
    params = Params(target_sr=settings.sample_rate)

    try:
        reference_index = ReferenceIndex.from_json_file(index)
    except (OSError, ValueError) as e:
        console.print(f"[red]Cannot read index: {e}[/red]")
        raise typer.Exit(1)

    console.print(f"[bold]Building features for {len(reference_index.items)} items...[/bold]")
    with console.status("Analyzing reference audio..."):
        updated = build_feature_files(
            reference_index,
            audio_dir,
            out_dir,
            sample_rate=params.target_sr,
            params=params,
            mfcc=settings.mfcc_config(),
            relative_to=index.parent,
        )

    index.write_text(updated.to_json(), encoding="utf-8")
    built = sum(1 for item in updated.items for a in item.audio if a.feature_path)
    console.print(f"[green]Wrote {built} feature files to {out_dir}[/green]")


@app.command()
def compare(
    reference_json: Annotated[Path, typer.Argument(help="Reference feature JSON")],
    audio: Annotated[Path, typer.Argument(help="Learner recording")],
    no_normalize: Annotated[bool, typer.Option("--no-normalize", help="Score raw log-F0 contours")] = False,
    align_on: Annotated[Optional[str], typer.Option(help="Align on 'mfcc' frames or 'f0' contours")] = None,
) -> None:
    """Compare a recording against a reference and print the scores."""
    settings = load_settings()

    try:
        reference = ReferenceFeature.from_json_file(reference_json)
        params = Params(target_sr=reference.sr)
        pcm = load_audio(audio, params.target_sr)
        comparison = compare_take(
            pcm,
            params.target_sr,
            reference,
            params=params,
            mfcc=reference.mfcc.to_config(),
            band_ratio=settings.band_ratio,
            normalize=settings.normalize_contours and not no_normalize,
            align_on=align_on or settings.align_on,
            nan_cost=settings.nan_cost,
        )
    except (OSError, ValueError) as e:
        console.print(f"[red]Comparison failed: {e}[/red]")
        raise typer.Exit(1)

    if comparison.result is None:
        console.print("[red]No alignment found between reference and recording[/red]")
        raise typer.Exit(1)

    result = comparison.result
    table = Table(title=f"{reference.key} ({reference.audio_id})")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_row("Correlation", f"{result.corr:.3f}")
    table.add_row("RMSE", f"{result.rmse:.3f}")
    table.add_row("Slope match", f"{result.slope_match:.1%}")
    table.add_row("Peak shift", f"{result.peak_shift_ms:.0f} ms")
    table.add_row("Voiced ratio", f"{comparison.user.voiced_ratio:.2f}")
    console.print(table)


if __name__ == "__main__":
    app()
