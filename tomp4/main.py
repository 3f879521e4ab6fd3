import os
import typer
from pathlib import Path
from typing import Optional, List
from pydantic import ValidationError

from tomp4.config.loader import load_config
from tomp4.config.models import AppConfig, apply_overrides
from tomp4.domain.errors import DiscoveryError, WatchError
from tomp4.infrastructure.logging import setup_logging
from tomp4.infrastructure.event_bus import EventBus
from tomp4.infrastructure.file_scanner import FileScanner
from tomp4.infrastructure.ffprobe import FFprobeAdapter
from tomp4.infrastructure.ffmpeg import FFmpegAdapter
from tomp4.pipeline.converter import Converter
from tomp4.pipeline.orchestrator import Orchestrator
from tomp4.ui.state import RunState
from tomp4.ui.manager import UIManager
from tomp4.ui.summary import render_summary

DEFAULT_CONFIG_PATH = Path("conf/tomp4.yaml")

app = typer.Typer(help="tomp4 - convert media files to H.264/AAC MP4")


def _fail(message: str) -> None:
    typer.secho(f"Error: {message}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1)


def _load_base_config(config_path: Optional[Path]) -> AppConfig:
    if config_path is not None:
        return load_config(config_path)
    if DEFAULT_CONFIG_PATH.exists():
        return load_config(DEFAULT_CONFIG_PATH)
    return AppConfig()


def _validate_output_dir(output_dir: Optional[str]) -> None:
    if not output_dir:
        return
    path = Path(output_dir)
    if not path.is_dir():
        _fail(f"Output directory does not exist: {path}")
    if not os.access(path, os.W_OK | os.X_OK):
        _fail(f"Output directory is not writable: {path}")


@app.command()
def convert(
    inputs: List[Path] = typer.Argument(..., help="Files or directories to convert (the root to watch with --watch)"),
    workers: Optional[int] = typer.Option(None, "--workers", "-n", help="Number of workers (default 4)"),
    crf: Optional[int] = typer.Option(None, "--crf", "-c", help="x264 CRF quality (default 19)"),
    preset: Optional[str] = typer.Option(None, "--preset", "-p", help="x264 preset (default medium)"),
    delete_original: bool = typer.Option(False, "--delete-original", "-d", help="Delete originals after a successful conversion"),
    recursive: bool = typer.Option(False, "--recursive", "-r", help="Descend into subdirectories"),
    output_dir: Optional[Path] = typer.Option(None, "--output-dir", "-o", help="Write outputs here instead of next to the source"),
    watch: bool = typer.Option(False, "--watch", "-w", help="Watch a directory for new files (requires --output-dir)"),
    config_path: Optional[Path] = typer.Option(None, "--config", help=f"Path to YAML config (default {DEFAULT_CONFIG_PATH} if present)"),
    log_path: Optional[Path] = typer.Option(None, "--log-path", help="Also write the log to this file"),
    debug: bool = typer.Option(False, "--debug/--no-debug", help="Enable verbose debug logging"),
):
    """Convert media files, or watch a directory and convert what appears in it."""
    try:
        config = apply_overrides(
            _load_base_config(config_path),
            general_workers=workers,
            general_delete_original=True if delete_original else None,
            general_recursive=True if recursive else None,
            general_output_dir=str(output_dir) if output_dir else None,
            general_log_path=str(log_path) if log_path else None,
            general_debug=True if debug else None,
            video_crf=crf,
            video_preset=preset,
        )
    except FileNotFoundError as exc:
        _fail(str(exc))
    except ValidationError as exc:
        _fail(f"Invalid configuration:\n{exc}")

    if watch:
        if not config.general.output_dir:
            _fail("Must specify output directory with --watch.")
        if len(inputs) != 1:
            _fail("--watch takes exactly one directory to watch.")
    _validate_output_dir(config.general.output_dir)

    log_path_value = Path(config.general.log_path) if config.general.log_path else None
    logger = setup_logging(debug=config.general.debug, log_path=log_path_value)
    logger.info(
        f"Config: workers={config.general.workers}, crf={config.video.crf}, preset={config.video.preset}, "
        f"delete_original={config.general.delete_original}, recursive={config.general.recursive}, "
        f"output_dir={config.general.output_dir or '(next to source)'}"
    )

    bus = EventBus()
    state = RunState()
    UIManager(bus, state)

    scanner = FileScanner(extensions=config.general.extensions)
    converter = Converter(
        config=config,
        prober=FFprobeAdapter(),
        encoder=FFmpegAdapter(debug=config.general.debug),
        event_bus=bus,
    )
    orchestrator = Orchestrator(
        config=config,
        event_bus=bus,
        file_scanner=scanner,
        converter=converter,
    )

    try:
        if watch:
            orchestrator.run_watch(inputs[0])
        else:
            orchestrator.run_batch(inputs)

    except (DiscoveryError, WatchError) as e:
        logger.error(str(e))
        typer.secho(f"Fatal Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    except KeyboardInterrupt:
        typer.secho("\nConversion stopped by user (Ctrl+C)", fg=typer.colors.YELLOW, err=True)
        raise typer.Exit(code=130)

    render_summary(state)


if __name__ == "__main__":
    app()
