"""Shared helpers for CLI commands."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import typer

from .config import ExtractorConfig, load_extractor_config
from .exceptions import ConfigError

IR_EXTENSIONS = {".ll"}


def collect_files(input_path: Path, recursive: bool, extensions: Optional[set[str]] = None) -> List[Path]:
    if input_path.is_file():
        return [input_path]
    files = list(input_path.rglob("*") if recursive else input_path.glob("*"))
    files = [f for f in files if f.is_file()]
    if extensions:
        files = [f for f in files if f.suffix.lower() in extensions]
    return sorted(files)


def resolve_config(
    config_name: Optional[str],
    tag: str,
    dataset: Optional[Path] = None,
    counter: Optional[Path] = None,
    functions: Optional[List[str]] = None,
    fsync: Optional[bool] = None,
    verbose: Optional[bool] = None,
) -> ExtractorConfig:
    """Load the config profile, then let explicit CLI options win."""
    try:
        config = load_extractor_config(config_name, tag=tag)
    except (FileNotFoundError, ValueError, ConfigError) as exc:
        raise typer.BadParameter(str(exc), param_hint="--config") from exc

    if dataset is not None:
        config.dataset_path = dataset
    if counter is not None:
        config.counter_path = counter
    if functions:
        config.only_functions = list(functions)
    if fsync is not None:
        config.fsync = fsync
    if verbose is not None:
        config.verbose = verbose
    return config
