"""Typer-based CLI to extract loop features from LLVM IR modules."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console

from . import diagnostics
from .cli_utils import resolve_config
from .commands.extract import ExtractHandler
from .commands.inspect import InspectHandler
from .commands.summary import SummaryHandler
from .config import DEFAULT_DATASET_PATH
from .exceptions import DatasetUnavailableError, IRParseError

app = typer.Typer(help="loop-features CLI - per-loop feature vectors from LLVM IR")
console = Console()


@app.command()
def extract(
    input: Path = typer.Argument(..., exists=True, help="A .ll module or a directory of modules"),
    recursive: bool = typer.Option(False, "--recursive", "-r", help="Recursively search for .ll files"),
    dataset: Optional[Path] = typer.Option(None, "--dataset", help="CSV dataset to append to"),
    counter: Optional[Path] = typer.Option(None, "--counter", help="Run counter side store"),
    config: Optional[str] = typer.Option(None, "--config", help="Extractor config JSON (tagged profiles)"),
    tag: str = typer.Option("default", "--tag", help="Profile tag inside the config file"),
    function: Optional[List[str]] = typer.Option(None, "--function", "-f", help="Only analyze these functions"),
    fsync: Optional[bool] = typer.Option(None, "--fsync/--no-fsync", help="Sync every row to disk"),
    verbose: Optional[bool] = typer.Option(None, "--verbose/--quiet", help="Per-loop trace on stderr"),
) -> None:
    """
    Append one dataset row per loop of every function in the given modules.

    All modules of one invocation share a single CodeID; the next invocation
    gets CodeID + 1.
    """
    cfg = resolve_config(config, tag, dataset=dataset, counter=counter,
                         functions=function, fsync=fsync, verbose=verbose)
    diagnostics.set_verbose(cfg.verbose)
    try:
        summary = ExtractHandler(cfg).run(input, recursive)
    except DatasetUnavailableError as exc:
        diagnostics.error(str(exc))
        raise typer.Exit(code=1)
    if summary.failed_files or not summary.counter_saved:
        raise typer.Exit(code=1)


@app.command()
def inspect(
    input: Path = typer.Argument(..., exists=True, dir_okay=False, help="A .ll module"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the features to a YAML file"),
    run_id: int = typer.Option(0, "--run-id", help="CodeID to stamp on the records"),
    function: Optional[List[str]] = typer.Option(None, "--function", "-f", help="Only analyze these functions"),
    all_columns: bool = typer.Option(False, "--all", help="Show every metric column"),
) -> None:
    """Show the features of one module without touching the counter or dataset."""
    try:
        InspectHandler(run_id=run_id, only_functions=function).run(input, output, all_columns)
    except IRParseError as exc:
        diagnostics.error(f"Error reading {input.name}: {exc}")
        raise typer.Exit(code=1)


@app.command()
def summary(
    dataset: Path = typer.Option(Path(DEFAULT_DATASET_PATH), "--dataset", help="CSV dataset to summarize"),
) -> None:
    """Per-run loop counts and trip-count statistics of a dataset."""
    try:
        SummaryHandler().run(dataset)
    except DatasetUnavailableError as exc:
        diagnostics.error(str(exc))
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
