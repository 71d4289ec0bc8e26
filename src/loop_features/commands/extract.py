"""Handler for the 'extract' command."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from rich.console import Console
from rich.table import Table

from .. import diagnostics
from ..cli_utils import IR_EXTENSIONS, collect_files
from ..config import ExtractorConfig
from ..counter import RunCounter
from ..dataset import DatasetWriter
from ..engine import LoopFeatureEngine, UnitResult
from ..exceptions import IRParseError
from ..ir_reader import read_module_file

console = Console()


@dataclass
class ExtractSummary:
    run_id: int | None = None
    results: List[UnitResult] = field(default_factory=list)
    failed_files: List[str] = field(default_factory=list)
    counter_saved: bool = True

    @property
    def loops_written(self) -> int:
        return sum(r.loops_written for r in self.results)


class ExtractHandler:
    def __init__(self, config: ExtractorConfig):
        self.config = config

    def run(self, input_path: Path, recursive: bool) -> ExtractSummary:
        files = collect_files(input_path, recursive, IR_EXTENSIONS)
        summary = ExtractSummary()
        if not files:
            console.print(f"[yellow]No .ll files found in {input_path}[/yellow]")
            return summary

        diagnostics.info(f"Found {len(files)} files.")
        counter = RunCounter(self.config.counter_path)
        writer = DatasetWriter(self.config.dataset_path, fsync=self.config.fsync)
        with LoopFeatureEngine(counter, writer, only_functions=self.config.only_functions) as engine:
            for f in files:
                try:
                    unit = read_module_file(f)
                except (IRParseError, OSError, UnicodeDecodeError) as exc:
                    diagnostics.error(f"Error reading {f.name}: {exc}")
                    summary.failed_files.append(str(f))
                    continue
                result = engine.analyze_unit(unit)
                summary.run_id = result.run_id
                summary.results.append(result)
            summary.counter_saved = engine.shutdown()

        self._print_summary(summary)
        return summary

    def _print_summary(self, summary: ExtractSummary) -> None:
        table = Table(title=f"Loop features (CodeID {summary.run_id})")
        table.add_column("Unit")
        table.add_column("Loops", justify="right")
        table.add_column("Failed", justify="right")
        for result in summary.results:
            table.add_row(result.unit_name, str(result.loops_written), str(result.failed_loops))
        console.print(table)
        console.print(
            f"[bold green]Wrote {summary.loops_written} rows to {self.config.dataset_path}[/bold green]"
        )
