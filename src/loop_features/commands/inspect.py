"""Handler for the 'inspect' command: features of one module, no side effects."""
from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.table import Table

from ..engine import StaticAnalysisProvider
from ..features import compute_metrics
from ..ir_reader import read_module_file
from ..models import FeatureRecord, METRIC_COLUMNS
from ..utils import dump_yaml, records_to_payload

console = Console()

_SHOWN = ["num_instr", "num_blocks_in_lp", "loop_depth", "trip_count", "num_memory_ops", "num_calls"]


class InspectHandler:
    def __init__(self, run_id: int = 0, only_functions: Optional[List[str]] = None):
        self.run_id = run_id
        self.only_functions = set(only_functions or [])
        self.provider = StaticAnalysisProvider()

    def collect(self, input_path: Path) -> List[FeatureRecord]:
        unit = read_module_file(input_path)
        records: List[FeatureRecord] = []
        for function in unit:
            if function.is_declaration:
                continue
            if self.only_functions and function.name not in self.only_functions:
                continue
            oracle = self.provider.bound_oracle(function)
            for loop in self.provider.loop_forest(function).all_loops():
                records.append(FeatureRecord(
                    code_id=self.run_id,
                    function=function.name,
                    loop_header=loop.header.name,
                    metrics=compute_metrics(loop, oracle, function.name),
                ))
        return records

    def run(self, input_path: Path, output: Optional[Path], all_columns: bool = False) -> List[FeatureRecord]:
        records = self.collect(input_path)
        if not records:
            console.print(f"[yellow]No loops found in {input_path}[/yellow]")
        else:
            columns = METRIC_COLUMNS if all_columns else _SHOWN
            table = Table(title=f"Loops in {input_path.name}")
            table.add_column("Function")
            table.add_column("LoopHeader")
            for column in columns:
                table.add_column(column, justify="right")
            for record in records:
                row = record.as_dict()
                table.add_row(record.function, record.loop_header, *(str(row[c]) for c in columns))
            console.print(table)

        if output:
            path = dump_yaml(records_to_payload(str(input_path), records), output)
            console.print(f"Saved features to {path}")
        return records
