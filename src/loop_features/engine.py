"""Loop feature extraction engine.

The host constructs a :class:`RunCounter` and a :class:`DatasetWriter` and
hands them to :class:`LoopFeatureEngine`, then calls :meth:`analyze_unit` once
per compilation unit and :meth:`shutdown` once at the end.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Protocol

from . import diagnostics
from .counter import RunCounter
from .dataset import DatasetWriter
from .features import compute_metrics
from .ir import CompilationUnit, Function
from .loop_info import Loop, LoopForest, build_loop_forest
from .models import FeatureRecord
from .trip_count import BoundOracle, InductionBoundOracle

PRESERVES_ALL = "all"


class AnalysisProvider(Protocol):
    def loop_forest(self, function: Function) -> LoopForest:
        ...

    def bound_oracle(self, function: Function) -> BoundOracle:
        ...


class StaticAnalysisProvider:
    """Builds loop forests from the CFG and bounds from induction patterns."""

    def __init__(self, oracle: Optional[BoundOracle] = None):
        self.oracle = oracle or InductionBoundOracle()

    def loop_forest(self, function: Function) -> LoopForest:
        return build_loop_forest(function)

    def bound_oracle(self, function: Function) -> BoundOracle:
        return self.oracle


@dataclass
class UnitResult:
    unit_name: str
    run_id: int
    records: List[FeatureRecord] = field(default_factory=list)
    failed_loops: int = 0
    preserved_analyses: str = PRESERVES_ALL

    @property
    def loops_written(self) -> int:
        return len(self.records)


class LoopFeatureEngine:
    """Walks each function's loop forest and writes one dataset row per loop.

    The engine never modifies the IR it reads. ``only_functions`` restricts the
    walk to the named functions (``["main"]`` gives the function-scoped mode).
    """

    def __init__(
        self,
        counter: RunCounter,
        writer: DatasetWriter,
        provider: Optional[AnalysisProvider] = None,
        only_functions: Optional[Iterable[str]] = None,
    ):
        self.counter = counter
        self.writer = writer
        self.provider = provider or StaticAnalysisProvider()
        self.only_functions = set(only_functions or [])
        self._shut_down = False
        self.writer.open()
        self.counter.load_counter()

    def analyze_unit(self, unit: CompilationUnit) -> UnitResult:
        run_id = self.counter.current_run_id()
        diagnostics.debug(f"Running loop feature extraction on {unit.name} with CodeID: {run_id}")
        result = UnitResult(unit_name=unit.name, run_id=run_id)

        for function in unit:
            if function.is_declaration:
                diagnostics.debug(f"Skipping function {function.name} because it is a declaration")
                continue
            if self.only_functions and function.name not in self.only_functions:
                diagnostics.debug(f"Skipping function {function.name}: not selected")
                continue
            self._analyze_function(function, run_id, result)
        return result

    def analyze_function(self, function: Function, run_id: Optional[int] = None) -> UnitResult:
        if run_id is None:
            run_id = self.counter.current_run_id()
        result = UnitResult(unit_name=function.name, run_id=run_id)
        if not function.is_declaration:
            self._analyze_function(function, run_id, result)
        return result

    def _analyze_function(self, function: Function, run_id: int, result: UnitResult) -> None:
        diagnostics.debug(f"Analyzing function: {function.name}")
        forest = self.provider.loop_forest(function)
        oracle = self.provider.bound_oracle(function)
        diagnostics.debug(f"Number of loops detected in {function.name}: {len(forest)}")
        if not forest:
            diagnostics.debug(f"No loops found in function: {function.name}")
            return
        for loop in forest:
            self.analyze_loop(loop, oracle, function.name, run_id, result)

    def analyze_loop(
        self,
        loop: Loop,
        oracle: BoundOracle,
        function_name: str,
        run_id: int,
        result: Optional[UnitResult] = None,
    ) -> None:
        """Write the row for ``loop``, then recurse into its direct sub-loops."""
        header = loop.header.name
        diagnostics.debug(f"Processing loop in {function_name}, header: {header}")
        try:
            metrics = compute_metrics(loop, oracle, function_name)
        except Exception as exc:
            diagnostics.error(f"Failed to analyze loop '{header}' in {function_name}: {exc}")
            if result is not None:
                result.failed_loops += 1
        else:
            record = FeatureRecord(
                code_id=run_id,
                function=function_name,
                loop_header=header,
                metrics=metrics,
            )
            self.writer.write_record(record)
            if result is not None:
                result.records.append(record)
            diagnostics.debug(
                f"Wrote features for loop in {function_name}, header: {header}, CodeID: {run_id}"
            )

        for sub_loop in loop.sub_loops:
            diagnostics.debug(f"Found subloop with header: {sub_loop.header.name} in {function_name}")
            self.analyze_loop(sub_loop, oracle, function_name, run_id, result)

    def shutdown(self) -> bool:
        """Persist the run counter and close the dataset; safe to call twice."""
        if self._shut_down:
            return True
        self._shut_down = True
        saved = self.counter.save_counter()
        self.writer.close()
        return saved

    def __enter__(self) -> "LoopFeatureEngine":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()
