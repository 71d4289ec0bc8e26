"""Domain models used throughout the extractor."""

from __future__ import annotations

from dataclasses import astuple, dataclass, fields
from typing import Any, Dict, List

KEY_COLUMNS = ["CodeID", "Function", "LoopHeader"]
METRIC_COLUMNS = [
    "num_instr",
    "num_phis",
    "num_calls",
    "num_preds",
    "num_succ",
    "ends_with_unreachable",
    "ends_with_return",
    "ends_with_cond_branch",
    "ends_with_branch",
    "num_float_ops",
    "nums_branchs",
    "num_operands",
    "num_memory_ops",
    "num_unique_predicates",
    "trip_count",
    "num_uses",
    "num_blocks_in_lp",
    "loop_depth",
]
FEATURE_COLUMNS = KEY_COLUMNS + METRIC_COLUMNS
DATASET_HEADER = ",".join(FEATURE_COLUMNS)


@dataclass(frozen=True)
class LoopMetrics:
    """The per-loop feature vector, in dataset column order."""

    num_instr: int
    num_phis: int
    num_calls: int
    num_preds: int
    num_succ: int
    ends_with_unreachable: bool
    ends_with_return: bool
    ends_with_cond_branch: bool
    ends_with_branch: bool
    num_float_ops: int
    nums_branchs: int
    num_operands: int
    num_memory_ops: int
    num_unique_predicates: int
    trip_count: int
    num_uses: int
    num_blocks_in_lp: int
    loop_depth: int


@dataclass(frozen=True)
class FeatureRecord:
    """One dataset row: the loop's key plus its metrics.

    Keys are not unique across compilation units that reuse function and
    block names within one run. Unnamed (numbered) blocks appear under their
    slot number, e.g. ``"3"``, where LLVM's ``getName()`` would give ``""``.
    """

    code_id: int
    function: str
    loop_header: str
    metrics: LoopMetrics

    def to_row(self) -> List[str]:
        values: List[Any] = [self.code_id, self.function, self.loop_header]
        values.extend(astuple(self.metrics))
        return [_serialize(value) for value in values]

    def to_line(self) -> str:
        # names are written verbatim, commas included
        return ",".join(self.to_row())

    def as_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "CodeID": self.code_id,
            "Function": self.function,
            "LoopHeader": self.loop_header,
        }
        for f in fields(self.metrics):
            payload[f.name] = getattr(self.metrics, f.name)
        return payload


def _serialize(value: Any) -> str:
    if isinstance(value, bool):
        return "1" if value else "0"
    return str(value)
