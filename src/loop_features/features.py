"""Per-loop metric computation."""

from __future__ import annotations

from typing import Set

from .ir import OpcodeClass
from .loop_info import Loop
from .models import LoopMetrics
from .trip_count import BoundOracle, trip_count_for


def compute_metrics(loop: Loop, oracle: BoundOracle, function_name: str = "") -> LoopMetrics:
    """Count features over every member block of ``loop``, sub-loop blocks included.

    ``ends_with_return`` and ``ends_with_unreachable`` are set when *any*
    member block terminates that way, not only the loop's exit block.
    """
    num_instr = num_phis = num_calls = 0
    num_float_ops = nums_branchs = num_operands = num_memory_ops = 0
    num_uses = num_blocks_in_lp = 0
    ends_with_unreachable = ends_with_return = False
    ends_with_cond_branch = ends_with_branch = False
    unique_preds: Set[int] = set()
    unique_succs: Set[int] = set()

    for bb in loop.blocks:
        num_blocks_in_lp += 1

        for inst in bb:
            num_instr += 1
            num_operands += inst.num_operands

            kind = inst.kind
            if kind is OpcodeClass.PHI:
                num_phis += 1
            elif kind is OpcodeClass.CALL:
                num_calls += 1
            elif kind in (OpcodeClass.LOAD, OpcodeClass.STORE):
                num_memory_ops += 1
            elif kind is OpcodeClass.BRANCH:
                nums_branchs += 1
                ends_with_branch = True
                if inst.is_conditional:
                    ends_with_cond_branch = True
            elif kind is OpcodeClass.FLOAT_ARITH:
                num_float_ops += 1

            num_uses += sum(1 for user in inst.users if loop.contains(user.parent))

        term = bb.terminator
        if term is not None:
            if term.kind is OpcodeClass.UNREACHABLE:
                ends_with_unreachable = True
            if term.kind is OpcodeClass.RETURN:
                ends_with_return = True

        unique_preds.update(id(pred) for pred in bb.predecessors)
        unique_succs.update(id(succ) for succ in bb.successors)

    num_unique_predicates = len(unique_preds)
    return LoopMetrics(
        num_instr=num_instr,
        num_phis=num_phis,
        num_calls=num_calls,
        num_preds=num_unique_predicates,
        num_succ=len(unique_succs),
        ends_with_unreachable=ends_with_unreachable,
        ends_with_return=ends_with_return,
        ends_with_cond_branch=ends_with_cond_branch,
        ends_with_branch=ends_with_branch,
        num_float_ops=num_float_ops,
        nums_branchs=nums_branchs,
        num_operands=num_operands,
        num_memory_ops=num_memory_ops,
        num_unique_predicates=num_unique_predicates,
        trip_count=trip_count_for(loop, oracle, function_name),
        num_uses=num_uses,
        num_blocks_in_lp=num_blocks_in_lp,
        loop_depth=loop.depth,
    )
