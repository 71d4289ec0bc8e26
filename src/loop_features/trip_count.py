"""Constant trip-count estimation for natural loops."""

from __future__ import annotations

import re
from typing import Dict, Mapping, Optional, Protocol, Tuple

from . import diagnostics
from .ir import Instruction
from .loop_info import Loop

# predicate -> (relation, signed)
_RELATIONS: Dict[str, Tuple[str, bool]] = {
    "eq": ("==", True),
    "ne": ("!=", True),
    "slt": ("<", True),
    "sle": ("<=", True),
    "sgt": (">", True),
    "sge": (">=", True),
    "ult": ("<", False),
    "ule": ("<=", False),
    "ugt": (">", False),
    "uge": (">=", False),
}
_NEGATED = {"<": ">=", "<=": ">", ">": "<=", ">=": "<", "==": "!=", "!=": "=="}
_SWAPPED = {"<": ">", "<=": ">=", ">": "<", ">=": "<=", "==": "==", "!=": "!="}
_INT_RE = re.compile(r"^-?\d+$")
_WIDTH_RE = re.compile(r"^i(\d+)$")


class BoundOracle(Protocol):
    def try_get_constant_backedge_count(self, loop: Loop) -> Optional[int]:
        """Return the loop's backedge-taken count if it is a compile-time constant."""
        ...


class FixedBoundOracle:
    """Backedge-taken counts known ahead of time, keyed by loop header name."""

    def __init__(self, counts: Mapping[str, int] | None = None):
        self.counts = dict(counts or {})

    def try_get_constant_backedge_count(self, loop: Loop) -> Optional[int]:
        return self.counts.get(loop.header.name)


def _int_literal(value: str) -> Optional[int]:
    if _INT_RE.match(value):
        return int(value)
    return None


def count_until_exit(start: int, step: int, relation: str, bound: int) -> Optional[int]:
    """Smallest ``k >= 0`` such that ``start + k*step`` no longer satisfies
    ``value <relation> bound``, or ``None`` if the loop never leaves."""
    if relation == "<=":
        relation, bound = "<", bound + 1
    elif relation == ">=":
        relation, bound = ">", bound - 1

    if relation == "<":
        if start >= bound:
            return 0
        if step <= 0:
            return None
        return -(-(bound - start) // step)
    if relation == ">":
        if start <= bound:
            return 0
        if step >= 0:
            return None
        return -(-(start - bound) // -step)
    if relation == "!=":
        if start == bound:
            return 0
        if step == 0 or (bound - start) % step:
            return None
        k = (bound - start) // step
        return k if k > 0 else None
    if relation == "==":
        if start != bound:
            return 0
        return 1 if step != 0 else None
    raise ValueError(f"Unknown relation '{relation}'")


class InductionBoundOracle:
    """Proves constant backedge-taken counts for canonical counted loops.

    Recognised shape: a single exiting block, which is the header or the only
    latch, ending in a conditional branch on ``icmp <pred> %iv, C``. ``%iv`` is
    either a header phi ``[start, outside], [%next, latch]`` with
    ``%next = add/sub %phi, step``, or ``%next`` itself. ``start``, ``step``
    and ``C`` must be integer constants. Everything else is reported as
    unknown, the same way SCEV returns "could not compute".
    """

    def try_get_constant_backedge_count(self, loop: Loop) -> Optional[int]:
        exiting = loop.exiting_blocks()
        latches = loop.latches()
        if len(exiting) != 1 or len(latches) != 1:
            return None
        exit_block, latch = exiting[0], latches[0]
        if exit_block is not loop.header and exit_block is not latch:
            return None

        term = exit_block.terminator
        if term is None or not term.is_conditional:
            return None
        by_name = {bb.name: bb for bb in exit_block.successors}
        true_in = loop.contains(by_name.get(term.targets[0]))
        false_in = loop.contains(by_name.get(term.targets[1]))
        if true_in == false_in:
            return None

        defs = {inst.name: inst for bb in loop.blocks for inst in bb if inst.name}
        cmp = self._lookup(defs, term.operands[0])
        if cmp is None or cmp.opcode != "icmp" or len(cmp.operands) != 2:
            return None
        if cmp.predicate not in _RELATIONS or cmp.type is None:
            return None
        width_match = _WIDTH_RE.match(cmp.type)
        if not width_match:
            return None
        width = int(width_match.group(1))

        relation, signed = _RELATIONS[cmp.predicate]
        lhs, rhs = cmp.operands
        bound = _int_literal(rhs)
        subject = lhs
        if bound is None:
            bound = _int_literal(lhs)
            subject = rhs
            relation = _SWAPPED[relation]
        if bound is None or _int_literal(subject) is not None:
            return None
        if not true_in:
            relation = _NEGATED[relation]

        recurrence = self._recurrence(loop, latch, defs, subject)
        if recurrence is None:
            return None
        start, step = recurrence

        if signed:
            low, high = -(1 << (width - 1)), (1 << (width - 1)) - 1
        else:
            low, high = 0, (1 << width) - 1
            start %= 1 << width
            bound %= 1 << width

        count = count_until_exit(start, step, relation, bound)
        if count is None:
            return None
        last = start + count * step
        if not (low <= start <= high and low <= last <= high):
            return None
        return count

    @staticmethod
    def _lookup(defs: Dict[str, Instruction], operand: str) -> Optional[Instruction]:
        if not operand.startswith("%"):
            return None
        return defs.get(operand[1:])

    def _recurrence(self, loop: Loop, latch, defs: Dict[str, Instruction],
                    subject: str) -> Optional[Tuple[int, int]]:
        """(first compared value, step) of the induction value ``subject``."""
        inst = self._lookup(defs, subject)
        if inst is None:
            return None

        if inst.opcode == "phi":
            phi, offset = inst, 0
        elif inst.opcode in ("add", "sub"):
            phi = next(
                (d for op in inst.operands
                 if (d := self._lookup(defs, op)) is not None and d.opcode == "phi"),
                None,
            )
            if phi is None:
                return None
            offset = 1
        else:
            return None

        if phi.parent is not loop.header or len(phi.incoming_blocks) != 2:
            return None
        start = next_value = None
        for value, block_name in phi.incoming():
            if block_name == latch.name:
                next_value = value
            elif not any(bb.name == block_name for bb in loop.blocks):
                start = _int_literal(value)
        if start is None or next_value is None:
            return None

        increment = self._lookup(defs, next_value)
        if increment is None or (offset and increment is not inst):
            return None
        step = self._step(increment, phi)
        if step is None:
            return None
        return start + offset * step, step

    @staticmethod
    def _step(increment: Instruction, phi: Instruction) -> Optional[int]:
        if increment.opcode not in ("add", "sub") or len(increment.operands) != 2:
            return None
        first, second = increment.operands
        phi_ref = f"%{phi.name}"
        if first == phi_ref and _int_literal(second) is not None:
            step = _int_literal(second)
            return -step if increment.opcode == "sub" else step
        if increment.opcode == "add" and second == phi_ref and _int_literal(first) is not None:
            return _int_literal(first)
        return None


def trip_count_for(loop: Loop, oracle: BoundOracle, function_name: str = "") -> int:
    """``c + 1`` for a constant backedge-taken count ``c``; ``0`` otherwise."""
    try:
        count = oracle.try_get_constant_backedge_count(loop)
    except Exception as exc:
        diagnostics.warn(
            f"Could not compute trip count for loop '{loop.header.name}' in {function_name}: {exc}"
        )
        return 0
    if count is None or count < 0:
        diagnostics.debug(f"Trip count not constant for loop in {function_name}")
        return 0
    return count + 1
