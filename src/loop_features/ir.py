"""Read-only IR model consumed by the loop analyses.

The model mirrors the parts of an LLVM module the feature engine looks at:
functions, basic blocks with their CFG edges, and instructions with operand
counts and use edges. It is built by :mod:`loop_features.ir_reader`.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional


class OpcodeClass(enum.Enum):
    PHI = "phi"
    CALL = "call"
    LOAD = "load"
    STORE = "store"
    BRANCH = "branch"
    FLOAT_ARITH = "float-arith"
    RETURN = "return"
    UNREACHABLE = "unreachable"
    OTHER = "other"


_OPCODE_CLASSES: Dict[str, OpcodeClass] = {
    "phi": OpcodeClass.PHI,
    "call": OpcodeClass.CALL,
    "invoke": OpcodeClass.CALL,
    "callbr": OpcodeClass.CALL,
    "load": OpcodeClass.LOAD,
    "store": OpcodeClass.STORE,
    "br": OpcodeClass.BRANCH,
    "fadd": OpcodeClass.FLOAT_ARITH,
    "fsub": OpcodeClass.FLOAT_ARITH,
    "fmul": OpcodeClass.FLOAT_ARITH,
    "fdiv": OpcodeClass.FLOAT_ARITH,
    "ret": OpcodeClass.RETURN,
    "unreachable": OpcodeClass.UNREACHABLE,
}

TERMINATOR_OPCODES = frozenset({
    "br", "switch", "ret", "unreachable", "invoke", "callbr", "resume",
    "indirectbr", "cleanupret", "catchret", "catchswitch",
})


def classify_opcode(opcode: str) -> OpcodeClass:
    """Map an opcode mnemonic to the class the feature counters care about."""
    return _OPCODE_CLASSES.get(opcode, OpcodeClass.OTHER)


@dataclass(eq=False)
class Instruction:
    """A single IR instruction.

    ``operands`` holds value operands in LLVM order (``%x``, ``@g`` or a
    constant literal). ``targets`` holds successor block names of a
    terminator; LLVM counts them as operands too. Phi incoming blocks live in
    ``incoming_blocks`` and are not operands.
    """

    opcode: str
    name: Optional[str] = None
    type: Optional[str] = None
    operands: List[str] = field(default_factory=list)
    targets: List[str] = field(default_factory=list)
    incoming_blocks: List[str] = field(default_factory=list)
    predicate: Optional[str] = None
    line_no: int = 0
    parent: Optional["BasicBlock"] = field(default=None, repr=False)
    users: List["Instruction"] = field(default_factory=list, repr=False)

    @property
    def kind(self) -> OpcodeClass:
        return classify_opcode(self.opcode)

    @property
    def is_terminator(self) -> bool:
        return self.opcode in TERMINATOR_OPCODES

    @property
    def is_conditional(self) -> bool:
        return self.opcode == "br" and len(self.targets) == 2

    @property
    def num_operands(self) -> int:
        return len(self.operands) + len(self.targets)

    def incoming(self) -> List[tuple[str, str]]:
        """(value, block) pairs of a phi node."""
        return list(zip(self.operands, self.incoming_blocks))

    def __repr__(self) -> str:
        lhs = f"%{self.name} = " if self.name else ""
        return f"<Instruction {lhs}{self.opcode}>"


@dataclass(eq=False)
class BasicBlock:
    name: str
    instructions: List[Instruction] = field(default_factory=list)
    predecessors: List["BasicBlock"] = field(default_factory=list, repr=False)
    successors: List["BasicBlock"] = field(default_factory=list, repr=False)
    parent: Optional["Function"] = field(default=None, repr=False)

    @property
    def terminator(self) -> Optional[Instruction]:
        if self.instructions and self.instructions[-1].is_terminator:
            return self.instructions[-1]
        return None

    def __iter__(self) -> Iterator[Instruction]:
        return iter(self.instructions)

    def __len__(self) -> int:
        return len(self.instructions)

    def __repr__(self) -> str:
        return f"<BasicBlock {self.name!r} ({len(self.instructions)} instructions)>"


@dataclass(eq=False)
class Function:
    """A function; ``blocks`` is ``None`` for declarations."""

    name: str
    blocks: Optional[List[BasicBlock]] = None

    @property
    def is_declaration(self) -> bool:
        return not self.blocks

    @property
    def entry(self) -> Optional[BasicBlock]:
        return self.blocks[0] if self.blocks else None

    def block(self, name: str) -> BasicBlock:
        for bb in self.blocks or []:
            if bb.name == name:
                return bb
        raise KeyError(f"No block named '{name}' in function '{self.name}'")

    def instructions(self) -> Iterator[Instruction]:
        for bb in self.blocks or []:
            yield from bb.instructions

    def link(self) -> None:
        """Derive CFG edges and use lists from terminator targets and operands.

        Raises ``KeyError`` if a branch targets a block that does not exist.
        """
        blocks = self.blocks or []
        by_name = {bb.name: bb for bb in blocks}
        for bb in blocks:
            bb.parent = self
            bb.predecessors = []
            bb.successors = []
            for inst in bb.instructions:
                inst.parent = bb
                inst.users = []

        for bb in blocks:
            term = bb.terminator
            if term is None:
                continue
            for target in term.targets:
                if target not in by_name:
                    raise KeyError(f"Branch in '{bb.name}' targets unknown block '{target}'")
                succ = by_name[target]
                if succ not in bb.successors:
                    bb.successors.append(succ)

        for bb in blocks:
            for succ in bb.successors:
                if bb not in succ.predecessors:
                    succ.predecessors.append(bb)
        # predecessors in program order
        order = {id(bb): idx for idx, bb in enumerate(blocks)}
        for bb in blocks:
            bb.predecessors.sort(key=lambda p: order[id(p)])

        defs = {inst.name: inst for inst in self.instructions() if inst.name}
        for inst in self.instructions():
            for operand in inst.operands:
                if operand.startswith("%"):
                    definition = defs.get(operand[1:])
                    if definition is not None:
                        definition.users.append(inst)

    def __repr__(self) -> str:
        if self.is_declaration:
            return f"<Function {self.name!r} (declaration)>"
        return f"<Function {self.name!r} ({len(self.blocks or [])} blocks)>"


@dataclass
class CompilationUnit:
    name: str
    functions: List[Function] = field(default_factory=list)

    def __iter__(self) -> Iterator[Function]:
        return iter(self.functions)

    def function(self, name: str) -> Function:
        for fn in self.functions:
            if fn.name == name:
                return fn
        raise KeyError(f"No function named '{name}' in '{self.name}'")
