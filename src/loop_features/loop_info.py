"""Natural-loop forest of a function.

Algorithm (Aho et al., "Compilers", 2e, §9.6):

1. Compute dominator sets over the blocks reachable from the entry.
2. Identify back-edges ``t -> h`` where ``h`` dominates ``t``.
3. For each header, the loop body is ``h`` plus everything that reaches a
   back-edge tail without passing through ``h``.
4. Nest loops by body containment; depth 1 is outermost.

Cycles that are not natural loops (irreducible control flow) and unreachable
blocks produce no loops, as in LLVM's LoopInfo.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, Iterator, List, Optional, Set

from .ir import BasicBlock, Function


@dataclass(eq=False)
class Loop:
    """A natural loop.

    ``blocks`` lists every member block, header first, then program order;
    blocks of nested sub-loops are members too.
    """

    header: BasicBlock
    blocks: List[BasicBlock]
    parent: Optional["Loop"] = field(default=None, repr=False)
    sub_loops: List["Loop"] = field(default_factory=list, repr=False)
    _member_ids: Set[int] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._member_ids = {id(bb) for bb in self.blocks}

    @property
    def depth(self) -> int:
        depth = 1
        node = self.parent
        while node is not None:
            depth += 1
            node = node.parent
        return depth

    @property
    def function(self) -> Optional[Function]:
        return self.header.parent

    def contains(self, block: Optional[BasicBlock]) -> bool:
        return block is not None and id(block) in self._member_ids

    def latches(self) -> List[BasicBlock]:
        return [bb for bb in self.header.predecessors if self.contains(bb)]

    def exiting_blocks(self) -> List[BasicBlock]:
        members = self._member_ids
        return [bb for bb in self.blocks if any(id(s) not in members for s in bb.successors)]

    def walk(self) -> Iterator["Loop"]:
        """This loop, then every nested loop, depth first."""
        yield self
        for sub in self.sub_loops:
            yield from sub.walk()

    def __repr__(self) -> str:
        return f"<Loop header={self.header.name!r} depth={self.depth} blocks={len(self.blocks)}>"


@dataclass
class LoopForest:
    """Top-level loops of one function, ordered by header position."""

    function: Function
    top_level: List[Loop] = field(default_factory=list)

    def __iter__(self) -> Iterator[Loop]:
        return iter(self.top_level)

    def __len__(self) -> int:
        return len(self.top_level)

    def __bool__(self) -> bool:
        return bool(self.top_level)

    def all_loops(self) -> List[Loop]:
        return [loop for top in self.top_level for loop in top.walk()]

    def loop_for(self, header_name: str) -> Loop:
        for loop in self.all_loops():
            if loop.header.name == header_name:
                return loop
        raise KeyError(f"No loop with header '{header_name}' in '{self.function.name}'")


def reachable_blocks(function: Function) -> List[BasicBlock]:
    """Blocks reachable from the entry, in program order."""
    entry = function.entry
    if entry is None:
        return []
    seen: Set[int] = {id(entry)}
    stack = [entry]
    while stack:
        bb = stack.pop()
        for succ in bb.successors:
            if id(succ) not in seen:
                seen.add(id(succ))
                stack.append(succ)
    return [bb for bb in function.blocks or [] if id(bb) in seen]


def compute_dominators(function: Function) -> Dict[int, Set[int]]:
    """Dominator sets keyed by ``id(block)``, via the iterative algorithm.

    Only reachable blocks appear in the result.
    """
    blocks = reachable_blocks(function)
    if not blocks:
        return {}
    entry = blocks[0]
    all_ids = {id(bb) for bb in blocks}
    dom: Dict[int, Set[int]] = {id(entry): {id(entry)}}
    for bb in blocks[1:]:
        dom[id(bb)] = set(all_ids)

    changed = True
    while changed:
        changed = False
        for bb in blocks[1:]:
            preds = [p for p in bb.predecessors if id(p) in all_ids]
            if preds:
                new_dom = set.intersection(*(dom[id(p)] for p in preds)) | {id(bb)}
            else:
                new_dom = {id(bb)}
            if new_dom != dom[id(bb)]:
                dom[id(bb)] = new_dom
                changed = True
    return dom


def build_loop_forest(function: Function) -> LoopForest:
    forest = LoopForest(function=function)
    if function.is_declaration:
        return forest

    dom = compute_dominators(function)
    blocks = function.blocks or []
    order = {id(bb): idx for idx, bb in enumerate(blocks)}

    # header -> back-edge tails
    tails: Dict[int, List[BasicBlock]] = {}
    headers: Dict[int, BasicBlock] = {}
    for bb in blocks:
        if id(bb) not in dom:
            continue
        for succ in bb.successors:
            if id(succ) in dom[id(bb)]:
                tails.setdefault(id(succ), []).append(bb)
                headers[id(succ)] = succ

    loops: List[Loop] = []
    for header_id, latch_blocks in tails.items():
        header = headers[header_id]
        body: Set[int] = {header_id}
        worklist: Deque[BasicBlock] = deque()
        for tail in latch_blocks:
            if id(tail) not in body:
                body.add(id(tail))
                worklist.append(tail)
        while worklist:
            bb = worklist.popleft()
            for pred in bb.predecessors:
                if id(pred) in dom and id(pred) not in body:
                    body.add(id(pred))
                    worklist.append(pred)
        members = [header] + [bb for bb in blocks if id(bb) in body and bb is not header]
        loops.append(Loop(header=header, blocks=members))

    # innermost enclosing loop = smallest strict superset
    bodies = {id(loop): loop._member_ids for loop in loops}
    for loop in loops:
        candidates = [
            other for other in loops
            if other is not loop
            and id(loop.header) in bodies[id(other)]
            and bodies[id(loop)] < bodies[id(other)]
        ]
        if candidates:
            parent = min(candidates, key=lambda other: len(bodies[id(other)]))
            loop.parent = parent

    for loop in sorted(loops, key=lambda l: order[id(l.header)]):
        if loop.parent is None:
            forest.top_level.append(loop)
        else:
            loop.parent.sub_loops.append(loop)
    return forest
