"""Reader for the textual LLVM IR subset the feature engine consumes.

Only what the loop analyses need is recovered: function definitions and
declarations, labelled blocks, and for every instruction its opcode, result
name, operand list (in LLVM operand order), branch targets, phi incoming blocks
and comparison predicate. Globals, metadata, attributes and debug records are
skipped.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import List, Optional

from .exceptions import IRParseError
from .ir import BasicBlock, CompilationUnit, Function, Instruction

_NAME = r'(?:"[^"]*"|[-\w.$]+)'

_DEFINE_RE = re.compile(r"^define\b[^@]*@(" + _NAME + r")\s*\(")
_DECLARE_RE = re.compile(r"^declare\b[^@]*@(" + _NAME + r")\s*\(")
_LABEL_RE = re.compile(r"^(" + _NAME + r"):(?:\s|$)")
_ASSIGN_RE = re.compile(r"^%(" + _NAME + r")\s*=\s*(.+)$")
_REF_RE = re.compile(r"[%@](" + _NAME + r")")
_LABEL_REF_RE = re.compile(r"\blabel\s+%(" + _NAME + r")")
_PHI_PAIR_RE = re.compile(r"\[\s*([^\[\]]+?)\s*,\s*%(" + _NAME + r")\s*\]")
_CASE_RE = re.compile(r"\S+\s+(\S+?)\s*,\s*label\s+%(" + _NAME + r")")
_CALLEE_RE = re.compile(r"([%@]" + _NAME + r")\s*\(")
_CLAUSE_RE = re.compile(r"(?:^|\s)(?:catch|filter)\s+")

_CALL_PREFIXES = {"tail", "musttail", "notail"}
_FLAGS = {
    "nsw", "nuw", "exact", "disjoint", "nneg", "samesign", "fast", "nnan",
    "ninf", "nsz", "arcp", "contract", "afn", "reassoc", "inbounds", "nusw",
    "volatile", "atomic",
}
_CASTS = {
    "trunc", "zext", "sext", "fptrunc", "fpext", "fptoui", "fptosi", "uitofp",
    "sitofp", "ptrtoint", "inttoptr", "bitcast", "addrspacecast",
}


def _unquote(name: str) -> str:
    if len(name) >= 2 and name[0] == '"' and name[-1] == '"':
        return name[1:-1]
    return name


def _strip_comment(line: str) -> str:
    in_quote = False
    for idx, ch in enumerate(line):
        if ch == '"':
            in_quote = not in_quote
        elif ch == ";" and not in_quote:
            return line[:idx]
    return line


def _bracket_balance(text: str) -> int:
    depth = 0
    in_quote = False
    for ch in text:
        if ch == '"':
            in_quote = not in_quote
        elif in_quote:
            continue
        elif ch in "([{<":
            depth += 1
        elif ch in ")]}>":
            depth -= 1
    return depth


def split_top_level(text: str) -> List[str]:
    """Split on commas that are not nested inside brackets or quotes."""
    items: List[str] = []
    depth = 0
    in_quote = False
    current: List[str] = []
    for ch in text:
        if ch == '"':
            in_quote = not in_quote
        elif not in_quote:
            if ch in "([{<":
                depth += 1
            elif ch in ")]}>":
                depth -= 1
            elif ch == "," and depth == 0:
                items.append("".join(current).strip())
                current = []
                continue
        current.append(ch)
    tail = "".join(current).strip()
    if tail:
        items.append(tail)
    return items


def _is_trailer(item: str) -> bool:
    """Alignment, metadata and ordering annotations are not operands."""
    return item.startswith("!") or item.startswith("align ") or item.startswith("#")


def _split_words(text: str) -> List[str]:
    """Split on whitespace that is not nested inside brackets or quotes."""
    words: List[str] = []
    depth = 0
    in_quote = False
    current: List[str] = []
    for ch in text:
        if ch == '"':
            in_quote = not in_quote
        elif not in_quote:
            if ch in "([{<":
                depth += 1
            elif ch in ")]}>":
                depth -= 1
            elif ch.isspace() and depth == 0:
                if current:
                    words.append("".join(current))
                    current = []
                continue
        current.append(ch)
    if current:
        words.append("".join(current))
    return words


def _value_of(item: str) -> str:
    """Pick the value out of a typed operand such as ``i32 noundef %x``.

    The value is the last word; types and parameter attributes such as
    ``byval(%struct.S)`` come before it.
    """
    words = _split_words(item)
    if len(words) > 2 and words[-2] == "align":
        words = words[:-2]
    if not words:
        return item
    value = words[-1]
    match = _REF_RE.fullmatch(value)
    if match:
        return value[0] + _unquote(match.group(1))
    return value


def _type_of(item: str) -> Optional[str]:
    words = [w for w in item.split() if w not in _FLAGS]
    if len(words) >= 2:
        return " ".join(words[:-1])
    return None


def _strip_flags(text: str) -> str:
    words = text.split()
    while words and words[0] in _FLAGS:
        words.pop(0)
    return " ".join(words)


def _parse_call_operands(rest: str) -> List[str]:
    match = _CALLEE_RE.search(rest)
    if not match:
        return []
    callee = _value_of(match.group(1))
    start = match.end()
    depth = 1
    idx = start
    while idx < len(rest) and depth:
        if rest[idx] == "(":
            depth += 1
        elif rest[idx] == ")":
            depth -= 1
        idx += 1
    args = [_value_of(arg) for arg in split_top_level(rest[start:idx - 1])]
    return args + [callee]


def parse_instruction(text: str, line_no: int = 0) -> Instruction:
    """Parse one instruction line (comment already removed)."""
    text = text.strip()
    name = None
    assign = _ASSIGN_RE.match(text)
    if assign:
        name = _unquote(assign.group(1))
        text = assign.group(2).strip()

    words = text.split(None, 1)
    while words and words[0] in _CALL_PREFIXES:
        words = words[1].split(None, 1) if len(words) > 1 else []
    if not words:
        raise IRParseError(f"Empty instruction: '{text}'", line_no)
    opcode = words[0]
    rest = words[1] if len(words) > 1 else ""
    inst = Instruction(opcode=opcode, name=name, line_no=line_no)

    if opcode == "ret":
        if rest.strip() != "void":
            inst.operands = [_value_of(rest)]
            inst.type = _type_of(rest)
    elif opcode == "br":
        items = split_top_level(rest)
        if items and items[0].startswith("label"):
            inst.targets = [_unquote(m) for m in _LABEL_REF_RE.findall(items[0])]
        elif len(items) >= 3:
            inst.operands = [_value_of(items[0])]
            inst.targets = [_unquote(m) for m in _LABEL_REF_RE.findall(", ".join(items[1:3]))]
        if not inst.targets:
            raise IRParseError(f"Malformed branch: '{text}'", line_no)
    elif opcode == "switch":
        head, _, cases = rest.partition("[")
        items = split_top_level(head)
        if len(items) < 2:
            raise IRParseError(f"Malformed switch: '{text}'", line_no)
        inst.operands = [_value_of(items[0])]
        inst.targets = [_unquote(m) for m in _LABEL_REF_RE.findall(items[1])]
        for value, label in _CASE_RE.findall(cases):
            inst.operands.append(value)
            inst.targets.append(_unquote(label))
    elif opcode == "indirectbr":
        head, _, labels = rest.partition("[")
        inst.operands = [_value_of(split_top_level(head)[0])]
        inst.targets = [_unquote(m) for m in _LABEL_REF_RE.findall(labels)]
    elif opcode in ("call", "invoke", "callbr"):
        call_part, _, dests = rest.partition(" to label ")
        inst.operands = _parse_call_operands(call_part)
        if dests:
            inst.targets = [_unquote(m) for m in _LABEL_REF_RE.findall("label " + dests)]
    elif opcode == "landingpad":
        # each catch/filter clause is an operand, cleanup is not
        head, *clauses = _CLAUSE_RE.split(rest)
        inst.type = head.replace("cleanup", "").strip() or None
        inst.operands = [_value_of(clause) for clause in clauses if clause.strip()]
    elif opcode == "phi":
        inst.type = _strip_flags(rest.split("[", 1)[0]).strip() or None
        for value, block in _PHI_PAIR_RE.findall(rest):
            inst.operands.append(_value_of(value))
            inst.incoming_blocks.append(_unquote(block))
    elif opcode in ("icmp", "fcmp"):
        body = _strip_flags(rest)
        pred, _, body = body.partition(" ")
        inst.predicate = pred
        items = split_top_level(body)
        inst.operands = [_value_of(item) for item in items[:2]]
        if items:
            inst.type = _type_of(items[0])
    elif opcode in _CASTS:
        source = _strip_flags(rest).split(" to ")[0]
        inst.operands = [_value_of(source)]
        inst.type = rest.rsplit(" to ", 1)[-1].strip() if " to " in rest else None
    else:
        items = [item for item in split_top_level(_strip_flags(rest)) if not _is_trailer(item)]
        if opcode == "load":
            inst.type = items[0] if items else None
            inst.operands = [_value_of(item) for item in items[1:2]]
        elif opcode == "alloca":
            inst.type = items[0] if items else None
            inst.operands = [_value_of(items[1])] if len(items) > 1 else ["1"]
        elif opcode == "getelementptr":
            inst.operands = [_value_of(item) for item in items[1:]]
        elif opcode == "extractvalue":
            inst.operands = [_value_of(item) for item in items[:1]]
        elif opcode == "insertvalue":
            inst.operands = [_value_of(item) for item in items[:2]]
        else:
            inst.operands = [_value_of(item) for item in items]
            if items:
                inst.type = _type_of(items[0])
    return inst


def _continues(previous: Instruction, line: str) -> bool:
    if line.startswith("to label"):
        return previous.opcode in ("invoke", "callbr")
    if line == "cleanup" or line.startswith(("catch ", "filter ")):
        return previous.opcode == "landingpad"
    return False


def read_module(text: str, name: str = "<memory>") -> CompilationUnit:
    """Parse a textual IR module into a :class:`CompilationUnit`."""
    unit = CompilationUnit(name=name)
    current: Optional[Function] = None
    block: Optional[BasicBlock] = None
    pending = ""
    pending_line = 0
    last_text = ""

    for line_no, raw in enumerate(text.splitlines(), start=1):
        line = _strip_comment(raw).strip()
        if pending:
            line = f"{pending} {line}"
            if _bracket_balance(line) > 0:
                pending = line
                continue
            pending = ""
            line_no = pending_line
        if not line:
            continue

        if current is None:
            if line.startswith("define"):
                match = _DEFINE_RE.match(line)
                if not match:
                    raise IRParseError(f"Malformed function definition: '{line}'", line_no)
                current = Function(name=_unquote(match.group(1)), blocks=[])
                block = None
                if not line.endswith("{"):
                    raise IRParseError("Function body must open on the define line", line_no)
            elif line.startswith("declare"):
                match = _DECLARE_RE.match(line)
                if not match:
                    raise IRParseError(f"Malformed declaration: '{line}'", line_no)
                unit.functions.append(Function(name=_unquote(match.group(1))))
            continue

        if line == "}":
            try:
                current.link()
            except KeyError as exc:
                raise IRParseError(str(exc.args[0]), line_no) from exc
            unit.functions.append(current)
            current = None
            block = None
            continue

        label = _LABEL_RE.match(line)
        if label:
            block = BasicBlock(name=_unquote(label.group(1)))
            current.blocks.append(block)
            continue

        if line.startswith("#dbg_"):
            continue
        if _bracket_balance(line) > 0:
            pending = line
            pending_line = line_no
            continue

        if block is not None and block.instructions and _continues(block.instructions[-1], line):
            # invoke destinations and landingpad clauses printed on their own lines
            previous = block.instructions.pop()
            line = f"{last_text} {line}"
            line_no = previous.line_no

        if block is None:
            # unlabelled entry block
            block = BasicBlock(name="")
            current.blocks.append(block)
        block.instructions.append(parse_instruction(line, line_no))
        last_text = line

    if current is not None:
        raise IRParseError(f"Unterminated function '{current.name}'")
    return unit


def read_module_file(path: Path | str) -> CompilationUnit:
    path = Path(path)
    return read_module(path.read_text(encoding="utf-8"), name=str(path))
