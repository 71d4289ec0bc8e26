import pytest

from loop_features.exceptions import IRParseError
from loop_features.ir import OpcodeClass, classify_opcode
from loop_features.ir_reader import parse_instruction, read_module, split_top_level


def test_functions_and_declarations(symbolic_unit) -> None:
    names = [fn.name for fn in symbolic_unit]
    assert names == ["step", "walk"]
    assert symbolic_unit.function("step").is_declaration
    walk = symbolic_unit.function("walk")
    assert not walk.is_declaration
    assert [bb.name for bb in walk.blocks] == ["entry", "while.cond", "while.body", "while.end"]


def test_cfg_edges(sum_unit) -> None:
    fn = sum_unit.function("sum")
    cond = fn.block("for.cond")
    assert [bb.name for bb in cond.successors] == ["for.body", "for.end"]
    assert [bb.name for bb in cond.predecessors] == ["entry", "for.inc"]
    assert fn.block("for.end").successors == []


def test_use_lists(sum_unit) -> None:
    fn = sum_unit.function("sum")
    insts = {inst.name: inst for inst in fn.instructions() if inst.name}
    assert [u.name for u in insts["i"].users] == ["cmp", "idx", "inc"]
    # the add in the body and the return after the loop
    assert [u.opcode for u in insts["s"].users] == ["add", "ret"]


def test_operand_counts() -> None:
    assert parse_instruction("%x = load i32, ptr %p, align 4").num_operands == 1
    assert parse_instruction("store i32 %v, ptr %p, align 4, !tbaa !3").num_operands == 2
    assert parse_instruction("br label %next").num_operands == 1
    assert parse_instruction("br i1 %c, label %a, label %b, !llvm.loop !7").num_operands == 3
    assert parse_instruction("ret void").num_operands == 0
    assert parse_instruction("ret i32 %r").num_operands == 1
    assert parse_instruction("%a = alloca i32, align 4").num_operands == 1
    assert parse_instruction("%g = getelementptr inbounds [10 x i32], ptr %a, i64 0, i64 %i").num_operands == 3
    assert parse_instruction("%p = phi i32 [ 0, %entry ], [ %n, %latch ]").num_operands == 2
    assert parse_instruction("%e = extractvalue { i32, i1 } %agg, 1").num_operands == 1
    assert parse_instruction("unreachable").num_operands == 0


def test_call_operands_include_callee() -> None:
    inst = parse_instruction(
        "%call = tail call i32 (ptr, ...) @printf(ptr noundef nonnull @.str, i32 noundef %x) #3"
    )
    assert inst.opcode == "call"
    assert inst.operands == ["@.str", "%x", "@printf"]
    assert inst.kind is OpcodeClass.CALL


def test_compare_and_binary_parsing() -> None:
    cmp = parse_instruction("%cmp = icmp slt i32 %i, 10")
    assert cmp.predicate == "slt"
    assert cmp.type == "i32"
    assert cmp.operands == ["%i", "10"]

    add = parse_instruction("%inc = add nuw nsw i64 %i, 1")
    assert add.type == "i64"
    assert add.operands == ["%i", "1"]


def test_switch_spanning_lines() -> None:
    unit = read_module("""
define void @f(i32 %v) {
entry:
  switch i32 %v, label %done [
    i32 0, label %zero
    i32 1, label %one
  ]

zero:
  br label %done

one:
  br label %done

done:
  ret void
}
""")
    fn = unit.function("f")
    term = fn.block("entry").terminator
    assert term.opcode == "switch"
    assert term.targets == ["done", "zero", "one"]
    assert term.num_operands == 6
    assert [bb.name for bb in fn.block("done").predecessors] == ["entry", "zero", "one"]


def test_invoke_destinations_on_next_line() -> None:
    unit = read_module("""
define void @g() personality ptr @__gxx_personality_v0 {
entry:
  invoke void @may_throw(i32 1)
          to label %cont unwind label %lpad

cont:
  ret void

lpad:
  %lp = landingpad { ptr, i32 } cleanup
  resume { ptr, i32 } %lp
}
""")
    term = unit.function("g").block("entry").terminator
    assert term.opcode == "invoke"
    assert term.targets == ["cont", "lpad"]
    assert term.num_operands == 4


def test_branch_classification() -> None:
    cond = parse_instruction("br i1 %c, label %a, label %b")
    plain = parse_instruction("br label %a")
    assert cond.is_conditional and not plain.is_conditional
    assert classify_opcode("fdiv") is OpcodeClass.FLOAT_ARITH
    assert classify_opcode("frem") is OpcodeClass.OTHER
    assert classify_opcode("invoke") is OpcodeClass.CALL


def test_split_top_level_respects_nesting() -> None:
    assert split_top_level("{ i32, i32 } %a, <2 x i32> <i32 1, i32 2>") == [
        "{ i32, i32 } %a",
        "<2 x i32> <i32 1, i32 2>",
    ]


def test_unknown_branch_target_is_reported() -> None:
    with pytest.raises(IRParseError) as excinfo:
        read_module("""
define void @h() {
entry:
  br label %nowhere
}
""")
    assert "nowhere" in str(excinfo.value)


def test_unterminated_function() -> None:
    with pytest.raises(IRParseError):
        read_module("define void @h() {\nentry:\n  ret void\n")


def test_value_follows_type_and_attributes() -> None:
    assert parse_instruction(
        "call void @use(ptr noundef byval(%struct.S) align 4 %p)"
    ).operands == ["%p", "@use"]
    assert parse_instruction(
        "call void @fill(ptr sret(%struct.S) align 4 %out, i32 %n)"
    ).operands == ["%out", "%n", "@fill"]
    assert parse_instruction("%e = extractvalue %struct.S %agg, 0").operands == ["%agg"]
    assert parse_instruction("%s = insertvalue %struct.S %agg, i32 %v, 1").operands == ["%agg", "%v"]
    assert parse_instruction("ret %struct.S %r").operands == ["%r"]


def test_landingpad_clauses_on_their_own_lines() -> None:
    unit = read_module("""
define void @retry(i32 %n) personality ptr @__gxx_personality_v0 {
entry:
  br label %loop

loop:
  %i = phi i32 [ 0, %entry ], [ %i.next, %latch ]
  invoke void @may_throw(i32 %i)
          to label %latch unwind label %lpad

lpad:
  %lp = landingpad { ptr, i32 }
          cleanup
          catch ptr @ti
  br label %latch

latch:
  %i.next = add nsw i32 %i, 1
  %done = icmp eq i32 %i.next, %n
  br i1 %done, label %exit, label %loop

exit:
  ret void
}
""")
    fn = unit.function("retry")
    assert [inst.opcode for inst in fn.instructions()] == [
        "br", "phi", "invoke", "landingpad", "br", "add", "icmp", "br", "ret",
    ]
    pad = fn.block("lpad").instructions[0]
    assert pad.name == "lp"
    assert pad.type == "{ ptr, i32 }"
    assert pad.operands == ["@ti"]
