import pytest

from loop_features.ir_reader import read_module
from loop_features.loop_info import build_loop_forest, compute_dominators, reachable_blocks


def _names(blocks):
    return [bb.name for bb in blocks]


def test_single_loop(sum_unit) -> None:
    fn = sum_unit.function("sum")
    forest = build_loop_forest(fn)
    assert len(forest) == 1
    loop = forest.loop_for("for.cond")
    assert _names(loop.blocks) == ["for.cond", "for.body", "for.inc"]
    assert loop.depth == 1
    assert loop.parent is None
    assert _names(loop.latches()) == ["for.inc"]
    assert _names(loop.exiting_blocks()) == ["for.cond"]
    assert loop.function is fn


def test_nested_loops(nested_unit) -> None:
    forest = build_loop_forest(nested_unit.function("matrix"))
    assert len(forest) == 1
    outer = forest.loop_for("outer")
    inner = forest.loop_for("inner")
    assert _names(outer.blocks) == ["outer", "inner", "outer.latch"]
    assert _names(inner.blocks) == ["inner"]
    assert inner.parent is outer
    assert outer.sub_loops == [inner]
    assert (outer.depth, inner.depth) == (1, 2)
    assert [loop.header.name for loop in forest.all_loops()] == ["outer", "inner"]
    assert outer.contains(inner.header)
    assert not inner.contains(outer.header)


def test_dominators(sum_unit) -> None:
    fn = sum_unit.function("sum")
    dom = compute_dominators(fn)
    inc = fn.block("for.inc")
    expected = {id(fn.block(name)) for name in ("entry", "for.cond", "for.body", "for.inc")}
    assert dom[id(inc)] == expected
    assert dom[id(fn.block("for.end"))] == {id(fn.block("entry")), id(fn.block("for.cond")),
                                             id(fn.block("for.end"))}


def test_back_edges_to_one_header_form_one_loop() -> None:
    unit = read_module("""
define void @two_latches(i1 %c, i1 %d) {
entry:
  br label %h

h:
  br i1 %c, label %a, label %exit

a:
  br i1 %d, label %h, label %b

b:
  br label %h

exit:
  ret void
}
""")
    forest = build_loop_forest(unit.function("two_latches"))
    assert len(forest) == 1
    loop = forest.loop_for("h")
    assert _names(loop.blocks) == ["h", "a", "b"]
    assert _names(loop.latches()) == ["a", "b"]
    assert _names(loop.exiting_blocks()) == ["h"]


def test_sibling_loops_follow_program_order() -> None:
    unit = read_module("""
define void @pair(i1 %c) {
entry:
  br label %first

first:
  br i1 %c, label %first, label %mid

mid:
  br label %second

second:
  br i1 %c, label %second, label %done

done:
  ret void
}
""")
    forest = build_loop_forest(unit.function("pair"))
    assert [loop.header.name for loop in forest] == ["first", "second"]
    assert all(loop.depth == 1 for loop in forest)


def test_irreducible_cycle_has_no_loop() -> None:
    unit = read_module("""
define void @tangle(i1 %c, i1 %d) {
entry:
  br i1 %c, label %a, label %b

a:
  br label %b

b:
  br i1 %d, label %a, label %exit

exit:
  ret void
}
""")
    assert not build_loop_forest(unit.function("tangle"))


def test_unreachable_cycle_is_ignored() -> None:
    unit = read_module("""
define void @dead() {
entry:
  ret void

orphan:
  br label %orphan
}
""")
    fn = unit.function("dead")
    assert _names(reachable_blocks(fn)) == ["entry"]
    assert not build_loop_forest(fn)


def test_declaration_and_loopless(loopless_unit) -> None:
    assert not build_loop_forest(loopless_unit.function("printf"))
    assert not build_loop_forest(loopless_unit.function("add"))


def test_unknown_header(sum_unit) -> None:
    forest = build_loop_forest(sum_unit.function("sum"))
    with pytest.raises(KeyError):
        forest.loop_for("for.end")
