from pathlib import Path

import pytest

from loop_features.ir_reader import read_module

# for (i = 0; i < 10; i++) s += a[i];  header-exiting, backedge taken 10 times
SUM_LOOP_IR = """
define dso_local i32 @sum(ptr noundef %a) {
entry:
  br label %for.cond

for.cond:                                         ; preds = %for.inc, %entry
  %i = phi i32 [ 0, %entry ], [ %inc, %for.inc ]
  %s = phi i32 [ 0, %entry ], [ %add, %for.inc ]
  %cmp = icmp slt i32 %i, 10
  br i1 %cmp, label %for.body, label %for.end

for.body:                                         ; preds = %for.cond
  %idx = sext i32 %i to i64
  %arrayidx = getelementptr inbounds i32, ptr %a, i64 %idx
  %v = load i32, ptr %arrayidx, align 4
  %add = add nsw i32 %s, %v
  br label %for.inc

for.inc:                                          ; preds = %for.body
  %inc = add nsw i32 %i, 1
  br label %for.cond

for.end:                                          ; preds = %for.cond
  ret i32 %s
}
"""

# 4 x 8 rotated loop nest
NESTED_LOOP_IR = """
define dso_local void @matrix(ptr noundef %m) {
entry:
  br label %outer

outer:                                            ; preds = %outer.latch, %entry
  %i = phi i64 [ 0, %entry ], [ %i.next, %outer.latch ]
  br label %inner

inner:                                            ; preds = %inner, %outer
  %j = phi i64 [ 0, %outer ], [ %j.next, %inner ]
  %p = getelementptr inbounds [8 x double], ptr %m, i64 %i, i64 %j
  %x = load double, ptr %p, align 8
  %y = fmul double %x, 2.000000e+00
  store double %y, ptr %p, align 8
  %j.next = add nuw nsw i64 %j, 1
  %j.done = icmp eq i64 %j.next, 8
  br i1 %j.done, label %outer.latch, label %inner

outer.latch:                                      ; preds = %inner
  %i.next = add nuw nsw i64 %i, 1
  %i.done = icmp eq i64 %i.next, 4
  br i1 %i.done, label %exit, label %outer

exit:                                             ; preds = %outer.latch
  ret void
}
"""

# dst[i] = src[i] for 10 elements, rotated: one load, one store, backedge taken 9 times
COPY_LOOP_IR = """
define dso_local void @copy(ptr noundef %dst, ptr noundef %src) {
entry:
  br label %loop

loop:                                             ; preds = %loop, %entry
  %i = phi i32 [ 0, %entry ], [ %i.next, %loop ]
  %idx = zext i32 %i to i64
  %s.addr = getelementptr inbounds i32, ptr %src, i64 %idx
  %v = load i32, ptr %s.addr, align 4
  %d.addr = getelementptr inbounds i32, ptr %dst, i64 %idx
  store i32 %v, ptr %d.addr, align 4
  %i.next = add nuw nsw i32 %i, 1
  %done = icmp eq i32 %i.next, 10
  br i1 %done, label %exit, label %loop

exit:                                             ; preds = %loop
  ret void
}
"""

# bound and step only known at run time
SYMBOLIC_LOOP_IR = """
declare i32 @step(ptr noundef, i32 noundef)

define dso_local i32 @walk(ptr noundef %p, i32 noundef %n) {
entry:
  br label %while.cond

while.cond:                                       ; preds = %while.body, %entry
  %k = phi i32 [ 0, %entry ], [ %k.next, %while.body ]
  %cmp = icmp slt i32 %k, %n
  br i1 %cmp, label %while.body, label %while.end

while.body:                                       ; preds = %while.cond
  %call = call i32 @step(ptr noundef %p, i32 noundef %k)
  %k.next = add nsw i32 %k, %call
  br label %while.cond

while.end:                                        ; preds = %while.cond
  ret i32 %k
}
"""

LOOPLESS_IR = """
declare i32 @printf(ptr noundef, ...)

define dso_local i32 @add(i32 noundef %a, i32 noundef %b) {
entry:
  %sum = add nsw i32 %a, %b
  ret i32 %sum
}
"""


@pytest.fixture
def sum_unit():
    return read_module(SUM_LOOP_IR, name="sum.ll")


@pytest.fixture
def nested_unit():
    return read_module(NESTED_LOOP_IR, name="nested.ll")


@pytest.fixture
def copy_unit():
    return read_module(COPY_LOOP_IR, name="copy.ll")


@pytest.fixture
def symbolic_unit():
    return read_module(SYMBOLIC_LOOP_IR, name="symbolic.ll")


@pytest.fixture
def loopless_unit():
    return read_module(LOOPLESS_IR, name="loopless.ll")


@pytest.fixture
def ir_dir(tmp_path: Path) -> Path:
    """A directory with one module per sample program."""
    source_dir = tmp_path / "modules"
    source_dir.mkdir()
    (source_dir / "sum.ll").write_text(SUM_LOOP_IR, encoding="utf-8")
    (source_dir / "nested.ll").write_text(NESTED_LOOP_IR, encoding="utf-8")
    (source_dir / "loopless.ll").write_text(LOOPLESS_IR, encoding="utf-8")
    return source_dir
