from pathlib import Path

from loop_features.counter import RunCounter


def test_missing_store_starts_at_zero(tmp_path: Path) -> None:
    store = tmp_path / "code_id.txt"
    counter = RunCounter(store)
    assert counter.load_counter() == 0
    assert counter.current_run_id() == 0
    assert counter.save_counter()
    assert store.read_text() == "1"


def test_existing_value_is_used_once(tmp_path: Path) -> None:
    store = tmp_path / "code_id.txt"
    store.write_text("41\n")
    counter = RunCounter(store)
    assert counter.current_run_id() == 41
    assert counter.current_run_id() == 41
    assert counter.save_counter()
    assert store.read_text() == "42"


def test_consecutive_processes(tmp_path: Path) -> None:
    store = tmp_path / "code_id.txt"
    ids = []
    for _ in range(3):
        counter = RunCounter(store)
        ids.append(counter.current_run_id())
        counter.save_counter()
    assert ids == [0, 1, 2]


def test_malformed_store_is_reset(tmp_path: Path) -> None:
    store = tmp_path / "code_id.txt"
    store.write_text("not-a-number")
    counter = RunCounter(store)
    assert counter.load_counter() == 0


def test_negative_value_is_clamped(tmp_path: Path) -> None:
    store = tmp_path / "code_id.txt"
    store.write_text("-5")
    assert RunCounter(store).load_counter() == 0


def test_save_without_run_keeps_value(tmp_path: Path) -> None:
    store = tmp_path / "code_id.txt"
    store.write_text("7")
    counter = RunCounter(store)
    counter.load_counter()
    assert counter.save_counter()
    assert store.read_text() == "7"


def test_unwritable_store_is_reported(tmp_path: Path) -> None:
    store = tmp_path / "store"
    store.mkdir()
    counter = RunCounter(store)
    assert counter.current_run_id() == 0
    assert counter.save_counter() is False


def test_interleaved_processes_share_an_id(tmp_path: Path) -> None:
    # the store is not locked: both read it before either writes back
    store = tmp_path / "code_id.txt"
    first = RunCounter(store)
    second = RunCounter(store)
    assert first.current_run_id() == second.current_run_id() == 0
    assert first.save_counter()
    assert second.save_counter()
    assert store.read_text() == "1"
