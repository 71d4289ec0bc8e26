"""Run identifier persisted in a plain-text side store."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from . import diagnostics
from .config import DEFAULT_COUNTER_PATH
from .exceptions import CounterPersistError


class RunCounter:
    """Hands out one run identifier per process and persists the next one.

    The first call to :meth:`current_run_id` returns the stored value and
    bumps the in-memory counter, so :meth:`save_counter` writes the id the next
    process will use. Later calls return the same id no matter how many units
    were analyzed.

    The side store is not locked: two processes sharing it can read the same
    value and both write back ``value + 1``.
    """

    def __init__(self, path: Path | str = DEFAULT_COUNTER_PATH):
        self.path = Path(path)
        self.value = 0
        self._loaded = False
        self._run_id: Optional[int] = None

    def load_counter(self) -> int:
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            diagnostics.debug(f"No {self.path} found, initialized run counter to 0")
            text = ""
        except OSError as exc:
            diagnostics.warn(f"Could not read run counter from {self.path}: {exc}")
            text = ""

        tokens = text.split()
        try:
            value = int(tokens[0]) if tokens else 0
        except ValueError:
            diagnostics.warn(f"Ignoring malformed run counter in {self.path}: {tokens[0]!r}")
            value = 0
        self.value = max(value, 0)
        self._loaded = True
        diagnostics.debug(f"Read run counter {self.value} from {self.path}")
        return self.value

    def current_run_id(self) -> int:
        if self._run_id is None:
            if not self._loaded:
                self.load_counter()
            self._run_id = self.value
            self.value += 1
        return self._run_id

    def save_counter(self) -> bool:
        """Write the counter back; failures are reported, never raised."""
        try:
            self._write()
        except CounterPersistError as exc:
            diagnostics.error(str(exc))
            return False
        diagnostics.debug(f"Saved run counter {self.value} to {self.path}")
        return True

    def _write(self) -> None:
        try:
            self.path.write_text(str(self.value), encoding="utf-8")
        except OSError as exc:
            raise CounterPersistError(f"Could not save run counter to {self.path}: {exc}") from exc
