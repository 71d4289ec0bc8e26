"""Append-only CSV dataset of loop feature rows."""

from __future__ import annotations

import os
from pathlib import Path
from typing import IO, Optional

from . import diagnostics
from .config import DEFAULT_DATASET_PATH
from .exceptions import DatasetUnavailableError
from .models import DATASET_HEADER, FeatureRecord


class DatasetWriter:
    """Appends one line per record; the header is written only into an empty file."""

    def __init__(self, path: Path | str = DEFAULT_DATASET_PATH, fsync: bool = False):
        self.path = Path(path)
        self.fsync = fsync
        self.rows_written = 0
        self._handle: Optional[IO[str]] = None

    @property
    def is_open(self) -> bool:
        return self._handle is not None

    def open(self) -> None:
        if self._handle is not None:
            return
        try:
            handle = self.path.open("a", encoding="utf-8", newline="")
        except OSError as exc:
            raise DatasetUnavailableError(f"Could not open {self.path}: {exc}") from exc
        self._handle = handle
        if self.path.stat().st_size == 0:
            self._append(DATASET_HEADER)
            diagnostics.debug(f"Wrote header to {self.path}")
        diagnostics.debug(f"{self.path} opened successfully")

    def write_record(self, record: FeatureRecord) -> None:
        self.open()
        self._append(record.to_line())
        self.rows_written += 1

    def close(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None

    def _append(self, line: str) -> None:
        assert self._handle is not None
        try:
            self._handle.write(line + "\n")
            self._handle.flush()
            if self.fsync:
                os.fsync(self._handle.fileno())
        except OSError as exc:
            raise DatasetUnavailableError(f"Could not append to {self.path}: {exc}") from exc

    def __enter__(self) -> "DatasetWriter":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def read_header(path: Path | str) -> Optional[str]:
    """First line of an existing dataset, or ``None`` if it is missing or empty."""
    path = Path(path)
    if not path.exists():
        return None
    with path.open("r", encoding="utf-8") as handle:
        first = handle.readline()
    return first.rstrip("\n") or None
