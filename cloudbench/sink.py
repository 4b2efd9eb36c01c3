#!/usr/bin/env python3
"""
Result Sink with Atomic Rewrites
cloudbench/sink.py

Holds the full CSV history in memory and rewrites the output file on every
commit (write temp sibling, fsync, replace). The buffer only grows after a
write succeeded, so a failed commit leaves buffer and file as they were.

Usage:
    from cloudbench.sink import ResultSink

    sink = ResultSink(Path("bench.csv"), schema)
    sink.open()              # truncates, writes header
    sink.commit(run)         # appends one row, rewrites file
"""

import logging
import os
from pathlib import Path

from cloudbench.exceptions import SinkError
from cloudbench.schema import BenchmarkRun, RowSchema, format_csv_line

logger = logging.getLogger("cloudbench.sink")


class ResultSink:
    """
    Persists accumulated run history to one CSV file.
    """

    def __init__(self, path: Path, schema: RowSchema):
        self.path = Path(path)
        self.schema = schema
        self._buffer = ""
        self.rows_written = 0

    @property
    def text(self) -> str:
        """Everything persisted so far (header included)."""
        return self._buffer

    def open(self) -> None:
        """Create/truncate the output file with just the header row."""
        header = self.schema.header_line()
        self._atomic_write(header)
        self._buffer = header
        self.rows_written = 0
        logger.info(f"output initialised: {self.path}", extra={"columns": self.schema.header})

    def commit(self, run: BenchmarkRun) -> None:
        """Append ``run`` and rewrite the file with the full history."""
        fields = run.fields()
        if len(fields) != self.schema.width:
            raise SinkError(
                f"run {run.sequence} has {len(fields)} fields, header has {self.schema.width}"
            )
        candidate = self._buffer + format_csv_line(fields)
        self._atomic_write(candidate)
        self._buffer = candidate
        self.rows_written += 1

    def _atomic_write(self, text: str) -> None:
        """
        Atomically write the file (write to temp, then rename).

        This prevents a torn file from a crash mid-write.
        """
        temp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(temp_path, "w", encoding="utf-8", newline="") as f:
                f.write(text)
                f.flush()
                os.fsync(f.fileno())
            os.replace(temp_path, self.path)
        except OSError as exc:
            try:
                temp_path.unlink()
            except OSError:
                pass
            raise SinkError(f"failed to write {self.path}: {exc}") from exc
