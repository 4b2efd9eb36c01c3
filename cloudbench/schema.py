#!/usr/bin/env python3
"""
Benchmark Row Schema
cloudbench/schema.py

Defines the CSV column set and the per-run record that flows through the
pipeline. Values stay typed (float / str) until the sink serialises them.

Columns (default variant):
    Time, Download (CDN), Ping, Download, Upload, CPU Time,
    Read IOPS, Write IOPS, IO Ping

The CDN column is dropped in the ``--nocdn`` variant. Disk columns are
never dropped; when disk probes are disabled they carry the placeholder.
"""

import csv
import io
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import List, Sequence, Tuple, Union

MetricValue = Union[float, int, str]

TIME_COLUMN = "Time"


# =============================================================================
# COLUMNS
# =============================================================================

@dataclass(frozen=True)
class MetricColumn:
    """One named CSV column produced by a probe."""
    name: str
    unit: str = ""

    @property
    def label(self) -> str:
        """Column name with its unit, for logs (``Ping [ms]``)."""
        return f"{self.name} [{self.unit}]" if self.unit else self.name


CDN_DOWNLOAD = MetricColumn("Download (CDN)", "MB/s")
PING = MetricColumn("Ping", "ms")
DOWNLOAD = MetricColumn("Download", "MB/s")
UPLOAD = MetricColumn("Upload", "MB/s")
CPU_TIME = MetricColumn("CPU Time", "s")
READ_IOPS = MetricColumn("Read IOPS", "iops")
WRITE_IOPS = MetricColumn("Write IOPS", "iops")
IO_PING = MetricColumn("IO Ping")


@dataclass(frozen=True)
class RowSchema:
    """Ordered metric columns for one configuration variant."""
    columns: Tuple[MetricColumn, ...]

    @property
    def header(self) -> List[str]:
        return [TIME_COLUMN] + [c.name for c in self.columns]

    @property
    def width(self) -> int:
        """Number of CSV fields per row, timestamp included."""
        return len(self.columns) + 1

    def header_line(self) -> str:
        return format_csv_line(self.header)


def build_schema(include_cdn: bool = True) -> RowSchema:
    """Column set for the requested variant, in pipeline order."""
    columns: List[MetricColumn] = []
    if include_cdn:
        columns.append(CDN_DOWNLOAD)
    columns.extend([PING, DOWNLOAD, UPLOAD, CPU_TIME, READ_IOPS, WRITE_IOPS, IO_PING])
    return RowSchema(tuple(columns))


# =============================================================================
# RUN RECORD
# =============================================================================

def capture_timestamp() -> str:
    """Local wall-clock instant, ISO-8601 with UTC offset (comma free)."""
    return datetime.now().astimezone().isoformat(timespec="seconds")


@dataclass(frozen=True)
class BenchmarkRun:
    """One logical execution of the pipeline.

    Probes never mutate a run; ``with_values`` returns the next record.
    """
    sequence: int
    timestamp: str = field(default_factory=capture_timestamp)
    values: Tuple[MetricValue, ...] = ()

    def with_values(self, *values: MetricValue) -> "BenchmarkRun":
        return replace(self, values=self.values + tuple(values))

    def fields(self) -> List[str]:
        return [self.timestamp] + [format_value(v) for v in self.values]


def format_value(value: MetricValue) -> str:
    """Text form of one metric: floats keep full precision, strings verbatim."""
    if isinstance(value, bool):
        raise TypeError("boolean is not a metric value")
    if isinstance(value, float):
        return repr(value)
    return str(value)


def format_csv_line(fields: Sequence[str]) -> str:
    """Serialise one row with the csv module, ``\\n`` terminated."""
    buf = io.StringIO()
    csv.writer(buf, lineterminator="\n").writerow(fields)
    return buf.getvalue()
