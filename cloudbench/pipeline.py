"""
Probe Pipeline.

Runs the fixed probe list for one benchmark run, strictly in order:

    CDN download -> network -> CPU -> disk read -> disk write -> disk ping

Each probe is awaited to completion, then the pipeline settles for a fixed
delay before the next one so consecutive network/disk tests do not overlap
in their after-effects. The first failing probe abandons the run; the sink
is never called for it and earlier history on disk is left untouched.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Sequence

from cloudbench.probes import Probe
from cloudbench.schema import BenchmarkRun, RowSchema
from cloudbench.sink import ResultSink

logger = logging.getLogger("cloudbench.pipeline")

Sleeper = Callable[[float], Awaitable[Any]]


@dataclass
class RunOutcome:
    """What happened to one run."""
    sequence: int
    ok: bool
    run: Optional[BenchmarkRun] = None
    failed_stage: Optional[str] = None
    error: Optional[str] = None
    elapsed_s: float = 0.0


class ProbePipeline:
    def __init__(self, probes: Sequence[Probe], schema: RowSchema, sink: ResultSink,
                 settle_delay_s: float = 3.0, sleep: Sleeper = asyncio.sleep):
        columns = tuple(c for p in probes for c in p.columns)
        if columns != schema.columns:
            raise ValueError(
                f"probe columns {[c.name for c in columns]} do not match schema "
                f"{[c.name for c in schema.columns]}"
            )
        self.probes = list(probes)
        self.schema = schema
        self.sink = sink
        self.settle_delay_s = settle_delay_s
        self._sleep = sleep
        self.stage: Optional[str] = None

    async def measure(self, run: BenchmarkRun) -> BenchmarkRun:
        """Thread ``run`` through every probe; exceptions propagate."""
        for probe in self.probes:
            self.stage = probe.name
            started = time.perf_counter()
            run = await probe(run)
            if not probe.enabled:
                continue
            measured = run.values[len(run.values) - len(probe.columns):]
            logger.info(
                f"probe {probe.name} done",
                extra={"run": run.sequence, "probe": probe.name,
                       "measured": {c.label: v for c, v in zip(probe.columns, measured)},
                       "elapsed_s": round(time.perf_counter() - started, 3)},
            )
            if self.settle_delay_s > 0:
                await self._sleep(self.settle_delay_s)
        return run

    async def execute(self, sequence: int) -> RunOutcome:
        """One full run: measure, then hand the row to the sink.

        Probe and sink errors are caught here and reported in the outcome.
        """
        started = time.perf_counter()
        self.stage = None
        try:
            run = await self.measure(BenchmarkRun(sequence=sequence))
            self.stage = "sink"
            self.sink.commit(run)
        except Exception as exc:
            stage = self.stage or "pipeline"
            elapsed = time.perf_counter() - started
            logger.error(
                f"run {sequence} abandoned at {stage}: {exc}",
                extra={"run": sequence, "probe": stage, "error_type": type(exc).__name__},
            )
            return RunOutcome(sequence, ok=False, failed_stage=stage, error=str(exc), elapsed_s=elapsed)

        elapsed = time.perf_counter() - started
        logger.info(
            f"run {sequence} recorded",
            extra={"run": sequence, "elapsed_s": round(elapsed, 3), "row": run.fields()},
        )
        return RunOutcome(sequence, ok=True, run=run, elapsed_s=elapsed)
