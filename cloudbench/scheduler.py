#!/usr/bin/env python3
"""
Run Scheduler
cloudbench/scheduler.py

Fires the pipeline once immediately, then on a fixed grid anchored at the
first fire (t0, t0 + interval, t0 + 2*interval, ...), until ``limit`` runs
have been started.

Counting: ``runs_started`` is checked before each fire and incremented as
the fire begins. Failed runs count, so at most ``limit`` rows are written.
Once the limit is reached the scheduler returns straight away instead of
waiting out one more interval.

Runs never overlap. A run that overruns its slot makes the scheduler skip
the missed grid points and start the next run immediately.
"""

import asyncio
import logging
import math
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from cloudbench.pipeline import ProbePipeline, RunOutcome

logger = logging.getLogger("cloudbench.scheduler")


@dataclass
class SchedulerState:
    """Explicit scheduler bookkeeping (no module-level counters)."""
    interval_s: float
    limit: int
    runs_started: int = 0
    runs_completed: int = 0
    runs_failed: int = 0

    def __post_init__(self):
        if not math.isfinite(self.interval_s) or self.interval_s <= 0:
            raise ValueError(f"interval must be finite and > 0, got {self.interval_s}")
        if self.limit < 1:
            raise ValueError(f"limit must be >= 1, got {self.limit}")

    @property
    def limit_reached(self) -> bool:
        return self.runs_started >= self.limit

    def as_dict(self) -> dict:
        return {
            "runs_started": self.runs_started,
            "runs_completed": self.runs_completed,
            "runs_failed": self.runs_failed,
            "limit": self.limit,
            "interval_s": self.interval_s,
        }


class RunScheduler:
    def __init__(self, pipeline: ProbePipeline, state: SchedulerState,
                 clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
                 after_run: Optional[Callable[[RunOutcome], None]] = None):
        self.pipeline = pipeline
        self.state = state
        self._clock = clock
        self._sleep = sleep
        self._after_run = after_run

    async def _fire(self) -> None:
        self.state.runs_started += 1
        sequence = self.state.runs_started
        try:
            outcome = await self.pipeline.execute(sequence)
        except Exception:
            # execute() reports its own failures; anything here is unexpected
            logger.exception(f"run {sequence} crashed outside the pipeline")
            self.state.runs_failed += 1
            return

        if outcome.ok:
            self.state.runs_completed += 1
        else:
            self.state.runs_failed += 1

        if self._after_run is not None:
            try:
                self._after_run(outcome)
            except Exception:
                logger.exception(f"after-run hook failed for run {sequence}")

    async def run(self) -> SchedulerState:
        """Drive runs until the limit is reached; return the final state."""
        interval = self.state.interval_s
        anchor = self._clock()
        tick = 0
        logger.info("scheduler started", extra=self.state.as_dict())

        while not self.state.limit_reached:
            await self._fire()
            if self.state.limit_reached:
                break

            tick += 1
            delay = anchor + tick * interval - self._clock()
            if delay >= 0:
                await self._sleep(delay)
                continue

            skipped = int(-delay // interval)
            tick += skipped
            logger.warning(
                f"run {self.state.runs_started} overran the {interval:g}s interval; starting next run now",
                extra={"overrun_s": round(-delay, 3), "ticks_skipped": skipped},
            )

        logger.info("scheduler finished", extra=self.state.as_dict())
        return self.state
