#!/usr/bin/env python3
"""
cloudbench command line entry point.

Usage:
    cloudbench --interval 3600 --limit 24 --out bench.csv
    cloudbench --interval 600 --limit 10 --nodisk --out bench.csv
    python -m cloudbench --interval 60 --limit 5 --nocdn --log-dir logs --out bench.csv

Exit codes: 0 when the run limit is reached, 1 when the output file cannot
be initialised, 2 on a configuration error, 130 on Ctrl-C.
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional

from cloudbench.collectors import EnvironmentCollector, SystemCollector
from cloudbench.config import USAGE, BenchOptions, detect_os_family, io_engine_for, load_config
from cloudbench.env_loader import load_env_files
from cloudbench.exceptions import ConfigError, SinkError
from cloudbench.logging_utils import configure_file_logger, get_logger
from cloudbench.pipeline import ProbePipeline, RunOutcome
from cloudbench.probes import build_probes
from cloudbench.process import SubprocessToolRunner, ToolRunner
from cloudbench.scheduler import RunScheduler, SchedulerState
from cloudbench.schema import build_schema
from cloudbench.sink import ResultSink

EXIT_OK = 0
EXIT_SINK = 1
EXIT_CONFIG = 2
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    # Required flags are checked by hand so a missing one prints the short
    # usage line and exits without argparse's own error text.
    parser = argparse.ArgumentParser(
        prog="cloudbench",
        description="Periodic network, CPU and disk benchmark written to CSV.",
        usage=USAGE[len("Usage: "):],
    )
    parser.add_argument("--interval", type=float, help="seconds between run starts")
    parser.add_argument("--limit", type=int, help="number of runs before exiting")
    parser.add_argument("--out", help="CSV file to (re)create")
    parser.add_argument("--nodisk", action="store_true", help="skip fio/ioping, write N/A")
    parser.add_argument("--nocdn", action="store_true", help="omit the CDN download column")
    parser.add_argument("--log-dir", default=None, help="also write JSON logs under this directory")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser


def parse_options(argv: Optional[List[str]] = None) -> BenchOptions:
    """Parse argv into validated options; raise ConfigError on anything missing or invalid."""
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as exc:
        # --help exits 0; bad types / unknown flags exit 2
        if exc.code == 0:
            raise
        raise ConfigError("invalid arguments") from exc

    missing = [flag for flag, value in (("--interval", args.interval), ("--limit", args.limit),
                                        ("--out", args.out)) if value is None or value == ""]
    if missing:
        raise ConfigError(f"missing required flag(s): {', '.join(missing)}")

    return BenchOptions(
        interval_s=args.interval,
        limit=args.limit,
        out=Path(args.out),
        nodisk=args.nodisk,
        nocdn=args.nocdn,
        log_dir=Path(args.log_dir) if args.log_dir else None,
        log_level=args.log_level,
    )


def main(argv: Optional[List[str]] = None, runner: Optional[ToolRunner] = None) -> int:
    try:
        options = parse_options(argv)
        load_env_files()
        cfg = load_config()
    except ConfigError as exc:
        print(f"Error: {exc}")
        print(USAGE)
        return EXIT_CONFIG

    logger = get_logger("cloudbench", options.log_level)
    if options.log_dir is not None:
        log_path = configure_file_logger(options.log_dir, logger)
        logger.info(f"file logging to {log_path}")

    os_family = detect_os_family()
    io_engine = io_engine_for(os_family)
    host, elapsed_ms = EnvironmentCollector().collect_timed()
    logger.info("host snapshot", extra={"host": host, "collect_ms": round(elapsed_ms, 2)})

    schema = build_schema(include_cdn=not options.nocdn)
    sink = ResultSink(options.out, schema)
    try:
        sink.open()
    except SinkError as exc:
        logger.error(f"cannot initialise output: {exc}")
        return EXIT_SINK

    probes = build_probes(
        cfg,
        runner or SubprocessToolRunner(),
        nodisk=options.nodisk,
        nocdn=options.nocdn,
        io_engine=io_engine,
    )
    pipeline = ProbePipeline(probes, schema, sink, settle_delay_s=cfg["SETTLE_DELAY_S"])

    system = SystemCollector()

    def _after_run(outcome: RunOutcome) -> None:
        logger.info(
            f"run {outcome.sequence} {'ok' if outcome.ok else 'failed'}",
            extra={"run": outcome.sequence, "system": system.collect()},
        )

    state = SchedulerState(interval_s=options.interval_s, limit=options.limit)
    scheduler = RunScheduler(pipeline, state, after_run=_after_run)

    print(f"Benchmark underway: {options.limit} runs at {options.interval_s:g} second intervals.")
    try:
        asyncio.run(scheduler.run())
    except KeyboardInterrupt:
        print(f"Benchmark interrupted after {state.runs_started} run(s).")
        return EXIT_INTERRUPTED

    print(f"Benchmark complete! {state.runs_completed}/{state.limit} runs recorded in {options.out}")
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
