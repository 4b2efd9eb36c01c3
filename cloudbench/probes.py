#!/usr/bin/env python3
"""
Measurement Probes
cloudbench/probes.py

One probe per measurement. A probe is a task ``(run) -> run'``: it awaits
its measurement and returns the run record with its value(s) appended in
column order. Disabled probes append the placeholder without touching
any tool.

- CdnDownloadProbe: concurrent curl transfers, mean MB/s
- NetworkProbe:     speedtest-cli ping / download / upload
- CpuProbe:         fixed SHA-256 + sort + filter + pop workload, seconds
- FioProbe:         4k random read or write IOPS via fio
- DiskPingProbe:    ioping average latency
"""

import asyncio
import hashlib
import logging
import os
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from cloudbench import schema
from cloudbench.exceptions import ProbeError, ToolTimeout
from cloudbench.parsers import (
    parse_curl_speed_mb,
    parse_fio_iops,
    parse_ioping_latency,
    parse_speedtest_json,
)
from cloudbench.process import ToolRunner
from cloudbench.schema import BenchmarkRun, MetricColumn, MetricValue

logger = logging.getLogger("cloudbench.probes")

Sleeper = Callable[[float], Awaitable[Any]]


# =============================================================================
# BASE PROBE
# =============================================================================

class Probe:
    """Base class for all probes. Subclasses implement ``measure``."""

    name = "probe"
    columns: Tuple[MetricColumn, ...] = ()

    def __init__(self, enabled: bool = True, placeholder: str = "N/A"):
        self.enabled = enabled
        self.placeholder = placeholder

    async def measure(self) -> Tuple[MetricValue, ...]:
        """Override in subclass; return one value per column."""
        raise NotImplementedError

    async def __call__(self, run: BenchmarkRun) -> BenchmarkRun:
        if not self.enabled:
            return run.with_values(*([self.placeholder] * len(self.columns)))
        values = tuple(await self.measure())
        if len(values) != len(self.columns):
            raise ProbeError(
                f"{self.name} produced {len(values)} values for {len(self.columns)} columns"
            )
        return run.with_values(*values)

    def __repr__(self) -> str:
        state = "on" if self.enabled else "off"
        return f"<{type(self).__name__} {self.name} {state}>"


# =============================================================================
# NETWORK PROBES
# =============================================================================

class CdnDownloadProbe(Probe):
    """Mean download speed over a fixed set of CDN mirrors.

    All transfers run concurrently. Each is bounded by curl's ``--max-time``;
    a transfer that fails or times out still counts, with whatever speed
    curl reported or 0.0, so the mean is always taken over every URL.
    """

    name = "cdn_download"
    columns = (schema.CDN_DOWNLOAD,)

    def __init__(self, runner: ToolRunner, urls: Sequence[str], *,
                 max_time_s: float = 10.0, cooldown_s: float = 5.0,
                 process_grace_s: float = 5.0, binary: str = "curl",
                 sleep: Sleeper = asyncio.sleep, **kwargs):
        super().__init__(**kwargs)
        if not urls:
            raise ValueError("CdnDownloadProbe needs at least one URL")
        self.runner = runner
        self.urls = list(urls)
        self.max_time_s = max_time_s
        self.cooldown_s = cooldown_s
        self.process_grace_s = process_grace_s
        self.binary = binary
        self._sleep = sleep

    def command(self, url: str) -> List[str]:
        return [
            self.binary,
            "--max-time", f"{self.max_time_s:g}",
            "-so", os.devnull,
            "-w", "%{speed_download}\n",
            url,
        ]

    async def _transfer(self, url: str) -> float:
        try:
            out = await self.runner.invoke(
                self.command(url), timeout=self.max_time_s + self.process_grace_s
            )
            speed = parse_curl_speed_mb(out.stdout)
            if not out.ok:
                # exit 28 (operation timed out) is the normal case here
                logger.debug(f"curl exit {out.returncode} for {url}", extra={"speed_mb_s": speed})
        except ToolTimeout as exc:
            logger.warning(f"CDN transfer hung past its bound: {exc}", extra={"url": url})
            speed = 0.0
        if self.cooldown_s > 0:
            await self._sleep(self.cooldown_s)
        return speed

    async def measure(self) -> Tuple[MetricValue, ...]:
        tasks = [asyncio.ensure_future(self._transfer(url)) for url in self.urls]
        try:
            speeds = await asyncio.gather(*tasks)
        except BaseException:
            # one transfer failed outright; stop the rest before giving up the run
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        mean = sum(speeds) / len(self.urls)
        logger.info("CDN download measured", extra={"speeds_mb_s": list(speeds), "mean_mb_s": mean})
        return (mean,)


class NetworkProbe(Probe):
    """Ping (ms), download and upload (MB/s) via speedtest-cli."""

    name = "network"
    columns = (schema.PING, schema.DOWNLOAD, schema.UPLOAD)

    def __init__(self, runner: ToolRunner, *, binary: str = "speedtest-cli",
                 args: Sequence[str] = ("--json", "--secure"), **kwargs):
        super().__init__(**kwargs)
        self.runner = runner
        self.binary = binary
        self.args = list(args)

    async def measure(self) -> Tuple[MetricValue, ...]:
        out = (await self.runner.invoke([self.binary, *self.args])).check()
        return parse_speedtest_json(out.stdout)


# =============================================================================
# CPU PROBE
# =============================================================================

def run_cpu_workload(hash_count: int, filter_prefix: str = "a") -> float:
    """
    Fixed synthetic CPU/allocator workload; returns elapsed seconds.

    1. SHA-256 hex digest of str(i) for i in [0, hash_count)
    2. sort lexicographically
    3. drop digests starting with ``filter_prefix``
    4. remove the rest one element at a time from the end
    """
    start = time.perf_counter()
    hashes = [hashlib.sha256(str(i).encode("ascii")).hexdigest() for i in range(hash_count)]
    hashes.sort()
    hashes = [h for h in hashes if h[0] != filter_prefix]
    while hashes:
        hashes.pop()
    return time.perf_counter() - start


class CpuProbe(Probe):
    """Wall-clock seconds for the synthetic workload. Blocks the loop while it runs."""

    name = "cpu"
    columns = (schema.CPU_TIME,)

    def __init__(self, hash_count: int = 2500000, filter_prefix: str = "a", **kwargs):
        super().__init__(**kwargs)
        if hash_count < 1:
            raise ValueError("hash_count must be >= 1")
        self.hash_count = hash_count
        self.filter_prefix = filter_prefix

    async def measure(self) -> Tuple[MetricValue, ...]:
        elapsed = run_cpu_workload(self.hash_count, self.filter_prefix)
        return (elapsed,)


# =============================================================================
# DISK PROBES
# =============================================================================

class FioProbe(Probe):
    """Direct 4k random I/O at fixed queue depth; reports IOPS for one direction."""

    def __init__(self, runner: ToolRunner, direction: str, *, io_engine: str = "libaio",
                 binary: str = "fio", block_size: str = "4k", iodepth: int = 64,
                 size: str = "4G", **kwargs):
        super().__init__(**kwargs)
        if direction not in ("read", "write"):
            raise ValueError(f"direction must be 'read' or 'write', got {direction!r}")
        self.runner = runner
        self.direction = direction
        self.io_engine = io_engine
        self.binary = binary
        self.block_size = block_size
        self.iodepth = iodepth
        self.size = size
        self.name = f"disk_{direction}"
        self.columns = (schema.READ_IOPS,) if direction == "read" else (schema.WRITE_IOPS,)

    def command(self) -> List[str]:
        job = f"rand{self.direction}"
        return [
            self.binary,
            f"--name={job}",
            f"--ioengine={self.io_engine}",
            "--direct=1",
            f"--bs={self.block_size}",
            f"--iodepth={self.iodepth}",
            f"--size={self.size}",
            f"--rw={job}",
            "--gtod_reduce=1",
            "--output-format=json",
        ]

    async def measure(self) -> Tuple[MetricValue, ...]:
        out = (await self.runner.invoke(self.command())).check()
        return (parse_fio_iops(out.stdout, self.direction),)


class DiskPingProbe(Probe):
    """Average I/O latency reported by ioping, unit included (e.g. ``157.2 us``)."""

    name = "disk_ping"
    columns = (schema.IO_PING,)

    def __init__(self, runner: ToolRunner, *, binary: str = "ioping", count: int = 10,
                 target: str = ".", **kwargs):
        super().__init__(**kwargs)
        self.runner = runner
        self.binary = binary
        self.count = count
        self.target = target

    def command(self) -> List[str]:
        return [self.binary, "-c", str(self.count), self.target]

    async def measure(self) -> Tuple[MetricValue, ...]:
        out = (await self.runner.invoke(self.command())).check()
        return (parse_ioping_latency(out.stdout),)


# =============================================================================
# FACTORY
# =============================================================================

def build_probes(cfg: Dict[str, Any], runner: ToolRunner, *, nodisk: bool = False,
                 nocdn: bool = False, io_engine: str = "libaio",
                 sleep: Optional[Sleeper] = None) -> List[Probe]:
    """Probes in pipeline order for the given configuration variant."""
    placeholder = cfg["PLACEHOLDER"]
    disk = {"enabled": not nodisk, "placeholder": placeholder}
    probes: List[Probe] = []
    if not nocdn:
        probes.append(CdnDownloadProbe(
            runner,
            cfg["CDN_URLS"],
            max_time_s=cfg["CDN_MAX_TIME_S"],
            cooldown_s=cfg["CDN_COOLDOWN_S"],
            process_grace_s=cfg["CDN_PROCESS_GRACE_S"],
            binary=cfg["CURL_BINARY"],
            sleep=sleep or asyncio.sleep,
            placeholder=placeholder,
        ))
    probes.append(NetworkProbe(
        runner, binary=cfg["SPEEDTEST_BINARY"], args=cfg["SPEEDTEST_ARGS"], placeholder=placeholder,
    ))
    probes.append(CpuProbe(cfg["CPU_HASH_COUNT"], cfg["CPU_FILTER_PREFIX"], placeholder=placeholder))
    for direction in ("read", "write"):
        probes.append(FioProbe(
            runner,
            direction,
            io_engine=io_engine,
            binary=cfg["FIO_BINARY"],
            block_size=cfg["FIO_BLOCK_SIZE"],
            iodepth=cfg["FIO_IODEPTH"],
            size=cfg["FIO_SIZE"],
            **disk,
        ))
    probes.append(DiskPingProbe(
        runner, binary=cfg["IOPING_BINARY"], count=cfg["IOPING_COUNT"], target=cfg["IOPING_TARGET"],
        **disk,
    ))
    return probes
