#!/usr/bin/env python3
"""
Host Context Collectors
cloudbench/collectors.py

Snapshots of the machine being benchmarked. These never reach the CSV;
they are logged next to each run so an odd row can be matched to host
load after the fact.

- EnvironmentCollector: static host facts, logged once at startup
- SystemCollector: CPU / load / memory, logged after every run

Usage:
    from cloudbench.collectors import EnvironmentCollector, SystemCollector

    env = EnvironmentCollector().collect()
    sys_snapshot = SystemCollector().collect()
"""

import os
import platform
import socket
import time
from datetime import datetime, timezone
from typing import Any, Dict, Tuple

import psutil

from cloudbench.config import detect_os_family, io_engine_for


# =============================================================================
# BASE COLLECTOR
# =============================================================================

class BaseCollector:
    """Base class for all host collectors."""

    def __init__(self, name: str = "base"):
        self.name = name
        self.os_family = detect_os_family()

    def collect(self) -> Dict[str, Any]:
        """Override in subclass to collect metrics."""
        raise NotImplementedError

    def collect_timed(self) -> Tuple[Dict[str, Any], float]:
        """Collect metrics and return with timing."""
        start = time.perf_counter()
        data = self.collect()
        elapsed_ms = (time.perf_counter() - start) * 1000
        return data, elapsed_ms


# =============================================================================
# ENVIRONMENT COLLECTOR
# =============================================================================

class EnvironmentCollector(BaseCollector):
    """Collects static host information."""

    def __init__(self):
        super().__init__("environment")

    def collect(self) -> Dict[str, Any]:
        freq = None
        try:
            cpu_freq = psutil.cpu_freq()
            if cpu_freq:
                freq = round(cpu_freq.current, 1)
        except (NotImplementedError, OSError):
            pass

        return {
            "hostname": socket.gethostname(),
            "platform": platform.system(),
            "platform_release": platform.release(),
            "machine": platform.machine(),
            "python_version": platform.python_version(),
            "os_family": self.os_family,
            "io_engine": io_engine_for(self.os_family),
            "cpu_logical": psutil.cpu_count(logical=True),
            "cpu_physical": psutil.cpu_count(logical=False),
            "cpu_freq_mhz": freq,
            "memory_total_mb": round(psutil.virtual_memory().total / (1024 * 1024)),
            "cwd": os.getcwd(),
            "timestamp_wall": datetime.now(timezone.utc).isoformat(),
        }


# =============================================================================
# SYSTEM RESOURCE COLLECTOR
# =============================================================================

class SystemCollector(BaseCollector):
    """Collects point-in-time resource usage."""

    def __init__(self):
        super().__init__("system")
        # prime cpu_percent so the first real call has a reference point
        psutil.cpu_percent(interval=None)

    def collect(self) -> Dict[str, Any]:
        vm = psutil.virtual_memory()
        metrics: Dict[str, Any] = {
            "cpu_percent": psutil.cpu_percent(interval=None),
            "memory_percent": vm.percent,
            "memory_available_mb": round(vm.available / (1024 * 1024), 1),
            "load_avg_1m": None,
        }
        try:
            metrics["load_avg_1m"] = round(os.getloadavg()[0], 2)
        except (AttributeError, OSError):
            # not available on Windows
            pass
        return metrics
