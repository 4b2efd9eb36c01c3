"""
Core configuration constants for the cloudbench harness.

Single source of truth for probe parameters, tool binaries and pacing.
CLI flags (interval, limit, output path) live in ``BenchOptions``; every
other tunable lives in ``CONFIG`` and may be overridden through
``CLOUDBENCH_<KEY>`` environment variables.
"""

import math
import os
import platform
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from cloudbench.exceptions import ConfigError


ENV_PREFIX = "CLOUDBENCH_"

# Mirrors used for the CDN download probe. Each serves a ~100 MB object so
# the transfer is always cut short by CDN_MAX_TIME_S.
_DEFAULT_CDN_URLS = [
    "https://cachefly.cachefly.net/100mb.test",
    "https://mirror.nl.leaseweb.net/speedtest/100mb.bin",
    "https://speed.hetzner.de/100MB.bin",
    "https://ping.online.net/100Mo.dat",
    "https://proof.ovh.net/files/100Mb.dat",
]


# Default configuration - all required keys with correct types
CONFIG = {
    # --- Pipeline pacing ---
    # Pause after every measuring probe before the next one starts.
    "SETTLE_DELAY_S": 3.0,

    # --- CDN download probe (curl) ---
    "CDN_URLS": list(_DEFAULT_CDN_URLS),
    "CDN_MAX_TIME_S": 10.0,      # curl --max-time per transfer
    "CDN_COOLDOWN_S": 5.0,       # wait after each transfer resolves
    "CDN_PROCESS_GRACE_S": 5.0,  # extra wait on top of --max-time before kill

    # --- Network probe (speedtest-cli) ---
    "SPEEDTEST_ARGS": ["--json", "--secure"],

    # --- CPU probe ---
    # Digest count for the synthetic workload. Changing it breaks comparability
    # with rows recorded at a different value.
    "CPU_HASH_COUNT": 2500000,
    "CPU_FILTER_PREFIX": "a",

    # --- Disk probes (fio / ioping) ---
    "FIO_BLOCK_SIZE": "4k",
    "FIO_IODEPTH": 64,
    "FIO_SIZE": "4G",
    "IOPING_COUNT": 10,
    "IOPING_TARGET": ".",

    # --- External tool binaries ---
    "CURL_BINARY": "curl",
    "SPEEDTEST_BINARY": "speedtest-cli",
    "FIO_BINARY": "fio",
    "IOPING_BINARY": "ioping",

    # Value written into a column whose probe is disabled.
    "PLACEHOLDER": "N/A",
}


# Required keys with their expected types
_REQUIRED_KEYS = {
    "SETTLE_DELAY_S": float,
    "CDN_URLS": list,
    "CDN_MAX_TIME_S": float,
    "CDN_COOLDOWN_S": float,
    "CDN_PROCESS_GRACE_S": float,
    "SPEEDTEST_ARGS": list,
    "CPU_HASH_COUNT": int,
    "CPU_FILTER_PREFIX": str,
    "FIO_BLOCK_SIZE": str,
    "FIO_IODEPTH": int,
    "FIO_SIZE": str,
    "IOPING_COUNT": int,
    "IOPING_TARGET": str,
    "CURL_BINARY": str,
    "SPEEDTEST_BINARY": str,
    "FIO_BINARY": str,
    "IOPING_BINARY": str,
    "PLACEHOLDER": str,
}

# Keys that can be overridden by environment variables (CLOUDBENCH_<KEY>)
_ENV_OVERRIDABLE = {
    "SETTLE_DELAY_S",
    "CDN_URLS",
    "CDN_MAX_TIME_S",
    "CDN_COOLDOWN_S",
    "CDN_PROCESS_GRACE_S",
    "CPU_HASH_COUNT",
    "FIO_SIZE",
    "FIO_IODEPTH",
    "IOPING_COUNT",
    "IOPING_TARGET",
    "CURL_BINARY",
    "SPEEDTEST_BINARY",
    "FIO_BINARY",
    "IOPING_BINARY",
}

_NON_NEGATIVE_DELAYS = ("SETTLE_DELAY_S", "CDN_COOLDOWN_S", "CDN_PROCESS_GRACE_S")


def validate_config(cfg: Dict[str, Any]) -> None:
    """
    Ensure all required keys exist with correct types/ranges.
    Raise ConfigError("<reason>") on any violation.
    No return value on success.
    """
    missing_keys = set(_REQUIRED_KEYS.keys()) - set(cfg.keys())
    if missing_keys:
        raise ConfigError(f"CONFIG missing required keys: {', '.join(sorted(missing_keys))}")

    for key, expected_type in _REQUIRED_KEYS.items():
        value = cfg[key]
        if expected_type is float:
            # ints are fine wherever seconds are expected
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ConfigError(f"CONFIG[{key}] must be float seconds, got {type(value).__name__}")
            if not math.isfinite(value):
                raise ConfigError(f"CONFIG[{key}] must be a finite number of seconds, got {value}")
            continue
        if expected_type is int and isinstance(value, bool):
            raise ConfigError(f"CONFIG[{key}] must be int, got bool")
        if not isinstance(value, expected_type):
            raise ConfigError(f"CONFIG[{key}] must be {expected_type.__name__}, got {type(value).__name__}")

    for key in _NON_NEGATIVE_DELAYS:
        if cfg[key] < 0:
            raise ConfigError(f"CONFIG[{key}] must be >= 0, got {cfg[key]}")

    if cfg["CDN_MAX_TIME_S"] <= 0:
        raise ConfigError(f"CONFIG[CDN_MAX_TIME_S] must be > 0, got {cfg['CDN_MAX_TIME_S']}")

    urls = cfg["CDN_URLS"]
    if not urls or not all(isinstance(u, str) and u for u in urls):
        raise ConfigError("CONFIG[CDN_URLS] must be a non-empty list of URLs")

    if not all(isinstance(a, str) for a in cfg["SPEEDTEST_ARGS"]):
        raise ConfigError("CONFIG[SPEEDTEST_ARGS] must be a list of strings")

    for key in ("CPU_HASH_COUNT", "FIO_IODEPTH", "IOPING_COUNT"):
        if cfg[key] < 1:
            raise ConfigError(f"CONFIG[{key}] must be >= 1, got {cfg[key]}")

    if len(cfg["CPU_FILTER_PREFIX"]) != 1:
        raise ConfigError("CONFIG[CPU_FILTER_PREFIX] must be a single character")

    placeholder = cfg["PLACEHOLDER"]
    if not placeholder or "," in placeholder:
        raise ConfigError(f"CONFIG[PLACEHOLDER] must be non-empty and comma-free, got {placeholder!r}")


def _apply_env_overrides(cfg: Dict[str, Any], environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """Apply environment variable overrides to config."""
    env = os.environ if environ is None else environ
    result = dict(cfg)

    for key in _ENV_OVERRIDABLE:
        env_var = ENV_PREFIX + key
        if env_var not in env:
            continue
        env_value = env[env_var]
        expected_type = _REQUIRED_KEYS.get(key)
        if expected_type is None:
            raise ConfigError(f"Unsupported env override key: {env_var}")

        try:
            if expected_type == int:
                result[key] = int(env_value)
            elif expected_type == float:
                result[key] = float(env_value)
            elif expected_type == str:
                result[key] = str(env_value)
            elif expected_type == list:
                # comma separated, blanks dropped
                result[key] = [part.strip() for part in env_value.split(",") if part.strip()]
            else:
                raise ConfigError(f"Unsupported type for env override: {expected_type}")
        except ValueError:
            raise ConfigError(f"Invalid {expected_type.__name__} value for {env_var}: {env_value}")

    return result


def load_config(overrides: Optional[Dict[str, Any]] = None,
                environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """Return a validated copy of CONFIG with env and explicit overrides applied."""
    cfg = _apply_env_overrides(CONFIG, environ)
    if overrides:
        cfg.update(overrides)
    validate_config(cfg)
    return cfg


def detect_os_family() -> str:
    """Return "mac" on macOS hosts, "other" everywhere else."""
    return "mac" if platform.system() == "Darwin" else "other"


def io_engine_for(os_family: str) -> str:
    """fio --ioengine value for the given OS family."""
    return "posixaio" if os_family == "mac" else "libaio"


# =============================================================================
# CLI options
# =============================================================================

USAGE = "Usage: cloudbench --interval [seconds] --limit [number] [--nodisk] [--nocdn] --out [output file]"


@dataclass(frozen=True)
class BenchOptions:
    """Validated command-line options for one harness process."""
    interval_s: float
    limit: int
    out: Path
    nodisk: bool = False
    nocdn: bool = False
    log_dir: Optional[Path] = None
    log_level: str = "INFO"

    def __post_init__(self):
        if not math.isfinite(self.interval_s) or self.interval_s <= 0:
            raise ConfigError(f"--interval must be a finite number of seconds > 0, got {self.interval_s}")
        if self.limit < 1:
            raise ConfigError(f"--limit must be a positive integer, got {self.limit}")
        if not str(self.out).strip():
            raise ConfigError("--out must name a file")
