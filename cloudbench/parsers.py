"""
Parsers for external tool output.

Pure functions: raw text in, figures out. Anything unparsable raises
ParseError, except the curl speed which degrades to 0.0 because a single
failed CDN transfer must not sink the whole probe.
"""

import json
import re
from typing import Any, Dict, Tuple

from cloudbench.exceptions import ParseError

BYTES_PER_MB = 1024 * 1024

# ioping summary: "min/avg/max/mdev = 95.4 us / 157.2 us / 317.5 us / 64.5 us"
_IOPING_AVG_RE = re.compile(r" /\s(.+?)\s/ ")


def parse_curl_speed_mb(stdout: str) -> float:
    """curl ``-w '%{speed_download}'`` (bytes/s) -> MB/s; 0.0 when unusable."""
    text = (stdout or "").strip()
    if not text:
        return 0.0
    # -w output comes last; ignore anything curl printed before it
    token = text.split()[-1].replace(",", ".")
    try:
        value = float(token)
    except ValueError:
        return 0.0
    if value != value or value < 0:  # NaN or garbage
        return 0.0
    return value / BYTES_PER_MB


def _load_json(stdout: str, tool: str) -> Any:
    try:
        return json.loads(stdout)
    except (json.JSONDecodeError, TypeError) as exc:
        raise ParseError(f"{tool} returned invalid JSON: {exc}") from exc


def parse_speedtest_json(stdout: str) -> Tuple[float, float, float]:
    """Return (ping_ms, download_mb_s, upload_mb_s) from ``speedtest-cli --json``."""
    report = _load_json(stdout, "speedtest-cli")
    if not isinstance(report, dict):
        raise ParseError("speedtest-cli report is not an object")

    def _get(key: str) -> float:
        if key not in report:
            raise ParseError(f"speedtest-cli report missing '{key}'")
        try:
            return float(report[key])
        except (TypeError, ValueError):
            raise ParseError(f"speedtest-cli '{key}' is not numeric: {report[key]!r}")

    ping_ms = _get("ping")
    # speedtest-cli reports bits per second
    download = _get("download") / 8 / BYTES_PER_MB
    upload = _get("upload") / 8 / BYTES_PER_MB
    return ping_ms, download, upload


def parse_fio_iops(stdout: str, direction: str) -> float:
    """Read ``jobs[0].<direction>.iops`` from ``fio --output-format=json``."""
    if direction not in ("read", "write"):
        raise ValueError(f"direction must be 'read' or 'write', got {direction!r}")
    # fio may print warnings ahead of the JSON document
    start = stdout.find("{") if stdout else -1
    if start < 0:
        raise ParseError("fio produced no JSON output")
    report = _load_json(stdout[start:], "fio")

    jobs = report.get("jobs") if isinstance(report, dict) else None
    if not jobs or not isinstance(jobs[0], dict):
        raise ParseError("fio report has no jobs")
    section: Dict[str, Any] = jobs[0].get(direction) or {}
    if "iops" not in section:
        raise ParseError(f"fio report missing jobs[0].{direction}.iops")
    try:
        return float(section["iops"])
    except (TypeError, ValueError):
        raise ParseError(f"fio iops is not numeric: {section['iops']!r}")


def parse_ioping_latency(stdout: str) -> str:
    """Average latency text (e.g. ``157.2 us``) from ``ioping -c N`` output."""
    match = _IOPING_AVG_RE.search(stdout or "")
    if not match:
        raise ParseError("ioping output has no min/avg/max summary")
    return match.group(1).strip()
