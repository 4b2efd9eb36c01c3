"""
Environment file loader for .cbenv files.

Reads key=value pairs from env files and populates os.environ
WITHOUT overwriting values that are already set (explicit env wins).
Supports # comments, blank lines, optional ``export`` and quoting.
"""

import os
from pathlib import Path
from typing import Optional


ENV_FILENAMES = (".cbenv", ".cbenv.local")


def _parse_env_file(path: Path) -> dict[str, str]:
    """Parse a .env-style file into a dict."""
    result: dict[str, str] = {}
    if not path.is_file():
        return result
    with open(path, encoding="utf-8") as fh:
        for line in fh:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if line.startswith("export "):
                line = line[len("export "):].lstrip()
            if "=" not in line:
                continue
            key, _, value = line.partition("=")
            key = key.strip()
            value = value.strip()
            # Strip optional surrounding quotes
            if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
                value = value[1:-1]
            if key:
                result[key] = value
    return result


def load_env_files(base_dir: Optional[Path] = None) -> dict[str, str]:
    """
    Load .cbenv and .cbenv.local from ``base_dir`` into os.environ.

    - Existing env vars take precedence (never overwritten).
    - .cbenv.local overrides .cbenv (for per-host settings).
    - Returns dict of all loaded key-value pairs (for debugging).
    """
    if base_dir is None:
        base_dir = Path.cwd()

    loaded: dict[str, str] = {}
    for name in ENV_FILENAMES:
        loaded.update(_parse_env_file(base_dir / name))

    for key, value in loaded.items():
        if key not in os.environ:
            os.environ[key] = value

    return loaded
