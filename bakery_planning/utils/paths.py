"""
Path resolver for bakery-planning.

Rules
-----
* base_dir → project root (three levels up from bakery_planning/utils/paths.py)
* logs_dir → base_dir/logs (preferred); fallback ~/BakeryPlanning/logs when
  the project root is read-only (e.g. installed into site-packages)
"""

import os
from pathlib import Path


def _get_base_dir() -> Path:
    return Path(__file__).resolve().parent.parent.parent


def _try_writable(path: Path) -> bool:
    """
    Return True if *path* can be created and used as a writable directory.

    Creates the directory if it does not exist and writes a canary file into it.
    """
    try:
        path.mkdir(parents=True, exist_ok=True)
        canary = path / ".write_check"
        canary.touch()
        canary.unlink()
        return True
    except OSError:
        return False


def _home_dir(sub: str) -> Path:
    home = os.environ.get("APPDATA") or str(Path.home())
    return Path(home) / "BakeryPlanning" / sub


def get_logs_dir() -> Path:
    """
    Logs directory.

    Priority:
      1. <base_dir>/logs
      2. ~/BakeryPlanning/logs (or %APPDATA% on Windows)
    """
    primary = _get_base_dir() / "logs"
    if _try_writable(primary):
        return primary
    fallback = _home_dir("logs")
    fallback.mkdir(parents=True, exist_ok=True)
    return fallback
