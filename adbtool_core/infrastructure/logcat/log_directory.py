"""
Log directory management for captured logcat streams.
"""

import logging
import re
import time
from datetime import datetime
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger("logcat.directory")

_UNSAFE_FILENAME_CHARS = re.compile(r'[^A-Za-z0-9._-]')


def ensure_log_directory(directory: Path) -> Path:
    """Create the log directory if needed and return it."""
    directory = Path(directory).expanduser()
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def build_log_filename(serial: str, now: Optional[datetime] = None) -> str:
    """
    Deterministic file name for one stream start.

    Network serials such as `192.168.1.5:5555` are made filesystem safe, and
    the millisecond suffix keeps repeated starts for one serial apart.
    """
    now = now or datetime.now()
    safe_serial = _UNSAFE_FILENAME_CHARS.sub('_', serial)
    timestamp = now.strftime("%Y%m%d_%H%M%S_") + f"{now.microsecond // 1000:03d}"
    return f"logcat_{safe_serial}_{timestamp}.log"


def unique_log_path(directory: Path, serial: str, now: Optional[datetime] = None) -> Path:
    """
    Path for a new capture that no existing file occupies.

    A restart within the same millisecond gets a `_1`, `_2`, ... suffix so the
    previous process, which may still be flushing, keeps its own file.
    """
    directory = Path(directory)
    filename = build_log_filename(serial, now)
    path = directory / filename
    stem = path.stem
    counter = 1
    while path.exists():
        path = directory / f"{stem}_{counter}.log"
        counter += 1
    return path


def cleanup_old_logs(directory: Path, retention_days: int = 7) -> List[Path]:
    """
    Delete log files whose modification time is older than the retention window.

    Returns:
        Paths that were removed
    """
    directory = Path(directory).expanduser()
    if not directory.is_dir():
        return []

    cutoff = time.time() - retention_days * 24 * 60 * 60
    removed = []
    for entry in directory.iterdir():
        try:
            if entry.is_file() and entry.stat().st_mtime < cutoff:
                entry.unlink()
                removed.append(entry)
        except OSError as e:
            logger.warning(f"Could not remove old log {entry}: {e}")

    if removed:
        logger.info(f"Removed {len(removed)} log files older than {retention_days} days")
    return removed
