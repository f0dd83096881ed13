"""
ADB binary resolution.

Search order: explicit configuration, a bundled copy under
`adb-bin/<platform>/`, then the system PATH.
"""

import logging
import shutil
import sys
from pathlib import Path
from typing import List, Optional


def platform_directory() -> str:
    if sys.platform.startswith("win"):
        return "windows"
    if sys.platform == "darwin":
        return "darwin"
    return "linux"


def adb_binary_name() -> str:
    return "adb.exe" if sys.platform.startswith("win") else "adb"


def _default_bundle_roots() -> List[Path]:
    roots = []
    # when frozen by PyInstaller, sys._MEIPASS points to bundle root
    if getattr(sys, "frozen", False):
        roots.append(Path(getattr(sys, "_MEIPASS", Path.cwd())))
    # source mode: project root next to the package
    roots.append(Path(__file__).resolve().parents[3])
    return roots


class AdbLocator:
    """Finds the adb executable once and caches the answer."""

    def __init__(self, configured_path: Optional[str] = None, bundle_roots: Optional[List[Path]] = None):
        self.configured_path = configured_path
        self.bundle_roots = bundle_roots if bundle_roots is not None else _default_bundle_roots()
        self.logger = logging.getLogger("adb.locator")
        self._cached: Optional[str] = None

    def candidates(self) -> List[Path]:
        """Bundled locations checked before PATH."""
        return [root / "adb-bin" / platform_directory() / adb_binary_name() for root in self.bundle_roots]

    def resolve(self) -> str:
        if self._cached:
            return self._cached

        if self.configured_path:
            self._cached = str(Path(self.configured_path).expanduser())
            self.logger.info(f"Using configured ADB: {self._cached}")
            return self._cached

        for candidate in self.candidates():
            if candidate.is_file():
                self._cached = str(candidate)
                self.logger.info(f"Found bundled ADB at: {self._cached}")
                return self._cached

        on_path = shutil.which("adb")
        if on_path:
            self._cached = on_path
        else:
            # Let the spawn fail with a clear "not found" if it really is missing
            self.logger.warning("ADB not found in bundle or PATH, falling back to 'adb'")
            self._cached = "adb"
        return self._cached
