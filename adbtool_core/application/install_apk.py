"""
Install and uninstall use cases with operation history.
"""

import logging
from pathlib import Path
from typing import List, Optional

from adbtool_core.logic.models import InstallResult, OpLogEntry
from adbtool_core.infrastructure.apk import PackageNameExtractor
from adbtool_core.infrastructure.device import AdbCommandRunner, AdbCommandError
from adbtool_core.infrastructure.storage import OpLogStore


class InstallApkUseCase:
    """
    Installs APKs and records each operation in the history.

    Before installing, any existing install of the same package is removed so
    signature mismatches do not block the install. The package name comes
    from the APK itself; when it cannot be read the step is skipped.
    """

    def __init__(self,
                 runner: AdbCommandRunner,
                 op_log: OpLogStore,
                 extractor: Optional[PackageNameExtractor] = None,
                 uninstall_before_install: bool = True):
        self.runner = runner
        self.op_log = op_log
        self.extractor = extractor or PackageNameExtractor()
        self.uninstall_before_install = uninstall_before_install
        self.logger = logging.getLogger("install.apk")

    def execute(self, serial: str, apk_path: str, flags: Optional[List[str]] = None) -> InstallResult:
        flags = list(flags or [])
        package_name = self.extractor.extract_from_path(apk_path)

        if package_name and self.uninstall_before_install:
            try:
                self.runner.uninstall_app(serial, package_name)
                self.logger.info(f"Removed existing {package_name} from {serial} before install")
            except AdbCommandError as e:
                # Usually just "not installed"
                self.logger.debug(f"Pre-install uninstall of {package_name} skipped: {e}")

        result = self.runner.install_apk(serial, apk_path, flags)
        result.package_name = package_name

        file_name = Path(apk_path).name
        command = " ".join(["adb", "-s", serial, "install"] + flags + [file_name])
        self.op_log.add_entry(OpLogEntry(
            op_type="install",
            device=serial,
            detail=f"Install {file_name}",
            success=result.success,
            error_message=result.error_code,
            command=command,
            raw_output=result.raw_output
        ))
        return result

    def uninstall(self, serial: str, package_name: str) -> str:
        """
        Uninstall a package and record the outcome.

        Raises:
            AdbCommandError: if adb reports the uninstall failed
        """
        entry = OpLogEntry(
            op_type="uninstall",
            device=serial,
            detail=f"Uninstall {package_name}",
            success=True,
            command=f"adb -s {serial} uninstall {package_name}"
        )
        try:
            output = self.runner.uninstall_app(serial, package_name)
        except AdbCommandError as e:
            entry.success = False
            entry.error_message = str(e)
            entry.raw_output = str(e)
            self.op_log.add_entry(entry)
            raise

        entry.raw_output = output
        self.op_log.add_entry(entry)
        return output
