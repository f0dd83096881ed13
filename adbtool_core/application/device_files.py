"""
File transfer and screenshot use cases with operation history.
"""

import logging
from pathlib import PurePath
from typing import Callable

from adbtool_core.logic.models import OpLogEntry
from adbtool_core.infrastructure.device import AdbCommandRunner, AdbCommandError
from adbtool_core.infrastructure.storage import OpLogStore


def _file_name(path: str) -> str:
    # Device paths use '/', local ones may use either separator
    return PurePath(path.replace('\\', '/')).name or path


class DeviceFileUseCase:
    """Pushes, pulls and captures screenshots, recording each in the history."""

    def __init__(self, runner: AdbCommandRunner, op_log: OpLogStore):
        self.runner = runner
        self.op_log = op_log
        self.logger = logging.getLogger("device.files")

    def _record(self, entry: OpLogEntry, action: Callable[[], str], success_output: Callable[[str], str]) -> str:
        try:
            output = action()
        except AdbCommandError as e:
            entry.success = False
            entry.error_message = str(e)
            entry.raw_output = str(e)
            self.op_log.add_entry(entry)
            self.logger.warning(f"{entry.detail} on {entry.device} failed: {e}")
            raise

        entry.raw_output = success_output(output)
        self.op_log.add_entry(entry)
        return output

    def push(self, serial: str, local_path: str, remote_path: str) -> str:
        """
        Copy a local file to the device.

        Raises:
            AdbCommandError: if adb reports the transfer failed
        """
        entry = OpLogEntry(
            op_type="push",
            device=serial,
            detail=f"Push {_file_name(local_path)} -> {remote_path}",
            success=True,
            command=f"adb -s {serial} push {local_path} {remote_path}"
        )
        return self._record(entry, lambda: self.runner.push_file(serial, local_path, remote_path), lambda out: out)

    def pull(self, serial: str, remote_path: str, local_path: str) -> str:
        """
        Copy a device file to the local machine.

        Raises:
            AdbCommandError: if adb reports the transfer failed
        """
        entry = OpLogEntry(
            op_type="pull",
            device=serial,
            detail=f"Pull {_file_name(remote_path)} -> {local_path}",
            success=True,
            command=f"adb -s {serial} pull {remote_path} {local_path}"
        )
        return self._record(entry, lambda: self.runner.pull_file(serial, remote_path, local_path), lambda out: out)

    def screenshot(self, serial: str, local_path: str) -> str:
        """
        Save a PNG screenshot and return its path.

        Raises:
            AdbCommandError: if the capture is empty or not a PNG image
        """
        entry = OpLogEntry(
            op_type="screenshot",
            device=serial,
            detail=f"Screenshot -> {local_path}",
            success=True,
            command=f"adb -s {serial} exec-out screencap -p > {local_path}"
        )
        return self._record(
            entry,
            lambda: self.runner.screenshot(serial, local_path),
            lambda saved: f"Saved to {saved}"
        )
