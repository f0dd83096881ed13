"""
ADB command layer.

Thin request/response wrappers around adb subcommands. Nothing here retries;
callers decide what to do with a failure.
"""

import logging
import re
import subprocess
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from adbtool_core.logic.models import InstallResult

UNKNOWN_ERROR = "UNKNOWN_ERROR"
PNG_SIGNATURE_PREFIX = b"\x89PNG"


class AdbCommandError(Exception):
    """An adb invocation failed without producing usable output."""

    def __init__(self, message: str, args: Optional[List[str]] = None):
        super().__init__(message)
        self.command_args = args or []


@dataclass
class AdbDevice:
    """Represents a device listed by `adb devices -l`."""
    serial: str
    state: str  # 'device', 'offline', 'unauthorized', etc.
    model: str = ""
    product: str = ""

    def __post_init__(self):
        if not self.serial:
            raise ValueError("Device serial cannot be empty")

    def is_ready(self) -> bool:
        return self.state == 'device'

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


def parse_device_list(adb_output: str) -> List[AdbDevice]:
    """Parse the output of 'adb devices -l'."""
    devices = []
    for line in adb_output.split('\n')[1:]:  # Skip header line
        parts = line.split()
        if len(parts) < 2:
            continue

        model = ""
        product = ""
        for part in parts[2:]:
            if part.startswith('model:'):
                model = part[len('model:'):]
            elif part.startswith('product:'):
                product = part[len('product:'):]

        devices.append(AdbDevice(serial=parts[0], state=parts[1], model=model, product=product))

    return devices


@dataclass
class DeviceDetail:
    """Properties shown for a selected device."""
    serial: str
    model: str = ""
    android_version: str = ""
    sdk_version: str = ""
    storage_total_mb: int = 0
    storage_free_mb: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class InstalledApp:
    """A package reported by `pm list packages -f`."""
    package_name: str
    apk_path: str = ""
    version_name: str = ""
    version_code: str = ""
    is_system: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _leading_int(text: str) -> int:
    match = re.match(r'\d+', text)
    return int(match.group()) if match else 0


def parse_df_output(output: str) -> Tuple[int, int]:
    """
    Total and free megabytes from `df /data`.

    The first data row with at least four columns is used; sizes are in
    kilobytes, optionally suffixed with `K`.
    """
    for line in output.split('\n')[1:]:
        parts = line.split()
        if len(parts) >= 4:
            total_kb = _leading_int(parts[1].replace('K', ''))
            free_kb = _leading_int(parts[3].replace('K', ''))
            return total_kb // 1024, free_kb // 1024
    return 0, 0


def parse_package_list(output: str) -> List[InstalledApp]:
    """Parse `package:<apk path>=<package name>` lines."""
    apps = []
    for line in output.split('\n'):
        line = line.strip()
        if not line.startswith('package:'):
            continue
        apk_path, separator, package_name = line[len('package:'):].rpartition('=')
        if not separator:
            continue
        apps.append(InstalledApp(
            package_name=package_name,
            apk_path=apk_path,
            is_system=apk_path.startswith('/system')
        ))
    return apps


def parse_app_version(dumpsys_output: str) -> Tuple[str, str]:
    """First `versionName=` and `versionCode=` values from `dumpsys package`."""
    version_name = ""
    version_code = ""
    for line in dumpsys_output.split('\n'):
        line = line.strip()
        if line.startswith('versionName=') and not version_name:
            version_name = line[len('versionName='):]
        elif line.startswith('versionCode=') and not version_code:
            # "versionCode=33 minSdk=24 targetSdk=34"
            fields = line[len('versionCode='):].split()
            version_code = fields[0] if fields else ""
        if version_name and version_code:
            break
    return version_name, version_code


def extract_error_code(output: str) -> str:
    """
    Pull the failure code out of `adb install` output.

    `Failure [INSTALL_FAILED_UPDATE_INCOMPATIBLE: Package ...]` yields
    `INSTALL_FAILED_UPDATE_INCOMPATIBLE`.
    """
    start = output.find("Failure [")
    if start != -1:
        after = output[start + len("Failure ["):]
        end = after.find("]")
        if end != -1:
            return after[:end].split(":")[0].strip()
    return UNKNOWN_ERROR


class AdbCommandRunner:
    """Runs adb subcommands and returns their text output."""

    def __init__(self,
                 adb_path: str = "adb",
                 timeout_seconds: int = 60,
                 run: Callable[..., subprocess.CompletedProcess] = subprocess.run):
        self.adb_path = adb_path
        self.timeout_seconds = timeout_seconds
        self._run = run
        self.logger = logging.getLogger("adb.runner")

    def _invoke(self, args: List[str], text: bool = True) -> subprocess.CompletedProcess:
        command = [self.adb_path] + list(args)
        self.logger.debug(f"Running: {' '.join(command)}")
        options = {'capture_output': True, 'timeout': self.timeout_seconds}
        if text:
            options.update(text=True, encoding='utf-8', errors='replace')
        try:
            return self._run(command, **options)
        except subprocess.TimeoutExpired as e:
            raise AdbCommandError(f"adb timed out after {self.timeout_seconds}s", args) from e
        except OSError as e:
            raise AdbCommandError(f"adb could not be started: {e}", args) from e

    def run(self, args: List[str]) -> str:
        """
        Run `adb <args>` and return stdout.

        adb reports some failures with exit code 0 and others with non-zero
        codes while still printing useful output, so stdout wins whenever it
        has content. Empty stdout with stderr content is a failure.
        """
        result = self._invoke(args)
        stdout = result.stdout or ""
        stderr = (result.stderr or "").strip()

        if stdout.strip():
            return stdout
        if stderr:
            raise AdbCommandError(f"adb error: {stderr}", args)
        if result.returncode != 0:
            raise AdbCommandError(f"adb error: exit code {result.returncode}", args)
        return stdout

    def run_device(self, serial: str, args: List[str]) -> str:
        return self.run(["-s", serial] + list(args))

    def list_devices(self) -> List[AdbDevice]:
        devices = parse_device_list(self.run(["devices", "-l"]))
        self.logger.info(f"Detected {len(devices)} ADB devices")
        return devices

    def install_apk(self, serial: str, apk_path: str, flags: Optional[List[str]] = None) -> InstallResult:
        """Install an APK and classify the result from adb's combined output."""
        args = ["-s", serial, "install"] + list(flags or []) + [apk_path]
        try:
            result = self._invoke(args)
            raw_output = f"{(result.stdout or '').strip()}\n{(result.stderr or '').strip()}".strip()
        except AdbCommandError as e:
            raw_output = str(e)

        if "Success" in raw_output:
            return InstallResult(success=True, raw_output=raw_output)

        error_code = extract_error_code(raw_output)
        self.logger.warning(f"Install of {apk_path} on {serial} failed: {error_code}")
        return InstallResult(success=False, raw_output=raw_output, error_code=error_code)

    def uninstall_app(self, serial: str, package_name: str) -> str:
        return self.run_device(serial, ["uninstall", package_name])

    def _query_device(self, serial: str, args: List[str]) -> str:
        """Device query whose failure only blanks the field it fills."""
        try:
            return self.run_device(serial, args)
        except AdbCommandError as e:
            self.logger.debug(f"Query {' '.join(args)} on {serial} failed: {e}")
            return ""

    def get_device_detail(self, serial: str) -> DeviceDetail:
        model = self._query_device(serial, ["shell", "getprop", "ro.product.model"])
        android_version = self._query_device(serial, ["shell", "getprop", "ro.build.version.release"])
        sdk_version = self._query_device(serial, ["shell", "getprop", "ro.build.version.sdk"])
        total_mb, free_mb = parse_df_output(self._query_device(serial, ["shell", "df", "/data"]))

        return DeviceDetail(
            serial=serial,
            model=model.strip(),
            android_version=android_version.strip(),
            sdk_version=sdk_version.strip(),
            storage_total_mb=total_mb,
            storage_free_mb=free_mb
        )

    # App management

    def list_packages(self, serial: str, include_system: bool = False) -> List[InstalledApp]:
        """Installed packages with their versions; third-party only unless `include_system`."""
        args = ["shell", "pm", "list", "packages", "-f"]
        if not include_system:
            args.insert(4, "-3")

        apps = parse_package_list(self.run_device(serial, args))
        for app in apps:
            app.version_name, app.version_code = self.get_app_version(serial, app.package_name)
        return apps

    def get_app_version(self, serial: str, package_name: str) -> Tuple[str, str]:
        """(versionName, versionCode), blank when dumpsys fails."""
        return parse_app_version(self._query_device(serial, ["shell", "dumpsys", "package", package_name]))

    def clear_app_data(self, serial: str, package_name: str) -> str:
        return self.run_device(serial, ["shell", "pm", "clear", package_name])

    def force_stop_app(self, serial: str, package_name: str) -> str:
        return self.run_device(serial, ["shell", "am", "force-stop", package_name])

    def launch_app(self, serial: str, package_name: str) -> str:
        return self.run_device(serial, [
            "shell", "monkey", "-p", package_name, "-c", "android.intent.category.LAUNCHER", "1"
        ])

    # Screenshot and files

    def screenshot(self, serial: str, local_path: Union[str, Path]) -> str:
        """
        Capture the screen with `exec-out screencap -p` and save the PNG.

        Raises:
            AdbCommandError: if no data comes back or it is not a PNG image
        """
        args = ["-s", serial, "exec-out", "screencap", "-p"]
        result = self._invoke(args, text=False)
        data = result.stdout or b""

        if not data:
            stderr = (result.stderr or b"").decode('utf-8', errors='replace').strip()
            raise AdbCommandError(f"Screenshot failed: screencap returned no data {stderr}".strip(), args)
        if len(data) < 8 or not data.startswith(PNG_SIGNATURE_PREFIX):
            raise AdbCommandError("Screenshot failed: screencap output is not a PNG image", args)

        try:
            Path(local_path).write_bytes(data)
        except OSError as e:
            raise AdbCommandError(f"Screenshot failed: cannot write {local_path}: {e}", args) from e
        self.logger.info(f"Saved {len(data)} byte screenshot from {serial} to {local_path}")
        return str(local_path)

    def push_file(self, serial: str, local_path: str, remote_path: str) -> str:
        return self.run_device(serial, ["push", local_path, remote_path])

    def pull_file(self, serial: str, remote_path: str, local_path: str) -> str:
        return self.run_device(serial, ["pull", remote_path, local_path])

    def list_files(self, serial: str, remote_dir: str) -> List[str]:
        """Non-empty lines of `ls -la <remote_dir>`."""
        output = self.run_device(serial, ["shell", "ls", "-la", remote_dir])
        return [line.strip() for line in output.split('\n') if line.strip()]

    # Server and wireless debugging

    def kill_server(self) -> str:
        return self.run(["kill-server"])

    def start_server(self) -> str:
        return self.run(["start-server"])

    def connect_wifi(self, address: str) -> str:
        return self.run(["connect", address])

    def disconnect_wifi(self, address: str) -> str:
        return self.run(["disconnect", address])
