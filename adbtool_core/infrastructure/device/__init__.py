"""
ADB access: binary resolution and the command layer.
"""

from .adb_locator import AdbLocator
from .adb_runner import (
    AdbCommandRunner,
    AdbCommandError,
    AdbDevice,
    DeviceDetail,
    InstalledApp,
    parse_device_list,
    parse_df_output,
    parse_package_list,
    parse_app_version,
    extract_error_code
)

__all__ = [
    'AdbLocator',
    'AdbCommandRunner',
    'AdbCommandError',
    'AdbDevice',
    'DeviceDetail',
    'InstalledApp',
    'parse_device_list',
    'parse_df_output',
    'parse_package_list',
    'parse_app_version',
    'extract_error_code'
]
