"""
Application layer for the adb tool core.

This module contains the use cases.
"""

from .install_apk import InstallApkUseCase
from .device_files import DeviceFileUseCase

__all__ = [
    'InstallApkUseCase',
    'DeviceFileUseCase'
]
