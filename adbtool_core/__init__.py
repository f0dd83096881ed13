"""
adbtool-core: APK metadata extraction and logcat streaming for an adb desktop front-end.
"""

__version__ = "0.3.0"
