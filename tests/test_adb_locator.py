from adbtool_core.infrastructure.device import AdbLocator
from adbtool_core.infrastructure.device import adb_locator


def _bundle(root, platform="linux", binary="adb"):
    path = root / "adb-bin" / platform / binary
    path.parent.mkdir(parents=True)
    path.write_text("#!/bin/sh\n")
    return path


def test_configured_path_wins(tmp_path):
    _bundle(tmp_path)
    locator = AdbLocator("/opt/android/platform-tools/adb", bundle_roots=[tmp_path])

    assert locator.resolve() == "/opt/android/platform-tools/adb"


def test_bundled_binary_before_path(tmp_path, monkeypatch):
    monkeypatch.setattr(adb_locator, "platform_directory", lambda: "linux")
    monkeypatch.setattr(adb_locator, "adb_binary_name", lambda: "adb")
    bundled = _bundle(tmp_path)

    assert AdbLocator(bundle_roots=[tmp_path / "missing", tmp_path]).resolve() == str(bundled)


def test_falls_back_to_system_path(tmp_path, monkeypatch):
    monkeypatch.setattr(adb_locator.shutil, "which", lambda name: "/usr/bin/adb")
    assert AdbLocator(bundle_roots=[tmp_path]).resolve() == "/usr/bin/adb"


def test_bare_name_when_not_found(tmp_path, monkeypatch):
    monkeypatch.setattr(adb_locator.shutil, "which", lambda name: None)
    locator = AdbLocator(bundle_roots=[tmp_path])

    assert locator.resolve() == "adb"


def test_result_is_cached(tmp_path, monkeypatch):
    answers = iter(["/usr/bin/adb", "/somewhere/else/adb"])
    monkeypatch.setattr(adb_locator.shutil, "which", lambda name: next(answers))
    locator = AdbLocator(bundle_roots=[tmp_path])

    assert locator.resolve() == "/usr/bin/adb"
    assert locator.resolve() == "/usr/bin/adb"


def test_candidates_follow_platform(tmp_path, monkeypatch):
    monkeypatch.setattr(adb_locator, "platform_directory", lambda: "windows")
    monkeypatch.setattr(adb_locator, "adb_binary_name", lambda: "adb.exe")

    assert AdbLocator(bundle_roots=[tmp_path]).candidates() == [tmp_path / "adb-bin" / "windows" / "adb.exe"]
