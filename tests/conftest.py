import pytest

from apk_builders import build_apk, build_manifest


@pytest.fixture
def manifest_bytes():
    return build_manifest("com.example.app")


@pytest.fixture
def apk_bytes(manifest_bytes):
    return build_apk(manifest_bytes, extra_files={"classes.dex": b"dex\n035\x00" + b"\x00" * 64})


@pytest.fixture
def apk_file(tmp_path, apk_bytes):
    path = tmp_path / "app-debug.apk"
    path.write_bytes(apk_bytes)
    return path
