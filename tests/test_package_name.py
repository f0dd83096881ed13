import zipfile

import pytest

from adbtool_core.infrastructure.apk import (
    ExtractionStatus,
    PackageNameExtractor,
    extract_package_name,
    extract_package_name_from_path,
)
from adbtool_core.infrastructure.shared import get_error_service
from apk_builders import build_apk, build_manifest


@pytest.mark.parametrize("compression", [zipfile.ZIP_STORED, zipfile.ZIP_DEFLATED])
def test_extracts_package_name(compression):
    apk = build_apk(build_manifest("com.example.app"), compression=compression)
    assert extract_package_name(apk) == "com.example.app"


def test_extract_from_path(apk_file):
    assert extract_package_name_from_path(apk_file) == "com.example.app"
    assert extract_package_name_from_path(str(apk_file)) == "com.example.app"


def test_unreadable_path(tmp_path):
    assert extract_package_name_from_path(tmp_path / "missing.apk") is None


@pytest.mark.parametrize("apk", [
    b"",
    b"not an apk",
    build_apk(None, extra_files={"classes.dex": b"dex"}),
    build_apk(b"plain text manifest"),
    build_apk(build_manifest(with_package=False)),
])
def test_unavailable_package_name_is_none(apk):
    assert extract_package_name(apk) is None


def test_inspect_keeps_reason():
    extractor = PackageNameExtractor()

    assert extractor.inspect(build_apk(None, extra_files={"a": b"a"})).status == ExtractionStatus.ABSENT
    assert extractor.inspect(build_apk(b"garbage")).status == ExtractionStatus.MALFORMED
    assert extractor.inspect(b"garbage").status == ExtractionStatus.MALFORMED


def test_custom_manifest_entry():
    apk = build_apk(None, extra_files={"base/manifest/AndroidManifest.xml": build_manifest("com.split")})

    assert PackageNameExtractor("base/manifest/AndroidManifest.xml").extract(apk) == "com.split"
    assert PackageNameExtractor().extract(apk) is None


def test_failures_are_reported_to_error_service():
    service = get_error_service()
    before = service.get_error_stats().get("apk.extractor_warning", 0)

    assert extract_package_name(b"garbage") is None

    assert service.get_error_stats()["apk.extractor_warning"] == before + 1
