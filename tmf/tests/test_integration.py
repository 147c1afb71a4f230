"""Integration tests with real file operations.

These tests use actual file operations (not mocked) to verify the full
workflow works correctly end-to-end. The ExifTool tests are skipped when
no working ExifTool is installed.
"""

import os
import shutil
import zipfile
from datetime import datetime, timezone

import pytest

from tmf.core.exiftool import ExifToolManager, is_exiftool_available
from tmf.core.models import ProcessMode
from tmf.core.orchestrator import FixOrchestrator
from tmf.core.router import SKIPPED_DIR

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)

# Smallest valid JPEG: SOI, a 1x1 baseline frame and EOI
TINY_JPEG = bytes.fromhex(
    "ffd8ffe000104a46494600010100000100010000ffdb004300080606070605080707070909080a0c"
    "140d0c0b0b0c1912130f141d1a1f1e1d1a1c1c20242e2720222c231c1c2837292c30313434341f27"
    "393d38323c2e333432ffc0000b080001000101011100ffc4001f0000010501010101010100000000"
    "000000000102030405060708090a0bffc400b5100002010303020403050504040000017d01020300"
    "041105122131410613516107227114328191a1082342b1c11552d1f02433627282090a161718191a"
    "25262728292a3435363738393a434445464748494a535455565758595a636465666768696a737475"
    "767778797a838485868788898a92939495969798999aa2a3a4a5a6a7a8a9aab2b3b4b5b6b7b8b9ba"
    "c2c3c4c5c6c7c8c9cad2d3d4d5d6d7d8d9dae1e2e3e4e5e6e7e8e9eaf1f2f3f4f5f6f7f8f9faffda"
    "0008010100003f00fbd3ffd9"
)

requires_exiftool = pytest.mark.skipif(
    not is_exiftool_available(), reason="ExifTool not installed"
)


@pytest.mark.integration
class TestFullWorkflow:
    """End-to-end runs without ExifTool (filesystem timestamps only)."""

    def test_merge_then_inplace_on_copy(self, sample_takeout, temp_dir):
        output_dir = os.path.join(temp_dir, "output")

        summary = FixOrchestrator(
            sample_takeout, mode=ProcessMode.MERGE, destination=output_dir, now=NOW
        ).run()

        assert summary.ok
        assert (summary.fixed, summary.skipped) == (5, 2)
        fixed = os.path.join(output_dir, "Album1", "photo1.jpg")
        assert abs(os.path.getmtime(fixed) - 1609459200) <= 1
        assert os.path.exists(os.path.join(output_dir, SKIPPED_DIR, "Album1", "random.jpg"))

        # Running again over the output fixes by filename only (no sidecars copied)
        again = FixOrchestrator(output_dir, now=NOW).run()
        assert again.fixed == 1
        assert again.skipped == 6

    def test_zip_archive_is_valid(self, sample_takeout, temp_dir):
        archive = os.path.join(temp_dir, "fixed.zip")

        summary = FixOrchestrator(
            sample_takeout, mode=ProcessMode.ZIP, destination=archive, now=NOW
        ).run()

        assert summary.ok
        with zipfile.ZipFile(archive) as zf:
            assert zf.testzip() is None
            info = zf.getinfo("Album1/photo1.jpg")
        assert info.date_time[:3] == datetime.fromtimestamp(1609459200).timetuple()[:3]

    def test_many_files_with_small_pool(self, temp_dir, write_file, write_sidecar):
        root = os.path.join(temp_dir, "takeout")
        for i in range(60):
            path = write_file(os.path.join(root, f"Album{i % 3}", f"photo{i}.jpg"))
            write_sidecar(path + ".json", {"photoTakenTime": {"timestamp": str(1609459200 + i)}})

        summary = FixOrchestrator(root, workers=4, now=NOW).run()

        assert summary.fixed == 60
        assert summary.total == 60


@pytest.mark.integration
@requires_exiftool
class TestWithExifTool:
    """Runs that write real tags."""

    @pytest.fixture
    def jpeg_takeout(self, temp_dir, write_file, write_sidecar):
        root = os.path.join(temp_dir, "takeout")
        path = write_file(os.path.join(root, "Album", "photo.jpg"), TINY_JPEG)
        write_sidecar(path + ".json", {
            "title": "photo.jpg",
            "description": "Harbour at dusk",
            "photoTakenTime": {"timestamp": "1609459200"},
            "geoData": {"latitude": 59.3293, "longitude": 18.0686, "altitude": 12.0},
        })
        write_file(os.path.join(root, "Album", "broken.jpg"), b"not an image")
        write_sidecar(os.path.join(root, "Album", "broken.jpg.json"), {
            "photoTakenTime": {"timestamp": "1609459200"},
        })
        return root

    def test_tags_written(self, jpeg_takeout):
        with ExifToolManager() as exiftool:
            summary = FixOrchestrator(jpeg_takeout, tag_writer=exiftool, now=NOW).run()
            tags = exiftool.read_tags(os.path.join(jpeg_takeout, "Album", "photo.jpg"))

        assert summary.fixed == 1
        assert summary.failed == 1
        assert summary.with_gps == 1
        assert tags.get("EXIF:DateTimeOriginal") == "2021:01:01 00:00:00"
        assert "EXIF:GPSLatitude" in tags
        assert tags.get("EXIF:ImageDescription") == "Harbour at dusk"

    def test_no_backup_files_left(self, jpeg_takeout):
        with ExifToolManager() as exiftool:
            FixOrchestrator(jpeg_takeout, tag_writer=exiftool, now=NOW).run()

        leftovers = [n for n in os.listdir(os.path.join(jpeg_takeout, "Album")) if n.endswith("_original")]
        assert leftovers == []

    def test_mtime_set_after_tag_write(self, jpeg_takeout):
        photo = os.path.join(jpeg_takeout, "Album", "photo.jpg")
        with ExifToolManager() as exiftool:
            FixOrchestrator(jpeg_takeout, tag_writer=exiftool, now=NOW).run()

        assert abs(os.path.getmtime(photo) - 1609459200) <= 1
