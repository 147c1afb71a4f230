"""Tests for tmf.core.processor module."""

import os
from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from tmf.core.exceptions import TagWriteError
from tmf.core.matcher import SidecarMatcher
from tmf.core.models import MetadataSource, OutcomeStatus, ProcessMode
from tmf.core.processor import FileProcessor, set_file_times, _reason
from tmf.core.resolver import MetadataResolver
from tmf.core.router import OutputRouter, SKIPPED_DIR
from tmf.core.scanner import FileScanner

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)
NEW_YEAR_2021 = datetime(2021, 1, 1, tzinfo=timezone.utc)


def _processor(root, tag_writer=None, mode=ProcessMode.INPLACE, destination=None):
    scan = FileScanner([root]).scan()
    router = OutputRouter(mode, destination)
    router.prepare()
    processor = FileProcessor(
        SidecarMatcher(scan.sidecars), MetadataResolver(now=NOW), router, tag_writer
    )
    return processor, {m.filename: m for m in scan.media}


class TestFileProcessor:
    """Tests for FileProcessor class."""

    def test_fixed_from_sidecar(self, sample_takeout, tag_writer):
        processor, media = _processor(sample_takeout, tag_writer)

        with patch("tmf.core.processor.filedate") as mock_filedate:
            outcome = processor.process(media["photo1.jpg"])

        path = media["photo1.jpg"].path
        assert outcome.status is OutcomeStatus.FIXED
        assert outcome.artifact_path == path
        assert outcome.source is MetadataSource.JSON
        assert outcome.sidecar_path == path + ".json"
        assert outcome.has_location
        assert outcome.has_description

        written_path, tags = tag_writer.write_tags.call_args.args
        assert written_path == path
        assert tags["AllDates"] == "2021:01:01 00:00:00"
        assert tags["GPSLatitudeRef"] == "N"
        assert tags["ImageDescription"] == "Test photo 1"

        mock_filedate.File.assert_called_once_with(path)
        mock_filedate.File.return_value.set.assert_called_once_with(
            modified=NEW_YEAR_2021, accessed=NEW_YEAR_2021
        )

    def test_zero_gps_not_counted(self, sample_takeout, tag_writer):
        processor, media = _processor(sample_takeout, tag_writer)

        with patch("tmf.core.processor.filedate"):
            outcome = processor.process(media["photo2.jpg"])

        assert outcome.status is OutcomeStatus.FIXED
        assert not outcome.has_location
        tags = tag_writer.write_tags.call_args.args[1]
        assert "GPSLatitude" not in tags

    def test_fixed_from_filename(self, sample_takeout, tag_writer):
        processor, media = _processor(sample_takeout, tag_writer)

        with patch("tmf.core.processor.filedate"):
            outcome = processor.process(media["IMG_20210615_143000.jpg"])

        assert outcome.status is OutcomeStatus.FIXED
        assert outcome.source is MetadataSource.FILENAME
        assert outcome.sidecar_path is None

    def test_video_gets_quicktime_tags(self, temp_dir, write_file, write_sidecar, tag_writer):
        path = write_file(os.path.join(temp_dir, "clip.mp4"))
        write_sidecar(path + ".json", {"photoTakenTime": {"timestamp": "1609459200"}})
        processor, media = _processor(temp_dir, tag_writer)

        with patch("tmf.core.processor.filedate"):
            processor.process(media["clip.mp4"])

        assert "TrackCreateDate" in tag_writer.write_tags.call_args.args[1]

    def test_skipped_when_nothing_found(self, sample_takeout, tag_writer):
        processor, media = _processor(sample_takeout, tag_writer)
        before = os.path.getmtime(media["random.jpg"].path)

        with patch("tmf.core.processor.filedate") as mock_filedate:
            outcome = processor.process(media["random.jpg"])

        assert outcome.status is OutcomeStatus.SKIPPED_NO_DATE
        assert outcome.sidecar_path is None
        tag_writer.write_tags.assert_not_called()
        mock_filedate.File.assert_not_called()
        assert os.path.getmtime(media["random.jpg"].path) == before

    def test_without_tag_writer_sets_times_only(self, sample_takeout):
        processor, media = _processor(sample_takeout)

        with patch("tmf.core.processor.filedate") as mock_filedate:
            outcome = processor.process(media["photo1.jpg"])

        assert outcome.status is OutcomeStatus.FIXED
        assert not outcome.has_location
        assert not outcome.has_description
        mock_filedate.File.return_value.set.assert_called_once()

    def test_description_only(self, temp_dir, write_file, write_sidecar, tag_writer):
        path = write_file(os.path.join(temp_dir, "photo.jpg"))
        write_sidecar(path + ".json", {"description": "Caption only"})
        os.utime(path, (1000000000, 1000000000))
        # Touch the file the way a real ExifTool write does
        tag_writer.write_tags.side_effect = lambda filepath, tags: os.utime(filepath, None)
        processor, media = _processor(temp_dir, tag_writer)

        with patch("tmf.core.processor.filedate") as mock_filedate:
            outcome = processor.process(media["photo.jpg"])

        assert outcome.status is OutcomeStatus.FIXED
        assert outcome.has_description
        tag_writer.write_tags.assert_called_once()
        mock_filedate.File.assert_not_called()
        # Tag write must not leave the file looking freshly modified
        assert int(os.path.getmtime(path)) == 1000000000

    def test_description_only_without_tag_writer_is_skipped(
        self, temp_dir, write_file, write_sidecar
    ):
        path = write_file(os.path.join(temp_dir, "photo.jpg"))
        write_sidecar(path + ".json", {"description": "Caption only"})
        processor, media = _processor(temp_dir)

        outcome = processor.process(media["photo.jpg"])

        assert outcome.status is OutcomeStatus.SKIPPED_NO_DATE
        assert outcome.sidecar_path == path + ".json"

    def test_tag_write_failure(self, sample_takeout, tag_writer):
        tag_writer.write_tags.side_effect = TagWriteError("/x", "Not a valid JPG")
        processor, media = _processor(sample_takeout, tag_writer)

        with patch("tmf.core.processor.filedate") as mock_filedate:
            outcome = processor.process(media["photo1.jpg"])

        assert outcome.status is OutcomeStatus.ERROR
        assert outcome.error == "Not a valid JPG"
        assert outcome.artifact_path is None
        mock_filedate.File.assert_not_called()

    def test_missing_file_is_error(self, temp_dir, make_media):
        processor, _ = _processor(temp_dir)
        outcome = processor.process(make_media(os.path.join(temp_dir, "gone.jpg")))

        assert outcome.status is OutcomeStatus.ERROR
        assert outcome.error

    def test_malformed_sidecar_is_not_fatal(self, temp_dir, write_file, write_sidecar, tag_writer):
        path = write_file(os.path.join(temp_dir, "photo.jpg"))
        write_sidecar(path + ".json", "{broken")
        processor, media = _processor(temp_dir, tag_writer)

        outcome = processor.process(media["photo.jpg"])

        assert outcome.status is OutcomeStatus.SKIPPED_NO_DATE


class TestFileProcessorMerge:
    """Copies in merge mode."""

    def test_fixes_copy_not_original(self, sample_takeout, temp_dir, tag_writer):
        dest = os.path.join(temp_dir, "out")
        processor, media = _processor(sample_takeout, tag_writer, ProcessMode.MERGE, dest)

        with patch("tmf.core.processor.filedate") as mock_filedate:
            outcome = processor.process(media["photo1.jpg"])

        expected = os.path.join(dest, "Album1", "photo1.jpg")
        assert outcome.artifact_path == expected
        assert tag_writer.write_tags.call_args.args[0] == expected
        mock_filedate.File.assert_called_once_with(expected)

    def test_skipped_copied_to_skipped_dir(self, sample_takeout, temp_dir, tag_writer):
        dest = os.path.join(temp_dir, "out")
        processor, media = _processor(sample_takeout, tag_writer, ProcessMode.MERGE, dest)

        outcome = processor.process(media["random.jpg"])

        assert outcome.artifact_path == os.path.join(dest, SKIPPED_DIR, "Album1", "random.jpg")
        assert os.path.exists(outcome.artifact_path)

    def test_failed_copy_is_removed(self, sample_takeout, temp_dir, tag_writer):
        tag_writer.write_tags.side_effect = TagWriteError("/x", "boom")
        dest = os.path.join(temp_dir, "out")
        processor, media = _processor(sample_takeout, tag_writer, ProcessMode.MERGE, dest)

        outcome = processor.process(media["photo1.jpg"])

        assert outcome.status is OutcomeStatus.ERROR
        assert not os.path.exists(os.path.join(dest, "Album1", "photo1.jpg"))
        assert os.path.exists(media["photo1.jpg"].path)


class TestSetFileTimes:
    """Tests for set_file_times() with the real filedate."""

    def test_sets_modified_time(self, temp_dir, write_file):
        path = write_file(os.path.join(temp_dir, "photo.jpg"))

        set_file_times(path, NEW_YEAR_2021)

        assert abs(os.path.getmtime(path) - NEW_YEAR_2021.timestamp()) <= 1


class TestReason:
    """Tests for _reason()."""

    def test_os_error_uses_strerror(self):
        assert _reason(PermissionError(13, "Permission denied", "/x")) == "Permission denied"

    def test_tmf_error_message(self):
        assert _reason(TagWriteError("/x", "timed out")) == "timed out"

    def test_other_error_names_type(self):
        assert _reason(KeyError("k")) == "KeyError: 'k'"
