"""Pytest configuration and fixtures."""

import os
import json
import tempfile
import shutil
from typing import Generator
from unittest.mock import Mock

import pytest

from tmf.core.models import MediaFile


def _write_file(path: str, data: bytes = b"fake media data") -> str:
    """Create a file (and its parent directories)."""
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "wb") as f:
        f.write(data)
    return path


def _write_sidecar(path: str, content) -> str:
    """Write a JSON sidecar (any JSON value, or raw text if given a str)."""
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        if isinstance(content, str):
            f.write(content)
        else:
            json.dump(content, f)
    return path


def _make_media(path: str, root: str = None) -> MediaFile:
    """Build a MediaFile for an existing (or imaginary) path."""
    root = root or os.path.dirname(path)
    return MediaFile(
        path=path,
        relative_path=os.path.relpath(path, root),
        root=root,
        extension=os.path.splitext(path)[1].lower()
    )


@pytest.fixture
def write_file():
    """Factory: write_file(path, data=b"...") -> path."""
    return _write_file


@pytest.fixture
def write_sidecar():
    """Factory: write_sidecar(path, content) -> path."""
    return _write_sidecar


@pytest.fixture
def make_media():
    """Factory: make_media(path, root=None) -> MediaFile."""
    return _make_media


@pytest.fixture
def temp_dir() -> Generator[str, None, None]:
    """Create a temporary directory for tests."""
    tmpdir = tempfile.mkdtemp()
    yield tmpdir
    shutil.rmtree(tmpdir, ignore_errors=True)


@pytest.fixture
def tag_writer() -> Mock:
    """Stand-in for ExifToolManager that records writes."""
    writer = Mock()
    writer.write_tags.return_value = None
    return writer


@pytest.fixture
def sample_takeout(temp_dir: str) -> str:
    """Create a sample Google Takeout structure for testing.

    Structure:
        temp_dir/takeout/
        ├── Album1/
        │   ├── photo1.jpg
        │   ├── photo1.jpg.json                         (date, GPS, caption)
        │   ├── photo2.jpg
        │   ├── photo2.jpg.supplemental-metadata.json   (date, 0/0 GPS)
        │   ├── IMG_20210615_143000.jpg                 (date in name only)
        │   └── random.jpg                              (nothing)
        └── Album2/
            ├── image.png
            ├── image.png.json                          (date)
            ├── image-edited.png                        (shares image.png.json)
            └── clip.mp4                                (nothing)

    Expected: 5 fixed, 2 skipped.
    """
    root = os.path.join(temp_dir, "takeout")
    album1 = os.path.join(root, "Album1")
    album2 = os.path.join(root, "Album2")

    _write_file(os.path.join(album1, "photo1.jpg"))
    _write_sidecar(os.path.join(album1, "photo1.jpg.json"), {
        "title": "photo1.jpg",
        "description": "Test photo 1",
        "photoTakenTime": {"timestamp": "1609459200"},  # 2021-01-01
        "geoData": {"latitude": 40.7128, "longitude": -74.0060, "altitude": 10.0},
    })

    _write_file(os.path.join(album1, "photo2.jpg"))
    _write_sidecar(os.path.join(album1, "photo2.jpg.supplemental-metadata.json"), {
        "title": "photo2.jpg",
        "photoTakenTime": {"timestamp": "1612137600"},  # 2021-02-01
        "geoData": {"latitude": 0.0, "longitude": 0.0, "altitude": 0.0},
    })

    _write_file(os.path.join(album1, "IMG_20210615_143000.jpg"))
    _write_file(os.path.join(album1, "random.jpg"))

    _write_file(os.path.join(album2, "image.png"))
    _write_file(os.path.join(album2, "image-edited.png"))
    _write_sidecar(os.path.join(album2, "image.png.json"), {
        "title": "image.png",
        "photoTakenTime": {"timestamp": "1614556800"},  # 2021-03-01
    })

    _write_file(os.path.join(album2, "clip.mp4"))

    return root


@pytest.fixture
def sample_duplicates(temp_dir: str) -> str:
    """Create a sample with duplicate files (bracket notation scenario).

    When Google Takeout exports duplicate files with the same name,
    it adds (1), (2), etc. to the file, and after the extension on the JSON.

    Structure:
        temp_dir/Album/
        ├── photo.jpg
        ├── photo.jpg.json
        ├── photo(1).jpg
        ├── photo.jpg(1).json      (note: marker after .jpg)
        └── photo(2).jpg           (no own sidecar: falls back to photo.jpg.json)
    """
    album = os.path.join(temp_dir, "Album")

    _write_file(os.path.join(album, "photo.jpg"), b"original photo data")
    _write_sidecar(os.path.join(album, "photo.jpg.json"), {
        "title": "photo.jpg",
        "photoTakenTime": {"timestamp": "1609459200"},
    })

    _write_file(os.path.join(album, "photo(1).jpg"), b"duplicate 1 data")
    _write_sidecar(os.path.join(album, "photo.jpg(1).json"), {
        "title": "photo.jpg",  # Title is still the original name
        "photoTakenTime": {"timestamp": "1612137600"},
    })

    _write_file(os.path.join(album, "photo(2).jpg"), b"duplicate 2 data")

    return temp_dir
