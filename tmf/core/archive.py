"""Zip archive output for Takeout Metadata Fixer."""

import logging
import os
import threading
import zipfile
from typing import Optional

logger = logging.getLogger(__name__)

# Highest deflate level
COMPRESS_LEVEL = 9


class ZipArchiveWriter:
    """Thread-safe, append-only writer for the output archive.

    Workers fix files in parallel but a ZipFile cannot take concurrent
    writes, so every append holds a lock. Only the append is serialized;
    metadata resolution and tag writing stay parallel.

    Usage:
        with ZipArchiveWriter("/out/photos.zip") as archive:
            archive.add("/staging/Album/photo.jpg", "Album/photo.jpg")
    """

    def __init__(self, path: str):
        """Initialize writer (the archive is created on open()).

        Args:
            path: Archive file to create.
        """
        self.path = path
        self._zip: Optional[zipfile.ZipFile] = None
        self._lock = threading.Lock()
        self.count = 0

    def open(self) -> None:
        parent = os.path.dirname(self.path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        self._zip = zipfile.ZipFile(
            self.path, "w",
            compression=zipfile.ZIP_DEFLATED,
            compresslevel=COMPRESS_LEVEL,
            allowZip64=True,
            # Capture dates before 1980 are valid; store them as 1980-01-01
            strict_timestamps=False
        )

    def add(self, filepath: str, arcname: str) -> None:
        """Append one file under ``arcname`` (always stored with '/' separators).

        Raises:
            RuntimeError: If the archive is not open.
            OSError: If the file cannot be read or the archive written.
        """
        arcname = arcname.replace(os.sep, "/")
        with self._lock:
            if self._zip is None:
                raise RuntimeError(f"Archive {self.path} is not open")
            self._zip.write(filepath, arcname)
            self.count += 1

    def close(self) -> None:
        with self._lock:
            if self._zip is not None:
                self._zip.close()
                self._zip = None
                logger.debug(f"Closed archive {self.path} ({self.count} entries)")

    @property
    def is_open(self) -> bool:
        return self._zip is not None

    def __enter__(self) -> "ZipArchiveWriter":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
