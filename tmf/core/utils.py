"""Utility functions for file and path operations."""

import os
import time
import unicodedata
from typing import Optional, Tuple


def normalize_filename(filename: str) -> str:
    """Normalize a filename to NFC form for consistent matching.

    macOS filesystems use NFD (decomposed) Unicode normalization, while
    Windows, Linux, and most cloud services use NFC (composed). The same
    visible name can therefore arrive as two different byte sequences;
    normalizing to NFC keeps dictionary lookups stable.

    Args:
        filename: Original filename (may be NFC or NFD).

    Returns:
        NFC-normalized filename.
    """
    return unicodedata.normalize("NFC", filename)


def exists(path: Optional[str]) -> bool:
    """Check if a path exists.

    Args:
        path: Path to check, or None.

    Returns:
        True if path exists, False if path is None or doesn't exist.
    """
    if path:
        return os.path.exists(path)
    return False


def normalize_path(path: str) -> str:
    """Normalize a user-supplied path.

    Handles trailing slashes, mixed separators, ``~`` and surrounding
    whitespace.
    """
    return os.path.normpath(os.path.expanduser(path.strip()))


def time_suffix() -> str:
    """Short suffix derived from the current time, e.g. ``_1a2b3c``."""
    return f"_{time.time_ns() // 1000 % 0xFFFFFF:06x}"


def _reserve(path: str) -> bool:
    try:
        fd = os.open(path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
    except FileExistsError:
        return False
    os.close(fd)
    return True


def reserve_unique_path(path: str) -> str:
    """Reserve a destination file path, disambiguating if it is taken.

    Uses os.open() with O_CREAT | O_EXCL so the check and the claim are one
    atomic step: concurrent workers copying to the same destination always
    get distinct paths without external locking. The placeholder file is
    empty and is overwritten by the caller's copy.

    On collision a time-derived suffix is appended before the extension,
    retrying until a free name is found.

    Examples:
        >>> reserve_unique_path("/out/photo.jpg")  # free
        '/out/photo.jpg'
        >>> reserve_unique_path("/out/photo.jpg")  # taken
        '/out/photo_3f9a1c.jpg'
    """
    if _reserve(path):
        return path

    base, ext = os.path.splitext(path)
    while True:
        candidate = f"{base}{time_suffix()}{ext}"
        if _reserve(candidate):
            return candidate


def checkout_dir(path: str) -> str:
    """Ensure a directory exists, creating it if necessary.

    Raises:
        ValueError: If path exists as a file (not a directory).
    """
    if os.path.isfile(path):
        raise ValueError(f"Cannot create directory: {path} exists as a file")
    os.makedirs(path, exist_ok=True)
    return path


def get_file_times(path: str) -> Tuple[float, float]:
    """Return (atime, mtime) of a file, following the os.utime argument order."""
    st = os.stat(path)
    return st.st_atime, st.st_mtime


def format_duration(elapsed_time: float) -> str:
    """Format seconds as ``1m 5s`` or ``4.2s``."""
    if elapsed_time >= 60:
        minutes = int(elapsed_time // 60)
        seconds = int(elapsed_time % 60)
        return f"{minutes}m {seconds}s"
    return f"{elapsed_time:.1f}s"
