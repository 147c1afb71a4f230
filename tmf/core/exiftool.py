"""ExifTool management for Takeout Metadata Fixer.

Handles finding, validating, and driving a long-lived ExifTool process.
"""

import logging
import os
import re
import shutil
import subprocess
import sys
import threading
from concurrent.futures import ThreadPoolExecutor, TimeoutError
from functools import lru_cache
from typing import Any, Dict, List, Optional

from tmf.core.exceptions import TagWriteError

logger = logging.getLogger(__name__)

# ExifTool paths
EXIFTOOL_DIR = os.path.join("tools", "exiftool")
EXIFTOOL_EXE = "exiftool.exe" if sys.platform == "win32" else "exiftool"

# Seconds to wait for `exiftool -ver` when validating a candidate
STARTUP_TIMEOUT = 15

# Seconds a single tag write may take before it counts as failed
WRITE_TIMEOUT = 120

# Overwrite in place; never leave photo.jpg_original backups behind
WRITE_PARAMS = ["-overwrite_original"]

_VERSION_RE = re.compile(r"^\d+\.\d+")


def validate_exiftool(path: str) -> Optional[str]:
    """Run ``exiftool -ver`` and return the version string if it looks real.

    Args:
        path: Executable to check.

    Returns:
        Version like "12.50", or None if the candidate is not a working ExifTool.
    """
    try:
        result = subprocess.run(
            [path, "-ver"],
            capture_output=True,
            text=True,
            timeout=STARTUP_TIMEOUT
        )
    except subprocess.TimeoutExpired:
        logger.warning(f"ExifTool at {path} did not respond within {STARTUP_TIMEOUT}s")
        return None
    except OSError as e:
        logger.debug(f"Cannot run {path}: {e}")
        return None

    if result.returncode != 0:
        logger.debug(f"{path} -ver exited with {result.returncode}: {result.stderr.strip()}")
        return None

    version = result.stdout.strip()
    if not _VERSION_RE.match(version):
        return None
    return version


def _default_base_dir() -> str:
    # Go up from tmf/core/ to project root
    return os.path.dirname(os.path.dirname(os.path.dirname(__file__)))


@lru_cache(maxsize=8)
def get_exiftool_path(base_dir: Optional[str] = None) -> Optional[str]:
    """Find a working ExifTool executable.

    Checks in order:
    1. System PATH
    2. Local tools directory (``<base_dir>/tools/exiftool``)

    Results are cached; call _reset_exiftool_cache() after installing.

    Args:
        base_dir: Base directory for the local tools folder.
            Defaults to the project root.

    Returns:
        Path to exiftool executable, or None if not found.
    """
    if shutil.which("exiftool") and validate_exiftool("exiftool"):
        return "exiftool"

    local_path = os.path.join(base_dir or _default_base_dir(), EXIFTOOL_DIR, EXIFTOOL_EXE)
    if os.path.exists(local_path) and validate_exiftool(local_path):
        return local_path

    logger.warning("ExifTool not found. Install from https://exiftool.org/")
    return None


def _reset_exiftool_cache() -> None:
    get_exiftool_path.cache_clear()


def is_exiftool_available() -> bool:
    """Check if a working ExifTool can be found."""
    return get_exiftool_path() is not None


def get_install_instructions() -> str:
    """Return manual installation instructions for ExifTool."""
    return (
        "ExifTool not found. Please install it:\n"
        "  1. Download from https://exiftool.org/\n"
        "  2. Install it on your PATH (Linux: package 'libimage-exiftool-perl',\n"
        "     macOS: 'brew install exiftool'),\n"
        f"     or place the executable in ./{EXIFTOOL_DIR}/"
    )


class ExifToolManager:
    """Manages an ExifTool process shared by all worker threads.

    ExifTool runs in -stay_open mode and answers one request at a time, so
    requests take a lock and run on a single-thread executor. That also gives
    each write a timeout, counted from when the write starts. A write that
    hangs fails its own file: the stuck process is killed and a fresh one
    serves the next request.

    Usage:
        with ExifToolManager() as et:
            et.write_tags("/path/to/file.jpg", {"GPSLatitude": 40.7})

    Or with explicit lifecycle:
        manager = ExifToolManager()
        if not manager.start():
            print(manager.error)
        ...
        manager.stop()
    """

    def __init__(
        self,
        base_dir: Optional[str] = None,
        write_timeout: float = WRITE_TIMEOUT
    ):
        """Initialize manager.

        Args:
            base_dir: Base directory for local tools folder.
            write_timeout: Seconds before a single write is abandoned.
        """
        self._helper = None
        self._exiftool_path: Optional[str] = None
        self._base_dir = base_dir
        self._write_timeout = write_timeout
        self._executor: Optional[ThreadPoolExecutor] = None
        self._lock = threading.Lock()
        self.error: Optional[str] = None

    def start(self) -> bool:
        """Start ExifTool process.

        Returns:
            True if started successfully, False otherwise (see ``error``).
        """
        try:
            import exiftool  # noqa: F401
        except ImportError:
            self.error = "pyexiftool not installed. Run: pip install pyexiftool"
            logger.warning(self.error)
            return False

        self._exiftool_path = get_exiftool_path(self._base_dir)
        if not self._exiftool_path:
            self.error = "ExifTool executable not found"
            return False

        with self._lock:
            return self._launch()

    def _launch(self) -> bool:
        # Caller holds self._lock
        import exiftool

        try:
            self._helper = exiftool.ExifToolHelper(executable=self._exiftool_path)
            self._helper.run()
        except Exception as e:
            self.error = f"Failed to start ExifTool: {e}"
            logger.error(self.error)
            self._helper = None
            return False

        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="exiftool")
        self.error = None
        return True

    def _restart(self) -> None:
        """Kill a stuck ExifTool process and start a fresh one.

        The hung call keeps running on the abandoned executor thread until
        the killed process closes its pipes; nothing waits for it.
        Caller holds self._lock.
        """
        logger.warning("Restarting ExifTool after a stuck write")
        executor, helper = self._executor, self._helper
        self._executor = None
        self._helper = None
        if executor:
            executor.shutdown(wait=False, cancel_futures=True)
        if helper:
            # Kill outright so an unfinished write never lands afterwards
            process = getattr(helper, "_process", None)
            if process is not None:
                try:
                    process.kill()
                except OSError as e:
                    logger.debug(f"Error killing ExifTool: {e}")
            try:
                helper.terminate()
            except Exception as e:
                logger.debug(f"Error stopping ExifTool: {e}")
        self._launch()

    def stop(self) -> None:
        """Stop ExifTool process."""
        with self._lock:
            if self._executor:
                self._executor.shutdown(wait=True, cancel_futures=True)
                self._executor = None
            if self._helper:
                try:
                    self._helper.terminate()
                except Exception as e:
                    logger.debug(f"Error stopping ExifTool: {e}")
                self._helper = None

    def write_tags(self, filepath: str, tags: Dict[str, Any]) -> None:
        """Write tags to a file, overwriting it in place.

        Args:
            filepath: Path to file.
            tags: Dict of ExifTool tags.

        Raises:
            TagWriteError: If ExifTool is not running, reports a failure,
                or does not finish within the write timeout.
        """
        if not tags:
            return

        with self._lock:
            if not self._helper or not self._executor:
                raise TagWriteError(filepath, "ExifTool is not running")

            # The executor is idle here, so the timeout covers this write only
            future = self._executor.submit(self._helper.set_tags, filepath, tags, WRITE_PARAMS)
            try:
                future.result(timeout=self._write_timeout)
            except TimeoutError:
                # Killing the process also stops the write from landing later
                self._restart()
                raise TagWriteError(
                    filepath, f"ExifTool write timed out after {self._write_timeout:g}s"
                ) from None
            except Exception as e:
                logger.debug(f"Failed to write tags to {filepath}: {e}")
                raise TagWriteError(filepath, _describe(e)) from e

    def read_tags(self, filepath: str, tags: Optional[List[str]] = None) -> dict:
        """Read tags from a file.

        Args:
            filepath: Path to file.
            tags: Optional list of specific tags to read.

        Returns:
            Dict of tag values, empty if error.
        """
        with self._lock:
            if not self._helper or not self._executor:
                return {}

            if tags:
                future = self._executor.submit(self._helper.get_tags, filepath, tags)
            else:
                future = self._executor.submit(self._helper.get_metadata, filepath)
            try:
                result = future.result(timeout=self._write_timeout)
                return result[0] if result else {}
            except TimeoutError:
                logger.debug(f"Timed out reading tags from {filepath}")
                self._restart()
                return {}
            except Exception as e:
                logger.debug(f"Failed to read tags from {filepath}: {e}")
                return {}

    @property
    def is_running(self) -> bool:
        """Check if ExifTool is running."""
        return self._helper is not None

    @property
    def exiftool_path(self) -> Optional[str]:
        """Get the path to ExifTool executable."""
        return self._exiftool_path

    def __enter__(self) -> "ExifToolManager":
        """Context manager entry."""
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.stop()


def _describe(error: Exception) -> str:
    """Short, single-line reason for a failed ExifTool call."""
    stderr = getattr(error, "stderr", None)
    if isinstance(stderr, bytes):
        stderr = stderr.decode("utf-8", "replace")
    if stderr and stderr.strip():
        return stderr.strip().splitlines()[0]
    return str(error) or error.__class__.__name__
