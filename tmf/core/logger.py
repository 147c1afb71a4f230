"""Run log files for Takeout Metadata Fixer."""

import os
import threading
import time
from typing import Optional, TextIO

from tmf.core.models import RunSummary
from tmf.core.utils import format_duration


class BufferedLogger:
    """Buffered, thread-safe file logger with context manager support.

    Worker threads log concurrently, so writes are serialized by a lock.

    Usage:
        with BufferedLogger("/path/to/run.log") as log:
            log.log("Processing started")
            log.log("Fixed: photo.jpg")
        # File is automatically closed
    """

    def __init__(self, filepath: str):
        """Initialize logger.

        Args:
            filepath: Log file to append to (created on first write).
        """
        self.filepath = filepath
        self._handle: Optional[TextIO] = None
        self._lock = threading.Lock()

    def _open(self) -> None:
        """Open the log file for appending (lazy initialization)."""
        if self._handle is None:
            parent = os.path.dirname(self.filepath)
            if parent:
                os.makedirs(parent, exist_ok=True)
            self._handle = open(self.filepath, "a", encoding="utf-8")

    def log(self, message: str, level: str = "info") -> None:
        """Write a timestamped message to the log.

        Args:
            message: Message to log.
            level: Level label written next to the timestamp.
        """
        timestamp = time.strftime("%Y-%m-%d %H:%M:%S")
        with self._lock:
            self._open()
            self._handle.write(f"{timestamp} [{level.upper()}] {message}\n")

    def flush(self) -> None:
        with self._lock:
            if self._handle:
                self._handle.flush()

    def close(self) -> None:
        with self._lock:
            if self._handle:
                self._handle.close()
                self._handle = None

    def __enter__(self) -> "BufferedLogger":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    @property
    def is_open(self) -> bool:
        return self._handle is not None


def summary_path_for(log_file: str) -> str:
    """Summary file written next to a run log: run.log -> run_summary.txt."""
    base, _ = os.path.splitext(log_file)
    return f"{base}_summary.txt"


def write_summary(summary: RunSummary, filepath: str, roots: Optional[list] = None) -> str:
    """Write a concise, human-readable run summary.

    Args:
        summary: Finished run summary.
        filepath: Summary file to (over)write.
        roots: Input paths of the run.

    Returns:
        Path to summary file.
    """
    parent = os.path.dirname(filepath)
    if parent:
        os.makedirs(parent, exist_ok=True)

    with open(filepath, "w", encoding="utf-8") as f:
        f.write("Takeout Metadata Fixer - Run Summary\n")
        f.write("=" * 40 + "\n\n")
        for root in roots or []:
            f.write(f"Source:    {root}\n")
        f.write(f"Mode:      {summary.mode.value}\n")
        if summary.output_location:
            f.write(f"Output:    {summary.output_location}\n")
        f.write(f"Started:   {summary.start_time}\n")
        f.write(f"Completed: {summary.end_time}\n")
        f.write(f"Duration:  {format_duration(summary.elapsed_time)}\n\n")

        if summary.fatal_error:
            f.write(f"Run aborted: {summary.fatal_error}\n")
            return filepath

        f.write(f"Files:               {summary.total:,}\n")
        f.write(f"  Fixed:             {summary.fixed:,}\n")
        f.write(f"    With GPS data:   {summary.with_gps:,}\n")
        f.write(f"    With captions:   {summary.with_description:,}\n")
        f.write(f"  Skipped (no date): {summary.skipped:,}\n")
        f.write(f"  Failed:            {summary.failed:,}\n")
        if summary.cancelled:
            f.write("\nRun was cancelled before all files were processed.\n")

        if summary.errors:
            f.write("\nErrors:\n")
            for error in summary.errors:
                f.write(f"  {error}\n")

    return filepath
