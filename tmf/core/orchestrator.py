"""High-level orchestrator for Takeout Metadata Fixer.

Coordinates scanning, matching and the parallel fix batch.
Used by the CLI and by anyone scripting the library.
"""

import logging
import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime
from typing import Iterable, List, Optional, Union

from tmf.core.events import (
    Emitter, EventSink, ScanStarted, ScanSummary, Progress, RunFinished,
    INFO, WARNING, ERROR, SUCCESS
)
from tmf.core.exceptions import SetupError
from tmf.core.logger import BufferedLogger, summary_path_for, write_summary
from tmf.core.matcher import SidecarMatcher
from tmf.core.models import (
    MediaFile, OutcomeStatus, ProcessMode, ProcessOutcome, RunSummary, ScanResult
)
from tmf.core.processor import FileProcessor, TagWriter
from tmf.core.resolver import MetadataResolver
from tmf.core.router import OutputRouter
from tmf.core.scanner import FileScanner
from tmf.core.utils import exists, format_duration, normalize_path

logger = logging.getLogger(__name__)

# Files in flight at once
DEFAULT_WORKERS = 25

# A "Processing:" line goes out for every Nth file and for anything this big
PROCESSING_LOG_EVERY = 5
LARGE_FILE_BYTES = 100 * 1024 * 1024

# "No date" warnings: the first few, then one every SKIP_WARN_EVERY
SKIP_WARN_FIRST = 10
SKIP_WARN_EVERY = 50


def _progress_interval(total: int) -> int:
    """Report progress every N completions (about 200 updates per run).

    Args:
        total: Total number of files in the batch.

    Returns:
        Update interval, at least 1.
    """
    return max(1, total // 200)


class FixOrchestrator:
    """Runs one fix batch over a set of input paths.

    The caller owns the tag writer's lifecycle; the orchestrator only uses it.

    Usage:
        with ExifToolManager() as exiftool:
            orchestrator = FixOrchestrator(
                ["/path/to/Takeout"],
                mode=ProcessMode.MERGE,
                destination="/path/to/fixed",
                tag_writer=exiftool,
                event_sink=print
            )
            summary = orchestrator.run()
        print(f"Fixed: {summary.fixed} files")
    """

    def __init__(
        self,
        paths: Union[str, Iterable[str]],
        mode: Union[ProcessMode, str] = ProcessMode.INPLACE,
        destination: Optional[str] = None,
        workers: int = DEFAULT_WORKERS,
        tag_writer: Optional[TagWriter] = None,
        event_sink: Optional[EventSink] = None,
        cancel_event: Optional[threading.Event] = None,
        verbose: bool = False,
        log_file: Optional[str] = None,
        now: Optional[datetime] = None
    ):
        """Initialize orchestrator.

        Args:
            paths: Files and/or directories to fix.
            mode: inplace, merge or zip.
            destination: Output directory (merge) or archive path (zip).
            workers: Maximum files processed concurrently.
            tag_writer: ExifTool handle, or None for timestamps only.
            event_sink: Callable receiving progress and log events.
            cancel_event: Set it to stop starting new files.
            verbose: If True, emit a line for every file.
            log_file: Optional detailed run log; a summary is written next to it.
            now: Fixed "current time" for timestamp validation (tests only).
        """
        if isinstance(paths, str):
            paths = [paths]
        self.paths: List[str] = [normalize_path(p) for p in paths]
        self.mode = mode
        self.destination = normalize_path(destination) if destination else None
        self.workers = workers
        self.tag_writer = tag_writer
        self.cancel_event = cancel_event or threading.Event()
        self.verbose = verbose
        self.log_file = log_file
        self._now = now

        self._emitter = Emitter(event_sink)
        self._file_log: Optional[BufferedLogger] = None
        self._lock = threading.Lock()
        self._started = 0
        self._total = 0

    def _log(self, message: str, level: str = INFO) -> None:
        self._emitter.log(message, level)
        if self._file_log:
            self._file_log.log(message, level)

    def _validate(self) -> ProcessMode:
        """Check run parameters before touching anything.

        Raises:
            SetupError: On the first invalid parameter.
        """
        try:
            mode = ProcessMode(self.mode)
        except ValueError:
            raise SetupError(f"Unknown mode: {self.mode}") from None

        if not self.paths:
            raise SetupError("No input paths given")
        for path in self.paths:
            if not exists(path):
                raise SetupError(f"Path does not exist: {path}")

        if isinstance(self.workers, bool) or not isinstance(self.workers, int) or self.workers < 1:
            raise SetupError(f"Worker count must be a positive integer, got {self.workers!r}")

        if mode is not ProcessMode.INPLACE and not self.destination:
            raise SetupError(f"A destination is required for {mode.value} mode")
        return mode

    def run(self) -> RunSummary:
        """Run the whole batch.

        Never raises for per-file or setup problems: setup problems come back
        as a summary with ``fatal_error`` set and no file touched.

        Returns:
            RunSummary with counts, timings and error lines.
        """
        start_time = time.time()
        summary = RunSummary(
            mode=ProcessMode.INPLACE,
            start_time=time.strftime("%Y-%m-%d %H:%M:%S")
        )
        if self.log_file:
            self._file_log = BufferedLogger(self.log_file)

        router: Optional[OutputRouter] = None
        try:
            try:
                summary.mode = self._validate()
                router = OutputRouter(summary.mode, self.destination)
                summary.output_location = router.prepare()
                scan = self._scan()
            except SetupError as e:
                summary.fatal_error = str(e)
                self._log(str(e), ERROR)
                return self._finish(summary, start_time)

            if self.tag_writer is None:
                self._log("ExifTool disabled: only filesystem timestamps will be set", WARNING)

            processor = FileProcessor(
                SidecarMatcher(scan.sidecars),
                MetadataResolver(now=self._now),
                router,
                self.tag_writer
            )
            self._run_batch(scan.media, processor, summary)

            self._log("Finalizing...", SUCCESS)
            router.finalize()
            router = None

            self._log(
                f"Done: {summary.fixed:,} fixed, {summary.skipped:,} skipped, "
                f"{summary.failed:,} failed in {format_duration(time.time() - start_time)}",
                SUCCESS if summary.ok else WARNING
            )
            if summary.output_location:
                self._log(f"Output: {summary.output_location}")
            return self._finish(summary, start_time)
        finally:
            if router is not None:
                router.finalize()
            if self._file_log:
                self._file_log.close()
                self._file_log = None

    def _finish(self, summary: RunSummary, start_time: float) -> RunSummary:
        summary.elapsed_time = round(time.time() - start_time, 3)
        summary.end_time = time.strftime("%Y-%m-%d %H:%M:%S")
        if self.log_file:
            try:
                write_summary(summary, summary_path_for(self.log_file), self.paths)
            except OSError as e:
                logger.warning(f"Could not write run summary: {e}")
        self._emitter.emit(RunFinished(summary))
        return summary

    def _scan(self) -> ScanResult:
        """Discover media and index sidecars.

        Raises:
            SetupError: If the scan cannot run at all.
        """
        self._emitter.emit(ScanStarted(list(self.paths)))
        self._log(f"Scanning {', '.join(self.paths)}")
        try:
            scan = FileScanner(self.paths).scan()
        except OSError as e:
            raise SetupError(f"Scan failed: {e}") from e

        for path in scan.unreadable:
            self._log(f"Could not read {path}, skipping it", WARNING)

        self._emitter.emit(ScanSummary(scan.media_count, scan.sidecar_count))
        self._log(f"Found {scan.media_count:,} media files and {scan.sidecar_count:,} JSON sidecars")
        if scan.media_count and not scan.sidecar_count:
            self._log("No JSON sidecars found: dates will come from filenames only", WARNING)
        return scan

    def _run_batch(
        self,
        media: List[MediaFile],
        processor: FileProcessor,
        summary: RunSummary
    ) -> None:
        """Fix every file through a bounded worker pool.

        Outcomes are tallied here in the collecting thread, the only writer
        of the summary counters. Workers share just the "started" counter.
        """
        total = len(media)
        summary.total = total
        if not total:
            self._log("No supported media files found", WARNING)
            return

        self._total = total
        self._started = 0
        interval = _progress_interval(total)
        completed = 0

        with ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="tmf") as executor:
            futures = {executor.submit(self._fix_one, processor, m): m for m in media}

            for future in as_completed(futures):
                try:
                    outcome = future.result()
                except Exception as e:
                    # FileProcessor.process() never raises; this is a last resort
                    outcome = ProcessOutcome(
                        futures[future], OutcomeStatus.ERROR, error=str(e) or type(e).__name__
                    )
                if outcome is None:
                    continue

                self._record(outcome, summary)
                completed += 1
                if completed % interval == 0 or completed == total:
                    self._emitter.emit(Progress(completed, total))

        # A cancelled run never reaches total; report where it stopped
        if completed % interval and completed != total:
            self._emitter.emit(Progress(completed, total))

        if self.cancel_event.is_set() and summary.counted() < total:
            summary.cancelled = True
            summary.total = summary.counted()
            self._log(f"Cancelled after {summary.total:,} of {total:,} files", WARNING)

    def _fix_one(self, processor: FileProcessor, media: MediaFile) -> Optional[ProcessOutcome]:
        """Worker body: one file's pipeline, or None if the run was cancelled."""
        if self.cancel_event.is_set():
            return None

        with self._lock:
            self._started += 1
            started = self._started

        if self.verbose or started % PROCESSING_LOG_EVERY == 0 or self._is_large(media):
            self._log(f"Processing: {media.relative_path} ({started}/{self._total})")

        return processor.process(media)

    @staticmethod
    def _is_large(media: MediaFile) -> bool:
        try:
            return os.path.getsize(media.path) > LARGE_FILE_BYTES
        except OSError:
            return False

    def _record(self, outcome: ProcessOutcome, summary: RunSummary) -> None:
        name = outcome.media.relative_path

        if outcome.status is OutcomeStatus.FIXED:
            summary.fixed += 1
            if outcome.has_location:
                summary.with_gps += 1
            if outcome.has_description:
                summary.with_description += 1
            if self.verbose:
                self._log(f"Fixed: {name} (date from {outcome.source.value})")

        elif outcome.status is OutcomeStatus.SKIPPED_NO_DATE:
            summary.skipped += 1
            skipped = summary.skipped
            if self.verbose or skipped <= SKIP_WARN_FIRST or skipped % SKIP_WARN_EVERY == 0:
                reason = "no date in sidecar or filename" if outcome.sidecar_path else "no JSON found"
                self._log(f"Skipped {name}: {reason} ({skipped:,} skipped so far)", WARNING)

        else:
            summary.failed += 1
            summary.errors.append(f"{name}: {outcome.error}")
            self._log(f"Failed: {name}: {outcome.error}", ERROR)
