"""Command-line interface for Takeout Metadata Fixer."""

import argparse
import logging
import signal
import sys
import threading
from typing import List, Optional

from tqdm import tqdm
from tqdm.contrib.logging import logging_redirect_tqdm

from tmf import __version__
from tmf.core.events import (
    Event, LogMessage, Progress, RunFinished, ScanSummary, WARNING, ERROR
)
from tmf.core.exiftool import ExifToolManager, get_install_instructions
from tmf.core.models import ProcessMode, RunSummary
from tmf.core.orchestrator import FixOrchestrator, DEFAULT_WORKERS
from tmf.core.utils import format_duration
from tmf.cli.settings import Settings
from tmf.cli.wizard import run_wizard

# Exit codes
EXIT_OK = 0
EXIT_SETUP = 1
EXIT_FAILED_FILES = 2
EXIT_INTERRUPTED = 130

# Program description
DESCRIPTION = """Takeout Metadata Fixer

Restores capture dates, GPS coordinates and captions to photos and videos
exported from Google Photos (Takeout) and similar services.

Each media file is matched with its JSON sidecar (photo.jpg.json,
photo.jpg.supplemental-metadata.json, photo.jpg(1).json, ...). When no
sidecar carries a date, one is read from the filename (IMG_20210615_143000.jpg).

Modes:
  inplace  fix the original files
  merge    write fixed copies under DEST, mirroring the input tree
  zip      write fixed copies into the archive DEST

Files with nothing to fix are placed under _SKIPPED/ in merge and zip output.
"""


class ProgressPrinter:
    """Event sink rendering a tqdm progress bar plus log lines above it."""

    def __init__(self):
        self._pbar: Optional[tqdm] = None

    def __call__(self, event: Event) -> None:
        if isinstance(event, ScanSummary):
            self._pbar = tqdm(total=event.media_count, desc="Fixing", unit="file")
        elif isinstance(event, Progress):
            if self._pbar is not None:
                self._pbar.n = event.current
                self._pbar.refresh()
        elif isinstance(event, LogMessage):
            tqdm.write(format_message(event))
        elif isinstance(event, RunFinished):
            self.close()

    def close(self) -> None:
        if self._pbar is not None:
            self._pbar.close()
            self._pbar = None


def format_message(event: LogMessage) -> str:
    if event.level == ERROR:
        return f"Error: {event.message}"
    if event.level == WARNING:
        return f"Warning: {event.message}"
    return event.message


def print_summary(summary: RunSummary) -> None:
    """Print the end-of-run report."""
    if summary.fatal_error:
        return

    print("\nFinished!" if not summary.cancelled else "\nCancelled.")
    print(f"Files: {summary.total}")
    print(f"  Fixed: {summary.fixed}")
    print(f"    With GPS: {summary.with_gps}")
    print(f"    With captions: {summary.with_description}")
    print(f"  Skipped (no date): {summary.skipped}")
    print(f"  Failed: {summary.failed}")

    if summary.errors:
        print("\nErrors:")
        for error in summary.errors[:10]:  # Show first 10
            print(f"  {error}")
        if len(summary.errors) > 10:
            print(f"  ... and {len(summary.errors) - 10} more")

    print(f"Time used: {format_duration(summary.elapsed_time)}")
    if summary.output_location:
        print(f"\nOutput:\n  {summary.output_location}")


def exit_code(summary: RunSummary) -> int:
    if summary.fatal_error:
        return EXIT_SETUP
    if summary.cancelled:
        return EXIT_INTERRUPTED
    if summary.failed:
        return EXIT_FAILED_FILES
    return EXIT_OK


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an integer: {value}") from None
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def parse_args(args: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        args: Arguments to parse (default: sys.argv[1:]).

    Returns:
        Parsed arguments namespace.
    """
    parser = argparse.ArgumentParser(
        prog="tmf",
        description=DESCRIPTION,
        formatter_class=argparse.RawTextHelpFormatter
    )

    parser.add_argument(
        "-V", "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    parser.add_argument(
        "-p", "--path",
        action="append",
        help="File or directory to fix (repeatable)",
        type=str,
        default=None
    )

    parser.add_argument(
        "-m", "--mode",
        help="Where fixed files go (default: inplace)",
        choices=[m.value for m in ProcessMode],
        default=ProcessMode.INPLACE.value
    )

    parser.add_argument(
        "-d", "--destination",
        help="Output directory (merge) or archive file (zip)",
        type=str,
        default=None
    )

    parser.add_argument(
        "-w", "--workers",
        help=f"Files processed concurrently (default: last used, else {DEFAULT_WORKERS})",
        type=_positive_int,
        default=None
    )

    parser.add_argument(
        "--no-exif",
        help="Skip ExifTool; only set filesystem timestamps",
        action="store_true"
    )

    parser.add_argument(
        "-v", "--verbose",
        help="Report every file and enable debug logging",
        action="store_true"
    )

    parser.add_argument(
        "--log-file",
        help="Write a detailed run log (and a summary next to it)",
        type=str,
        default=None
    )

    return parser.parse_args(args)


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s"
    )


def run_fix(
    paths: List[str],
    mode: ProcessMode,
    destination: Optional[str],
    workers: int,
    write_exif: bool,
    verbose: bool = False,
    log_file: Optional[str] = None
) -> int:
    """Run a fix batch with a progress bar.

    Args:
        paths: Files and directories to fix.
        mode: Output mode.
        destination: Output directory or archive path.
        workers: Pool width.
        write_exif: Whether to start ExifTool.
        verbose: Report every file.
        log_file: Optional run log path.

    Returns:
        Exit code.
    """
    exiftool: Optional[ExifToolManager] = None
    if write_exif:
        exiftool = ExifToolManager()
        if not exiftool.start():
            print(f"Error: {exiftool.error}")
            print(get_install_instructions())
            print("Use --no-exif to only set filesystem timestamps.")
            return EXIT_SETUP

    cancel_event = threading.Event()

    def on_interrupt(signum, frame):
        tqdm.write("\nInterrupted! Finishing files in progress (Ctrl+C again to abort)...")
        cancel_event.set()
        signal.signal(signal.SIGINT, signal.default_int_handler)

    printer = ProgressPrinter()
    previous_handler = signal.signal(signal.SIGINT, on_interrupt)
    try:
        orchestrator = FixOrchestrator(
            paths,
            mode=mode,
            destination=destination,
            workers=workers,
            tag_writer=exiftool,
            event_sink=printer,
            cancel_event=cancel_event,
            verbose=verbose,
            log_file=log_file
        )
        print(f"\nProcess started ({mode.value} mode)...")
        with logging_redirect_tqdm():
            summary = orchestrator.run()
    except KeyboardInterrupt:
        printer.close()
        print("\nAborted.")
        return EXIT_INTERRUPTED
    finally:
        signal.signal(signal.SIGINT, previous_handler)
        if exiftool:
            exiftool.stop()

    print_summary(summary)
    return exit_code(summary)


def main(args: Optional[List[str]] = None, settings: Optional[Settings] = None) -> int:
    """Main entry point for CLI.

    Args:
        args: Command-line arguments (default: sys.argv[1:]).
        settings: Persisted defaults (default: the per-user settings file).

    Returns:
        Exit code (0 for success, non-zero for error).
    """
    parsed = parse_args(args)
    configure_logging(parsed.verbose)
    settings = settings or Settings()

    paths = parsed.path
    mode = ProcessMode(parsed.mode)
    destination = parsed.destination
    workers = parsed.workers or settings.workers
    if not paths:
        answers = run_wizard(settings)
        if answers is None:
            return EXIT_SETUP
        paths, mode, destination = answers.paths, answers.mode, answers.destination
        workers = parsed.workers or answers.workers

    settings.set("last_paths", list(paths))
    settings.set("last_mode", mode.value)
    settings.set("last_destination", destination or "")
    settings.set("workers", workers)
    settings.save()

    return run_fix(
        paths, mode, destination,
        workers=workers,
        write_exif=not parsed.no_exif,
        verbose=parsed.verbose,
        log_file=parsed.log_file
    )


if __name__ == "__main__":
    sys.exit(main())
