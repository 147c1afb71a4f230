"""Takeout Metadata Fixer - Restore capture dates, GPS and captions to exported media.

Google Takeout and similar exports strip EXIF dates and keep them in JSON
sidecar files next to each photo. This package matches every media file
with its sidecar and writes the metadata back.

High-level API:
    from tmf import FixOrchestrator, ProcessMode

    orchestrator = FixOrchestrator(
        ["/path/to/Takeout"],
        mode=ProcessMode.MERGE,
        destination="/path/to/fixed"
    )
    summary = orchestrator.run()
    print(f"Fixed {summary.fixed} of {summary.total} files")
"""

__version__ = "1.0.0"

# Public API exports
from tmf.core.orchestrator import FixOrchestrator
from tmf.core.events import EventCollector
from tmf.core.models import (
    ProcessMode,
    MetadataSource,
    OutcomeStatus,
    MediaFile,
    GeoData,
    ResolvedMetadata,
    ProcessOutcome,
    RunSummary,
)

__all__ = [
    "FixOrchestrator",
    "EventCollector",
    "ProcessMode",
    "MetadataSource",
    "OutcomeStatus",
    "MediaFile",
    "GeoData",
    "ResolvedMetadata",
    "ProcessOutcome",
    "RunSummary",
    "__version__",
]
