"""Core processing logic for Takeout Metadata Fixer."""

from tmf.core.models import (
    IMAGE_EXTENSIONS,
    VIDEO_EXTENSIONS,
    SUPPORTED_EXTENSIONS,
    ProcessMode,
    MetadataSource,
    OutcomeStatus,
    MediaFile,
    GeoData,
    ResolvedMetadata,
    ProcessOutcome,
    SidecarIndex,
    ScanResult,
    RunSummary,
)

from tmf.core.exceptions import (
    TMFError,
    SetupError,
    SidecarError,
    TagWriteError,
)

from tmf.core.utils import (
    exists,
    normalize_path,
    reserve_unique_path,
    checkout_dir,
)

from tmf.core.normalizer import (
    base_key,
    normalize_key,
)

from tmf.core.scanner import (
    FileScanner,
    scan_paths,
)

from tmf.core.matcher import (
    SidecarMatcher,
    MatchResult,
)

from tmf.core.resolver import (
    MetadataResolver,
    timestamp_from_filename,
    read_sidecar,
)

from tmf.core.metadata import (
    build_date_tags,
    build_gps_tags,
    build_description_tags,
    build_all_tags,
)

from tmf.core.exiftool import (
    get_exiftool_path,
    is_exiftool_available,
    ExifToolManager,
)

from tmf.core.events import (
    ScanStarted,
    ScanSummary,
    LogMessage,
    Progress,
    RunFinished,
    EventCollector,
)

from tmf.core.logger import (
    BufferedLogger,
    write_summary,
)

from tmf.core.archive import (
    ZipArchiveWriter,
)

from tmf.core.router import (
    OutputRouter,
)

from tmf.core.processor import (
    FileProcessor,
)

from tmf.core.orchestrator import (
    FixOrchestrator,
    DEFAULT_WORKERS,
)

__all__ = [
    # Models
    "IMAGE_EXTENSIONS",
    "VIDEO_EXTENSIONS",
    "SUPPORTED_EXTENSIONS",
    "ProcessMode",
    "MetadataSource",
    "OutcomeStatus",
    "MediaFile",
    "GeoData",
    "ResolvedMetadata",
    "ProcessOutcome",
    "SidecarIndex",
    "ScanResult",
    "RunSummary",
    # Exceptions
    "TMFError",
    "SetupError",
    "SidecarError",
    "TagWriteError",
    # Utils
    "exists",
    "normalize_path",
    "reserve_unique_path",
    "checkout_dir",
    # Normalizer
    "base_key",
    "normalize_key",
    # Scanner
    "FileScanner",
    "scan_paths",
    # Matcher
    "SidecarMatcher",
    "MatchResult",
    # Resolver
    "MetadataResolver",
    "timestamp_from_filename",
    "read_sidecar",
    # Metadata
    "build_date_tags",
    "build_gps_tags",
    "build_description_tags",
    "build_all_tags",
    # ExifTool
    "get_exiftool_path",
    "is_exiftool_available",
    "ExifToolManager",
    # Events
    "ScanStarted",
    "ScanSummary",
    "LogMessage",
    "Progress",
    "RunFinished",
    "EventCollector",
    # Logger
    "BufferedLogger",
    "write_summary",
    # Output
    "ZipArchiveWriter",
    "OutputRouter",
    # Processor
    "FileProcessor",
    # Orchestrator
    "FixOrchestrator",
    "DEFAULT_WORKERS",
]
