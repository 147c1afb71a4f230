"""Data models for Takeout Metadata Fixer."""

import os
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Tuple


# Media extensions the fixer will touch (lower-case, with dot)
IMAGE_EXTENSIONS = frozenset({
    ".jpg", ".jpeg", ".png", ".gif", ".webp", ".heic", ".tiff", ".bmp",
})
VIDEO_EXTENSIONS = frozenset({
    ".mov", ".mp4", ".m4v", ".avi", ".mkv", ".3gp", ".mpg", ".mpeg",
})
SUPPORTED_EXTENSIONS = IMAGE_EXTENSIONS | VIDEO_EXTENSIONS


class ProcessMode(str, Enum):
    """Where the fixed copy of each file ends up."""
    INPLACE = "inplace"
    MERGE = "merge"
    ZIP = "zip"


class MetadataSource(str, Enum):
    """Where the resolved capture time came from."""
    JSON = "json"
    FILENAME = "filename"
    NONE = "none"


class OutcomeStatus(str, Enum):
    """Terminal state of one file's pipeline."""
    FIXED = "fixed"
    SKIPPED_NO_DATE = "skipped-no-date"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class MediaFile:
    """A supported media file found during scanning.

    Uses __slots__ since one is created per discovered file.
    """
    path: str
    relative_path: str
    root: str
    extension: str

    @property
    def filename(self) -> str:
        return os.path.basename(self.path)

    @property
    def directory(self) -> str:
        return os.path.dirname(self.path)

    @property
    def is_video(self) -> bool:
        return self.extension in VIDEO_EXTENSIONS


@dataclass(slots=True)
class GeoData:
    """GPS coordinates from sidecar metadata."""
    latitude: float
    longitude: float
    altitude: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> Optional["GeoData"]:
        """Create from a geoData dict, or None if missing/placeholder.

        Takeout writes 0.0/0.0 when no location is known, so an exact
        zero/zero pair is treated as absent rather than as a coordinate.
        """
        if not isinstance(data, dict):
            return None
        try:
            latitude = float(data["latitude"])
            longitude = float(data["longitude"])
        except (KeyError, TypeError, ValueError):
            return None
        if latitude == 0.0 and longitude == 0.0:
            return None

        altitude = data.get("altitude")
        try:
            altitude = float(altitude) if altitude is not None else None
        except (TypeError, ValueError):
            altitude = None
        return cls(latitude=latitude, longitude=longitude, altitude=altitude)

    def is_valid(self) -> bool:
        """Check coordinates fall in the legal latitude/longitude ranges."""
        return -90 <= self.latitude <= 90 and -180 <= self.longitude <= 180


@dataclass
class ResolvedMetadata:
    """The single authoritative metadata chosen for one media file."""
    timestamp: Optional[datetime] = None
    geo_data: Optional[GeoData] = None
    description: Optional[str] = None
    title: Optional[str] = None
    source: MetadataSource = MetadataSource.NONE
    sidecar_path: Optional[str] = None

    def has_date(self) -> bool:
        return self.timestamp is not None

    def has_location(self) -> bool:
        return self.geo_data is not None and self.geo_data.is_valid()

    def has_description(self) -> bool:
        return bool(self.description)

    def is_empty(self) -> bool:
        """True when there is nothing worth writing (no date, no description)."""
        return not self.has_date() and not self.has_description()


@dataclass
class ProcessOutcome:
    """Terminal result of one file's pipeline."""
    media: MediaFile
    status: OutcomeStatus
    artifact_path: Optional[str] = None
    source: MetadataSource = MetadataSource.NONE
    sidecar_path: Optional[str] = None
    error: Optional[str] = None
    has_location: bool = False
    has_description: bool = False

    @property
    def is_fixed(self) -> bool:
        return self.status is OutcomeStatus.FIXED


@dataclass
class SidecarIndex:
    """Sidecar lookups keyed by (directory, normalized key).

    ``stems`` maps (directory, key without its media extension) for
    cross-extension matching, e.g. a live-photo .mp4 whose sidecar is
    named after the .heic.
    """
    keys: Dict[Tuple[str, str], str] = field(default_factory=dict)
    stems: Dict[Tuple[str, str], str] = field(default_factory=dict)

    def lookup(self, directory: str, key: str) -> Optional[str]:
        return self.keys.get((directory, key))

    def lookup_stem(self, directory: str, stem: str) -> Optional[str]:
        return self.stems.get((directory, stem))

    def __len__(self) -> int:
        return len(self.keys)


@dataclass
class ScanResult:
    """Everything the scanner discovered under the given roots."""
    roots: List[str]
    media: List[MediaFile] = field(default_factory=list)
    sidecars: SidecarIndex = field(default_factory=SidecarIndex)
    sidecar_count: int = 0
    unreadable: List[str] = field(default_factory=list)

    @property
    def media_count(self) -> int:
        return len(self.media)


@dataclass
class RunSummary:
    """Aggregated results of one batch run.

    Returned by FixOrchestrator.run() and carried by the RunFinished event.
    """
    mode: ProcessMode
    output_location: str = ""
    total: int = 0
    fixed: int = 0
    skipped: int = 0
    failed: int = 0
    with_gps: int = 0
    with_description: int = 0
    elapsed_time: float = 0.0
    start_time: str = ""
    end_time: str = ""
    cancelled: bool = False
    fatal_error: Optional[str] = None
    errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.fatal_error is None and self.failed == 0

    def counted(self) -> int:
        return self.fixed + self.skipped + self.failed
