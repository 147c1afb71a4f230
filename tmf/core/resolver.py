"""Metadata resolution for Takeout Metadata Fixer.

Chooses one capture time, location and description per media file, in
priority order: JSON sidecar, then a date encoded in the filename, then none.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import orjson

from tmf.core.exceptions import SidecarError
from tmf.core.models import GeoData, MediaFile, MetadataSource, ResolvedMetadata

logger = logging.getLogger(__name__)


# Sidecar timestamp fields, highest priority first
TIMESTAMP_FIELDS = ("photoTakenTime", "creationTime")

# Sidecar location fields, highest priority first
GEO_FIELDS = ("geoData", "geoDataExif")

# Full date and time: 2021-06-15 14.30.00, 20210615_143000, IMG_20210615_143000
DATETIME_PATTERN = re.compile(
    r"(?<!\d)(\d{4})[-_]?(\d{2})[-_]?(\d{2})[-_ .]?(\d{2})[-_.]?(\d{2})[-_.]?(\d{2})(?!\d)"
)

# Messaging apps: IMG-20190615-WA0001.jpg, VID-20190615-WA0003.mp4
MESSAGING_PATTERN = re.compile(r"(?:IMG|VID)-(\d{4})(\d{2})(\d{2})-WA\d+", re.IGNORECASE)

# Date only: 2021-06-15, 20210615
DATE_PATTERN = re.compile(r"(?<!\d)(\d{4})[-_]?(\d{2})[-_]?(\d{2})(?!\d)")

# Capture time assumed when a filename carries only a date
NOON = (12, 0, 0)


def is_valid_timestamp(value: Optional[datetime], now: Optional[datetime] = None) -> bool:
    """Check a candidate capture instant is plausible.

    Valid iff it is not the zero epoch instant, its year is >= 1970 and
    its year is no later than next year.
    """
    if value is None:
        return False
    if value.timestamp() == 0:
        return False
    now = now or datetime.now(timezone.utc)
    return 1970 <= value.year <= now.year + 1


def parse_epoch(value: Any) -> Optional[datetime]:
    """Convert Takeout epoch seconds (string or number) to a UTC datetime."""
    if value is None or isinstance(value, bool):
        return None
    try:
        seconds = int(float(value))
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return None


def _build(year: str, month: str, day: str, hms=NOON) -> Optional[datetime]:
    try:
        return datetime(int(year), int(month), int(day), *[int(x) for x in hms], tzinfo=timezone.utc)
    except ValueError:
        return None


def timestamp_from_filename(filename: str, now: Optional[datetime] = None) -> Optional[datetime]:
    """Extract a capture time from a filename.

    Tries, in order, a full date-time, the messaging-app pattern and a bare
    date (the last two are read as 12:00:00 UTC). Every match of each
    pattern is considered; the first one giving a valid instant wins.

    Examples:
        >>> timestamp_from_filename("20210615_143000.jpg")
        datetime.datetime(2021, 6, 15, 14, 30, tzinfo=datetime.timezone.utc)
        >>> timestamp_from_filename("20210615.jpg")
        datetime.datetime(2021, 6, 15, 12, 0, tzinfo=datetime.timezone.utc)
    """
    for match in DATETIME_PATTERN.finditer(filename):
        y, mo, d, h, mi, s = match.groups()
        candidate = _build(y, mo, d, (h, mi, s))
        if is_valid_timestamp(candidate, now):
            return candidate

    for pattern in (MESSAGING_PATTERN, DATE_PATTERN):
        for match in pattern.finditer(filename):
            candidate = _build(*match.groups())
            if is_valid_timestamp(candidate, now):
                return candidate

    return None


def read_sidecar(path: str) -> Dict[str, Any]:
    """Read and parse a JSON sidecar.

    Raises:
        SidecarError: If the file cannot be read, is not valid JSON, or is
            not a JSON object.
    """
    try:
        with open(path, "rb") as f:
            content = orjson.loads(f.read())
    except OSError as e:
        raise SidecarError(path, f"cannot read: {e}") from e
    except orjson.JSONDecodeError as e:
        raise SidecarError(path, f"invalid JSON: {e}") from e

    if not isinstance(content, dict):
        raise SidecarError(path, "top level is not an object")
    return content


def _sidecar_timestamp(content: Dict[str, Any], now: Optional[datetime]) -> Optional[datetime]:
    for name in TIMESTAMP_FIELDS:
        block = content.get(name)
        if not isinstance(block, dict):
            continue
        candidate = parse_epoch(block.get("timestamp"))
        if is_valid_timestamp(candidate, now):
            return candidate
    return None


def _sidecar_geo(content: Dict[str, Any]) -> Optional[GeoData]:
    for name in GEO_FIELDS:
        geo = GeoData.from_dict(content.get(name))
        if geo is not None and geo.is_valid():
            return geo
    return None


def _sidecar_text(content: Dict[str, Any], name: str) -> Optional[str]:
    value = content.get(name)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


class MetadataResolver:
    """Resolves the metadata to apply to one media file.

    Usage:
        resolver = MetadataResolver()
        metadata = resolver.resolve(media, sidecar_path)
        if metadata.is_empty():
            skip(media)
    """

    def __init__(self, now: Optional[datetime] = None):
        """Initialize resolver.

        Args:
            now: Fixed "current time" for the validity rule (tests only).
                Defaults to the wall clock at each call.
        """
        self._now = now

    def resolve(self, media: MediaFile, sidecar_path: Optional[str] = None) -> ResolvedMetadata:
        """Resolve metadata for a media file.

        A sidecar that cannot be parsed is logged and ignored; the filename
        fallback still runs.

        Args:
            media: The media file.
            sidecar_path: Matched sidecar, if any.

        Returns:
            ResolvedMetadata; ``is_empty()`` means the file has no date.
        """
        content: Optional[Dict[str, Any]] = None
        if sidecar_path:
            try:
                content = read_sidecar(sidecar_path)
            except SidecarError as e:
                logger.warning(f"Ignoring unreadable sidecar {e.path}: {e.reason}")

        if content is not None:
            timestamp = _sidecar_timestamp(content, self._now)
            if timestamp is not None:
                return self._from_sidecar(content, sidecar_path, timestamp)

        timestamp = timestamp_from_filename(media.filename, self._now)
        if timestamp is not None:
            return ResolvedMetadata(
                timestamp=timestamp,
                source=MetadataSource.FILENAME,
                sidecar_path=sidecar_path if content is not None else None
            )

        # No date anywhere, but a caption is still worth writing
        if content is not None and _sidecar_text(content, "description"):
            return self._from_sidecar(content, sidecar_path, None)

        return ResolvedMetadata(source=MetadataSource.NONE)

    @staticmethod
    def _from_sidecar(
        content: Dict[str, Any],
        sidecar_path: Optional[str],
        timestamp: Optional[datetime]
    ) -> ResolvedMetadata:
        return ResolvedMetadata(
            timestamp=timestamp,
            geo_data=_sidecar_geo(content),
            description=_sidecar_text(content, "description"),
            title=_sidecar_text(content, "title"),
            source=MetadataSource.JSON,
            sidecar_path=sidecar_path
        )
