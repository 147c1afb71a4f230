"""ExifTool tag builders for Takeout Metadata Fixer.

Converts resolved metadata into ExifTool-compatible tag dictionaries. Each
builder returns only the tags it has data for, so the combined map never
carries empty or placeholder values.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from tmf.core.models import GeoData, ResolvedMetadata

# ExifTool's date/time format
EXIF_DATE_FORMAT = "%Y:%m:%d %H:%M:%S"


def format_exif_date(value: datetime) -> str:
    """Format a datetime for ExifTool, in UTC.

    Example:
        >>> format_exif_date(datetime(2021, 1, 1, tzinfo=timezone.utc))
        '2021:01:01 00:00:00'
    """
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime(EXIF_DATE_FORMAT)


def build_date_tags(timestamp: Optional[datetime], is_video: bool = False) -> Dict[str, Any]:
    """Convert a capture time to the all-dates tag group.

    AllDates covers DateTimeOriginal, CreateDate and ModifyDate. Videos also
    get the QuickTime track and media dates, which AllDates does not reach.

    Args:
        timestamp: Resolved capture time, or None.
        is_video: Whether the target is a video container.

    Returns:
        Dict of ExifTool tags, empty if timestamp is None.
    """
    if timestamp is None:
        return {}

    date_str = format_exif_date(timestamp)
    tags = {
        "AllDates": date_str,
        "FileModifyDate": date_str,
    }
    if is_video:
        tags.update({
            "QuickTime:CreateDate": date_str,
            "QuickTime:ModifyDate": date_str,
            "TrackCreateDate": date_str,
            "TrackModifyDate": date_str,
            "MediaCreateDate": date_str,
            "MediaModifyDate": date_str,
        })
    return tags


def build_gps_tags(geo_data: Optional[GeoData]) -> Dict[str, Any]:
    """Convert GPS coordinates to ExifTool tag dictionary.

    Args:
        geo_data: GeoData object with lat/lon/alt, or None.

    Returns:
        Dict of ExifTool tags, empty if geo_data is None/invalid.

    Example:
        >>> build_gps_tags(GeoData(40.7128, -74.0060, 10))
        {
            'GPSLatitude': 40.7128,
            'GPSLatitudeRef': 'N',
            'GPSLongitude': 74.0060,
            'GPSLongitudeRef': 'W',
            'GPSAltitude': 10,
            'GPSAltitudeRef': 0,
        }
    """
    if not geo_data or not geo_data.is_valid():
        return {}

    tags = {
        "GPSLatitude": abs(geo_data.latitude),
        "GPSLatitudeRef": "N" if geo_data.latitude >= 0 else "S",
        "GPSLongitude": abs(geo_data.longitude),
        "GPSLongitudeRef": "E" if geo_data.longitude >= 0 else "W",
    }
    if geo_data.altitude is not None:
        tags["GPSAltitude"] = abs(geo_data.altitude)
        tags["GPSAltitudeRef"] = 0 if geo_data.altitude >= 0 else 1
    return tags


def build_description_tags(description: Optional[str]) -> Dict[str, Any]:
    """Mirror a caption into every slot common readers look at.

    - ImageDescription: EXIF
    - XMP-dc:Description: XMP (Lightroom, digiKam)
    - Caption-Abstract: IPTC
    - UserComment: EXIF comment (Windows Explorer and older viewers)
    """
    if not description:
        return {}

    return {
        "ImageDescription": description,
        "XMP-dc:Description": description,
        "Caption-Abstract": description,
        "UserComment": description,
    }


def build_title_tags(title: Optional[str]) -> Dict[str, Any]:
    if not title:
        return {}
    return {"XMP-dc:Title": title}


def build_all_tags(metadata: ResolvedMetadata, is_video: bool = False) -> Dict[str, Any]:
    """Build the complete ExifTool tag dictionary for one file.

    Args:
        metadata: Resolved metadata.
        is_video: Whether the target is a video container.

    Returns:
        Combined dict of all tags; empty when there is nothing to write.
    """
    tags: Dict[str, Any] = {}
    tags.update(build_date_tags(metadata.timestamp, is_video))
    tags.update(build_gps_tags(metadata.geo_data))
    tags.update(build_description_tags(metadata.description))
    tags.update(build_title_tags(metadata.title))
    return tags
