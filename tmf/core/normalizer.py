"""Sidecar key normalization for Takeout Metadata Fixer.

Export tools mangle names in several overlapping ways:
- Sidecars get ``.json`` or ``.supplemental-metadata.json`` appended, and
  long names truncate the supplemental suffix (``.supplemental-metad.json``).
- Duplicates are numbered ``photo(1).jpg``, but their sidecar puts the number
  after the extension: ``photo.jpg(1).json``.
- Edited copies (``photo-edited.jpg``) usually share the original's sidecar.

All of this is driven by the rule tables below so the matcher and the scanner
agree on one definition of a key.
"""

import os
import re
from typing import Optional

from tmf.core.models import SUPPORTED_EXTENSIONS
from tmf.core.utils import normalize_filename


# Supplemental-metadata suffixes, longest first. Takeout truncates the
# sidecar name to fit the filesystem limit, chopping this suffix anywhere.
SUPPLEMENTAL_SUFFIXES = (
    ".supplemental-metadata",
    ".supplemental-metadat",
    ".supplemental-metada",
    ".supplemental-metad",
    ".supplemental-meta",
    ".supplemental-met",
    ".supplemental-me",
    ".supplemental-m",
    ".supplemental-",
    ".supplemental",
    ".supplementa",
    ".supplement",
    ".supplemen",
    ".suppleme",
    ".supplem",
    ".supple",
    ".suppl",
    ".supp",
    ".sup",
    ".su",
)

# Edited/variant suffixes, matched at the end of the name (before extension).
# Ordered: the first pattern that matches is the one stripped.
VARIANT_SUFFIXES = (
    re.compile(r"-edited$"),
    re.compile(r"_edited$"),
    re.compile(r"-collage$"),
    re.compile(r"-cinematic$"),
    re.compile(r"-effects$"),
    re.compile(r"-animation$"),
    re.compile(r"-remastered$"),
    re.compile(r"-pop_out$"),
    re.compile(r"_\d{13}$"),
)

DUPLICATE_MARKER = re.compile(r"\((\d{1,3})\)$")

JSON_SUFFIX = ".json"


def _split_ext(name: str):
    """Split off a known media extension, or return (name, "")."""
    stem, ext = os.path.splitext(name)
    if ext in SUPPORTED_EXTENSIONS:
        return stem, ext
    return name, ""


def _strip_supplemental(name: str) -> str:
    for suffix in SUPPLEMENTAL_SUFFIXES:
        if name.endswith(suffix):
            return name[:-len(suffix)]
    return name


def base_key(filename: str) -> str:
    """Canonical key without any optional stripping.

    Lower-cases, NFC-normalizes, removes ``.json`` and supplemental
    suffixes, and moves a duplicate marker placed after the extension in
    front of it, so ``photo.jpg(1).json`` and ``photo(1).jpg`` agree.

    Examples:
        >>> base_key("IMG_0001.JPG.supplemental-metadata(1).json")
        'img_0001(1).jpg'
        >>> base_key("photo(1).jpg")
        'photo(1).jpg'
    """
    name = normalize_filename(filename).strip().lower()
    if name.endswith(JSON_SUFFIX):
        name = name[:-len(JSON_SUFFIX)]

    # Marker after the supplemental suffix / extension: remember and re-add
    marker = ""
    match = DUPLICATE_MARKER.search(name)
    if match:
        marker = match.group(0)
        name = name[:match.start()]

    name = _strip_supplemental(name)

    if marker:
        stem, ext = _split_ext(name)
        if ext:
            name = f"{stem}{marker}{ext}"
        else:
            name = f"{name}{marker}"
    return name


def has_duplicate_marker(key: str) -> bool:
    stem, _ = _split_ext(key)
    return DUPLICATE_MARKER.search(stem) is not None


def strip_duplicate_marker(key: str) -> str:
    """Remove a trailing ``(N)`` from the stem: ``photo(1).jpg`` -> ``photo.jpg``."""
    stem, ext = _split_ext(key)
    return DUPLICATE_MARKER.sub("", stem) + ext


def variant_suffix(key: str) -> Optional[str]:
    """Return the variant suffix the key ends in (ignoring duplicates), if any."""
    stem, _ = _split_ext(strip_duplicate_marker(key))
    for pattern in VARIANT_SUFFIXES:
        match = pattern.search(stem)
        if match:
            return match.group(0)
    return None


def strip_variant_suffix(key: str) -> str:
    """Remove variant suffixes and any duplicate markers.

    Stacked suffixes are peeled until none is left, so
    ``photo-edited(1).jpg`` and ``photo-effects-edited.jpg`` both give
    ``photo.jpg``.
    """
    stem, ext = _split_ext(key)
    while True:
        stem = DUPLICATE_MARKER.sub("", stem)
        for pattern in VARIANT_SUFFIXES:
            if pattern.search(stem):
                stem = pattern.sub("", stem)
                break
        else:
            return stem + ext


def strip_extension(key: str) -> str:
    """Remove a known media extension: ``photo.jpg`` -> ``photo``."""
    stem, _ = _split_ext(key)
    return stem


def normalize_key(
    filename: str,
    strip_duplicate: bool = False,
    strip_variant: bool = False,
    strip_ext: bool = False
) -> str:
    """Derive a NormalizedKey from a filename.

    The base normalization always applies; the three flags select the
    optional reductions the matcher uses as fallbacks. The result is
    stable under repeated application with the same flags.

    Args:
        filename: Media or sidecar filename (no directory).
        strip_duplicate: Drop a ``(N)`` duplicate marker.
        strip_variant: Drop an edited/variant suffix (and the marker).
        strip_ext: Drop the media extension.

    Returns:
        Lower-case matching key.
    """
    key = base_key(filename)
    if strip_duplicate:
        key = strip_duplicate_marker(key)
    if strip_variant:
        key = strip_variant_suffix(key)
    if strip_ext:
        key = strip_extension(key)
    return key
