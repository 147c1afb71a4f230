"""Sidecar matching logic for Takeout Metadata Fixer.

Maps each media file to at most one JSON sidecar, using tiered lookups:
- Exact normalized key: photo.jpg <-> photo.jpg.json
- Duplicate marker dropped: photo(1).jpg <-> photo.jpg.json
- Edited variant dropped: photo-edited.jpg <-> photo.jpg.json
- Extension dropped: photo.mp4 <-> photo.json / photo.heic.json
- Literal <media path>.json on disk
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

from tmf.core.models import MediaFile, SidecarIndex
from tmf.core.normalizer import (
    base_key,
    has_duplicate_marker,
    strip_duplicate_marker,
    strip_extension,
    strip_variant_suffix,
    variant_suffix,
)
from tmf.core.utils import exists

logger = logging.getLogger(__name__)


# Strategy names, in the order they are tried
EXACT = "exact"
DUPLICATE = "duplicate"
VARIANT = "variant"
EXTENSION = "extension"
LITERAL = "literal"


@dataclass
class MatchResult:
    """Result of looking up the sidecar for one media file."""
    media: MediaFile
    sidecar_path: Optional[str] = None
    strategy: Optional[str] = None

    @property
    def found(self) -> bool:
        return self.sidecar_path is not None


class SidecarMatcher:
    """Matches media files to their JSON sidecars.

    Usage:
        matcher = SidecarMatcher(scan_result.sidecars)
        result = matcher.find_match(media)
        if result.found:
            read(result.sidecar_path)
    """

    def __init__(self, index: SidecarIndex, check_literal: bool = True):
        """Initialize matcher.

        Args:
            index: Sidecar index built by the scanner.
            check_literal: Whether to fall back to a filesystem check for
                ``<media path>.json`` when every key lookup misses.
        """
        self.index = index
        self.check_literal = check_literal

    def find_match(self, media: MediaFile) -> MatchResult:
        """Find the sidecar for a media file; first strategy to hit wins."""
        directory = media.directory
        key = base_key(media.filename)

        sidecar = self.index.lookup(directory, key)
        if sidecar:
            return MatchResult(media, sidecar, EXACT)

        if has_duplicate_marker(key):
            sidecar = self.index.lookup(directory, strip_duplicate_marker(key))
            if sidecar:
                return MatchResult(media, sidecar, DUPLICATE)

        if variant_suffix(key):
            sidecar = self.index.lookup(directory, strip_variant_suffix(key))
            if sidecar:
                return MatchResult(media, sidecar, VARIANT)

        sidecar = self._match_without_extension(directory, key)
        if sidecar:
            return MatchResult(media, sidecar, EXTENSION)

        if self.check_literal:
            literal = media.path + ".json"
            if exists(literal):
                return MatchResult(media, literal, LITERAL)

        logger.debug(f"No sidecar for {media.path}")
        return MatchResult(media)

    def _match_without_extension(self, directory: str, key: str) -> Optional[str]:
        """Try the key (and its reduced forms) without the media extension.

        Checks the primary index first (sidecar named ``photo.json``), then
        the stem index (sidecar named after a different extension).
        """
        candidates = [strip_extension(key)]
        reduced = strip_extension(strip_variant_suffix(key))
        if reduced not in candidates:
            candidates.append(reduced)

        for stem in candidates:
            sidecar = self.index.lookup(directory, stem)
            if sidecar:
                return sidecar
        for stem in candidates:
            sidecar = self.index.lookup_stem(directory, stem)
            if sidecar:
                return sidecar
        return None
