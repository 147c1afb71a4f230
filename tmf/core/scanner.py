"""File and directory scanning for Takeout Metadata Fixer."""

import logging
import os
from typing import Iterable, Iterator, List, Optional, Set, Tuple

from tmf.core.models import MediaFile, ScanResult, SidecarIndex, SUPPORTED_EXTENSIONS
from tmf.core.normalizer import JSON_SUFFIX, base_key, strip_extension

logger = logging.getLogger(__name__)


def _walk(root: str, unreadable: List[str]) -> Iterator[Tuple[str, List[str]]]:
    """Walk a tree with an explicit stack of pending directories.

    Uses os.scandir() for cached DirEntry type info. Entries are sorted so
    the traversal order (and therefore which duplicate sidecar wins) is
    the same on every platform. Symlinked directories are followed, but
    each directory is entered at most once by (st_dev, st_ino), which
    breaks symlink cycles.

    Args:
        root: Directory to walk.
        unreadable: Receives every directory that could not be listed.

    Yields:
        Tuples of (dirpath, filenames).
    """
    visited: Set[Tuple[int, int]] = set()
    stack = [root]

    while stack:
        dirpath = stack.pop()
        try:
            st = os.stat(dirpath)
            identity = (st.st_dev, st.st_ino)
            if identity in visited:
                logger.debug(f"Already visited (symlink loop?): {dirpath}")
                continue
            visited.add(identity)

            with os.scandir(dirpath) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as e:
            logger.debug(f"Cannot read directory {dirpath}: {e}")
            unreadable.append(dirpath)
            continue

        dirs = []
        files = []
        for entry in entries:
            try:
                if entry.is_dir():
                    dirs.append(entry.path)
                else:
                    files.append(entry.name)
            except OSError as e:
                logger.debug(f"Cannot access entry {entry.path}: {e}")

        yield dirpath, files

        # Reversed so the stack pops subdirectories in name order
        stack.extend(reversed(dirs))


class FileScanner:
    """Scans one or more roots for media files and JSON sidecars.

    Usage:
        scanner = FileScanner(["/path/to/takeout"])
        result = scanner.scan()

        print(f"Found {result.media_count} media, {result.sidecar_count} sidecars")
        for media in result.media:
            ...
    """

    def __init__(self, roots: Iterable[str]):
        """Initialize scanner.

        Args:
            roots: Directories (or single media files) to scan.
        """
        self.roots = [os.path.abspath(r) for r in roots]
        self._seen: Set[str] = set()

    def scan(self) -> ScanResult:
        """Scan every root.

        Directories are walked recursively. A root that is a file is taken
        as a single media file if its extension is supported, and the JSON
        files beside it are indexed so its sidecar can still be found.

        Returns:
            ScanResult with media list and sidecar index.
        """
        result = ScanResult(roots=list(self.roots))
        self._seen = set()

        for root in self.roots:
            if os.path.isdir(root):
                for dirpath, filenames in _walk(root, result.unreadable):
                    self._classify(dirpath, filenames, root, result)
            elif os.path.isfile(root):
                self._scan_single_file(root, result)
            else:
                logger.debug(f"Skipping missing path: {root}")
                result.unreadable.append(root)

        logger.debug(
            "Scan complete: %d media, %d sidecars, %d unreadable",
            result.media_count, result.sidecar_count, len(result.unreadable)
        )
        return result

    def _scan_single_file(self, path: str, result: ScanResult) -> None:
        dirpath = os.path.dirname(path)
        filename = os.path.basename(path)
        media = self._make_media(dirpath, filename, dirpath)
        if media is None:
            logger.warning(f"Unsupported file type, skipping: {path}")
            return
        if media.path in self._seen:
            return
        self._seen.add(media.path)
        result.media.append(media)

        try:
            siblings = sorted(
                name for name in os.listdir(dirpath)
                if name.lower().endswith(JSON_SUFFIX)
            )
        except OSError as e:
            logger.debug(f"Cannot read directory {dirpath}: {e}")
            return
        for name in siblings:
            self._add_sidecar(result, dirpath, name)

    def _classify(
        self,
        dirpath: str,
        filenames: List[str],
        root: str,
        result: ScanResult
    ) -> None:
        for filename in filenames:
            if filename.lower().endswith(JSON_SUFFIX):
                self._add_sidecar(result, dirpath, filename)
                continue
            media = self._make_media(dirpath, filename, root)
            if media is not None and media.path not in self._seen:
                self._seen.add(media.path)
                result.media.append(media)

    @staticmethod
    def _make_media(dirpath: str, filename: str, root: str) -> Optional[MediaFile]:
        ext = os.path.splitext(filename)[1].lower()
        if ext not in SUPPORTED_EXTENSIONS:
            return None
        path = os.path.join(dirpath, filename)
        return MediaFile(
            path=path,
            relative_path=os.path.relpath(path, root),
            root=root,
            extension=ext
        )

    @staticmethod
    def _add_sidecar(result: ScanResult, dirpath: str, filename: str) -> None:
        """Index a sidecar under its key; the first (lexically lowest) one wins."""
        path = os.path.join(dirpath, filename)
        key = base_key(filename)
        index: SidecarIndex = result.sidecars

        existing = index.keys.get((dirpath, key))
        if existing == path:
            return
        result.sidecar_count += 1
        if existing is not None:
            logger.debug(f"Duplicate sidecar key {key!r}: keeping {existing}, ignoring {path}")
            return
        index.keys[(dirpath, key)] = path

        stem = strip_extension(key)
        if stem != key:
            index.stems.setdefault((dirpath, stem), path)


def scan_paths(roots: Iterable[str]) -> ScanResult:
    """Convenience function to scan a list of roots."""
    return FileScanner(roots).scan()
