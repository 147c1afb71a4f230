"""Output routing for Takeout Metadata Fixer.

Decides which file the fix is applied to:
- inplace: the original itself
- merge:   a copy under a destination directory, mirroring the source tree
- zip:     a copy under a private staging directory, appended to an archive
"""

import logging
import os
import shutil
import tempfile
from typing import Optional

from tmf.core.archive import ZipArchiveWriter
from tmf.core.exceptions import SetupError
from tmf.core.models import MediaFile, ProcessMode
from tmf.core.utils import checkout_dir, reserve_unique_path

logger = logging.getLogger(__name__)

# Files with nothing to write are parked here in merge/zip output
SKIPPED_DIR = "_SKIPPED"


class OutputRouter:
    """Maps media files to artifact paths for one run.

    Usage:
        router = OutputRouter(ProcessMode.MERGE, "/out")
        router.prepare()
        try:
            artifact = router.route(media, skipped=metadata.is_empty())
            ... fix artifact ...
            router.commit(artifact)
        finally:
            router.finalize()
    """

    def __init__(self, mode: ProcessMode, destination: Optional[str] = None):
        """Initialize router.

        Args:
            mode: Processing mode.
            destination: Output directory (merge) or archive file (zip).
                Ignored for inplace.
        """
        self.mode = ProcessMode(mode)
        self.destination = destination
        self.output_root: Optional[str] = None
        self.archive: Optional[ZipArchiveWriter] = None
        self._staging_dir: Optional[str] = None

    @property
    def copies(self) -> bool:
        """Whether artifacts are copies (the original is never touched)."""
        return self.mode is not ProcessMode.INPLACE

    def prepare(self) -> str:
        """Create output locations before any file is processed.

        Returns:
            The user-facing output location for the run summary.

        Raises:
            SetupError: If the destination is missing or unusable.
        """
        if self.mode is ProcessMode.INPLACE:
            return ""

        if not self.destination:
            raise SetupError(f"A destination is required for {self.mode.value} mode")

        if self.mode is ProcessMode.MERGE:
            try:
                self.output_root = checkout_dir(self.destination)
            except (ValueError, OSError) as e:
                raise SetupError(f"Cannot use destination {self.destination}: {e}") from e
            return self.output_root

        # zip
        if os.path.isdir(self.destination):
            raise SetupError(f"Archive destination is a directory: {self.destination}")
        try:
            parent = os.path.dirname(os.path.abspath(self.destination))
            os.makedirs(parent, exist_ok=True)
            archive_path = reserve_unique_path(self.destination)
            self._staging_dir = tempfile.mkdtemp(prefix="tmf_staging_")
            self.archive = ZipArchiveWriter(archive_path)
            self.archive.open()
        except OSError as e:
            self._remove_staging()
            raise SetupError(f"Cannot create archive {self.destination}: {e}") from e

        self.output_root = self._staging_dir
        return archive_path

    def artifact_path(self, media: MediaFile, skipped: bool = False) -> str:
        """Where the fixed copy of ``media`` belongs (before disambiguation).

        Args:
            media: The media file.
            skipped: Nothing will be written to it; park it under _SKIPPED.
        """
        if self.mode is ProcessMode.INPLACE:
            return media.path
        if skipped:
            return os.path.join(self.output_root, SKIPPED_DIR, media.relative_path)
        return os.path.join(self.output_root, media.relative_path)

    def route(self, media: MediaFile, skipped: bool = False) -> str:
        """Resolve the artifact path and copy the original there if needed.

        The copy keeps the original's filesystem timestamps (shutil.copy2),
        so a file that gets no new date still carries its old one.

        Returns:
            Path the fix must be applied to.

        Raises:
            OSError: If the copy fails.
        """
        target = self.artifact_path(media, skipped)
        if not self.copies:
            return target

        os.makedirs(os.path.dirname(target), exist_ok=True)
        dest = reserve_unique_path(target)
        try:
            shutil.copy2(media.path, dest)
        except OSError:
            self.discard(dest)
            raise
        return dest

    def commit(self, artifact: str) -> None:
        """Hand a finished artifact to the output.

        In zip mode the staged copy is appended to the archive and then
        removed, so staging never holds more than the files in flight.
        """
        if self.archive is None:
            return
        self.archive.add(artifact, os.path.relpath(artifact, self._staging_dir))
        try:
            os.remove(artifact)
        except OSError as e:
            logger.warning(f"Could not remove staged copy {artifact}: {e}")

    def discard(self, artifact: Optional[str]) -> None:
        """Remove a copy that failed mid-fix; originals are never removed."""
        if not self.copies or not artifact:
            return
        try:
            os.remove(artifact)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not remove incomplete copy {artifact}: {e}")

    def finalize(self) -> None:
        """Close the archive and remove the staging directory (zip mode)."""
        if self.archive is not None:
            self.archive.close()
        self._remove_staging()

    def _remove_staging(self) -> None:
        if self._staging_dir:
            shutil.rmtree(self._staging_dir, ignore_errors=True)
            self._staging_dir = None
