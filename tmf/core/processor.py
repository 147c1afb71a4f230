"""Per-file fix pipeline for Takeout Metadata Fixer.

match -> resolve -> route -> write tags -> write filesystem timestamps
"""

import logging
import os
from datetime import datetime
from typing import Optional, Protocol, Any, Dict

import filedate

from tmf.core.exceptions import TMFError
from tmf.core.matcher import SidecarMatcher
from tmf.core.metadata import build_all_tags
from tmf.core.models import MediaFile, ResolvedMetadata, ProcessOutcome, OutcomeStatus
from tmf.core.resolver import MetadataResolver
from tmf.core.router import OutputRouter
from tmf.core.utils import get_file_times

logger = logging.getLogger(__name__)


class TagWriter(Protocol):
    """Anything that can write an ExifTool tag map to a file.

    ExifToolManager is the real implementation; tests pass mocks.
    """

    def write_tags(self, filepath: str, tags: Dict[str, Any]) -> None:
        ...


def set_file_times(filepath: str, timestamp: datetime) -> None:
    """Set modify and access time of a file to the capture instant."""
    filedate.File(filepath).set(modified=timestamp, accessed=timestamp)


def _reason(error: Exception) -> str:
    """Short, single-line reason for an outcome message."""
    if isinstance(error, TMFError):
        return str(error)
    if isinstance(error, OSError) and error.strerror:
        return error.strerror
    return f"{error.__class__.__name__}: {error}"


class FileProcessor:
    """Runs the fix pipeline for one media file at a time.

    Safe to call from many worker threads at once: the matcher and resolver
    only read shared state, the router reserves paths atomically, and the
    tag writer serializes its own requests.

    Usage:
        processor = FileProcessor(matcher, resolver, router, tag_writer)
        outcome = processor.process(media)
        if outcome.status is OutcomeStatus.ERROR:
            print(outcome.error)
    """

    def __init__(
        self,
        matcher: SidecarMatcher,
        resolver: MetadataResolver,
        router: OutputRouter,
        tag_writer: Optional[TagWriter] = None
    ):
        """Initialize processor.

        Args:
            matcher: Sidecar matcher built from the scan's index.
            resolver: Metadata resolver.
            router: Prepared output router.
            tag_writer: ExifTool handle, or None to only set filesystem
                timestamps (descriptions and GPS are then not written).
        """
        self.matcher = matcher
        self.resolver = resolver
        self.router = router
        self.tag_writer = tag_writer

    def process(self, media: MediaFile) -> ProcessOutcome:
        """Fix one file. Never raises; failures become ERROR outcomes.

        Args:
            media: The media file.

        Returns:
            Exactly one terminal outcome for the file.
        """
        artifact: Optional[str] = None
        sidecar: Optional[str] = None
        metadata = ResolvedMetadata()
        try:
            original_times = get_file_times(media.path)
            sidecar = self.matcher.find_match(media).sidecar_path
            metadata = self.resolver.resolve(media, sidecar)

            skipped = not self._has_work(metadata)
            artifact = self.router.route(media, skipped=skipped)

            if skipped:
                self.router.commit(artifact)
                return self._outcome(
                    media, OutcomeStatus.SKIPPED_NO_DATE, artifact, metadata, sidecar
                )

            wrote_tags = self._write_tags(artifact, media, metadata)

            # Tag writes touch the modify time, so filesystem times go last
            if metadata.has_date():
                set_file_times(artifact, metadata.timestamp)
            elif wrote_tags:
                os.utime(artifact, original_times)

            self.router.commit(artifact)
            return self._outcome(
                media, OutcomeStatus.FIXED, artifact, metadata, sidecar, wrote_tags
            )

        except Exception as e:
            reason = _reason(e)
            logger.debug(f"Failed to fix {media.path}: {reason}", exc_info=True)
            self.router.discard(artifact)
            outcome = self._outcome(media, OutcomeStatus.ERROR, None, metadata, sidecar)
            outcome.error = reason
            return outcome

    def _has_work(self, metadata: ResolvedMetadata) -> bool:
        if metadata.has_date():
            return True
        # A caption alone needs ExifTool to be of any use
        return metadata.has_description() and self.tag_writer is not None

    def _write_tags(self, artifact: str, media: MediaFile, metadata: ResolvedMetadata) -> bool:
        """Write the tag map to the artifact.

        Returns:
            True if a tag write happened.

        Raises:
            TagWriteError: Propagated from the tag writer.
        """
        if self.tag_writer is None:
            return False
        tags = build_all_tags(metadata, media.is_video)
        if not tags:
            return False
        self.tag_writer.write_tags(artifact, tags)
        return True

    @staticmethod
    def _outcome(
        media: MediaFile,
        status: OutcomeStatus,
        artifact: Optional[str],
        metadata: ResolvedMetadata,
        sidecar: Optional[str],
        wrote_tags: bool = False
    ) -> ProcessOutcome:
        return ProcessOutcome(
            media=media,
            status=status,
            artifact_path=artifact,
            source=metadata.source,
            sidecar_path=sidecar,
            has_location=wrote_tags and metadata.has_location(),
            has_description=wrote_tags and metadata.has_description()
        )
