"""Pre-flight limits checked before any download starts."""

import logging
from typing import List, Sequence

from artifact_worker.models.artifact import ArtifactType
from artifact_worker.models.media import MediaItem
from artifact_worker.utils.errors import GuardrailViolation

logger = logging.getLogger(__name__)

_MB = 1024 * 1024

_FILTER_TYPES = {
    ArtifactType.PHOTOS_ONLY: "PHOTO",
    ArtifactType.VIDEOS_ONLY: "VIDEO",
}


def select_media(media: Sequence[MediaItem], media_filter: ArtifactType) -> List[MediaItem]:
    """Apply a job's media filter to the catalog listing."""
    wanted = _FILTER_TYPES.get(media_filter)
    if wanted is None:
        return list(media)
    return [m for m in media if m.type == wanted]


def estimated_size(media: Sequence[MediaItem]) -> int:
    """Sum of declared sizes; unknown sizes count as zero."""
    return sum(m.size or 0 for m in media)


def check_guardrails(
    media: Sequence[MediaItem],
    max_files: int,
    max_total_bytes: int,
) -> int:
    """
    Reject media sets that are empty or too large to archive.

    Args:
        media: Media selected for the artifact
        max_files: Maximum number of files per archive
        max_total_bytes: Maximum sum of declared sizes

    Returns:
        Estimated total size in bytes

    Raises:
        GuardrailViolation: If any limit is exceeded
    """
    if not media:
        raise GuardrailViolation("No media available for download")

    if len(media) > max_files:
        raise GuardrailViolation(
            f"Too many files ({len(media)}). Maximum allowed is {max_files} files "
            "per download. Please contact support for large exports."
        )

    total = estimated_size(media)
    if total > 0 and total > max_total_bytes:
        raise GuardrailViolation(
            f"Total size too large (~{round(total / _MB)}MB). Maximum allowed is "
            f"{round(max_total_bytes / _MB)}MB per download. "
            "Please contact support for large exports."
        )

    return total
