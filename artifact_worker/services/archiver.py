"""Zip archive creation on local scratch storage."""

import asyncio
import logging
import os
import zipfile
from pathlib import Path
from typing import Sequence, Union

from artifact_worker.models.media import DownloadedFile
from artifact_worker.utils.errors import ArchiveError
from artifact_worker.utils.filenames import sanitize_entry_name, unique_name

logger = logging.getLogger(__name__)


class ZipArchiver:
    """Writes downloaded buffers into one deflated zip file."""

    def __init__(self, compression_level: int = 5) -> None:
        self.compression_level = compression_level

    async def create_archive(
        self, output_path: Union[str, Path], files: Sequence[DownloadedFile]
    ) -> int:
        """
        Write ``files`` to ``output_path`` and return the archive size.

        The zip is written on a worker thread so the event loop keeps
        serving other ticks and requests.

        Args:
            output_path: Scratch file to create (overwritten if present)
            files: Downloaded buffers to add

        Returns:
            Size of the closed archive on disk, in bytes

        Raises:
            ArchiveError: If the archive cannot be written
        """
        try:
            return await asyncio.to_thread(self._write, Path(output_path), files)
        except (OSError, zipfile.BadZipFile) as e:
            raise ArchiveError(f"Failed to write archive {output_path}: {e}")

    def _write(self, output_path: Path, files: Sequence[DownloadedFile]) -> int:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        taken: set[str] = set()

        with zipfile.ZipFile(
            output_path,
            mode="w",
            compression=zipfile.ZIP_DEFLATED,
            compresslevel=self.compression_level,
        ) as archive:
            for f in files:
                name = unique_name(sanitize_entry_name(f.filename), taken)
                taken.add(name)
                archive.writestr(name, f.content)

        # Only read the size once the archive is closed and flushed
        size = os.path.getsize(output_path)
        logger.info(f"Wrote archive {output_path.name}: {len(files)} files, {size} bytes")
        return size
