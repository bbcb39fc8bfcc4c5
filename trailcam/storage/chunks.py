"""On-disk segment storage for live streams.

Layout::

    <root>/<stream_id>/chunk_<index>.webm

Uploads land in a ``.part`` file first and are renamed into place, so a
reader either sees the whole segment or nothing.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import aiofiles
import aiofiles.os

logger = logging.getLogger(__name__)

CHUNK_RE = re.compile(r"^chunk_(\d+)\.webm$")
READ_SIZE = 1024 * 1024  # 1 MiB per read while persisting uploads


class AsyncReadable(Protocol):
    async def read(self, size: int = -1) -> bytes: ...


@dataclass
class SweepReport:
    """Totals from a storage sweep."""

    files_deleted: int = 0
    bytes_freed: int = 0
    dirs_removed: int = 0

    @property
    def megabytes_freed(self) -> float:
        return round(self.bytes_freed / 1024 / 1024, 2)


def _unlink(path: Path) -> int:
    """Delete a file, returning its size. Missing files count as zero."""
    try:
        size = path.stat().st_size
        path.unlink()
        return size
    except FileNotFoundError:
        return 0


def _rmdir_if_empty(path: Path) -> bool:
    try:
        path.rmdir()
        return True
    except OSError:
        return False


class ChunkStore:
    """Filesystem operations for stream segments."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def stream_dir(self, stream_id: int) -> Path:
        return self.root / str(stream_id)

    def chunk_path(self, stream_id: int, index: int) -> Path:
        return self.stream_dir(stream_id) / f"chunk_{index}.webm"

    # ------------------------------------------------------------------
    # Write / read
    # ------------------------------------------------------------------

    async def write(self, stream_id: int, index: int, source: AsyncReadable) -> int:
        """Persist a segment from *source*; returns bytes written."""
        directory = self.stream_dir(stream_id)
        await aiofiles.os.makedirs(directory, exist_ok=True)

        final_path = self.chunk_path(stream_id, index)
        part_path = directory / f".{final_path.name}.{uuid.uuid4().hex}.part"

        size = 0
        try:
            async with aiofiles.open(part_path, "wb") as out:
                while data := await source.read(READ_SIZE):
                    size += len(data)
                    await out.write(data)
            await aiofiles.os.replace(part_path, final_path)
        except BaseException:
            _unlink(part_path)
            raise
        return size

    def stat(self, stream_id: int, index: int) -> os.stat_result | None:
        try:
            return self.chunk_path(stream_id, index).stat()
        except FileNotFoundError:
            return None

    def indices(self, stream_id: int, modified_since: float | None = None) -> list[int]:
        """Sorted segment indices on disk, optionally only those with mtime >= *modified_since*."""
        directory = self.stream_dir(stream_id)
        if not directory.is_dir():
            return []

        found: list[int] = []
        for entry in directory.iterdir():
            match = CHUNK_RE.match(entry.name)
            if not match:
                continue
            if modified_since is not None:
                try:
                    if int(entry.stat().st_mtime) < int(modified_since):
                        continue
                except FileNotFoundError:
                    continue
            found.append(int(match.group(1)))
        return sorted(found)

    def delete(self, stream_id: int, index: int) -> bool:
        """Remove one segment. Returns False when it was already gone."""
        path = self.chunk_path(stream_id, index)
        existed = path.exists()
        _unlink(path)
        return existed

    # ------------------------------------------------------------------
    # Eviction
    # ------------------------------------------------------------------

    def sweep_all(self, stream_id: int) -> int:
        """Delete every segment of a stream along with its directory."""
        directory = self.stream_dir(stream_id)
        if not directory.is_dir():
            return 0
        count = sum(1 for entry in directory.iterdir() if CHUNK_RE.match(entry.name))
        shutil.rmtree(directory, ignore_errors=True)
        if count:
            logger.info(f"Purged {count} chunk(s) for stream {stream_id}")
        return count

    def sweep_before(self, stream_id: int, bound: int, keep_init: bool = True) -> int:
        """Delete segments with index < *bound*; index 0 survives when *keep_init*."""
        deleted = 0
        for index in self.indices(stream_id):
            if index >= bound:
                break
            if keep_init and index == 0:
                continue
            if self.delete(stream_id, index):
                deleted += 1

        directory = self.stream_dir(stream_id)
        if directory.is_dir() and not any(directory.iterdir()):
            _rmdir_if_empty(directory)

        if deleted:
            logger.debug(f"Evicted {deleted} chunk(s) below {bound} for stream {stream_id}")
        return deleted

    def sweep_storage(
        self, max_age_seconds: float | None = None, everything: bool = False
    ) -> SweepReport:
        """Administrative sweep across every stream directory.

        Deletes segments whose mtime is older than *max_age_seconds*, or all of
        them when *everything* is set, then removes directories left empty.
        """
        report = SweepReport()
        if not self.root.is_dir():
            return report

        cutoff = time.time() - max_age_seconds if max_age_seconds is not None else None

        for directory in sorted(p for p in self.root.iterdir() if p.is_dir()):
            for entry in list(directory.iterdir()):
                if not (CHUNK_RE.match(entry.name) or entry.name.endswith(".part")):
                    continue
                try:
                    mtime = entry.stat().st_mtime
                except FileNotFoundError:
                    continue
                if everything or (cutoff is not None and mtime < cutoff):
                    size = _unlink(entry)
                    report.files_deleted += 1
                    report.bytes_freed += size
                    logger.debug(f"Deleted {entry} ({size / 1024:.2f} KB)")

            if not any(directory.iterdir()) and _rmdir_if_empty(directory):
                report.dirs_removed += 1
                logger.debug(f"Removed empty directory for stream {directory.name}")

        return report
