"""On-disk preview images, one per stream.

Layout::

    <root>/stream_<id>_thumb.<ext>
"""

from __future__ import annotations

import uuid
from pathlib import Path

import aiofiles
import aiofiles.os


class ThumbnailStore:
    def __init__(self, root: Path | str, url_prefix: str = "/storage/thumbnails") -> None:
        self.root = Path(root)
        self.url_prefix = url_prefix.rstrip("/")

    @staticmethod
    def filename(stream_id: int, extension: str) -> str:
        return f"stream_{stream_id}_thumb.{extension}"

    def path(self, stream_id: int, extension: str) -> Path:
        return self.root / self.filename(stream_id, extension)

    def url(self, stream_id: int, extension: str) -> str:
        return f"{self.url_prefix}/{self.filename(stream_id, extension)}"

    async def write(self, stream_id: int, extension: str, data: bytes) -> str:
        """Replace the stream's thumbnail and return its public URL."""
        await aiofiles.os.makedirs(self.root, exist_ok=True)

        final_path = self.path(stream_id, extension)
        part_path = self.root / f".{final_path.name}.{uuid.uuid4().hex}.part"
        try:
            async with aiofiles.open(part_path, "wb") as out:
                await out.write(data)
            await aiofiles.os.replace(part_path, final_path)
        except BaseException:
            part_path.unlink(missing_ok=True)
            raise
        return self.url(stream_id, extension)
