"""Stream preview images posted by the broadcaster as data URLs."""

from __future__ import annotations

import base64
import binascii
import logging
import re
import time
from collections.abc import Callable

from trailcam.core.exceptions import InvalidImage
from trailcam.models.stream import LiveStream
from trailcam.repositories import StreamRepository
from trailcam.services.stream_service import StreamService
from trailcam.storage.thumbnails import ThumbnailStore

logger = logging.getLogger(__name__)

DEFAULT_EXTENSION = "jpeg"

_DATA_URL_RE = re.compile(r"^data:image/([A-Za-z0-9]+);base64,")


def decode_data_url(image: str) -> tuple[str, bytes]:
    """Split ``data:image/<ext>;base64,<payload>`` into extension and bytes.

    A bare base64 payload is accepted and treated as JPEG.
    """
    extension = DEFAULT_EXTENSION
    match = _DATA_URL_RE.match(image)
    if match:
        extension = match.group(1).lower()
        image = image[match.end():]

    try:
        data = base64.b64decode(image, validate=True)
    except (binascii.Error, ValueError):
        raise InvalidImage() from None
    if not data:
        raise InvalidImage()
    return extension, data


class ThumbnailService:
    def __init__(
        self,
        streams: StreamRepository,
        store: ThumbnailStore,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.streams = streams
        self.store = store
        self._clock = clock

    async def upload(self, stream: LiveStream, user_id: str, image: str) -> str:
        """Save the image and point the stream at it. Returns the public URL.

        The stored URL carries a ``?v=`` stamp so browsers refetch after each
        upload; the returned URL does not.
        """
        StreamService.ensure_owner(stream, user_id)
        extension, data = decode_data_url(image)

        url = await self.store.write(stream.id, extension, data)
        await self.streams.set_thumbnail(stream.id, f"{url}?v={int(self._clock())}")

        logger.info(f"Thumbnail updated for stream {stream.id} ({extension}, {len(data)} bytes)")
        return url
