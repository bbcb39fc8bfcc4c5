"""Rate-limited chat relay for live streams."""

from __future__ import annotations

import html
import logging

import bleach

from trailcam.core.exceptions import RateLimited, StreamNotLive, ValidationFailed
from trailcam.models.chat import ChatMessage
from trailcam.models.stream import LiveStream
from trailcam.repositories import ChatRepository
from trailcam.services.publisher import Publisher, publish_safely
from trailcam.services.rate_limiter import FixedWindowRateLimiter

logger = logging.getLogger(__name__)

MAX_USERNAME_LENGTH = 50
MAX_MESSAGE_LENGTH = 200
HISTORY_LIMIT = 100


def strip_markup(text: str) -> str:
    """Drop every HTML tag and keep the remaining text as typed.

    Output is plain text; clients escape it when rendering.
    """
    cleaned = bleach.clean(text, tags=set(), attributes={}, strip=True)
    return html.unescape(cleaned).strip()


class ChatService:
    """Stores and fans out viewer chat, throttled per (stream, client IP)."""

    def __init__(
        self,
        chats: ChatRepository,
        publisher: Publisher,
        limiter: FixedWindowRateLimiter,
    ) -> None:
        self.chats = chats
        self.publisher = publisher
        self.limiter = limiter

    async def send(
        self, stream: LiveStream, client_ip: str, username: str, message: str
    ) -> ChatMessage:
        if not stream.is_live:
            raise StreamNotLive()

        key = (stream.id, client_ip)
        decision = self.limiter.hit(key)
        if not decision.allowed:
            logger.info(
                f"Chat rate limit hit on stream {stream.id} from {client_ip} "
                f"(wait={decision.wait}s)"
            )
            raise RateLimited(decision.wait)

        # Only stored messages count against the window
        try:
            clean_username = strip_markup(username)
            clean_message = strip_markup(message)
            if not clean_username or not clean_message:
                raise ValidationFailed("Username and message must contain text")

            saved = await self.chats.add(stream.id, clean_username, clean_message)
        except Exception:
            self.limiter.refund(key)
            raise

        await publish_safely(
            self.publisher,
            stream.channel,
            "chat-message",
            {
                "username": saved.username,
                "message": saved.message,
                "timestamp": saved.created_at.isoformat(),
            },
        )
        return saved

    async def history(self, stream: LiveStream) -> list[ChatMessage]:
        return await self.chats.recent(stream.id, HISTORY_LIMIT)
