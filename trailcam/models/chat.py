"""Data model for the chat_messages table."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass
class ChatMessage:
    """A single chat line posted to a live stream."""

    id: int
    live_stream_id: int
    username: str
    message: str
    created_at: datetime
