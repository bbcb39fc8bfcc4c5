"""Data models for the live-cam tables."""

from .analytics import StreamAnalytic
from .chat import ChatMessage
from .stream import LiveStream

__all__ = [
    "ChatMessage",
    "LiveStream",
    "StreamAnalytic",
]
