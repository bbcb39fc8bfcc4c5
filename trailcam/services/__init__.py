"""Services layer - Business logic

Services are initialized with their repositories and collaborators and are
handed to routers through dependency injection.
"""

from .auth_service import AuthService
from .chat_service import ChatService
from .chunk_service import ChunkService
from .publisher import LogPublisher, Publisher, PusherPublisher
from .rate_limiter import FixedWindowRateLimiter
from .stream_service import StreamService
from .thumbnail_service import ThumbnailService
from .viewer_service import ViewerService

__all__ = [
    "AuthService",
    "ChatService",
    "ChunkService",
    "FixedWindowRateLimiter",
    "LogPublisher",
    "Publisher",
    "PusherPublisher",
    "StreamService",
    "ThumbnailService",
    "ViewerService",
]
