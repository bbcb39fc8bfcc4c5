"""Dependency injection utilities for FastAPI"""

import logging
from functools import lru_cache

import asyncpg
from fastapi import Cookie, Depends, Header, HTTPException

from trailcam.core.config import get_settings
from trailcam.core.database import get_database_manager
from trailcam.repositories import AnalyticsRepository, ChatRepository, StreamRepository
from trailcam.services import (
    AuthService,
    ChatService,
    ChunkService,
    FixedWindowRateLimiter,
    LogPublisher,
    Publisher,
    PusherPublisher,
    StreamService,
    ThumbnailService,
    ViewerService,
)
from trailcam.storage import ChunkStore, ThumbnailStore

logger = logging.getLogger(__name__)


# ============================================
# Infrastructure
# ============================================


def get_db_pool() -> asyncpg.Pool:
    db_manager = get_database_manager()
    if db_manager is None or not db_manager.is_connected:
        raise HTTPException(status_code=503, detail="Database not ready")
    return db_manager.pool


@lru_cache
def get_chunk_store() -> ChunkStore:
    """Shared segment store rooted at the configured storage directory."""
    return ChunkStore(get_settings().storage_dir)


@lru_cache
def get_thumbnail_store() -> ThumbnailStore:
    settings = get_settings()
    return ThumbnailStore(settings.thumbnail_dir, settings.thumbnail_url_prefix)


@lru_cache
def get_chat_rate_limiter() -> FixedWindowRateLimiter:
    """Process-wide chat limiter; windows must outlive individual requests."""
    settings = get_settings()
    return FixedWindowRateLimiter(
        limit=settings.chat_rate_limit, window=settings.chat_rate_window_seconds
    )


_publisher: Publisher | None = None


def get_publisher() -> Publisher:
    """Get shared publisher singleton for the configured broadcast driver."""
    global _publisher
    if _publisher is None:
        settings = get_settings()
        if settings.broadcast_driver == "pusher":
            _publisher = PusherPublisher(
                app_id=settings.pusher_app_id,
                key=settings.pusher_key,
                secret=settings.pusher_secret,
                cluster=settings.pusher_cluster,
            )
        else:
            _publisher = LogPublisher()
        logger.info(f"Broadcast driver: {settings.broadcast_driver}")
    return _publisher


async def close_publisher() -> None:
    """Close the shared publisher. Call on app shutdown."""
    global _publisher
    if _publisher is not None:
        await _publisher.close()
        _publisher = None


# ============================================
# Repositories
# ============================================


def get_stream_repository(pool: asyncpg.Pool = Depends(get_db_pool)) -> StreamRepository:
    return StreamRepository(pool)


def get_chat_repository(pool: asyncpg.Pool = Depends(get_db_pool)) -> ChatRepository:
    return ChatRepository(pool)


def get_analytics_repository(pool: asyncpg.Pool = Depends(get_db_pool)) -> AnalyticsRepository:
    return AnalyticsRepository(pool)


# ============================================
# Service Dependencies
# ============================================


def get_auth_service() -> AuthService:
    """Get AuthService instance (dependency injection)"""
    settings = get_settings()
    return AuthService(
        secret_key=settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
        expire_days=settings.jwt_expire_days,
    )


def get_stream_service(
    streams: StreamRepository = Depends(get_stream_repository),
    chats: ChatRepository = Depends(get_chat_repository),
    chunks: ChunkStore = Depends(get_chunk_store),
    publisher: Publisher = Depends(get_publisher),
    limiter: FixedWindowRateLimiter = Depends(get_chat_rate_limiter),
) -> StreamService:
    return StreamService(streams, chats, chunks, publisher, limiter)


def get_chunk_service(
    streams: StreamRepository = Depends(get_stream_repository),
    chunks: ChunkStore = Depends(get_chunk_store),
    publisher: Publisher = Depends(get_publisher),
) -> ChunkService:
    settings = get_settings()
    return ChunkService(
        streams,
        chunks,
        publisher,
        window=settings.chunk_window,
        max_age_seconds=settings.max_chunk_age_seconds,
    )


def get_chat_service(
    chats: ChatRepository = Depends(get_chat_repository),
    publisher: Publisher = Depends(get_publisher),
    limiter: FixedWindowRateLimiter = Depends(get_chat_rate_limiter),
) -> ChatService:
    return ChatService(chats, publisher, limiter)


def get_viewer_service(
    streams: StreamRepository = Depends(get_stream_repository),
    analytics: AnalyticsRepository = Depends(get_analytics_repository),
    publisher: Publisher = Depends(get_publisher),
) -> ViewerService:
    return ViewerService(streams, analytics, publisher)



def get_thumbnail_service(
    streams: StreamRepository = Depends(get_stream_repository),
    store: ThumbnailStore = Depends(get_thumbnail_store),
) -> ThumbnailService:
    return ThumbnailService(streams, store)

# ============================================
# Authentication Dependencies
# ============================================


def _extract_token(auth_token: str | None, authorization: str | None) -> str | None:
    if auth_token:
        return auth_token
    if authorization:
        scheme, _, credentials = authorization.partition(" ")
        if scheme.lower() == "bearer" and credentials:
            return credentials.strip()
    return None


async def get_current_user_id(
    auth_token: str | None = Cookie(None),
    authorization: str | None = Header(None),
    auth_service: AuthService = Depends(get_auth_service),
) -> str:
    """Return the broadcaster id (JWT ``sub``) from cookie or bearer header"""
    token = _extract_token(auth_token, authorization)
    if not token:
        logger.warning("No auth token provided")
        raise HTTPException(status_code=401, detail="Not logged in")

    payload = auth_service.verify_token(token)
    if not payload:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    return str(payload["sub"])
