"""Live camera API routes"""

import logging
from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import FileResponse, JSONResponse
from pydantic import BaseModel, Field

from trailcam.core.dependencies import (
    get_chat_service,
    get_chunk_service,
    get_current_user_id,
    get_stream_service,
    get_thumbnail_service,
    get_viewer_service,
)
from trailcam.core.exceptions import LiveCamError, RateLimited
from trailcam.models.stream import DEFAULT_QUALITY, LiveStream
from trailcam.services import (
    ChatService,
    ChunkService,
    StreamService,
    ThumbnailService,
    ViewerService,
)
from trailcam.services.chat_service import MAX_MESSAGE_LENGTH, MAX_USERNAME_LENGTH
from trailcam.services.stream_service import recommend_quality

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/live-cam", tags=["live-cam"])

Quality = Literal["360p", "720p", "1080p"]

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


# ============================================
# Request / Response Models
# ============================================


class StreamResponse(BaseModel):
    id: int
    slug: str
    title: str
    description: str | None
    status: str
    current_quality: str
    viewer_count: int
    total_views: int
    latest_chunk_index: int
    thumbnail_url: str | None
    started_at: datetime | None
    ended_at: datetime | None
    channel: str

    @classmethod
    def from_stream(cls, stream: LiveStream) -> "StreamResponse":
        return cls(
            id=stream.id,
            slug=stream.slug,
            title=stream.title,
            description=stream.description,
            status=stream.status,
            current_quality=stream.current_quality,
            viewer_count=stream.viewer_count,
            total_views=stream.total_views,
            latest_chunk_index=stream.latest_chunk_index,
            thumbnail_url=stream.thumbnail_url,
            started_at=stream.started_at,
            ended_at=stream.ended_at,
            channel=stream.channel,
        )


class StreamCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=2000)
    quality: Quality = DEFAULT_QUALITY


class StartRequest(BaseModel):
    quality: Quality = DEFAULT_QUALITY


class TransitionResponse(BaseModel):
    success: bool
    message: str
    stream: StreamResponse


class UploadResponse(BaseModel):
    success: bool
    index: int
    size: int


class StatusResponse(BaseModel):
    is_live: bool
    status: str
    viewer_count: int
    started_at: datetime | None
    latest_chunk_index: int
    oldest_chunk_index: int


class ChatRequest(BaseModel):
    username: str = Field(min_length=1, max_length=MAX_USERNAME_LENGTH)
    message: str = Field(min_length=1, max_length=MAX_MESSAGE_LENGTH)


class ChatResponse(BaseModel):
    success: bool
    username: str
    message: str
    timestamp: datetime


class ChatHistoryItem(BaseModel):
    id: int
    username: str
    message: str
    created_at: datetime


class ChatHistoryResponse(BaseModel):
    success: bool
    messages: list[ChatHistoryItem]


class ViewerCountRequest(BaseModel):
    action: Literal["join", "leave"] | None = None
    count: int | None = Field(default=None, ge=0)


class ViewerCountResponse(BaseModel):
    success: bool
    viewer_count: int


class QualityResponse(BaseModel):
    current_quality: str
    recommended_quality: str
    viewer_count: int


class QualityUpdate(BaseModel):
    quality: Quality


class MirrorStateUpdate(BaseModel):
    is_mirrored: bool


class OrientationUpdate(BaseModel):
    orientation: Literal["portrait", "landscape"]
    width: int = Field(gt=0)
    height: int = Field(gt=0)


class ThumbnailUpload(BaseModel):
    image: str = Field(min_length=1, description="data:image/<type>;base64,<payload>")


class ThumbnailResponse(BaseModel):
    success: bool
    thumbnail_url: str


class AckResponse(BaseModel):
    success: bool


def _http_error(e: LiveCamError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.message)


# ============================================
# Streams
# ============================================


@router.get("", response_model=list[StreamResponse])
async def list_live_streams(
    service: StreamService = Depends(get_stream_service),
) -> list[StreamResponse]:
    """List streams that are currently live, most watched first"""
    try:
        streams = await service.list_live()
        return [StreamResponse.from_stream(s) for s in streams]
    except Exception as e:
        logger.exception(f"Failed to list live streams: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch streams") from None


@router.post("", response_model=StreamResponse, status_code=201)
async def create_stream(
    body: StreamCreate,
    user_id: str = Depends(get_current_user_id),
    service: StreamService = Depends(get_stream_service),
) -> StreamResponse:
    try:
        stream = await service.create(user_id, body.title, body.description, body.quality)
        return StreamResponse.from_stream(stream)
    except Exception as e:
        logger.exception(f"Failed to create stream for {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to create stream") from None


@router.get("/{stream}", response_model=StreamResponse)
async def show_stream(
    stream: str,
    service: StreamService = Depends(get_stream_service),
) -> StreamResponse:
    """Stream details for the viewer page; counts as one view"""
    try:
        found = await service.open_for_viewer(stream)
        return StreamResponse.from_stream(found)
    except LiveCamError as e:
        raise _http_error(e) from None
    except Exception as e:
        logger.exception(f"Failed to load stream {stream}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch stream") from None


@router.post("/{stream}/start", response_model=TransitionResponse)
async def start_stream(
    stream: str,
    body: StartRequest | None = None,
    user_id: str = Depends(get_current_user_id),
    service: StreamService = Depends(get_stream_service),
) -> TransitionResponse:
    quality = body.quality if body else DEFAULT_QUALITY
    try:
        current = await service.get(stream)
        started = await service.start(current, user_id, quality)
        return TransitionResponse(
            success=True, message="Stream started", stream=StreamResponse.from_stream(started)
        )
    except LiveCamError as e:
        raise _http_error(e) from None
    except Exception as e:
        logger.exception(f"Failed to start stream {stream}: {e}")
        raise HTTPException(status_code=500, detail="Failed to start stream") from None


@router.post("/{stream}/stop", response_model=TransitionResponse)
async def stop_stream(
    stream: str,
    user_id: str = Depends(get_current_user_id),
    service: StreamService = Depends(get_stream_service),
) -> TransitionResponse:
    try:
        current = await service.get(stream)
        stopped = await service.stop(current, user_id)
        return TransitionResponse(
            success=True, message="Stream stopped", stream=StreamResponse.from_stream(stopped)
        )
    except LiveCamError as e:
        raise _http_error(e) from None
    except Exception as e:
        logger.exception(f"Failed to stop stream {stream}: {e}")
        raise HTTPException(status_code=500, detail="Failed to stop stream") from None


# ============================================
# Segments
# ============================================


@router.post("/{stream}/upload-chunk", response_model=UploadResponse)
async def upload_chunk(
    stream: str,
    index: int = Form(ge=0),
    timestamp: int = Form(),
    chunk: UploadFile = File(),
    user_id: str = Depends(get_current_user_id),
    streams: StreamService = Depends(get_stream_service),
    service: ChunkService = Depends(get_chunk_service),
) -> UploadResponse:
    """Store one segment from the broadcaster (multipart: index, chunk, timestamp)"""
    if not chunk.size:
        raise HTTPException(status_code=422, detail="Chunk file is empty")

    try:
        current = await streams.get(stream)
        size = await service.upload(current, user_id, index, chunk)
        return UploadResponse(success=True, index=index, size=size)
    except LiveCamError as e:
        raise _http_error(e) from None
    except Exception as e:
        logger.exception(f"Failed to upload chunk {index} for stream {stream}: {e}")
        raise HTTPException(status_code=500, detail="Failed to upload chunk") from None
    finally:
        await chunk.close()


@router.get("/{stream}/chunk/{index}")
async def get_chunk(
    stream: str,
    index: int,
    streams: StreamService = Depends(get_stream_service),
    service: ChunkService = Depends(get_chunk_service),
) -> FileResponse:
    try:
        current = await streams.get(stream)
        path = await service.resolve(current, index)
    except LiveCamError as e:
        raise _http_error(e) from None
    except Exception as e:
        logger.exception(f"Failed to serve chunk {index} for stream {stream}: {e}")
        raise HTTPException(status_code=500, detail="Failed to serve chunk") from None

    return FileResponse(path, media_type="video/webm", headers=NO_CACHE_HEADERS)


@router.get("/{stream}/status", response_model=StatusResponse)
async def get_status(
    stream: str,
    streams: StreamService = Depends(get_stream_service),
    service: ChunkService = Depends(get_chunk_service),
) -> StatusResponse:
    try:
        current = await streams.get(stream)
        return StatusResponse(**(await service.status(current)))
    except LiveCamError as e:
        raise _http_error(e) from None
    except Exception as e:
        logger.exception(f"Failed to get status for stream {stream}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch status") from None


# ============================================
# Chat
# ============================================


@router.post("/{stream}/chat", response_model=ChatResponse)
async def send_chat(
    stream: str,
    body: ChatRequest,
    request: Request,
    streams: StreamService = Depends(get_stream_service),
    service: ChatService = Depends(get_chat_service),
):
    client_ip = request.client.host if request.client else "unknown"
    try:
        current = await streams.get(stream)
        saved = await service.send(current, client_ip, body.username, body.message)
        return ChatResponse(
            success=True,
            username=saved.username,
            message=saved.message,
            timestamp=saved.created_at,
        )
    except RateLimited as e:
        return JSONResponse(status_code=429, content={"error": e.message, "wait": e.wait})
    except LiveCamError as e:
        raise _http_error(e) from None
    except Exception as e:
        logger.exception(f"Failed to send chat message on stream {stream}: {e}")
        raise HTTPException(status_code=500, detail="Failed to send message") from None


@router.get("/{stream}/chat-history", response_model=ChatHistoryResponse)
async def chat_history(
    stream: str,
    streams: StreamService = Depends(get_stream_service),
    service: ChatService = Depends(get_chat_service),
) -> ChatHistoryResponse:
    try:
        current = await streams.get(stream)
        messages = await service.history(current)
        return ChatHistoryResponse(
            success=True,
            messages=[
                ChatHistoryItem(
                    id=m.id, username=m.username, message=m.message, created_at=m.created_at
                )
                for m in messages
            ],
        )
    except LiveCamError as e:
        raise _http_error(e) from None
    except Exception as e:
        logger.exception(f"Failed to get chat history for stream {stream}: {e}")
        raise HTTPException(status_code=500, detail="Failed to fetch chat history") from None


# ============================================
# Viewers / presentation
# ============================================


@router.post("/{stream}/viewer-count", response_model=ViewerCountResponse)
async def update_viewer_count(
    stream: str,
    body: ViewerCountRequest,
    streams: StreamService = Depends(get_stream_service),
    service: ViewerService = Depends(get_viewer_service),
) -> ViewerCountResponse:
    """Apply a join/leave signal, or a legacy absolute count"""
    if body.action is None and body.count is None:
        raise HTTPException(status_code=422, detail="Either action or count is required")

    try:
        current = await streams.get(stream)
        if body.action is not None:
            count = await service.apply_action(current, body.action)
        else:
            count = await service.apply_count(current, body.count)
        return ViewerCountResponse(success=True, viewer_count=count)
    except LiveCamError as e:
        raise _http_error(e) from None
    except Exception as e:
        logger.exception(f"Failed to update viewer count for stream {stream}: {e}")
        raise HTTPException(status_code=500, detail="Failed to update viewer count") from None


@router.get("/{stream}/quality", response_model=QualityResponse)
async def get_quality(
    stream: str,
    service: StreamService = Depends(get_stream_service),
) -> QualityResponse:
    try:
        current = await service.get(stream)
        return QualityResponse(
            current_quality=current.current_quality,
            recommended_quality=recommend_quality(current.viewer_count),
            viewer_count=current.viewer_count,
        )
    except LiveCamError as e:
        raise _http_error(e) from None


@router.post("/{stream}/quality", response_model=QualityResponse)
async def change_quality(
    stream: str,
    body: QualityUpdate,
    user_id: str = Depends(get_current_user_id),
    service: StreamService = Depends(get_stream_service),
) -> QualityResponse:
    try:
        current = await service.get(stream)
        updated = await service.change_quality(current, user_id, body.quality)
        return QualityResponse(
            current_quality=updated.current_quality,
            recommended_quality=recommend_quality(updated.viewer_count),
            viewer_count=updated.viewer_count,
        )
    except LiveCamError as e:
        raise _http_error(e) from None
    except Exception as e:
        logger.exception(f"Failed to change quality for stream {stream}: {e}")
        raise HTTPException(status_code=500, detail="Failed to change quality") from None


@router.post("/{stream}/mirror-state", response_model=AckResponse)
async def update_mirror_state(
    stream: str,
    body: MirrorStateUpdate,
    user_id: str = Depends(get_current_user_id),
    service: StreamService = Depends(get_stream_service),
) -> AckResponse:
    try:
        current = await service.get(stream)
        await service.update_mirror_state(current, user_id, body.is_mirrored)
        return AckResponse(success=True)
    except LiveCamError as e:
        raise _http_error(e) from None


@router.post("/{stream}/orientation", response_model=AckResponse)
async def update_orientation(
    stream: str,
    body: OrientationUpdate,
    user_id: str = Depends(get_current_user_id),
    service: StreamService = Depends(get_stream_service),
) -> AckResponse:
    try:
        current = await service.get(stream)
        await service.update_orientation(
            current, user_id, body.orientation, body.width, body.height
        )
        return AckResponse(success=True)
    except LiveCamError as e:
        raise _http_error(e) from None


@router.post("/{stream}/thumbnail", response_model=ThumbnailResponse)
async def upload_thumbnail(
    stream: str,
    body: ThumbnailUpload,
    user_id: str = Depends(get_current_user_id),
    streams: StreamService = Depends(get_stream_service),
    service: ThumbnailService = Depends(get_thumbnail_service),
) -> ThumbnailResponse:
    """Replace the stream's preview image (base64 data URL)"""
    try:
        current = await streams.get(stream)
        url = await service.upload(current, user_id, body.image)
        return ThumbnailResponse(success=True, thumbnail_url=url)
    except LiveCamError as e:
        raise _http_error(e) from None
    except Exception as e:
        logger.exception(f"Failed to save thumbnail for stream {stream}: {e}")
        raise HTTPException(status_code=500, detail="Failed to upload thumbnail") from None
