"""Repository for the chat_messages table."""

from __future__ import annotations

import asyncpg

from trailcam.models.chat import ChatMessage

_COLUMNS = "id, live_stream_id, username, message, created_at"


class ChatRepository:
    """Pure SQL operations for the chat_messages table."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    async def add(self, stream_id: int, username: str, message: str) -> ChatMessage:
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                INSERT INTO chat_messages (live_stream_id, username, message)
                VALUES ($1, $2, $3)
                RETURNING {_COLUMNS}
                """,
                stream_id,
                username,
                message,
            )
            return ChatMessage(**dict(row))

    async def recent(self, stream_id: int, limit: int = 100) -> list[ChatMessage]:
        """Return the newest *limit* messages in chronological order."""
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                f"""
                SELECT {_COLUMNS} FROM (
                    SELECT {_COLUMNS} FROM chat_messages
                    WHERE live_stream_id = $1
                    ORDER BY created_at DESC, id DESC
                    LIMIT $2
                ) AS latest
                ORDER BY created_at ASC, id ASC
                """,
                stream_id,
                limit,
            )
            return [ChatMessage(**dict(row)) for row in rows]

    async def clear(self, stream_id: int) -> int:
        """Delete all messages for a stream. Returns count of deleted rows."""
        async with self.pool.acquire() as conn:
            result = await conn.execute(
                "DELETE FROM chat_messages WHERE live_stream_id = $1",
                stream_id,
            )
            return int(result.split()[-1])
