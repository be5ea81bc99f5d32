"""Push-канал сессии поверх Server-Sent Events."""

from __future__ import annotations

import asyncio
from typing import AsyncIterator, Optional

from canvas_mcp.core.errors import TransportClosedError

# Сколько кадров может ждать медленного клиента, прежде чем сессия будет закрыта.
MAX_PENDING_FRAMES = 1000


class SseStream:
    """Очередь готовых SSE-кадров, которую вычитывает `StreamingResponse`.

    Очередь ограничена: переполнение считается ошибкой транспорта, и
    диспетчер удаляет такую сессию.
    """

    def __init__(self, max_pending: int = MAX_PENDING_FRAMES) -> None:
        self._queue: asyncio.Queue[Optional[str]] = asyncio.Queue(maxsize=max_pending)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def write(self, frame: str) -> None:
        if self._closed:
            raise TransportClosedError("SSE stream is closed")
        try:
            self._queue.put_nowait(frame)
        except asyncio.QueueFull:
            raise TransportClosedError("SSE stream backlog is full") from None

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._queue.full():
            # Клиент всё равно отключается; место нужно для маркера конца.
            self._queue.get_nowait()
        self._queue.put_nowait(None)

    async def frames(self) -> AsyncIterator[str]:
        while True:
            frame = await self._queue.get()
            if frame is None:
                return
            yield frame


__all__ = ["MAX_PENDING_FRAMES", "SseStream"]
