"""Периодическая очистка неактивных сессий и heartbeat-уведомления."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import List, Optional

from canvas_mcp.core.config import McpSettings
from canvas_mcp.core.session import SessionRegistry
from canvas_mcp.protocol.dispatcher import McpDispatcher
from canvas_mcp.utils.timestamps import utc_timestamp

logger = logging.getLogger("canvas_mcp.protocol.sweeper")

HEARTBEAT_METHOD = "notifications/ping"


class LivenessSweeper:
    """Раз в `heartbeat_interval` вытесняет устаревшие сессии и пингует остальные."""

    def __init__(self, registry: SessionRegistry, dispatcher: McpDispatcher, *, settings: McpSettings) -> None:
        self._registry = registry
        self._dispatcher = dispatcher
        self._settings = settings
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def tick(self) -> List[str]:
        """Один проход; возвращает идентификаторы вытесненных сессий."""
        now = self._registry.clock()
        timeout = self._settings.connection_timeout
        evicted: List[str] = []
        for session in self._registry.all():
            if session.idle_for(now) > timeout:
                logger.info("Cleaning up stale connection: %s", session.id)
                self._registry.remove(session.id)
                evicted.append(session.id)

        params = {"timestamp": utc_timestamp()}
        for session in self._registry.all():
            # Сессия могла закрыться, пока шла рассылка.
            if session.id not in self._registry:
                continue
            # Heartbeat не продлевает сессию: last_activity меняют только запросы и ответы.
            self._dispatcher.notify(session, HEARTBEAT_METHOD, params, touch=False)
        return evicted

    async def run(self) -> None:
        interval = self._settings.heartbeat_interval
        while True:
            await asyncio.sleep(interval)
            try:
                self.tick()
            except Exception:
                logger.exception("Liveness sweep failed")

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self.run(), name="mcp-liveness-sweeper")

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task


__all__ = ["HEARTBEAT_METHOD", "LivenessSweeper"]
