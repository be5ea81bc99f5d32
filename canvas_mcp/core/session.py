"""Хранилище и утилиты для управления сессиями MCP.

Реестр живёт в одном event loop и не использует блокировок: все мутации
(приём соединения, диспетчеризация, sweeper) выполняются синхронно между
точками `await`.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Protocol

logger = logging.getLogger("canvas_mcp.core.session")

Clock = Callable[[], float]


class PushTransport(Protocol):
    """Приёмник push-кадров одной сессии (например, SSE-поток)."""

    def write(self, frame: str) -> None: ...

    def close(self) -> None: ...


@dataclass(slots=True)
class McpSession:
    """Состояние одного логического клиентского соединения."""

    id: str
    transport: PushTransport
    last_activity: float
    authenticated: bool = False
    initialize_replied: bool = False
    client_info: Optional[Dict[str, Any]] = None
    capabilities: Optional[Dict[str, Any]] = None
    clock: Clock = field(default=time.monotonic, repr=False)

    def touch(self) -> None:
        # last_activity не убывает, даже если часы вернули меньшее значение.
        self.last_activity = max(self.last_activity, self.clock())

    def idle_for(self, now: Optional[float] = None) -> float:
        return (self.clock() if now is None else now) - self.last_activity

    def mark_ready(self) -> bool:
        """Переводит сессию в Ready. Возвращает False, если она уже там."""
        if self.authenticated:
            return False
        self.authenticated = True
        return True


class SessionRegistry:
    """Единственная таблица активных сессий, ключ: идентификатор соединения."""

    def __init__(self, max_connections: int, *, clock: Clock = time.monotonic) -> None:
        self._max_connections = max_connections
        self._clock = clock
        self._sessions: Dict[str, McpSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    @property
    def max_connections(self) -> int:
        return self._max_connections

    @property
    def clock(self) -> Clock:
        return self._clock

    def admit(self, session_id: str, transport: PushTransport) -> Optional[McpSession]:
        """Регистрирует соединение; при заполненном реестре возвращает None."""
        if len(self._sessions) >= self._max_connections:
            logger.warning("Maximum connections reached (%s), rejecting new connection", self._max_connections)
            return None
        if session_id in self._sessions:
            raise ValueError(f"Session id already in use: {session_id}")
        session = McpSession(
            id=session_id,
            transport=transport,
            last_activity=self._clock(),
            clock=self._clock,
        )
        self._sessions[session_id] = session
        logger.info("New MCP connection established: %s", session_id)
        return session

    def get(self, session_id: str) -> Optional[McpSession]:
        return self._sessions.get(session_id)

    def remove(self, session_id: str) -> None:
        session = self._sessions.pop(session_id, None)
        if session is None:
            return
        try:
            session.transport.close()
        except Exception as exc:
            logger.debug("Error closing connection %s: %s", session_id, exc)
        logger.info("MCP connection closed: %s", session_id)

    def all(self) -> List[McpSession]:
        return list(self._sessions.values())

    def clear(self) -> None:
        for session_id in list(self._sessions):
            self.remove(session_id)


__all__ = ["Clock", "McpSession", "PushTransport", "SessionRegistry"]
