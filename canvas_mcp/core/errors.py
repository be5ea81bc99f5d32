"""Исключения протокольного уровня."""

from __future__ import annotations

from typing import Any

from canvas_mcp.models.json_rpc import McpErrorCode


class McpError(Exception):
    """Ошибка, которая должна уйти клиенту как JSON-RPC `error`."""

    def __init__(self, message: str, *, code: int = McpErrorCode.INTERNAL_ERROR, data: Any = None) -> None:
        super().__init__(message)
        self.code = int(code)
        self.data = data


class TransportClosedError(RuntimeError):
    """Запись в уже закрытый push-канал."""


__all__ = ["McpError", "TransportClosedError"]
