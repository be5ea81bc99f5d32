"""FastAPI-маршруты MCP: SSE-поток (push) и приём сообщений (submit)."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional
from uuid import uuid4

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response, StreamingResponse

from canvas_mcp.api.sse import SseStream
from canvas_mcp.core.config import SERVER_CAPABILITIES, McpSettings
from canvas_mcp.core.session import SessionRegistry
from canvas_mcp.protocol.dispatcher import McpDispatcher
from canvas_mcp.protocol.sweeper import LivenessSweeper

logger = logging.getLogger("canvas_mcp.api.routes")

SESSION_HEADER = "mcp-session-id"

router = APIRouter()


@dataclass(slots=True)
class McpServerState:
    """Всё, что маршрутам нужно от ядра; хранится в `app.state.mcp`."""

    settings: McpSettings
    registry: SessionRegistry
    dispatcher: McpDispatcher
    sweeper: LivenessSweeper


def _state(request: Request) -> McpServerState:
    return request.app.state.mcp


@router.get("/health")
def health(request: Request) -> Dict[str, Any]:
    return {"status": "ok", "connections": len(_state(request).registry)}


@router.get("/mcp/info")
def mcp_info(request: Request) -> Dict[str, Any]:
    settings = _state(request).settings
    return {
        "protocolVersion": settings.protocol_version,
        "capabilities": SERVER_CAPABILITIES,
        "serverInfo": {"name": settings.server_name, "version": settings.server_version},
        "transport": {"type": "sse", "stream": "GET /mcp", "submit": "POST /mcp?id=<connection id>"},
    }


@router.get("/mcp")
async def mcp_stream(request: Request) -> Response:
    state = _state(request)
    connection_id = str(uuid4())
    stream = SseStream()
    session = state.registry.admit(connection_id, stream)
    if session is None:
        return JSONResponse(status_code=503, content={"error": "Maximum connections reached"})

    state.dispatcher.send_event(session, f"/mcp?id={connection_id}", event="endpoint")
    state.dispatcher.notify(
        session,
        "notifications/message",
        {"level": "info", "message": f"Connected to {state.settings.server_name}"},
    )

    async def event_stream():
        try:
            async for frame in stream.frames():
                yield frame
        finally:
            # Отключение клиента или закрытие сессии сервером.
            state.registry.remove(connection_id)

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
            SESSION_HEADER: connection_id,
        },
    )


@router.post("/mcp")
async def mcp_submit(request: Request, connection_id: Optional[str] = Query(default=None, alias="id")) -> Response:
    connection_id = connection_id or request.headers.get(SESSION_HEADER)
    if not connection_id:
        return PlainTextResponse("Missing id", status_code=400)

    body = await request.body()
    try:
        # Тело передаётся как есть: невалидный UTF-8 должен дать PARSE_ERROR.
        handled = await _state(request).dispatcher.handle_message(connection_id, body)
    except Exception:
        logger.exception("Unhandled error while processing message for %s", connection_id)
        return PlainTextResponse("Internal Server Error", status_code=500)

    if not handled:
        return PlainTextResponse("Unknown connection", status_code=404)
    return PlainTextResponse("OK")


__all__ = ["McpServerState", "SESSION_HEADER", "router"]
