# canvas_mcp/main.py
"""Точка входа FastAPI: MCP-сервер, проксирующий вызовы инструментов в Canvas LMS.

Клиент открывает SSE-поток `GET /mcp`, получает событие `endpoint` с адресом
для `POST /mcp?id=...` и дальше общается JSON-RPC конвертами: запросы уходят
POST-ом, ответы и уведомления приходят в поток.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI

from .api import McpServerState, router as api_router
from .core.config import CANVAS_SETTINGS, LOG_LEVEL, MCP_SETTINGS, CanvasSettings, McpSettings
from .core.session import SessionRegistry
from .protocol.dispatcher import ClientFactory, McpDispatcher
from .protocol.sweeper import LivenessSweeper
from .services.canvas_client import CanvasAPIClient
from .tools.handlers import ToolCatalog


logger = logging.getLogger("canvas_mcp")
if not logging.getLogger().handlers:
    logging.basicConfig(level=getattr(logging, LOG_LEVEL, logging.INFO))


def create_app(
    settings: Optional[McpSettings] = None,
    *,
    canvas_settings: Optional[CanvasSettings] = None,
    catalog: Optional[ToolCatalog] = None,
    client_factory: Optional[ClientFactory] = None,
    registry: Optional[SessionRegistry] = None,
) -> FastAPI:
    """Собирает приложение с собственным реестром сессий, диспетчером и sweeper."""
    settings = settings or MCP_SETTINGS
    canvas_settings = canvas_settings or CANVAS_SETTINGS
    if client_factory is None:
        def client_factory(token: str) -> CanvasAPIClient:
            return CanvasAPIClient(token, settings=canvas_settings)

    if registry is None:
        registry = SessionRegistry(settings.max_connections)
    dispatcher = McpDispatcher(
        registry,
        catalog or ToolCatalog(),
        settings=settings,
        client_factory=client_factory,
    )
    sweeper = LivenessSweeper(registry, dispatcher, settings=settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        sweeper.start()
        logger.info("%s v%s started", settings.server_name, settings.server_version)
        try:
            yield
        finally:
            await sweeper.stop()
            dispatcher.close_all()
            logger.info("MCP handler shutdown complete")

    app = FastAPI(title=settings.server_name, version=settings.server_version, lifespan=lifespan)
    app.state.mcp = McpServerState(
        settings=settings,
        registry=registry,
        dispatcher=dispatcher,
        sweeper=sweeper,
    )
    app.include_router(api_router)
    return app


app = create_app()
