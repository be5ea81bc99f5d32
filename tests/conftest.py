from __future__ import annotations

import pytest

from canvas_mcp.core.config import McpSettings
from canvas_mcp.core.session import SessionRegistry
from canvas_mcp.protocol.dispatcher import McpDispatcher

from .fakes import ClientFactory, FakeClock, SpyCatalog


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> McpSettings:
    return McpSettings(
        server_name="Test Canvas MCP",
        server_version="9.9.9",
        protocol_version="2025-06-18",
        max_connections=2,
        connection_timeout_ms=60_000,
        heartbeat_interval_ms=10_000,
    )


@pytest.fixture
def registry(settings: McpSettings, clock: FakeClock) -> SessionRegistry:
    return SessionRegistry(settings.max_connections, clock=clock)


@pytest.fixture
def catalog() -> SpyCatalog:
    return SpyCatalog()


@pytest.fixture
def client_factory() -> ClientFactory:
    return ClientFactory()


@pytest.fixture
def dispatcher(registry, catalog, settings, client_factory) -> McpDispatcher:
    return McpDispatcher(registry, catalog, settings=settings, client_factory=client_factory)
