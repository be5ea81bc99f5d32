"""Глобальные константы и настройки Canvas MCP сервера."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Dict, Optional

logger = logging.getLogger("canvas_mcp.core.config")

DEFAULT_PROTOCOL_VERSION = "2025-06-18"

SERVER_CAPABILITIES: Dict[str, Dict[str, object]] = {
    "tools": {"listChanged": True},
    "resources": {"subscribe": False, "listChanged": True},
    "prompts": {"listChanged": True},
    "logging": {},
}


def _get_int(name: str, default: int, *, minimum: int = 0) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return max(minimum, int(raw))
    except ValueError:
        logger.warning("Invalid value %s=%r, using %s", name, raw, default)
        return default


@dataclass(frozen=True, slots=True)
class McpSettings:
    """Настройки протокольного ядра: идентичность сервера, лимиты и таймауты (мс)."""

    server_name: str = "Canvas LMS MCP Server"
    server_version: str = "1.0.0"
    protocol_version: str = DEFAULT_PROTOCOL_VERSION
    max_connections: int = 100
    connection_timeout_ms: int = 300_000
    heartbeat_interval_ms: int = 30_000

    @property
    def connection_timeout(self) -> float:
        return self.connection_timeout_ms / 1000

    @property
    def heartbeat_interval(self) -> float:
        return self.heartbeat_interval_ms / 1000

    @property
    def server_info(self) -> Dict[str, object]:
        return {
            "name": self.server_name,
            "version": self.server_version,
            "protocolVersion": self.protocol_version,
            "capabilities": SERVER_CAPABILITIES,
        }

    @classmethod
    def from_env(cls) -> "McpSettings":
        return cls(
            server_name=os.getenv("MCP_SERVER_NAME", "Canvas LMS MCP Server"),
            server_version=os.getenv("MCP_SERVER_VERSION", "1.0.0"),
            protocol_version=os.getenv("MCP_PROTOCOL_VERSION", DEFAULT_PROTOCOL_VERSION),
            max_connections=_get_int("MCP_MAX_CONNECTIONS", 100),
            connection_timeout_ms=_get_int("MCP_CONNECTION_TIMEOUT", 300_000, minimum=1),
            heartbeat_interval_ms=_get_int("MCP_HEARTBEAT_INTERVAL", 30_000, minimum=1),
        )


@dataclass(frozen=True, slots=True)
class CanvasSettings:
    """Параметры подключения к Canvas REST API."""

    base_url: str = "https://canvas.instructure.com"
    api_version: str = "v1"
    timeout_ms: int = 30_000
    retry_delay_ms: int = 1_000
    user_agent: Optional[str] = None

    @property
    def api_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/api/{self.api_version}"

    @classmethod
    def from_env(cls, mcp: Optional[McpSettings] = None) -> "CanvasSettings":
        base_url = os.getenv("CANVAS_BASE_URL", "https://canvas.instructure.com").strip()
        if not base_url.startswith(("http://", "https://")):
            raise ValueError("CANVAS_BASE_URL must be a valid HTTP/HTTPS URL")
        mcp = mcp or McpSettings()
        return cls(
            base_url=base_url,
            api_version=os.getenv("CANVAS_API_VERSION", "v1"),
            timeout_ms=_get_int("CANVAS_TIMEOUT", 30_000),
            retry_delay_ms=_get_int("CANVAS_RETRY_DELAY", 1_000),
            user_agent=f"{mcp.server_name}/{mcp.server_version}",
        )


LOG_LEVEL = os.getenv("LOG_LEVEL", "info").upper()

MCP_SETTINGS = McpSettings.from_env()
CANVAS_SETTINGS = CanvasSettings.from_env(MCP_SETTINGS)

__all__ = [
    "CANVAS_SETTINGS",
    "CanvasSettings",
    "DEFAULT_PROTOCOL_VERSION",
    "LOG_LEVEL",
    "MCP_SETTINGS",
    "McpSettings",
    "SERVER_CAPABILITIES",
]
