"""Pydantic-модели JSON-RPC конвертов MCP и реестр кодов ошибок."""

from __future__ import annotations

from enum import IntEnum
from typing import Any, Dict, Optional, Literal, Union

from pydantic import BaseModel, Field

JSONRPC_VERSION = "2.0"

RequestId = Union[str, int]


class McpErrorCode(IntEnum):
    """Стабильные коды ошибок. Новые коды только добавляются, старые не перенумеровываются."""

    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603
    INVALID_TOOL = -32000
    INVALID_RESOURCE = -32001
    INVALID_PROMPT = -32002
    RESOURCE_NOT_FOUND = -32003
    TOOL_EXECUTION_ERROR = -32004
    AUTHENTICATION_ERROR = -32005
    AUTHORIZATION_ERROR = -32006
    RATE_LIMITED = -32007
    TIMEOUT = -32008


class JsonRpcRequest(BaseModel):
    """Запрос или уведомление (без `id`)."""

    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    method: str
    params: Optional[Dict[str, Any]] = None
    id: Optional[RequestId] = None

    @property
    def is_notification(self) -> bool:
        return self.id is None


class JsonRpcResponse(BaseModel):
    """Успешный JSON-RPC 2.0 ответ."""

    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    result: Any = None
    id: Optional[RequestId] = None


class JsonRpcErrorObj(BaseModel):
    """Структура ошибки JSON-RPC 2.0."""

    code: int
    message: str
    data: Optional[Any] = None


class JsonRpcError(BaseModel):
    """JSON-RPC 2.0 ответ с ошибкой."""

    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    error: JsonRpcErrorObj
    id: Optional[RequestId] = None


class JsonRpcNotification(BaseModel):
    """Исходящее уведомление сервера (heartbeat, служебные сообщения)."""

    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    method: str
    params: Optional[Dict[str, Any]] = None


class ClientInfo(BaseModel):
    name: str
    version: str


class InitializeParams(BaseModel):
    """Параметры метода `initialize` MCP: версия протокола и клиент обязательны."""

    protocolVersion: str = Field(min_length=1)
    clientInfo: ClientInfo
    capabilities: Dict[str, Any] = Field(default_factory=dict)


Envelope = Union[JsonRpcRequest, JsonRpcResponse, JsonRpcError, JsonRpcNotification]


__all__ = [
    "ClientInfo",
    "Envelope",
    "InitializeParams",
    "JSONRPC_VERSION",
    "JsonRpcError",
    "JsonRpcErrorObj",
    "JsonRpcNotification",
    "JsonRpcRequest",
    "JsonRpcResponse",
    "McpErrorCode",
    "RequestId",
]
