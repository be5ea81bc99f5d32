"""Диспетчер MCP: проверка конвертов, handshake и маршрутизация по методу.

Сессия проходит два состояния: Unauthenticated -> Ready. Ready наступает
только после ответа на `initialize` и последующего уведомления
`initialized`. До этого разрешены лишь `initialize` и `ping`.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable, Dict, Optional, Union

from pydantic import BaseModel, ValidationError

from canvas_mcp.core.config import SERVER_CAPABILITIES, McpSettings
from canvas_mcp.core.errors import McpError
from canvas_mcp.core.session import McpSession, SessionRegistry
from canvas_mcp.models.json_rpc import (
    InitializeParams,
    JsonRpcError,
    JsonRpcErrorObj,
    JsonRpcNotification,
    JsonRpcRequest,
    JsonRpcResponse,
    McpErrorCode,
)
from canvas_mcp.protocol import codec
from canvas_mcp.services.canvas_client import CanvasAPIClient
from canvas_mcp.tools.handlers import ToolCatalog, _tool_error
from canvas_mcp.utils.timestamps import utc_timestamp

logger = logging.getLogger("canvas_mcp.protocol.dispatcher")

UNKNOWN_ID = "unknown"

ClientFactory = Callable[[str], CanvasAPIClient]


class McpMethod(str, Enum):
    INITIALIZE = "initialize"
    INITIALIZED = "initialized"
    NOTIFICATIONS_INITIALIZED = "notifications/initialized"
    PING = "ping"
    TOOLS_LIST = "tools/list"
    TOOLS_CALL = "tools/call"
    RESOURCES_LIST = "resources/list"
    RESOURCES_READ = "resources/read"
    PROMPTS_LIST = "prompts/list"
    PROMPTS_GET = "prompts/get"


# Методы, которым не нужно состояние Ready.
_HANDSHAKE_METHODS = frozenset(
    {
        McpMethod.INITIALIZE,
        McpMethod.INITIALIZED,
        McpMethod.NOTIFICATIONS_INITIALIZED,
        McpMethod.PING,
    }
)

_NO_RESPONSE = object()


class McpDispatcher:
    """Обрабатывает входящие сообщения сессий и пишет ответы в их push-канал."""

    def __init__(
        self,
        registry: SessionRegistry,
        catalog: ToolCatalog,
        *,
        settings: McpSettings,
        client_factory: ClientFactory,
    ) -> None:
        self._registry = registry
        self._catalog = catalog
        self._settings = settings
        self._client_factory = client_factory

    # --- исходящие сообщения ---

    def send(
        self,
        session: McpSession,
        envelope: BaseModel,
        *,
        event: Optional[str] = None,
        touch: bool = True,
    ) -> bool:
        return self._write(session, codec.encode(envelope, event=event), touch=touch)

    def send_event(self, session: McpSession, data: str, *, event: str) -> bool:
        return self._write(session, codec.format_sse(data, event=event))

    def send_error(
        self,
        session: McpSession,
        request_id: Any,
        code: int,
        message: str,
        data: Any = None,
    ) -> bool:
        envelope = JsonRpcError(
            error=JsonRpcErrorObj(code=int(code), message=message, data=data),
            id=request_id,
        )
        return self.send(session, envelope)

    def notify(
        self,
        session: McpSession,
        method: str,
        params: Optional[Dict[str, Any]] = None,
        *,
        touch: bool = True,
    ) -> bool:
        """`touch=False` для служебных кадров, которые не считаются активностью сессии."""
        return self.send(session, JsonRpcNotification(method=method, params=params), touch=touch)

    def _write(self, session: McpSession, frame: str, *, touch: bool = True) -> bool:
        try:
            session.transport.write(frame)
        except Exception as exc:
            logger.error("Failed to send message to connection %s: %s", session.id, exc)
            self._registry.remove(session.id)
            return False
        if touch:
            session.touch()
        return True

    # --- входящие сообщения ---

    async def handle_message(self, connection_id: str, raw: Union[str, bytes]) -> bool:
        """Точка входа транспорта. Возвращает False для неизвестного соединения."""
        session = self._registry.get(connection_id)
        if session is None:
            logger.warning("Received message for unknown connection: %s", connection_id)
            return False

        session.touch()

        try:
            decoded = codec.decode(raw)
        except codec.ParseError as exc:
            logger.error("Failed to parse message from %s: %s", connection_id, exc)
            self.send_error(session, None, McpErrorCode.PARSE_ERROR, "Failed to parse JSON message")
            return True

        try:
            envelope = codec.validate(decoded)
        except codec.InvalidEnvelope as exc:
            request_id = exc.request_id if exc.request_id is not None else UNKNOWN_ID
            self.send_error(session, request_id, McpErrorCode.INVALID_REQUEST, str(exc))
            return True

        if isinstance(envelope, JsonRpcRequest):
            await self._handle_request(session, envelope)
        else:
            logger.debug("Received response from client %s: %s", connection_id, envelope)
        return True

    async def _handle_request(self, session: McpSession, request: JsonRpcRequest) -> None:
        error_id = request.id if request.id is not None else UNKNOWN_ID
        try:
            result = await self._dispatch(session, request)
        except McpError as exc:
            self.send_error(session, error_id, exc.code, str(exc), exc.data)
            return
        except Exception:
            logger.exception("Error handling request %s", request.method)
            self.send_error(session, error_id, McpErrorCode.INTERNAL_ERROR, "Internal server error")
            return

        if result is not _NO_RESPONSE:
            self.send(session, JsonRpcResponse(result=result, id=request.id))

    async def _dispatch(self, session: McpSession, request: JsonRpcRequest) -> Any:
        try:
            method = McpMethod(request.method)
        except ValueError:
            raise McpError(
                f"Method not found: {request.method}",
                code=McpErrorCode.METHOD_NOT_FOUND,
            ) from None

        if method not in _HANDSHAKE_METHODS:
            self._require_ready(session)

        params = request.params or {}
        if method is McpMethod.INITIALIZE:
            return self._handle_initialize(session, params)
        if method in (McpMethod.INITIALIZED, McpMethod.NOTIFICATIONS_INITIALIZED):
            return self._handle_initialized(session)
        if method is McpMethod.PING:
            return {"timestamp": utc_timestamp()}
        if method is McpMethod.TOOLS_LIST:
            return {"tools": await self._catalog.list_tools()}
        if method is McpMethod.TOOLS_CALL:
            return await self._handle_tools_call(params)
        if method is McpMethod.RESOURCES_LIST:
            # Ресурсы Canvas пока не публикуются.
            return {"resources": []}
        if method is McpMethod.RESOURCES_READ:
            raise McpError("Resource not found", code=McpErrorCode.RESOURCE_NOT_FOUND)
        if method is McpMethod.PROMPTS_LIST:
            return {"prompts": await self._catalog.list_prompts()}
        if method is McpMethod.PROMPTS_GET:
            return await self._handle_prompts_get(params)
        raise AssertionError(f"Unhandled MCP method: {method}")

    @staticmethod
    def _require_ready(session: McpSession) -> None:
        if not session.authenticated:
            raise McpError("Connection not authenticated", code=McpErrorCode.AUTHENTICATION_ERROR)

    def _handle_initialize(self, session: McpSession, params: Dict[str, Any]) -> Dict[str, Any]:
        if session.authenticated:
            raise McpError("Session already initialized", code=McpErrorCode.INVALID_REQUEST)
        try:
            parsed = InitializeParams.model_validate(params)
        except ValidationError as exc:
            raise McpError(
                "Missing required initialization parameters",
                code=McpErrorCode.INVALID_PARAMS,
                data=exc.errors(include_url=False, include_context=False, include_input=False),
            ) from exc

        session.client_info = parsed.clientInfo.model_dump()
        session.capabilities = parsed.capabilities
        session.initialize_replied = True
        logger.info(
            "Client initialized: %s v%s (protocol %s)",
            parsed.clientInfo.name,
            parsed.clientInfo.version,
            parsed.protocolVersion,
        )
        return {
            "protocolVersion": self._settings.protocol_version,
            "capabilities": SERVER_CAPABILITIES,
            "serverInfo": self._settings.server_info,
        }

    def _handle_initialized(self, session: McpSession) -> object:
        if not session.initialize_replied:
            raise McpError("Initialize handshake not performed", code=McpErrorCode.AUTHENTICATION_ERROR)
        if session.mark_ready():
            logger.info("Connection %s is now initialized and ready", session.id)
        return _NO_RESPONSE

    async def _handle_tools_call(self, params: Dict[str, Any]) -> Dict[str, Any]:
        name = params.get("name")
        if not isinstance(name, str) or not name:
            raise McpError("Missing tool name", code=McpErrorCode.INVALID_PARAMS)
        arguments = params.get("arguments") or {}
        if not isinstance(arguments, dict):
            raise McpError("Invalid params: 'arguments' must be an object", code=McpErrorCode.INVALID_PARAMS)

        access_token = arguments.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise McpError("Canvas access token required", code=McpErrorCode.AUTHENTICATION_ERROR)

        client = self._client_factory(access_token)
        try:
            # Токен проверяется до любого обращения к каталогу.
            if not await client.validate_token():
                raise McpError("Invalid Canvas access token", code=McpErrorCode.AUTHENTICATION_ERROR)
            try:
                return await self._catalog.invoke(name, arguments, client)
            except Exception as exc:
                logger.exception("Tool execution error for %s", name)
                return _tool_error(f"Error executing tool: {exc}")
        finally:
            await client.aclose()

    async def _handle_prompts_get(self, params: Dict[str, Any]) -> Dict[str, Any]:
        name = params.get("name")
        if not isinstance(name, str) or not name:
            raise McpError("Missing prompt name", code=McpErrorCode.INVALID_PARAMS)
        arguments = params.get("arguments") or {}
        if not isinstance(arguments, dict):
            raise McpError("Invalid params: 'arguments' must be an object", code=McpErrorCode.INVALID_PARAMS)

        try:
            messages = await self._catalog.get_prompt(name, arguments)
        except LookupError as exc:
            logger.error("Prompt execution error for %s: %s", name, exc)
            raise McpError(f"Prompt not found: {name}", code=McpErrorCode.INVALID_PROMPT) from exc
        except ValueError as exc:
            raise McpError(str(exc), code=McpErrorCode.INVALID_PARAMS) from exc
        return {"messages": messages}

    def close_all(self) -> None:
        self._registry.clear()


__all__ = ["ClientFactory", "McpDispatcher", "McpMethod", "UNKNOWN_ID"]
