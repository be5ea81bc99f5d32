"""Разбор, проверка и SSE-кадрирование JSON-RPC конвертов."""

from __future__ import annotations

import json
from typing import Any, Dict, Optional, Union
from uuid import uuid4

from pydantic import BaseModel, ValidationError

from canvas_mcp.models.json_rpc import (
    JSONRPC_VERSION,
    JsonRpcError,
    JsonRpcRequest,
    JsonRpcResponse,
)

InboundEnvelope = Union[JsonRpcRequest, JsonRpcResponse, JsonRpcError]


class ParseError(ValueError):
    """Текст не является корректным JSON."""


class InvalidEnvelope(ValueError):
    """JSON разобран, но не похож на конверт JSON-RPC 2.0."""

    def __init__(self, message: str, *, request_id: Any = None) -> None:
        super().__init__(message)
        self.request_id = request_id


def decode(raw: Union[str, bytes]) -> Any:
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ParseError(str(exc)) from exc


def _peek_id(decoded: Any) -> Any:
    if isinstance(decoded, dict):
        candidate = decoded.get("id")
        if isinstance(candidate, (str, int)) and not isinstance(candidate, bool):
            return candidate
    return None


def validate(decoded: Any) -> InboundEnvelope:
    """Проверяет минимальную форму конверта и возвращает типизированную модель.

    Конверт корректен, если `jsonrpc == "2.0"` и есть непустой `method`,
    либо `result`, либо `error`. Ответы клиента нестандартной формы
    не отвергаются: они возвращаются как `JsonRpcResponse` и дальше
    только логируются.
    """
    request_id = _peek_id(decoded)
    if not isinstance(decoded, dict) or decoded.get("jsonrpc") != JSONRPC_VERSION:
        raise InvalidEnvelope("Invalid MCP message format", request_id=request_id)

    method = decoded.get("method")
    if isinstance(method, str) and method:
        try:
            return JsonRpcRequest.model_validate(decoded)
        except ValidationError as exc:
            raise InvalidEnvelope("Invalid MCP message format", request_id=request_id) from exc

    if "error" not in decoded and "result" not in decoded:
        raise InvalidEnvelope("Invalid MCP message format", request_id=request_id)

    if decoded.get("error") is not None:
        try:
            return JsonRpcError.model_validate(decoded)
        except ValidationError:
            pass
    return JsonRpcResponse(result=decoded.get("result"), id=request_id)


def envelope_to_dict(envelope: BaseModel) -> Dict[str, Any]:
    payload = envelope.model_dump(mode="json")
    # Ответ без адресата (например, PARSE_ERROR) уходит без поля id.
    if "id" in payload and payload["id"] is None:
        payload.pop("id")
    if "params" in payload and payload["params"] is None:
        payload.pop("params")
    error = payload.get("error")
    if isinstance(error, dict) and error.get("data") is None:
        error.pop("data", None)
    return payload


def format_sse(data: str, *, event: Optional[str] = None, frame_id: Optional[str] = None) -> str:
    lines = [f"id: {frame_id or uuid4()}"]
    if event:
        lines.append(f"event: {event}")
    for chunk in data.splitlines() or [""]:
        lines.append(f"data: {chunk}")
    return "\n".join(lines) + "\n\n"


def encode(envelope: BaseModel, *, event: Optional[str] = None) -> str:
    """Сериализует конверт в один SSE-кадр со свежим идентификатором."""
    data = json.dumps(envelope_to_dict(envelope), ensure_ascii=False, separators=(",", ":"))
    return format_sse(data, event=event)


__all__ = [
    "InboundEnvelope",
    "InvalidEnvelope",
    "ParseError",
    "decode",
    "encode",
    "envelope_to_dict",
    "format_sse",
    "validate",
]
