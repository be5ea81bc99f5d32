from __future__ import annotations

import json

import pytest

from canvas_mcp.models.json_rpc import (
    JsonRpcError,
    JsonRpcErrorObj,
    JsonRpcNotification,
    JsonRpcRequest,
    JsonRpcResponse,
)
from canvas_mcp.protocol import codec


def _data(frame: str) -> dict:
    lines = [line[len("data: "):] for line in frame.splitlines() if line.startswith("data: ")]
    return json.loads("\n".join(lines))


def test_decode_rejects_truncated_json() -> None:
    with pytest.raises(codec.ParseError):
        codec.decode('{"jsonrpc": "2.0", "method": "pi')


def test_validate_accepts_request_notification_and_responses() -> None:
    request = codec.validate({"jsonrpc": "2.0", "id": 1, "method": "ping"})
    assert isinstance(request, JsonRpcRequest)
    assert request.id == 1

    notification = codec.validate({"jsonrpc": "2.0", "method": "initialized"})
    assert isinstance(notification, JsonRpcRequest)
    assert notification.is_notification

    response = codec.validate({"jsonrpc": "2.0", "id": "a", "result": {}})
    assert isinstance(response, JsonRpcResponse)

    error = codec.validate({"jsonrpc": "2.0", "id": "a", "error": {"code": -1, "message": "x"}})
    assert isinstance(error, JsonRpcError)


@pytest.mark.parametrize(
    "decoded",
    [
        {"jsonrpc": "2.0", "error": "boom"},
        {"jsonrpc": "2.0", "method": "", "result": 1},
        {"jsonrpc": "2.0", "id": 3, "result": 1, "error": None},
        {"jsonrpc": "2.0", "id": [1], "result": {}},
    ],
)
def test_validate_accepts_irregular_client_responses(decoded) -> None:
    envelope = codec.validate(decoded)
    assert isinstance(envelope, JsonRpcResponse)


def test_irregular_response_keeps_its_id() -> None:
    envelope = codec.validate({"jsonrpc": "2.0", "id": 3, "result": 1, "error": None})
    assert envelope.id == 3
    assert envelope.result == 1


@pytest.mark.parametrize(
    "decoded",
    [
        {"id": 1, "method": "ping"},
        {"jsonrpc": "1.0", "id": 1, "method": "ping"},
        {"jsonrpc": "2.0", "id": 1},
        {"jsonrpc": "2.0", "id": 1, "method": ""},
        [{"jsonrpc": "2.0", "method": "ping"}],
        "ping",
    ],
)
def test_validate_rejects_malformed_envelopes(decoded) -> None:
    with pytest.raises(codec.InvalidEnvelope):
        codec.validate(decoded)


def test_invalid_envelope_keeps_request_id_when_known() -> None:
    with pytest.raises(codec.InvalidEnvelope) as excinfo:
        codec.validate({"jsonrpc": "1.0", "id": 42, "method": "ping"})
    assert excinfo.value.request_id == 42


def test_encode_frames_with_fresh_ids_and_optional_event() -> None:
    envelope = JsonRpcResponse(result={"ok": True}, id=3)
    first = codec.encode(envelope)
    second = codec.encode(envelope, event="message")

    assert first.endswith("\n\n")
    assert first.splitlines()[0].startswith("id: ")
    assert first.splitlines()[0] != second.splitlines()[0]
    assert "event:" not in first
    assert second.splitlines()[1] == "event: message"
    assert _data(first) == {"jsonrpc": "2.0", "result": {"ok": True}, "id": 3}


def test_encode_drops_missing_id_and_empty_error_data() -> None:
    frame = codec.encode(JsonRpcError(error=JsonRpcErrorObj(code=-32700, message="bad")))
    payload = _data(frame)
    assert "id" not in payload
    assert payload["error"] == {"code": -32700, "message": "bad"}

    notification = _data(codec.encode(JsonRpcNotification(method="notifications/ping")))
    assert notification == {"jsonrpc": "2.0", "method": "notifications/ping"}
