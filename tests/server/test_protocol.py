import json

import pytest

from nexus_studio.engine import GenerationResult
from nexus_studio.errors import MalformedRequest
from nexus_studio.protocol import (
    ConnectedFrame,
    GenerateMessage,
    GenerateRequest,
    GeneratingFrame,
    UnknownMessage,
    error_frame,
    generated_frame,
    parse_generate_request,
    parse_inbound,
    placeholder_response,
    response_from_result,
    unknown_type_frame,
)


def test_generate_frame_parses_to_generate_message():
    msg = parse_inbound('{"type": "generate", "prompt": "build a login form", "framework": "react"}')
    assert isinstance(msg, GenerateMessage)
    assert msg.prompt == "build a login form"
    assert msg.framework == "react"


def test_unrecognised_type_falls_back_to_unknown_message():
    msg = parse_inbound('{"type": "ping"}')
    assert isinstance(msg, UnknownMessage)
    assert unknown_type_frame(msg).message == "Unknown message type: ping"


def test_invalid_json_raises_with_decoder_detail():
    with pytest.raises(MalformedRequest) as excinfo:
        parse_inbound("{not json")
    assert excinfo.value.message.startswith("Invalid JSON: ")
    assert excinfo.value.http_status == 400


@pytest.mark.parametrize(
    "text",
    [
        '{"type": "generate", "prompt": "only a prompt"}',
        '{"type": "generate", "framework": "vue"}',
        '{"type": "generate", "prompt": 42, "framework": "vue"}',
        '{"prompt": "no type", "framework": "vue"}',
        '{"type": 7}',
        '["generate"]',
        '"generate"',
    ],
)
def test_frames_to_ignore(text):
    assert parse_inbound(text) is None


def test_parse_generate_request_accepts_optional_model():
    req = parse_generate_request(b'{"prompt": "card", "framework": "svelte"}')
    assert req == GenerateRequest(prompt="card", framework="svelte", model=None)

    req = parse_generate_request('{"prompt": "card", "framework": "svelte", "model": "phi-3-small"}')
    assert req.model == "phi-3-small"


def test_parse_generate_request_reports_missing_fields():
    with pytest.raises(MalformedRequest) as excinfo:
        parse_generate_request(b'{"framework": "react"}')
    assert "prompt" in excinfo.value.message


def test_parse_generate_request_rejects_bad_json():
    with pytest.raises(MalformedRequest) as excinfo:
        parse_generate_request(b"{")
    assert excinfo.value.message.startswith("Invalid JSON: ")


def test_placeholder_embeds_prompt_and_framework():
    resp = placeholder_response(GenerateRequest(prompt="todo list", framework="vue"))
    assert resp.code == "// AI not enabled\n// Request: todo list\n// Framework: vue"
    assert resp.tokens == 0
    assert resp.time_ms == 0


def test_http_response_and_ws_frame_share_field_names():
    result = GenerationResult(content="// code", tokens=500, time_ms=3, model="phi-3-mini")

    http = response_from_result(result).model_dump()
    frame = generated_frame(result).model_dump()

    assert http == {"code": "// code", "tokens": 500, "time_ms": 3}
    assert frame == {"type": "generated", "code": "// code", "tokens": 500, "time_ms": 3, "model": "phi-3-mini"}


def test_outbound_frame_shapes():
    assert json.loads(ConnectedFrame(client_id="abc").model_dump_json()) == {
        "type": "connected",
        "client_id": "abc",
        "message": "Connected to Nexus Studio AI",
    }
    assert json.loads(GeneratingFrame().model_dump_json()) == {
        "type": "generating",
        "message": "AI is generating code...",
    }
    assert json.loads(error_frame("nope").model_dump_json()) == {"type": "error", "message": "nope"}
