"""JSON message protocol shared by the HTTP generate endpoint and WebSocket sessions.

Every WebSocket frame is a JSON object with a ``type`` discriminator:

    inbound:  generate
    outbound: connected, generating, generated, error

``code`` / ``tokens`` / ``time_ms`` carry the same meaning in the HTTP
``GenerateResponse`` and the ``generated`` frame.
"""

from __future__ import annotations

import json
from typing import Dict, Literal, Optional, Type, Union

from pydantic import BaseModel, StrictStr, ValidationError

from nexus_studio.engine import GenerationResult
from nexus_studio.errors import MalformedRequest

CONNECTED_MESSAGE = "Connected to Nexus Studio AI"
GENERATING_MESSAGE = "AI is generating code..."


# ---------------------------------------------------------------------------
# HTTP bodies
# ---------------------------------------------------------------------------


class GenerateRequest(BaseModel):
    prompt: StrictStr
    framework: StrictStr
    model: Optional[StrictStr] = None


class GenerateResponse(BaseModel):
    code: str
    tokens: int
    time_ms: int


# ---------------------------------------------------------------------------
# Inbound frames
# ---------------------------------------------------------------------------


class GenerateMessage(BaseModel):
    type: Literal["generate"] = "generate"
    prompt: StrictStr
    framework: StrictStr


class UnknownMessage(BaseModel):
    """Any frame whose ``type`` has no handler."""

    type: str


InboundMessage = Union[GenerateMessage, UnknownMessage]

_INBOUND_TYPES: Dict[str, Type[BaseModel]] = {
    "generate": GenerateMessage,
}


# ---------------------------------------------------------------------------
# Outbound frames
# ---------------------------------------------------------------------------


class ConnectedFrame(BaseModel):
    type: Literal["connected"] = "connected"
    client_id: str
    message: str = CONNECTED_MESSAGE


class GeneratingFrame(BaseModel):
    type: Literal["generating"] = "generating"
    message: str = GENERATING_MESSAGE


class GeneratedFrame(BaseModel):
    type: Literal["generated"] = "generated"
    code: str
    tokens: int
    time_ms: int
    model: str


class ErrorFrame(BaseModel):
    type: Literal["error"] = "error"
    message: str


OutboundFrame = Union[ConnectedFrame, GeneratingFrame, GeneratedFrame, ErrorFrame]


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _describe(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "body"
        parts.append(f"{loc}: {err.get('msg', 'invalid')}")
    return "; ".join(parts)


def _loads(raw: Union[str, bytes]) -> object:
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise MalformedRequest(f"Invalid JSON: {exc}") from exc


def parse_generate_request(raw: Union[str, bytes]) -> GenerateRequest:
    """Decode and validate an HTTP generate body; raises MalformedRequest."""
    data = _loads(raw)
    try:
        return GenerateRequest.model_validate(data)
    except ValidationError as exc:
        raise MalformedRequest(f"Invalid request: {_describe(exc)}") from exc


def parse_inbound(text: str) -> Optional[InboundMessage]:
    """
    Decode one inbound WebSocket frame.

    Raises MalformedRequest when the text is not JSON. Returns None for frames
    that should be ignored: non-objects, objects without a string ``type``,
    and known types missing required fields. Unrecognised types come back as
    ``UnknownMessage``.
    """
    data = _loads(text)
    if not isinstance(data, dict):
        return None

    msg_type = data.get("type")
    if not isinstance(msg_type, str):
        return None

    model = _INBOUND_TYPES.get(msg_type)
    if model is None:
        return UnknownMessage(type=msg_type)

    try:
        return model.model_validate(data)
    except ValidationError:
        return None


# ---------------------------------------------------------------------------
# Response shaping
# ---------------------------------------------------------------------------


def placeholder_response(request: GenerateRequest) -> GenerateResponse:
    """Deterministic response used when no engine is configured."""
    return GenerateResponse(
        code=(
            "// AI not enabled\n"
            f"// Request: {request.prompt}\n"
            f"// Framework: {request.framework}"
        ),
        tokens=0,
        time_ms=0,
    )


def response_from_result(result: GenerationResult) -> GenerateResponse:
    return GenerateResponse(code=result.content, tokens=result.tokens, time_ms=result.time_ms)


def generated_frame(result: GenerationResult) -> GeneratedFrame:
    return GeneratedFrame(
        code=result.content,
        tokens=result.tokens,
        time_ms=result.time_ms,
        model=result.model,
    )


def error_frame(message: str) -> ErrorFrame:
    return ErrorFrame(message=message)


def unknown_type_frame(message: UnknownMessage) -> ErrorFrame:
    return ErrorFrame(message=f"Unknown message type: {message.type}")
