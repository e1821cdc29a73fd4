"""WebSocket sessions, one sequential message loop per connection."""

from __future__ import annotations

import logging
import uuid
from typing import AsyncIterator

from fastapi import WebSocket, WebSocketDisconnect

from nexus_studio.errors import (
    EngineUnavailable,
    MalformedRequest,
    NexusError,
    TransportError,
    handle_error,
)
from nexus_studio.protocol import (
    ConnectedFrame,
    GenerateMessage,
    GeneratingFrame,
    OutboundFrame,
    error_frame,
    generated_frame,
    parse_inbound,
    unknown_type_frame,
)
from nexus_studio.state import SharedState

logger = logging.getLogger(__name__)


class ClientSession:
    """
    A single WebSocket connection.

    Frames are handled one at a time in arrival order, so replies leave in the
    same order. While a generation waits on the engine lock only this
    session's loop is held up.
    """

    def __init__(self, websocket: WebSocket, state: SharedState):
        self.websocket = websocket
        self.state = state
        self.client_id = str(uuid.uuid4())

    async def run(self) -> None:
        await self.websocket.accept()
        logger.info("WebSocket connected: %s", self.client_id)
        try:
            await self.send(ConnectedFrame(client_id=self.client_id))
            async for text in self.frames():
                await self.dispatch(text)
        except TransportError as exc:
            logger.warning("WebSocket %s transport error: %s", self.client_id, exc.message)
        finally:
            logger.info("WebSocket disconnected: %s", self.client_id)

    async def frames(self) -> AsyncIterator[str]:
        """Yield inbound text frames until the client goes away."""
        while True:
            try:
                message = await self.websocket.receive()
            except WebSocketDisconnect:
                return
            except (RuntimeError, OSError) as exc:
                raise TransportError(f"Receive failed: {exc}") from exc

            if message["type"] == "websocket.disconnect":
                return
            text = message.get("text")
            if text is None:
                # binary frame
                continue
            yield text

    async def send(self, frame: OutboundFrame) -> None:
        try:
            await self.websocket.send_text(frame.model_dump_json())
        except (WebSocketDisconnect, RuntimeError, OSError) as exc:
            raise TransportError(f"Send failed: {exc}") from exc

    async def dispatch(self, text: str) -> None:
        try:
            message = parse_inbound(text)
        except MalformedRequest as exc:
            await self.send(error_frame(exc.message))
            return

        if message is None:
            logger.debug("WebSocket %s ignored frame: %.80s", self.client_id, text)
            return

        if isinstance(message, GenerateMessage):
            await self.generate(message)
        else:
            await self.send(unknown_type_frame(message))

    async def generate(self, message: GenerateMessage) -> None:
        await self.send(GeneratingFrame())

        max_tokens = self.state.max_tokens
        try:
            result = await self.state.with_engine_mut(
                lambda engine: engine.generate(message.prompt, max_tokens)
            )
        except EngineUnavailable as exc:
            await self.send(error_frame(exc.message))
            return
        except NexusError as exc:
            logger.warning("WebSocket %s generation failed: %s", self.client_id, exc.message)
            await self.send(error_frame(f"AI generation failed: {exc.message}"))
            return
        except Exception as exc:
            err = handle_error(exc, "while generating code")
            logger.error("WebSocket %s: %s", self.client_id, err.message, exc_info=True)
            await self.send(error_frame("AI generation failed: internal error"))
            return

        logger.debug(
            "WebSocket %s generated %d token(s) for %s in %d ms",
            self.client_id, result.tokens, message.framework, result.time_ms,
        )
        await self.send(generated_frame(result))


class SessionManager:
    """Creates a ClientSession for each upgraded connection."""

    def __init__(self, state: SharedState):
        self.state = state
        self._active = 0

    @property
    def active_sessions(self) -> int:
        return self._active

    async def serve(self, websocket: WebSocket) -> None:
        session = ClientSession(websocket, self.state)
        self._active += 1
        try:
            await session.run()
        finally:
            self._active -= 1
