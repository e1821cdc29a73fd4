"""FastAPI web service: code generation over HTTP and WebSocket."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

import uvicorn
from fastapi import FastAPI, Request, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.staticfiles import StaticFiles

from nexus_studio.config import PACKAGE_DIR, ServerConfig, get_config, normalize_log_level, setup_logging
from nexus_studio.errors import EngineUnavailable, ErrorCode, NexusError, handle_error
from nexus_studio.projects import ProjectSource
from nexus_studio.protocol import (
    GenerateResponse,
    parse_generate_request,
    placeholder_response,
    response_from_result,
)
from nexus_studio.sessions import SessionManager
from nexus_studio.state import SharedState, build_state

logger = logging.getLogger(__name__)

INDEX_PATH = PACKAGE_DIR / "templates" / "index.html"


def _load_index_html() -> str:
    if INDEX_PATH.exists():
        return INDEX_PATH.read_text(encoding="utf-8")
    return "<h1>Nexus Studio AI</h1>"


INDEX_HTML = _load_index_html()


def create_app(
    state: SharedState,
    config: Optional[ServerConfig] = None,
    *,
    project_source: Optional[ProjectSource] = None,
) -> FastAPI:
    cfg = config or get_config()
    sessions = SessionManager(state)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await state.warm_up()
        if project_source is not None:
            await state.sync_projects(project_source)
        yield

    app = FastAPI(title="Nexus Studio AI", version="1.0.0", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(cfg.cors_origins),
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -------------------------------------------------------------------------
    # Error handling
    # -------------------------------------------------------------------------

    @app.exception_handler(NexusError)
    async def nexus_error_handler(request: Request, exc: NexusError) -> JSONResponse:
        if exc.http_status >= 500:
            logger.error("[API] %s %s: %s %s", exc.code.value, request.url.path, exc.message, exc.details)
        else:
            logger.info("[API] %s %s: %s", exc.code.value, request.url.path, exc.message)
        return JSONResponse(status_code=exc.http_status, content={"error": exc.to_dict()})

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
        err = handle_error(exc, f"{request.method} {request.url.path}")
        logger.error("[API] Unhandled error: %s", err.message, exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={
                "error": {
                    "code": ErrorCode.SYSTEM_INTERNAL_ERROR.value,
                    "message": "Internal server error",
                }
            },
        )

    # -------------------------------------------------------------------------
    # Pages & static assets
    # -------------------------------------------------------------------------

    @app.get("/", response_class=HTMLResponse)
    async def index() -> HTMLResponse:
        return HTMLResponse(INDEX_HTML)

    app.mount("/static", StaticFiles(directory=str(cfg.static_dir), check_dir=False), name="static")

    # -------------------------------------------------------------------------
    # JSON API
    # -------------------------------------------------------------------------

    @app.post("/api/generate", response_model=GenerateResponse)
    async def generate(request: Request) -> GenerateResponse:
        body = parse_generate_request(await request.body())
        try:
            result = await state.with_engine_mut(
                lambda engine: engine.generate(body.prompt, state.max_tokens)
            )
        except EngineUnavailable:
            return placeholder_response(body)
        return response_from_result(result)

    @app.get("/api/projects")
    async def list_projects() -> list:
        projects = await state.read_projects()
        return [p.model_dump() for p in projects]

    @app.get("/api/status")
    async def status() -> dict[str, Any]:
        info = state.engine_info()
        return {
            "status": "ok",
            "ai_enabled": state.engine_available,
            "model": info["model"] if info else None,
            "engine": info,
            "engine_busy": state.engine_busy,
            "active_sessions": sessions.active_sessions,
        }

    # -------------------------------------------------------------------------
    # WebSocket
    # -------------------------------------------------------------------------

    @app.websocket("/ws")
    async def ws(websocket: WebSocket) -> None:
        await sessions.serve(websocket)

    return app


def create_default_app() -> FastAPI:
    """App factory used by uvicorn: builds state from the environment."""
    config = get_config()
    setup_logging(config)
    return create_app(build_state(config), config)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    config = get_config()
    setup_logging(config)
    logger.info(
        "Nexus Studio web interface on http://%s:%d (AI enabled: %s)",
        config.host, config.port, config.engine.enabled,
    )
    uvicorn.run(
        "nexus_studio.main:create_default_app",
        factory=True,
        host=config.host,
        port=config.port,
        reload=config.reload,
        log_level=normalize_log_level(config.log.level).lower(),
    )


if __name__ == "__main__":
    main()
