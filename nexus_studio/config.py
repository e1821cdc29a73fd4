"""Service configuration, read from the environment (and a local .env file)."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

BASE_DIR = Path(__file__).parent.parent
PACKAGE_DIR = Path(__file__).parent

load_dotenv(BASE_DIR / ".env")


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


def normalize_log_level(value: str) -> str:
    """Upper-cased level name, or INFO when the name is not one logging and uvicorn both know."""
    level = value.strip().upper()
    return level if level in LOG_LEVELS else "INFO"


@dataclass(frozen=True)
class EngineSettings:
    enabled: bool = False
    model: str = "phi-3-mini"
    context_size: int = 4096
    model_path: Optional[str] = None
    load_latency: float = 0.2
    max_tokens: int = 2000


@dataclass(frozen=True)
class LogSettings:
    level: str = "INFO"
    format: str = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


@dataclass(frozen=True)
class ServerConfig:
    engine: EngineSettings = field(default_factory=EngineSettings)
    log: LogSettings = field(default_factory=LogSettings)
    host: str = "127.0.0.1"
    port: int = 8080
    static_dir: Path = PACKAGE_DIR / "static"
    cors_origins: tuple = ("*",)
    reload: bool = False

    @classmethod
    def from_env(cls) -> "ServerConfig":
        engine = EngineSettings(
            enabled=_env_bool("NEXUS_AI"),
            model=os.getenv("NEXUS_AI_MODEL", "phi-3-mini"),
            context_size=int(os.getenv("NEXUS_AI_CONTEXT_SIZE", "4096")),
            model_path=os.getenv("NEXUS_AI_MODEL_PATH") or None,
            load_latency=float(os.getenv("NEXUS_AI_LOAD_LATENCY", "0.2")),
            max_tokens=int(os.getenv("NEXUS_AI_MAX_TOKENS", "2000")),
        )

        log = LogSettings(level=normalize_log_level(os.getenv("NEXUS_LOG_LEVEL", "INFO")))

        origins_str = os.getenv("NEXUS_CORS_ORIGINS", "")
        origins = tuple(o.strip() for o in origins_str.split(",") if o.strip()) or ("*",)

        return cls(
            engine=engine,
            log=log,
            host=os.getenv("NEXUS_HOST", "127.0.0.1"),
            port=int(os.getenv("NEXUS_PORT", "8080")),
            static_dir=Path(os.getenv("NEXUS_STATIC_DIR", str(PACKAGE_DIR / "static"))),
            cors_origins=origins,
            reload=_env_bool("NEXUS_RELOAD"),
        )


_config: Optional[ServerConfig] = None


def get_config() -> ServerConfig:
    global _config
    if _config is None:
        _config = ServerConfig.from_env()
    return _config


def setup_logging(config: Optional[ServerConfig] = None) -> None:
    cfg = config or get_config()
    logging.basicConfig(
        level=getattr(logging, normalize_log_level(cfg.log.level)),
        format=cfg.log.format,
        force=True,
    )
