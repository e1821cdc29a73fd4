"""Generation engine: the single code-generation backend shared by the web service."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from nexus_studio.errors import EngineConfigError, EngineLoadError

logger = logging.getLogger(__name__)

MAX_RESPONSE_TOKENS = 500
DEFAULT_CONTEXT_SIZE = 4096
DEFAULT_LOAD_LATENCY = 0.2


class ModelType(Enum):
    PHI3_MINI = "phi-3-mini"
    PHI3_SMALL = "phi-3-small"
    PHI3_MEDIUM = "phi-3-medium"
    CUSTOM = "custom"


_PHI3_MODELS = {ModelType.PHI3_MINI, ModelType.PHI3_SMALL, ModelType.PHI3_MEDIUM}
_KNOWN_MODELS = {m.value: m for m in _PHI3_MODELS}


def resolve_model_type(model_name: str) -> ModelType:
    """Map a model name to a known variant; anything unrecognised is CUSTOM."""
    return _KNOWN_MODELS.get(model_name.strip().lower(), ModelType.CUSTOM)


@dataclass
class GenerationResult:
    content: str
    tokens: int
    time_ms: int
    model: str


class GenerationEngine:
    """
    A lazily-loaded code generator.

    ``generate`` loads the engine on first use; loading is idempotent. The
    instance holds mutable state (the loaded flag), so callers sharing one
    engine must serialise access (see ``SharedState.with_engine_mut``).
    """

    def __init__(
        self,
        model_name: str,
        *,
        context_size: int = DEFAULT_CONTEXT_SIZE,
        model_path: Optional[str] = None,
        load_latency: float = DEFAULT_LOAD_LATENCY,
    ):
        if not model_name or not model_name.strip():
            raise EngineConfigError("Model name must be a non-empty string")
        self.model_type = resolve_model_type(model_name)
        self._name = self.model_type.value if self.model_type is not ModelType.CUSTOM else model_name
        self.context_size = context_size
        self.model_path = Path(model_path) if model_path else None
        self.load_latency = load_latency
        self._loaded = False

    @property
    def model(self) -> str:
        return self._name

    @property
    def loaded(self) -> bool:
        return self._loaded

    def model_info(self) -> dict:
        return {
            "model": self._name,
            "context_size": self.context_size,
            "loaded": self._loaded,
        }

    async def load(self) -> None:
        if self._loaded:
            return
        if self.model_path is not None and not self.model_path.exists():
            raise EngineLoadError(
                f"Model weights not found for {self._name}",
                details={"model_path": str(self.model_path)},
            )
        logger.info("Loading AI model: %s", self._name)
        await asyncio.sleep(self.load_latency)
        self._loaded = True
        logger.info("AI model loaded: %s", self._name)

    async def generate(self, prompt: str, max_tokens: int) -> GenerationResult:
        await self.load()

        started = time.perf_counter()
        if self.model_type in _PHI3_MODELS:
            content = self._phi3_response(prompt)
        else:
            content = self._generic_response(prompt)
        elapsed = time.perf_counter() - started

        return GenerationResult(
            content=content,
            tokens=min(max_tokens, MAX_RESPONSE_TOKENS),
            time_ms=int(elapsed * 1000),
            model=self._name,
        )

    def _phi3_response(self, prompt: str) -> str:
        lowered = prompt.lower()
        if "login" in lowered:
            return "// Generated login component placeholder"
        if "card" in lowered:
            return "// Generated card component placeholder"
        return self._generic_response(prompt)

    @staticmethod
    def _generic_response(prompt: str) -> str:
        return f"// Generated code based on prompt: {prompt}"

    def __repr__(self) -> str:
        return f"GenerationEngine(model={self._name!r}, loaded={self._loaded})"
