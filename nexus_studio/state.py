"""Process-wide shared state: the engine slot and the project list.

One ``SharedState`` is built at startup and handed to the app factory, which
passes it on to every route and WebSocket session.

Engine slot: an ``asyncio.Lock`` around an optional engine. Every generation
holds it from load through generate, so calls are serialised process-wide.
``asyncio.Lock`` hands the lock to waiters in the order they started waiting
(FIFO).

Project list: a writer-preferring ``ReadWriteLock``. Readers share access;
a waiting writer blocks new readers.
"""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Iterable, List, Optional, TypeVar

from nexus_studio.config import ServerConfig
from nexus_studio.engine import GenerationEngine
from nexus_studio.errors import EngineUnavailable
from nexus_studio.projects import ProjectSource, ProjectSummary

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ReadWriteLock:
    """Many concurrent readers or a single writer."""

    def __init__(self):
        self._cond = asyncio.Condition()
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @property
    def readers(self) -> int:
        return self._readers

    @asynccontextmanager
    async def read(self) -> AsyncIterator[None]:
        async with self._cond:
            await self._cond.wait_for(lambda: not self._writer and self._writers_waiting == 0)
            self._readers += 1
        try:
            yield
        finally:
            # Shielded so a cancel while re-acquiring the condition cannot leak a reader.
            await asyncio.shield(self._release_read())

    async def _release_read(self) -> None:
        async with self._cond:
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    async def _release_write(self) -> None:
        async with self._cond:
            self._writer = False
            self._cond.notify_all()

    @asynccontextmanager
    async def write(self) -> AsyncIterator[None]:
        async with self._cond:
            self._writers_waiting += 1
            try:
                await self._cond.wait_for(lambda: not self._writer and self._readers == 0)
            finally:
                self._writers_waiting -= 1
                # A cancelled writer may have been the only thing holding readers back.
                self._cond.notify_all()
            self._writer = True
        try:
            yield
        finally:
            await asyncio.shield(self._release_write())


class SharedState:
    def __init__(
        self,
        engine: Optional[GenerationEngine] = None,
        projects: Iterable[ProjectSummary] = (),
        *,
        max_tokens: int = 2000,
    ):
        self._engine = engine
        self._engine_lock = asyncio.Lock()
        self._projects: List[ProjectSummary] = list(projects)
        self._projects_lock = ReadWriteLock()
        self.max_tokens = max_tokens

    # ------------------------------------------------------------------
    # Engine slot
    # ------------------------------------------------------------------

    @property
    def engine_available(self) -> bool:
        return self._engine is not None

    @property
    def engine_busy(self) -> bool:
        return self._engine_lock.locked()

    def engine_info(self) -> Optional[dict]:
        return self._engine.model_info() if self._engine is not None else None

    async def with_engine_mut(self, fn: Callable[[GenerationEngine], Awaitable[T]]) -> T:
        """
        Run ``fn`` with exclusive access to the engine and return its result.

        Raises EngineUnavailable straight away, without queueing on the lock,
        when no engine was configured. The lock is released on every exit
        path, including exceptions raised by ``fn`` and task cancellation.
        """
        if self._engine is None:
            raise EngineUnavailable()

        waited_from = time.perf_counter()
        async with self._engine_lock:
            logger.debug("Engine lock acquired after %.1f ms", (time.perf_counter() - waited_from) * 1000)
            return await fn(self._engine)

    async def warm_up(self) -> None:
        """Load the engine ahead of the first request, if there is one."""
        if self._engine is None:
            logger.info("AI disabled; generation requests will get placeholder responses")
            return
        async with self._engine_lock:
            await self._engine.load()

    # ------------------------------------------------------------------
    # Project list
    # ------------------------------------------------------------------

    async def read_projects(self) -> List[ProjectSummary]:
        async with self._projects_lock.read():
            return list(self._projects)

    async def replace_projects(self, projects: Iterable[ProjectSummary]) -> None:
        async with self._projects_lock.write():
            self._projects = list(projects)

    async def sync_projects(self, source: ProjectSource) -> int:
        """Refresh the project list from ``source``; returns the new count."""
        snapshot = source.snapshot()
        await self.replace_projects(snapshot)
        logger.debug("Project list refreshed: %d project(s)", len(snapshot))
        return len(snapshot)


def build_state(config: ServerConfig, projects: Iterable[ProjectSummary] = ()) -> SharedState:
    """Construct the shared state, creating the engine when AI is enabled."""
    engine = None
    if config.engine.enabled:
        engine = GenerationEngine(
            config.engine.model,
            context_size=config.engine.context_size,
            model_path=config.engine.model_path,
            load_latency=config.engine.load_latency,
        )
    return SharedState(engine, projects, max_tokens=config.engine.max_tokens)
