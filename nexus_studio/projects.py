"""Project summaries exposed by the listing endpoint.

Projects are created and edited by the scaffolding tools; the web service only
reads snapshots of them through a ``ProjectSource``.
"""

from __future__ import annotations

from typing import Iterable, List, Protocol

from pydantic import BaseModel


class ProjectSummary(BaseModel):
    name: str
    template: str = "default"
    framework: str = "react"
    root: str = ""


class ProjectSource(Protocol):
    def snapshot(self) -> List[ProjectSummary]:
        ...


class InMemoryProjectSource:
    """A ProjectSource backed by a plain list."""

    def __init__(self, projects: Iterable[ProjectSummary] = ()):
        self._projects = list(projects)

    def add(self, project: ProjectSummary) -> None:
        self._projects = [p for p in self._projects if p.name != project.name]
        self._projects.append(project)

    def snapshot(self) -> List[ProjectSummary]:
        return list(self._projects)
