"""Pytest fixtures for integration tests.

Provides async database fixtures backed by an in-memory SQLite database,
a recording event bus standing in for the webhook, and helpers that seed
projects and sprints in a given state. Production runs on PostgreSQL; the
queries used here are portable.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any, AsyncGenerator, Awaitable, Callable

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from sprintflow.config import (
    DatabaseConfig,
    EventBusConfig,
    KnowledgeConfig,
    MirrorConfig,
    SprintflowConfig,
)
from sprintflow.database.connection import get_engine, get_session_factory
from sprintflow.database.models.artifact import ArtifactType
from sprintflow.database.models.base import Base
from sprintflow.database.models.project import ApprovalStatus, Project, ProjectStatus
from sprintflow.database.models.sprint import Sprint, SprintStatus
from sprintflow.database.queries.artifact import create_artifact
from sprintflow.database.queries.project import (
    create_project,
    get_project,
    update_project_fields,
)
from sprintflow.database.queries.sprint import create_sprints, list_sprints, update_sprint_fields
from sprintflow.integrations.events import EventDeliveryError
from sprintflow.orchestrator.side_effects import SideEffects
from sprintflow.orchestrator.state_machine import TransitionExecutor
from sprintflow.services import Services
from sprintflow.web.app import create_app

OWNER = "owner-1"
FIXED_DATE = date(2026, 3, 14)

BACKLOG = """# Backlog

## Sprint 1: Foundations
| ID | Item | Priority |
|----|------|----------|
| S1-1 | User login | High |

## Sprint 2: Reports
- Export CSV
"""

ARCHITECTURE = """# Architecture

## Tech Stack
- Python 3.12
- PostgreSQL

## Components
- API
"""


@dataclass
class RecordingEventBus:
    """EventBus that keeps every event it is sent.

    Set ``fail`` to make every send raise EventDeliveryError.
    """

    events: list[tuple[str, dict[str, Any]]] = field(default_factory=list)
    fail: bool = False

    async def send(self, name: str, payload: dict[str, Any]) -> None:
        if self.fail:
            raise EventDeliveryError(name, "webhook unavailable")
        self.events.append((name, payload))

    def named(self, name: str) -> list[dict[str, Any]]:
        return [payload for event_name, payload in self.events if event_name == name]


@dataclass
class SeededProject:
    """A project with its sprints, as seeded."""

    project: Project
    sprints: list[Sprint]


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """Use asyncio as the async backend."""
    return "asyncio"


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create an in-memory SQLite async engine with all tables."""
    test_engine = get_engine(DatabaseConfig(url="sqlite+aiosqlite:///:memory:"))

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest_asyncio.fixture
async def session_factory(
    engine: AsyncEngine,
) -> async_sessionmaker[AsyncSession]:
    """Create an async session factory bound to the test engine."""
    return get_session_factory(engine)


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """A session rolled back after the test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def event_bus() -> RecordingEventBus:
    return RecordingEventBus()


@pytest.fixture
def side_effects(event_bus: RecordingEventBus) -> SideEffects:
    """Side effects with the recording bus and no knowledge sync."""
    return SideEffects(event_bus=event_bus)


@pytest.fixture
def executor(
    session_factory: async_sessionmaker[AsyncSession],
    side_effects: SideEffects,
) -> TransitionExecutor:
    return TransitionExecutor(session_factory, side_effects)


@pytest.fixture
def clock() -> Callable[[], date]:
    return lambda: FIXED_DATE


@pytest.fixture
def test_config(tmp_path: Path) -> SprintflowConfig:
    """Configuration pointing the mirror and knowledge base at tmp_path."""
    return SprintflowConfig(
        events=EventBusConfig(enabled=False),
        mirror=MirrorConfig(root=tmp_path / "projects"),
        knowledge=KnowledgeConfig(directory=tmp_path / "knowledge", enabled=False),
    )


@pytest.fixture
def services(
    test_config: SprintflowConfig,
    engine: AsyncEngine,
    event_bus: RecordingEventBus,
) -> Services:
    return Services.create(test_config, engine=engine, event_bus=event_bus)


@pytest_asyncio.fixture
async def async_client(
    test_config: SprintflowConfig,
    services: Services,
) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to the app with the test service container."""
    app = create_app(test_config, services=services)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    await services.side_effects.drain()


@pytest.fixture
def make_project(
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[..., Awaitable[SeededProject]]:
    """Factory seeding a project, its sprints and plan documents.

    Keyword arguments:
        status: Project status (default IN_PROGRESS).
        sprint_statuses: One entry per sprint, numbered from 1.
        approval_status: Plan decision (default APPROVED).
        with_plan: Store BACKLOG and ARCHITECTURE artifacts.
        with_handoff: Store a kickoff HANDOFF artifact.
        slug: Project slug.
        owner_id: Project owner.
    """
    counter = {"n": 0}

    async def _make(
        status: ProjectStatus = ProjectStatus.IN_PROGRESS,
        sprint_statuses: list[SprintStatus] | None = None,
        approval_status: ApprovalStatus = ApprovalStatus.APPROVED,
        with_plan: bool = True,
        with_handoff: bool = False,
        slug: str | None = None,
        owner_id: str = OWNER,
    ) -> SeededProject:
        counter["n"] += 1
        statuses = sprint_statuses if sprint_statuses is not None else [SprintStatus.PLANNED]
        async with session_factory() as session:
            project = await create_project(
                session,
                name=f"Project {counter['n']}",
                slug=slug or f"project-{counter['n']}",
                owner_id=owner_id,
            )
            await update_project_fields(
                session, project.id, status=status, approval_status=approval_status
            )
            sprints = await create_sprints(
                session,
                project.id,
                [(f"Sprint {i}", f"Goal {i}") for i in range(1, len(statuses) + 1)],
            )
            for sprint, sprint_status in zip(sprints, statuses):
                if sprint_status != SprintStatus.PLANNED:
                    await update_sprint_fields(session, sprint.id, status=sprint_status)
            if with_plan:
                await create_artifact(
                    session, project.id, ArtifactType.BACKLOG, "BACKLOG.md", BACKLOG
                )
                await create_artifact(
                    session, project.id, ArtifactType.ARCHITECTURE, "ARCHITECTURE.md", ARCHITECTURE
                )
            if with_handoff:
                await create_artifact(
                    session,
                    project.id,
                    ArtifactType.HANDOFF,
                    "HANDOFF_CTO_TO_IMPLEMENTER.md",
                    "# Handoff: CTO → Implementer\n\nKickoff",
                )
            await session.commit()

        async with session_factory() as session:
            project = await get_project(session, project.id)
            sprints = await list_sprints(session, project.id)
        return SeededProject(project=project, sprints=sprints)

    return _make
