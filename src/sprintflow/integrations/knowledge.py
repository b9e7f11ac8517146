"""Knowledge base sync for Sprintflow.

Renders the current project portfolio from the database into markdown
files that AI roles read as background context:

- ``resources/active-projects.md``: every project grouped by status.
- ``owners/<owner id>.md``: one profile per project owner.

The sync is idempotent and only ever rewrites whole files. It is run
after committed state changes as a detached task, or on demand from the
``sprintflow sync-knowledge`` command.
"""

from __future__ import annotations

import asyncio
import re
from datetime import date, datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

from jinja2 import Environment, FileSystemLoader, select_autoescape
from pydantic import BaseModel, Field
from sqlalchemy import select

from sprintflow.config import KnowledgeConfig
from sprintflow.database.models.project import Project, ProjectStatus
from sprintflow.database.models.sprint import Sprint, SprintStatus
from sprintflow.logging import get_logger

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = get_logger(__name__)

# Templates directory relative to this file
TEMPLATES_DIR = Path(__file__).parent / "templates"

# Display order for the portfolio summary; unlisted statuses follow
STATUS_ORDER: list[ProjectStatus] = [
    ProjectStatus.IN_PROGRESS,
    ProjectStatus.ACTIVE,
    ProjectStatus.COMPLETE,
    ProjectStatus.APPROVED,
    ProjectStatus.REVIEW,
    ProjectStatus.PLANNING,
    ProjectStatus.INTAKE,
    ProjectStatus.COMPLETED,
    ProjectStatus.FINISHED,
    ProjectStatus.CANCELLED,
]

_UNSAFE_FILENAME = re.compile(r"[^A-Za-z0-9._-]+")


class KnowledgeSyncResult(BaseModel):
    """Outcome of a knowledge sync run.

    Attributes:
        project_count: Number of projects rendered.
        files_written: Paths of every file written.
    """

    project_count: int = Field(default=0)
    files_written: list[str] = Field(default_factory=list)


def _sprint_summary(sprints: list[Sprint]) -> str:
    active = next((s for s in sprints if s.status == SprintStatus.IN_PROGRESS), None)
    if active is not None:
        return f"Sprint {active.number}"
    if sprints:
        return f"{len(sprints)} sprints planned"
    return "No sprints"


def _owner_filename(owner_id: str) -> str:
    return f"{_UNSAFE_FILENAME.sub('-', owner_id).strip('-') or 'unknown'}.md"


class KnowledgeSync:
    """Renders knowledge base files from the database."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        config: KnowledgeConfig,
    ) -> None:
        self.session_factory = session_factory
        self.config = config
        self.logger = logger.bind(component="KnowledgeSync")
        self.env = Environment(
            loader=FileSystemLoader(str(TEMPLATES_DIR)),
            autoescape=select_autoescape(),
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )

    async def _load(self) -> list[dict[str, Any]]:
        async with self.session_factory() as db_session:
            projects = list(
                (
                    await db_session.execute(
                        select(Project).order_by(Project.updated_at.desc())
                    )
                ).scalars()
            )
            sprints = list(
                (
                    await db_session.execute(
                        select(Sprint).order_by(Sprint.project_id, Sprint.number)
                    )
                ).scalars()
            )

        by_project: dict[Any, list[Sprint]] = {}
        for sprint in sprints:
            by_project.setdefault(sprint.project_id, []).append(sprint)

        return [
            {
                "name": p.name,
                "slug": p.slug,
                "status": p.status.value,
                "approval_status": p.approval_status.value,
                "owner_id": p.owner_id,
                "implementer_id": p.implementer_id,
                "created": p.created_at.date().isoformat() if p.created_at else "",
                "updated": p.updated_at.date().isoformat() if p.updated_at else "",
                "current_sprint": _sprint_summary(by_project.get(p.id, [])),
            }
            for p in projects
        ]

    def render_summary(self, projects: list[dict[str, Any]], today: date) -> str:
        """Render ``active-projects.md`` for the given project rows."""
        by_status: dict[str, list[dict[str, Any]]] = {}
        for project in projects:
            by_status.setdefault(project["status"], []).append(project)

        ordered = [s.value for s in STATUS_ORDER if s.value in by_status]
        sections = [(status, by_status[status]) for status in ordered]

        return self.env.get_template("active_projects.md.j2").render(
            today=today.isoformat(),
            total=len(projects),
            counts=[(status, len(rows)) for status, rows in sections],
            sections=sections,
        )

    def render_owner_profile(
        self,
        owner_id: str,
        projects: list[dict[str, Any]],
        today: date,
    ) -> str:
        """Render one owner's profile."""
        return self.env.get_template("owner_profile.md.j2").render(
            today=today.isoformat(),
            owner_id=owner_id,
            projects=projects,
        )

    async def sync(self) -> KnowledgeSyncResult:
        """Render and write every knowledge base file.

        Returns:
            KnowledgeSyncResult describing what was written.

        Raises:
            OSError: If a file cannot be written.
            sqlalchemy.exc.SQLAlchemyError: If the database read fails.
        """
        if not self.config.enabled:
            self.logger.debug("knowledge_sync_disabled")
            return KnowledgeSyncResult()

        projects = await self._load()
        today = datetime.now(timezone.utc).date()

        files: dict[Path, str] = {
            self.config.directory / "resources" / "active-projects.md": self.render_summary(
                projects, today
            ),
        }

        by_owner: dict[str, list[dict[str, Any]]] = {}
        for project in projects:
            by_owner.setdefault(project["owner_id"], []).append(project)
        for owner_id, owned in by_owner.items():
            path = self.config.directory / "owners" / _owner_filename(owner_id)
            files[path] = self.render_owner_profile(owner_id, owned, today)

        await asyncio.to_thread(_write_files, files)

        result = KnowledgeSyncResult(
            project_count=len(projects),
            files_written=[str(p) for p in files],
        )
        self.logger.info(
            "knowledge_synced",
            project_count=result.project_count,
            file_count=len(result.files_written),
        )
        return result


def _write_files(files: dict[Path, str]) -> None:
    for path, content in files.items():
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
