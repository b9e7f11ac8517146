"""Integration tests for query functions.

Covers project, sprint, artifact, history and conversation queries
against an in-memory SQLite database.
"""

from __future__ import annotations

from datetime import timedelta
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from sprintflow.database.models.artifact import ArtifactType
from sprintflow.database.models.project import ApprovalStatus, ProjectStatus
from sprintflow.database.models.sprint import SprintStatus
from sprintflow.database.queries.artifact import (
    create_artifact,
    get_first_artifact,
    get_latest_artifact,
    list_artifacts,
)
from sprintflow.database.queries.conversation import create_conversation, list_conversations
from sprintflow.database.queries.history import (
    list_project_history,
    record_project_status_change,
)
from sprintflow.database.queries.project import (
    compare_and_set_project_status,
    create_project,
    get_project,
    list_projects,
    project_exists,
)
from sprintflow.database.queries.sprint import (
    compare_and_set_sprint_status,
    create_sprints,
    get_sprint,
    get_sprint_by_number,
    list_sprints,
    sprint_exists,
)


@pytest.mark.asyncio
async def test_create_project_defaults(db_session: AsyncSession) -> None:
    project = await create_project(
        db_session, name="Acme Portal", slug="acme-portal", owner_id="owner-1"
    )

    assert project.status == ProjectStatus.INTAKE
    assert project.approval_status == ApprovalStatus.PENDING
    assert project.intake_data == {}
    assert project.archived_at is None
    assert await project_exists(db_session, project.id)
    assert not await project_exists(db_session, uuid4())


@pytest.mark.asyncio
async def test_duplicate_slug_rejected(db_session: AsyncSession) -> None:
    await create_project(db_session, name="A", slug="same", owner_id="o")
    with pytest.raises(IntegrityError):
        await create_project(db_session, name="B", slug="same", owner_id="o")


@pytest.mark.asyncio
async def test_list_projects_with_filter(db_session: AsyncSession) -> None:
    first = await create_project(db_session, name="A", slug="a", owner_id="o")
    await create_project(db_session, name="B", slug="b", owner_id="o")
    await compare_and_set_project_status(
        db_session, first.id, ProjectStatus.INTAKE, ProjectStatus.PLANNING
    )

    planning = await list_projects(db_session, status_filter=ProjectStatus.PLANNING)
    assert [p.slug for p in planning] == ["a"]
    assert len(await list_projects(db_session)) == 2


@pytest.mark.asyncio
async def test_compare_and_set_only_matches_expected(db_session: AsyncSession) -> None:
    project = await create_project(db_session, name="A", slug="a", owner_id="o")

    assert not await compare_and_set_project_status(
        db_session, project.id, ProjectStatus.REVIEW, ProjectStatus.APPROVED
    )
    assert await compare_and_set_project_status(
        db_session, project.id, ProjectStatus.INTAKE, ProjectStatus.PLANNING
    )
    reread = await get_project(db_session, project.id)
    assert reread.status == ProjectStatus.PLANNING


@pytest.mark.asyncio
async def test_create_sprints_numbers_from_one(db_session: AsyncSession) -> None:
    project = await create_project(db_session, name="A", slug="a", owner_id="o")

    sprints = await create_sprints(
        db_session, project.id, [("Foundations", "Login"), (None, None), ("Polish", None)]
    )

    assert [s.number for s in sprints] == [1, 2, 3]
    assert all(s.status == SprintStatus.PLANNED for s in sprints)
    assert sprints[1].display_name == "Sprint 2"
    listed = await list_sprints(db_session, project.id)
    assert [s.id for s in listed] == [s.id for s in sprints]
    second = await get_sprint_by_number(db_session, project.id, 2)
    assert second.id == sprints[1].id
    assert await get_sprint_by_number(db_session, project.id, 4) is None


@pytest.mark.asyncio
async def test_sprint_compare_and_set(db_session: AsyncSession) -> None:
    project = await create_project(db_session, name="A", slug="a", owner_id="o")
    [sprint] = await create_sprints(db_session, project.id, [("One", None)])

    assert await compare_and_set_sprint_status(
        db_session, sprint.id, SprintStatus.PLANNED, SprintStatus.IN_PROGRESS
    )
    assert not await compare_and_set_sprint_status(
        db_session, sprint.id, SprintStatus.PLANNED, SprintStatus.IN_PROGRESS
    )
    assert (await get_sprint(db_session, sprint.id)).status == SprintStatus.IN_PROGRESS
    assert await sprint_exists(db_session, sprint.id)


@pytest.mark.asyncio
async def test_sprint_compare_and_set_same_status_checks_updated_at(
    db_session: AsyncSession,
) -> None:
    project = await create_project(db_session, name="A", slug="a", owner_id="o")
    [sprint] = await create_sprints(db_session, project.id, [("One", None)])
    observed = (await get_sprint(db_session, sprint.id)).updated_at

    assert await compare_and_set_sprint_status(
        db_session,
        sprint.id,
        SprintStatus.PLANNED,
        SprintStatus.PLANNED,
        expected_updated_at=observed,
        updated_at=observed + timedelta(seconds=1),
    )
    assert not await compare_and_set_sprint_status(
        db_session,
        sprint.id,
        SprintStatus.PLANNED,
        SprintStatus.PLANNED,
        expected_updated_at=observed,
    )


@pytest.mark.asyncio
async def test_artifact_first_and_latest(db_session: AsyncSession) -> None:
    project = await create_project(db_session, name="A", slug="a", owner_id="o")
    await create_artifact(db_session, project.id, ArtifactType.HANDOFF, "H1.md", "first")
    await create_artifact(db_session, project.id, ArtifactType.BACKLOG, "BACKLOG.md", "v1")
    await create_artifact(
        db_session, project.id, ArtifactType.BACKLOG, "BACKLOG.md", "v2", version=2
    )
    await create_artifact(db_session, project.id, ArtifactType.HANDOFF, "H2.md", "second")

    first = await get_first_artifact(db_session, project.id, ArtifactType.HANDOFF)
    assert first.content == "first"
    assert (await get_latest_artifact(db_session, project.id, ArtifactType.BACKLOG)).content == "v2"
    assert await get_first_artifact(db_session, project.id, ArtifactType.ARCHITECTURE) is None
    handoffs = await list_artifacts(db_session, project.id, ArtifactType.HANDOFF)
    assert [a.name for a in handoffs] == ["H1.md", "H2.md"]
    assert len(await list_artifacts(db_session, project.id)) == 4


@pytest.mark.asyncio
async def test_project_history_newest_first(db_session: AsyncSession) -> None:
    project = await create_project(db_session, name="A", slug="a", owner_id="o")
    await record_project_status_change(
        db_session, project.id, ProjectStatus.IN_PROGRESS, ProjectStatus.COMPLETE, "u1"
    )
    await record_project_status_change(
        db_session, project.id, ProjectStatus.COMPLETE, ProjectStatus.APPROVED, "u2"
    )

    history = await list_project_history(db_session, project.id)
    assert [h.new_status for h in history] == [ProjectStatus.APPROVED, ProjectStatus.COMPLETE]
    assert history[0].changed_by == "u2"


@pytest.mark.asyncio
async def test_conversations_filtered_by_type(db_session: AsyncSession) -> None:
    project = await create_project(db_session, name="A", slug="a", owner_id="o")
    await create_conversation(
        db_session, project.id, "Reviewer", "workflow_transition", {"a": 1}, {"b": 2}
    )
    await create_conversation(db_session, project.id, "PM", "note", {}, {})

    entries = await list_conversations(db_session, project.id, "workflow_transition")
    assert len(entries) == 1
    assert entries[0].role == "Reviewer"
    assert entries[0].input == {"a": 1}
