"""Integration tests for the workflow hand-off protocol.

Tests cover:
- Role hand-offs moving the sprint to its mapped status
- HANDOFF artifact, audit entry and mirror file written per hand-off
- Completing a sprint starts the next one, or completes the project
- Illegal edges, foreign sprints, terminal sprints and access checks
- Stale hand-offs and sprints outside the role cycle are refused
"""

from __future__ import annotations

import itertools
from pathlib import Path
from uuid import UUID, uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sprintflow.config import MirrorConfig
from sprintflow.database.models.artifact import ArtifactType
from sprintflow.database.models.conversation import WORKFLOW_TRANSITION
from sprintflow.database.models.project import ProjectStatus
from sprintflow.database.models.sprint import SprintStatus
from sprintflow.database.queries.artifact import list_artifacts
from sprintflow.database.queries.conversation import list_conversations
from sprintflow.database.queries.history import list_project_history, list_sprint_history
from sprintflow.database.queries.project import get_project
from sprintflow.database.queries.sprint import list_sprints
from sprintflow.integrations.file_mirror import HandoffMirror
from sprintflow.orchestrator.errors import (
    ConflictError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
)
from sprintflow.orchestrator.side_effects import SideEffects
from sprintflow.orchestrator.state_machine import TransitionExecutor
from sprintflow.orchestrator.status_registry import (
    WORKFLOW_TRANSITIONS,
    WorkflowRole,
    WorkflowStatus,
    sprint_status_for,
)
from sprintflow.orchestrator.workflow import (
    WorkflowTransitionProtocol,
    WorkflowTransitionRequest,
)

OWNER = "owner-1"


@pytest.fixture
def mirror_root(tmp_path: Path) -> Path:
    return tmp_path / "projects"


@pytest.fixture
def protocol(
    session_factory: async_sessionmaker[AsyncSession],
    executor: TransitionExecutor,
    side_effects: SideEffects,
    mirror_root: Path,
    clock,
) -> WorkflowTransitionProtocol:
    return WorkflowTransitionProtocol(
        session_factory,
        executor,
        side_effects,
        mirror=HandoffMirror(MirrorConfig(root=mirror_root)),
        clock=clock,
    )


def _request(
    project_id: UUID,
    sprint_id: UUID,
    from_status: WorkflowStatus,
    to_status: WorkflowStatus,
    from_role: WorkflowRole,
    to_role: WorkflowRole,
    decision: str = "APPROVE",
) -> WorkflowTransitionRequest:
    return WorkflowTransitionRequest(
        project_id=project_id,
        sprint_id=sprint_id,
        from_status=from_status,
        to_status=to_status,
        from_role=from_role,
        to_role=to_role,
        decision=decision,
        summary="All acceptance criteria met.",
    )


@pytest.mark.asyncio
async def test_implementer_to_reviewer_moves_sprint_to_review(
    protocol: WorkflowTransitionProtocol,
    session_factory: async_sessionmaker[AsyncSession],
    mirror_root: Path,
    make_project,
) -> None:
    seeded = await make_project(sprint_statuses=[SprintStatus.IN_PROGRESS])
    project = seeded.project
    sprint = seeded.sprints[0]

    result = await protocol.transition(
        _request(
            project.id,
            sprint.id,
            WorkflowStatus.IMPLEMENTING,
            WorkflowStatus.REVIEWING,
            WorkflowRole.IMPLEMENTER,
            WorkflowRole.REVIEWER,
        ),
        OWNER,
    )

    assert result.sprint_status == SprintStatus.REVIEW
    assert result.handoff.filename == "HANDOFF_IMPLEMENTER_TO_REVIEWER.md"
    assert result.handoff.mirrored is True
    assert result.next_sprint_id is None
    assert result.project_completed is False

    mirrored = mirror_root / project.slug / "docs" / "HANDOFF_IMPLEMENTER_TO_REVIEWER.md"
    content = mirrored.read_text(encoding="utf-8")
    assert content.startswith("# Handoff: Implementer → Reviewer")
    assert "**Date:** 2026-03-14" in content

    async with session_factory() as session:
        handoffs = await list_artifacts(session, project.id, ArtifactType.HANDOFF)
        entries = await list_conversations(session, project.id, WORKFLOW_TRANSITION)
    assert [a.name for a in handoffs] == ["HANDOFF_IMPLEMENTER_TO_REVIEWER.md"]
    assert handoffs[0].id == result.handoff.artifact_id
    assert len(entries) == 1
    assert entries[0].role == "Implementer"
    assert entries[0].input["decision"] == "APPROVE"
    assert entries[0].output["summary"] == "All acceptance criteria met."


@pytest.mark.asyncio
async def test_supplied_handoff_content_is_stored_verbatim(
    protocol: WorkflowTransitionProtocol,
    session_factory: async_sessionmaker[AsyncSession],
    make_project,
) -> None:
    seeded = await make_project(sprint_statuses=[SprintStatus.REVIEW])
    request = _request(
        seeded.project.id,
        seeded.sprints[0].id,
        WorkflowStatus.REVIEWING,
        WorkflowStatus.IMPLEMENTING,
        WorkflowRole.REVIEWER,
        WorkflowRole.IMPLEMENTER,
        decision="REQUEST_CHANGES",
    )
    request.handoff_content = "# Custom handoff"

    result = await protocol.transition(request, OWNER)

    assert result.sprint_status == SprintStatus.IN_PROGRESS
    async with session_factory() as session:
        handoffs = await list_artifacts(session, seeded.project.id, ArtifactType.HANDOFF)
    assert handoffs[0].content == "# Custom handoff"


@pytest.mark.asyncio
async def test_same_mapped_status_writes_no_history(
    protocol: WorkflowTransitionProtocol,
    session_factory: async_sessionmaker[AsyncSession],
    make_project,
) -> None:
    seeded = await make_project(sprint_statuses=[SprintStatus.REVIEW])

    result = await protocol.transition(
        _request(
            seeded.project.id,
            seeded.sprints[0].id,
            WorkflowStatus.REVIEWING,
            WorkflowStatus.TESTING,
            WorkflowRole.REVIEWER,
            WorkflowRole.QA,
        ),
        OWNER,
    )

    assert result.sprint_status == SprintStatus.REVIEW
    async with session_factory() as session:
        sprints = await list_sprints(session, seeded.project.id)
        history = await list_sprint_history(session, seeded.sprints[0].id)
    assert sprints[0].status == SprintStatus.REVIEW
    assert history == []


@pytest.mark.asyncio
async def test_completing_last_sprint_completes_project(
    protocol: WorkflowTransitionProtocol,
    session_factory: async_sessionmaker[AsyncSession],
    event_bus,
    make_project,
) -> None:
    seeded = await make_project(
        sprint_statuses=[SprintStatus.COMPLETED, SprintStatus.REVIEW],
    )
    last = seeded.sprints[1]

    result = await protocol.transition(
        _request(
            seeded.project.id,
            last.id,
            WorkflowStatus.AWAITING_APPROVAL,
            WorkflowStatus.COMPLETED,
            WorkflowRole.PM,
            WorkflowRole.IMPLEMENTER,
            decision="ACCEPT",
        ),
        OWNER,
    )

    assert result.sprint_status == SprintStatus.COMPLETED
    assert result.project_completed is True
    assert result.next_sprint_id is None
    assert event_bus.events == []

    async with session_factory() as session:
        project = await get_project(session, seeded.project.id)
        history = await list_project_history(session, seeded.project.id)
        sprints = await list_sprints(session, seeded.project.id)
    assert project.status == ProjectStatus.COMPLETED
    assert history[0].new_status == ProjectStatus.COMPLETED
    assert sprints[1].completed_at is not None


@pytest.mark.asyncio
async def test_completing_sprint_starts_next(
    protocol: WorkflowTransitionProtocol,
    session_factory: async_sessionmaker[AsyncSession],
    make_project,
) -> None:
    seeded = await make_project(
        sprint_statuses=[SprintStatus.REVIEW, SprintStatus.PLANNED],
    )

    result = await protocol.transition(
        _request(
            seeded.project.id,
            seeded.sprints[0].id,
            WorkflowStatus.AWAITING_APPROVAL,
            WorkflowStatus.COMPLETED,
            WorkflowRole.PM,
            WorkflowRole.IMPLEMENTER,
            decision="ACCEPT",
        ),
        OWNER,
    )

    assert result.next_sprint_id == seeded.sprints[1].id
    assert result.project_completed is False

    async with session_factory() as session:
        project = await get_project(session, seeded.project.id)
        sprints = await list_sprints(session, seeded.project.id)
    assert project.status == ProjectStatus.IN_PROGRESS
    assert sprints[0].status == SprintStatus.COMPLETED
    assert sprints[1].status == SprintStatus.IN_PROGRESS
    assert sprints[1].started_at is not None


@pytest.mark.asyncio
async def test_completing_completed_sprint_is_conflict(
    protocol: WorkflowTransitionProtocol,
    session_factory: async_sessionmaker[AsyncSession],
    make_project,
) -> None:
    seeded = await make_project(sprint_statuses=[SprintStatus.COMPLETED])

    with pytest.raises(ConflictError):
        await protocol.transition(
            _request(
                seeded.project.id,
                seeded.sprints[0].id,
                WorkflowStatus.AWAITING_APPROVAL,
                WorkflowStatus.COMPLETED,
                WorkflowRole.PM,
                WorkflowRole.IMPLEMENTER,
            ),
            OWNER,
        )

    async with session_factory() as session:
        handoffs = await list_artifacts(session, seeded.project.id, ArtifactType.HANDOFF)
    assert handoffs == []


@pytest.mark.asyncio
async def test_illegal_workflow_edge_is_rejected(
    protocol: WorkflowTransitionProtocol,
    session_factory: async_sessionmaker[AsyncSession],
    mirror_root: Path,
    make_project,
) -> None:
    seeded = await make_project(sprint_statuses=[SprintStatus.IN_PROGRESS])

    with pytest.raises(InvalidTransitionError):
        await protocol.transition(
            _request(
                seeded.project.id,
                seeded.sprints[0].id,
                WorkflowStatus.IMPLEMENTING,
                WorkflowStatus.COMPLETED,
                WorkflowRole.IMPLEMENTER,
                WorkflowRole.PM,
            ),
            OWNER,
        )

    assert not mirror_root.exists()
    async with session_factory() as session:
        assert await list_artifacts(session, seeded.project.id, ArtifactType.HANDOFF) == []


@pytest.mark.asyncio
async def test_sprint_of_another_project_is_not_found(
    protocol: WorkflowTransitionProtocol,
    make_project,
) -> None:
    first = await make_project(sprint_statuses=[SprintStatus.IN_PROGRESS])
    second = await make_project(sprint_statuses=[SprintStatus.IN_PROGRESS])

    with pytest.raises(NotFoundError):
        await protocol.transition(
            _request(
                first.project.id,
                second.sprints[0].id,
                WorkflowStatus.IMPLEMENTING,
                WorkflowStatus.REVIEWING,
                WorkflowRole.IMPLEMENTER,
                WorkflowRole.REVIEWER,
            ),
            OWNER,
        )


@pytest.mark.asyncio
async def test_unknown_project_is_not_found(protocol: WorkflowTransitionProtocol) -> None:
    with pytest.raises(NotFoundError):
        await protocol.transition(
            _request(
                uuid4(),
                uuid4(),
                WorkflowStatus.IMPLEMENTING,
                WorkflowStatus.REVIEWING,
                WorkflowRole.IMPLEMENTER,
                WorkflowRole.REVIEWER,
            ),
            OWNER,
        )


@pytest.mark.asyncio
async def test_other_user_is_forbidden(
    protocol: WorkflowTransitionProtocol,
    make_project,
) -> None:
    seeded = await make_project(sprint_statuses=[SprintStatus.IN_PROGRESS])

    with pytest.raises(ForbiddenError):
        await protocol.transition(
            _request(
                seeded.project.id,
                seeded.sprints[0].id,
                WorkflowStatus.IMPLEMENTING,
                WorkflowStatus.REVIEWING,
                WorkflowRole.IMPLEMENTER,
                WorkflowRole.REVIEWER,
            ),
            "intruder",
        )


@pytest.mark.asyncio
async def test_stale_hand_off_after_sprint_moved_is_conflict(
    protocol: WorkflowTransitionProtocol,
    session_factory: async_sessionmaker[AsyncSession],
    make_project,
) -> None:
    seeded = await make_project(sprint_statuses=[SprintStatus.REVIEW])
    project_id, sprint_id = seeded.project.id, seeded.sprints[0].id

    await protocol.transition(
        _request(
            project_id,
            sprint_id,
            WorkflowStatus.REVIEWING,
            WorkflowStatus.IMPLEMENTING,
            WorkflowRole.REVIEWER,
            WorkflowRole.IMPLEMENTER,
            decision="REQUEST_CHANGES",
        ),
        OWNER,
    )

    with pytest.raises(ConflictError):
        await protocol.transition(
            _request(
                project_id,
                sprint_id,
                WorkflowStatus.REVIEWING,
                WorkflowStatus.TESTING,
                WorkflowRole.REVIEWER,
                WorkflowRole.QA,
            ),
            OWNER,
        )

    async with session_factory() as session:
        sprints = await list_sprints(session, project_id)
        handoffs = await list_artifacts(session, project_id, ArtifactType.HANDOFF)
        entries = await list_conversations(session, project_id, WORKFLOW_TRANSITION)
    assert sprints[0].status == SprintStatus.IN_PROGRESS
    assert len(handoffs) == 1
    assert len(entries) == 1


@pytest.mark.asyncio
async def test_hand_off_from_wrong_status_writes_nothing(
    protocol: WorkflowTransitionProtocol,
    session_factory: async_sessionmaker[AsyncSession],
    mirror_root: Path,
    make_project,
) -> None:
    seeded = await make_project(sprint_statuses=[SprintStatus.IN_PROGRESS])

    with pytest.raises(ConflictError):
        await protocol.transition(
            _request(
                seeded.project.id,
                seeded.sprints[0].id,
                WorkflowStatus.TESTING,
                WorkflowStatus.AWAITING_APPROVAL,
                WorkflowRole.QA,
                WorkflowRole.PM,
            ),
            OWNER,
        )

    async with session_factory() as session:
        assert await list_artifacts(session, seeded.project.id, ArtifactType.HANDOFF) == []
        assert await list_conversations(session, seeded.project.id, WORKFLOW_TRANSITION) == []
        sprints = await list_sprints(session, seeded.project.id)
    assert sprints[0].status == SprintStatus.IN_PROGRESS
    assert not mirror_root.exists()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "sprint_status",
    [SprintStatus.AWAITING_APPROVAL, SprintStatus.PLANNED, SprintStatus.BLOCKED],
)
async def test_workflow_cannot_complete_sprint_outside_role_cycle(
    protocol: WorkflowTransitionProtocol,
    session_factory: async_sessionmaker[AsyncSession],
    make_project,
    sprint_status: SprintStatus,
) -> None:
    seeded = await make_project(sprint_statuses=[sprint_status])

    with pytest.raises(InvalidTransitionError):
        await protocol.transition(
            _request(
                seeded.project.id,
                seeded.sprints[0].id,
                WorkflowStatus.AWAITING_APPROVAL,
                WorkflowStatus.COMPLETED,
                WorkflowRole.PM,
                WorkflowRole.IMPLEMENTER,
                decision="ACCEPT",
            ),
            OWNER,
        )

    async with session_factory() as session:
        project = await get_project(session, seeded.project.id)
        sprints = await list_sprints(session, seeded.project.id)
        handoffs = await list_artifacts(session, seeded.project.id, ArtifactType.HANDOFF)
    assert project.status == ProjectStatus.IN_PROGRESS
    assert sprints[0].status == sprint_status
    assert sprints[0].completed_at is None
    assert handoffs == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("from_status", "to_status"),
    [
        (from_status, to_status)
        for from_status, to_status in itertools.product(WorkflowStatus, WorkflowStatus)
        if to_status not in WORKFLOW_TRANSITIONS[from_status]
    ],
)
async def test_every_illegal_workflow_edge_is_rejected(
    protocol: WorkflowTransitionProtocol,
    session_factory: async_sessionmaker[AsyncSession],
    make_project,
    from_status: WorkflowStatus,
    to_status: WorkflowStatus,
) -> None:
    seeded = await make_project(sprint_statuses=[sprint_status_for(from_status)])

    with pytest.raises(InvalidTransitionError):
        await protocol.transition(
            _request(
                seeded.project.id,
                seeded.sprints[0].id,
                from_status,
                to_status,
                WorkflowRole.IMPLEMENTER,
                WorkflowRole.REVIEWER,
            ),
            OWNER,
        )

    async with session_factory() as session:
        sprints = await list_sprints(session, seeded.project.id)
        entries = await list_conversations(session, seeded.project.id, WORKFLOW_TRANSITION)
        history = await list_sprint_history(session, seeded.sprints[0].id)
    assert sprints[0].status == sprint_status_for(from_status)
    assert entries == []
    assert history == []
