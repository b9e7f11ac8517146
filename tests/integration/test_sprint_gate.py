"""Integration tests for the sprint approval gate.

Tests cover:
- Approval starts the sprint, stores the handoff and emits sprint/approved
- Approval outside AWAITING_APPROVAL is rejected without writes
- Rejection re-queues the sprint and sends a background notice
- Event delivery failure does not undo the committed approval
"""

from __future__ import annotations

from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from sprintflow.database.models.sprint import SprintStatus
from sprintflow.database.queries.history import list_sprint_history
from sprintflow.database.queries.sprint import get_sprint, list_sprints, update_sprint_fields
from sprintflow.orchestrator.errors import ForbiddenError, InvalidTransitionError, NotFoundError
from sprintflow.orchestrator.side_effects import SideEffects
from sprintflow.orchestrator.sprint_gate import SprintApprovalGate
from sprintflow.orchestrator.state_machine import TransitionExecutor

OWNER = "owner-1"


@pytest.fixture
def gate(
    session_factory: async_sessionmaker[AsyncSession],
    executor: TransitionExecutor,
    side_effects: SideEffects,
    clock,
) -> SprintApprovalGate:
    return SprintApprovalGate(session_factory, executor, side_effects, clock=clock)


@pytest.mark.asyncio
async def test_approve_starts_sprint_and_emits_event(
    gate: SprintApprovalGate,
    session_factory: async_sessionmaker[AsyncSession],
    event_bus,
    make_project,
) -> None:
    seeded = await make_project(
        sprint_statuses=[SprintStatus.COMPLETED, SprintStatus.AWAITING_APPROVAL],
        with_handoff=True,
    )
    first, second = seeded.sprints
    async with session_factory() as session:
        await update_sprint_fields(session, first.id, review_summary="Sprint 1 went well")
        await session.commit()

    result = await gate.approve(second.id, OWNER, approval_notes="Focus on exports")

    assert result.status == SprintStatus.IN_PROGRESS
    assert result.started_at is not None
    assert result.event_sent is True
    assert result.sprint_number == 2

    async with session_factory() as session:
        sprint = await get_sprint(session, second.id)
        history = await list_sprint_history(session, second.id)
    assert sprint.handoff_content.startswith("# Sprint 2 Handoff: Sprint 2")
    assert "**Date:** 2026-03-14" in sprint.handoff_content
    assert "## Approval Notes\nFocus on exports" in sprint.handoff_content
    assert "## Previous Sprint Review\nSprint 1 went well" in sprint.handoff_content
    assert "- Export CSV" in sprint.handoff_content
    assert len(history) == 1
    assert history[0].old_status == SprintStatus.AWAITING_APPROVAL
    assert history[0].new_status == SprintStatus.IN_PROGRESS

    approved = event_bus.named("sprint/approved")
    assert len(approved) == 1
    payload = approved[0]
    assert payload["sprint_id"] == str(second.id)
    assert payload["sprint_number"] == 2
    assert payload["approval_notes"] == "Focus on exports"
    assert payload["previous_sprint_review"] == "Sprint 1 went well"
    assert payload["handoff_content"] == sprint.handoff_content
    assert payload["project_slug"] == seeded.project.slug


@pytest.mark.asyncio
async def test_approve_requires_awaiting_approval(
    gate: SprintApprovalGate,
    session_factory: async_sessionmaker[AsyncSession],
    event_bus,
    make_project,
) -> None:
    seeded = await make_project(sprint_statuses=[SprintStatus.PLANNED])

    with pytest.raises(InvalidTransitionError):
        await gate.approve(seeded.sprints[0].id, OWNER)

    async with session_factory() as session:
        assert await list_sprint_history(session, seeded.sprints[0].id) == []
    assert event_bus.events == []


@pytest.mark.asyncio
async def test_second_approval_is_rejected(
    gate: SprintApprovalGate,
    event_bus,
    make_project,
) -> None:
    seeded = await make_project(sprint_statuses=[SprintStatus.AWAITING_APPROVAL])
    sprint_id = seeded.sprints[0].id

    await gate.approve(sprint_id, OWNER)
    with pytest.raises(InvalidTransitionError):
        await gate.approve(sprint_id, OWNER)

    assert len(event_bus.named("sprint/approved")) == 1


@pytest.mark.asyncio
async def test_approve_reports_failed_event(
    gate: SprintApprovalGate,
    session_factory: async_sessionmaker[AsyncSession],
    event_bus,
    make_project,
) -> None:
    seeded = await make_project(sprint_statuses=[SprintStatus.AWAITING_APPROVAL])
    event_bus.fail = True

    result = await gate.approve(seeded.sprints[0].id, OWNER)

    assert result.event_sent is False
    async with session_factory() as session:
        sprint = await get_sprint(session, seeded.sprints[0].id)
    assert sprint.status == SprintStatus.IN_PROGRESS


@pytest.mark.asyncio
async def test_reject_returns_sprint_to_planned(
    gate: SprintApprovalGate,
    session_factory: async_sessionmaker[AsyncSession],
    side_effects: SideEffects,
    event_bus,
    make_project,
) -> None:
    seeded = await make_project(
        sprint_statuses=[SprintStatus.AWAITING_APPROVAL, SprintStatus.PLANNED],
    )
    target = seeded.sprints[0]

    result = await gate.reject(target.id, OWNER, reason="Scope too large")
    await side_effects.drain()

    assert result.status == SprintStatus.PLANNED
    assert result.event_sent is None

    async with session_factory() as session:
        sprints = await list_sprints(session, seeded.project.id)
        history = await list_sprint_history(session, target.id)
    assert [s.status for s in sprints] == [SprintStatus.PLANNED, SprintStatus.PLANNED]
    assert len(history) == 1
    assert history[0].new_status == SprintStatus.PLANNED

    rejected = event_bus.named("sprint/rejected")
    assert len(rejected) == 1
    assert rejected[0]["rejection_reason"] == "Scope too large"
    assert rejected[0]["sprint_id"] == str(target.id)


@pytest.mark.asyncio
async def test_reject_requires_awaiting_approval(
    gate: SprintApprovalGate,
    make_project,
) -> None:
    seeded = await make_project(sprint_statuses=[SprintStatus.IN_PROGRESS])

    with pytest.raises(InvalidTransitionError):
        await gate.reject(seeded.sprints[0].id, OWNER)


@pytest.mark.asyncio
async def test_unknown_sprint_is_not_found(gate: SprintApprovalGate) -> None:
    with pytest.raises(NotFoundError):
        await gate.approve(uuid4(), OWNER)


@pytest.mark.asyncio
async def test_other_user_cannot_approve(
    gate: SprintApprovalGate,
    make_project,
) -> None:
    seeded = await make_project(sprint_statuses=[SprintStatus.AWAITING_APPROVAL])

    with pytest.raises(ForbiddenError):
        await gate.approve(seeded.sprints[0].id, "intruder")
