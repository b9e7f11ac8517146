"""Service container shared by the web app and the CLI.

Wires the event client, handoff mirror and knowledge sync into the
side-effect gateway, and the gateway into the orchestration services.

Example usage:
    >>> from sprintflow.config import SprintflowConfig
    >>> from sprintflow.services import Services
    >>>
    >>> services = Services.create(SprintflowConfig())
    >>> await services.sprint_gate.approve(sprint_id, user_id="owner-1")
    >>> await services.close()
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from sprintflow.config import SprintflowConfig
from sprintflow.database.connection import get_engine, get_session_factory
from sprintflow.integrations.events import EventBus, EventBusClient
from sprintflow.integrations.file_mirror import HandoffMirror
from sprintflow.integrations.knowledge import KnowledgeSync
from sprintflow.logging import get_logger
from sprintflow.orchestrator.lifecycle import ProjectLifecycle
from sprintflow.orchestrator.recovery import RecoveryService
from sprintflow.orchestrator.side_effects import SideEffects
from sprintflow.orchestrator.sprint_gate import SprintApprovalGate
from sprintflow.orchestrator.state_machine import TransitionExecutor
from sprintflow.orchestrator.workflow import WorkflowTransitionProtocol

logger = get_logger(__name__)


@dataclass
class Services:
    """Everything a request handler or CLI command needs.

    Attributes:
        engine: Async SQLAlchemy engine
        session_factory: Factory for database sessions
        side_effects: Post-commit event and sync gateway
        executor: Compare-and-swap status transitions
        workflow: Role hand-off protocol
        sprint_gate: Sprint approval and rejection
        lifecycle: Project intake, plan, kickoff and reporting
        recovery: Reinitiate operations
        knowledge: Knowledge base renderer
        event_bus: Outbound event destination
    """

    engine: AsyncEngine
    session_factory: async_sessionmaker[AsyncSession]
    side_effects: SideEffects
    executor: TransitionExecutor
    workflow: WorkflowTransitionProtocol
    sprint_gate: SprintApprovalGate
    lifecycle: ProjectLifecycle
    recovery: RecoveryService
    knowledge: KnowledgeSync
    event_bus: EventBus

    @classmethod
    def create(
        cls,
        config: SprintflowConfig,
        engine: AsyncEngine | None = None,
        event_bus: EventBus | None = None,
    ) -> Services:
        """Build the container from configuration.

        Args:
            config: Sprintflow configuration
            engine: Existing engine to reuse; created from config if None
            event_bus: Event destination; an EventBusClient if None

        Returns:
            Fully wired Services instance
        """
        if engine is None:
            engine = get_engine(config.database)
        session_factory = get_session_factory(engine)

        if event_bus is None:
            event_bus = EventBusClient(config.events)
        knowledge = KnowledgeSync(session_factory, config.knowledge)
        side_effects = SideEffects(event_bus=event_bus, knowledge_sync=knowledge)
        executor = TransitionExecutor(session_factory, side_effects)

        logger.debug(
            "services_created",
            events_enabled=config.events.enabled,
            mirror_enabled=config.mirror.enabled,
            knowledge_enabled=config.knowledge.enabled,
        )

        return cls(
            engine=engine,
            session_factory=session_factory,
            side_effects=side_effects,
            executor=executor,
            workflow=WorkflowTransitionProtocol(
                session_factory,
                executor,
                side_effects,
                mirror=HandoffMirror(config.mirror),
            ),
            sprint_gate=SprintApprovalGate(session_factory, executor, side_effects),
            lifecycle=ProjectLifecycle(session_factory, executor, side_effects),
            recovery=RecoveryService(session_factory, side_effects),
            knowledge=knowledge,
            event_bus=event_bus,
        )

    async def close(self) -> None:
        """Finish background work, then release the HTTP client and pool."""
        await self.side_effects.drain()
        if isinstance(self.event_bus, EventBusClient):
            await self.event_bus.close()
        await self.engine.dispose()
        logger.info("services_closed")
