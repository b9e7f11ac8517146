"""Post-commit side effects: event emission and knowledge sync.

State changes commit first; only then does anything here run. Two phases
are offered:

- ``emit`` awaits delivery and reports success as a boolean, for callers
  that surface the outcome (``event_sent``, ``kickoff_ready``).
- ``emit_detached`` and ``trigger_sync`` schedule background tasks whose
  failure is only ever a log line.

Background tasks are held in a registry until they finish so they are
not garbage collected mid-flight, and ``drain`` lets shutdown and tests
wait for them.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import TYPE_CHECKING, Any

import structlog

from sprintflow.integrations.events import EventDeliveryError

if TYPE_CHECKING:
    from sprintflow.integrations.events import EventBus
    from sprintflow.integrations.knowledge import KnowledgeSync

logger = structlog.get_logger(__name__)


class SideEffects:
    """Gateway for everything that happens after a commit.

    Attributes:
        event_bus: Destination for named events, or None to drop them.
        knowledge_sync: Knowledge base renderer, or None to skip syncs.
    """

    def __init__(
        self,
        event_bus: EventBus | None = None,
        knowledge_sync: KnowledgeSync | None = None,
    ) -> None:
        self.event_bus = event_bus
        self.knowledge_sync = knowledge_sync
        self._tasks: set[asyncio.Task[Any]] = set()
        self._logger = logger.bind(component="SideEffects")

    @property
    def pending(self) -> int:
        """Number of background tasks still running."""
        return len(self._tasks)

    async def emit(self, name: str, payload: dict[str, Any]) -> bool:
        """Send an event and report whether it went out.

        Failures are logged and swallowed: the state change that caused
        the event has already committed.

        Args:
            name: Event name.
            payload: Event data.

        Returns:
            True if the event bus accepted the event.
        """
        if self.event_bus is None:
            self._logger.debug("event_dropped_no_bus", event_name=name)
            return False

        try:
            await self.event_bus.send(name, payload)
        except EventDeliveryError as e:
            self._logger.warning("event_delivery_failed", event_name=name, error=str(e))
            return False
        except Exception:
            self._logger.exception("event_delivery_error", event_name=name)
            return False

        self._logger.info("event_emitted", event_name=name)
        return True

    def emit_detached(self, name: str, payload: dict[str, Any]) -> asyncio.Task[Any] | None:
        """Send an event in the background.

        Returns:
            The scheduled task, or None when there is no event bus.
        """
        if self.event_bus is None:
            self._logger.debug("event_dropped_no_bus", event_name=name)
            return None
        return self._spawn(self.emit(name, payload), f"emit:{name}")

    def trigger_sync(self) -> asyncio.Task[Any] | None:
        """Refresh the knowledge base in the background.

        Returns:
            The scheduled task, or None when sync is not configured.
        """
        if self.knowledge_sync is None:
            return None
        return self._spawn(self.knowledge_sync.sync(), "knowledge_sync")

    async def drain(self) -> None:
        """Wait for every background task scheduled so far."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _spawn(self, coro: Awaitable[Any], label: str) -> asyncio.Task[Any]:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(lambda t: self._on_done(t, label))
        return task

    def _on_done(self, task: asyncio.Task[Any], label: str) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            self._logger.warning("side_effect_cancelled", side_effect=label)
            return
        error = task.exception()
        if error is not None:
            self._logger.error(
                "side_effect_failed",
                side_effect=label,
                error=str(error),
                error_type=type(error).__name__,
            )
