"""Event bus client for notifying external AI role workers.

Events are posted as JSON envelopes ``{"name", "data", "timestamp"}`` to a
configured webhook. Unlike the best-effort callers in
``sprintflow.orchestrator.side_effects``, this client reports delivery
failure by raising EventDeliveryError so the caller decides what a failed
send means.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Protocol

import httpx

from sprintflow.config import EventBusConfig
from sprintflow.logging import get_logger

logger = get_logger(__name__)


class EventName(str, Enum):
    """Events emitted after committed state changes."""

    PROJECT_KICKED_OFF = "project/kicked_off"
    SPRINT_APPROVED = "sprint/approved"
    SPRINT_REJECTED = "sprint/rejected"


class EventDeliveryError(Exception):
    """Raised when an event could not be delivered to the bus."""

    def __init__(self, name: str, reason: str) -> None:
        self.name = name
        self.reason = reason
        super().__init__(f"Failed to deliver event {name}: {reason}")


class EventBus(Protocol):
    """Anything that can deliver a named event with a JSON payload."""

    async def send(self, name: str, payload: dict[str, Any]) -> None: ...


@dataclass
class EventEnvelope:
    """Wire format for a single event."""

    name: str
    timestamp: datetime
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert envelope to dictionary for JSON serialization."""
        return {
            "name": self.name,
            "data": self.data,
            "timestamp": self.timestamp.isoformat(),
        }


class EventBusClient:
    """httpx-backed EventBus posting envelopes to a webhook."""

    def __init__(self, config: EventBusConfig) -> None:
        self.config = config
        self.logger = logger.bind(component="EventBusClient")
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.config.timeout_seconds)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def send(self, name: str, payload: dict[str, Any]) -> None:
        """Post one event to the webhook.

        Args:
            name: Event name, e.g. ``sprint/approved``.
            payload: JSON-serializable event data.

        Raises:
            EventDeliveryError: When the bus is disabled in configuration,
                on transport errors, or on non-2xx responses.
        """
        if not self.config.enabled:
            self.logger.debug("event_bus_disabled", event_name=name)
            raise EventDeliveryError(name, "event bus disabled")

        envelope = EventEnvelope(
            name=name,
            timestamp=datetime.now(timezone.utc),
            data=payload,
        )
        headers = {"Content-Type": "application/json"}
        if self.config.auth_header:
            headers["Authorization"] = self.config.auth_header

        try:
            client = await self._get_client()
            response = await client.post(
                self.config.webhook_url,
                json=envelope.to_dict(),
                headers=headers,
            )
        except httpx.RequestError as e:
            raise EventDeliveryError(name, str(e)) from e

        if not response.is_success:
            raise EventDeliveryError(
                name,
                f"HTTP {response.status_code}: {response.text[:200]}",
            )

        self.logger.info(
            "event_sent",
            event_name=name,
            status_code=response.status_code,
        )
