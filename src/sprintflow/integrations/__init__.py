"""External integrations for Sprintflow.

- events: webhook event bus client
- file_mirror: handoff document mirror on disk
- knowledge: markdown knowledge base sync
"""

from sprintflow.integrations.events import (
    EventBus,
    EventBusClient,
    EventDeliveryError,
    EventEnvelope,
    EventName,
)
from sprintflow.integrations.file_mirror import HandoffMirror
from sprintflow.integrations.knowledge import KnowledgeSync, KnowledgeSyncResult

__all__ = [
    "EventBus",
    "EventBusClient",
    "EventDeliveryError",
    "EventEnvelope",
    "EventName",
    "HandoffMirror",
    "KnowledgeSync",
    "KnowledgeSyncResult",
]
