"""Database query functions for Sprintflow.

This module provides async query functions for all database entities:
- Project creation, lookup and compare-and-swap status updates
- Sprint bulk creation, lookup and compare-and-swap status updates
- Append-only artifacts, status history and conversation log
"""

from sprintflow.database.queries.artifact import (
    create_artifact,
    get_first_artifact,
    get_latest_artifact,
    list_artifacts,
)
from sprintflow.database.queries.conversation import (
    create_conversation,
    list_conversations,
)
from sprintflow.database.queries.history import (
    list_project_history,
    list_sprint_history,
    record_project_status_change,
    record_sprint_status_change,
)
from sprintflow.database.queries.project import (
    compare_and_set_project_status,
    create_project,
    get_project,
    list_projects,
    project_exists,
    update_project_fields,
)
from sprintflow.database.queries.sprint import (
    compare_and_set_sprint_status,
    create_sprints,
    get_sprint,
    get_sprint_by_number,
    list_sprints,
    sprint_exists,
    update_sprint_fields,
)

__all__ = [
    # Project queries
    "create_project",
    "get_project",
    "list_projects",
    "project_exists",
    "compare_and_set_project_status",
    "update_project_fields",
    # Sprint queries
    "create_sprints",
    "get_sprint",
    "get_sprint_by_number",
    "list_sprints",
    "sprint_exists",
    "compare_and_set_sprint_status",
    "update_sprint_fields",
    # Artifact queries
    "create_artifact",
    "get_first_artifact",
    "get_latest_artifact",
    "list_artifacts",
    # History queries
    "record_project_status_change",
    "record_sprint_status_change",
    "list_project_history",
    "list_sprint_history",
    # Conversation queries
    "create_conversation",
    "list_conversations",
]
