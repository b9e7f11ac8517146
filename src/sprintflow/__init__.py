"""Sprintflow - sprint lifecycle coordination for AI-assisted delivery teams.

This package moves projects through intake, planning, owner approval and
sprint-by-sprint implementation, handing work between the Implementer,
Reviewer, QA and PM roles with auditable, concurrency-safe state changes.
"""

__version__ = "0.1.0"
