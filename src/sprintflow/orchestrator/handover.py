"""Handoff document builder.

Renders the markdown documents passed between roles:

- the sprint handoff written when the owner approves a sprint,
- the role-to-role handoff written on each workflow transition,
- the CTO -> Implementer handoff written at project kickoff.

Every function here is pure. The date stamp is an argument, so identical
inputs always produce byte-identical output, and nothing here touches
storage: callers decide where a document is persisted or mirrored.

Sprint excerpt extraction treats "no matching heading" as a normal
outcome and returns SPRINT_SECTION_FALLBACK instead of raising.
"""

from __future__ import annotations

import re
from datetime import date
from enum import Enum

from pydantic import BaseModel, Field

from sprintflow.orchestrator.status_registry import Decision, WorkflowRole

SPRINT_SECTION_FALLBACK = "No specific sprint items found in backlog. See full backlog below."
HANDOFF_REFERENCE_LIMIT = 2000
TRUNCATION_MARKER = "[Truncated - see original HANDOFF document for full details]"
KICKOFF_HANDOFF_FILENAME = "HANDOFF_CTO_TO_IMPLEMENTER.md"

# End of a backlog section: the next markdown heading, or end of text
NEXT_HEADING = r"\n#{1,3}\s|\Z"

TECH_STACK_LIMIT = 500

DEFAULT_NEXT_STEPS = "- [ ] Review handoff and proceed"

# Checklists keyed by role, then by decision tag; "default" is the fallback
NEXT_STEPS: dict[WorkflowRole, dict[str, str]] = {
    WorkflowRole.IMPLEMENTER: {
        Decision.REQUEST_CHANGES.value: (
            "- [ ] Review the issues identified\n"
            "- [ ] Fix all critical and high priority issues\n"
            "- [ ] Test changes locally\n"
            "- [ ] Prepare updated handoff for Reviewer"
        ),
        Decision.FIX_REQUIRED.value: (
            "- [ ] Review the bugs found in QA\n"
            "- [ ] Fix Critical bugs first, then High\n"
            "- [ ] Retest locally\n"
            "- [ ] Hand off back to QA for verification"
        ),
        "default": (
            "- [ ] Review handoff\n"
            "- [ ] Implement required changes\n"
            "- [ ] Test locally\n"
            "- [ ] Hand off to next role"
        ),
    },
    WorkflowRole.REVIEWER: {
        "default": (
            "- [ ] Review all changed files\n"
            "- [ ] Check code quality and patterns\n"
            "- [ ] Verify security considerations\n"
            "- [ ] Check error handling\n"
            "- [ ] Approve or request changes"
        ),
    },
    WorkflowRole.QA: {
        "default": (
            "- [ ] Test against acceptance criteria\n"
            "- [ ] Test edge cases and error scenarios\n"
            "- [ ] Document any bugs found\n"
            "- [ ] Prepare QA report\n"
            "- [ ] Recommend accept or fix required"
        ),
    },
    WorkflowRole.PM: {
        "default": (
            "- [ ] Review QA report\n"
            "- [ ] Verify acceptance criteria\n"
            "- [ ] Make acceptance decision\n"
            "- [ ] Update project status"
        ),
    },
}


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


class SprintHandoffInput(BaseModel):
    """Everything the sprint handoff is rendered from.

    Attributes:
        project_name: Project display name.
        sprint_number: 1-based sprint number.
        sprint_name: Optional sprint name; defaults to "Sprint N".
        sprint_goal: Optional sprint goal.
        backlog: Full BACKLOG.md text, possibly empty.
        architecture: Full ARCHITECTURE.md text, possibly empty.
        original_handoff: Project-level kickoff handoff, possibly empty.
        previous_review: Previous sprint's review summary, possibly empty.
        approval_notes: Owner notes given with the approval, possibly empty.
    """

    project_name: str
    sprint_number: int = Field(ge=1)
    sprint_name: str | None = None
    sprint_goal: str | None = None
    backlog: str = ""
    architecture: str = ""
    original_handoff: str = ""
    previous_review: str = ""
    approval_notes: str = ""


# ---------------------------------------------------------------------------
# Small helpers
# ---------------------------------------------------------------------------


def _value(item: Enum | str) -> str:
    return item.value if isinstance(item, Enum) else str(item)


def handoff_filename(from_role: WorkflowRole | str, to_role: WorkflowRole | str) -> str:
    """Return ``HANDOFF_<FROM>_TO_<TO>.md`` for a pair of roles."""
    return f"HANDOFF_{_value(from_role).upper()}_TO_{_value(to_role).upper()}.md"


def next_steps_for_role(role: WorkflowRole | str, decision: Decision | str) -> str:
    """Return the markdown checklist for the receiving role.

    Decision-specific steps win over the role default; unknown roles get a
    generic single-item checklist.
    """
    try:
        steps = NEXT_STEPS[WorkflowRole(_value(role))]
    except ValueError:
        return DEFAULT_NEXT_STEPS
    return steps.get(_value(decision)) or steps.get("default") or DEFAULT_NEXT_STEPS


def extract_sprint_section(backlog: str, sprint_number: int) -> str:
    """Return the backlog section for one sprint.

    Heading styles are tried in order: ``## Sprint N``, ``### Sprint N``,
    then ``**Sprint N**``. The first match, up to the next markdown heading
    (or the next bold sprint label), is returned trimmed. ``Sprint 1`` never matches ``Sprint 10``.

    Args:
        backlog: Full backlog text; may be empty.
        sprint_number: Sprint to look for.

    Returns:
        The matched section, or SPRINT_SECTION_FALLBACK.
    """
    if not backlog:
        return SPRINT_SECTION_FALLBACK

    n = int(sprint_number)
    patterns = [
        rf"##\s*Sprint\s*{n}(?!\d)[\s\S]*?(?={NEXT_HEADING})",
        rf"###\s*Sprint\s*{n}(?!\d)[\s\S]*?(?={NEXT_HEADING})",
        rf"\*\*Sprint\s*{n}\*\*[\s\S]*?(?=\*\*Sprint\s*\d|{NEXT_HEADING})",
    ]
    for pattern in patterns:
        match = re.search(pattern, backlog, re.IGNORECASE)
        if match:
            section = match.group(0).strip()
            if section:
                return section

    return SPRINT_SECTION_FALLBACK


def truncate_reference(text: str, limit: int = HANDOFF_REFERENCE_LIMIT) -> str:
    """Cap a referenced document at ``limit`` characters with a marker."""
    if len(text) <= limit:
        return text
    return f"{text[:limit]}\n\n{TRUNCATION_MARKER}"


# ---------------------------------------------------------------------------
# Sprint handoff
# ---------------------------------------------------------------------------


def build_sprint_handoff(data: SprintHandoffInput, today: date) -> str:
    """Render the handoff that starts a sprint.

    Sections, in order: header, goal, approval notes (if any), previous
    sprint review (if any), sprint backlog excerpt, full backlog, full
    architecture, truncated original project handoff, next steps.

    Args:
        data: Sprint and project context.
        today: Date stamped in the header.

    Returns:
        The markdown document.
    """
    n = data.sprint_number
    name = data.sprint_name or f"Sprint {n}"

    parts: list[str] = [
        f"# Sprint {n} Handoff: {name}\n",
        f"**Date:** {today.isoformat()}",
        f"**Project:** {data.project_name}\n",
        "## Sprint Goal",
        f"{data.sprint_goal or 'See sprint backlog items below'}\n",
    ]

    if data.approval_notes:
        parts.append("## Approval Notes")
        parts.append(f"{data.approval_notes}\n")

    if data.previous_review:
        parts.append("## Previous Sprint Review")
        parts.append(f"{data.previous_review}\n")
        parts.append("---\n")

    parts.extend(
        [
            f"## Sprint {n} Backlog Items\n",
            f"{extract_sprint_section(data.backlog, n)}\n",
            "---\n",
            "## Full Project Backlog (BACKLOG.md)\n",
            f"{data.backlog or 'Backlog not available'}\n",
            "---\n",
            "## Architecture (ARCHITECTURE.md)\n",
            f"{data.architecture or 'Architecture document not available'}\n",
            "---\n",
            "## Original Project Handoff Reference\n",
            (
                truncate_reference(data.original_handoff)
                if data.original_handoff
                else "No original handoff document available"
            )
            + "\n",
            "---\n",
            "## Next Steps\n",
            next_steps_for_role(WorkflowRole.IMPLEMENTER, Decision.APPROVE),
        ]
    )

    return "\n".join(parts) + "\n"


# ---------------------------------------------------------------------------
# Role-to-role handoff
# ---------------------------------------------------------------------------


def build_role_handoff(
    from_role: WorkflowRole | str,
    to_role: WorkflowRole | str,
    project_name: str,
    sprint_label: str,
    decision: Decision | str,
    summary: str,
    today: date,
) -> str:
    """Render the document handed from one workflow role to the next.

    Args:
        from_role: Role handing off.
        to_role: Role receiving the work.
        project_name: Project display name.
        sprint_label: Sprint identifier shown in the header.
        decision: Decision tag of the handing-off role.
        summary: Free-text summary of the work.
        today: Date stamped in the header.

    Returns:
        The markdown document.
    """
    to_value = _value(to_role)
    parts = [
        f"# Handoff: {_value(from_role)} → {to_value}\n",
        f"**Date:** {today.isoformat()}",
        f"**Project:** {project_name}",
        f"**Sprint:** {sprint_label}\n",
        "## Decision",
        f"**{_value(decision)}**\n",
        "## Summary",
        f"{summary}\n",
        f"## Next Steps for {to_value}",
        next_steps_for_role(to_role, decision),
    ]
    return "\n".join(parts) + "\n"


# ---------------------------------------------------------------------------
# Kickoff handoff
# ---------------------------------------------------------------------------


def _sprint_one_items(backlog: str) -> str:
    match = re.search(
        r"### Sprint 1(?!\d)[^#]*([\s\S]*?)(?=### Sprint 2|---|\n## |$)",
        backlog,
        re.IGNORECASE,
    )
    if not match:
        return "- See BACKLOG.md for details"

    # Markdown table rows: "| ID | Item | ... |" -> second cell
    items = []
    for line in match.group(0).splitlines():
        if "|" not in line or "---" in line or "ID" in line:
            continue
        cells = line.split("|")
        label = cells[2].strip() if len(cells) > 2 and cells[2].strip() else line.strip()
        items.append(f"- {label}")
        if len(items) == 5:
            break
    return "\n".join(items) or "- See BACKLOG.md for details"


def _tech_stack(architecture: str) -> str:
    match = re.search(r"## Tech Stack[\s\S]*?(?=\n## |\Z)", architecture, re.IGNORECASE)
    if match:
        return match.group(0)[:TECH_STACK_LIMIT].rstrip()
    return "- See ARCHITECTURE.md for details"


def build_kickoff_handoff(
    project_name: str,
    backlog: str,
    architecture: str,
    today: date,
    owner_decisions: str | None = None,
) -> str:
    """Render the CTO -> Implementer handoff written at project kickoff.

    Args:
        project_name: Project display name.
        backlog: Full BACKLOG.md text.
        architecture: Full ARCHITECTURE.md text.
        today: Date stamped in the header.
        owner_decisions: Notes the owner gave when approving the plan.

    Returns:
        The markdown document.
    """
    parts = [
        "# Handoff: CTO → Implementer\n",
        f"**Date:** {today.isoformat()}",
        f"**Project:** {project_name}\n",
        "## Summary\n",
        "Project approved by owner. Ready to begin Sprint 1 implementation.\n",
    ]
    if owner_decisions:
        parts.extend(["## Owner Decisions\n", f"{owner_decisions}\n"])

    parts.extend(
        [
            "## Quick Reference - Sprint 1 Deliverables\n",
            f"{_sprint_one_items(backlog)}\n",
            "## Quick Reference - Tech Stack\n",
            f"{_tech_stack(architecture)}\n",
            "## Action Items for Implementer\n",
            "- [ ] Implement Sprint 1 features in priority order\n"
            "- [ ] Write tests for new functionality\n"
            "- [ ] Create handoff to Reviewer when ready\n",
            "---\n",
            "# FULL BACKLOG.md\n",
            f"{backlog}\n",
            "---\n",
            "# FULL ARCHITECTURE.md\n",
            f"{architecture}\n",
            "---\n",
            "## Next Steps\n",
            "Begin with the highest priority Sprint 1 item. "
            "Focus on completing the MVP feature set.",
        ]
    )
    return "\n".join(parts) + "\n"
