"""Task state rules: checklist-derived status/progress and per-role field policy.

Two write paths target ``Task.status``/``Task.progress``: a direct field write and
a wholesale checklist replacement. Both go through :func:`apply_patch`; the
checklist path runs last and wins whenever the new checklist is non-empty.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Optional
from uuid import uuid4

from ..domain_errors import DomainError, validation_error
from ..models import TASK_PRIORITIES, TASK_STATUSES, Task


STATUS_PENDING = "Pending"
STATUS_IN_PROGRESS = "In Progress"
STATUS_COMPLETED = "Completed"

ADMIN_WRITABLE_FIELDS: frozenset[str] = frozenset(
    {
        "title",
        "description",
        "priority",
        "status",
        "start_date",
        "due_date",
        "progress",
        "assigned_to",
        "todo_checklist",
        "attachments",
    }
)
ASSIGNEE_WRITABLE_FIELDS: frozenset[str] = frozenset({"status", "progress", "todo_checklist"})

# Applied in this order; ``todo_checklist`` is handled after all of them.
_DIRECT_FIELDS: tuple[str, ...] = (
    "title",
    "description",
    "priority",
    "start_date",
    "due_date",
    "attachments",
    "status",
    "progress",
)

_TRUTHY_STRINGS = {"true", "1", "yes", "on"}


@dataclass(frozen=True)
class ChecklistProgress:
    completed: int
    total: int
    progress: int
    status: str


@dataclass(frozen=True)
class PatchDecision:
    """Outcome of the field policy: what may be applied and what was dropped."""

    allowed: dict[str, Any]
    rejected: tuple[str, ...] = ()


def writable_fields(*, is_admin: bool, is_assignee: bool) -> frozenset[str]:
    if is_admin:
        return ADMIN_WRITABLE_FIELDS
    if is_assignee:
        return ASSIGNEE_WRITABLE_FIELDS
    return frozenset()


def authorize_patch(patch: Mapping[str, Any], *, is_admin: bool, is_assignee: bool) -> PatchDecision:
    """Split a patch by the role/membership whitelist.

    Non-admin assignees keep only status/progress/checklist; anything else is
    reported in ``rejected`` instead of failing the request.
    """
    if not is_admin and not is_assignee:
        raise DomainError(
            code="TASK_UPDATE_FORBIDDEN",
            http_status=403,
            message="Not allowed to update this task",
        )
    fields = writable_fields(is_admin=is_admin, is_assignee=is_assignee)
    allowed = {key: value for key, value in patch.items() if key in fields}
    rejected = tuple(sorted(key for key in patch if key not in fields))
    return PatchDecision(allowed=allowed, rejected=rejected)


def _coerce_done(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUTHY_STRINGS
    return bool(value)


def normalize_checklist(items: Optional[Iterable[Any]]) -> list[dict[str, Any]]:
    """Coerce checklist items to ``{"id", "text", "done"}``, keeping or minting ids."""
    normalized: list[dict[str, Any]] = []
    for item in items or []:
        if isinstance(item, Mapping):
            raw_id, text, done = item.get("id"), item.get("text"), item.get("done")
        else:
            raw_id = getattr(item, "id", None)
            text = getattr(item, "text", None)
            done = getattr(item, "done", None)
        normalized.append(
            {
                "id": str(raw_id) if raw_id else uuid4().hex,
                "text": "" if text is None else str(text),
                "done": _coerce_done(done),
            }
        )
    return normalized


def completed_count(checklist: Optional[Iterable[Mapping[str, Any]]]) -> int:
    return sum(1 for item in checklist or [] if item.get("done") is True)


def checklist_progress(completed: int, total: int) -> int:
    """Percentage of done items, rounded half up."""
    return (200 * completed + total) // (2 * total)


def status_for_counts(completed: int, total: int) -> str:
    if completed == total:
        return STATUS_COMPLETED
    if completed > 0:
        return STATUS_IN_PROGRESS
    return STATUS_PENDING


def derive_checklist_state(checklist: list[dict[str, Any]]) -> Optional[ChecklistProgress]:
    """Return derived progress/status, or None for an empty checklist."""
    total = len(checklist)
    if total == 0:
        return None
    completed = completed_count(checklist)
    return ChecklistProgress(
        completed=completed,
        total=total,
        progress=checklist_progress(completed, total),
        status=status_for_counts(completed, total),
    )


def validate_status(value: Any) -> str:
    if value not in TASK_STATUSES:
        raise validation_error("Invalid status", {"status": value, "allowed": list(TASK_STATUSES)})
    return value


def validate_priority(value: Any) -> str:
    if value not in TASK_PRIORITIES:
        raise validation_error("Invalid priority", {"priority": value, "allowed": list(TASK_PRIORITIES)})
    return value


def validate_progress(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= 100:
        raise validation_error("Progress must be an integer between 0 and 100", {"progress": value})
    return value


def validate_title(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise validation_error("Title is required", {"title": value})
    return value.strip()


_VALIDATORS = {
    "title": validate_title,
    "priority": validate_priority,
    "status": validate_status,
    "progress": validate_progress,
    "todo_checklist": normalize_checklist,
}


def prepare_patch(patch: Mapping[str, Any]) -> dict[str, Any]:
    """Validate and normalize every value; raises before anything is written."""
    prepared: dict[str, Any] = {}
    for key, value in patch.items():
        validator = _VALIDATORS.get(key)
        prepared[key] = validator(value) if validator else value
    return prepared


def apply_checklist(task: Task, checklist: list[dict[str, Any]]) -> Optional[ChecklistProgress]:
    """Replace the checklist wholesale and re-derive status/progress from it."""
    task.todo_checklist = checklist
    derived = derive_checklist_state(checklist)
    if derived is not None:
        task.status = derived.status
        task.progress = derived.progress
    return derived


def apply_patch(task: Task, patch: Mapping[str, Any]) -> Optional[ChecklistProgress]:
    """Apply a prepared patch (assignees are resolved by the caller)."""
    for field in _DIRECT_FIELDS:
        if field in patch:
            setattr(task, field, patch[field])
    if "todo_checklist" in patch:
        return apply_checklist(task, patch["todo_checklist"])
    return None
