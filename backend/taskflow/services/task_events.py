"""Classify task mutations into notification lifecycle events."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID

from ..models import Task, User
from .task_state import STATUS_COMPLETED


class TaskEventKind(str, Enum):
    ASSIGNED = "assigned"
    UPDATED = "updated"
    COMPLETED = "completed"
    DELETED = "deleted"


@dataclass(frozen=True)
class TaskSnapshot:
    """Comparable view of the task fields that drive notifications."""

    id: UUID
    company_id: UUID
    title: str
    status: str
    priority: str
    due_date: Optional[datetime]
    assignee_ids: frozenset[UUID]
    details: tuple[Any, ...] = ()

    @classmethod
    def from_task(cls, task: Task) -> "TaskSnapshot":
        checklist = tuple(
            (item.get("text"), item.get("done")) for item in (task.todo_checklist or [])
        )
        return cls(
            id=task.id,
            company_id=task.company_id,
            title=task.title,
            status=task.status,
            priority=task.priority,
            due_date=task.due_date,
            assignee_ids=frozenset(user.id for user in task.assignees),
            details=(
                task.description,
                task.start_date,
                task.progress,
                checklist,
                tuple(task.attachments or []),
            ),
        )


@dataclass(frozen=True)
class TaskEvent:
    kind: TaskEventKind
    task_id: UUID
    task_title: str
    company_id: UUID
    actor_id: UUID
    actor_name: str
    recipient_ids: tuple[UUID, ...]
    update_type: Optional[str] = None


def describe_update(before: TaskSnapshot, after: TaskSnapshot) -> Optional[str]:
    """Pick exactly one update description, most significant change first."""
    if before.status != after.status:
        return f"status changed to {after.status}"
    if before.priority != after.priority:
        return f"priority changed to {after.priority}"
    if before.due_date != after.due_date:
        return "due date changed"
    if before.title != after.title:
        return "title changed"
    if before.details != after.details:
        return "details updated"
    return None


def _event(kind: TaskEventKind, snapshot: TaskSnapshot, actor: User, recipients, update_type=None) -> TaskEvent:
    return TaskEvent(
        kind=kind,
        task_id=snapshot.id,
        task_title=snapshot.title,
        company_id=snapshot.company_id,
        actor_id=actor.id,
        actor_name=actor.name,
        recipient_ids=tuple(sorted(recipients, key=str)),
        update_type=update_type,
    )


def classify_task_change(before: Optional[TaskSnapshot], after: TaskSnapshot, *, actor: User) -> list[TaskEvent]:
    """Diff two snapshots of one task; ``before`` is None for a freshly created task.

    Recipient sets still contain the actor; the fan-out engine drops it.
    """
    events: list[TaskEvent] = []
    previous_assignees = before.assignee_ids if before else frozenset()
    newly_assigned = after.assignee_ids - previous_assignees
    if newly_assigned:
        events.append(_event(TaskEventKind.ASSIGNED, after, actor, newly_assigned))

    if before is None:
        return events

    if before.status != STATUS_COMPLETED and after.status == STATUS_COMPLETED:
        events.append(_event(TaskEventKind.COMPLETED, after, actor, after.assignee_ids))
        return events

    update_type = describe_update(before, after)
    if update_type is not None:
        recipients = after.assignee_ids - newly_assigned
        if recipients:
            events.append(_event(TaskEventKind.UPDATED, after, actor, recipients, update_type))
    return events


def deletion_events(snapshot: TaskSnapshot, *, actor: User) -> list[TaskEvent]:
    if not snapshot.assignee_ids:
        return []
    return [_event(TaskEventKind.DELETED, snapshot, actor, snapshot.assignee_ids)]
