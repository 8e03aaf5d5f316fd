"""Task and notification response serialization helpers."""
from __future__ import annotations

from collections import Counter
from typing import Any

from ..models import Notification, Task
from ..schemas import (
    ActorBrief,
    ChecklistItemResponse,
    NotificationResponse,
    StatusSummary,
    TaskResponse,
    UserBrief,
)
from .task_state import STATUS_COMPLETED, STATUS_IN_PROGRESS, STATUS_PENDING, completed_count


def task_to_response(task: Task) -> TaskResponse:
    checklist = task.todo_checklist or []
    return TaskResponse(
        id=task.id,
        title=task.title,
        description=task.description,
        priority=task.priority,
        status=task.status,
        start_date=task.start_date,
        due_date=task.due_date,
        progress=task.progress,
        assigned_to=[UserBrief.model_validate(user) for user in task.assignees],
        created_by=task.created_by_id,
        company_id=task.company_id,
        todo_checklist=[ChecklistItemResponse.model_validate(item) for item in checklist],
        completed_todo_count=completed_count(checklist),
        attachments=list(task.attachments or []),
        created_at=task.created_at,
        updated_at=task.updated_at,
    )


def tasks_to_response(tasks: list[Task]) -> list[TaskResponse]:
    return [task_to_response(task) for task in tasks]


def build_status_summary(tasks: list[Task]) -> StatusSummary:
    counts = Counter(task.status for task in tasks)
    return StatusSummary(
        all=len(tasks),
        pending_tasks=counts[STATUS_PENDING],
        in_progress_tasks=counts[STATUS_IN_PROGRESS],
        completed_tasks=counts[STATUS_COMPLETED],
    )


def notification_to_response(notification: Notification) -> NotificationResponse:
    actor = notification.action_by
    return NotificationResponse(
        id=notification.id,
        user_id=notification.user_id,
        company_id=notification.company_id,
        type=notification.type,
        title=notification.title,
        message=notification.message,
        task_id=notification.task_id,
        action_by=ActorBrief.model_validate(actor) if actor else None,
        read=notification.read,
        read_at=notification.read_at,
        created_at=notification.created_at,
    )


def notification_payload(notification: Notification) -> dict[str, Any]:
    """JSON-ready wire form used by the push channel."""
    return notification_to_response(notification).model_dump(mode="json", by_alias=True)
