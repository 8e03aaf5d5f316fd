"""Company-scoped task use-cases used by task router endpoints.

Each mutating use-case commits the task first and returns the lifecycle events
for notification fan-out alongside it.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..auth import check_permission
from ..domain_errors import DomainError
from ..models import TASK_PRIORITIES, TASK_STATUSES, Task, User
from ..schemas import TaskCreate
from ..security import apply_task_visibility_scope, is_task_assignee, require_company_entity
from ..services import task_state
from ..services.task_events import TaskEvent, TaskSnapshot, classify_task_change, deletion_events
from ..services.user_directory import resolve_company_users

logger = logging.getLogger(__name__)


@dataclass
class TaskMutationResult:
    task: Task
    events: list[TaskEvent] = field(default_factory=list)
    rejected_fields: tuple[str, ...] = ()


def _get_task_or_404(*, db: Session, task_id: UUID, company_id: UUID) -> Task:
    return require_company_entity(
        db,
        Task,
        entity_id=task_id,
        company_id=company_id,
        code="TASK_NOT_FOUND",
        not_found="Task not found",
    )


def _resolve_assignees(*, db: Session, company_id: UUID, user_ids: list[UUID]) -> list[User]:
    """Every requested id must resolve to a user of the same company."""
    user_ids = list(dict.fromkeys(user_ids))
    users = resolve_company_users(db, company_id=company_id, user_ids=user_ids)
    if len(users) != len(user_ids):
        raise DomainError(
            code="ASSIGNEES_NOT_IN_COMPANY",
            http_status=400,
            message="One or more assignees are not in your company",
            details={"assignedTo": "assignees not in tenant"},
        )
    by_id = {user.id: user for user in users}
    return [by_id[user_id] for user_id in user_ids]


def list_tasks_use_case(*, db: Session, current_user: User, status: Optional[str] = None) -> list[Task]:
    """Admins get every company task, members only their assigned ones; newest first."""
    query = apply_task_visibility_scope(db.query(Task), current_user)
    if status:
        query = query.filter(Task.status == task_state.validate_status(status))
    return query.order_by(Task.created_at.desc()).all()


def get_task_use_case(*, db: Session, task_id: UUID, current_user: User) -> Task:
    return _get_task_or_404(db=db, task_id=task_id, company_id=current_user.company_id)


def create_task_use_case(*, db: Session, current_user: User, data: TaskCreate) -> TaskMutationResult:
    """Create a task for the current user's company (admin gate is on the route)."""
    fields = data.model_dump(exclude_none=True)
    fields["title"] = fields.get("title")
    assignee_ids = fields.pop("assigned_to", [])
    prepared = task_state.prepare_patch(fields)
    assignees = _resolve_assignees(db=db, company_id=current_user.company_id, user_ids=assignee_ids)

    task = Task(
        company_id=current_user.company_id,
        created_by_id=current_user.id,
        title=prepared["title"],
        priority="Medium",
        status=task_state.STATUS_PENDING,
        progress=0,
        todo_checklist=[],
        attachments=[],
    )
    task.assignees = assignees
    task_state.apply_patch(task, prepared)
    db.add(task)
    db.commit()
    db.refresh(task)

    events = classify_task_change(None, TaskSnapshot.from_task(task), actor=current_user)
    logger.info("task.created id=%s company=%s assignees=%d", task.id, task.company_id, len(assignees))
    return TaskMutationResult(task=task, events=events)


def update_task_use_case(
    *,
    db: Session,
    task_id: UUID,
    current_user: User,
    patch: dict[str, Any],
) -> TaskMutationResult:
    """Apply a partial update under the role/membership field policy.

    Disallowed fields from a member are dropped and reported, not rejected.
    Validation runs on the whole allowed patch before anything is written.
    """
    task = _get_task_or_404(db=db, task_id=task_id, company_id=current_user.company_id)
    decision = task_state.authorize_patch(
        patch,
        is_admin=check_permission(current_user, "canManageTasks"),
        is_assignee=is_task_assignee(task, current_user),
    )
    if decision.rejected:
        logger.info(
            "task.update id=%s user=%s ignored fields=%s",
            task.id,
            current_user.id,
            ",".join(decision.rejected),
        )

    prepared = task_state.prepare_patch(decision.allowed)
    assignees = None
    if "assigned_to" in prepared:
        assignees = _resolve_assignees(
            db=db,
            company_id=current_user.company_id,
            user_ids=prepared.pop("assigned_to"),
        )

    before = TaskSnapshot.from_task(task)
    if assignees is not None:
        task.assignees = assignees
    task_state.apply_patch(task, prepared)
    db.commit()
    db.refresh(task)

    events = classify_task_change(before, TaskSnapshot.from_task(task), actor=current_user)
    return TaskMutationResult(task=task, events=events, rejected_fields=decision.rejected)


def update_task_status_use_case(
    *,
    db: Session,
    task_id: UUID,
    current_user: User,
    status: Optional[str],
) -> TaskMutationResult:
    patch = {"status": status} if status is not None else {}
    return update_task_use_case(db=db, task_id=task_id, current_user=current_user, patch=patch)


def update_task_checklist_use_case(
    *,
    db: Session,
    task_id: UUID,
    current_user: User,
    todo_checklist: Optional[list[Any]],
) -> TaskMutationResult:
    patch = {"todo_checklist": todo_checklist} if todo_checklist is not None else {}
    return update_task_use_case(db=db, task_id=task_id, current_user=current_user, patch=patch)


def delete_task_use_case(*, db: Session, task_id: UUID, current_user: User) -> list[TaskEvent]:
    """Delete a company task (admin gate is on the route)."""
    task = _get_task_or_404(db=db, task_id=task_id, company_id=current_user.company_id)
    snapshot = TaskSnapshot.from_task(task)
    db.delete(task)
    db.commit()
    logger.info("task.deleted id=%s company=%s", snapshot.id, snapshot.company_id)
    return deletion_events(snapshot, actor=current_user)


def task_dashboard_use_case(*, db: Session, current_user: User, assigned_only: bool) -> dict[str, Any]:
    """Counters for the dashboard; ``assigned_only`` narrows to the caller's tasks."""
    def scoped():
        query = db.query(Task).filter(Task.company_id == current_user.company_id)
        if assigned_only:
            query = query.filter(Task.assignees.any(User.id == current_user.id))
        return query

    status_counts = dict(
        scoped().with_entities(Task.status, func.count(Task.id)).group_by(Task.status).all()
    )
    priority_counts = dict(
        scoped().with_entities(Task.priority, func.count(Task.id)).group_by(Task.priority).all()
    )
    total = sum(status_counts.values())
    overdue = scoped().filter(
        Task.status != task_state.STATUS_COMPLETED,
        Task.due_date.is_not(None),
        Task.due_date < datetime.now(timezone.utc),
    ).count()

    distribution = {status.replace(" ", ""): status_counts.get(status, 0) for status in TASK_STATUSES}
    distribution["All"] = total
    return {
        "total_tasks": total,
        "pending_tasks": status_counts.get(task_state.STATUS_PENDING, 0),
        "completed_tasks": status_counts.get(task_state.STATUS_COMPLETED, 0),
        "overdue_tasks": overdue,
        "task_distribution": distribution,
        "task_priority_levels": {priority: priority_counts.get(priority, 0) for priority in TASK_PRIORITIES},
        "recent_tasks": scoped().order_by(Task.created_at.desc()).limit(10).all(),
    }
