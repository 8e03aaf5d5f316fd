"""Security helpers (company scoping and task membership checks)."""

from __future__ import annotations

from typing import Any, TypeVar
from uuid import UUID

from sqlalchemy.orm import Session

from .auth import check_permission
from .domain_errors import DomainError
from .models import Task, User

T = TypeVar("T")


def require_company_entity(
    db: Session,
    model: type[T],
    *,
    entity_id: UUID,
    company_id: UUID,
    code: str,
    not_found: str,
) -> T:
    """Load an entity by (id, company_id) or raise 404.

    A row that exists in another company is reported exactly like a missing one.
    """
    entity = db.query(model).filter(  # type: ignore[arg-type]
        getattr(model, "id") == entity_id,  # noqa: B009
        getattr(model, "company_id") == company_id,  # noqa: B009
    ).first()
    if not entity:
        raise DomainError(code=code, http_status=404, message=not_found)
    return entity


def is_task_assignee(task: Task, user: User) -> bool:
    """Check if the user is bound to the task's assignee set."""
    return any(assignee.id == user.id for assignee in task.assignees)


def apply_task_visibility_scope(query: Any, current_user: User):
    """Admins see every company task, members only the ones assigned to them."""
    query = query.filter(Task.company_id == current_user.company_id)
    if check_permission(current_user, "canViewAllTasks"):
        return query
    return query.filter(Task.assignees.any(User.id == current_user.id))
