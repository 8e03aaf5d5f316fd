"""Task endpoints."""
from __future__ import annotations

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from ..auth import PermissionChecker, get_current_user
from ..database import get_db
from ..deps import get_fanout
from ..models import User
from ..schemas import (
    MessageResponse,
    TaskChecklistResponse,
    TaskChecklistUpdate,
    TaskCreate,
    TaskDashboardResponse,
    TaskListResponse,
    TaskResponse,
    TaskStatusUpdate,
    TaskUpdate,
)
from ..services.notification_fanout import NotificationFanout
from ..services.task_response_builder import build_status_summary, task_to_response, tasks_to_response
from ..use_cases.task_store import (
    TaskMutationResult,
    create_task_use_case,
    delete_task_use_case,
    get_task_use_case,
    list_tasks_use_case,
    task_dashboard_use_case,
    update_task_checklist_use_case,
    update_task_status_use_case,
    update_task_use_case,
)

router = APIRouter(prefix="/tasks", tags=["tasks"])


def _schedule_fanout(background_tasks: BackgroundTasks, fanout: NotificationFanout, events) -> None:
    if events:
        background_tasks.add_task(fanout.dispatch, list(events))


def _mutation_response(
    result: TaskMutationResult,
    background_tasks: BackgroundTasks,
    fanout: NotificationFanout,
) -> TaskResponse:
    _schedule_fanout(background_tasks, fanout, result.events)
    return task_to_response(result.task)


@router.get("", response_model=TaskListResponse)
def get_tasks(
    status: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """List visible tasks with a status summary of the returned list."""
    tasks = list_tasks_use_case(db=db, current_user=current_user, status=status)
    return TaskListResponse(tasks=tasks_to_response(tasks), status_summary=build_status_summary(tasks))


def _dashboard_response(data: dict) -> TaskDashboardResponse:
    data = dict(data)
    data["recent_tasks"] = tasks_to_response(data["recent_tasks"])
    return TaskDashboardResponse(**data)


@router.get(
    "/dashboard-data",
    response_model=TaskDashboardResponse,
    dependencies=[Depends(PermissionChecker("canViewAdminDashboard"))],
)
def get_dashboard_data(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Company-wide counters (admin)."""
    data = task_dashboard_use_case(db=db, current_user=current_user, assigned_only=False)
    return _dashboard_response(data)


@router.get("/user-dashboard-data", response_model=TaskDashboardResponse)
def get_user_dashboard_data(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Counters over the tasks assigned to the current user."""
    data = task_dashboard_use_case(db=db, current_user=current_user, assigned_only=True)
    return _dashboard_response(data)


@router.get("/{task_id}", response_model=TaskResponse)
def get_task(
    task_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Get task by ID."""
    return task_to_response(get_task_use_case(db=db, task_id=task_id, current_user=current_user))


@router.post(
    "",
    response_model=TaskResponse,
    status_code=201,
    dependencies=[Depends(PermissionChecker("canCreateTasks"))],
)
def create_task(
    data: TaskCreate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    fanout: NotificationFanout = Depends(get_fanout),
):
    """Create task; assignees are notified after the response is sent."""
    result = create_task_use_case(db=db, current_user=current_user, data=data)
    return _mutation_response(result, background_tasks, fanout)


@router.put("/{task_id}", response_model=TaskResponse)
def update_task(
    task_id: UUID,
    data: TaskUpdate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    fanout: NotificationFanout = Depends(get_fanout),
):
    """Partial update; members may only touch status, progress and checklist."""
    result = update_task_use_case(db=db, task_id=task_id, current_user=current_user, patch=data.to_patch())
    return _mutation_response(result, background_tasks, fanout)


@router.put("/{task_id}/status", response_model=TaskResponse)
def update_task_status(
    task_id: UUID,
    data: TaskStatusUpdate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    fanout: NotificationFanout = Depends(get_fanout),
):
    result = update_task_status_use_case(db=db, task_id=task_id, current_user=current_user, status=data.status)
    return _mutation_response(result, background_tasks, fanout)


@router.put("/{task_id}/todo", response_model=TaskChecklistResponse)
def update_task_checklist(
    task_id: UUID,
    data: TaskChecklistUpdate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    fanout: NotificationFanout = Depends(get_fanout),
):
    """Replace the checklist; status and progress are re-derived from it."""
    checklist = data.model_dump(exclude_none=True).get("todo_checklist")
    result = update_task_checklist_use_case(
        db=db,
        task_id=task_id,
        current_user=current_user,
        todo_checklist=checklist,
    )
    return TaskChecklistResponse(
        message="Checklist updated",
        task=_mutation_response(result, background_tasks, fanout),
    )


@router.delete(
    "/{task_id}",
    response_model=MessageResponse,
    dependencies=[Depends(PermissionChecker("canDeleteTasks"))],
)
def delete_task(
    task_id: UUID,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    fanout: NotificationFanout = Depends(get_fanout),
):
    events = delete_task_use_case(db=db, task_id=task_id, current_user=current_user)
    _schedule_fanout(background_tasks, fanout, events)
    return MessageResponse(message="Task deleted")
