"""Pydantic schemas for API.

Wire names are camelCase (``assignedTo``, ``todoChecklist``, ``dueDate``...);
Python attributes stay snake_case.
"""
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Any, Optional
from datetime import datetime
from uuid import UUID


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# User schemas
class UserBrief(CamelModel):
    """Brief user info for nested responses."""
    id: UUID
    name: str
    email: Optional[str] = None
    profile_image_url: Optional[str] = None


class ActorBrief(CamelModel):
    id: UUID
    name: str
    profile_image_url: Optional[str] = None


class UserDirectoryItem(CamelModel):
    """Minimal user directory entry (safe to show to all company members)."""
    id: UUID
    name: str
    email: str
    role: str
    profile_image_url: Optional[str] = None


# Task schemas
class ChecklistItem(CamelModel):
    id: Optional[str] = None
    text: Any = ""
    done: Any = False


class ChecklistItemResponse(CamelModel):
    id: str
    text: str
    done: bool


class TaskCreate(CamelModel):
    title: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[str] = None
    status: Optional[str] = None
    start_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    progress: Optional[int] = None
    assigned_to: list[UUID] = []
    todo_checklist: list[ChecklistItem] = []
    attachments: list[str] = []


class TaskUpdate(CamelModel):
    """Partial update; omitted or null fields keep their stored value."""
    title: Optional[str] = None
    description: Optional[str] = None
    priority: Optional[str] = None
    status: Optional[str] = None
    start_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    progress: Optional[int] = None
    assigned_to: Optional[list[UUID]] = None
    todo_checklist: Optional[list[ChecklistItem]] = None
    attachments: Optional[list[str]] = None

    def to_patch(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True, exclude_none=True)


class TaskStatusUpdate(CamelModel):
    status: Optional[str] = None


class TaskChecklistUpdate(CamelModel):
    todo_checklist: Optional[list[ChecklistItem]] = None


class TaskResponse(CamelModel):
    id: UUID
    title: str
    description: Optional[str] = None
    priority: str
    status: str
    start_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    progress: int
    assigned_to: list[UserBrief] = []
    created_by: UUID
    company_id: UUID
    todo_checklist: list[ChecklistItemResponse] = []
    completed_todo_count: int = 0
    attachments: list[str] = []
    created_at: datetime
    updated_at: datetime


class StatusSummary(CamelModel):
    all: int
    pending_tasks: int
    in_progress_tasks: int
    completed_tasks: int


class TaskListResponse(CamelModel):
    tasks: list[TaskResponse]
    status_summary: StatusSummary


class TaskChecklistResponse(BaseModel):
    message: str
    task: TaskResponse


class TaskDashboardResponse(CamelModel):
    total_tasks: int
    pending_tasks: int
    completed_tasks: int
    overdue_tasks: int
    task_distribution: dict[str, int]
    task_priority_levels: dict[str, int] = Field(default_factory=dict)
    recent_tasks: list[TaskResponse] = []


# Notification schemas
class NotificationResponse(CamelModel):
    id: UUID
    user_id: UUID
    company_id: UUID
    type: str
    title: str
    message: str
    task_id: Optional[UUID] = None
    action_by: Optional[ActorBrief] = None
    read: bool
    read_at: Optional[datetime] = None
    created_at: datetime


class NotificationListResponse(CamelModel):
    notifications: list[NotificationResponse]
    unread_count: int


class NotificationReadResponse(BaseModel):
    message: str
    notification: NotificationResponse


class UnreadCountResponse(BaseModel):
    count: int


class MessageResponse(BaseModel):
    message: str
