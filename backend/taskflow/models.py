"""SQLAlchemy models (company-scoped tasks and per-recipient notifications)."""
from sqlalchemy import (
    JSON, Boolean, CheckConstraint, Column, DateTime, ForeignKey, Index, Integer,
    String, Table, Text, Uuid,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid
from datetime import datetime, timezone
from .database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


USER_ROLES = ("admin", "member")
TASK_PRIORITIES = ("Low", "Medium", "High")
TASK_STATUSES = ("Pending", "In Progress", "Completed")
NOTIFICATION_TYPES = (
    "task_assigned",
    "task_updated",
    "task_comment",
    "task_mention",
    "task_due_soon",
    "task_completed",
    "task_deleted",
)


class Company(Base):
    """Company (tenant) model."""
    __tablename__ = "companies"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), onupdate=_utcnow)

    # Relationships
    users = relationship("User", back_populates="company")
    tasks = relationship("Task", back_populates="company")


class User(Base):
    """User model (credentials live with the identity provider)."""
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    company_id = Column(Uuid, ForeignKey("companies.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    role = Column(String(20), nullable=False, default="member", index=True)
    profile_image_url = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), onupdate=_utcnow)

    __table_args__ = (
        CheckConstraint(role.in_(USER_ROLES), name="chk_user_role"),
    )

    # Relationships
    company = relationship("Company", back_populates="users")


task_assignees = Table(
    "task_assignees",
    Base.metadata,
    Column("task_id", Uuid, ForeignKey("tasks.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True, index=True),
)


class Task(Base):
    """Task model.

    ``todo_checklist`` is an ordered JSON list of ``{"id", "text", "done"}`` items;
    ``status``/``progress`` are derived from it whenever it is replaced with a
    non-empty list.
    """
    __tablename__ = "tasks"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    company_id = Column(Uuid, ForeignKey("companies.id"), nullable=False, index=True)
    created_by_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    priority = Column(String(10), nullable=False, default="Medium", index=True)
    status = Column(String(20), nullable=False, default="Pending", index=True)
    start_date = Column(DateTime(timezone=True), nullable=True)
    due_date = Column(DateTime(timezone=True), nullable=True, index=True)
    progress = Column(Integer, nullable=False, default=0)
    todo_checklist = Column(JSON, nullable=False, default=list)
    attachments = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), onupdate=_utcnow)

    __table_args__ = (
        CheckConstraint(priority.in_(TASK_PRIORITIES), name="chk_task_priority"),
        CheckConstraint(status.in_(TASK_STATUSES), name="chk_task_status"),
        CheckConstraint("progress >= 0 AND progress <= 100", name="chk_task_progress_range"),
        Index("idx_tasks_company_status", "company_id", "status"),
    )

    # Relationships
    company = relationship("Company", back_populates="tasks")
    created_by = relationship("User", foreign_keys=[created_by_id])
    assignees = relationship("User", secondary=task_assignees, lazy="selectin", order_by="User.name")


class Notification(Base):
    """Notification model - ONE ROW PER RECIPIENT."""
    __tablename__ = "notifications"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    company_id = Column(Uuid, ForeignKey("companies.id"), nullable=False, index=True)
    type = Column(String(30), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    task_id = Column(Uuid, ForeignKey("tasks.id", ondelete="SET NULL"), nullable=True, index=True)
    action_by_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    read = Column(Boolean, nullable=False, default=False, index=True)
    read_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), onupdate=_utcnow)

    __table_args__ = (
        CheckConstraint(type.in_(NOTIFICATION_TYPES), name="chk_notification_type"),
        Index("idx_notifications_user_read_created", "user_id", "read", "created_at"),
        Index("idx_notifications_company_created", "company_id", "created_at"),
    )

    # Relationships
    recipient = relationship("User", foreign_keys=[user_id])
    action_by = relationship("User", foreign_keys=[action_by_id], lazy="selectin")
