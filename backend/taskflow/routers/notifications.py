"""Notification inbox endpoints (always scoped to the caller)."""
from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..config import settings
from ..database import get_db
from ..domain_errors import DomainError
from ..models import User
from ..schemas import (
    MessageResponse,
    NotificationListResponse,
    NotificationReadResponse,
    UnreadCountResponse,
)
from ..services.notification_store import NotificationStore
from ..services.task_response_builder import notification_to_response

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=NotificationListResponse)
def list_notifications(
    limit: int = Query(20, ge=1, le=settings.NOTIFICATIONS_PAGE_MAX),
    skip: int = Query(0, ge=0),
    unread_only: bool = Query(False, alias="unreadOnly"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Newest-first page of the caller's notifications."""
    page = NotificationStore(db).list_for_user(
        current_user.id,
        limit=limit,
        skip=skip,
        unread_only=unread_only,
    )
    return NotificationListResponse(
        notifications=[notification_to_response(n) for n in page.notifications],
        unread_count=page.unread_count,
    )


@router.get("/unread-count", response_model=UnreadCountResponse)
def get_unread_count(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return UnreadCountResponse(count=NotificationStore(db).unread_count(current_user.id))


@router.put("/read-all", response_model=MessageResponse)
def mark_all_as_read(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    NotificationStore(db).mark_all_read(current_user.id)
    return MessageResponse(message="All notifications marked as read")


@router.put("/{notification_id}/read", response_model=NotificationReadResponse)
def mark_as_read(
    notification_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    notification = NotificationStore(db).mark_read(notification_id, current_user.id)
    if notification is None:
        raise DomainError(
            code="NOTIFICATION_NOT_FOUND",
            http_status=404,
            message="Notification not found",
        )
    return NotificationReadResponse(
        message="Notification marked as read",
        notification=notification_to_response(notification),
    )


@router.delete("/{notification_id}", response_model=MessageResponse)
def delete_notification(
    notification_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    NotificationStore(db).delete(notification_id, current_user.id)
    return MessageResponse(message="Notification deleted")
