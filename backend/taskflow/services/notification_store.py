"""Per-recipient notification persistence."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from ..models import Notification


@dataclass(frozen=True)
class NotificationPage:
    notifications: list[Notification]
    unread_count: int


class NotificationStore:
    """Notification rows scoped to their recipient.

    Read state is monotonic: rows go from unread to read and never back.
    """

    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        *,
        user_id: UUID,
        company_id: UUID,
        type: str,
        title: str,
        message: str,
        task_id: Optional[UUID] = None,
        action_by_id: Optional[UUID] = None,
    ) -> Notification:
        """Stage a notification; the caller commits."""
        notification = Notification(
            user_id=user_id,
            company_id=company_id,
            type=type,
            title=title,
            message=message,
            task_id=task_id,
            action_by_id=action_by_id,
        )
        self.db.add(notification)
        self.db.flush()
        return notification

    def _owned(self, user_id: UUID):
        return self.db.query(Notification).filter(Notification.user_id == user_id)

    def list_for_user(
        self,
        user_id: UUID,
        *,
        limit: int = 20,
        skip: int = 0,
        unread_only: bool = False,
    ) -> NotificationPage:
        """Newest-first page plus the total unread count for the user."""
        query = self._owned(user_id)
        if unread_only:
            query = query.filter(Notification.read.is_(False))
        notifications = (
            query.order_by(Notification.created_at.desc(), Notification.id.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )
        return NotificationPage(notifications=notifications, unread_count=self.unread_count(user_id))

    def mark_read(self, notification_id: UUID, user_id: UUID) -> Optional[Notification]:
        """Mark one owned notification as read; None if it is not the user's."""
        notification = self._owned(user_id).filter(Notification.id == notification_id).first()
        if notification is None:
            return None
        # Idempotent: an already-read row keeps its original read_at.
        if not notification.read:
            notification.read = True
            notification.read_at = datetime.now(timezone.utc)
            self.db.commit()
            self.db.refresh(notification)
        return notification

    def mark_all_read(self, user_id: UUID) -> int:
        updated = (
            self._owned(user_id)
            .filter(Notification.read.is_(False))
            .update(
                {"read": True, "read_at": datetime.now(timezone.utc)},
                synchronize_session=False,
            )
        )
        self.db.commit()
        return updated

    def delete(self, notification_id: UUID, user_id: UUID) -> None:
        """Delete an owned notification; missing or foreign ids are a no-op."""
        self._owned(user_id).filter(Notification.id == notification_id).delete(synchronize_session=False)
        self.db.commit()

    def unread_count(self, user_id: UUID) -> int:
        return self._owned(user_id).filter(Notification.read.is_(False)).count()
