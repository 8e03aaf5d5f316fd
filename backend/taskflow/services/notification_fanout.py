"""Turn task lifecycle events into persisted notifications and push them.

Fan-out runs after the task mutation has committed, in its own session. It
never raises: persistence or push failures are logged and the task mutation
stays as it is.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from ..models import Notification
from ..realtime.delivery import DeliveryLayer
from .notification_store import NotificationStore
from .task_events import TaskEvent, TaskEventKind
from .task_response_builder import notification_payload
from .user_directory import list_company_admins

logger = logging.getLogger(__name__)


def _without_actor(recipient_ids: Iterable[UUID], actor_id: UUID) -> list[UUID]:
    return [user_id for user_id in recipient_ids if user_id != actor_id]


class NotificationFanout:
    def __init__(self, *, session_factory: Callable[[], Session], delivery: DeliveryLayer):
        self._session_factory = session_factory
        self._delivery = delivery

    def build_notifications(self, db: Session, event: TaskEvent) -> list[Notification]:
        """Stage one notification per recipient for ``event`` (actor excluded)."""
        store = NotificationStore(db)
        recipients = _without_actor(event.recipient_ids, event.actor_id)
        common = {
            "company_id": event.company_id,
            "task_id": event.task_id,
            "action_by_id": event.actor_id,
        }
        title = event.task_title
        actor = event.actor_name

        if event.kind is TaskEventKind.ASSIGNED:
            return [
                store.create(
                    user_id=user_id,
                    type="task_assigned",
                    title="New Task Assigned",
                    message=f'{actor} assigned you to "{title}"',
                    **common,
                )
                for user_id in recipients
            ]

        if event.kind is TaskEventKind.UPDATED:
            return [
                store.create(
                    user_id=user_id,
                    type="task_updated",
                    title="Task Updated",
                    message=f'{actor} updated "{title}" - {event.update_type}',
                    **common,
                )
                for user_id in recipients
            ]

        if event.kind is TaskEventKind.COMPLETED:
            notifications = [
                store.create(
                    user_id=user_id,
                    type="task_completed",
                    title="Task Completed",
                    message=f'{actor} completed "{title}"',
                    **common,
                )
                for user_id in recipients
            ]
            # Admins are a separate audience; an admin who is also an assignee gets both.
            admins = list_company_admins(db, company_id=event.company_id)
            for admin_id in _without_actor((admin.id for admin in admins), event.actor_id):
                notifications.append(
                    store.create(
                        user_id=admin_id,
                        type="task_completed",
                        title="Task Completed",
                        message=f'{actor} has completed their task "{title}"',
                        **common,
                    )
                )
            return notifications

        if event.kind is TaskEventKind.DELETED:
            return [
                store.create(
                    user_id=user_id,
                    company_id=event.company_id,
                    type="task_deleted",
                    title="Task Deleted",
                    message=f'{actor} deleted "{title}"',
                    action_by_id=event.actor_id,
                )
                for user_id in recipients
            ]

        raise ValueError(f"Unsupported task event kind: {event.kind}")

    def persist(self, event: TaskEvent) -> list[tuple[UUID, dict[str, Any]]]:
        """Commit the rows for one event and return (recipient, payload) pairs."""
        db = self._session_factory()
        try:
            notifications = self.build_notifications(db, event)
            db.commit()
            return [(n.user_id, notification_payload(n)) for n in notifications]
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    async def _push(self, event: TaskEvent, deliveries: list[tuple[UUID, dict[str, Any]]]) -> None:
        results = await asyncio.gather(
            *(self._delivery.push_notification(user_id, payload) for user_id, payload in deliveries),
            return_exceptions=True,
        )
        for (user_id, _payload), result in zip(deliveries, results):
            if isinstance(result, Exception):
                logger.error(
                    "Push of %s notification for task %s to user %s failed",
                    event.kind.value,
                    event.task_id,
                    user_id,
                    exc_info=result,
                )

    async def dispatch(self, events: Iterable[TaskEvent]) -> None:
        """Persist then push each event; every failure stops at this boundary."""
        for event in events:
            try:
                deliveries = await run_in_threadpool(self.persist, event)
            except Exception:
                logger.exception(
                    "Failed to create %s notifications for task %s",
                    event.kind.value,
                    event.task_id,
                )
                continue
            logger.info(
                "Created %d %s notifications for task %s",
                len(deliveries),
                event.kind.value,
                event.task_id,
            )
            try:
                await self._push(event, deliveries)
            except Exception:
                logger.exception("Failed to push notifications for task %s", event.task_id)
