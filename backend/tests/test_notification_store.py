from __future__ import annotations

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from taskflow.models import Notification
from taskflow.services.notification_store import NotificationStore


@pytest.fixture
def store(db):
    return NotificationStore(db)


@pytest.fixture
def seeded(db, store, member, admin):
    """Five notifications for ``member``, oldest first, one minute apart."""
    base = datetime(2030, 1, 1, tzinfo=timezone.utc)
    rows = []
    for index in range(5):
        notification = store.create(
            user_id=member.id,
            company_id=member.company_id,
            type="task_updated",
            title="Task Updated",
            message=f"update {index}",
            action_by_id=admin.id,
        )
        notification.created_at = base + timedelta(minutes=index)
        rows.append(notification)
    db.commit()
    return rows


def test_list_is_newest_first_with_unread_count(store, seeded, member) -> None:
    page = store.list_for_user(member.id)

    assert [n.message for n in page.notifications] == [f"update {i}" for i in range(4, -1, -1)]
    assert page.unread_count == 5


def test_list_paginates_with_limit_and_skip(store, seeded, member) -> None:
    page = store.list_for_user(member.id, limit=2, skip=1)

    assert [n.message for n in page.notifications] == ["update 3", "update 2"]
    assert page.unread_count == 5


def test_list_unread_only(store, seeded, member) -> None:
    store.mark_read(seeded[4].id, member.id)

    page = store.list_for_user(member.id, unread_only=True)

    assert len(page.notifications) == 4
    assert all(not n.read for n in page.notifications)
    assert page.unread_count == 4


def test_mark_read_is_idempotent_and_keeps_first_read_at(store, seeded, member) -> None:
    first = store.mark_read(seeded[0].id, member.id)
    read_at = first.read_at

    again = store.mark_read(seeded[0].id, member.id)

    assert again.read is True
    assert again.read_at == read_at
    assert store.unread_count(member.id) == 4


def test_mark_read_of_foreign_notification_returns_none(db, store, seeded, teammate) -> None:
    assert store.mark_read(seeded[0].id, teammate.id) is None
    db.refresh(seeded[0])
    assert seeded[0].read is False


def test_mark_all_read_only_touches_own_unread(store, seeded, member, teammate) -> None:
    store.create(
        user_id=teammate.id,
        company_id=teammate.company_id,
        type="task_assigned",
        title="New Task Assigned",
        message="other",
    )
    store.db.commit()
    store.mark_read(seeded[0].id, member.id)

    assert store.mark_all_read(member.id) == 4
    assert store.unread_count(member.id) == 0
    assert store.unread_count(teammate.id) == 1


def test_delete_own_notification(db, store, seeded, member) -> None:
    store.delete(seeded[0].id, member.id)

    assert db.query(Notification).filter(Notification.user_id == member.id).count() == 4


def test_delete_foreign_or_missing_notification_is_noop(db, store, seeded, member, teammate) -> None:
    store.delete(seeded[0].id, teammate.id)
    store.delete(uuid4(), member.id)

    assert db.query(Notification).filter(Notification.user_id == member.id).count() == 5
