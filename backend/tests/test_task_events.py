from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from types import SimpleNamespace
from uuid import uuid4

from taskflow.services.task_events import (
    TaskEventKind,
    TaskSnapshot,
    classify_task_change,
    deletion_events,
)


def _actor(name: str = "Alice"):
    return SimpleNamespace(id=uuid4(), name=name)


def _snapshot(*assignee_ids, **overrides) -> TaskSnapshot:
    fields = {
        "id": uuid4(),
        "company_id": uuid4(),
        "title": "Ship v1",
        "status": "Pending",
        "priority": "Medium",
        "due_date": None,
        "assignee_ids": frozenset(assignee_ids),
        "details": ("desc", None, 0, (), ()),
    }
    fields.update(overrides)
    return TaskSnapshot(**fields)


def test_creation_emits_single_assigned_event_with_all_assignees() -> None:
    actor = _actor()
    u1, u2 = uuid4(), uuid4()

    events = classify_task_change(None, _snapshot(actor.id, u1, u2), actor=actor)

    assert [event.kind for event in events] == [TaskEventKind.ASSIGNED]
    assert set(events[0].recipient_ids) == {actor.id, u1, u2}
    assert events[0].actor_name == "Alice"


def test_creation_without_assignees_emits_nothing() -> None:
    assert classify_task_change(None, _snapshot(), actor=_actor()) == []


def test_new_assignee_gets_assigned_and_not_updated() -> None:
    actor = _actor()
    old, new = uuid4(), uuid4()
    before = _snapshot(old)
    after = replace(before, priority="High", assignee_ids=frozenset({old, new}))

    events = classify_task_change(before, after, actor=actor)

    assert [event.kind for event in events] == [TaskEventKind.ASSIGNED, TaskEventKind.UPDATED]
    assert events[0].recipient_ids == (new,)
    assert events[1].recipient_ids == (old,)
    assert events[1].update_type == "priority changed to High"


def test_transition_into_completed_replaces_update_event() -> None:
    actor = _actor()
    u1, u2 = uuid4(), uuid4()
    before = _snapshot(u1, u2, status="In Progress")
    after = replace(before, status="Completed")

    events = classify_task_change(before, after, actor=actor)

    assert [event.kind for event in events] == [TaskEventKind.COMPLETED]
    assert set(events[0].recipient_ids) == {u1, u2}


def test_already_completed_task_edit_is_an_update() -> None:
    before = _snapshot(uuid4(), status="Completed")
    after = replace(before, title="Ship v1.1")

    events = classify_task_change(before, after, actor=_actor())

    assert [event.kind for event in events] == [TaskEventKind.UPDATED]
    assert events[0].update_type == "title changed"


def test_update_type_prefers_status_over_other_changes() -> None:
    before = _snapshot(uuid4())
    after = replace(
        before,
        status="In Progress",
        priority="High",
        title="Renamed",
        due_date=datetime(2030, 1, 1, tzinfo=timezone.utc),
    )

    events = classify_task_change(before, after, actor=_actor())

    assert events[0].update_type == "status changed to In Progress"


def test_due_date_ranks_above_title() -> None:
    before = _snapshot(uuid4())
    after = replace(before, title="Renamed", due_date=datetime(2030, 1, 1, tzinfo=timezone.utc))

    assert classify_task_change(before, after, actor=_actor())[0].update_type == "due date changed"


def test_other_field_change_is_reported_as_details_updated() -> None:
    before = _snapshot(uuid4())
    after = replace(before, details=("new description", None, 0, (), ()))

    assert classify_task_change(before, after, actor=_actor())[0].update_type == "details updated"


def test_noop_patch_emits_nothing() -> None:
    before = _snapshot(uuid4())

    assert classify_task_change(before, replace(before), actor=_actor()) == []


def test_removed_assignee_is_not_notified_of_update() -> None:
    keep, dropped = uuid4(), uuid4()
    before = _snapshot(keep, dropped)
    after = replace(before, assignee_ids=frozenset({keep}), status="In Progress")

    events = classify_task_change(before, after, actor=_actor())

    assert [event.recipient_ids for event in events] == [(keep,)]


def test_deletion_events_target_assignees_only_when_present() -> None:
    actor = _actor()
    u1 = uuid4()

    assert deletion_events(_snapshot(), actor=actor) == []
    events = deletion_events(_snapshot(u1), actor=actor)
    assert [event.kind for event in events] == [TaskEventKind.DELETED]
    assert events[0].recipient_ids == (u1,)
