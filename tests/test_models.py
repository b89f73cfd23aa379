"""Tests for Task/Project record conversion and change validation."""

from dataclasses import FrozenInstanceError

import pytest

from conftest import make_task
from tasksync.domain.errors import MalformedRecordError, ValidationError
from tasksync.domain.models import Priority, Project, RecurringType, Task, changes_to_wire


def wire_task(**overrides):
    record = {
        "id": "srv-uuid-1234567890ab",
        "title": "Read book",
        "description": "Chapter 3",
        "startDate": "2024-01-01T09:00:00.000Z",
        "dueDate": "2024-01-05",
        "category": "personal",
        "priority": "low",
        "isCompleted": False,
        "tags": ["reading", "reading", "fun"],
        "projectId": 1,
        "isRecurring": True,
        "recurringType": "weekly",
        "createdAt": "2023-12-31T10:00:00.000Z",
    }
    record.update(overrides)
    return record


def test_from_dict_normalizes_wire_record():
    task = Task.from_dict(wire_task())

    assert task.priority is Priority.LOW
    assert task.recurring_type is RecurringType.WEEKLY
    assert task.tags == ("reading", "fun")
    assert task.to_dict()["tags"] == ["reading", "fun"]
    assert task.project_id == "1"
    assert task.to_dict()["startDate"] == "2024-01-01T09:00:00.000Z"
    assert "completedAt" not in task.to_dict()


def test_completed_at_dropped_for_incomplete_record():
    task = Task.from_dict(wire_task(completedAt="2024-01-02T00:00:00Z"))

    assert task.completed_at is None


def test_recurring_type_ignored_when_not_recurring():
    task = Task.from_dict(wire_task(isRecurring=False))

    assert task.recurring_type is None


@pytest.mark.parametrize(
    "record",
    [
        "not a dict",
        wire_task(id=None),
        wire_task(title=""),
        wire_task(startDate=None),
        wire_task(dueDate="next tuesday"),
        wire_task(priority="urgent"),
        wire_task(recurringType="yearly"),
        wire_task(isCompleted="yes"),
        wire_task(tags="a,b"),
    ],
)
def test_from_dict_rejects_malformed_records(record):
    with pytest.raises(MalformedRecordError):
        Task.from_dict(record)


def test_new_requires_title_and_start_date():
    with pytest.raises(ValidationError):
        Task.new("local-1", {"title": "x"})
    task = Task.new("local-1", {"title": "x", "start_date": "2024-01-01", "priority": "high"})

    assert task.created_at
    assert task.priority is Priority.HIGH


def test_completion_transition_maintains_completed_at():
    task = make_task("a")

    done = task.with_changes({"is_completed": True})
    undone = done.with_changes({"is_completed": False})

    assert done.completed_at is not None
    assert undone.completed_at is None
    assert task.completed_at is None


def test_records_are_immutable():
    task = make_task("a", tags=["x"])

    assert task.tags == ("x",)
    with pytest.raises(FrozenInstanceError):
        task.title = "b"
    with pytest.raises(AttributeError):
        task.tags.append("y")
    with pytest.raises(FrozenInstanceError):
        Project(id="p", name="P").task_count = 3


def test_completed_task_toggled_twice_gets_new_completion_time():
    task = make_task("a", is_completed=True, completed_at="2024-01-02T00:00:00Z")

    reopened = task.with_changes({"is_completed": False})
    done_again = reopened.with_changes({"is_completed": True})

    assert reopened.completed_at is None
    assert done_again.is_completed is True
    assert done_again.completed_at not in (None, "2024-01-02T00:00:00Z")


@pytest.mark.parametrize(
    "changes",
    [
        {"created_at": "2024-01-01"},
        {"start_date": ""},
        {"due_date": "soon"},
        {"priority": "urgent"},
        {"is_completed": "true"},
        {"tags": [1, 2]},
        {"nope": 1},
    ],
)
def test_with_changes_rejects_invalid_values(changes):
    with pytest.raises(ValidationError):
        make_task("a").with_changes(changes)


def test_changes_to_wire_uses_camel_case():
    assert changes_to_wire({"due_date": None, "priority": Priority.LOW, "is_completed": True}) == {
        "dueDate": None,
        "priority": "low",
        "isCompleted": True,
    }


def test_project_record_ignores_task_count():
    project = Project.from_dict({"id": 7, "name": "Home", "color": "#fff", "taskCount": 12})

    assert project == Project(id="7", name="Home", color="#fff", task_count=0)
    with pytest.raises(MalformedRecordError):
        Project.from_dict({"id": "1", "name": ""})
