from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum

from tasksync.domain.errors import MalformedRecordError, ValidationError
from tasksync.utils import utc_now_iso


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class DataSource(str, Enum):
    REMOTE = "remote"
    CACHE = "cache"
    DEFAULT = "default"


class RecurringType(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


# python attribute -> wire/cache key
TASK_WIRE_KEYS = {
    "id": "id",
    "title": "title",
    "description": "description",
    "start_date": "startDate",
    "due_date": "dueDate",
    "category": "category",
    "priority": "priority",
    "is_completed": "isCompleted",
    "tags": "tags",
    "project_id": "projectId",
    "is_recurring": "isRecurring",
    "recurring_type": "recurringType",
    "created_at": "createdAt",
    "completed_at": "completedAt",
}
TASK_IMMUTABLE_FIELDS = frozenset({"id", "created_at"})
PROJECT_MUTABLE_FIELDS = frozenset({"name", "color"})


def parse_iso_datetime(value: object) -> datetime | None:
    """Parse an ISO date or date-time; naive values are read as UTC."""
    if not isinstance(value, str) or not value.strip():
        return None
    raw = value.strip().replace("Z", "+00:00")
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _normalize_tags(value: object) -> tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, (list, tuple)):
        raise ValueError("tags must be a list of strings")
    tags: list[str] = []
    for tag in value:
        if not isinstance(tag, str):
            raise ValueError("tags must be a list of strings")
        if tag not in tags:
            tags.append(tag)
    return tuple(tags)


def _optional_str(value: object) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


@dataclass(slots=True, frozen=True)
class Task:
    id: str
    title: str
    start_date: str
    description: str = ""
    due_date: str | None = None
    category: str = ""
    priority: Priority = Priority.MEDIUM
    is_completed: bool = False
    tags: tuple[str, ...] = ()
    project_id: str | None = None
    is_recurring: bool = False
    recurring_type: RecurringType | None = None
    created_at: str = ""
    completed_at: str | None = None

    def __post_init__(self):
        if not isinstance(self.tags, tuple):
            object.__setattr__(self, "tags", tuple(self.tags))

    @classmethod
    def new(cls, task_id: str, fields: dict) -> "Task":
        fields = dict(fields)
        title = fields.pop("title", None)
        start_date = fields.pop("start_date", None)
        if not isinstance(title, str) or not title.strip() or parse_iso_datetime(start_date) is None:
            raise ValidationError("Title and start date are required.")
        base = cls(id=task_id, title=title, start_date=start_date, created_at=utc_now_iso())
        return base.with_changes(fields)

    def is_overdue(self, now: datetime) -> bool:
        if self.is_completed or not self.due_date:
            return False
        due = parse_iso_datetime(self.due_date)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return due is not None and due < now

    def with_changes(self, changes: dict) -> "Task":
        """Return a copy with `changes` applied.

        Raises:
            ValidationError: unknown or immutable field, empty title,
                invalid dates, priority or recurring type.
        """
        values: dict = {}
        for name, value in changes.items():
            if name not in TASK_WIRE_KEYS:
                raise ValidationError(f"Unknown task field: {name}")
            if name in TASK_IMMUTABLE_FIELDS:
                raise ValidationError(f"Task field '{name}' cannot be changed.")
            values[name] = value

        try:
            if "title" in values:
                title = values["title"]
                if not isinstance(title, str) or not title.strip():
                    raise ValidationError("Title is required.")
            if "start_date" in values and parse_iso_datetime(values["start_date"]) is None:
                raise ValidationError("Start date is required.")
            if "due_date" in values:
                values["due_date"] = _optional_str(values["due_date"])
                if values["due_date"] is not None and parse_iso_datetime(values["due_date"]) is None:
                    raise ValidationError(f"Invalid due date: {values['due_date']}")
            if "priority" in values:
                values["priority"] = Priority(values["priority"])
            if "recurring_type" in values and values["recurring_type"] is not None:
                values["recurring_type"] = RecurringType(values["recurring_type"])
            if "tags" in values:
                values["tags"] = _normalize_tags(values["tags"])
            for flag in ("is_completed", "is_recurring"):
                if flag in values and not isinstance(values[flag], bool):
                    raise ValidationError(f"Task field '{flag}' must be a boolean.")
            for text in ("description", "category"):
                if text in values:
                    values[text] = str(values[text] or "")
            if "project_id" in values:
                values["project_id"] = _optional_str(values["project_id"])
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc

        is_completed = values.get("is_completed", self.is_completed)
        if is_completed != self.is_completed and "completed_at" not in values:
            values["completed_at"] = utc_now_iso() if is_completed else None
        if not is_completed:
            values["completed_at"] = None
        if not values.get("is_recurring", self.is_recurring):
            values["recurring_type"] = None
        return replace(self, **values)

    def to_dict(self, *, include_identity: bool = True) -> dict:
        data = {
            "title": self.title,
            "description": self.description,
            "startDate": self.start_date,
            "category": self.category,
            "priority": self.priority.value,
            "isCompleted": self.is_completed,
            "tags": list(self.tags),
            "isRecurring": self.is_recurring,
        }
        if include_identity:
            data["id"] = self.id
            data["createdAt"] = self.created_at
        if self.due_date is not None:
            data["dueDate"] = self.due_date
        if self.project_id is not None:
            data["projectId"] = self.project_id
        if self.recurring_type is not None:
            data["recurringType"] = self.recurring_type.value
        if self.completed_at is not None:
            data["completedAt"] = self.completed_at
        return data

    @classmethod
    def from_dict(cls, item: object) -> "Task":
        """Build a Task from a wire/cache record.

        Raises:
            MalformedRecordError: the record cannot be represented as a Task.
        """
        if not isinstance(item, dict):
            raise MalformedRecordError("Task record is not an object.")
        raw_id = item.get("id")
        if raw_id is None or raw_id == "":
            raise MalformedRecordError("Task record has no id.")
        title = item.get("title")
        if not isinstance(title, str) or not title.strip():
            raise MalformedRecordError(f"Task {raw_id} has no title.")
        start_date = item.get("startDate")
        if parse_iso_datetime(start_date) is None:
            raise MalformedRecordError(f"Task {raw_id} has no valid start date.")
        due_date = _optional_str(item.get("dueDate"))
        if due_date is not None and parse_iso_datetime(due_date) is None:
            raise MalformedRecordError(f"Task {raw_id} has an invalid due date.")
        is_completed = item.get("isCompleted", False)
        is_recurring = item.get("isRecurring", False)
        if not isinstance(is_completed, bool) or not isinstance(is_recurring, bool):
            raise MalformedRecordError(f"Task {raw_id} has a non-boolean flag.")

        try:
            priority = Priority(item.get("priority") or Priority.MEDIUM.value)
            recurring_raw = item.get("recurringType")
            recurring_type = RecurringType(recurring_raw) if (is_recurring and recurring_raw) else None
            tags = _normalize_tags(item.get("tags"))
        except ValueError as exc:
            raise MalformedRecordError(f"Task {raw_id}: {exc}") from exc

        return cls(
            id=str(raw_id),
            title=title,
            start_date=start_date,
            description=str(item.get("description") or ""),
            due_date=due_date,
            category=str(item.get("category") or ""),
            priority=priority,
            is_completed=is_completed,
            tags=tags,
            project_id=_optional_str(item.get("projectId")),
            is_recurring=is_recurring,
            recurring_type=recurring_type,
            created_at=str(item.get("createdAt") or ""),
            completed_at=_optional_str(item.get("completedAt")) if is_completed else None,
        )


def changes_to_wire(changes: dict) -> dict:
    """Map python field names to wire keys, serializing enums."""
    payload = {}
    for name, value in changes.items():
        if isinstance(value, Enum):
            value = value.value
        payload[TASK_WIRE_KEYS[name]] = value
    return payload


@dataclass(slots=True, frozen=True)
class Project:
    id: str
    name: str
    color: str = ""
    task_count: int = 0

    def to_dict(self, *, include_identity: bool = True) -> dict:
        data = {"name": self.name, "color": self.color}
        if include_identity:
            data["id"] = self.id
            data["taskCount"] = self.task_count
        return data

    @classmethod
    def from_dict(cls, item: object) -> "Project":
        if not isinstance(item, dict):
            raise MalformedRecordError("Project record is not an object.")
        raw_id = item.get("id")
        name = item.get("name")
        if raw_id is None or raw_id == "":
            raise MalformedRecordError("Project record has no id.")
        if not isinstance(name, str) or not name.strip():
            raise MalformedRecordError(f"Project {raw_id} has no name.")
        # taskCount is derived locally; whatever the record says is ignored.
        return cls(id=str(raw_id), name=name, color=str(item.get("color") or ""))
