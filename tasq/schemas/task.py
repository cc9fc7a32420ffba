"""Read-only view of a task row as the notification engine sees it."""

from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from tasq.schemas.common import Priority, TaskStatus

# Status labels used by the web client and older rows, mapped onto TaskStatus
_STATUS_ALIASES = {
    "to do": TaskStatus.todo,
    "not started": TaskStatus.todo,
    "todo": TaskStatus.todo,
    "in progress": TaskStatus.in_progress,
    "in_progress": TaskStatus.in_progress,
    "review": TaskStatus.review,
    "done": TaskStatus.done,
    "completed": TaskStatus.done,
    "cancelled": TaskStatus.cancelled,
}


class TaskSnapshot(BaseModel):
    """In-memory copy of a task held by a notification session.

    Everything except ``reminder_sent`` is treated as read-only; the
    reminder evaluator flips that flag when a reminder fires.

    Malformed values coming from the store never raise here: an
    unparseable due date becomes ``None`` and the engine skips the task.
    """

    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    description: Optional[str] = None
    project_id: Optional[str] = None
    status: TaskStatus = TaskStatus.todo
    priority: Priority = Priority.medium
    due_date: Optional[date] = None
    due_time: Optional[str] = None  # "HH:MM"
    reminder_minutes: Optional[int] = None
    reminder_sent: bool = False
    user_id: Optional[str] = None
    assigned_to: Optional[str] = None

    @field_validator("id", "project_id", "user_id", "assigned_to", mode="before")
    @classmethod
    def _stringify_ids(cls, value: Any) -> Any:
        if value is None:
            return None
        return str(value)

    @field_validator("status", mode="before")
    @classmethod
    def _normalise_status(cls, value: Any) -> Any:
        if isinstance(value, TaskStatus):
            return value
        if value is None:
            return TaskStatus.todo
        return _STATUS_ALIASES.get(str(value).strip().lower(), TaskStatus.todo)

    @field_validator("priority", mode="before")
    @classmethod
    def _normalise_priority(cls, value: Any) -> Any:
        if isinstance(value, Priority):
            return value
        try:
            return Priority(str(value).strip().lower())
        except ValueError:
            return Priority.medium

    @field_validator("due_date", mode="before")
    @classmethod
    def _coerce_due_date(cls, value: Any) -> Optional[date]:
        if value is None or value == "":
            return None
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        try:
            return date.fromisoformat(str(value)[:10])
        except ValueError:
            return None

    @field_validator("reminder_minutes", mode="before")
    @classmethod
    def _coerce_lead_time(cls, value: Any) -> Optional[int]:
        if value is None or value == "":
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            return None

    @property
    def is_closed(self) -> bool:
        return self.status in (TaskStatus.done, TaskStatus.cancelled)
