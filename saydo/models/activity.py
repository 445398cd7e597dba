"""Task and reminder models read by the pattern engine."""

from datetime import date, datetime
from enum import Enum
from typing import Any, Mapping, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class TaskPriority(str, Enum):
    """Priority levels shared by tasks and reminders."""

    URGENT = "urgent"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class TaskStatus(str, Enum):
    """Lifecycle states of a task."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ReminderType(str, Enum):
    """How a reminder was classified when it was captured."""

    TASK = "task"
    TODO = "todo"
    REMINDER = "reminder"


def _tags_from_column(v: Any) -> list[str]:
    if v is None:
        return []
    return [str(tag) for tag in v]


class Task(BaseModel):
    """A task extracted from a voice note or entered manually."""

    id: UUID
    user_id: UUID
    title: str
    description: Optional[str] = None
    priority: TaskPriority = TaskPriority.MEDIUM
    status: TaskStatus = TaskStatus.PENDING
    due_date: Optional[date] = None
    due_time: Optional[str] = Field(default=None, pattern=r"^\d{2}:\d{2}")
    category: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    source_recording_id: Optional[UUID] = None
    created_at: datetime
    completed_at: Optional[datetime] = None

    @field_validator("tags", mode="before")
    @classmethod
    def tags_default_empty(cls, v: Any) -> list[str]:
        """NULL tag arrays become an empty list."""
        return _tags_from_column(v)

    @field_validator("due_date", mode="before")
    @classmethod
    def due_date_as_date(cls, v: Any) -> Any:
        """Timestamps stored in the due date column keep only their date part."""
        if isinstance(v, datetime):
            return v.date()
        return v

    @field_validator("due_time", mode="before")
    @classmethod
    def due_time_hh_mm(cls, v: Any) -> Any:
        """Postgres TIME values and 'HH:MM:SS' strings are cut to 'HH:MM'."""
        if v is None or v == "":
            return None
        if hasattr(v, "strftime"):
            return v.strftime("%H:%M")
        return str(v)[:5]

    @property
    def is_completed(self) -> bool:
        return self.status == TaskStatus.COMPLETED

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Task":
        """Build a Task from a ``tasks`` table record.

        Raises:
            pydantic.ValidationError: If the row is missing required fields
                or carries values outside the allowed enums
        """
        return cls.model_validate(dict(row))


class Reminder(BaseModel):
    """A time-based reminder, optionally recurring."""

    id: UUID
    user_id: UUID
    title: str
    description: Optional[str] = None
    reminder_time: datetime
    is_recurring: bool = False
    recurrence_pattern: Optional[str] = None  # "daily", "weekly:mon,wed,fri"
    is_completed: bool = False
    is_snoozed: bool = False
    snooze_until: Optional[datetime] = None
    tags: list[str] = Field(default_factory=list)
    priority: Optional[TaskPriority] = None
    type: Optional[ReminderType] = None
    source_recording_id: Optional[UUID] = None
    created_at: datetime

    @field_validator("tags", mode="before")
    @classmethod
    def tags_default_empty(cls, v: Any) -> list[str]:
        """NULL tag arrays become an empty list."""
        return _tags_from_column(v)

    @field_validator("is_recurring", "is_completed", "is_snoozed", mode="before")
    @classmethod
    def null_flag_is_false(cls, v: Any) -> Any:
        return False if v is None else v

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Reminder":
        """Build a Reminder from a ``reminders`` table record.

        Raises:
            pydantic.ValidationError: If the row is malformed
        """
        return cls.model_validate(dict(row))
