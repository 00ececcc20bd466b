import uuid
import logging
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field, field_serializer, field_validator

from task_scheduler.errors import InvalidArgument


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """
    Return ``value`` converted to UTC. Naive datetimes are assumed to already be UTC.
    """
    if value.tzinfo is None:
        logging.warning("Datetime does not include a timezone. Defaulting to UTC+0 for consistent representation. "
                        "Note: When using SQLite for storage, timezone information is discarded, "
                        "so every timestamp is normalised to UTC before it is stored.")
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Render a timestamp as ISO-8601 UTC with a trailing ``Z``."""
    return ensure_utc(value).isoformat().replace("+00:00", "Z")


class TaskKind(str, Enum):
    FOO = "Foo"
    BAR = "Bar"
    BAZ = "Baz"

    @classmethod
    def parse(cls, value: str) -> "TaskKind":
        try:
            return cls(value)
        except ValueError:
            raise InvalidArgument(f"Invalid kind: {value}")


class TaskStatus(str, Enum):
    PENDING = "Pending"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"

    @classmethod
    def parse(cls, value: str) -> "TaskStatus":
        try:
            return cls(value)
        except ValueError:
            raise InvalidArgument(f"Invalid status: {value}")


class Task(BaseModel):
    """
    A unit of scheduled work. Snapshots only: the store is the source of truth
    and other processes may change a task's status at any time.
    """
    id: uuid.UUID = Field(default_factory=uuid.uuid4, description="Unique task identifier")
    kind: TaskKind = Field(..., description="Work category, decides which executor runs the task")
    status: TaskStatus = Field(default=TaskStatus.PENDING, description="Lifecycle state")
    process_at: datetime = Field(
        default_factory=utc_now,
        description="Earliest moment the task may be claimed, UTC"
    )

    @field_validator('process_at')
    def check_timezone(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @field_serializer('process_at')
    def serialize_process_at(self, v: datetime) -> str:
        return format_timestamp(v)
