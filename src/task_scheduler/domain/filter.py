from typing import Optional, Union

from pydantic import BaseModel

from task_scheduler.domain.task import TaskKind, TaskStatus
from task_scheduler.errors import InvalidArgument


class TaskFilter(BaseModel):
    """
    Restricts a task listing to one status or one kind. The two criteria are
    mutually exclusive.
    """
    field: str
    value: Union[TaskStatus, TaskKind]

    @classmethod
    def by_status(cls, status: TaskStatus) -> "TaskFilter":
        return cls(field="status", value=status)

    @classmethod
    def by_kind(cls, kind: TaskKind) -> "TaskFilter":
        return cls(field="kind", value=kind)

    @classmethod
    def parse(cls, raw: Optional[str]) -> Optional["TaskFilter"]:
        """
        Parse ``status:<Pending|InProgress|Completed>`` or ``kind:<Foo|Bar|Baz>``.

        Returns None for an empty value. Raises InvalidArgument for anything else,
        including a value that names more than one criterion.
        """
        if raw is None or raw == "":
            return None
        if "," in raw or raw.count(":") != 1:
            raise InvalidArgument(f"Invalid filter: {raw}")

        name, value = raw.split(":")
        if name == "status":
            return cls.by_status(TaskStatus.parse(value))
        if name == "kind":
            return cls.by_kind(TaskKind.parse(value))
        raise InvalidArgument(f"Invalid filter: {raw}")
