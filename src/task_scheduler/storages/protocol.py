import uuid
from datetime import datetime
from typing import List, Optional, Protocol

from task_scheduler.domain.filter import TaskFilter
from task_scheduler.domain.task import Task, TaskKind


class TaskStorage(Protocol):
    async def create_task(self, kind: TaskKind, process_at: Optional[datetime] = None) -> uuid.UUID:
        """Insert a Pending task and return its ID. process_at defaults to now."""
        ...

    async def get_task(self, task_id: uuid.UUID) -> Task:
        """Retrieve a task by its ID. Raise NotFound if it does not exist."""
        ...

    async def list_tasks(self, task_filter: Optional[TaskFilter] = None) -> List[Task]:
        """List tasks ordered by process_at, optionally restricted to one status or kind."""
        ...

    async def delete_task(self, task_id: uuid.UUID) -> None:
        """Delete a task regardless of its status. Raise NotFound if it does not exist."""
        ...

    async def claim_task(self, now: Optional[datetime] = None) -> Optional[Task]:
        """
        Atomically move the oldest ready task to InProgress and return it.
        Return None without waiting when no ready, unlocked task exists.
        """
        ...

    async def complete_task(self, task_id: uuid.UUID) -> bool:
        """Move an InProgress task to Completed. Return False if it was not InProgress."""
        ...

    async def dispose(self) -> None:
        """Release pooled store connections."""
        ...
