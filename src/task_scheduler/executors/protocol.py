from typing import Protocol

from task_scheduler.domain.task import Task, TaskKind


class TaskExecutor(Protocol):
    """
    Protocol class for the kind-specific work run by a worker on a claimed task.
    """

    async def async_execute(self, task: Task) -> None:
        """
        Asynchronously execute the given task.

        Args:
            task (Task): The claimed task, already InProgress.
        """
        ...

    @staticmethod
    def supported_kind() -> TaskKind:
        """
        Return the task kind this executor handles.
        """
        ...
