import random

from task_scheduler.domain.task import Task, TaskKind
from task_scheduler.executors.protocol import TaskExecutor

BAZ_MAX = 343


class BazTaskExecutor(TaskExecutor):
    """
    Prints ``Baz <n>`` with n drawn uniformly from 0..343 inclusive.
    """

    @staticmethod
    def supported_kind() -> TaskKind:
        return TaskKind.BAZ

    async def async_execute(self, task: Task) -> None:
        print(f"Baz {random.randint(0, BAZ_MAX)}")
