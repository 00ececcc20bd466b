import asyncio

from task_scheduler.domain.task import Task, TaskKind
from task_scheduler.executors.protocol import TaskExecutor

FOO_DELAY_SECONDS = 3.0


class FooTaskExecutor(TaskExecutor):
    """
    Waits three seconds, then prints ``Foo <id>``.
    """

    def __init__(self, delay: float = FOO_DELAY_SECONDS):
        self.delay = delay

    @staticmethod
    def supported_kind() -> TaskKind:
        return TaskKind.FOO

    async def async_execute(self, task: Task) -> None:
        await asyncio.sleep(self.delay)
        print(f"Foo {task.id}")
