from typing import Dict, List, Type

from task_scheduler.domain.task import TaskKind
from task_scheduler.executors import BarTaskExecutor, BazTaskExecutor, FooTaskExecutor
from task_scheduler.executors.protocol import TaskExecutor


class TaskExecutorFactory:
    """
    Factory class for creating task executors, one per task kind.
    """
    def __init__(self):
        self._executors: Dict[TaskKind, Type[TaskExecutor]] = {}

    @property
    def supported_kinds(self) -> List[TaskKind]:
        return list(self._executors)

    def register(self, executor_class: Type[TaskExecutor]) -> None:
        """
        Register a new executor class for the kind it supports.

        Args:
            executor_class (Type[TaskExecutor]): The executor class to register.
        """
        kind: TaskKind = executor_class.supported_kind()
        if kind in self._executors:
            raise ValueError(f"An executor for kind '{kind.value}' is already registered")
        self._executors[kind] = executor_class

    def get_executor(self, kind: TaskKind) -> TaskExecutor:
        """
        Get an executor instance for a task kind.

        Raises:
            KeyError: If no executor is registered for the kind.
        """
        if kind not in self._executors:
            raise KeyError(f"No executor registered for kind '{kind.value}'")
        return self._executors[kind]()


def default_executor_factory() -> TaskExecutorFactory:
    factory = TaskExecutorFactory()
    factory.register(FooTaskExecutor)
    factory.register(BarTaskExecutor)
    factory.register(BazTaskExecutor)
    return factory
