from .task import Task, TaskKind, TaskStatus
from .filter import TaskFilter

__all__ = ["Task", "TaskKind", "TaskStatus", "TaskFilter"]
