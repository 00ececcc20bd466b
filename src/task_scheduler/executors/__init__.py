from .protocol import TaskExecutor
from .foo import FooTaskExecutor
from .http import BarTaskExecutor
from .baz import BazTaskExecutor

__all__ = ["TaskExecutor", "FooTaskExecutor", "BarTaskExecutor", "BazTaskExecutor"]
