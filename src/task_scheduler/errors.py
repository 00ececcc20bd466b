class TaskSchedulerError(Exception):
    """
    Base class for all failures surfaced by the task repository and the domain layer.
    """


class NotFound(TaskSchedulerError):
    """The requested task does not exist."""


class InvalidArgument(TaskSchedulerError):
    """A client supplied a bad kind, status, filter or timestamp."""


class StoreUnavailable(TaskSchedulerError):
    """The backing store could not be reached. Callers may retry."""


class Internal(TaskSchedulerError):
    """An unexpected failure inside the repository."""
