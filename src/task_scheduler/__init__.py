"""
Durable Task Scheduler

Clients submit tasks with an earliest execution time; any number of worker
processes poll a shared relational store and claim ready tasks one at a time.

Core Concepts:

Task:
    A unit of scheduled work with a kind, a status and a process_at timestamp.
    Status only moves forward: Pending -> InProgress -> Completed.

Claim:
    A single atomic update that moves the oldest ready task to InProgress.
    Concurrent claimers never receive the same task and never wait on each other.
"""

from .domain import Task, TaskFilter, TaskKind, TaskStatus
from .errors import Internal, InvalidArgument, NotFound, StoreUnavailable, TaskSchedulerError

__all__ = [
    "Task",
    "TaskFilter",
    "TaskKind",
    "TaskStatus",
    "TaskSchedulerError",
    "NotFound",
    "InvalidArgument",
    "StoreUnavailable",
    "Internal",
]
