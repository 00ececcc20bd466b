import asyncio
import logging
import random
from dataclasses import dataclass

from task_scheduler.domain.task import Task
from task_scheduler.errors import StoreUnavailable, TaskSchedulerError
from task_scheduler.executor_factory import TaskExecutorFactory
from task_scheduler.storages.protocol import TaskStorage

logger = logging.getLogger(__name__)


@dataclass
class _RetryBackoff:
    initial: float
    maximum: float
    attempts: int = 0

    def reset(self) -> None:
        self.attempts = 0

    def next_delay(self) -> float:
        base = min(self.maximum, self.initial * (2 ** min(self.attempts, 16)))
        self.attempts += 1
        jitter_range = base * 0.25
        return max(0.1, base + random.uniform(-jitter_range, jitter_range))


class Worker:
    """
    Polls the task store, claims one ready task at a time, runs it and marks it completed.

    Each polling cycle goes Idle -> Claiming -> (Processing -> Completing) or back to
    Idle when nothing is ready. Tasks are processed sequentially; run more worker
    processes for more throughput.

    Failures after a successful claim are not retried: a task whose executor raises,
    or whose completion cannot be recorded, stays InProgress.
    """

    def __init__(
        self,
        storage: TaskStorage,
        executor_factory: TaskExecutorFactory,
        poll_interval: float = 1.0,
        poll_jitter: float = 0.25,
        max_backoff: float = 30.0,
    ):
        self.storage = storage
        self.executor_factory = executor_factory
        self.poll_interval = poll_interval
        self.poll_jitter = poll_jitter
        self.backoff = _RetryBackoff(initial=poll_interval, maximum=max_backoff)
        self._stop = asyncio.Event()

    def request_stop(self) -> None:
        """Ask the worker to stop after the task in flight, if any."""
        self._stop.set()

    @property
    def stopping(self) -> bool:
        return self._stop.is_set()

    async def run(self) -> None:
        """
        Main polling loop. Returns once request_stop() has been called.
        """
        logger.info("Worker started.")
        while not self._stop.is_set():
            try:
                processed = await self.run_once()
            except StoreUnavailable:
                delay = self.backoff.next_delay()
                logger.warning("Task store unavailable, retrying in %.2fs", delay)
                await self._sleep(delay)
                continue

            self.backoff.reset()
            if not processed:
                await self._sleep(self._poll_delay())
        logger.info("Worker stopped.")

    async def run_once(self) -> bool:
        """
        Run a single polling cycle. Returns True if a task was claimed.

        Raises:
            StoreUnavailable: If the claim could not reach the store.
        """
        task = await self.storage.claim_task()
        if task is None:
            return False

        logger.info("Claimed task %s (%s)", task.id, task.kind.value)
        if await self._execute(task):
            await self._complete(task)
        return True

    async def _execute(self, task: Task) -> bool:
        try:
            executor = self.executor_factory.get_executor(task.kind)
            await executor.async_execute(task)
        except Exception:
            logger.exception("Task %s (%s) failed, leaving it InProgress", task.id, task.kind.value)
            return False
        return True

    async def _complete(self, task: Task) -> None:
        try:
            completed = await self.storage.complete_task(task.id)
        except TaskSchedulerError as e:
            logger.error("Could not record completion of task %s (%s), it stays InProgress", task.id, type(e).__name__)
            return

        if completed:
            logger.info("Completed task %s", task.id)
        else:
            logger.warning("Task %s was no longer InProgress when completing (deleted?)", task.id)

    def _poll_delay(self) -> float:
        return max(0.0, self.poll_interval + random.uniform(-self.poll_jitter, self.poll_jitter))

    async def _sleep(self, delay: float) -> None:
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass
