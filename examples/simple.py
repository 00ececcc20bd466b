import asyncio
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

from task_scheduler.domain.task import TaskKind, TaskStatus
from task_scheduler.executor_factory import default_executor_factory
from task_scheduler.logging_setup import setup_logging
from task_scheduler.storages.sqlalchemy import SqlAlchemyStorage
from task_scheduler.worker import Worker


async def main(db_path: Path):
    storage = SqlAlchemyStorage(f"sqlite+aiosqlite:///{db_path}")
    await storage.create_tables()

    now = datetime.now(timezone.utc)
    await storage.create_task(TaskKind.FOO)
    await storage.create_task(TaskKind.BAZ, now + timedelta(seconds=2))
    await storage.create_task(TaskKind.BAR, now + timedelta(seconds=1))

    worker = Worker(storage, default_executor_factory(), poll_interval=0.5)
    runner = asyncio.create_task(worker.run())

    while any(task.status != TaskStatus.COMPLETED for task in await storage.list_tasks()):
        await asyncio.sleep(0.5)

    worker.request_stop()
    await runner
    for task in await storage.list_tasks():
        print(task.model_dump_json())
    await storage.dispose()


if __name__ == "__main__":
    setup_logging()
    with tempfile.TemporaryDirectory() as tmp:
        asyncio.run(main(Path(tmp) / "tasks.db"))
