from pathlib import Path

import pytest_asyncio

from task_scheduler.storages.sqlalchemy import SqlAlchemyStorage


@pytest_asyncio.fixture(scope="function")
async def storage(tmp_path: Path):
    # File-backed so that concurrent sessions use separate connections, like separate processes.
    storage = SqlAlchemyStorage(f"sqlite+aiosqlite:///{tmp_path / 'tasks.db'}")
    await storage.create_tables()
    yield storage
    await storage.dispose()
