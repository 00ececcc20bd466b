import asyncio
import os
import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.pool import AsyncAdaptedQueuePool

from task_scheduler.domain.filter import TaskFilter
from task_scheduler.domain.task import TaskKind, TaskStatus
from task_scheduler.errors import Internal, NotFound, StoreUnavailable
from task_scheduler.storages.sqlalchemy import InMemoryStorage, SqlAlchemyStorage, _claim_statement


@pytest.mark.asyncio
async def test_create_and_get_task(storage: SqlAlchemyStorage):
    process_at = datetime(2024, 3, 30, 23, 17, 10, 790146, tzinfo=timezone.utc)

    task_id = await storage.create_task(TaskKind.FOO, process_at)
    assert isinstance(task_id, uuid.UUID)

    retrieved_task = await storage.get_task(task_id)
    assert retrieved_task.id == task_id
    assert retrieved_task.kind == TaskKind.FOO
    assert retrieved_task.status == TaskStatus.PENDING
    assert retrieved_task.process_at == process_at


@pytest.mark.asyncio
async def test_create_task_defaults_process_at_to_now(storage: SqlAlchemyStorage):
    before = datetime.now(timezone.utc)
    task_id = await storage.create_task(TaskKind.BAR)
    after = datetime.now(timezone.utc)

    task = await storage.get_task(task_id)
    assert before <= task.process_at <= after


@pytest.mark.asyncio
async def test_create_task_normalises_offset_to_utc(storage: SqlAlchemyStorage):
    paris = timezone(timedelta(hours=2))
    task_id = await storage.create_task(TaskKind.BAZ, datetime(2024, 4, 1, 12, 0, tzinfo=paris))

    task = await storage.get_task(task_id)
    assert task.process_at == datetime(2024, 4, 1, 10, 0, tzinfo=timezone.utc)
    assert task.process_at.tzinfo is not None


@pytest.mark.asyncio
async def test_get_unknown_task(storage: SqlAlchemyStorage):
    with pytest.raises(NotFound):
        await storage.get_task(uuid.uuid4())


@pytest.mark.asyncio
async def test_delete_task(storage: SqlAlchemyStorage):
    task_id = await storage.create_task(TaskKind.FOO)

    await storage.delete_task(task_id)

    with pytest.raises(NotFound):
        await storage.get_task(task_id)
    with pytest.raises(NotFound):
        await storage.delete_task(task_id)


@pytest.mark.asyncio
async def test_delete_in_progress_task(storage: SqlAlchemyStorage):
    task_id = await storage.create_task(TaskKind.FOO)
    claimed = await storage.claim_task()
    assert claimed.id == task_id

    await storage.delete_task(task_id)

    assert await storage.complete_task(task_id) is False


@pytest.mark.asyncio
async def test_list_tasks_ordered_by_process_at(storage: SqlAlchemyStorage):
    now = datetime.now(timezone.utc)
    late = await storage.create_task(TaskKind.FOO, now + timedelta(minutes=5))
    early = await storage.create_task(TaskKind.BAR, now - timedelta(minutes=5))
    middle = await storage.create_task(TaskKind.BAZ, now)

    listed_tasks = await storage.list_tasks()
    assert [task.id for task in listed_tasks] == [early, middle, late]


@pytest.mark.asyncio
async def test_list_tasks_filtered(storage: SqlAlchemyStorage):
    past = datetime.now(timezone.utc) - timedelta(seconds=1)
    foo_id = await storage.create_task(TaskKind.FOO, past)
    bar_id = await storage.create_task(TaskKind.BAR, past + timedelta(microseconds=1))
    await storage.create_task(TaskKind.FOO, past + timedelta(hours=1))

    claimed = await storage.claim_task()
    assert claimed.id == foo_id

    foo_tasks = await storage.list_tasks(TaskFilter.by_kind(TaskKind.FOO))
    assert len(foo_tasks) == 2
    assert all(task.kind == TaskKind.FOO for task in foo_tasks)

    in_progress = await storage.list_tasks(TaskFilter.by_status(TaskStatus.IN_PROGRESS))
    assert [task.id for task in in_progress] == [foo_id]

    pending = await storage.list_tasks(TaskFilter.parse("status:Pending"))
    assert bar_id in [task.id for task in pending]
    assert len(pending) == 2

    assert await storage.list_tasks(TaskFilter.by_status(TaskStatus.COMPLETED)) == []


@pytest.mark.asyncio
async def test_claim_returns_none_when_empty(storage: SqlAlchemyStorage):
    assert await storage.claim_task() is None


@pytest.mark.asyncio
async def test_claim_marks_task_in_progress(storage: SqlAlchemyStorage):
    task_id = await storage.create_task(TaskKind.BAZ)

    claimed = await storage.claim_task()
    assert claimed is not None
    assert claimed.id == task_id
    assert claimed.status == TaskStatus.IN_PROGRESS

    stored = await storage.get_task(task_id)
    assert stored.status == TaskStatus.IN_PROGRESS

    # Nothing else is ready.
    assert await storage.claim_task() is None


@pytest.mark.asyncio
async def test_claim_prefers_earliest_process_at(storage: SqlAlchemyStorage):
    now = datetime.now(timezone.utc)
    second = await storage.create_task(TaskKind.FOO, now - timedelta(seconds=10))
    first = await storage.create_task(TaskKind.BAR, now - timedelta(seconds=20))

    assert (await storage.claim_task()).id == first
    assert (await storage.claim_task()).id == second
    assert await storage.claim_task() is None


@pytest.mark.asyncio
async def test_claim_breaks_ties_by_id(storage: SqlAlchemyStorage):
    process_at = datetime.now(timezone.utc) - timedelta(seconds=1)
    task_ids = [await storage.create_task(TaskKind.BAZ, process_at) for _ in range(3)]

    claimed = [(await storage.claim_task()).id for _ in range(3)]
    assert claimed == sorted(task_ids)


@pytest.mark.asyncio
async def test_claim_respects_process_at(storage: SqlAlchemyStorage):
    now = datetime.now(timezone.utc)
    task_id = await storage.create_task(TaskKind.FOO, now + timedelta(hours=1))

    for _ in range(5):
        assert await storage.claim_task(now=now) is None
    assert await storage.claim_task(now=now + timedelta(minutes=59)) is None

    claimed = await storage.claim_task(now=now + timedelta(hours=1, seconds=1))
    assert claimed is not None
    assert claimed.id == task_id
    assert await storage.claim_task(now=now + timedelta(hours=2)) is None


@pytest.mark.asyncio
async def test_concurrent_claims_single_task(storage: SqlAlchemyStorage):
    task_id = await storage.create_task(TaskKind.FOO, datetime.now(timezone.utc) - timedelta(seconds=1))

    results = await asyncio.gather(*[storage.claim_task() for _ in range(10)])

    winners = [task for task in results if task is not None]
    assert len(winners) == 1
    assert winners[0].id == task_id
    assert results.count(None) == 9


@pytest.mark.asyncio
async def test_concurrent_claims_never_share_a_task(storage: SqlAlchemyStorage):
    past = datetime.now(timezone.utc) - timedelta(seconds=1)
    created = {await storage.create_task(TaskKind.BAR, past) for _ in range(5)}

    results = await asyncio.gather(*[storage.claim_task() for _ in range(12)])

    claimed_ids = [task.id for task in results if task is not None]
    assert len(claimed_ids) == len(set(claimed_ids))
    assert set(claimed_ids) == created


@pytest.mark.asyncio
async def test_complete_task(storage: SqlAlchemyStorage):
    task_id = await storage.create_task(TaskKind.FOO)
    await storage.claim_task()

    assert await storage.complete_task(task_id) is True
    assert (await storage.get_task(task_id)).status == TaskStatus.COMPLETED

    # Completing twice is a no-op.
    assert await storage.complete_task(task_id) is False
    assert (await storage.get_task(task_id)).status == TaskStatus.COMPLETED


@pytest.mark.asyncio
async def test_complete_pending_task_is_rejected(storage: SqlAlchemyStorage):
    task_id = await storage.create_task(TaskKind.FOO)

    assert await storage.complete_task(task_id) is False
    assert (await storage.get_task(task_id)).status == TaskStatus.PENDING


@pytest.mark.asyncio
async def test_completed_task_is_never_claimed_again(storage: SqlAlchemyStorage):
    task_id = await storage.create_task(TaskKind.BAZ)
    await storage.claim_task()
    await storage.complete_task(task_id)

    assert await storage.claim_task() is None
    assert (await storage.get_task(task_id)).status == TaskStatus.COMPLETED


@pytest.mark.asyncio
async def test_complete_unknown_task(storage: SqlAlchemyStorage):
    assert await storage.complete_task(uuid.uuid4()) is False


@pytest.mark.asyncio
async def test_unreachable_store_raises_store_unavailable(tmp_path):
    storage = SqlAlchemyStorage(f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'tasks.db'}")
    try:
        with pytest.raises(StoreUnavailable):
            await storage.claim_task()
    finally:
        await storage.dispose()


@pytest.mark.asyncio
async def test_in_memory_storage():
    storage = InMemoryStorage()
    await storage.create_tables()
    try:
        task_id = await storage.create_task(TaskKind.FOO)
        assert (await storage.claim_task()).id == task_id
        assert await storage.complete_task(task_id) is True
    finally:
        await storage.dispose()


@pytest.mark.asyncio
async def test_exhausted_pool_raises_store_unavailable(tmp_path):
    storage = SqlAlchemyStorage(
        f"sqlite+aiosqlite:///{tmp_path / 'tasks.db'}",
        poolclass=AsyncAdaptedQueuePool,
        pool_size=1,
        max_overflow=0,
        pool_timeout=0.2,
    )
    await storage.create_tables()
    try:
        async with storage.engine.connect() as conn:
            await conn.exec_driver_sql("SELECT 1")
            with pytest.raises(StoreUnavailable):
                await storage.claim_task()
    finally:
        await storage.dispose()


@pytest.mark.asyncio
async def test_unexpected_store_error_raises_internal(storage: SqlAlchemyStorage):
    with pytest.raises(Internal):
        await storage.list_tasks(TaskFilter(field="owner", value=TaskStatus.PENDING))


def test_claim_statement_skips_locked_rows_on_postgresql():
    statement = _claim_statement(datetime.now(timezone.utc))

    compiled = str(statement.compile(dialect=postgresql.dialect()))
    assert "FOR UPDATE SKIP LOCKED" in compiled
    assert "ORDER BY" in compiled
    assert "RETURNING" in compiled

    assert "FOR UPDATE" not in str(statement.compile(dialect=sqlite.dialect()))


@pytest.mark.asyncio
@pytest.mark.skipif(
    not os.environ.get("DATABASE_URL", "").startswith("postgresql"),
    reason="needs a PostgreSQL DATABASE_URL",
)
async def test_concurrent_claims_on_postgresql():
    storage = SqlAlchemyStorage(os.environ["DATABASE_URL"], pool_size=12)
    await storage.create_tables()
    try:
        past = datetime.now(timezone.utc) - timedelta(seconds=1)
        created = {await storage.create_task(TaskKind.FOO, past) for _ in range(5)}

        results = await asyncio.gather(*[storage.claim_task() for _ in range(12)])

        claimed_ids = [task.id for task in results if task is not None]
        assert len(claimed_ids) == len(set(claimed_ids))
        assert len(claimed_ids) >= len(created)
        for task_id in created:
            await storage.delete_task(task_id)
    finally:
        await storage.dispose()
