import functools
import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import Column, DateTime, Enum, Index, Uuid, delete, func, select, update
from sqlalchemy.exc import (
    DBAPIError,
    IntegrityError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
    TimeoutError as PoolTimeoutError,
)
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import aliased, declarative_base
from sqlalchemy.pool import StaticPool
from sqlalchemy.types import TypeDecorator

from task_scheduler.domain.filter import TaskFilter
from task_scheduler.domain.task import Task, TaskKind, TaskStatus, ensure_utc, utc_now
from task_scheduler.errors import Internal, NotFound, StoreUnavailable
from task_scheduler.storages.protocol import TaskStorage

logger = logging.getLogger(__name__)

Base = declarative_base()


def _enum_values(enum_cls) -> List[str]:
    return [member.value for member in enum_cls]


class UTCDateTime(TypeDecorator):
    """
    Timestamp column that always binds and returns timezone-aware UTC values.
    SQLite has no timezone storage, so offsets are normalised away before binding.
    """
    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return value
        return ensure_utc(value)

    def process_result_value(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return value
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class TaskModel(Base):
    __tablename__ = 'tasks'
    __table_args__ = (
        Index('ix_tasks_status_process_at', 'status', 'process_at'),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True)
    kind = Column(Enum(TaskKind, name='task_type', values_callable=_enum_values), nullable=False)
    status = Column(
        Enum(TaskStatus, name='task_status_type', values_callable=_enum_values),
        nullable=False,
        default=TaskStatus.PENDING,
        server_default=TaskStatus.PENDING.value,
    )
    process_at = Column(UTCDateTime(timezone=True), nullable=False, server_default=func.now())


def _translate_store_errors(method):
    """Re-raise driver failures as the repository's typed errors."""

    @functools.wraps(method)
    async def wrapper(*args, **kwargs):
        try:
            return await method(*args, **kwargs)
        except IntegrityError as e:
            logger.error("Constraint violation in %s", method.__name__)
            raise Internal("Constraint violation") from e
        except (OperationalError, InterfaceError, PoolTimeoutError) as e:
            raise StoreUnavailable("Task store unavailable") from e
        except DBAPIError as e:
            if e.connection_invalidated:
                raise StoreUnavailable("Task store unavailable") from e
            raise Internal("Unexpected store error") from e
        except SQLAlchemyError as e:
            logger.error("Unexpected store error in %s: %s", method.__name__, type(e).__name__)
            raise Internal("Unexpected store error") from e
        except OSError as e:
            raise StoreUnavailable("Task store unavailable") from e

    return wrapper


def _claim_statement(now: datetime):
    """UPDATE ... RETURNING that moves the oldest ready task to InProgress."""
    candidate = aliased(TaskModel)
    # SKIP LOCKED on PostgreSQL; dialects without it drop the clause and rely
    # on the status guard in the outer UPDATE.
    next_ready = (
        select(candidate.id)
        .where(candidate.status == TaskStatus.PENDING, candidate.process_at <= now)
        .order_by(candidate.process_at, candidate.id)
        .limit(1)
        .with_for_update(skip_locked=True)
        .scalar_subquery()
    )
    return (
        update(TaskModel)
        .where(TaskModel.id == next_ready, TaskModel.status == TaskStatus.PENDING)
        .values(status=TaskStatus.IN_PROGRESS)
        .returning(TaskModel.id, TaskModel.kind, TaskModel.status, TaskModel.process_at)
        .execution_options(synchronize_session=False)
    )


class SqlAlchemyStorage(TaskStorage):
    def __init__(self, db_url: str, **engine_kwargs):
        self.engine = create_async_engine(db_url, **engine_kwargs)
        self.async_session = async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False
        )

    async def create_tables(self):
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self):
        await self.engine.dispose()

    @_translate_store_errors
    async def create_task(self, kind: TaskKind, process_at: Optional[datetime] = None) -> uuid.UUID:
        task = Task(kind=kind, process_at=process_at or utc_now())
        async with self.async_session() as session:
            session.add(TaskModel(
                id=task.id,
                kind=task.kind,
                status=task.status,
                process_at=task.process_at,
            ))
            await session.commit()
            logger.debug("Created task %s (%s) due at %s", task.id, task.kind.value, task.process_at)
            return task.id

    @_translate_store_errors
    async def get_task(self, task_id: uuid.UUID) -> Task:
        async with self.async_session() as session:
            result = await session.execute(select(TaskModel).filter_by(id=task_id))
            db_task = result.scalar_one_or_none()
            if db_task is None:
                raise NotFound(f"Task {task_id} not found")
            return self._db_to_task(db_task)

    @_translate_store_errors
    async def list_tasks(self, task_filter: Optional[TaskFilter] = None) -> List[Task]:
        query = select(TaskModel).order_by(TaskModel.process_at, TaskModel.id)
        if task_filter is not None:
            query = query.filter_by(**{task_filter.field: task_filter.value})
        async with self.async_session() as session:
            result = await session.execute(query)
            return [self._db_to_task(db_task) for db_task in result.scalars()]

    @_translate_store_errors
    async def delete_task(self, task_id: uuid.UUID) -> None:
        async with self.async_session() as session:
            result = await session.execute(
                delete(TaskModel)
                .where(TaskModel.id == task_id)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            if result.rowcount == 0:
                raise NotFound(f"Task {task_id} not found")

    @_translate_store_errors
    async def claim_task(self, now: Optional[datetime] = None) -> Optional[Task]:
        now = ensure_utc(now) if now else utc_now()
        async with self.async_session() as session:
            result = await session.execute(_claim_statement(now))
            row = result.one_or_none()
            await session.commit()
        if row is None:
            return None
        return Task(id=row.id, kind=row.kind, status=row.status, process_at=row.process_at)

    @_translate_store_errors
    async def complete_task(self, task_id: uuid.UUID) -> bool:
        async with self.async_session() as session:
            result = await session.execute(
                update(TaskModel)
                .where(TaskModel.id == task_id, TaskModel.status == TaskStatus.IN_PROGRESS)
                .values(status=TaskStatus.COMPLETED)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            return result.rowcount == 1

    def _db_to_task(self, db_task: TaskModel) -> Task:
        return Task(
            id=db_task.id,
            kind=db_task.kind,
            status=db_task.status,
            process_at=db_task.process_at,
        )


class InMemoryStorage(SqlAlchemyStorage):
    """
    SQLite in-memory store on one shared connection. Suitable for tests and
    sequential use only: concurrent sessions would share a transaction.
    """
    def __init__(self):
        super().__init__("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
