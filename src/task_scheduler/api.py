"""
Scheduler API: HTTP create/read/list/delete over the task store.

Handlers are stateless and delegate straight to the storage; any number of
instances may serve the same store.
"""

import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, field_validator

from task_scheduler.domain.filter import TaskFilter
from task_scheduler.domain.task import Task, TaskKind, ensure_utc
from task_scheduler.errors import (
    Internal,
    InvalidArgument,
    NotFound,
    StoreUnavailable,
    TaskSchedulerError,
)
from task_scheduler.storages.protocol import TaskStorage

logger = logging.getLogger(__name__)

_ERROR_STATUS_CODES = [
    (NotFound, 404),
    (InvalidArgument, 400),
    (StoreUnavailable, 503),
    (Internal, 500),
]


class TaskCreateRequest(BaseModel):
    kind: TaskKind = Field(..., description="Work category")
    execute_at: Optional[datetime] = Field(None, description="Earliest execution time, defaults to now")

    @field_validator('execute_at')
    def check_timezone(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v) if v is not None else v


class TaskCreateResponse(BaseModel):
    id: uuid.UUID


def get_storage(request: Request) -> TaskStorage:
    return request.app.state.storage


async def require_json(request: Request) -> None:
    content_type = request.headers.get("content-type", "")
    if content_type.split(";")[0].strip().lower() != "application/json":
        raise HTTPException(status_code=415, detail="Content-Type must be application/json")


async def handle_scheduler_error(request: Request, exc: TaskSchedulerError) -> JSONResponse:
    status_code = next((code for cls, code in _ERROR_STATUS_CODES if isinstance(exc, cls)), 500)
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, type(exc).__name__)
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": "Invalid request"})


def create_app(storage: TaskStorage) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await app.state.storage.dispose()

    app = FastAPI(
        title="Task Scheduler",
        description="Create, inspect and delete scheduled tasks",
        lifespan=lifespan,
    )
    app.state.storage = storage
    app.add_exception_handler(TaskSchedulerError, handle_scheduler_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)

    @app.get("/tasks", response_model=List[Task])
    async def list_tasks(
        filters: List[str] = Query(default=[], alias="filter"),
        storage: TaskStorage = Depends(get_storage),
    ):
        if len(filters) > 1:
            raise InvalidArgument("Only one filter may be supplied")
        task_filter = TaskFilter.parse(filters[0] if filters else None)
        return await storage.list_tasks(task_filter)

    @app.put("/tasks", response_model=TaskCreateResponse, dependencies=[Depends(require_json)])
    async def create_task(body: TaskCreateRequest, storage: TaskStorage = Depends(get_storage)):
        task_id = await storage.create_task(body.kind, body.execute_at)
        return TaskCreateResponse(id=task_id)

    @app.get("/tasks/{task_id}", response_model=Task)
    async def get_task(task_id: uuid.UUID, storage: TaskStorage = Depends(get_storage)):
        return await storage.get_task(task_id)

    @app.delete("/tasks/{task_id}", status_code=204)
    async def delete_task(task_id: uuid.UUID, storage: TaskStorage = Depends(get_storage)):
        await storage.delete_task(task_id)
        return Response(status_code=204)

    @app.get("/health")
    async def health_check():
        return {"status": "healthy"}

    return app
