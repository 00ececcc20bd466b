"""
Console entry point.

    task-scheduler init-db   create the tasks table
    task-scheduler api       serve the Scheduler API
    task-scheduler worker    run one worker process
"""

import argparse
import asyncio
import logging
import signal
from typing import List, Optional

import uvicorn

from task_scheduler.api import create_app
from task_scheduler.config import Settings, get_settings
from task_scheduler.executor_factory import default_executor_factory
from task_scheduler.logging_setup import setup_logging
from task_scheduler.storages.sqlalchemy import SqlAlchemyStorage
from task_scheduler.worker import Worker

logger = logging.getLogger(__name__)


async def _init_db(settings: Settings) -> None:
    storage = SqlAlchemyStorage(settings.database_url)
    try:
        await storage.create_tables()
    finally:
        await storage.dispose()
    logger.info("Task store schema is up to date.")


async def _run_worker(settings: Settings) -> None:
    storage = SqlAlchemyStorage(settings.database_url, pool_pre_ping=True)
    worker = Worker(
        storage,
        default_executor_factory(),
        poll_interval=settings.poll_interval,
        poll_jitter=settings.poll_jitter,
        max_backoff=settings.max_backoff,
    )

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, worker.request_stop)

    try:
        await worker.run()
    finally:
        await storage.dispose()


def _run_api(settings: Settings) -> None:
    storage = SqlAlchemyStorage(settings.database_url, pool_pre_ping=True)
    uvicorn.run(create_app(storage), host=settings.api_host, port=settings.api_port, log_config=None)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="task-scheduler", description="Durable task scheduler")
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("init-db", help="Create the tasks table if it does not exist")
    subparsers.add_parser("api", help="Serve the Scheduler API")
    subparsers.add_parser("worker", help="Poll for ready tasks and execute them")
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    setup_logging(settings.log_level)

    if args.command == "init-db":
        asyncio.run(_init_db(settings))
    elif args.command == "api":
        _run_api(settings)
    elif args.command == "worker":
        asyncio.run(_run_worker(settings))


if __name__ == "__main__":
    main()
