"""Common base task for Celery jobs"""
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from functools import partial
from typing import Any, Awaitable, Callable, TypeVar

from celery import Task

from core.config import settings
from core.logging_config import get_logger
from infrastructure.database import build_engine, build_session_factory
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork

logger = get_logger(__name__)

T = TypeVar("T")


@asynccontextmanager
async def task_uow_factory():
    """
    Unit-of-work factory bound to an engine owned by one task run.

    Each task drives its own event loop, so pooled connections must not
    outlive it.
    """
    engine = build_engine(settings.database.url)
    try:
        yield partial(SQLAlchemyUnitOfWork, build_session_factory(engine))
    finally:
        await engine.dispose()


class BaseTask(Task):
    """Unified structured logging plus a helper to run async use-cases."""

    def run_async(self, fn: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        async def _run():
            async with task_uow_factory() as uow_factory:
                return await fn(uow_factory, *args, **kwargs)

        return asyncio.run(_run())

    def on_failure(self, exc, task_id, args, kwargs, einfo):  # type: ignore[override]
        logger.error(
            "celery_task_failure",
            task_id=task_id,
            task_name=self.name,
            args=args,
            kwargs=kwargs,
            exc=str(exc),
        )
        super().on_failure(exc, task_id, args, kwargs, einfo)

    def on_success(self, retval, task_id, args, kwargs):  # type: ignore[override]
        logger.info(
            "celery_task_success",
            task_id=task_id,
            task_name=self.name,
            result=retval,
        )
        super().on_success(retval, task_id, args, kwargs)
