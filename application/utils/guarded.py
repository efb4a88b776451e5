"""
Retry loop for compare-and-set writes.

Each attempt runs `work` in a fresh unit of work. A lost race
(ConcurrentUpdateException) rolls the attempt back and re-reads current
state on the next one; any other error propagates unchanged.
"""
from __future__ import annotations

from typing import Awaitable, Callable, TypeVar

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_random

from core.logging_config import get_logger
from domain.common.exceptions import ConcurrentUpdateException
from domain.common.unit_of_work import AbstractUnitOfWork


logger = get_logger(__name__)

T = TypeVar("T")


def _log_conflict(retry_state) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.info(
        "guarded_write_conflict",
        attempt=retry_state.attempt_number,
        details=getattr(exc, "details", None),
    )


async def run_guarded(
    uow_factory: Callable[..., AbstractUnitOfWork],
    work: Callable[[AbstractUnitOfWork], Awaitable[T]],
    *,
    attempts: int,
) -> T:
    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(max(1, int(attempts))),
        wait=wait_random(0, 0.05),
        retry=retry_if_exception_type(ConcurrentUpdateException),
        before_sleep=_log_conflict,
        reraise=True,
    ):
        with attempt:
            async with uow_factory() as uow:
                return await work(uow)
