"""Optimistic concurrency retry for read-check-write units of work.

Mutable shared rows carry a version column. A unit of work reads the rows it
needs, checks its preconditions and writes; the flush at the end is
conditioned on the versions read. When another writer got there first the
whole unit is rolled back and run again against fresh state, so the
preconditions are always evaluated on the rows that are finally written.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random,
)

from arena.utils.errors import ConflictError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Version mismatch, or a unique constraint hit by a concurrent insert
RETRYABLE_CONFLICTS = (StaleDataError, IntegrityError)


async def optimistic_retry(
    session: AsyncSession,
    unit: Callable[[], Awaitable[T]],
    *,
    max_attempts: int = 5,
    operation: str = "update",
) -> T:
    """Run ``unit`` until its writes flush without a conflict.

    ``unit`` must (re)load every row it depends on each time it is called;
    use ``session.get(..., populate_existing=True)`` or
    ``execution_options(populate_existing=True)`` so a retry sees the
    committed state. Business errors raised by ``unit`` propagate unchanged.

    Raises:
        ConflictError: If every attempt lost a race
    """
    try:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(max_attempts),
            wait=wait_random(min=0.01, max=0.05),
            retry=retry_if_exception_type(RETRYABLE_CONFLICTS),
            reraise=False,
        ):
            with attempt:
                try:
                    result = await unit()
                    await session.flush()
                except RETRYABLE_CONFLICTS as e:
                    await session.rollback()
                    logger.info(
                        f"Concurrent update during {operation}: "
                        f"attempt={attempt.retry_state.attempt_number} "
                        f"error={type(e).__name__}"
                    )
                    raise
                return result
    except RetryError as e:
        logger.warning(f"Giving up on {operation} after {max_attempts} attempts")
        raise ConflictError(
            details={"operation": operation, "attempts": max_attempts},
        ) from e.last_attempt.exception()

    # AsyncRetrying always yields at least once
    raise ConflictError(details={"operation": operation})
