"""Newest-first history reads with a degraded fallback.

If the backend cannot serve the ordered query (missing index, unsupported
sort), the same rows are fetched unordered and sorted in Python instead of
failing the read.
"""

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Select
from sqlalchemy.exc import OperationalError, ProgrammingError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import InstrumentedAttribute

from arena.utils.clock import as_utc

logger = logging.getLogger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)

# Errors raised when the store rejects a query shape rather than failing outright
QUERY_CAPABILITY_ERRORS = (OperationalError, ProgrammingError)


async def fetch_newest_first(
    session: AsyncSession,
    query: Select[Any],
    order_column: InstrumentedAttribute,
    *,
    limit: int = 50,
    offset: int = 0,
) -> list[Any]:
    """Run ``query`` ordered by ``order_column`` descending."""
    try:
        result = await session.execute(
            query.order_by(order_column.desc()).offset(offset).limit(limit)
        )
        return list(result.scalars().all())
    except QUERY_CAPABILITY_ERRORS as e:
        logger.warning(
            f"Ordered history query failed ({type(e).__name__}), sorting in memory instead"
        )
        # The failed statement may have poisoned the transaction
        await session.rollback()

    result = await session.execute(query)
    rows = list(result.scalars().all())
    key = order_column.key
    rows.sort(key=lambda row: as_utc(getattr(row, key)) or _EPOCH, reverse=True)
    return rows[offset:offset + limit]
