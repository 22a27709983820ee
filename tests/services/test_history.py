"""Tests for newest-first history reads and their in-memory fallback."""

from datetime import timedelta
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from arena.models import TransactionType, User, WalletTransaction
from arena.services.history import fetch_newest_first
from arena.services.wallet import WalletService
from arena.utils.clock import utcnow


def _result(rows):
    result = MagicMock()
    result.scalars.return_value.all.return_value = rows
    return result


class TestFetchNewestFirst:
    @pytest.mark.asyncio
    async def test_ordered_query(self, test_db, settings, make_user):
        user = await make_user(balance=0)
        wallet = WalletService(test_db, settings)
        for amount in (100, 200, 300):
            stored = await test_db.get(User, user.id, populate_existing=True)
            wallet.post_entry(stored, amount, TransactionType.RECHARGE)
            await test_db.commit()

        rows = await fetch_newest_first(
            test_db,
            select(WalletTransaction).where(WalletTransaction.user_id == user.id),
            WalletTransaction.created_at,
            limit=2,
        )

        assert [tx.amount for tx in rows] == [300, 200]

    @pytest.mark.asyncio
    async def test_falls_back_to_sorting_in_memory(self):
        now = utcnow()
        rows = [
            SimpleNamespace(id="old", created_at=now - timedelta(days=2)),
            SimpleNamespace(id="naive", created_at=(now - timedelta(hours=1)).replace(tzinfo=None)),
            SimpleNamespace(id="undated", created_at=None),
            SimpleNamespace(id="new", created_at=now),
        ]
        session = MagicMock()
        session.execute = AsyncMock(
            side_effect=[OperationalError("SELECT ...", {}, Exception("no index")), _result(rows)]
        )
        session.rollback = AsyncMock()

        page = await fetch_newest_first(
            session,
            select(WalletTransaction),
            WalletTransaction.created_at,
            limit=3,
        )

        session.rollback.assert_awaited_once()
        assert session.execute.await_count == 2
        assert [row.id for row in page] == ["new", "naive", "old"]

    @pytest.mark.asyncio
    async def test_fallback_honours_offset(self):
        now = utcnow()
        rows = [SimpleNamespace(id=str(i), created_at=now - timedelta(minutes=i)) for i in range(5)]
        session = MagicMock()
        session.execute = AsyncMock(
            side_effect=[OperationalError("SELECT ...", {}, Exception("no index")), _result(rows)]
        )
        session.rollback = AsyncMock()

        page = await fetch_newest_first(
            session,
            select(WalletTransaction),
            WalletTransaction.created_at,
            limit=2,
            offset=2,
        )

        assert [row.id for row in page] == ["2", "3"]
