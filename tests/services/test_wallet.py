"""Tests for WalletService.

- post_entry: balance change paired with a hashed ledger row
- join_tournament: fee debit, seat, capacity and username checks in one unit
- optimistic retry under a concurrent join
"""

from datetime import timedelta
from unittest.mock import patch

import pytest
from sqlalchemy.orm.exc import StaleDataError

from arena.models import (
    Participant,
    Tournament,
    TournamentStatus,
    TransactionType,
    User,
    WalletTransaction,
)
from arena.services.wallet import WalletService
from arena.utils.clock import utcnow
from arena.utils.errors import (
    ConflictError,
    ErrorCode,
    ErrorKind,
    InsufficientBalanceError,
    PreconditionError,
    ValidationError,
)


@pytest.fixture
def wallet(test_db, settings) -> WalletService:
    return WalletService(test_db, settings)


class TestPostEntry:
    """Ledger entries."""

    @pytest.mark.asyncio
    async def test_credit_and_debit_record_snapshots(self, wallet, test_db, make_user):
        created = await make_user(balance=1000)
        user = await test_db.get(User, created.id)

        credit = wallet.post_entry(user, 250, TransactionType.RECHARGE, reference_id="req-1")
        debit = wallet.post_entry(user, -400, TransactionType.WITHDRAWAL)
        await test_db.commit()

        assert (credit.balance_before, credit.balance_after) == (1000, 1250)
        assert (debit.balance_before, debit.balance_after) == (1250, 850)
        assert user.wallet_balance == 850
        assert WalletService.verify_integrity(credit)
        assert WalletService.verify_integrity(debit)

    @pytest.mark.asyncio
    async def test_overdraft_rejected_without_change(self, wallet, test_db, make_user):
        created = await make_user(balance=100)
        user = await test_db.get(User, created.id)

        with pytest.raises(InsufficientBalanceError) as exc_info:
            wallet.post_entry(user, -101, TransactionType.ENTRY_FEE)

        assert exc_info.value.details == {"balance": 100, "required": 101}
        assert user.wallet_balance == 100

    @pytest.mark.asyncio
    async def test_zero_amount_rejected(self, wallet, test_db, make_user):
        created = await make_user(balance=100)
        user = await test_db.get(User, created.id)

        with pytest.raises(ValueError):
            wallet.post_entry(user, 0, TransactionType.REWARD)

    def test_tampered_entry_fails_verification(self):
        tx = WalletTransaction(
            user_id="user-1",
            tx_type=TransactionType.REWARD.value,
            amount=500,
            balance_before=0,
            balance_after=500,
        )
        tx.integrity_hash = WalletService.compute_integrity_hash(
            "user-1", TransactionType.REWARD, 500, 0, 500
        )
        assert WalletService.verify_integrity(tx)

        tx.balance_after = 5000
        assert not WalletService.verify_integrity(tx)


class TestNormalizeUsername:
    """In-tournament username rules."""

    @pytest.mark.parametrize("raw", [None, "", "   ", "<script>x</script>"])
    def test_empty_rejected(self, wallet, raw):
        with pytest.raises(ValidationError) as exc_info:
            wallet.normalize_username(raw)
        assert exc_info.value.code == ErrorCode.INVALID_USERNAME.value
        assert exc_info.value.message == "Please enter your in-game username"

    @pytest.mark.parametrize("raw", ["ab", "x" * 21])
    def test_length_bounds(self, wallet, raw):
        with pytest.raises(ValidationError, match="between 3 and 20 characters"):
            wallet.normalize_username(raw)

    def test_markup_and_whitespace_stripped(self, wallet):
        assert wallet.normalize_username("  <b>Ace</b>Sniper ") == "AceSniper"


class TestJoinTournament:
    """Joining debits the fee and takes a seat atomically."""

    @pytest.mark.asyncio
    async def test_join_debits_fee_and_seats_user(
        self, wallet, test_db, make_user, make_tournament, fetch, session_factory
    ):
        user = await make_user(balance=500)
        tournament_id = await make_tournament(entry_fee=200, max_participants=4)

        participant = await wallet.join_tournament(user.id, tournament_id, "ShadowX")
        await test_db.commit()

        assert participant.username == "ShadowX"
        assert participant.username_key == "shadowx"

        stored_user = await fetch(User, user.id)
        assert stored_user.wallet_balance == 300
        assert stored_user.joined_tournament_ids == [tournament_id]

        tournament = await fetch(Tournament, tournament_id)
        assert tournament.participant_count == 1
        assert [p.user_id for p in tournament.participants] == [user.id]

        async with session_factory() as session:
            ledger = await WalletService(session).get_transactions(user.id)
        assert len(ledger) == 1
        assert ledger[0].tx_type == TransactionType.ENTRY_FEE.value
        assert ledger[0].amount == -200
        assert ledger[0].reference_id == tournament_id

    @pytest.mark.asyncio
    async def test_free_tournament_writes_no_ledger_row(
        self, wallet, test_db, make_user, make_tournament, count_rows
    ):
        user = await make_user(balance=0)
        tournament_id = await make_tournament(entry_fee=0)

        await wallet.join_tournament(user.id, tournament_id, "Freebie")
        await test_db.commit()

        assert await count_rows(WalletTransaction) == 0
        assert await count_rows(Participant, Participant.user_id == user.id) == 1

    @pytest.mark.asyncio
    async def test_capacity_enforced_after_n_joins(
        self, wallet, test_db, make_user, make_tournament, fetch, count_rows
    ):
        capacity = 3
        tournament_id = await make_tournament(entry_fee=50, max_participants=capacity)

        for i in range(capacity):
            user = await make_user(balance=100)
            await wallet.join_tournament(user.id, tournament_id, f"Player{i}")
            await test_db.commit()

        late = await make_user(balance=100)
        with pytest.raises(PreconditionError) as exc_info:
            await wallet.join_tournament(late.id, tournament_id, "Latecomer")
        await test_db.rollback()

        assert exc_info.value.code == ErrorCode.TOURNAMENT_FULL.value
        assert exc_info.value.message == "Tournament is full"
        assert (await fetch(User, late.id)).wallet_balance == 100
        assert await count_rows(WalletTransaction, WalletTransaction.user_id == late.id) == 0
        assert (await fetch(Tournament, tournament_id)).participant_count == capacity

    @pytest.mark.asyncio
    async def test_username_unique_case_insensitive_per_tournament(
        self, wallet, test_db, make_user, make_tournament
    ):
        first = await make_user(balance=1000)
        second = await make_user(balance=1000)
        tournament_id = await make_tournament()

        await wallet.join_tournament(first.id, tournament_id, "Shadow")
        await test_db.commit()

        with pytest.raises(PreconditionError) as exc_info:
            await wallet.join_tournament(second.id, tournament_id, "sHaDoW")
        await test_db.rollback()

        assert exc_info.value.code == ErrorCode.USERNAME_TAKEN.value

    @pytest.mark.asyncio
    async def test_same_username_in_two_tournaments(
        self, wallet, test_db, make_user, make_tournament, fetch
    ):
        user = await make_user(balance=1000)
        first_id = await make_tournament(name="Morning Cup")
        second_id = await make_tournament(name="Evening Cup")

        await wallet.join_tournament(user.id, first_id, "Shadow")
        await test_db.commit()
        await wallet.join_tournament(user.id, second_id, "shadow")
        await test_db.commit()

        stored = await fetch(User, user.id)
        assert stored.wallet_balance == 800
        assert stored.joined_tournament_ids == [first_id, second_id]

    @pytest.mark.asyncio
    async def test_last_seat_then_full(self, wallet, test_db, make_user, make_tournament, fetch):
        """Balance 500, fee 200, one seat: the second user is turned away."""
        first = await make_user(balance=500)
        second = await make_user(balance=500)
        tournament_id = await make_tournament(entry_fee=200, max_participants=1)

        await wallet.join_tournament(first.id, tournament_id, "FirstIn")
        await test_db.commit()

        assert (await fetch(User, first.id)).wallet_balance == 300
        assert len((await fetch(Tournament, tournament_id)).participants) == 1

        with pytest.raises(PreconditionError, match="Tournament is full"):
            await wallet.join_tournament(second.id, tournament_id, "SecondIn")
        await test_db.rollback()

        assert (await fetch(User, second.id)).wallet_balance == 500

    @pytest.mark.asyncio
    async def test_already_joined_rejected(self, wallet, test_db, make_user, make_tournament):
        user = await make_user(balance=1000)
        tournament_id = await make_tournament()

        await wallet.join_tournament(user.id, tournament_id, "Again")
        await test_db.commit()

        with pytest.raises(PreconditionError) as exc_info:
            await wallet.join_tournament(user.id, tournament_id, "AgainTwo")
        assert exc_info.value.code == ErrorCode.ALREADY_JOINED.value

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status",
        [
            TournamentStatus.PENDING,
            TournamentStatus.LIVE,
            TournamentStatus.COMPLETED,
            TournamentStatus.REJECTED,
        ],
    )
    async def test_only_upcoming_tournaments_accept_joins(
        self, wallet, make_user, make_tournament, status
    ):
        user = await make_user(balance=1000)
        tournament_id = await make_tournament(
            status=status, status_updated_at=utcnow() - timedelta(minutes=1)
        )

        with pytest.raises(PreconditionError) as exc_info:
            await wallet.join_tournament(user.id, tournament_id, "TooLate")
        assert exc_info.value.code == ErrorCode.TOURNAMENT_NOT_OPEN.value

    @pytest.mark.asyncio
    async def test_insufficient_balance_leaves_everything_unchanged(
        self, wallet, test_db, make_user, make_tournament, fetch, count_rows
    ):
        user = await make_user(balance=150)
        tournament_id = await make_tournament(entry_fee=200)

        with pytest.raises(InsufficientBalanceError) as exc_info:
            await wallet.join_tournament(user.id, tournament_id, "Broke")
        await test_db.rollback()

        assert exc_info.value.kind is ErrorKind.PRECONDITION
        assert (await fetch(User, user.id)).wallet_balance == 150
        assert (await fetch(Tournament, tournament_id)).participant_count == 0
        assert await count_rows(Participant) == 0

    @pytest.mark.asyncio
    async def test_invalid_username_rejected_before_any_read(self, wallet):
        with pytest.raises(ValidationError):
            await wallet.join_tournament("no-such-user", "no-such-tournament", "x")


class TestJoinConcurrency:
    """A join racing another join for the last seat."""

    @pytest.mark.asyncio
    async def test_rival_takes_last_seat_during_join(
        self, wallet, test_db, make_user, make_tournament, session_factory, settings, fetch
    ):
        user = await make_user(balance=500)
        rival = await make_user(balance=500)
        tournament_id = await make_tournament(entry_fee=200, max_participants=1)

        real_flush = test_db.flush
        flushes = 0

        async def racing_flush(*args, **kwargs):
            nonlocal flushes
            flushes += 1
            if flushes == 1:
                async with session_factory() as other:
                    await WalletService(other, settings).join_tournament(
                        rival.id, tournament_id, "Rival"
                    )
                    await other.commit()
            return await real_flush(*args, **kwargs)

        with patch.object(test_db, "flush", new=racing_flush):
            with pytest.raises(PreconditionError) as exc_info:
                await wallet.join_tournament(user.id, tournament_id, "Loser")
        await test_db.rollback()

        assert exc_info.value.code == ErrorCode.TOURNAMENT_FULL.value
        assert (await fetch(User, user.id)).wallet_balance == 500
        assert (await fetch(User, rival.id)).wallet_balance == 300

        tournament = await fetch(Tournament, tournament_id)
        assert tournament.participant_count == 1
        assert [p.user_id for p in tournament.participants] == [rival.id]

    @pytest.mark.asyncio
    async def test_persistent_conflict_becomes_conflict_error(
        self, wallet, test_db, make_user, make_tournament, settings
    ):
        user = await make_user(balance=500)
        tournament_id = await make_tournament(entry_fee=100)

        async def always_stale(*args, **kwargs):
            raise StaleDataError("version mismatch")

        with patch.object(test_db, "flush", new=always_stale):
            with pytest.raises(ConflictError) as exc_info:
                await wallet.join_tournament(user.id, tournament_id, "Unlucky")

        assert exc_info.value.kind is ErrorKind.CONFLICT
        assert exc_info.value.details == {
            "operation": "join_tournament",
            "attempts": settings.ledger_max_retries,
        }
