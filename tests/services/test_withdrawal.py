"""Tests for WithdrawalService.

Requests never touch the balance; approval debits it once, floored at
the current balance.
"""

import pytest

from arena.models import (
    AuditLog,
    RequestStatus,
    TransactionType,
    User,
    WalletTransaction,
    WithdrawalRequest,
)
from arena.services.reward import RewardService
from arena.services.wallet import WalletService
from arena.services.withdrawal import WithdrawalService
from arena.utils.clock import as_utc, utcnow
from arena.utils.errors import (
    ErrorCode,
    InvalidAmountError,
    MissingFieldError,
    NotFoundError,
    PreconditionError,
    RequestAlreadyProcessedError,
    ValidationError,
)

PAYOUT_PROOF = "https://res.cloudinary.com/demo/image/upload/v1/payout.png"

ACCOUNT = {
    "account_name": "Ali Raza",
    "account_number": "PK36SCBL0000001123456702",
    "bank_name": "Meezan Bank",
}


@pytest.fixture
def withdrawals(test_db, settings) -> WithdrawalService:
    return WithdrawalService(test_db, settings)


@pytest.fixture
def admin_id() -> str:
    return "admin-uid-0001"


class TestRequestWithdrawal:
    """Request-time validation."""

    @pytest.mark.asyncio
    async def test_pending_request_does_not_touch_balance(
        self, withdrawals, test_db, make_user, fetch, count_rows
    ):
        user = await make_user(balance=1000)

        request = await withdrawals.request_withdrawal(user.id, 300, **ACCOUNT)
        await test_db.commit()

        assert request.status == RequestStatus.PENDING.value
        assert request.user_email == user.email
        assert request.debited_amount is None
        assert (await fetch(User, user.id)).wallet_balance == 1000
        assert await count_rows(WalletTransaction) == 0

    @pytest.mark.asyncio
    async def test_below_minimum_rejected(self, withdrawals, make_user):
        user = await make_user(balance=1000)

        with pytest.raises(InvalidAmountError, match="Minimum withdrawal amount is 300"):
            await withdrawals.request_withdrawal(user.id, 299, **ACCOUNT)

    @pytest.mark.asyncio
    async def test_above_balance_rejected(self, withdrawals, make_user):
        user = await make_user(balance=400)

        with pytest.raises(PreconditionError) as exc_info:
            await withdrawals.request_withdrawal(user.id, 500, **ACCOUNT)

        assert exc_info.value.code == ErrorCode.INSUFFICIENT_BALANCE.value
        assert exc_info.value.message == "Withdrawal amount cannot exceed your balance"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field", ["account_name", "account_number", "bank_name"])
    async def test_missing_account_detail_rejected(self, withdrawals, make_user, field):
        user = await make_user(balance=1000)
        account = {**ACCOUNT, field: "  <i></i> "}

        with pytest.raises(MissingFieldError, match="Please fill in all account details"):
            await withdrawals.request_withdrawal(user.id, 300, **account)

    @pytest.mark.asyncio
    async def test_account_details_sanitized(self, withdrawals, test_db, make_user):
        user = await make_user(balance=1000)

        request = await withdrawals.request_withdrawal(
            user.id, 300, **{**ACCOUNT, "bank_name": " <b>HBL</b> "}
        )

        assert request.bank_name == "HBL"


class TestApproveWithdrawal:
    """Approval debits the wallet in the same transaction."""

    @pytest.mark.asyncio
    async def test_approve_debits_balance(
        self, withdrawals, test_db, make_user, admin_id, fetch, session_factory
    ):
        """Balance 1000, request 300: balance 700, request approved and dated."""
        user = await make_user(balance=1000)
        request = await withdrawals.request_withdrawal(user.id, 300, **ACCOUNT)
        await test_db.commit()

        approved = await withdrawals.approve_withdrawal(admin_id, request.id, notes="Paid")
        await test_db.commit()

        assert (await fetch(User, user.id)).wallet_balance == 700

        stored = await fetch(WithdrawalRequest, request.id)
        assert stored.status == RequestStatus.APPROVED.value
        assert stored.processed_at is not None
        assert as_utc(stored.processed_at) <= utcnow()
        assert stored.processed_by == admin_id
        assert stored.admin_notes == "Paid"
        assert stored.debited_amount == 300
        assert approved.debited_amount == 300

        async with session_factory() as session:
            ledger = await WalletService(session).get_transactions(user.id)
        assert [(tx.tx_type, tx.amount) for tx in ledger] == [
            (TransactionType.WITHDRAWAL.value, -300)
        ]

    @pytest.mark.asyncio
    async def test_debit_floored_at_current_balance(
        self, withdrawals, test_db, make_user, admin_id, fetch, session_factory, settings
    ):
        user = await make_user(balance=500)
        request = await withdrawals.request_withdrawal(user.id, 500, **ACCOUNT)
        await test_db.commit()

        # Balance shrinks between request and approval
        async with session_factory() as session:
            stored_user = await session.get(User, user.id)
            WalletService(session, settings).post_entry(
                stored_user, -350, TransactionType.ENTRY_FEE
            )
            await session.commit()

        approved = await withdrawals.approve_withdrawal(admin_id, request.id)
        await test_db.commit()

        assert approved.debited_amount == 150
        assert approved.amount == 500
        assert (await fetch(User, user.id)).wallet_balance == 0

    @pytest.mark.asyncio
    async def test_empty_wallet_approves_without_ledger_row(
        self, withdrawals, test_db, make_user, admin_id, session_factory, settings, count_rows
    ):
        user = await make_user(balance=300)
        request = await withdrawals.request_withdrawal(user.id, 300, **ACCOUNT)
        await test_db.commit()

        async with session_factory() as session:
            stored_user = await session.get(User, user.id)
            WalletService(session, settings).post_entry(
                stored_user, -300, TransactionType.ENTRY_FEE
            )
            await session.commit()

        approved = await withdrawals.approve_withdrawal(admin_id, request.id)
        await test_db.commit()

        assert approved.debited_amount == 0
        assert approved.status == RequestStatus.APPROVED.value
        assert (
            await count_rows(
                WalletTransaction,
                WalletTransaction.tx_type == TransactionType.WITHDRAWAL.value,
            )
            == 0
        )

    @pytest.mark.asyncio
    async def test_approval_is_audited(
        self, withdrawals, test_db, make_user, admin_id, count_rows
    ):
        user = await make_user(balance=1000)
        request = await withdrawals.request_withdrawal(user.id, 400, **ACCOUNT)
        await test_db.commit()

        await withdrawals.approve_withdrawal(admin_id, request.id)
        await test_db.commit()

        assert (
            await count_rows(
                AuditLog,
                AuditLog.action == "withdrawal.approve",
                AuditLog.actor == admin_id,
                AuditLog.target_id == request.id,
            )
            == 1
        )

    @pytest.mark.asyncio
    async def test_second_decision_rejected(
        self, withdrawals, test_db, make_user, admin_id, fetch
    ):
        user = await make_user(balance=1000)
        request = await withdrawals.request_withdrawal(user.id, 300, **ACCOUNT)
        await test_db.commit()
        await withdrawals.approve_withdrawal(admin_id, request.id)
        await test_db.commit()

        with pytest.raises(RequestAlreadyProcessedError) as exc_info:
            await withdrawals.approve_withdrawal(admin_id, request.id)
        assert exc_info.value.code == ErrorCode.REQUEST_ALREADY_PROCESSED.value

        with pytest.raises(RequestAlreadyProcessedError):
            await withdrawals.reject_withdrawal(admin_id, request.id)
        await test_db.rollback()

        assert (await fetch(User, user.id)).wallet_balance == 700

    @pytest.mark.asyncio
    async def test_proof_url_kept(self, withdrawals, test_db, make_user, admin_id):
        user = await make_user(balance=1000)
        request = await withdrawals.request_withdrawal(user.id, 300, **ACCOUNT)
        await test_db.commit()

        approved = await withdrawals.approve_withdrawal(
            admin_id, request.id, proof_image_url=PAYOUT_PROOF
        )
        await test_db.commit()

        assert approved.proof_image_url == PAYOUT_PROOF

    @pytest.mark.asyncio
    @pytest.mark.parametrize("decision", ["approve_withdrawal", "reject_withdrawal"])
    @pytest.mark.parametrize(
        "proof", ["http://insecure.example/payout.png", "<script>x</script>", "javascript:alert(1)"]
    )
    async def test_unusable_proof_url_rejected(
        self, withdrawals, test_db, make_user, admin_id, fetch, decision, proof
    ):
        user = await make_user(balance=1000)
        request = await withdrawals.request_withdrawal(user.id, 300, **ACCOUNT)
        await test_db.commit()

        with pytest.raises(ValidationError) as exc_info:
            await getattr(withdrawals, decision)(admin_id, request.id, proof_image_url=proof)
        await test_db.rollback()

        assert exc_info.value.code == ErrorCode.INVALID_IMAGE.value
        stored = await fetch(WithdrawalRequest, request.id)
        assert stored.status == RequestStatus.PENDING.value
        assert (await fetch(User, user.id)).wallet_balance == 1000

    @pytest.mark.asyncio
    async def test_unknown_request(self, withdrawals, admin_id):
        with pytest.raises(NotFoundError):
            await withdrawals.approve_withdrawal(admin_id, "missing-request")


class TestRejectWithdrawal:
    @pytest.mark.asyncio
    async def test_reject_keeps_balance(
        self, withdrawals, test_db, make_user, admin_id, fetch
    ):
        user = await make_user(balance=1000)
        request = await withdrawals.request_withdrawal(user.id, 500, **ACCOUNT)
        await test_db.commit()

        rejected = await withdrawals.reject_withdrawal(
            admin_id, request.id, notes="Account name mismatch"
        )
        await test_db.commit()

        assert rejected.status == RequestStatus.REJECTED.value
        assert rejected.admin_notes == "Account name mismatch"
        assert rejected.processed_at is not None
        assert rejected.debited_amount is None
        assert (await fetch(User, user.id)).wallet_balance == 1000


class TestBalanceNeverNegative:
    """Mixed ledger operations keep every balance at or above zero."""

    @pytest.mark.asyncio
    async def test_balance_stays_non_negative(
        self, test_db, settings, make_user, make_tournament, admin_id, fetch, session_factory
    ):
        user = await make_user(balance=0)
        withdrawals = WithdrawalService(test_db, settings)
        rewards = RewardService(test_db, settings)
        wallet = WalletService(test_db, settings)

        async def balance() -> int:
            return (await fetch(User, user.id)).wallet_balance

        await rewards.grant_reward(admin_id, user.id, 600)
        await test_db.commit()
        assert await balance() == 600

        first = await withdrawals.request_withdrawal(user.id, 500, **ACCOUNT)
        second = await withdrawals.request_withdrawal(user.id, 400, **ACCOUNT)
        await test_db.commit()

        tournament_id = await make_tournament(entry_fee=150)
        await wallet.join_tournament(user.id, tournament_id, "Spender")
        await test_db.commit()
        assert await balance() == 450

        await withdrawals.approve_withdrawal(admin_id, first.id)
        await test_db.commit()
        assert await balance() == 0

        await withdrawals.approve_withdrawal(admin_id, second.id)
        await test_db.commit()
        assert await balance() == 0

        async with session_factory() as session:
            ledger = await WalletService(session).get_transactions(user.id, limit=100)
        assert all(tx.balance_after >= 0 for tx in ledger)
        assert all(WalletService.verify_integrity(tx) for tx in ledger)


class TestListWithdrawals:
    @pytest.mark.asyncio
    async def test_lists_filter_and_scope(self, withdrawals, test_db, make_user, admin_id):
        alice = await make_user(balance=5000)
        bob = await make_user(balance=5000)
        first = await withdrawals.request_withdrawal(alice.id, 300, **ACCOUNT)
        await withdrawals.request_withdrawal(alice.id, 400, **ACCOUNT)
        await withdrawals.request_withdrawal(bob.id, 500, **ACCOUNT)
        await test_db.commit()
        await withdrawals.approve_withdrawal(admin_id, first.id)
        await test_db.commit()

        pending = await withdrawals.list_requests(RequestStatus.PENDING)
        mine = await withdrawals.list_for_user(alice.id)

        assert sorted(r.amount for r in pending) == [400, 500]
        assert sorted(r.amount for r in mine) == [300, 400]
        assert len(await withdrawals.list_requests()) == 3
