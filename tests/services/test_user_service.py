"""Tests for account management, payment settings and the audit trail."""

import pytest

from arena.models import AuditLog, User, UserRole
from arena.models.settings import PAYMENT_SETTINGS_ID, PaymentAccountSettings
from arena.services.audit import AuditService
from arena.services.payment_settings import PaymentSettingsService
from arena.services.user import UserService
from arena.services.wallet import WalletService
from arena.services.withdrawal import WithdrawalService
from arena.utils.errors import (
    ErrorCode,
    MissingFieldError,
    NotFoundError,
    PreconditionError,
    ValidationError,
)
from arena.utils.security import Identity

ADMIN_ID = "admin-uid-0001"


@pytest.fixture
def users(test_db, settings) -> UserService:
    return UserService(test_db, settings)


class TestSyncIdentity:
    @pytest.mark.asyncio
    async def test_first_sign_in_creates_account(self, users, test_db, fetch):
        identity = Identity(uid="uid-new-player", email="new@example.com", email_verified=True)

        user = await users.sync_identity(identity)
        await test_db.commit()

        stored = await fetch(User, "uid-new-player")
        assert stored.email == "new@example.com"
        assert stored.email_verified is True
        assert stored.role == UserRole.USER.value
        assert stored.wallet_balance == 0
        assert stored.joined_tournament_ids == []
        assert stored.last_login_at is not None
        assert user.id == stored.id

    @pytest.mark.asyncio
    async def test_later_sign_in_refreshes_but_keeps_wallet(
        self, users, test_db, make_user, fetch
    ):
        await make_user(
            "uid-returning",
            email="old@example.com",
            balance=750,
            role=UserRole.ADMIN,
            email_verified=False,
        )

        await users.sync_identity(
            Identity(uid="uid-returning", email="fresh@example.com", email_verified=True)
        )
        await test_db.commit()

        stored = await fetch(User, "uid-returning")
        assert stored.email == "fresh@example.com"
        assert stored.email_verified is True
        assert stored.wallet_balance == 750
        assert stored.role == UserRole.ADMIN.value


class TestSetRole:
    @pytest.mark.asyncio
    async def test_promote_to_admin(self, users, test_db, make_user, fetch, count_rows):
        user = await make_user()

        await users.set_role(ADMIN_ID, user.id, "admin")
        await test_db.commit()

        assert (await fetch(User, user.id)).is_admin
        assert await count_rows(AuditLog, AuditLog.action == "user.set_role") == 1

    @pytest.mark.asyncio
    async def test_unknown_role(self, users, make_user):
        user = await make_user()

        with pytest.raises(ValidationError) as exc_info:
            await users.set_role(ADMIN_ID, user.id, "superuser")
        assert exc_info.value.code == ErrorCode.INVALID_ROLE.value

    @pytest.mark.asyncio
    async def test_unknown_user(self, users):
        with pytest.raises(NotFoundError):
            await users.set_role(ADMIN_ID, "ghost", "admin")


class TestDeleteUser:
    @pytest.mark.asyncio
    async def test_cannot_delete_self(self, users, make_user):
        await make_user(ADMIN_ID, role=UserRole.ADMIN)

        with pytest.raises(PreconditionError) as exc_info:
            await users.delete_user(ADMIN_ID, ADMIN_ID)
        assert exc_info.value.code == ErrorCode.CANNOT_DELETE_SELF.value

    @pytest.mark.asyncio
    async def test_related_rows_left_in_place_and_counted(
        self, users, test_db, settings, make_user, make_tournament, fetch, session_factory
    ):
        user = await make_user(balance=2000)
        tournament_id = await make_tournament(entry_fee=100)
        await WalletService(test_db, settings).join_tournament(user.id, tournament_id, "Leaver")
        await WithdrawalService(test_db, settings).request_withdrawal(
            user.id,
            500,
            account_name="Leaver",
            account_number="0300-1234567",
            bank_name="Easy Pasa",
        )
        await test_db.commit()

        orphans = await users.delete_user(ADMIN_ID, user.id)
        await test_db.commit()

        assert orphans == {"participations": 1, "pending_withdrawals": 1, "pending_recharges": 0}
        assert await fetch(User, user.id) is None

        async with session_factory() as session:
            entries = await AuditService(session).list_entries(
                action="user.delete", target_id=user.id
            )
        assert len(entries) == 1
        assert entries[0].context["orphaned"] == orphans
        assert entries[0].context["wallet_balance"] == 1900

    @pytest.mark.asyncio
    async def test_unknown_user(self, users):
        with pytest.raises(NotFoundError):
            await users.delete_user(ADMIN_ID, "ghost")


class TestPaymentSettings:
    @pytest.mark.asyncio
    async def test_requires_at_least_one_detail(self, test_db):
        service = PaymentSettingsService(test_db)

        with pytest.raises(MissingFieldError):
            await service.update(ADMIN_ID, {"bank_account_name": "  ", "easy_pasa_info": None})

    @pytest.mark.asyncio
    async def test_update_sanitizes_and_audits(self, test_db, fetch, count_rows):
        service = PaymentSettingsService(test_db)

        await service.update(
            ADMIN_ID,
            {
                "bank_account_name": " <b>Arena Esports</b> ",
                "bank_account_number": "PK36SCBL0000001123456702",
            },
        )
        await test_db.commit()
        await service.update(ADMIN_ID, {"easy_pasa_owner_name": "Arena Esports"})
        await test_db.commit()

        stored = await fetch(PaymentAccountSettings, PAYMENT_SETTINGS_ID)
        assert stored.easy_pasa_owner_name == "Arena Esports"
        # Each update replaces the full set of details
        assert stored.bank_account_name is None
        assert stored.updated_by == ADMIN_ID
        assert await count_rows(PaymentAccountSettings) == 1
        assert await count_rows(AuditLog, AuditLog.action == "settings.payment_accounts") == 2

    @pytest.mark.asyncio
    async def test_first_update_cleans_markup(self, test_db):
        service = PaymentSettingsService(test_db)

        saved = await service.update(ADMIN_ID, {"bank_account_name": " <b>Arena Esports</b> "})

        assert saved.bank_account_name == "Arena Esports"
        assert saved.bank_account_number is None


class TestAuditEntries:
    @pytest.mark.asyncio
    async def test_entries_only_persist_with_the_transaction(self, test_db, count_rows):
        audit = AuditService(test_db)

        audit.record("reward.grant", ADMIN_ID, target_type="user", target_id="uid-1")
        await test_db.rollback()
        audit.record("reward.grant", ADMIN_ID, target_type="user", target_id="uid-2")
        await test_db.commit()

        entries = await audit.list_entries(action="reward.grant")
        assert [e.target_id for e in entries] == ["uid-2"]
        assert entries[0].context == {}
        assert await count_rows(AuditLog) == 1
