"""Initial schema: users, tournaments, ledger, funding requests, audit.

Revision ID: initial_arena_001
Revises:
Create Date: 2026-10-18

This migration adds:
- users with wallet balance and version column
- tournaments and tournament_participants
- wallet_transactions and rewards ledgers
- withdrawal_requests and recharge_requests
- audit_logs and payment_account_settings
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "initial_arena_001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    ]


def upgrade() -> None:
    # ===========================================================
    # 1. Users
    # ===========================================================
    op.create_table(
        "users",
        sa.Column("id", sa.String(128), primary_key=True, comment="Identity provider UID"),
        sa.Column("email", sa.String(255), nullable=False, index=True),
        sa.Column("email_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("role", sa.String(20), nullable=False, server_default="user"),
        sa.Column(
            "wallet_balance",
            sa.BigInteger(),
            nullable=False,
            server_default="0",
            comment="Wallet balance in whole currency units",
        ),
        sa.Column("joined_tournament_ids", sa.JSON(), nullable=False),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        *_timestamps(),
        sa.CheckConstraint("wallet_balance >= 0", name="ck_users_wallet_balance_non_negative"),
    )

    # ===========================================================
    # 2. Tournaments and participants
    # ===========================================================
    op.create_table(
        "tournaments",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("game_type", sa.String(50), nullable=False, server_default="PUBG"),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=False, index=True),
        sa.Column("entry_fee", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("prize_pool", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("per_kill_amount", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("max_participants", sa.Integer(), nullable=False),
        sa.Column("participant_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("match_details", sa.Text(), nullable=True),
        sa.Column("rules", sa.Text(), nullable=True),
        sa.Column("map_name", sa.String(100), nullable=True),
        sa.Column("game_version", sa.String(50), nullable=True),
        sa.Column("game_logo_url", sa.String(500), nullable=True),
        sa.Column("is_private", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("status", sa.String(20), nullable=False, server_default="upcoming", index=True),
        sa.Column(
            "status_updated_at",
            sa.DateTime(timezone=True),
            nullable=True,
            comment="Time of the last automatic status transition",
        ),
        sa.Column("result_image_url", sa.String(500), nullable=True),
        sa.Column("result_notes", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(128), nullable=True, index=True),
        sa.Column("creator_email", sa.String(255), nullable=True),
        sa.Column("approved", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        *_timestamps(),
        sa.CheckConstraint("entry_fee >= 0", name="ck_tournaments_entry_fee_non_negative"),
        sa.CheckConstraint(
            "max_participants >= 1", name="ck_tournaments_max_participants_positive"
        ),
        sa.CheckConstraint(
            "participant_count <= max_participants",
            name="ck_tournaments_participant_count_capacity",
        ),
    )

    op.create_table(
        "tournament_participants",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "tournament_id",
            sa.String(36),
            sa.ForeignKey("tournaments.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("user_id", sa.String(128), nullable=False, index=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("username", sa.String(50), nullable=False),
        sa.Column(
            "username_key",
            sa.String(50),
            nullable=False,
            comment="Lower-cased username for case-insensitive uniqueness",
        ),
        sa.Column("joined_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("tournament_id", "user_id", name="uq_participant_tournament_user"),
        sa.UniqueConstraint(
            "tournament_id", "username_key", name="uq_participant_tournament_username"
        ),
    )

    # ===========================================================
    # 3. Ledgers
    # ===========================================================
    op.create_table(
        "wallet_transactions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(128), nullable=False, index=True),
        sa.Column("tx_type", sa.String(20), nullable=False, index=True),
        sa.Column(
            "amount",
            sa.BigInteger(),
            nullable=False,
            comment="Signed change: positive credit, negative debit",
        ),
        sa.Column("balance_before", sa.BigInteger(), nullable=False),
        sa.Column("balance_after", sa.BigInteger(), nullable=False),
        sa.Column("reference_id", sa.String(36), nullable=True, index=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "integrity_hash",
            sa.String(64),
            nullable=False,
            comment="SHA-256 over user, type, amount and balances",
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, index=True),
    )

    op.create_table(
        "rewards",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(128), nullable=False, index=True),
        sa.Column("user_email", sa.String(255), nullable=False),
        sa.Column("amount", sa.BigInteger(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("game_name", sa.String(100), nullable=True),
        sa.Column("position", sa.String(50), nullable=True),
        sa.Column("added_by", sa.String(128), nullable=False),
        sa.Column("previous_balance", sa.BigInteger(), nullable=False),
        sa.Column("new_balance", sa.BigInteger(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, index=True),
    )

    # ===========================================================
    # 4. Funding requests
    # ===========================================================
    op.create_table(
        "withdrawal_requests",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(128), nullable=False, index=True),
        sa.Column("user_email", sa.String(255), nullable=False),
        sa.Column("amount", sa.BigInteger(), nullable=False),
        sa.Column("account_name", sa.String(100), nullable=False),
        sa.Column("account_number", sa.String(100), nullable=False),
        sa.Column("bank_name", sa.String(100), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending", index=True),
        sa.Column("requested_at", sa.DateTime(timezone=True), nullable=False, index=True),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("processed_by", sa.String(128), nullable=True),
        sa.Column("admin_notes", sa.Text(), nullable=True),
        sa.Column("proof_image_url", sa.String(500), nullable=True),
        sa.Column(
            "debited_amount",
            sa.BigInteger(),
            nullable=True,
            comment="Amount actually debited on approval (floored at the balance)",
        ),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.CheckConstraint("amount > 0", name="ck_withdrawal_requests_amount_positive"),
    )

    op.create_table(
        "recharge_requests",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(128), nullable=False, index=True),
        sa.Column("user_email", sa.String(255), nullable=False),
        sa.Column("amount", sa.BigInteger(), nullable=False),
        sa.Column("payment_method", sa.String(30), nullable=False),
        sa.Column(
            "transaction_ref",
            sa.String(100),
            nullable=False,
            comment="Transaction ID reported by the payer",
        ),
        sa.Column("proof_image_url", sa.String(500), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending", index=True),
        sa.Column("requested_at", sa.DateTime(timezone=True), nullable=False, index=True),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("processed_by", sa.String(128), nullable=True),
        sa.Column("admin_notes", sa.Text(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.CheckConstraint("amount > 0", name="ck_recharge_requests_amount_positive"),
    )

    # ===========================================================
    # 5. Audit and settings
    # ===========================================================
    op.create_table(
        "audit_logs",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("action", sa.String(50), nullable=False, index=True),
        sa.Column("actor", sa.String(128), nullable=False, index=True),
        sa.Column("target_type", sa.String(50), nullable=True),
        sa.Column("target_id", sa.String(128), nullable=True, index=True),
        sa.Column("context", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, index=True),
    )

    op.create_table(
        "payment_account_settings",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("bank_account_name", sa.String(100), nullable=True),
        sa.Column("bank_account_number", sa.String(100), nullable=True),
        sa.Column("easy_pasa_owner_name", sa.String(100), nullable=True),
        sa.Column("easy_pasa_info", sa.String(255), nullable=True),
        sa.Column("updated_by", sa.String(128), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("payment_account_settings")
    op.drop_table("audit_logs")
    op.drop_table("recharge_requests")
    op.drop_table("withdrawal_requests")
    op.drop_table("rewards")
    op.drop_table("wallet_transactions")
    op.drop_table("tournament_participants")
    op.drop_table("tournaments")
    op.drop_table("users")
