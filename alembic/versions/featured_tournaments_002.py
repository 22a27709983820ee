"""Featured tournaments shortlist for the home page.

Revision ID: featured_tournaments_002
Revises: initial_arena_001
Create Date: 2026-10-19

This migration adds:
- featured_tournaments (one row per featured tournament, with display_order)
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "featured_tournaments_002"
down_revision = "initial_arena_001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "featured_tournaments",
        sa.Column(
            "tournament_id",
            sa.String(36),
            sa.ForeignKey("tournaments.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("display_order", sa.Integer(), nullable=False, index=True),
        sa.Column("headline", sa.String(200), nullable=True),
        sa.Column("added_by", sa.String(128), nullable=False),
        sa.Column("added_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
    )


def downgrade() -> None:
    op.drop_table("featured_tournaments")
