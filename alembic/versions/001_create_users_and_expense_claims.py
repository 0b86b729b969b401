"""Create users and expense_claims tables.

Revision ID: 001
Revises: None
Create Date: 2026-10-16
"""
from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

CLAIM_CATEGORIES = ("Travel", "Stationery", "Registration Fees", "Academic Events", "Other")
CLAIM_STATUSES = (
    "draft",
    "submitted",
    "verified",
    "pending_payment",
    "referred_back",
    "rejected",
    "disbursed",
)


def upgrade() -> None:
    # ── users ────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.UUID(), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("picture", sa.String(1024), nullable=True),
        sa.Column(
            "role",
            sa.Enum("Faculty", "Accounts", name="userrole"),
            nullable=False,
            server_default="Faculty",
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    # ── expense_claims ───────────────────────────────────────
    op.create_table(
        "expense_claims",
        sa.Column("id", sa.UUID(), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column(
            "owner_id",
            sa.UUID(),
            sa.ForeignKey("users.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("category", sa.Enum(*CLAIM_CATEGORIES, name="claimcategory"), nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("date_incurred", sa.Date(), nullable=False),
        sa.Column(
            "status",
            sa.Enum(*CLAIM_STATUSES, name="claimstatus"),
            nullable=False,
            server_default="submitted",
        ),
        sa.Column("documents", postgresql.JSON(), nullable=False, server_default=sa.text("'[]'::json")),
        sa.Column("audit_trail", postgresql.JSON(), nullable=False, server_default=sa.text("'[]'::json")),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("amount > 0", name="ck_expense_claims_amount_positive"),
    )
    op.create_index("ix_expense_claims_owner_id", "expense_claims", ["owner_id"])
    op.create_index("ix_expense_claims_status", "expense_claims", ["status"])
    op.create_index("ix_expense_claims_created_at", "expense_claims", ["created_at"])


def downgrade() -> None:
    op.drop_index("ix_expense_claims_created_at", table_name="expense_claims")
    op.drop_index("ix_expense_claims_status", table_name="expense_claims")
    op.drop_index("ix_expense_claims_owner_id", table_name="expense_claims")
    op.drop_table("expense_claims")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")

    sa.Enum(name="claimstatus").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="claimcategory").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="userrole").drop(op.get_bind(), checkfirst=True)
