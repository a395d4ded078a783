"""Initial schema for chit fund tracking.

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18 09:30:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261018_0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "funds",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("chit_value", sa.Numeric(12, 2), nullable=False),
        sa.Column("installment_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("total_months", sa.Integer(), nullable=False),
        sa.Column("start_month", sa.String(length=7), nullable=False),
        sa.Column("end_month", sa.String(length=7), nullable=False),
        sa.Column("early_exit_month", sa.String(length=7), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("needs_recalculation", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("recalculation_version", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("chit_value > 0", name="ck_funds_chit_value_positive"),
        sa.CheckConstraint("installment_amount > 0", name="ck_funds_installment_positive"),
        sa.CheckConstraint("total_months > 0", name="ck_funds_total_months_positive"),
        sa.CheckConstraint("start_month < end_month", name="ck_funds_valid_month_range"),
        sa.CheckConstraint(
            "early_exit_month IS NULL OR "
            "(early_exit_month >= start_month AND early_exit_month <= end_month)",
            name="ck_funds_valid_early_exit",
        ),
    )
    op.create_index("ix_funds_id", "funds", ["id"])
    op.create_index("ix_funds_user_id", "funds", ["user_id"])
    op.create_index("ix_funds_start_month", "funds", ["start_month"])
    op.create_index("ix_funds_end_month", "funds", ["end_month"])

    op.create_table(
        "monthly_entries",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("fund_id", sa.Integer(), sa.ForeignKey("funds.id", ondelete="CASCADE"), nullable=False),
        sa.Column("month_key", sa.String(length=7), nullable=False),
        sa.Column("dividend_amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("payout_amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("is_paid", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("fund_id", "month_key", name="uq_monthly_entries_fund_month"),
        sa.CheckConstraint("dividend_amount >= 0", name="ck_monthly_entries_dividend_non_negative"),
        sa.CheckConstraint("payout_amount >= 0", name="ck_monthly_entries_payout_non_negative"),
    )
    op.create_index("ix_monthly_entries_id", "monthly_entries", ["id"])
    op.create_index("ix_monthly_entries_fund_id", "monthly_entries", ["fund_id"])
    op.create_index("ix_monthly_entries_month_key", "monthly_entries", ["month_key"])

    op.create_table(
        "bids",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("fund_id", sa.Integer(), sa.ForeignKey("funds.id", ondelete="CASCADE"), nullable=False),
        sa.Column("month_key", sa.String(length=7), nullable=False),
        sa.Column("winning_bid", sa.Numeric(12, 2), nullable=False),
        sa.Column("discount_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("bidder_name", sa.String(length=255), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("fund_id", "month_key", name="uq_bids_fund_month"),
        sa.CheckConstraint("winning_bid > 0", name="ck_bids_winning_bid_positive"),
        sa.CheckConstraint("discount_amount >= 0", name="ck_bids_discount_non_negative"),
    )
    op.create_index("ix_bids_id", "bids", ["id"])
    op.create_index("ix_bids_fund_id", "bids", ["fund_id"])
    op.create_index("ix_bids_month_key", "bids", ["month_key"])


def downgrade() -> None:
    op.drop_index("ix_bids_month_key", table_name="bids")
    op.drop_index("ix_bids_fund_id", table_name="bids")
    op.drop_index("ix_bids_id", table_name="bids")
    op.drop_table("bids")
    op.drop_index("ix_monthly_entries_month_key", table_name="monthly_entries")
    op.drop_index("ix_monthly_entries_fund_id", table_name="monthly_entries")
    op.drop_index("ix_monthly_entries_id", table_name="monthly_entries")
    op.drop_table("monthly_entries")
    op.drop_index("ix_funds_end_month", table_name="funds")
    op.drop_index("ix_funds_start_month", table_name="funds")
    op.drop_index("ix_funds_user_id", table_name="funds")
    op.drop_index("ix_funds_id", table_name="funds")
    op.drop_table("funds")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_index("ix_users_id", table_name="users")
    op.drop_table("users")
