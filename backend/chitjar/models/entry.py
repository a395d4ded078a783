from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from chitjar.db.base import Base


class MonthlyEntry(Base):
    __tablename__ = "monthly_entries"
    __table_args__ = (
        UniqueConstraint("fund_id", "month_key", name="uq_monthly_entries_fund_month"),
        CheckConstraint("dividend_amount >= 0", name="ck_monthly_entries_dividend_non_negative"),
        CheckConstraint("payout_amount >= 0", name="ck_monthly_entries_payout_non_negative"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    fund_id: Mapped[int] = mapped_column(
        ForeignKey("funds.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    month_key: Mapped[str] = mapped_column(String(7), nullable=False, index=True)
    dividend_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0, nullable=False)
    # Prize received in the month the participant won the auction.
    payout_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0, nullable=False)
    is_paid: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    fund: Mapped["Fund"] = relationship("Fund", back_populates="entries")
