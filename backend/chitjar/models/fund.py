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
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from chitjar.db.base import Base


class Fund(Base):
    __tablename__ = "funds"
    __table_args__ = (
        CheckConstraint("chit_value > 0", name="ck_funds_chit_value_positive"),
        CheckConstraint("installment_amount > 0", name="ck_funds_installment_positive"),
        CheckConstraint("total_months > 0", name="ck_funds_total_months_positive"),
        CheckConstraint("start_month < end_month", name="ck_funds_valid_month_range"),
        CheckConstraint(
            "early_exit_month IS NULL OR "
            "(early_exit_month >= start_month AND early_exit_month <= end_month)",
            name="ck_funds_valid_early_exit",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    chit_value: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    installment_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_months: Mapped[int] = mapped_column(Integer, nullable=False)
    start_month: Mapped[str] = mapped_column(String(7), nullable=False, index=True)
    end_month: Mapped[str] = mapped_column(String(7), nullable=False, index=True)
    early_exit_month: Mapped[str | None] = mapped_column(String(7), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Advisory staleness marker; the version lets readers clear it without
    # discarding a concurrent invalidation.
    needs_recalculation: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    recalculation_version: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

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

    owner: Mapped["User"] = relationship("User", back_populates="funds")
    entries: Mapped[list["MonthlyEntry"]] = relationship(
        "MonthlyEntry",
        back_populates="fund",
        cascade="all, delete-orphan",
    )
    bids: Mapped[list["Bid"]] = relationship(
        "Bid",
        back_populates="fund",
        cascade="all, delete-orphan",
    )

    @property
    def effective_end_month(self) -> str:
        return self.early_exit_month or self.end_month
