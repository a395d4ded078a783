from __future__ import annotations

from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from chitjar.models.bid import Bid
from chitjar.models.entry import MonthlyEntry
from chitjar.models.fund import Fund
from chitjar.models.user import User
from chitjar.services.month_series import generate_month_series
from chitjar.utils.decimal_math import money

DEMO_USER_EMAIL = "demo@chitjar.app"
DEMO_FUND_NAME = "Neighbourhood Chit 1L"
DEMO_RECORDED_MONTHS = 8
DEMO_WIN_MONTH_INDEX = 5


def _get_or_create_user(db: Session, *, email: str, full_name: str) -> User:
    user = db.scalar(select(User).where(User.email == email))
    if user is not None:
        return user

    user = User(email=email, full_name=full_name, is_active=True)
    db.add(user)
    db.flush()
    return user


def _get_or_create_fund(db: Session, *, owner: User) -> tuple[Fund, bool]:
    fund = db.scalar(select(Fund).where(Fund.user_id == owner.id, Fund.name == DEMO_FUND_NAME))
    if fund is not None:
        return fund, False

    fund = Fund(
        user_id=owner.id,
        name=DEMO_FUND_NAME,
        chit_value=money("100000"),
        installment_amount=money("5000"),
        total_months=20,
        start_month="2025-01",
        end_month="2026-08",
        is_active=True,
        notes="Demo fund seeded at startup.",
    )
    db.add(fund)
    db.flush()
    return fund, True


def _seed_history(db: Session, fund: Fund) -> None:
    months = generate_month_series(fund.start_month, fund.end_month)[:DEMO_RECORDED_MONTHS]
    chit_value = money(fund.chit_value)
    for index, month_key in enumerate(months):
        # Discounts shrink as fewer members are left to bid.
        discount = money(chit_value * (Decimal("0.30") - Decimal("0.02") * index))
        winning_bid = money(chit_value - discount)
        dividend = money(discount / Decimal(fund.total_months))
        payout = winning_bid if index == DEMO_WIN_MONTH_INDEX else money(0)
        db.add(
            MonthlyEntry(
                fund_id=fund.id,
                month_key=month_key,
                dividend_amount=dividend,
                payout_amount=payout,
                is_paid=True,
            )
        )
        db.add(
            Bid(
                fund_id=fund.id,
                month_key=month_key,
                winning_bid=winning_bid,
                discount_amount=discount,
                bidder_name="You" if index == DEMO_WIN_MONTH_INDEX else f"Member {index + 1}",
            )
        )


def seed_demo_data(db: Session) -> None:
    user = _get_or_create_user(db, email=DEMO_USER_EMAIL, full_name="Demo Saver")
    fund, created = _get_or_create_fund(db, owner=user)
    if created:
        _seed_history(db, fund)
    db.commit()
