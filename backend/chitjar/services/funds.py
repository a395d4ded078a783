from __future__ import annotations

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from chitjar.models.bid import Bid
from chitjar.models.entry import MonthlyEntry
from chitjar.models.fund import Fund
from chitjar.services.month_series import MonthKeyError, months_inclusive, parse_month_key


def get_owned_fund(db: Session, user_id: int, fund_id: int) -> Fund | None:
    return db.scalar(select(Fund).where(Fund.id == fund_id, Fund.user_id == user_id))


def get_fund_or_404(db: Session, user_id: int, fund_id: int) -> Fund:
    fund = db.get(Fund, fund_id)
    if fund is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Fund not found.")
    if fund.user_id != user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied: you do not own this fund.",
        )
    return fund


def list_fund_entries(db: Session, fund_id: int) -> list[MonthlyEntry]:
    return list(
        db.scalars(
            select(MonthlyEntry)
            .where(MonthlyEntry.fund_id == fund_id)
            .order_by(MonthlyEntry.month_key.asc(), MonthlyEntry.id.asc())
        ).all()
    )


def list_fund_bids(db: Session, fund_id: int) -> list[Bid]:
    return list(
        db.scalars(
            select(Bid)
            .where(Bid.fund_id == fund_id)
            .order_by(Bid.month_key.desc(), Bid.id.desc())
        ).all()
    )


def validate_fund_schedule(
    *,
    start_month: str,
    end_month: str,
    total_months: int,
    early_exit_month: str | None = None,
) -> None:
    try:
        parse_month_key(start_month)
        parse_month_key(end_month)
        if early_exit_month is not None:
            parse_month_key(early_exit_month)
    except MonthKeyError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    if start_month >= end_month:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="End month must be after start month.",
        )
    if months_inclusive(start_month, end_month) != total_months:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Total months must match the span between start and end months.",
        )
    if early_exit_month is not None and not (start_month <= early_exit_month <= end_month):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Early exit month must fall between start and end months.",
        )


def assert_month_in_fund_range(fund: Fund, month_key: str) -> None:
    try:
        parse_month_key(month_key)
    except MonthKeyError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    if month_key < fund.start_month:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Month key ({month_key}) cannot be before fund start month ({fund.start_month}).",
        )
    if month_key > fund.effective_end_month:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Month key ({month_key}) cannot be after fund end month ({fund.effective_end_month}).",
        )
