import math
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from chitjar.api.deps import get_current_user, get_db
from chitjar.models.entry import MonthlyEntry
from chitjar.models.fund import Fund
from chitjar.models.user import User
from chitjar.schemas.common import MessageResponse, Pagination
from chitjar.schemas.entries import (
    MonthlyEntryCreateRequest,
    MonthlyEntryListResponse,
    MonthlyEntryOut,
    MonthlyEntryUpdateRequest,
)
from chitjar.services.funds import assert_month_in_fund_range, get_fund_or_404
from chitjar.services.recalculation import mark_fund_for_recalculation
from chitjar.utils.decimal_math import money


router = APIRouter(tags=["entries"])


def _get_entry_or_404(db: Session, user_id: int, entry_id: int) -> tuple[MonthlyEntry, Fund]:
    entry = db.get(MonthlyEntry, entry_id)
    if entry is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Monthly entry not found.")
    fund = get_fund_or_404(db, user_id, entry.fund_id)
    return entry, fund


def _check_payout(fund: Fund, payout: Decimal | None) -> None:
    if payout is not None and money(payout) > money(fund.chit_value):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Payout amount cannot exceed the chit value.",
        )


@router.get("/funds/{fund_id}/entries", response_model=MonthlyEntryListResponse)
def list_entries(
    fund_id: int,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=200),
    is_paid: bool | None = Query(default=None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> MonthlyEntryListResponse:
    fund = get_fund_or_404(db, current_user.id, fund_id)
    filters = [MonthlyEntry.fund_id == fund.id]
    if is_paid is not None:
        filters.append(MonthlyEntry.is_paid.is_(is_paid))

    total = int(db.scalar(select(func.count(MonthlyEntry.id)).where(*filters)) or 0)
    entries = list(
        db.scalars(
            select(MonthlyEntry)
            .where(*filters)
            .order_by(MonthlyEntry.month_key.desc(), MonthlyEntry.id.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        ).all()
    )
    return MonthlyEntryListResponse(
        entries=[MonthlyEntryOut.model_validate(entry) for entry in entries],
        pagination=Pagination(page=page, limit=limit, total=total, total_pages=math.ceil(total / limit)),
    )


@router.post(
    "/funds/{fund_id}/entries",
    response_model=MonthlyEntryOut,
    status_code=status.HTTP_201_CREATED,
)
def create_entry(
    fund_id: int,
    payload: MonthlyEntryCreateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> MonthlyEntry:
    fund = get_fund_or_404(db, current_user.id, fund_id)
    assert_month_in_fund_range(fund, payload.month_key)
    _check_payout(fund, payload.payout_amount)

    exists = db.scalar(
        select(MonthlyEntry.id).where(
            MonthlyEntry.fund_id == fund.id,
            MonthlyEntry.month_key == payload.month_key,
        )
    )
    if exists:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Monthly entry for {payload.month_key} already exists for this fund.",
        )

    entry = MonthlyEntry(
        fund_id=fund.id,
        month_key=payload.month_key,
        dividend_amount=money(payload.dividend_amount),
        payout_amount=money(payload.payout_amount),
        is_paid=True,
        notes=payload.notes,
    )
    db.add(entry)
    db.flush()
    mark_fund_for_recalculation(db, fund.id)
    db.commit()
    db.refresh(entry)
    return entry


@router.get("/entries/{entry_id}", response_model=MonthlyEntryOut)
def get_entry(
    entry_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> MonthlyEntry:
    entry, _ = _get_entry_or_404(db, current_user.id, entry_id)
    return entry


@router.patch("/entries/{entry_id}", response_model=MonthlyEntryOut)
def update_entry(
    entry_id: int,
    payload: MonthlyEntryUpdateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> MonthlyEntry:
    entry, fund = _get_entry_or_404(db, current_user.id, entry_id)
    changes = payload.model_dump(exclude_unset=True)
    _check_payout(fund, changes.get("payout_amount"))

    for field_name, value in changes.items():
        if field_name == "is_paid" and value is None:
            continue
        if field_name in {"dividend_amount", "payout_amount"}:
            value = money(value or 0)
        setattr(entry, field_name, value)
    db.flush()
    mark_fund_for_recalculation(db, fund.id)
    db.commit()
    db.refresh(entry)
    return entry


@router.delete("/entries/{entry_id}", response_model=MessageResponse)
def delete_entry(
    entry_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> MessageResponse:
    entry, fund = _get_entry_or_404(db, current_user.id, entry_id)
    db.delete(entry)
    db.flush()
    mark_fund_for_recalculation(db, fund.id)
    db.commit()
    return MessageResponse(message="Monthly entry deleted.")
