import math

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from chitjar.api.deps import get_current_user, get_db
from chitjar.models.bid import Bid
from chitjar.models.entry import MonthlyEntry
from chitjar.models.fund import Fund
from chitjar.models.user import User
from chitjar.schemas.common import MessageResponse, Pagination
from chitjar.schemas.funds import (
    FundCreateRequest,
    FundListItem,
    FundListResponse,
    FundSummary,
    FundUpdateRequest,
)
from chitjar.services.funds import get_fund_or_404, validate_fund_schedule
from chitjar.services.recalculation import mark_fund_for_recalculation
from chitjar.utils.decimal_math import money


router = APIRouter(prefix="/funds", tags=["funds"])

# Edits to these fields change the reconstructed cash flows.
ANALYTICS_FIELDS = {
    "chit_value",
    "installment_amount",
    "total_months",
    "start_month",
    "end_month",
    "early_exit_month",
    "is_active",
}
NULLABLE_FIELDS = {"early_exit_month", "notes"}


@router.get("", response_model=FundListResponse)
def list_funds(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    is_active: bool | None = Query(default=None),
    search: str | None = Query(default=None, max_length=255),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> FundListResponse:
    filters = [Fund.user_id == current_user.id]
    if is_active is not None:
        filters.append(Fund.is_active.is_(is_active))
    if search:
        filters.append(Fund.name.ilike(f"%{search}%"))

    total = int(db.scalar(select(func.count(Fund.id)).where(*filters)) or 0)
    entries_count = (
        select(func.count(MonthlyEntry.id)).where(MonthlyEntry.fund_id == Fund.id).scalar_subquery()
    )
    bids_count = select(func.count(Bid.id)).where(Bid.fund_id == Fund.id).scalar_subquery()
    rows = db.execute(
        select(Fund, entries_count, bids_count)
        .where(*filters)
        .order_by(Fund.created_at.desc(), Fund.id.desc())
        .limit(limit)
        .offset((page - 1) * limit)
    ).all()

    items = [
        FundListItem.model_validate(fund).model_copy(
            update={"entries_count": int(n_entries or 0), "bids_count": int(n_bids or 0)}
        )
        for fund, n_entries, n_bids in rows
    ]
    return FundListResponse(
        funds=items,
        pagination=Pagination(
            page=page,
            limit=limit,
            total=total,
            total_pages=math.ceil(total / limit),
        ),
    )


@router.post("", response_model=FundSummary, status_code=status.HTTP_201_CREATED)
def create_fund(
    payload: FundCreateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Fund:
    validate_fund_schedule(
        start_month=payload.start_month,
        end_month=payload.end_month,
        total_months=payload.total_months,
    )
    fund = Fund(
        user_id=current_user.id,
        name=payload.name.strip(),
        chit_value=money(payload.chit_value),
        installment_amount=money(payload.installment_amount),
        total_months=payload.total_months,
        start_month=payload.start_month,
        end_month=payload.end_month,
        notes=payload.notes,
        needs_recalculation=True,
        recalculation_version=0,
    )
    db.add(fund)
    db.commit()
    db.refresh(fund)
    return fund


@router.get("/{fund_id}", response_model=FundSummary)
def get_fund(
    fund_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Fund:
    return get_fund_or_404(db, current_user.id, fund_id)


@router.patch("/{fund_id}", response_model=FundSummary)
def update_fund(
    fund_id: int,
    payload: FundUpdateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Fund:
    fund = get_fund_or_404(db, current_user.id, fund_id)
    changes = payload.model_dump(exclude_unset=True)

    validate_fund_schedule(
        start_month=changes.get("start_month") or fund.start_month,
        end_month=changes.get("end_month") or fund.end_month,
        total_months=changes.get("total_months") or fund.total_months,
        early_exit_month=changes.get("early_exit_month", fund.early_exit_month),
    )

    for field_name, value in changes.items():
        if value is None and field_name not in NULLABLE_FIELDS:
            continue
        if field_name in {"chit_value", "installment_amount"}:
            value = money(value)
        if field_name == "name":
            value = value.strip()
        setattr(fund, field_name, value)
    db.flush()

    if ANALYTICS_FIELDS.intersection(changes):
        mark_fund_for_recalculation(db, fund.id)
    db.commit()
    db.refresh(fund)
    return fund


@router.delete("/{fund_id}", response_model=MessageResponse)
def delete_fund(
    fund_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> MessageResponse:
    fund = get_fund_or_404(db, current_user.id, fund_id)
    db.delete(fund)
    db.commit()
    return MessageResponse(message="Fund deleted.")
