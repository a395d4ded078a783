import math
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from chitjar.api.deps import get_current_user, get_db
from chitjar.models.bid import Bid
from chitjar.models.fund import Fund
from chitjar.models.user import User
from chitjar.schemas.bids import BidCreateRequest, BidListResponse, BidOut, BidUpdateRequest
from chitjar.schemas.common import MessageResponse, Pagination
from chitjar.services.funds import assert_month_in_fund_range, get_fund_or_404
from chitjar.services.recalculation import mark_fund_for_recalculation
from chitjar.utils.decimal_math import money


router = APIRouter(tags=["bids"])


def _get_bid_or_404(db: Session, user_id: int, bid_id: int) -> tuple[Bid, Fund]:
    bid = db.get(Bid, bid_id)
    if bid is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Bid not found.")
    fund = get_fund_or_404(db, user_id, bid.fund_id)
    return bid, fund


def _discount_for(fund: Fund, winning_bid: Decimal) -> Decimal:
    chit_value = money(fund.chit_value)
    if money(winning_bid) > chit_value:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Winning bid cannot exceed the chit value.",
        )
    return money(chit_value - money(winning_bid))


@router.get("/funds/{fund_id}/bids", response_model=BidListResponse)
def list_bids(
    fund_id: int,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=200),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> BidListResponse:
    fund = get_fund_or_404(db, current_user.id, fund_id)
    total = int(db.scalar(select(func.count(Bid.id)).where(Bid.fund_id == fund.id)) or 0)
    bids = list(
        db.scalars(
            select(Bid)
            .where(Bid.fund_id == fund.id)
            .order_by(Bid.month_key.desc(), Bid.id.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        ).all()
    )
    return BidListResponse(
        bids=[BidOut.model_validate(bid) for bid in bids],
        pagination=Pagination(page=page, limit=limit, total=total, total_pages=math.ceil(total / limit)),
    )


@router.post("/funds/{fund_id}/bids", response_model=BidOut, status_code=status.HTTP_201_CREATED)
def create_bid(
    fund_id: int,
    payload: BidCreateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Bid:
    fund = get_fund_or_404(db, current_user.id, fund_id)
    assert_month_in_fund_range(fund, payload.month_key)
    discount = _discount_for(fund, payload.winning_bid)

    exists = db.scalar(select(Bid.id).where(Bid.fund_id == fund.id, Bid.month_key == payload.month_key))
    if exists:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Bid for {payload.month_key} already exists for this fund.",
        )

    bid = Bid(
        fund_id=fund.id,
        month_key=payload.month_key,
        winning_bid=money(payload.winning_bid),
        discount_amount=discount,
        bidder_name=payload.bidder_name,
        notes=payload.notes,
    )
    db.add(bid)
    db.flush()
    mark_fund_for_recalculation(db, fund.id)
    db.commit()
    db.refresh(bid)
    return bid


@router.get("/bids/{bid_id}", response_model=BidOut)
def get_bid(
    bid_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Bid:
    bid, _ = _get_bid_or_404(db, current_user.id, bid_id)
    return bid


@router.patch("/bids/{bid_id}", response_model=BidOut)
def update_bid(
    bid_id: int,
    payload: BidUpdateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Bid:
    bid, fund = _get_bid_or_404(db, current_user.id, bid_id)
    changes = payload.model_dump(exclude_unset=True)

    if changes.get("winning_bid") is not None:
        bid.winning_bid = money(changes["winning_bid"])
        bid.discount_amount = _discount_for(fund, changes["winning_bid"])
    if "bidder_name" in changes:
        bid.bidder_name = changes["bidder_name"]
    if "notes" in changes:
        bid.notes = changes["notes"]
    db.flush()
    mark_fund_for_recalculation(db, fund.id)
    db.commit()
    db.refresh(bid)
    return bid


@router.delete("/bids/{bid_id}", response_model=MessageResponse)
def delete_bid(
    bid_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> MessageResponse:
    bid, fund = _get_bid_or_404(db, current_user.id, bid_id)
    db.delete(bid)
    db.flush()
    mark_fund_for_recalculation(db, fund.id)
    db.commit()
    return MessageResponse(message="Bid deleted.")
