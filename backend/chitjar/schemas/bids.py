from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from chitjar.schemas.common import MONTH_KEY_REGEX, ORMModel, Pagination


class BidCreateRequest(BaseModel):
    month_key: str = Field(pattern=MONTH_KEY_REGEX)
    winning_bid: Decimal = Field(gt=Decimal("0"), decimal_places=2)
    bidder_name: str | None = Field(default=None, max_length=255)
    notes: str | None = Field(default=None, max_length=1000)


class BidUpdateRequest(BaseModel):
    winning_bid: Decimal | None = Field(default=None, gt=Decimal("0"), decimal_places=2)
    bidder_name: str | None = Field(default=None, max_length=255)
    notes: str | None = Field(default=None, max_length=1000)


class BidOut(ORMModel):
    id: int
    fund_id: int
    month_key: str
    winning_bid: Decimal
    discount_amount: Decimal
    bidder_name: str | None = None
    notes: str | None = None
    created_at: datetime
    updated_at: datetime


class BidListResponse(BaseModel):
    bids: list[BidOut]
    pagination: Pagination
