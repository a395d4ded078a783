from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from chitjar.schemas.common import MONTH_KEY_REGEX, ORMModel, Pagination


class MonthlyEntryCreateRequest(BaseModel):
    month_key: str = Field(pattern=MONTH_KEY_REGEX)
    dividend_amount: Decimal = Field(default=Decimal("0.00"), ge=Decimal("0"), decimal_places=2)
    payout_amount: Decimal = Field(default=Decimal("0.00"), ge=Decimal("0"), decimal_places=2)
    notes: str | None = Field(default=None, max_length=1000)


class MonthlyEntryUpdateRequest(BaseModel):
    dividend_amount: Decimal | None = Field(default=None, ge=Decimal("0"), decimal_places=2)
    payout_amount: Decimal | None = Field(default=None, ge=Decimal("0"), decimal_places=2)
    is_paid: bool | None = None
    notes: str | None = Field(default=None, max_length=1000)


class MonthlyEntryOut(ORMModel):
    id: int
    fund_id: int
    month_key: str
    dividend_amount: Decimal
    payout_amount: Decimal
    is_paid: bool
    notes: str | None = None
    created_at: datetime
    updated_at: datetime


class MonthlyEntryListResponse(BaseModel):
    entries: list[MonthlyEntryOut]
    pagination: Pagination
