from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from chitjar.schemas.common import MONTH_KEY_REGEX, ORMModel, Pagination


class FundCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    chit_value: Decimal = Field(gt=Decimal("0"), le=Decimal("99999999.99"), decimal_places=2)
    installment_amount: Decimal = Field(gt=Decimal("0"), le=Decimal("99999999.99"), decimal_places=2)
    total_months: int = Field(gt=0, le=120)
    start_month: str = Field(pattern=MONTH_KEY_REGEX)
    end_month: str = Field(pattern=MONTH_KEY_REGEX)
    notes: str | None = Field(default=None, max_length=1000)


class FundUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    chit_value: Decimal | None = Field(default=None, gt=Decimal("0"), le=Decimal("99999999.99"), decimal_places=2)
    installment_amount: Decimal | None = Field(
        default=None, gt=Decimal("0"), le=Decimal("99999999.99"), decimal_places=2
    )
    total_months: int | None = Field(default=None, gt=0, le=120)
    start_month: str | None = Field(default=None, pattern=MONTH_KEY_REGEX)
    end_month: str | None = Field(default=None, pattern=MONTH_KEY_REGEX)
    early_exit_month: str | None = Field(default=None, pattern=MONTH_KEY_REGEX)
    is_active: bool | None = None
    notes: str | None = Field(default=None, max_length=1000)


class FundSummary(ORMModel):
    id: int
    user_id: int
    name: str
    chit_value: Decimal
    installment_amount: Decimal
    total_months: int
    start_month: str
    end_month: str
    early_exit_month: str | None = None
    is_active: bool
    needs_recalculation: bool
    notes: str | None = None
    created_at: datetime
    updated_at: datetime


class FundListItem(FundSummary):
    entries_count: int = 0
    bids_count: int = 0


class FundListResponse(BaseModel):
    funds: list[FundListItem]
    pagination: Pagination
