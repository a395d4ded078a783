from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field


class CashFlowPointOut(BaseModel):
    date: date
    amount: Decimal


class NetCashFlowPointOut(BaseModel):
    date: date
    month_key: str
    installment_amount: Decimal
    dividend_amount: Decimal
    net_cash_flow: Decimal


class ForecastPointOut(BaseModel):
    date: date
    month_key: str
    forecasted_installment_amount: Decimal
    forecasted_dividend_amount: Decimal
    forecasted_payout_amount: Decimal
    forecasted_net_cash_flow: Decimal


class ProjectionOut(BaseModel):
    projected_cash_flows: list[ForecastPointOut]
    average_dividend: Decimal
    average_payout: Decimal
    average_monthly_cash_flow: Decimal
    projected_months: int
    has_projection: bool


class CashFlowResponse(BaseModel):
    fund_id: int
    cash_flow_series: list[CashFlowPointOut]


class NetCashFlowResponse(BaseModel):
    fund_id: int
    fund_name: str
    cash_flow_series: list[NetCashFlowPointOut]
    skipped_month_keys: list[str]


class FundAnalyticsResponse(BaseModel):
    fund_id: int
    cash_flow_series: list[CashFlowPointOut]
    total_profit: Decimal
    xirr: float | None
    projections: ProjectionOut
    needs_recalculation: bool
    recalculated: bool


class ProjectionResponse(BaseModel):
    fund_id: int
    projections: ProjectionOut


class DashboardFundOut(BaseModel):
    fund_id: int
    fund_name: str
    total_profit: Decimal
    xirr: float | None
    cash_flow_count: int


class DashboardResponse(BaseModel):
    total_profit: Decimal
    funds: list[DashboardFundOut]
    fund_count: int


class FdComparisonRequest(BaseModel):
    fd_rate: float = Field(gt=0, le=50)


class FdComparisonResponse(BaseModel):
    fund_xirr: float | None
    fd_rate: float
    difference: float | None
    is_fund_better: bool | None


class LatestBidOut(BaseModel):
    month_key: str
    winning_bid: Decimal
    discount_amount: Decimal
    bidder_name: str | None = None


class BidInsightOut(BaseModel):
    fund_id: int
    fund_name: str
    bid_count: int
    average_discount: Decimal
    average_winning_bid: Decimal
    average_discount_percentage: Decimal
    latest_bids: list[LatestBidOut]


class BidInsightsResponse(BaseModel):
    insights: list[BidInsightOut]
