from dataclasses import asdict

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from chitjar.api.deps import get_current_user, get_db
from chitjar.core.config import get_settings
from chitjar.models.user import User
from chitjar.schemas.analytics import (
    BidInsightsResponse,
    CashFlowPointOut,
    CashFlowResponse,
    DashboardFundOut,
    DashboardResponse,
    FdComparisonRequest,
    FdComparisonResponse,
    ForecastPointOut,
    FundAnalyticsResponse,
    NetCashFlowPointOut,
    NetCashFlowResponse,
    ProjectionOut,
    ProjectionResponse,
)
from chitjar.services.analytics import build_bid_insights, build_dashboard, build_fund_analytics, compare_with_fd
from chitjar.services.cash_flow import get_fund_cash_flow_series, get_fund_net_cash_flow_series
from chitjar.services.forecast import ForecastResult, forecast_fund_cash_flows
from chitjar.services.funds import get_fund_or_404


router = APIRouter(prefix="/analytics", tags=["analytics"])


def _projection_out(result: ForecastResult) -> ProjectionOut:
    return ProjectionOut(
        projected_cash_flows=[ForecastPointOut(**asdict(point)) for point in result.points],
        average_dividend=result.average_dividend,
        average_payout=result.average_payout,
        average_monthly_cash_flow=result.average_monthly_cash_flow,
        projected_months=result.months_ahead,
        has_projection=result.has_projection,
    )


@router.get("/dashboard", response_model=DashboardResponse)
def get_dashboard(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> DashboardResponse:
    summary = build_dashboard(db, current_user.id)
    db.commit()
    return DashboardResponse(
        total_profit=summary.total_profit,
        funds=[DashboardFundOut(**asdict(item)) for item in summary.funds],
        fund_count=summary.fund_count,
    )


@router.get("/funds/{fund_id}", response_model=FundAnalyticsResponse)
def get_fund_analytics(
    fund_id: int,
    months: int | None = Query(default=None, ge=1),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> FundAnalyticsResponse:
    settings = get_settings()
    get_fund_or_404(db, current_user.id, fund_id)
    horizon = min(months, settings.projection_max_months) if months is not None else None
    analytics = build_fund_analytics(db, current_user.id, fund_id, months_ahead=horizon, settings=settings)
    db.commit()
    return FundAnalyticsResponse(
        fund_id=analytics.fund_id,
        cash_flow_series=[CashFlowPointOut(date=p.date, amount=p.amount) for p in analytics.cash_flow_series],
        total_profit=analytics.total_profit,
        xirr=analytics.xirr,
        projections=_projection_out(analytics.projections),
        needs_recalculation=analytics.needs_recalculation,
        recalculated=analytics.recalculated,
    )


@router.get("/funds/{fund_id}/cash-flow", response_model=CashFlowResponse)
def get_cash_flow(
    fund_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> CashFlowResponse:
    get_fund_or_404(db, current_user.id, fund_id)
    points = get_fund_cash_flow_series(db, current_user.id, fund_id)
    return CashFlowResponse(
        fund_id=fund_id,
        cash_flow_series=[CashFlowPointOut(date=p.date, amount=p.amount) for p in points],
    )


@router.get("/funds/{fund_id}/net-cash-flow", response_model=NetCashFlowResponse)
def get_net_cash_flow(
    fund_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> NetCashFlowResponse:
    fund = get_fund_or_404(db, current_user.id, fund_id)
    series = get_fund_net_cash_flow_series(db, current_user.id, fund_id)
    return NetCashFlowResponse(
        fund_id=fund.id,
        fund_name=fund.name,
        cash_flow_series=[NetCashFlowPointOut(**asdict(point)) for point in series.points],
        skipped_month_keys=series.skipped_month_keys,
    )


@router.get("/funds/{fund_id}/projection", response_model=ProjectionResponse)
def get_projection(
    fund_id: int,
    months: int | None = Query(default=None, ge=1),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ProjectionResponse:
    settings = get_settings()
    get_fund_or_404(db, current_user.id, fund_id)
    horizon = min(months or settings.projection_months, settings.projection_max_months)
    result = forecast_fund_cash_flows(db, current_user.id, fund_id, months_ahead=horizon)
    return ProjectionResponse(fund_id=fund_id, projections=_projection_out(result))


@router.post("/funds/{fund_id}/fd-comparison", response_model=FdComparisonResponse)
def post_fd_comparison(
    fund_id: int,
    payload: FdComparisonRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> FdComparisonResponse:
    get_fund_or_404(db, current_user.id, fund_id)
    return FdComparisonResponse(**compare_with_fd(db, current_user.id, fund_id, payload.fd_rate))


@router.get("/insights", response_model=BidInsightsResponse)
def get_bid_insights(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> BidInsightsResponse:
    return BidInsightsResponse(insights=build_bid_insights(db, current_user.id))
