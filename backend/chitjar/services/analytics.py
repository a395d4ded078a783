from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from chitjar.core.config import Settings, get_settings
from chitjar.models.bid import Bid
from chitjar.models.fund import Fund
from chitjar.services.cash_flow import CashFlowPoint, reconstruct_cash_flows, total_profit
from chitjar.services.forecast import ForecastResult, project
from chitjar.services.funds import get_owned_fund, list_fund_entries
from chitjar.services.recalculation import clear_recalculation_flag, observe_recalculation_state
from chitjar.services.xirr import xirr_percentage
from chitjar.utils.decimal_math import average, money, pct


LATEST_BIDS_LIMIT = 5


@dataclass(frozen=True)
class FundAnalytics:
    fund_id: int
    cash_flow_series: list[CashFlowPoint]
    total_profit: Decimal
    xirr: float | None
    projections: ForecastResult
    needs_recalculation: bool
    recalculated: bool


@dataclass(frozen=True)
class FundSummary:
    fund_id: int
    fund_name: str
    total_profit: Decimal
    xirr: float | None
    cash_flow_count: int


@dataclass(frozen=True)
class DashboardSummary:
    total_profit: Decimal
    funds: list[FundSummary]
    fund_count: int


def _fund_rate(points: list[CashFlowPoint], settings: Settings) -> float | None:
    return xirr_percentage(
        points,
        tolerance=settings.xirr_tolerance,
        max_iterations=settings.xirr_max_iterations,
    )


def build_fund_analytics(
    db: Session,
    user_id: int,
    fund_id: int,
    *,
    months_ahead: int | None = None,
    settings: Settings | None = None,
) -> FundAnalytics | None:
    """Cash flows, return and projection for one fund; clears its dirty flag.

    Returns ``None`` when the fund does not exist for this owner.
    """
    settings = settings or get_settings()
    fund = get_owned_fund(db, user_id, fund_id)
    if fund is None:
        return None

    ticket = observe_recalculation_state(fund)
    entries = list_fund_entries(db, fund.id)
    points = reconstruct_cash_flows(fund, entries)
    horizon = settings.projection_months if months_ahead is None else months_ahead
    projections = project(fund, entries, horizon)
    rate = _fund_rate(points, settings)
    recalculated = clear_recalculation_flag(db, ticket)

    return FundAnalytics(
        fund_id=fund.id,
        cash_flow_series=points,
        total_profit=total_profit(points),
        xirr=rate,
        projections=projections,
        needs_recalculation=ticket.needs_recalculation,
        recalculated=recalculated,
    )


def build_dashboard(db: Session, user_id: int, *, settings: Settings | None = None) -> DashboardSummary:
    """Fold profit and return across the user's active funds.

    Funds are processed one after another. Each reported fund that was dirty
    when read is cleared, unless a writer invalidated it again meanwhile.
    """
    settings = settings or get_settings()
    funds = list(
        db.scalars(
            select(Fund)
            .where(Fund.user_id == user_id, Fund.is_active.is_(True))
            .order_by(Fund.created_at.desc(), Fund.id.desc())
        ).all()
    )

    summaries: list[FundSummary] = []
    overall = money(0)
    for fund in funds:
        ticket = observe_recalculation_state(fund)
        points = reconstruct_cash_flows(fund, list_fund_entries(db, fund.id))
        if not points:
            continue
        profit = total_profit(points)
        overall = money(overall + profit)
        summaries.append(
            FundSummary(
                fund_id=fund.id,
                fund_name=fund.name,
                total_profit=profit,
                xirr=_fund_rate(points, settings),
                cash_flow_count=len(points),
            )
        )
        clear_recalculation_flag(db, ticket)

    return DashboardSummary(total_profit=overall, funds=summaries, fund_count=len(funds))


def compare_with_fd(
    db: Session,
    user_id: int,
    fund_id: int,
    fd_rate: float,
    *,
    settings: Settings | None = None,
) -> dict[str, Any]:
    settings = settings or get_settings()
    fund = get_owned_fund(db, user_id, fund_id)
    points = reconstruct_cash_flows(fund, list_fund_entries(db, fund.id)) if fund is not None else []
    fund_xirr = _fund_rate(points, settings)
    return {
        "fund_xirr": fund_xirr,
        "fd_rate": fd_rate,
        "difference": fund_xirr - fd_rate if fund_xirr is not None else None,
        "is_fund_better": fund_xirr > fd_rate if fund_xirr is not None else None,
    }


def build_bid_insights(db: Session, user_id: int) -> list[dict[str, Any]]:
    rows = list(
        db.execute(
            select(Bid, Fund)
            .join(Fund, Bid.fund_id == Fund.id)
            .where(Fund.user_id == user_id)
            .order_by(Fund.name.asc(), Fund.id.asc(), Bid.month_key.desc())
        ).all()
    )

    grouped: dict[int, tuple[Fund, list[Bid]]] = {}
    for bid, fund in rows:
        grouped.setdefault(fund.id, (fund, []))[1].append(bid)

    insights: list[dict[str, Any]] = []
    for fund, bids in grouped.values():
        chit_value = money(fund.chit_value)
        avg_discount = average([money(bid.discount_amount) for bid in bids])
        avg_winning = average([money(bid.winning_bid) for bid in bids])
        insights.append(
            {
                "fund_id": fund.id,
                "fund_name": fund.name,
                "bid_count": len(bids),
                "average_discount": avg_discount,
                "average_winning_bid": avg_winning,
                "average_discount_percentage": (
                    pct(avg_discount / chit_value * Decimal("100")) if chit_value > 0 else pct(0)
                ),
                "latest_bids": [
                    {
                        "month_key": bid.month_key,
                        "winning_bid": money(bid.winning_bid),
                        "discount_amount": money(bid.discount_amount),
                        "bidder_name": bid.bidder_name,
                    }
                    for bid in bids[:LATEST_BIDS_LIMIT]
                ],
            }
        )
    return insights
