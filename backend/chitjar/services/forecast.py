from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from sqlalchemy.orm import Session

from chitjar.models.entry import MonthlyEntry
from chitjar.models.fund import Fund
from chitjar.services.funds import get_owned_fund, list_fund_entries
from chitjar.services.month_series import is_valid_month_key, month_key_to_date, next_month_keys
from chitjar.utils.decimal_math import average, money


@dataclass(frozen=True)
class ForecastPoint:
    date: date
    month_key: str
    forecasted_installment_amount: Decimal
    forecasted_dividend_amount: Decimal
    forecasted_payout_amount: Decimal
    forecasted_net_cash_flow: Decimal


@dataclass(frozen=True)
class ForecastResult:
    points: list[ForecastPoint] = field(default_factory=list)
    average_dividend: Decimal = Decimal("0.00")
    average_payout: Decimal = Decimal("0.00")
    average_monthly_cash_flow: Decimal = Decimal("0.00")
    months_ahead: int = 0
    has_projection: bool = False


def project(fund: Fund, entries: Iterable[MonthlyEntry], months_ahead: int) -> ForecastResult:
    """Extrapolate ``months_ahead`` months from the averages of recorded entries.

    Averages run over recorded months only, not the gap-filled series, and the
    projection starts right after the last recorded month. For a fund with
    trailing unrecorded months or an early exit that start can already be in
    the past.
    """
    recorded = sorted(
        (entry for entry in entries if is_valid_month_key(entry.month_key)),
        key=lambda entry: entry.month_key,
    )
    if not recorded:
        return ForecastResult(months_ahead=max(months_ahead, 0))

    avg_dividend = average([money(entry.dividend_amount or 0) for entry in recorded])
    avg_payout = average([money(entry.payout_amount or 0) for entry in recorded])
    installment = money(fund.installment_amount)
    net = money(-installment + avg_dividend + avg_payout)

    points = [
        ForecastPoint(
            date=month_key_to_date(month_key),
            month_key=month_key,
            forecasted_installment_amount=installment,
            forecasted_dividend_amount=avg_dividend,
            forecasted_payout_amount=avg_payout,
            forecasted_net_cash_flow=net,
        )
        for month_key in next_month_keys(recorded[-1].month_key, months_ahead)
    ]
    return ForecastResult(
        points=points,
        average_dividend=avg_dividend,
        average_payout=avg_payout,
        average_monthly_cash_flow=net,
        months_ahead=max(months_ahead, 0),
        has_projection=True,
    )


def forecast_fund_cash_flows(
    db: Session,
    user_id: int,
    fund_id: int,
    months_ahead: int = 12,
) -> ForecastResult:
    fund = get_owned_fund(db, user_id, fund_id)
    if fund is None:
        return ForecastResult(months_ahead=max(months_ahead, 0))
    return project(fund, list_fund_entries(db, fund.id), months_ahead)
