from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from sqlalchemy.orm import Session

from chitjar.models.entry import MonthlyEntry
from chitjar.models.fund import Fund
from chitjar.services.funds import get_owned_fund, list_fund_entries
from chitjar.services.month_series import (
    MonthKeyError,
    generate_month_series,
    is_valid_month_key,
    month_key_to_date,
)
from chitjar.utils.decimal_math import money


logger = logging.getLogger("chitjar.cash_flow")


@dataclass(frozen=True)
class CashFlowPoint:
    """One dated, signed cash flow: outflows negative, inflows positive."""

    date: date
    amount: Decimal


@dataclass(frozen=True)
class NetCashFlowPoint:
    date: date
    month_key: str
    installment_amount: Decimal
    dividend_amount: Decimal
    net_cash_flow: Decimal


@dataclass(frozen=True)
class NetCashFlowSeries:
    points: list[NetCashFlowPoint] = field(default_factory=list)
    skipped_month_keys: list[str] = field(default_factory=list)


def _dividend(entry: MonthlyEntry | None) -> Decimal:
    if entry is None or entry.dividend_amount is None:
        return money(0)
    return money(entry.dividend_amount)


def _payout(entry: MonthlyEntry | None) -> Decimal:
    if entry is None or entry.payout_amount is None:
        return money(0)
    return money(entry.payout_amount)


def reconstruct_cash_flows(fund: Fund, entries: Iterable[MonthlyEntry]) -> list[CashFlowPoint]:
    """Build one signed point per active month of the fund.

    Months without a recorded entry still carry the installment outflow.
    Entries outside the active range do not contribute.
    """
    try:
        months = generate_month_series(fund.start_month, fund.end_month, fund.early_exit_month)
    except MonthKeyError as exc:
        logger.warning("Fund %s has an unusable schedule: %s", fund.id, exc)
        return []

    by_month = {entry.month_key: entry for entry in entries}
    installment = money(fund.installment_amount)

    points: list[CashFlowPoint] = []
    for month_key in months:
        entry = by_month.get(month_key)
        amount = money(-installment + _dividend(entry) + _payout(entry))
        points.append(CashFlowPoint(date=month_key_to_date(month_key), amount=amount))
    return points


def reconstruct_net_cash_flows(fund: Fund, entries: Iterable[MonthlyEntry]) -> NetCashFlowSeries:
    """Ledger view over recorded months only: net = installment - dividend."""
    installment = money(fund.installment_amount)
    points: list[NetCashFlowPoint] = []
    skipped: list[str] = []

    for entry in sorted(entries, key=lambda row: str(row.month_key)):
        if not is_valid_month_key(entry.month_key):
            skipped.append(str(entry.month_key))
            continue
        dividend = _dividend(entry)
        points.append(
            NetCashFlowPoint(
                date=month_key_to_date(entry.month_key),
                month_key=entry.month_key,
                installment_amount=installment,
                dividend_amount=dividend,
                net_cash_flow=money(installment - dividend),
            )
        )

    if skipped:
        logger.warning(
            "Skipped %d malformed month key(s) for fund %s: %s",
            len(skipped),
            fund.id,
            ", ".join(skipped),
        )
    return NetCashFlowSeries(points=points, skipped_month_keys=skipped)


def total_profit(points: Iterable[CashFlowPoint]) -> Decimal:
    return money(sum((point.amount for point in points), Decimal("0")))


def get_fund_cash_flow_series(db: Session, user_id: int, fund_id: int) -> list[CashFlowPoint]:
    fund = get_owned_fund(db, user_id, fund_id)
    if fund is None:
        return []
    return reconstruct_cash_flows(fund, list_fund_entries(db, fund.id))


def get_fund_net_cash_flow_series(db: Session, user_id: int, fund_id: int) -> NetCashFlowSeries:
    fund = get_owned_fund(db, user_id, fund_id)
    if fund is None:
        return NetCashFlowSeries()
    return reconstruct_net_cash_flows(fund, list_fund_entries(db, fund.id))
