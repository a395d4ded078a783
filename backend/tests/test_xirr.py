import random
from datetime import date
from decimal import Decimal

from chitjar.models.entry import MonthlyEntry
from chitjar.models.fund import Fund
from chitjar.services.cash_flow import CashFlowPoint, reconstruct_cash_flows
from chitjar.services.xirr import _npv, _prepare, solve_xirr, validate_cash_flows_for_xirr, xirr_percentage


def _point(year: int, month: int, day: int, amount: str) -> CashFlowPoint:
    return CashFlowPoint(date=date(year, month, day), amount=Decimal(amount))


def test_one_year_round_trip_is_ten_percent() -> None:
    points = [_point(2023, 1, 1, '-1000'), _point(2024, 1, 1, '1100')]
    rate = solve_xirr(points)
    assert rate is not None
    assert abs(rate - 0.1) < 1e-6
    assert abs(xirr_percentage(points) - 10.0) < 1e-4


def test_rate_does_not_depend_on_input_order() -> None:
    points = [
        _point(2025, 1, 1, '-5000'),
        _point(2025, 2, 1, '-5000'),
        _point(2025, 3, 1, '-5000'),
        _point(2025, 4, 1, '16000'),
    ]
    forward = solve_xirr(points)
    backward = solve_xirr(list(reversed(points)))
    assert forward is not None
    assert forward == backward


def test_solved_rate_zeroes_net_present_value() -> None:
    points = [
        _point(2025, 1, 1, '-10000'),
        _point(2025, 2, 1, '-9200'),
        _point(2025, 3, 1, '-9400'),
        _point(2025, 4, 1, '30000'),
    ]
    rate = solve_xirr(points)
    assert rate is not None
    assert abs(_npv(rate, _prepare(points))) < 1e-3


def test_series_without_sign_change_has_no_rate() -> None:
    assert solve_xirr([]) is None
    assert solve_xirr([_point(2025, 1, 1, '-100'), _point(2025, 2, 1, '-100')]) is None
    assert solve_xirr([_point(2025, 1, 1, '0'), _point(2025, 2, 1, '0')]) is None
    assert solve_xirr([_point(2025, 1, 1, '100'), _point(2025, 2, 1, '0')]) is None
    assert xirr_percentage([_point(2025, 1, 1, '100')]) is None


def test_validate_requires_both_directions() -> None:
    assert validate_cash_flows_for_xirr([_point(2025, 1, 1, '-1'), _point(2025, 2, 1, '2')]) is True
    assert validate_cash_flows_for_xirr([_point(2025, 1, 1, '-1')]) is False


def test_negative_return_is_reported() -> None:
    points = [_point(2023, 1, 1, '-1000'), _point(2024, 1, 1, '900')]
    rate = solve_xirr(points)
    assert rate is not None
    assert abs(rate + 0.1) < 1e-6


def _prize_fund(payout: str) -> list[CashFlowPoint]:
    fund = Fund(
        id=1,
        user_id=1,
        name='Prize In September',
        chit_value=Decimal('120000'),
        installment_amount=Decimal('10000'),
        total_months=12,
        start_month='2025-01',
        end_month='2025-12',
    )
    entries = [MonthlyEntry(fund_id=1, month_key='2025-09', dividend_amount=Decimal('0'), payout_amount=Decimal(payout))]
    return reconstruct_cash_flows(fund, entries)


def test_prize_mid_series_with_later_installments_has_a_rate() -> None:
    points = _prize_fund('100000')
    assert points[8].amount == Decimal('90000.00')

    rate = solve_xirr(points)

    assert rate is not None
    assert -0.69 < rate < -0.65
    assert abs(_npv(rate, _prepare(points))) < 1e-3


def test_larger_prize_reports_root_closest_to_zero() -> None:
    smaller = solve_xirr(_prize_fund('100000'))
    larger = solve_xirr(_prize_fund('105000'))
    assert smaller is not None and larger is not None
    assert -0.6 < larger < -0.45
    assert larger > smaller


def test_rate_is_invariant_under_shuffling() -> None:
    points = _prize_fund('100000')
    expected = solve_xirr(points)
    shuffled = list(points)
    rng = random.Random(20251018)
    for _ in range(5):
        rng.shuffle(shuffled)
        assert solve_xirr(shuffled) == expected


def test_reconstruction_is_idempotent() -> None:
    fund = Fund(
        id=1,
        user_id=1,
        name='Repeatable',
        chit_value=Decimal('50000'),
        installment_amount=Decimal('5000'),
        total_months=10,
        start_month='2025-03',
        end_month='2025-12',
    )
    entries = [
        MonthlyEntry(fund_id=1, month_key='2025-04', dividend_amount=Decimal('350'), payout_amount=Decimal('0')),
        MonthlyEntry(fund_id=1, month_key='2025-07', dividend_amount=Decimal('0'), payout_amount=Decimal('42000')),
    ]

    first = reconstruct_cash_flows(fund, entries)
    second = reconstruct_cash_flows(fund, entries)

    assert first == second
    assert solve_xirr(first) == solve_xirr(second)
