from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from chitjar.db.base import Base
from chitjar.models.entry import MonthlyEntry
from chitjar.models.fund import Fund
from chitjar.models.user import User
from chitjar.services.forecast import forecast_fund_cash_flows, project
from chitjar.utils.decimal_math import money


def _session() -> Session:
    engine = create_engine('sqlite+pysqlite:///:memory:', future=True)
    Base.metadata.create_all(bind=engine)
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)()


def _fund() -> Fund:
    return Fund(
        id=1,
        user_id=1,
        name='Forecast Chit',
        chit_value=money('50000'),
        installment_amount=money('2500'),
        total_months=20,
        start_month='2025-01',
        end_month='2026-08',
    )


def test_projection_averages_recorded_months_from_last_entry() -> None:
    entries = [
        MonthlyEntry(fund_id=1, month_key='2025-03', dividend_amount=money('300'), payout_amount=money('0')),
        MonthlyEntry(fund_id=1, month_key='2025-01', dividend_amount=money('100'), payout_amount=money('0')),
        MonthlyEntry(fund_id=1, month_key='2025-02', dividend_amount=money('200'), payout_amount=money('3000')),
    ]

    result = project(_fund(), entries, 3)

    assert result.has_projection is True
    assert result.average_dividend == money('200')
    assert result.average_payout == money('1000')
    assert result.average_monthly_cash_flow == money('-1300')
    assert [point.month_key for point in result.points] == ['2025-04', '2025-05', '2025-06']
    assert all(point.forecasted_installment_amount == money('2500') for point in result.points)
    assert all(point.forecasted_net_cash_flow == money('-1300') for point in result.points)


def test_projection_horizon_edges() -> None:
    entries = [MonthlyEntry(fund_id=1, month_key='2025-12', dividend_amount=money('100'), payout_amount=money('0'))]

    assert project(_fund(), entries, 0).points == []
    single = project(_fund(), entries, 1)
    assert [point.month_key for point in single.points] == ['2026-01']


def test_projection_without_entries_is_empty() -> None:
    result = project(_fund(), [], 12)
    assert result.has_projection is False
    assert result.points == []
    assert result.months_ahead == 12


def test_forecast_reads_owned_fund_only() -> None:
    db = _session()
    owner = User(email='owner@test.com', full_name='Owner', is_active=True)
    db.add(owner)
    db.flush()
    fund = _fund()
    fund.id = None
    fund.user_id = owner.id
    db.add(fund)
    db.flush()
    db.add(MonthlyEntry(fund_id=fund.id, month_key='2025-01', dividend_amount=money('150'), payout_amount=money('0')))
    db.flush()

    assert len(forecast_fund_cash_flows(db, owner.id, fund.id, months_ahead=6).points) == 6
    assert forecast_fund_cash_flows(db, owner.id + 1, fund.id).has_projection is False
