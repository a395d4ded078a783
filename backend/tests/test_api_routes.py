from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from chitjar.api.deps import get_db
from chitjar.db.base import Base
from chitjar.main import app, rate_limiter
from chitjar.models.user import User


@pytest.fixture()
def client():
    engine = create_engine(
        'sqlite+pysqlite:///:memory:',
        future=True,
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)

    def _get_db():
        db = TestingSession()
        try:
            yield db
        finally:
            db.close()

    with TestingSession() as db:
        db.add_all(
            [
                User(id=1, email='owner@test.com', full_name='Owner', is_active=True),
                User(id=2, email='other@test.com', full_name='Other', is_active=True),
            ]
        )
        db.commit()

    app.dependency_overrides[get_db] = _get_db
    rate_limiter.reset()
    yield TestClient(app)
    app.dependency_overrides.clear()


OWNER = {'X-User-Id': '1'}
OTHER = {'X-User-Id': '2'}


def _create_fund(client: TestClient, **overrides) -> dict:
    payload = {
        'name': 'Office Chit',
        'chit_value': '100000.00',
        'installment_amount': '10000.00',
        'total_months': 3,
        'start_month': '2025-01',
        'end_month': '2025-03',
    }
    payload.update(overrides)
    response = client.post('/api/v1/funds', json=payload, headers=OWNER)
    assert response.status_code == 201, response.text
    return response.json()


def test_fund_crud_and_ownership(client: TestClient) -> None:
    fund = _create_fund(client)
    assert fund['needs_recalculation'] is True

    listing = client.get('/api/v1/funds', headers=OWNER).json()
    assert listing['pagination']['total'] == 1
    assert listing['funds'][0]['entries_count'] == 0

    assert client.get(f"/api/v1/funds/{fund['id']}", headers=OTHER).status_code == 403
    assert client.get('/api/v1/funds/999', headers=OWNER).status_code == 404
    assert client.get('/api/v1/funds', headers={'X-User-Id': '42'}).status_code == 401

    renamed = client.patch(f"/api/v1/funds/{fund['id']}", json={'name': 'Renamed'}, headers=OWNER)
    assert renamed.status_code == 200
    assert renamed.json()['name'] == 'Renamed'

    assert client.delete(f"/api/v1/funds/{fund['id']}", headers=OWNER).status_code == 200
    assert client.get(f"/api/v1/funds/{fund['id']}", headers=OWNER).status_code == 404


def test_fund_schedule_validation(client: TestClient) -> None:
    mismatch = client.post(
        '/api/v1/funds',
        json={
            'name': 'Bad Span',
            'chit_value': '100000',
            'installment_amount': '10000',
            'total_months': 5,
            'start_month': '2025-01',
            'end_month': '2025-03',
        },
        headers=OWNER,
    )
    assert mismatch.status_code == 400

    fund = _create_fund(client)
    early_exit = client.patch(
        f"/api/v1/funds/{fund['id']}",
        json={'early_exit_month': '2026-01'},
        headers=OWNER,
    )
    assert early_exit.status_code == 400


def test_entry_lifecycle_drives_cash_flow_and_dirty_flag(client: TestClient) -> None:
    fund = _create_fund(client)
    fund_id = fund['id']

    created = client.post(
        f'/api/v1/funds/{fund_id}/entries',
        json={'month_key': '2025-02', 'dividend_amount': '800.00'},
        headers=OWNER,
    )
    assert created.status_code == 201, created.text
    assert created.json()['is_paid'] is True

    duplicate = client.post(
        f'/api/v1/funds/{fund_id}/entries',
        json={'month_key': '2025-02', 'dividend_amount': '100.00'},
        headers=OWNER,
    )
    assert duplicate.status_code == 409
    out_of_range = client.post(
        f'/api/v1/funds/{fund_id}/entries',
        json={'month_key': '2025-06', 'dividend_amount': '100.00'},
        headers=OWNER,
    )
    assert out_of_range.status_code == 400

    cash_flow = client.get(f'/api/v1/analytics/funds/{fund_id}/cash-flow', headers=OWNER).json()
    assert [Decimal(point['amount']) for point in cash_flow['cash_flow_series']] == [
        Decimal('-10000'),
        Decimal('-9200'),
        Decimal('-10000'),
    ]

    net = client.get(f'/api/v1/analytics/funds/{fund_id}/net-cash-flow', headers=OWNER).json()
    assert len(net['cash_flow_series']) == 1
    assert Decimal(net['cash_flow_series'][0]['net_cash_flow']) == Decimal('9200')

    detail = client.get(f'/api/v1/analytics/funds/{fund_id}', headers=OWNER).json()
    assert detail['needs_recalculation'] is True
    assert detail['recalculated'] is True
    assert detail['xirr'] is None
    assert Decimal(detail['total_profit']) == Decimal('-29200')
    assert client.get(f'/api/v1/funds/{fund_id}', headers=OWNER).json()['needs_recalculation'] is False

    entry_id = created.json()['id']
    updated = client.patch(f'/api/v1/entries/{entry_id}', json={'payout_amount': '95000.00'}, headers=OWNER)
    assert updated.status_code == 200
    assert client.get(f'/api/v1/funds/{fund_id}', headers=OWNER).json()['needs_recalculation'] is True
    assert client.get(f'/api/v1/entries/{entry_id}', headers=OTHER).status_code == 403

    assert client.delete(f'/api/v1/entries/{entry_id}', headers=OWNER).status_code == 200
    assert client.get(f'/api/v1/entries/{entry_id}', headers=OWNER).status_code == 404


def test_bids_compute_discount_and_feed_insights(client: TestClient) -> None:
    fund = _create_fund(client)
    fund_id = fund['id']

    created = client.post(
        f'/api/v1/funds/{fund_id}/bids',
        json={'month_key': '2025-01', 'winning_bid': '72000.00', 'bidder_name': 'Ravi'},
        headers=OWNER,
    )
    assert created.status_code == 201, created.text
    assert Decimal(created.json()['discount_amount']) == Decimal('28000')

    too_high = client.post(
        f'/api/v1/funds/{fund_id}/bids',
        json={'month_key': '2025-02', 'winning_bid': '150000.00'},
        headers=OWNER,
    )
    assert too_high.status_code == 400

    bid_id = created.json()['id']
    patched = client.patch(f'/api/v1/bids/{bid_id}', json={'winning_bid': '75000.00'}, headers=OWNER)
    assert Decimal(patched.json()['discount_amount']) == Decimal('25000')

    insights = client.get('/api/v1/analytics/insights', headers=OWNER).json()['insights']
    assert len(insights) == 1
    assert Decimal(insights[0]['average_discount_percentage']) == Decimal('25')

    listing = client.get(f'/api/v1/funds/{fund_id}/bids', headers=OWNER).json()
    assert listing['pagination']['total'] == 1
    assert client.delete(f'/api/v1/bids/{bid_id}', headers=OWNER).status_code == 200


def test_dashboard_projection_and_fd_comparison(client: TestClient) -> None:
    fund = _create_fund(client, total_months=12, end_month='2025-12')
    fund_id = fund['id']
    client.post(
        f'/api/v1/funds/{fund_id}/entries',
        json={'month_key': '2025-06', 'dividend_amount': '500.00', 'payout_amount': '90000.00'},
        headers=OWNER,
    )

    dashboard = client.get('/api/v1/analytics/dashboard', headers=OWNER).json()
    assert dashboard['fund_count'] == 1
    assert Decimal(dashboard['total_profit']) == Decimal('-29500')
    assert dashboard['funds'][0]['fund_id'] == fund_id

    projection = client.get(f'/api/v1/analytics/funds/{fund_id}/projection?months=2', headers=OWNER).json()
    points = projection['projections']['projected_cash_flows']
    assert [point['month_key'] for point in points] == ['2025-07', '2025-08']
    assert Decimal(points[0]['forecasted_net_cash_flow']) == Decimal('80500')

    comparison = client.post(
        f'/api/v1/analytics/funds/{fund_id}/fd-comparison',
        json={'fd_rate': 7.0},
        headers=OWNER,
    )
    assert comparison.status_code == 200
    assert comparison.json()['fd_rate'] == 7.0


def test_exports_and_health(client: TestClient) -> None:
    fund = _create_fund(client)
    client.post(
        f"/api/v1/funds/{fund['id']}/entries",
        json={'month_key': '2025-01', 'dividend_amount': '300.00'},
        headers=OWNER,
    )

    funds_csv = client.get('/api/v1/export/funds.csv', headers=OWNER)
    assert funds_csv.status_code == 200
    assert funds_csv.text.splitlines()[0].startswith('id,name,chit_value')

    entries_csv = client.get('/api/v1/export/entries.csv', headers=OWNER)
    assert len(entries_csv.text.strip().splitlines()) == 2

    workbook = client.get(f"/api/v1/export/funds/{fund['id']}/cash-flow.xlsx", headers=OWNER)
    assert workbook.status_code == 200
    assert workbook.content[:2] == b'PK'

    assert client.get('/api/v1/health').json()['status'] == 'ok'
    assert client.get('/healthz').json()['ok'] is True


def _needs_recalculation(client: TestClient, fund_id: int) -> bool:
    return client.get(f'/api/v1/funds/{fund_id}', headers=OWNER).json()['needs_recalculation']


def _recalculate(client: TestClient, fund_id: int) -> None:
    assert client.get(f'/api/v1/analytics/funds/{fund_id}', headers=OWNER).status_code == 200
    assert _needs_recalculation(client, fund_id) is False


def test_bid_writes_and_fund_edits_mark_fund_dirty(client: TestClient) -> None:
    fund_id = _create_fund(client)['id']
    _recalculate(client, fund_id)

    created = client.post(
        f'/api/v1/funds/{fund_id}/bids',
        json={'month_key': '2025-01', 'winning_bid': '70000.00'},
        headers=OWNER,
    )
    assert created.status_code == 201
    assert _needs_recalculation(client, fund_id) is True
    _recalculate(client, fund_id)

    bid_id = created.json()['id']
    client.patch(f'/api/v1/bids/{bid_id}', json={'winning_bid': '71000.00'}, headers=OWNER)
    assert _needs_recalculation(client, fund_id) is True
    _recalculate(client, fund_id)

    client.delete(f'/api/v1/bids/{bid_id}', headers=OWNER)
    assert _needs_recalculation(client, fund_id) is True
    _recalculate(client, fund_id)

    client.patch(f'/api/v1/funds/{fund_id}', json={'name': 'Cosmetic'}, headers=OWNER)
    assert _needs_recalculation(client, fund_id) is False

    client.patch(f'/api/v1/funds/{fund_id}', json={'installment_amount': '9000.00'}, headers=OWNER)
    assert _needs_recalculation(client, fund_id) is True


def test_dashboard_clears_flag_for_reported_funds(client: TestClient) -> None:
    fund_id = _create_fund(client)['id']
    assert _needs_recalculation(client, fund_id) is True

    client.get('/api/v1/analytics/dashboard', headers=OWNER)

    assert _needs_recalculation(client, fund_id) is False


def test_bid_and_backup_exports(client: TestClient) -> None:
    fund_id = _create_fund(client)['id']
    client.post(
        f'/api/v1/funds/{fund_id}/entries',
        json={'month_key': '2025-01', 'dividend_amount': '300.00'},
        headers=OWNER,
    )
    client.post(
        f'/api/v1/funds/{fund_id}/bids',
        json={'month_key': '2025-01', 'winning_bid': '70000.00', 'bidder_name': 'Meena'},
        headers=OWNER,
    )

    bids_csv = client.get('/api/v1/export/bids.csv', headers=OWNER)
    assert bids_csv.status_code == 200
    lines = bids_csv.text.strip().splitlines()
    assert lines[0] == 'fund_id,fund_name,month_key,winning_bid,discount_amount,bidder_name,notes,created_at'
    assert len(lines) == 2
    assert 'Meena' in lines[1]

    bids_json = client.get('/api/v1/export/bids.json', headers=OWNER).json()
    assert Decimal(bids_json['data'][0]['discount_amount']) == Decimal('30000')
    assert len(client.get('/api/v1/export/funds.json', headers=OWNER).json()['data']) == 1
    assert len(client.get('/api/v1/export/entries.json', headers=OWNER).json()['data']) == 1

    backup = client.get('/api/v1/export/backup.json', headers=OWNER)
    assert backup.status_code == 200
    assert 'chitjar-backup.json' in backup.headers['content-disposition']
    body = backup.json()
    assert body['export_version'] == '1.0'
    assert [len(body['funds']), len(body['entries']), len(body['bids'])] == [1, 1, 1]
    assert body['funds'][0]['name'] == 'Office Chit'

    other = client.get('/api/v1/export/backup.json', headers=OTHER).json()
    assert [len(other['funds']), len(other['entries']), len(other['bids'])] == [0, 0, 0]
