import csv
import io
from datetime import datetime, timezone
from decimal import Decimal

from fastapi import APIRouter, Depends
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse, StreamingResponse
from openpyxl import Workbook
from sqlalchemy import select
from sqlalchemy.orm import Session

from chitjar.api.deps import get_current_user, get_db
from chitjar.models.bid import Bid
from chitjar.models.entry import MonthlyEntry
from chitjar.models.fund import Fund
from chitjar.models.user import User
from chitjar.services.cash_flow import reconstruct_cash_flows, total_profit
from chitjar.services.funds import get_fund_or_404, list_fund_entries


router = APIRouter(prefix="/export", tags=["exports"])

EXPORT_VERSION = "1.0"
FUND_HEADERS = [
    "id",
    "name",
    "chit_value",
    "installment_amount",
    "total_months",
    "start_month",
    "end_month",
    "early_exit_month",
    "is_active",
    "notes",
    "created_at",
]
ENTRY_HEADERS = [
    "fund_id",
    "fund_name",
    "month_key",
    "dividend_amount",
    "payout_amount",
    "is_paid",
    "notes",
    "created_at",
]
BID_HEADERS = [
    "fund_id",
    "fund_name",
    "month_key",
    "winning_bid",
    "discount_amount",
    "bidder_name",
    "notes",
    "created_at",
]


def _timestamp() -> str:
    return datetime.utcnow().strftime("%Y%m%d%H%M%S")


def _fund_rows(db: Session, user_id: int) -> list[dict]:
    funds = db.scalars(
        select(Fund).where(Fund.user_id == user_id).order_by(Fund.created_at.desc(), Fund.id.desc())
    ).all()
    return [{key: getattr(fund, key) for key in FUND_HEADERS} for fund in funds]


def _entry_rows(db: Session, user_id: int) -> list[dict]:
    results = db.execute(
        select(MonthlyEntry, Fund.name)
        .join(Fund, MonthlyEntry.fund_id == Fund.id)
        .where(Fund.user_id == user_id)
        .order_by(Fund.name.asc(), MonthlyEntry.month_key.asc())
    ).all()
    return [
        {"fund_name": fund_name, **{key: getattr(entry, key) for key in ENTRY_HEADERS if key != "fund_name"}}
        for entry, fund_name in results
    ]


def _bid_rows(db: Session, user_id: int) -> list[dict]:
    results = db.execute(
        select(Bid, Fund.name)
        .join(Fund, Bid.fund_id == Fund.id)
        .where(Fund.user_id == user_id)
        .order_by(Fund.name.asc(), Bid.month_key.desc())
    ).all()
    return [
        {"fund_name": fund_name, **{key: getattr(bid, key) for key in BID_HEADERS if key != "fund_name"}}
        for bid, fund_name in results
    ]


def _csv_response(headers: list[str], rows: list[dict], filename: str) -> StreamingResponse:
    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=headers)
    writer.writeheader()
    writer.writerows(rows)
    output.seek(0)
    return StreamingResponse(
        iter([output.getvalue()]),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def _json_response(payload: dict, filename: str) -> JSONResponse:
    body = {
        **payload,
        "export_timestamp": datetime.now(timezone.utc).isoformat(),
        "export_version": EXPORT_VERSION,
    }
    return JSONResponse(
        content=jsonable_encoder(body, custom_encoder={Decimal: str}),
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/funds.csv")
def export_funds_csv(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return _csv_response(FUND_HEADERS, _fund_rows(db, current_user.id), f"chitjar-funds-{_timestamp()}.csv")


@router.get("/funds.json")
def export_funds_json(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return _json_response({"data": _fund_rows(db, current_user.id)}, "chitjar-funds.json")


@router.get("/entries.csv")
def export_entries_csv(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return _csv_response(ENTRY_HEADERS, _entry_rows(db, current_user.id), f"chitjar-entries-{_timestamp()}.csv")


@router.get("/entries.json")
def export_entries_json(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return _json_response({"data": _entry_rows(db, current_user.id)}, "chitjar-entries.json")


@router.get("/bids.csv")
def export_bids_csv(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return _csv_response(BID_HEADERS, _bid_rows(db, current_user.id), f"chitjar-bids-{_timestamp()}.csv")


@router.get("/bids.json")
def export_bids_json(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return _json_response({"data": _bid_rows(db, current_user.id)}, "chitjar-bids.json")


@router.get("/backup.json")
def export_backup_json(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return _json_response(
        {
            "funds": _fund_rows(db, current_user.id),
            "entries": _entry_rows(db, current_user.id),
            "bids": _bid_rows(db, current_user.id),
        },
        "chitjar-backup.json",
    )


@router.get("/funds/{fund_id}/cash-flow.xlsx")
def export_cash_flow_excel(
    fund_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    fund = get_fund_or_404(db, current_user.id, fund_id)
    points = reconstruct_cash_flows(fund, list_fund_entries(db, fund.id))

    workbook = Workbook()
    sheet = workbook.active
    sheet.title = "CashFlow"
    sheet.append(["date", "amount"])
    for point in points:
        sheet.append([point.date, point.amount])
    sheet.append([])
    sheet.append(["total_profit", total_profit(points)])

    stream = io.BytesIO()
    workbook.save(stream)
    stream.seek(0)
    filename = f"chitjar-cash-flow-{fund.id}-{_timestamp()}.xlsx"
    return StreamingResponse(
        stream,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
