"""Per-fund "needs recalculation" bookkeeping.

Writers mark a fund dirty and bump its ``recalculation_version`` in a single
UPDATE. Readers take a ticket before computing analytics and clear the flag
only if the version is still the one they observed, so an invalidation that
lands while analytics are being computed survives the clear.

The flag is advisory: no analytics path skips work because a fund is clean.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import update
from sqlalchemy.orm import Session

from chitjar.models.fund import Fund


@dataclass(frozen=True)
class RecalculationTicket:
    fund_id: int
    needs_recalculation: bool
    version: int


def mark_fund_for_recalculation(db: Session, fund_id: int) -> None:
    db.execute(
        update(Fund)
        .where(Fund.id == fund_id)
        .values(
            needs_recalculation=True,
            recalculation_version=Fund.recalculation_version + 1,
        )
    )


def observe_recalculation_state(fund: Fund) -> RecalculationTicket:
    return RecalculationTicket(
        fund_id=fund.id,
        needs_recalculation=bool(fund.needs_recalculation),
        version=int(fund.recalculation_version or 0),
    )


def clear_recalculation_flag(db: Session, ticket: RecalculationTicket) -> bool:
    if not ticket.needs_recalculation:
        return False
    result = db.execute(
        update(Fund)
        .where(
            Fund.id == ticket.fund_id,
            Fund.recalculation_version == ticket.version,
            Fund.needs_recalculation.is_(True),
        )
        .values(needs_recalculation=False)
    )
    return bool(result.rowcount)
