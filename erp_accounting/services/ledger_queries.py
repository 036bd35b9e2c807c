"""
Read-side queries over posted journal lines.

A voucher counts as posted history while its status is POSTED or
REVERSED: a reversed voucher keeps its effect on the ledger and the
reversing voucher offsets it.
"""

from datetime import date
from decimal import Decimal
from typing import NamedTuple

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from erp_accounting.models.enums import VoucherStatus
from erp_accounting.models.journal_entry import JournalEntry, JournalLine

POSTED_STATUSES = (VoucherStatus.POSTED, VoucherStatus.REVERSED)

_FOUR_PLACES = Decimal("0.0001")


class LineTotals(NamedTuple):
    debit: Decimal
    credit: Decimal
    count: int


ZERO_TOTALS = LineTotals(Decimal("0"), Decimal("0"), 0)


def to_decimal(value) -> Decimal:
    """Normalise a database aggregate to a 4-place Decimal."""
    return Decimal(str(value or 0)).quantize(_FOUR_PLACES)


def posted_line_totals(
    db: Session,
    date_from: date | None = None,
    date_to: date | None = None,
    before: date | None = None,
) -> dict[int, LineTotals]:
    """Sum posted debits and credits per account id."""
    query = (
        select(
            JournalLine.account_id,
            func.coalesce(func.sum(JournalLine.debit_amount), 0),
            func.coalesce(func.sum(JournalLine.credit_amount), 0),
            func.count(JournalLine.id),
        )
        .join(JournalEntry, JournalLine.journal_entry_id == JournalEntry.id)
        .where(JournalEntry.status.in_(POSTED_STATUSES))
        .group_by(JournalLine.account_id)
    )
    if date_from is not None:
        query = query.where(JournalEntry.date >= date_from)
    if date_to is not None:
        query = query.where(JournalEntry.date <= date_to)
    if before is not None:
        query = query.where(JournalEntry.date < before)

    return {
        account_id: LineTotals(to_decimal(debit), to_decimal(credit), count)
        for account_id, debit, credit, count in db.execute(query).all()
    }


def journal_references(db: Session, account_id: int) -> list[str]:
    """Voucher numbers of every voucher, in any status, with a line on the account."""
    rows = db.execute(
        select(JournalEntry.voucher_number)
        .join(JournalLine, JournalLine.journal_entry_id == JournalEntry.id)
        .where(JournalLine.account_id == account_id)
        .distinct()
        .order_by(JournalEntry.voucher_number)
    ).scalars().all()
    return list(rows)
