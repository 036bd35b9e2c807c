"""
Journal entry service: the voucher ledger.

Enforces the double-entry rules:
1. A voucher has at least two lines, each either a debit or a credit
2. Debits and credits balance to within 0.01
3. Lines only post to existing, active accounts that allow posting
4. Posted vouchers are never edited; they are reversed

Balances move only when a voucher is posted, one
ChartService.update_balance call per account touched.
"""

import logging
import math
from collections import defaultdict
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from erp_accounting.config import get_settings
from erp_accounting.exceptions import (
    AccountNotFound,
    AlreadyReversed,
    InvalidLine,
    InvalidStatusTransition,
    PostingNotAllowed,
    UnbalancedEntry,
    VoucherNotFound,
)
from erp_accounting.models.account import Account
from erp_accounting.models.enums import VoucherStatus, VoucherType
from erp_accounting.models.journal_entry import (
    BALANCE_EPSILON,
    VOUCHER_LABELS,
    VOUCHER_PREFIXES,
    JournalEntry,
    JournalLine,
    VoucherSequence,
)
from erp_accounting.schemas.journal import (
    BalanceCheck,
    BreakdownRow,
    DuplicateVoucherRequest,
    JournalLineCreate,
    VoucherCreate,
    VoucherStatistics,
    VoucherTypeInfo,
    VoucherUpdate,
)
from erp_accounting.services.audit import record_event
from erp_accounting.services.chart_service import ChartService
from erp_accounting.services.ledger_queries import to_decimal

logger = logging.getLogger(__name__)


class JournalService:

    def __init__(self, db: Session):
        self.db = db
        self.chart = ChartService(db)
        self.settings = get_settings()

    # --- Validation ---

    @staticmethod
    def validate_balance(lines) -> BalanceCheck:
        """
        Total the debit and credit side of a set of lines.

        Works on request lines and stored JournalLine rows alike.
        Pure: nothing is read from or written to the database.
        """
        total_debit = sum((Decimal(line.debit_amount or 0) for line in lines), Decimal("0"))
        total_credit = sum((Decimal(line.credit_amount or 0) for line in lines), Decimal("0"))
        difference = total_debit - total_credit
        return BalanceCheck(
            total_debit=total_debit,
            total_credit=total_credit,
            difference=difference,
            is_balanced=abs(difference) < BALANCE_EPSILON,
        )

    def _validate_lines(self, lines) -> dict[int, Account]:
        """
        Check every line of a voucher before anything is written.

        Returns the referenced accounts by id.
        """
        if len(lines) < 2:
            raise InvalidLine(
                "A voucher needs at least two lines",
                details={"line_count": len(lines)},
            )

        for number, line in enumerate(lines, start=1):
            if line.account_id is None:
                raise InvalidLine(
                    f"Line {number} has no account", details={"line": number}
                )
            if not line.description or not line.description.strip():
                raise InvalidLine(
                    f"Line {number} has no description", details={"line": number}
                )
            has_debit = (line.debit_amount or 0) > 0
            has_credit = (line.credit_amount or 0) > 0
            if has_debit == has_credit:
                raise InvalidLine(
                    f"Line {number} must carry either a debit or a credit amount",
                    details={"line": number},
                )

        check = self.validate_balance(lines)
        if not check.is_balanced:
            raise UnbalancedEntry(
                f"Voucher does not balance: debits={check.total_debit}, "
                f"credits={check.total_credit}",
                details=check.model_dump(mode="json", by_alias=True),
            )

        account_ids = {line.account_id for line in lines}
        accounts = self.db.execute(
            select(Account).where(Account.id.in_(account_ids))
        ).scalars().all()
        accounts_by_id = {a.id: a for a in accounts}

        missing = sorted(account_ids - set(accounts_by_id))
        if missing:
            raise AccountNotFound(
                f"Accounts not found: {missing}",
                details={"account_ids": missing},
            )

        for account in accounts_by_id.values():
            if not account.is_active:
                raise PostingNotAllowed(
                    f"Account {account.account_code} is not active",
                    details={"account_code": account.account_code},
                )
            if not account.allow_posting:
                raise PostingNotAllowed(
                    f"Account {account.account_code} does not allow posting",
                    details={"account_code": account.account_code},
                )

        return accounts_by_id

    # --- Voucher numbers ---

    def _format_voucher_number(
        self, voucher_type: VoucherType, fiscal_year: int, value: int
    ) -> str:
        padding = self.settings.VOUCHER_SEQUENCE_PADDING
        return f"{VOUCHER_PREFIXES[voucher_type]}{fiscal_year}{value:0{padding}d}"

    def _first_free_value(
        self, voucher_type: VoucherType, fiscal_year: int, value: int
    ) -> int:
        # Skip numbers already taken by vouchers loaded outside the counter
        while self.db.execute(
            select(JournalEntry.id).where(
                JournalEntry.voucher_number
                == self._format_voucher_number(voucher_type, fiscal_year, value)
            )
        ).first():
            value += 1
        return value

    def _find_sequence(
        self, voucher_type: VoucherType, fiscal_year: int
    ) -> VoucherSequence | None:
        return self.db.execute(
            select(VoucherSequence)
            .where(
                VoucherSequence.voucher_type == voucher_type,
                VoucherSequence.fiscal_year == fiscal_year,
            )
            .with_for_update()
        ).scalar_one_or_none()

    def _create_sequence(
        self, voucher_type: VoucherType, fiscal_year: int
    ) -> VoucherSequence:
        """
        Start the (type, year) counter.

        When a concurrent transaction inserts the same counter first,
        the unique constraint fires inside a savepoint and the row
        that won is locked and used instead.
        """
        sequence = VoucherSequence(
            voucher_type=voucher_type, fiscal_year=fiscal_year, next_value=1
        )
        try:
            with self.db.begin_nested():
                self.db.add(sequence)
        except IntegrityError:
            logger.warning(
                "Voucher counter %s/%s created concurrently, reusing it",
                voucher_type.value, fiscal_year,
            )
            sequence = self._find_sequence(voucher_type, fiscal_year)
        return sequence

    def _allocate_voucher_number(
        self, voucher_type: VoucherType, fiscal_year: int
    ) -> str:
        """
        Take the next number from the (type, year) counter.

        The counter row is locked until the surrounding transaction
        ends, so concurrent callers queue up instead of sharing a number.
        """
        sequence = self._find_sequence(voucher_type, fiscal_year)
        if sequence is None:
            sequence = self._create_sequence(voucher_type, fiscal_year)

        value = self._first_free_value(voucher_type, fiscal_year, sequence.next_value)
        sequence.next_value = value + 1
        self.db.flush()
        return self._format_voucher_number(voucher_type, fiscal_year, value)

    def next_voucher_number(
        self, voucher_type: VoucherType, on_date: date | None = None
    ) -> str:
        """Preview the number the next voucher would get. Consumes nothing."""
        fiscal_year = (on_date or date.today()).year
        next_value = self.db.execute(
            select(VoucherSequence.next_value).where(
                VoucherSequence.voucher_type == voucher_type,
                VoucherSequence.fiscal_year == fiscal_year,
            )
        ).scalar_one_or_none() or 1
        value = self._first_free_value(voucher_type, fiscal_year, next_value)
        return self._format_voucher_number(voucher_type, fiscal_year, value)

    @staticmethod
    def voucher_types() -> list[VoucherTypeInfo]:
        return [
            VoucherTypeInfo(
                value=voucher_type,
                label=VOUCHER_LABELS[voucher_type],
                prefix=VOUCHER_PREFIXES[voucher_type],
            )
            for voucher_type in VoucherType
        ]

    # --- Lookups ---

    def get_voucher(self, voucher_id: int) -> JournalEntry:
        entry = self.db.get(JournalEntry, voucher_id)
        if not entry:
            raise VoucherNotFound(
                f"Journal entry {voucher_id} not found",
                details={"voucher_id": voucher_id},
            )
        return entry

    def list_vouchers(
        self,
        status: VoucherStatus | None = None,
        voucher_type: VoucherType | None = None,
        date_from: date | None = None,
        date_to: date | None = None,
        search: str | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[JournalEntry], int]:
        """Newest vouchers first, with the total count for paging."""
        filters = []
        if status is not None:
            filters.append(JournalEntry.status == status)
        if voucher_type is not None:
            filters.append(JournalEntry.voucher_type == voucher_type)
        if date_from is not None:
            filters.append(JournalEntry.date >= date_from)
        if date_to is not None:
            filters.append(JournalEntry.date <= date_to)
        if search:
            pattern = f"%{search}%"
            filters.append(
                JournalEntry.voucher_number.ilike(pattern)
                | JournalEntry.description.ilike(pattern)
                | JournalEntry.reference_number.ilike(pattern)
            )

        total = self.db.execute(
            select(func.count(JournalEntry.id)).where(*filters)
        ).scalar()
        entries = self.db.execute(
            select(JournalEntry)
            .where(*filters)
            .order_by(JournalEntry.date.desc(), JournalEntry.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        ).scalars().all()
        return list(entries), total

    @staticmethod
    def page_count(total: int, limit: int) -> int:
        return math.ceil(total / limit) if limit else 0

    # --- Draft lifecycle ---

    @staticmethod
    def _build_lines(lines: list[JournalLineCreate]) -> list[JournalLine]:
        return [
            JournalLine(
                line_number=number,
                account_id=line.account_id,
                description=line.description.strip(),
                debit_amount=line.debit_amount,
                credit_amount=line.credit_amount,
                department=line.department,
                project=line.project,
                cost_center=line.cost_center,
            )
            for number, line in enumerate(lines, start=1)
        ]

    def create_voucher(
        self, request: VoucherCreate, created_by: str | None = None
    ) -> JournalEntry:
        """
        Validate and store a DRAFT voucher.

        Balances are untouched until the voucher is posted.
        """
        self._validate_lines(request.entries)
        check = self.validate_balance(request.entries)

        entry = JournalEntry(
            voucher_number=self._allocate_voucher_number(
                request.voucher_type, request.date.year
            ),
            voucher_type=request.voucher_type,
            date=request.date,
            description=request.description.strip(),
            reference_number=request.reference_number,
            total_debit=check.total_debit,
            total_credit=check.total_credit,
            status=VoucherStatus.DRAFT,
            fiscal_year=request.date.year,
            fiscal_period=request.date.month,
            currency=request.currency.upper(),
            notes=request.notes,
            created_by=created_by,
        )
        entry.lines = self._build_lines(request.entries)
        self.db.add(entry)
        self.db.flush()

        logger.info(
            "Created voucher %s", entry.voucher_number,
            extra={"voucher_id": entry.id, "total": str(check.total_debit)},
        )
        return entry

    def _require_status(
        self, entry: JournalEntry, expected: VoucherStatus, action: str
    ) -> None:
        if entry.status != expected:
            raise InvalidStatusTransition(
                f"Cannot {action} voucher {entry.voucher_number}: "
                f"status is {entry.status.value}, expected {expected.value}",
                details={
                    "voucher_number": entry.voucher_number,
                    "status": entry.status.value,
                },
            )

    def update_voucher(self, voucher_id: int, request: VoucherUpdate) -> JournalEntry:
        """Edit a DRAFT voucher. New lines replace the old ones wholesale."""
        entry = self.get_voucher(voucher_id)
        self._require_status(entry, VoucherStatus.DRAFT, "edit")

        changes = request.model_dump(exclude_unset=True, exclude={"entries"})
        if request.entries is not None:
            self._validate_lines(request.entries)
            check = self.validate_balance(request.entries)
            entry.lines = self._build_lines(request.entries)
            entry.total_debit = check.total_debit
            entry.total_credit = check.total_credit

        for field, value in changes.items():
            if value is None and field in ("date", "description"):
                continue
            setattr(entry, field, value)
        if "date" in changes and changes["date"] is not None:
            if entry.date.year != entry.fiscal_year:
                old_number = entry.voucher_number
                entry.voucher_number = self._allocate_voucher_number(
                    entry.voucher_type, entry.date.year
                )
                logger.info(
                    "Renumbered voucher %s as %s", old_number, entry.voucher_number,
                    extra={"voucher_id": entry.id},
                )
            entry.fiscal_year = entry.date.year
            entry.fiscal_period = entry.date.month

        self.db.flush()
        return entry

    def delete_voucher(self, voucher_id: int) -> None:
        entry = self.get_voucher(voucher_id)
        self._require_status(entry, VoucherStatus.DRAFT, "delete")
        self.db.delete(entry)
        self.db.flush()
        logger.info("Deleted draft voucher %s", entry.voucher_number)

    def cancel_voucher(self, voucher_id: int, reason: str) -> JournalEntry:
        """Withdraw a DRAFT voucher. It never touched a balance."""
        entry = self.get_voucher(voucher_id)
        self._require_status(entry, VoucherStatus.DRAFT, "cancel")

        entry.status = VoucherStatus.CANCELLED
        note = f"Cancelled: {reason}"
        entry.notes = f"{entry.notes}\n{note}" if entry.notes else note
        self.db.flush()

        logger.info("Cancelled voucher %s", entry.voucher_number)
        return entry

    def duplicate_voucher(
        self,
        voucher_id: int,
        request: DuplicateVoucherRequest | None = None,
        created_by: str | None = None,
    ) -> JournalEntry:
        """Copy any voucher into a new DRAFT dated today."""
        source = self.get_voucher(voucher_id)
        request = request or DuplicateVoucherRequest()

        copy_request = VoucherCreate(
            voucher_type=source.voucher_type,
            date=date.today(),
            description=f"Copy of {source.description}"[:500],
            reference_number=request.reference_number,
            currency=source.currency,
            notes=request.notes,
            entries=[
                JournalLineCreate(
                    account_id=line.account_id,
                    description=line.description,
                    debit_amount=line.debit_amount,
                    credit_amount=line.credit_amount,
                    department=line.department,
                    project=line.project,
                    cost_center=line.cost_center,
                )
                for line in source.lines
            ],
        )
        return self.create_voucher(copy_request, created_by=created_by)

    # --- Posting ---

    @staticmethod
    def _net_movements(lines) -> list[tuple[int, Decimal]]:
        """
        Net debit per account, in ascending account id order.

        Every posting locks accounts in the same order, so two
        vouchers touching the same accounts cannot deadlock.
        Accounts whose lines cancel out are left untouched.
        """
        net = defaultdict(Decimal)
        for line in lines:
            net[line.account_id] += (
                Decimal(line.debit_amount or 0) - Decimal(line.credit_amount or 0)
            )
        return [(account_id, net[account_id]) for account_id in sorted(net) if net[account_id]]

    def post_voucher(
        self, voucher_id: int, posted_by: str | None = None
    ) -> JournalEntry:
        """
        Post a DRAFT voucher to the ledger.

        Every line is re-validated before the first balance moves.
        If a balance update still fails part way (a lost
        compare-and-swap), the exception propagates and the caller
        rolls the session back, undoing the lines already applied.
        """
        entry = self.get_voucher(voucher_id)
        self._require_status(entry, VoucherStatus.DRAFT, "post")
        self._validate_lines(entry.lines)

        for account_id, net_debit in self._net_movements(entry.lines):
            self.chart.update_balance(account_id, abs(net_debit), net_debit > 0)

        entry.status = VoucherStatus.POSTED
        entry.posted_by = posted_by
        entry.posted_at = datetime.utcnow()
        self.db.flush()

        record_event(
            self.db,
            "VOUCHER_POSTED",
            voucher_number=entry.voucher_number,
            total=str(entry.total_debit),
            posted_by=posted_by,
        )
        logger.info(
            "Posted voucher %s", entry.voucher_number,
            extra={"voucher_id": entry.id, "lines": len(entry.lines)},
        )
        return entry

    def reverse_voucher(
        self, voucher_id: int, reason: str, user: str | None = None
    ) -> tuple[JournalEntry, JournalEntry]:
        """
        Undo a POSTED voucher with a mirrored voucher.

        The reversal swaps every debit and credit, is posted
        immediately and references the original. The original is
        marked REVERSED. Returns (original, reversal).
        """
        original = self.get_voucher(voucher_id)

        if original.reversed_by_id is not None or original.status == VoucherStatus.REVERSED:
            raise AlreadyReversed(
                f"Voucher {original.voucher_number} has already been reversed",
                details={
                    "voucher_number": original.voucher_number,
                    "reversed_by_id": original.reversed_by_id,
                },
            )
        self._require_status(original, VoucherStatus.POSTED, "reverse")

        today = date.today()
        reversal = JournalEntry(
            voucher_number=self._allocate_voucher_number(
                original.voucher_type, today.year
            ),
            voucher_type=original.voucher_type,
            date=today,
            description=f"Reversal of {original.voucher_number}: {reason}"[:500],
            reference_number=original.voucher_number,
            total_debit=original.total_credit,
            total_credit=original.total_debit,
            status=VoucherStatus.DRAFT,
            fiscal_year=today.year,
            fiscal_period=today.month,
            currency=original.currency,
            created_by=user,
            reversal_of_id=original.id,
            reversal_reason=reason,
        )
        reversal.lines = [
            JournalLine(
                line_number=line.line_number,
                account_id=line.account_id,
                description=f"Reversal: {line.description}"[:255],
                debit_amount=line.credit_amount,
                credit_amount=line.debit_amount,
                department=line.department,
                project=line.project,
                cost_center=line.cost_center,
            )
            for line in original.lines
        ]
        self.db.add(reversal)
        self.db.flush()

        self.post_voucher(reversal.id, posted_by=user)

        original.status = VoucherStatus.REVERSED
        original.reversed_by_id = reversal.id
        original.reversal_reason = reason
        self.db.flush()

        record_event(
            self.db,
            "VOUCHER_REVERSED",
            voucher_number=original.voucher_number,
            reversal_number=reversal.voucher_number,
            reason=reason,
        )
        logger.info(
            "Reversed voucher %s with %s",
            original.voucher_number, reversal.voucher_number,
        )
        return original, reversal

    # --- Statistics ---

    def voucher_statistics(
        self,
        date_from: date | None = None,
        date_to: date | None = None,
        voucher_type: VoucherType | None = None,
    ) -> VoucherStatistics:
        filters = []
        if date_from is not None:
            filters.append(JournalEntry.date >= date_from)
        if date_to is not None:
            filters.append(JournalEntry.date <= date_to)
        if voucher_type is not None:
            filters.append(JournalEntry.voucher_type == voucher_type)

        count, total_debits, total_credits = self.db.execute(
            select(
                func.count(JournalEntry.id),
                func.coalesce(func.sum(JournalEntry.total_debit), 0),
                func.coalesce(func.sum(JournalEntry.total_credit), 0),
            ).where(*filters)
        ).one()

        def breakdown(column) -> list[BreakdownRow]:
            rows = self.db.execute(
                select(
                    column,
                    func.count(JournalEntry.id),
                    func.coalesce(func.sum(JournalEntry.total_debit), 0),
                )
                .where(*filters)
                .group_by(column)
                .order_by(column)
            ).all()
            return [
                BreakdownRow(key=key.value, count=n, total_amount=to_decimal(amount))
                for key, n, amount in rows
            ]

        total_debits = to_decimal(total_debits)
        return VoucherStatistics(
            total_entries=count,
            total_debits=total_debits,
            total_credits=to_decimal(total_credits),
            average_amount=to_decimal(total_debits / count) if count else Decimal("0"),
            status_breakdown=breakdown(JournalEntry.status),
            voucher_type_breakdown=breakdown(JournalEntry.voucher_type),
        )
