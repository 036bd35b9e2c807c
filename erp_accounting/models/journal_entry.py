"""
Journal entry (voucher) and journal line models.

A voucher groups balanced debit and credit lines. It is created
as DRAFT and only affects account balances once posted. Posted
history is never edited: a mistake is undone by a reversing
voucher that swaps every debit and credit.
"""

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    String, Date, DateTime, Integer, Numeric, Text, ForeignKey,
    UniqueConstraint, Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from erp_accounting.models.base import Base
from erp_accounting.models.enums import VoucherType, VoucherStatus


# Vouchers are balanced when debits and credits differ by less than this
BALANCE_EPSILON = Decimal("0.01")

VOUCHER_PREFIXES: dict[VoucherType, str] = {
    VoucherType.JOURNAL: "JV",
    VoucherType.CASH_RECEIPT: "CR",
    VoucherType.CASH_PAYMENT: "CP",
    VoucherType.BANK_RECEIPT: "BR",
    VoucherType.BANK_PAYMENT: "BP",
    VoucherType.PURCHASE: "PV",
    VoucherType.SALES: "SV",
    VoucherType.ADJUSTMENT: "AJ",
    VoucherType.OPENING: "OB",
    VoucherType.CLOSING: "CB",
}

VOUCHER_LABELS: dict[VoucherType, str] = {
    VoucherType.JOURNAL: "General Journal Entry",
    VoucherType.CASH_RECEIPT: "Cash Receipt Voucher",
    VoucherType.CASH_PAYMENT: "Cash Payment Voucher",
    VoucherType.BANK_RECEIPT: "Bank Receipt Voucher",
    VoucherType.BANK_PAYMENT: "Bank Payment Voucher",
    VoucherType.PURCHASE: "Purchase Voucher",
    VoucherType.SALES: "Sales Voucher",
    VoucherType.ADJUSTMENT: "Adjustment Entry",
    VoucherType.OPENING: "Opening Balance Entry",
    VoucherType.CLOSING: "Closing Entry",
}


class JournalEntry(Base):
    __tablename__ = "journal_entries"

    id: Mapped[int] = mapped_column(primary_key=True)
    voucher_number: Mapped[str] = mapped_column(
        String(30), unique=True, nullable=False
    )
    voucher_type: Mapped[VoucherType] = mapped_column(
        SAEnum(VoucherType, name="voucher_type_enum"),
        nullable=False,
        index=True,
    )
    date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    reference_number: Mapped[str | None] = mapped_column(
        String(100), nullable=True
    )
    total_debit: Mapped[Decimal] = mapped_column(
        Numeric(19, 4), nullable=False, default=Decimal("0")
    )
    total_credit: Mapped[Decimal] = mapped_column(
        Numeric(19, 4), nullable=False, default=Decimal("0")
    )
    status: Mapped[VoucherStatus] = mapped_column(
        SAEnum(VoucherStatus, name="voucher_status_enum"),
        nullable=False,
        default=VoucherStatus.DRAFT,
        index=True,
    )
    fiscal_year: Mapped[int] = mapped_column(Integer, nullable=False)
    fiscal_period: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(
        String(3), nullable=False, default="BDT"
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    posted_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    posted_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True
    )
    # The voucher this one reverses, and the voucher that reversed this one
    reversal_of_id: Mapped[int | None] = mapped_column(
        ForeignKey("journal_entries.id"), nullable=True
    )
    reversed_by_id: Mapped[int | None] = mapped_column(
        ForeignKey("journal_entries.id"), nullable=True
    )
    reversal_reason: Mapped[str | None] = mapped_column(
        String(255), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    lines: Mapped[list["JournalLine"]] = relationship(
        back_populates="journal_entry",
        order_by="JournalLine.line_number",
        cascade="all, delete-orphan",
    )

    @property
    def is_balanced(self) -> bool:
        return abs(self.total_debit - self.total_credit) < BALANCE_EPSILON

    def __repr__(self) -> str:
        return f"<JournalEntry {self.voucher_number} ({self.status.value})>"


class JournalLine(Base):
    """
    One debit or credit line of a voucher.

    Exactly one of debit_amount / credit_amount is positive.
    The JournalService enforces it; the model only stores it.
    """

    __tablename__ = "journal_lines"

    id: Mapped[int] = mapped_column(primary_key=True)
    journal_entry_id: Mapped[int] = mapped_column(
        ForeignKey("journal_entries.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    account_id: Mapped[int] = mapped_column(
        ForeignKey("accounts.id"), nullable=False, index=True
    )
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    debit_amount: Mapped[Decimal] = mapped_column(
        Numeric(19, 4), nullable=False, default=Decimal("0")
    )
    credit_amount: Mapped[Decimal] = mapped_column(
        Numeric(19, 4), nullable=False, default=Decimal("0")
    )
    department: Mapped[str | None] = mapped_column(String(100), nullable=True)
    project: Mapped[str | None] = mapped_column(String(100), nullable=True)
    cost_center: Mapped[str | None] = mapped_column(String(100), nullable=True)

    journal_entry: Mapped["JournalEntry"] = relationship(back_populates="lines")
    account: Mapped["Account"] = relationship()

    @property
    def is_debit(self) -> bool:
        return self.debit_amount > 0

    @property
    def amount(self) -> Decimal:
        return self.debit_amount if self.is_debit else self.credit_amount

    @property
    def account_code(self) -> str | None:
        return self.account.account_code if self.account else None

    @property
    def account_name(self) -> str | None:
        return self.account.account_name if self.account else None


class VoucherSequence(Base):
    """
    Counter used to number vouchers per (voucher type, fiscal year).

    The row is locked while a number is allocated, so two
    concurrent vouchers can never receive the same number.
    """

    __tablename__ = "voucher_sequences"
    __table_args__ = (
        UniqueConstraint("voucher_type", "fiscal_year", name="uq_voucher_sequence"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    voucher_type: Mapped[VoucherType] = mapped_column(
        SAEnum(VoucherType, name="voucher_type_enum"),
        nullable=False,
    )
    fiscal_year: Mapped[int] = mapped_column(Integer, nullable=False)
    next_value: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
