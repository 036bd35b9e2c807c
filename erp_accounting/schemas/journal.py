"""
Pydantic schemas for journal entries (vouchers).

Line fields are deliberately lenient here: a missing account,
a missing description or a line carrying both or neither amount
is reported by the JournalService as INVALID_LINE, the same way
for API and in-process callers.
"""

import datetime as dt
from decimal import Decimal

from pydantic import Field

from erp_accounting.config import get_settings
from erp_accounting.models.enums import VoucherType, VoucherStatus
from erp_accounting.schemas.base import ApiModel


# --- Request Schemas ---

class JournalLineCreate(ApiModel):
    account_id: int | None = None
    description: str | None = Field(default=None, max_length=255)
    debit_amount: Decimal = Field(default=Decimal("0"), ge=0, max_digits=19, decimal_places=4)
    credit_amount: Decimal = Field(default=Decimal("0"), ge=0, max_digits=19, decimal_places=4)
    department: str | None = Field(default=None, max_length=100)
    project: str | None = Field(default=None, max_length=100)
    cost_center: str | None = Field(default=None, max_length=100)


class VoucherCreate(ApiModel):
    voucher_type: VoucherType = VoucherType.JOURNAL
    date: dt.date = Field(default_factory=dt.date.today)
    description: str = Field(min_length=1, max_length=500)
    reference_number: str | None = Field(default=None, max_length=100)
    currency: str = Field(
        default_factory=lambda: get_settings().DEFAULT_CURRENCY,
        min_length=3,
        max_length=3,
    )
    notes: str | None = None
    entries: list[JournalLineCreate]


class VoucherUpdate(ApiModel):
    """Changes to a DRAFT voucher. Omitted fields stay as they are."""
    date: dt.date | None = None
    description: str | None = Field(default=None, min_length=1, max_length=500)
    reference_number: str | None = Field(default=None, max_length=100)
    notes: str | None = None
    entries: list[JournalLineCreate] | None = None


class BalanceCheckRequest(ApiModel):
    entries: list[JournalLineCreate]


class ReverseRequest(ApiModel):
    reason: str = Field(min_length=1, max_length=255)


class CancelRequest(ApiModel):
    reason: str = Field(min_length=1, max_length=255)


class DuplicateVoucherRequest(ApiModel):
    reference_number: str | None = Field(default=None, max_length=100)
    notes: str | None = None


# --- Response Schemas ---

class BalanceCheck(ApiModel):
    """Result of validate_balance."""
    total_debit: Decimal
    total_credit: Decimal
    difference: Decimal
    is_balanced: bool


class JournalLineResponse(ApiModel):
    id: int
    line_number: int
    account_id: int
    account_code: str | None
    account_name: str | None
    description: str
    debit_amount: Decimal
    credit_amount: Decimal
    department: str | None
    project: str | None
    cost_center: str | None


class VoucherResponse(ApiModel):
    id: int
    voucher_number: str
    voucher_type: VoucherType
    date: dt.date
    description: str
    reference_number: str | None
    total_debit: Decimal
    total_credit: Decimal
    status: VoucherStatus
    fiscal_year: int
    fiscal_period: int
    currency: str
    notes: str | None
    created_by: str | None
    posted_by: str | None
    posted_at: dt.datetime | None
    reversal_of_id: int | None
    reversed_by_id: int | None
    reversal_reason: str | None
    entries: list[JournalLineResponse] = Field(validation_alias="lines")
    created_at: dt.datetime


class VoucherListResponse(ApiModel):
    items: list[VoucherResponse]
    page: int
    pages: int
    total: int


class ReversalResponse(ApiModel):
    original_entry: VoucherResponse
    reversal_entry: VoucherResponse


class NextVoucherNumberResponse(ApiModel):
    next_voucher_number: str
    voucher_type: VoucherType
    date: dt.date


class VoucherTypeInfo(ApiModel):
    value: VoucherType
    label: str
    prefix: str


class BreakdownRow(ApiModel):
    key: str
    count: int
    total_amount: Decimal


class VoucherStatistics(ApiModel):
    total_entries: int
    total_debits: Decimal
    total_credits: Decimal
    average_amount: Decimal
    status_breakdown: list[BreakdownRow]
    voucher_type_breakdown: list[BreakdownRow]
