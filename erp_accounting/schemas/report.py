"""
Pydantic schemas for ledger reports.

All monetary figures are Decimals signed by the account's
normal-balance convention unless the field name says
debit/credit explicitly.
"""

import datetime as dt
from decimal import Decimal

from erp_accounting.models.enums import (
    AccountType,
    AccountCategory,
    NormalBalance,
    VoucherType,
)
from erp_accounting.schemas.base import ApiModel


class AccountRef(ApiModel):
    id: int
    account_code: str
    account_name: str
    account_type: AccountType
    account_category: AccountCategory
    normal_balance: NormalBalance
    is_active: bool = True


class Period(ApiModel):
    date_from: dt.date | None
    date_to: dt.date | None


# --- General Ledger ---

class LedgerLine(ApiModel):
    date: dt.date
    voucher_id: int
    voucher_number: str
    voucher_type: VoucherType
    description: str
    entry_description: str
    reference_number: str | None
    debit_amount: Decimal
    credit_amount: Decimal
    balance: Decimal
    department: str | None = None
    project: str | None = None
    cost_center: str | None = None


class GeneralLedger(ApiModel):
    account: AccountRef
    period: Period
    opening_balance: Decimal
    entries: list[LedgerLine]
    total_debits: Decimal
    total_credits: Decimal
    closing_balance: Decimal
    transaction_count: int


class LedgerSummaryRow(ApiModel):
    account: AccountRef
    opening_balance: Decimal
    total_debits: Decimal
    total_credits: Decimal
    closing_balance: Decimal
    transaction_count: int


class GeneralLedgerSummary(ApiModel):
    period: Period
    accounts: list[LedgerSummaryRow]


# --- Trial Balance ---

class TrialBalanceRow(ApiModel):
    account_id: int
    account_code: str
    account_name: str
    account_type: AccountType
    account_category: AccountCategory
    normal_balance: NormalBalance
    debit_total: Decimal
    credit_total: Decimal
    debit_balance: Decimal
    credit_balance: Decimal
    net_balance: Decimal
    transaction_count: int


class TypeSubtotal(ApiModel):
    account_type: AccountType
    debit_total: Decimal
    credit_total: Decimal
    net_balance: Decimal
    count: int


class TrialBalanceSummary(ApiModel):
    total_debits: Decimal
    total_credits: Decimal
    difference: Decimal
    is_balanced: bool
    total_accounts: int
    as_of_date: dt.date
    generated_at: dt.datetime


class AccountingEquation(ApiModel):
    """
    Assets = Liabilities + Equity.

    Revenue and expense accounts are not closed into equity until
    year end, so their net (current earnings) is carried on the
    equity side of the check.
    """
    as_of_date: dt.date
    assets: Decimal
    liabilities: Decimal
    equity: Decimal
    current_earnings: Decimal
    liabilities_and_equity: Decimal
    difference: Decimal
    is_balanced: bool


class ProfitLoss(ApiModel):
    revenue: Decimal
    expenses: Decimal
    net_income: Decimal


class TrialBalance(ApiModel):
    accounts: list[TrialBalanceRow]
    subtotals: list[TypeSubtotal]
    summary: TrialBalanceSummary
    accounting_equation: AccountingEquation
    profit_loss: ProfitLoss


# --- Financial statements ---

class StatementLine(ApiModel):
    account_id: int
    account_code: str
    account_name: str
    amount: Decimal


class StatementSection(ApiModel):
    category: AccountCategory
    lines: list[StatementLine]
    total: Decimal


class IncomeStatement(ApiModel):
    period: Period
    revenue: list[StatementSection]
    total_revenue: Decimal
    cost_of_goods_sold: Decimal
    gross_profit: Decimal
    operating_expenses: Decimal
    operating_income: Decimal
    non_operating_expenses: Decimal
    expenses: list[StatementSection]
    total_expenses: Decimal
    net_income: Decimal


class BalanceSheet(ApiModel):
    as_of_date: dt.date
    assets: list[StatementSection]
    total_assets: Decimal
    liabilities: list[StatementSection]
    total_liabilities: Decimal
    equity: list[StatementSection]
    current_earnings: Decimal
    total_equity: Decimal
    total_liabilities_and_equity: Decimal
    is_balanced: bool
