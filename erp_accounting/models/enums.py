"""
Shared enumerations for database models.

Mapped to database enums so only valid values can be stored.
"""

import enum


class AccountType(str, enum.Enum):
    """The five fundamental accounting categories."""
    ASSET = "ASSET"
    LIABILITY = "LIABILITY"
    EQUITY = "EQUITY"
    REVENUE = "REVENUE"
    EXPENSE = "EXPENSE"


class NormalBalance(str, enum.Enum):
    """Side on which an account naturally increases."""
    DEBIT = "DEBIT"
    CREDIT = "CREDIT"


class AccountCategory(str, enum.Enum):
    # Assets
    CURRENT_ASSET = "CURRENT_ASSET"
    FIXED_ASSET = "FIXED_ASSET"
    INTANGIBLE_ASSET = "INTANGIBLE_ASSET"
    INVESTMENT = "INVESTMENT"
    # Liabilities
    CURRENT_LIABILITY = "CURRENT_LIABILITY"
    LONG_TERM_LIABILITY = "LONG_TERM_LIABILITY"
    # Equity
    OWNER_EQUITY = "OWNER_EQUITY"
    RETAINED_EARNINGS = "RETAINED_EARNINGS"
    # Revenue
    OPERATING_REVENUE = "OPERATING_REVENUE"
    NON_OPERATING_REVENUE = "NON_OPERATING_REVENUE"
    # Expenses
    COST_OF_GOODS_SOLD = "COST_OF_GOODS_SOLD"
    OPERATING_EXPENSE = "OPERATING_EXPENSE"
    NON_OPERATING_EXPENSE = "NON_OPERATING_EXPENSE"


class VoucherType(str, enum.Enum):
    JOURNAL = "JOURNAL"
    CASH_RECEIPT = "CASH_RECEIPT"
    CASH_PAYMENT = "CASH_PAYMENT"
    BANK_RECEIPT = "BANK_RECEIPT"
    BANK_PAYMENT = "BANK_PAYMENT"
    SALES = "SALES"
    PURCHASE = "PURCHASE"
    ADJUSTMENT = "ADJUSTMENT"
    OPENING = "OPENING"
    CLOSING = "CLOSING"


class VoucherStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    POSTED = "POSTED"
    REVERSED = "REVERSED"
    CANCELLED = "CANCELLED"


class EntityStatus(str, enum.Enum):
    """Lifecycle of a customer or supplier record."""
    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"
