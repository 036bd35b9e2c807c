"""
Database models package.

All models must be imported here so that Alembic can discover
them through Base.metadata when generating migrations.
"""

from erp_accounting.models.base import Base
from erp_accounting.models.enums import (
    AccountType,
    AccountCategory,
    NormalBalance,
    VoucherType,
    VoucherStatus,
    EntityStatus,
)
from erp_accounting.models.audit_log import AuditLog
from erp_accounting.models.account import Account, AccountTag
from erp_accounting.models.journal_entry import (
    JournalEntry,
    JournalLine,
    VoucherSequence,
)
from erp_accounting.models.customer import Customer
from erp_accounting.models.supplier import Supplier

__all__ = [
    "Base",
    "AccountType",
    "AccountCategory",
    "NormalBalance",
    "VoucherType",
    "VoucherStatus",
    "EntityStatus",
    "AuditLog",
    "Account",
    "AccountTag",
    "JournalEntry",
    "JournalLine",
    "VoucherSequence",
    "Customer",
    "Supplier",
]
