"""
Chart of accounts model.

Every ledger account (cash, sales revenue, the receivable of a
single customer, ...) is an Account. Journal lines are posted
against these accounts, and each posting moves the cached
current_balance through ChartService.update_balance.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    String, Boolean, DateTime, Integer, Numeric, ForeignKey,
    UniqueConstraint, Index, Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from erp_accounting.models.base import Base
from erp_accounting.models.enums import (
    AccountType,
    AccountCategory,
    NormalBalance,
)


# ASSET and EXPENSE grow with debits; everything else with credits
NORMAL_BALANCE_BY_TYPE: dict[AccountType, NormalBalance] = {
    AccountType.ASSET: NormalBalance.DEBIT,
    AccountType.EXPENSE: NormalBalance.DEBIT,
    AccountType.LIABILITY: NormalBalance.CREDIT,
    AccountType.EQUITY: NormalBalance.CREDIT,
    AccountType.REVENUE: NormalBalance.CREDIT,
}

# Leading digit of auto-generated account codes
TYPE_CODE_DIGIT: dict[AccountType, str] = {
    AccountType.ASSET: "1",
    AccountType.LIABILITY: "2",
    AccountType.EQUITY: "3",
    AccountType.REVENUE: "4",
    AccountType.EXPENSE: "5",
}


def normal_balance_for(account_type: AccountType) -> NormalBalance:
    return NORMAL_BALANCE_BY_TYPE[account_type]


def net_balance(
    normal_balance: NormalBalance, total_debit: Decimal, total_credit: Decimal
) -> Decimal:
    """Net of debits and credits, positive on the normal side."""
    if normal_balance == NormalBalance.DEBIT:
        return total_debit - total_credit
    return total_credit - total_debit


def signed_amount(
    normal_balance: NormalBalance, amount: Decimal, is_debit: bool
) -> Decimal:
    """
    Effect of a debit or credit of `amount` on an account balance.

    A movement on the normal side increases the balance, a
    movement on the opposite side decreases it.
    """
    if is_debit == (normal_balance == NormalBalance.DEBIT):
        return amount
    return -amount


class Account(Base):
    """
    A single account in the chart of accounts.

    System accounts and accounts referenced by any journal line
    are never deleted. The version column backs the optimistic
    compare-and-swap used for balance updates.
    """

    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(primary_key=True)
    account_code: Mapped[str] = mapped_column(
        String(20), unique=True, nullable=False
    )
    account_name: Mapped[str] = mapped_column(String(200), nullable=False)
    account_type: Mapped[AccountType] = mapped_column(
        SAEnum(AccountType, name="account_type_enum"),
        nullable=False,
        index=True,
    )
    account_category: Mapped[AccountCategory] = mapped_column(
        SAEnum(AccountCategory, name="account_category_enum"),
        nullable=False,
    )
    account_sub_category: Mapped[str | None] = mapped_column(
        String(50), nullable=True
    )
    parent_account_id: Mapped[int | None] = mapped_column(
        ForeignKey("accounts.id"), nullable=True, index=True
    )
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    normal_balance: Mapped[NormalBalance] = mapped_column(
        SAEnum(NormalBalance, name="normal_balance_enum"),
        nullable=False,
    )
    opening_balance: Mapped[Decimal] = mapped_column(
        Numeric(19, 4), nullable=False, default=Decimal("0")
    )
    current_balance: Mapped[Decimal] = mapped_column(
        Numeric(19, 4), nullable=False, default=Decimal("0")
    )
    description: Mapped[str | None] = mapped_column(
        String(500), nullable=True
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True
    )
    is_system_account: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    allow_posting: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    tag_rows: Mapped[list["AccountTag"]] = relationship(
        back_populates="account",
        order_by="AccountTag.position",
        cascade="all, delete-orphan",
    )

    @property
    def tags(self) -> list[str]:
        return [t.value for t in self.tag_rows]

    def set_tags(self, tags: list[str]) -> None:
        self.tag_rows = [
            AccountTag(position=i, value=value) for i, value in enumerate(tags)
        ]

    def __repr__(self) -> str:
        return f"<Account {self.account_code} ({self.account_type.value})>"


class AccountTag(Base):
    """
    One positional tag of an account.

    Tags are stored as rows so the linker can match on a given
    position, e.g. position 2 == "cust001".
    """

    __tablename__ = "account_tags"
    __table_args__ = (
        UniqueConstraint("account_id", "position", name="uq_account_tag_position"),
        Index("ix_account_tags_position_value", "position", "value"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    account_id: Mapped[int] = mapped_column(
        ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    value: Mapped[str] = mapped_column(String(100), nullable=False)

    account: Mapped["Account"] = relationship(back_populates="tag_rows")
