"""
Customer model.

A customer owns at most one subsidiary Accounts Receivable
account. The link lives in the accounting integration columns
(account_id, account_code, auto_create_account) and is managed
by the LinkerService, never directly by the customer endpoints.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import String, Boolean, DateTime, ForeignKey, Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from erp_accounting.models.base import Base
from erp_accounting.models.enums import EntityStatus


class Customer(Base):
    __tablename__ = "customers"

    id: Mapped[int] = mapped_column(primary_key=True)
    customer_code: Mapped[str] = mapped_column(
        String(20), unique=True, nullable=False
    )
    first_name: Mapped[str] = mapped_column(String(50), nullable=False)
    last_name: Mapped[str] = mapped_column(String(50), nullable=False)
    company_name: Mapped[str | None] = mapped_column(
        String(200), nullable=True
    )
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    phone: Mapped[str | None] = mapped_column(String(30), nullable=True)
    status: Mapped[EntityStatus] = mapped_column(
        SAEnum(EntityStatus, name="entity_status_enum"),
        nullable=False,
        default=EntityStatus.ACTIVE,
    )

    # Accounting integration
    account_id: Mapped[int | None] = mapped_column(
        ForeignKey("accounts.id"), nullable=True, index=True
    )
    account_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    auto_create_account: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    account: Mapped[Optional["Account"]] = relationship()

    @property
    def entity_code(self) -> str:
        return self.customer_code

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def display_name(self) -> str:
        return self.company_name or self.full_name

    @property
    def accounting_integration(self) -> dict:
        return {
            "account_id": self.account_id,
            "account_code": self.account_code,
            "auto_create_account": self.auto_create_account,
        }

    def __repr__(self) -> str:
        return f"<Customer {self.customer_code} {self.display_name}>"
