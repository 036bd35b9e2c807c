"""
Supplier model.

Mirror image of Customer on the payables side: a supplier owns
at most one subsidiary Accounts Payable account.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import String, Boolean, DateTime, ForeignKey, Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from erp_accounting.models.base import Base
from erp_accounting.models.enums import EntityStatus


class Supplier(Base):
    __tablename__ = "suppliers"

    id: Mapped[int] = mapped_column(primary_key=True)
    supplier_code: Mapped[str] = mapped_column(
        String(20), unique=True, nullable=False
    )
    company_name: Mapped[str] = mapped_column(String(200), nullable=False)
    contact_person: Mapped[str | None] = mapped_column(
        String(100), nullable=True
    )
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
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
        return self.supplier_code

    @property
    def display_name(self) -> str:
        return self.company_name

    @property
    def accounting_integration(self) -> dict:
        return {
            "account_id": self.account_id,
            "account_code": self.account_code,
            "auto_create_account": self.auto_create_account,
        }

    def __repr__(self) -> str:
        return f"<Supplier {self.supplier_code} {self.company_name}>"
