"""
Audit log model.

Records ledger events that change money or structure: postings,
reversals, deduplication and balance reconciliation runs.
"""

from datetime import datetime

from sqlalchemy import String, DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column

from erp_accounting.models.base import Base


class AuditLog(Base):
    """
    Immutable record of a ledger event.

    Append-only: an audit record is never updated or deleted.
    """

    __tablename__ = "audit_log"

    id: Mapped[int] = mapped_column(primary_key=True)
    event_type: Mapped[str] = mapped_column(String(100), nullable=False)
    details: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
