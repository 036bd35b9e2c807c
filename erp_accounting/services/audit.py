"""Append-only audit trail for ledger events."""

import json
import logging

from sqlalchemy.orm import Session

from erp_accounting.models.audit_log import AuditLog

logger = logging.getLogger(__name__)


def record_event(db: Session, event_type: str, **details) -> AuditLog:
    """
    Add an audit record to the current session.

    The record commits or rolls back together with the change it
    describes, so a failed posting never leaves an audit entry behind.
    """
    entry = AuditLog(
        event_type=event_type,
        details=json.dumps(details, default=str, sort_keys=True),
    )
    db.add(entry)
    logger.debug("Audit event %s", event_type, extra={"audit": details})
    return entry
