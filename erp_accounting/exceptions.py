"""
Accounting error taxonomy.

Every business-rule failure raised by a service is an
AccountingError. The API layer turns it into an HTTP error
whose body is to_dict(): a stable code, a readable message
and the details a client needs to resolve the problem
(which vouchers block a delete, which totals disagree, ...).

Consistency anomalies (a cached balance that disagrees with
the ledger, duplicate subsidiary accounts) are NOT exceptions.
They are logged and returned by the diagnostic operations.
"""

from typing import Any


class AccountingError(Exception):
    """Base class for all accounting-core errors."""

    code = "ACCOUNTING_ERROR"
    status_code = 400

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        result = {"code": self.code, "message": self.message}
        if self.details:
            result["details"] = self.details
        return result


# --- Validation errors (client-correctable) ---

class LedgerValidationError(AccountingError):
    status_code = 400


class UnbalancedEntry(LedgerValidationError):
    code = "UNBALANCED_ENTRY"


class InvalidLine(LedgerValidationError):
    code = "INVALID_LINE"


class DuplicateAccountCode(LedgerValidationError):
    code = "DUPLICATE_ACCOUNT_CODE"


class PostingNotAllowed(LedgerValidationError):
    code = "POSTING_NOT_ALLOWED"


class InvalidStatusTransition(LedgerValidationError):
    code = "INVALID_STATUS_TRANSITION"


class AlreadyLinked(LedgerValidationError):
    code = "ALREADY_LINKED"


# --- Lookups ---

class NotFoundError(AccountingError):
    status_code = 404


class AccountNotFound(NotFoundError):
    code = "ACCOUNT_NOT_FOUND"


class VoucherNotFound(NotFoundError):
    code = "VOUCHER_NOT_FOUND"


class EntityNotFound(NotFoundError):
    code = "ENTITY_NOT_FOUND"


# --- Conflict errors (business-rule blocks) ---

class ConflictError(AccountingError):
    status_code = 409


class AccountInUse(ConflictError):
    code = "ACCOUNT_IN_USE"


class SystemAccountProtected(ConflictError):
    code = "SYSTEM_ACCOUNT_PROTECTED"


class DuplicateAccountTags(ConflictError):
    code = "DUPLICATE_ACCOUNT_TAGS"


class HasJournalReferences(ConflictError):
    code = "HAS_JOURNAL_REFERENCES"


class AlreadyReversed(ConflictError):
    code = "ALREADY_REVERSED"


class DuplicateEntityCode(ConflictError):
    code = "DUPLICATE_ENTITY_CODE"


# --- Concurrency ---

class ConcurrentUpdateConflict(ConflictError):
    code = "CONCURRENT_UPDATE_CONFLICT"
