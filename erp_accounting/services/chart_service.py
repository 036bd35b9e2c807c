"""
Chart of accounts service.

Owns the account registry and is the only place that moves an
account's cached current_balance. Every other service (journal
posting, linker, reconciliation) goes through update_balance.
"""

import logging
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from erp_accounting.config import get_settings
from erp_accounting.exceptions import (
    AccountNotFound,
    AccountInUse,
    ConcurrentUpdateConflict,
    DuplicateAccountCode,
    DuplicateAccountTags,
    SystemAccountProtected,
)
from erp_accounting.models.account import (
    Account,
    AccountTag,
    TYPE_CODE_DIGIT,
    net_balance,
    normal_balance_for,
    signed_amount,
)
from erp_accounting.models.customer import Customer
from erp_accounting.models.enums import (
    AccountType,
    AccountCategory,
    NormalBalance,
)
from erp_accounting.models.supplier import Supplier
from erp_accounting.schemas.account import (
    AccountCreate,
    AccountUpdate,
    BalanceAnomaly,
    DeduplicateResponse,
    DuplicateAccount,
)
from erp_accounting.services.audit import record_event
from erp_accounting.services.ledger_queries import (
    ZERO_TOTALS,
    journal_references,
    posted_line_totals,
)

logger = logging.getLogger(__name__)

# Columns an explicit null in an update must not clear
REQUIRED_ACCOUNT_FIELDS = {"account_name", "account_category", "is_active", "allow_posting"}

# (code, name, type, category, sub-category)
DEFAULT_ACCOUNTS = [
    ("1001", "Cash", AccountType.ASSET, AccountCategory.CURRENT_ASSET, "CASH_AND_CASH_EQUIVALENTS"),
    ("1002", "Bank Account", AccountType.ASSET, AccountCategory.CURRENT_ASSET, "CASH_AND_CASH_EQUIVALENTS"),
    ("1100", "Accounts Receivable", AccountType.ASSET, AccountCategory.CURRENT_ASSET, "ACCOUNTS_RECEIVABLE"),
    ("1200", "Inventory", AccountType.ASSET, AccountCategory.CURRENT_ASSET, "INVENTORY"),
    ("2001", "Accounts Payable", AccountType.LIABILITY, AccountCategory.CURRENT_LIABILITY, "ACCOUNTS_PAYABLE"),
    ("2100", "Accrued Expenses", AccountType.LIABILITY, AccountCategory.CURRENT_LIABILITY, "ACCRUED_EXPENSES"),
    ("3001", "Owner Equity", AccountType.EQUITY, AccountCategory.OWNER_EQUITY, None),
    ("3100", "Retained Earnings", AccountType.EQUITY, AccountCategory.RETAINED_EARNINGS, None),
    ("4001", "Sales Revenue", AccountType.REVENUE, AccountCategory.OPERATING_REVENUE, "SALES_REVENUE"),
    ("4100", "Service Revenue", AccountType.REVENUE, AccountCategory.OPERATING_REVENUE, "SERVICE_REVENUE"),
    ("5001", "Cost of Goods Sold", AccountType.EXPENSE, AccountCategory.COST_OF_GOODS_SOLD, None),
    ("5100", "Salaries and Wages", AccountType.EXPENSE, AccountCategory.OPERATING_EXPENSE, "SALARIES_WAGES"),
    ("5200", "Rent Expense", AccountType.EXPENSE, AccountCategory.OPERATING_EXPENSE, "RENT_EXPENSE"),
    ("5300", "Office Supplies", AccountType.EXPENSE, AccountCategory.OPERATING_EXPENSE, "OFFICE_SUPPLIES"),
]


class ChartService:
    """
    Chart of accounts operations.

    Like every service here it takes the session in its
    constructor and never commits: the caller owns the
    transaction boundary.
    """

    def __init__(self, db: Session):
        self.db = db
        self.settings = get_settings()

    # --- Lookups ---

    def get_account(self, account_id: int) -> Account:
        account = self.db.get(Account, account_id)
        if not account:
            raise AccountNotFound(
                f"Account {account_id} not found",
                details={"account_id": account_id},
            )
        return account

    def find_by_code(self, account_code: str) -> Account | None:
        return self.db.execute(
            select(Account).where(Account.account_code == account_code.upper())
        ).scalar_one_or_none()

    def find_by_tags(self, tags: list[str | None]) -> list[Account]:
        """
        Accounts whose tags match `tags` position by position.

        None matches anything at that position, and positions past
        the end of `tags` are not constrained. Results come back
        oldest first.
        """
        query = select(Account)
        for position, value in enumerate(tags):
            if value is None:
                continue
            query = query.where(
                Account.id.in_(
                    select(AccountTag.account_id).where(
                        AccountTag.position == position,
                        AccountTag.value == value,
                    )
                )
            )
        accounts = self.db.execute(
            query.order_by(Account.created_at, Account.id)
        ).scalars().all()
        return list(accounts)

    def list_accounts(
        self,
        account_type: AccountType | None = None,
        include_inactive: bool = False,
    ) -> list[Account]:
        query = select(Account)
        if account_type is not None:
            query = query.where(Account.account_type == account_type)
        if not include_inactive:
            query = query.where(Account.is_active.is_(True))
        accounts = self.db.execute(
            query.order_by(Account.account_code)
        ).scalars().all()
        return list(accounts)

    # --- Registry ---

    def create_account(self, request: AccountCreate) -> Account:
        """
        Create a ledger account.

        Raises DuplicateAccountCode if the code is taken,
        DuplicateAccountTags if another account already carries the
        same [role, ledger, entity code] tag triple and
        AccountNotFound if the parent account does not exist.
        """
        if request.account_code:
            account_code = request.account_code.strip().upper()
            if self.find_by_code(account_code):
                raise DuplicateAccountCode(
                    f"Account with code '{account_code}' already exists",
                    details={"account_code": account_code},
                )
        else:
            account_code = self._generate_account_code(request.account_type)

        if request.parent_account_id is not None:
            self.get_account(request.parent_account_id)

        if len(request.tags) >= 3:
            holders = self.find_by_tags(request.tags[:3])
            if holders:
                raise DuplicateAccountTags(
                    f"Account {holders[0].account_code} already carries tags "
                    f"{request.tags[:3]}",
                    details={
                        "tags": request.tags[:3],
                        "account_code": holders[0].account_code,
                    },
                )

        opening_balance = request.opening_balance or Decimal("0")
        account = Account(
            account_code=account_code,
            account_name=request.account_name.strip(),
            account_type=request.account_type,
            account_category=request.account_category,
            account_sub_category=request.account_sub_category,
            parent_account_id=request.parent_account_id,
            level=request.level,
            normal_balance=normal_balance_for(request.account_type),
            opening_balance=opening_balance,
            current_balance=opening_balance,
            description=request.description,
            is_active=request.is_active,
            is_system_account=request.is_system_account,
            allow_posting=request.allow_posting,
        )
        account.set_tags(request.tags)
        try:
            with self.db.begin_nested():
                self.db.add(account)
        except IntegrityError:
            # A concurrent transaction took the code after our check
            raise DuplicateAccountCode(
                f"Account with code '{account_code}' already exists",
                details={"account_code": account_code},
            )

        logger.info(
            "Created account %s %s", account.account_code, account.account_name,
            extra={"account_id": account.id, "account_type": account.account_type.value},
        )
        return account

    def _generate_account_code(self, account_type: AccountType) -> str:
        """Next free `{type digit}{count + 1 padded to 4}` code."""
        digit = TYPE_CODE_DIGIT[account_type]
        count = self.db.execute(
            select(func.count(Account.id)).where(Account.account_type == account_type)
        ).scalar()
        number = count + 1
        while self.find_by_code(f"{digit}{number:04d}"):
            number += 1
        return f"{digit}{number:04d}"

    def rename_account(self, account_id: int, new_name: str) -> Account:
        account = self.get_account(account_id)
        old_name = account.account_name
        account.account_name = new_name
        self.db.flush()
        logger.info(
            "Renamed account %s: %r -> %r", account.account_code, old_name, new_name
        )
        return account

    def update_account(self, account_id: int, request: AccountUpdate) -> Account:
        account = self.get_account(account_id)
        for field, value in request.model_dump(exclude_unset=True).items():
            if value is None and field in REQUIRED_ACCOUNT_FIELDS:
                continue
            setattr(account, field, value)
        self.db.flush()
        return account

    def delete_account(self, account_id: int) -> None:
        """
        Remove an account from the chart.

        System accounts are protected. An account with journal
        lines (in any status), child accounts or a linked customer
        or supplier is in use and stays.
        """
        account = self.get_account(account_id)

        if account.is_system_account:
            raise SystemAccountProtected(
                f"Account {account.account_code} is a system account",
                details={"account_code": account.account_code},
            )

        voucher_numbers = journal_references(self.db, account.id)
        if voucher_numbers:
            raise AccountInUse(
                f"Account {account.account_code} is referenced by journal entries",
                details={
                    "account_code": account.account_code,
                    "voucher_numbers": voucher_numbers,
                },
            )

        children = self.db.execute(
            select(Account.account_code).where(Account.parent_account_id == account.id)
        ).scalars().all()
        linked = self._linked_entity_codes(account.id)
        if children or linked:
            raise AccountInUse(
                f"Account {account.account_code} is still referenced",
                details={
                    "account_code": account.account_code,
                    "child_accounts": list(children),
                    "linked_entities": linked,
                },
            )

        self.db.delete(account)
        self.db.flush()
        logger.info("Deleted account %s", account.account_code)

    def _linked_entity_codes(self, account_id: int) -> list[str]:
        customers = self.db.execute(
            select(Customer.customer_code).where(Customer.account_id == account_id)
        ).scalars().all()
        suppliers = self.db.execute(
            select(Supplier.supplier_code).where(Supplier.account_id == account_id)
        ).scalars().all()
        return [*customers, *suppliers]

    def initialize_default_accounts(self) -> list[Account]:
        """Seed the standard system accounts. Existing codes are left alone."""
        created = []
        for code, name, account_type, category, sub_category in DEFAULT_ACCOUNTS:
            if self.find_by_code(code):
                continue
            created.append(self.create_account(AccountCreate(
                account_code=code,
                account_name=name,
                account_type=account_type,
                account_category=category,
                account_sub_category=sub_category,
                is_system_account=True,
            )))
        logger.info("Initialized %d default accounts", len(created))
        return created

    # --- Balances ---

    def update_balance(
        self, account_id: int, amount: Decimal, is_debit: bool
    ) -> Account:
        """
        Apply a debit or credit to an account's cached balance.

        The write is a compare-and-swap on the version column: it
        only succeeds if nobody changed the account since we read it.
        A lost race re-reads and retries; after
        BALANCE_UPDATE_MAX_RETRIES lost races ConcurrentUpdateConflict
        is raised and the caller must roll back.
        """
        self.db.flush()
        max_retries = self.settings.BALANCE_UPDATE_MAX_RETRIES

        for attempt in range(1, max_retries + 1):
            row = self.db.execute(
                select(Account.current_balance, Account.version, Account.normal_balance)
                .where(Account.id == account_id)
            ).one_or_none()
            if row is None:
                raise AccountNotFound(
                    f"Account {account_id} not found",
                    details={"account_id": account_id},
                )

            current_balance, version, normal_balance = row
            new_balance = current_balance + signed_amount(normal_balance, amount, is_debit)

            result = self.db.execute(
                update(Account)
                .where(Account.id == account_id, Account.version == version)
                .values(
                    current_balance=new_balance,
                    version=version + 1,
                    updated_at=datetime.utcnow(),
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 1:
                account = self.db.get(Account, account_id)
                self.db.expire(account, ["current_balance", "version", "updated_at"])
                return account

            logger.debug(
                "Balance update lost race on account %s (attempt %d)",
                account_id, attempt,
            )

        logger.error(
            "Balance update on account %s gave up after %d attempts",
            account_id, max_retries,
        )
        raise ConcurrentUpdateConflict(
            f"Account {account_id} is being updated concurrently",
            details={"account_id": account_id, "attempts": max_retries},
        )

    def computed_balances(self) -> dict[int, Decimal]:
        """Balance of every account recomputed from posted lines."""
        totals = posted_line_totals(self.db)
        balances = {}
        for account in self.db.execute(select(Account)).scalars():
            line_totals = totals.get(account.id, ZERO_TOTALS)
            balances[account.id] = account.opening_balance + net_balance(
                account.normal_balance, line_totals.debit, line_totals.credit
            )
        return balances

    def balance_anomalies(self) -> list[BalanceAnomaly]:
        """Accounts whose cached balance disagrees with the posted ledger."""
        computed = self.computed_balances()
        anomalies = []
        accounts = self.db.execute(
            select(Account).order_by(Account.account_code)
        ).scalars()
        for account in accounts:
            expected = computed[account.id]
            if account.current_balance == expected:
                continue
            anomalies.append(BalanceAnomaly(
                account_id=account.id,
                account_code=account.account_code,
                account_name=account.account_name,
                cached_balance=account.current_balance,
                computed_balance=expected,
                difference=account.current_balance - expected,
            ))
            logger.warning(
                "Balance anomaly on account %s: cached %s, ledger %s",
                account.account_code, account.current_balance, expected,
                extra={"account_id": account.id},
            )
        return anomalies

    def reconcile_balances(self) -> list[BalanceAnomaly]:
        """
        Reset every drifted cached balance to its ledger value.

        The correction goes through update_balance so it takes part
        in the same compare-and-swap as postings. Returns the
        anomalies that were repaired.
        """
        anomalies = self.balance_anomalies()
        for anomaly in anomalies:
            account = self.get_account(anomaly.account_id)
            correction = anomaly.computed_balance - anomaly.cached_balance
            increases_on_debit = account.normal_balance == NormalBalance.DEBIT
            is_debit = increases_on_debit if correction > 0 else not increases_on_debit
            self.update_balance(account.id, abs(correction), is_debit)

        if anomalies:
            record_event(
                self.db,
                "BALANCES_RECONCILED",
                accounts=[a.account_code for a in anomalies],
            )
            logger.info("Reconciled %d account balances", len(anomalies))
        return anomalies

    # --- Deduplication ---

    def deduplicate(self, tag_prefix: list[str]) -> DeduplicateResponse:
        """
        Collapse subsidiary accounts that share an entity code.

        Accounts matching `tag_prefix` are grouped by their third
        tag. In each group the earliest account survives; customers
        and suppliers pointing at a duplicate are moved onto the
        survivor before the duplicate is deleted. A duplicate that
        already carries journal lines is left in place and reported.
        """
        groups: dict[str, list[Account]] = {}
        for account in self.find_by_tags(list(tag_prefix)):
            tags = account.tags
            if len(tags) < 3:
                continue
            groups.setdefault(tags[2], []).append(account)

        removed: list[DuplicateAccount] = []
        skipped: list[DuplicateAccount] = []
        repointed = 0
        duplicate_groups = 0

        for entity_code, members in groups.items():
            if len(members) < 2:
                continue
            duplicate_groups += 1
            survivor, duplicates = members[0], members[1:]

            for duplicate in duplicates:
                repointed += self._repoint_entities(duplicate, survivor)

                voucher_numbers = journal_references(self.db, duplicate.id)
                if voucher_numbers:
                    skipped.append(DuplicateAccount(
                        account_id=duplicate.id,
                        account_code=duplicate.account_code,
                        survivor_id=survivor.id,
                        entity_code=entity_code,
                        reason=f"referenced by {', '.join(voucher_numbers)}",
                    ))
                    logger.warning(
                        "Duplicate account %s kept: it has journal lines",
                        duplicate.account_code,
                    )
                    continue

                removed.append(DuplicateAccount(
                    account_id=duplicate.id,
                    account_code=duplicate.account_code,
                    survivor_id=survivor.id,
                    entity_code=entity_code,
                ))
                self.db.delete(duplicate)

        self.db.flush()

        if removed or skipped:
            record_event(
                self.db,
                "ACCOUNTS_DEDUPLICATED",
                tag_prefix=list(tag_prefix),
                removed=[d.account_code for d in removed],
                skipped=[d.account_code for d in skipped],
            )
        logger.info(
            "Deduplicated %s: %d groups, %d removed, %d kept",
            "/".join(tag_prefix), duplicate_groups, len(removed), len(skipped),
        )
        return DeduplicateResponse(
            tag_prefix=list(tag_prefix),
            groups=duplicate_groups,
            removed=removed,
            skipped=skipped,
            repointed_entities=repointed,
        )

    def _repoint_entities(self, duplicate: Account, survivor: Account) -> int:
        moved = 0
        for model in (Customer, Supplier):
            entities = self.db.execute(
                select(model).where(model.account_id == duplicate.id)
            ).scalars().all()
            for entity in entities:
                entity.account = survivor
                entity.account_code = survivor.account_code
                moved += 1
        if moved:
            self.db.flush()
        return moved
