"""
Subsidiary account linker.

Keeps exactly one receivable account per customer and one payable
account per supplier. The account is found again by its tag triple
[role, ledger, entity code], so a lost link is repaired by reuse
instead of creating a second account.

Hooks are explicit calls made by the customer and supplier
services; nothing here fires implicitly on a model save.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import select
from sqlalchemy.orm import Session

from erp_accounting.config import get_settings
from erp_accounting.exceptions import (
    AccountingError,
    AlreadyLinked,
    ConcurrentUpdateConflict,
    DuplicateAccountCode,
    HasJournalReferences,
)
from erp_accounting.models.account import Account
from erp_accounting.models.customer import Customer
from erp_accounting.models.enums import (
    AccountType,
    AccountCategory,
    EntityStatus,
)
from erp_accounting.models.supplier import Supplier
from erp_accounting.schemas.account import AccountCreate
from erp_accounting.schemas.entity import (
    EntityAccount,
    LinkedAccount,
    LinkResult,
    MissingAccountsSummary,
    SubsidiarySummary,
    SubsidiarySummaryRow,
)
from erp_accounting.services.chart_service import ChartService
from erp_accounting.services.ledger_queries import journal_references

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LinkProfile:
    """How a kind of entity maps onto its subsidiary account."""
    entity_type: str
    role_tag: str
    ledger_tag: str
    account_type: AccountType
    account_category: AccountCategory
    account_sub_category: str
    name_prefix: str
    code_digit: str
    first_number: int

    def tags_for(self, entity_code: str) -> list[str]:
        return [self.role_tag, self.ledger_tag, entity_code.lower()]

    def account_name_for(self, display_name: str) -> str:
        return f"{self.name_prefix} - {display_name}"


CUSTOMER_PROFILE = LinkProfile(
    entity_type="customer",
    role_tag="customer",
    ledger_tag="accounts-receivable",
    account_type=AccountType.ASSET,
    account_category=AccountCategory.CURRENT_ASSET,
    account_sub_category="ACCOUNTS_RECEIVABLE",
    name_prefix="Accounts Receivable",
    code_digit="1",
    first_number=1001,
)

SUPPLIER_PROFILE = LinkProfile(
    entity_type="supplier",
    role_tag="supplier",
    ledger_tag="accounts-payable",
    account_type=AccountType.LIABILITY,
    account_category=AccountCategory.CURRENT_LIABILITY,
    account_sub_category="ACCOUNTS_PAYABLE",
    name_prefix="Accounts Payable",
    code_digit="2",
    first_number=2001,
)


def profile_for(entity) -> LinkProfile:
    """Profile for a customer or supplier instance, or for either model class."""
    model = entity if isinstance(entity, type) else type(entity)
    if issubclass(model, Customer):
        return CUSTOMER_PROFILE
    if issubclass(model, Supplier):
        return SUPPLIER_PROFILE
    raise TypeError(f"No subsidiary account profile for {model.__name__}")


class LinkerService:

    def __init__(self, db: Session):
        self.db = db
        self.chart = ChartService(db)
        self.settings = get_settings()

    def _lock_entity(self, entity: Customer | Supplier) -> None:
        """SELECT ... FOR UPDATE the entity row and refresh it from the database."""
        model = type(entity)
        self.db.flush()
        self.db.execute(
            select(model)
            .where(model.id == entity.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one()

    def _next_account_code(self, profile: LinkProfile) -> str:
        """`{digit}{n}` with n one past the highest subsidiary number in use."""
        codes = self.db.execute(
            select(Account.account_code).where(
                Account.account_type == profile.account_type,
                Account.account_sub_category == profile.account_sub_category,
                Account.account_code.like(f"{profile.code_digit}%"),
            )
        ).scalars().all()

        numbers = [
            int(code[1:]) for code in codes
            if code[1:].isdigit() and int(code[1:]) >= profile.first_number
        ]
        number = max(numbers) + 1 if numbers else profile.first_number
        while self.chart.find_by_code(f"{profile.code_digit}{number}"):
            number += 1
        return f"{profile.code_digit}{number}"

    def _link(self, entity: Customer | Supplier, account: Account) -> None:
        entity.account = account
        entity.account_code = account.account_code
        self.db.flush()

    def _create_subsidiary_account(
        self, entity: Customer | Supplier, profile: LinkProfile, tags: list[str]
    ) -> Account:
        """
        Open a new subsidiary account under the next free code.

        A code taken by a concurrent transaction between choosing it
        and inserting it is retried with a fresh code, up to
        CODE_ALLOCATION_MAX_ATTEMPTS times.
        """
        attempts = self.settings.CODE_ALLOCATION_MAX_ATTEMPTS
        for attempt in range(1, attempts + 1):
            account_code = self._next_account_code(profile)
            try:
                return self.chart.create_account(AccountCreate(
                    account_code=account_code,
                    account_name=profile.account_name_for(entity.display_name),
                    account_type=profile.account_type,
                    account_category=profile.account_category,
                    account_sub_category=profile.account_sub_category,
                    description=f"Subsidiary account for {profile.entity_type} {entity.entity_code}",
                    tags=tags,
                ))
            except DuplicateAccountCode:
                logger.warning(
                    "Account code %s taken while linking %s %s (attempt %d/%d)",
                    account_code, profile.entity_type, entity.entity_code, attempt, attempts,
                )

        raise ConcurrentUpdateConflict(
            f"Could not allocate an account code for {profile.entity_type} "
            f"{entity.entity_code} after {attempts} attempts",
            details={"entity_code": entity.entity_code, "attempts": attempts},
        )

    def _ensure_account(self, entity: Customer | Supplier, profile: LinkProfile) -> Account:
        """Link to the tagged account or a new one. The caller holds the entity lock."""
        if entity.account_id is not None:
            return self.chart.get_account(entity.account_id)

        tags = profile.tags_for(entity.entity_code)
        existing = self.chart.find_by_tags(tags)
        if existing:
            account = existing[0]
            logger.info(
                "Linked %s %s to existing account %s",
                profile.entity_type, entity.entity_code, account.account_code,
            )
        else:
            account = self._create_subsidiary_account(entity, profile, tags)
            logger.info(
                "Created account %s for %s %s",
                account.account_code, profile.entity_type, entity.entity_code,
            )

        self._link(entity, account)
        return account

    def on_entity_created(self, entity: Customer | Supplier) -> Account | None:
        """
        Make sure the entity has its subsidiary account.

        Idempotent: an entity that is already linked gets its
        current account back, and an account carrying the entity's
        tag triple is reused rather than duplicated. Returns None
        when the entity opted out of automatic accounts.
        """
        profile = profile_for(entity)
        if not entity.auto_create_account:
            logger.debug("%s %s opted out of an account", profile.entity_type, entity.entity_code)
            return None

        self._lock_entity(entity)
        return self._ensure_account(entity, profile)

    def create_account_for(self, entity: Customer | Supplier) -> Account:
        """
        Give an unlinked entity its subsidiary account on request.

        Works for entities that opted out of automatic accounts.
        Raises AlreadyLinked when the entity already has one.
        """
        profile = profile_for(entity)
        self._lock_entity(entity)
        if entity.account_id is not None:
            raise AlreadyLinked(
                f"{profile.entity_type.capitalize()} {entity.entity_code} already has "
                f"a linked account ({entity.account_code})",
                details={
                    "entity_code": entity.entity_code,
                    "account_id": entity.account_id,
                    "account_code": entity.account_code,
                },
            )
        return self._ensure_account(entity, profile)

    def account_info(self, entity: Customer | Supplier) -> EntityAccount:
        """The entity's subsidiary account and its current balance."""
        profile = profile_for(entity)
        info = EntityAccount(
            entity_type=profile.entity_type,
            entity_id=entity.id,
            entity_code=entity.entity_code,
            display_name=entity.display_name,
            is_linked=entity.account_id is not None,
        )
        if entity.account_id is None:
            info.message = f"No account linked to this {profile.entity_type}"
        else:
            info.account = LinkedAccount.model_validate(
                self.chart.get_account(entity.account_id)
            )
        return info

    def accounting_summary(self, model: type[Customer] | type[Supplier]) -> SubsidiarySummary:
        """
        Integration coverage and outstanding balance for one kind of entity.

        Inactive entities are left out. The percentage is rounded
        to one decimal place.
        """
        entities = self.db.execute(
            select(model)
            .where(model.status != EntityStatus.INACTIVE)
            .order_by(model.id)
        ).scalars().all()

        rows = []
        for entity in entities:
            account = entity.account
            rows.append(SubsidiarySummaryRow(
                entity_id=entity.id,
                entity_code=entity.entity_code,
                display_name=entity.display_name,
                account_id=account.id if account else None,
                account_code=account.account_code if account else None,
                account_name=account.account_name if account else None,
                balance=account.current_balance if account else Decimal("0"),
            ))

        total = len(rows)
        linked = sum(1 for row in rows if row.account_id is not None)
        percentage = Decimal("0")
        if total:
            percentage = (Decimal(linked * 100) / total).quantize(
                Decimal("0.1"), rounding=ROUND_HALF_UP
            )

        return SubsidiarySummary(
            entity_type=profile_for(model).entity_type,
            total_entities=total,
            linked_entities=linked,
            unlinked_entities=total - linked,
            total_balance=sum((row.balance for row in rows), Decimal("0")),
            integration_percentage=percentage,
            entities=rows,
        )

    def on_entity_renamed(self, entity: Customer | Supplier) -> Account | None:
        """Carry the entity's new display name onto its linked account."""
        if entity.account_id is None:
            return None
        profile = profile_for(entity)
        account = self.chart.get_account(entity.account_id)
        new_name = profile.account_name_for(entity.display_name)
        if account.account_name == new_name:
            return account
        return self.chart.rename_account(account.id, new_name)

    def has_journal_entries(self, entity: Customer | Supplier) -> bool:
        if entity.account_id is None:
            return False
        return bool(journal_references(self.db, entity.account_id))

    def on_entity_delete_requested(self, entity: Customer | Supplier) -> None:
        """
        Retire an entity and its subsidiary account.

        Blocked while any voucher, in any status, has a line on the
        account. Otherwise the account is unlinked and deleted and
        the entity is marked inactive.
        """
        profile = profile_for(entity)
        account_id = entity.account_id

        if account_id is not None:
            voucher_numbers = journal_references(self.db, account_id)
            if voucher_numbers:
                raise HasJournalReferences(
                    f"Cannot delete {profile.entity_type} {entity.entity_code}: "
                    f"its account is used by {len(voucher_numbers)} journal entries",
                    details={
                        "entity_code": entity.entity_code,
                        "account_id": account_id,
                        "voucher_numbers": voucher_numbers,
                    },
                )

        entity.account = None
        entity.account_code = None
        entity.status = EntityStatus.INACTIVE
        self.db.flush()

        if account_id is not None:
            self.chart.delete_account(account_id)
        logger.info("Deactivated %s %s", profile.entity_type, entity.entity_code)

    def create_missing_accounts(self) -> MissingAccountsSummary:
        """Link or create accounts for every entity that has none."""
        results: list[LinkResult] = []

        for model in (Customer, Supplier):
            entities = self.db.execute(
                select(model).where(model.account_id.is_(None)).order_by(model.id)
            ).scalars().all()

            for entity in entities:
                profile = profile_for(entity)
                result = LinkResult(
                    entity_type=profile.entity_type,
                    entity_id=entity.id,
                    entity_code=entity.entity_code,
                    status="skipped",
                )
                if not entity.auto_create_account or entity.status == EntityStatus.INACTIVE:
                    results.append(result)
                    continue

                reused = bool(self.chart.find_by_tags(profile.tags_for(entity.entity_code)))
                try:
                    account = self.on_entity_created(entity)
                except AccountingError as e:
                    logger.error(
                        "Could not link %s %s: %s",
                        profile.entity_type, entity.entity_code, e.message,
                    )
                    result.status = "error"
                    result.error = e.message
                else:
                    result.status = "linked" if reused else "created"
                    result.account_id = account.id
                results.append(result)

        summary = MissingAccountsSummary(
            created=sum(1 for r in results if r.status == "created"),
            linked=sum(1 for r in results if r.status == "linked"),
            skipped=sum(1 for r in results if r.status == "skipped"),
            errors=sum(1 for r in results if r.status == "error"),
            results=results,
        )
        logger.info(
            "Missing account run: %d created, %d linked, %d skipped, %d errors",
            summary.created, summary.linked, summary.skipped, summary.errors,
        )
        return summary
