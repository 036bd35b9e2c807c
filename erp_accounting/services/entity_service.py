"""
Customer and supplier services.

Only the accounting-relevant side of these records lives here.
Every lifecycle step that touches the ledger is handed to the
LinkerService explicitly: creation links an account, a name
change renames it, deletion is guarded by its journal history.
"""

import logging
import re

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from erp_accounting.config import get_settings
from erp_accounting.exceptions import (
    ConcurrentUpdateConflict,
    DuplicateEntityCode,
    EntityNotFound,
)
from erp_accounting.models.customer import Customer
from erp_accounting.models.enums import EntityStatus
from erp_accounting.models.supplier import Supplier
from erp_accounting.schemas.entity import (
    CustomerCreate,
    CustomerUpdate,
    EntityAccount,
    SubsidiarySummary,
    SupplierCreate,
    SupplierUpdate,
)
from erp_accounting.services.linker_service import LinkerService

logger = logging.getLogger(__name__)


class _EntityService:
    """Shared plumbing for customers and suppliers."""

    model: type[Customer] | type[Supplier]
    code_field: str
    code_prefix: str
    required_fields: tuple[str, ...]
    label: str

    def __init__(self, db: Session):
        self.db = db
        self.linker = LinkerService(db)

    def _code_column(self):
        return getattr(self.model, self.code_field)

    def _next_code(self) -> str:
        """Next `{prefix}NNNN` code after the highest one issued."""
        pattern = re.compile(rf"^{self.code_prefix}(\d+)$")
        codes = self.db.execute(
            select(self._code_column()).where(
                self._code_column().like(f"{self.code_prefix}%")
            )
        ).scalars().all()
        numbers = [int(m.group(1)) for m in map(pattern.match, codes) if m]
        return f"{self.code_prefix}{max(numbers, default=0) + 1:04d}"

    def _check_code_free(self, code: str) -> None:
        existing = self.db.execute(
            select(self.model.id).where(self._code_column() == code)
        ).first()
        if existing:
            raise DuplicateEntityCode(
                f"{self.label.capitalize()} with code '{code}' already exists",
                details={"code": code},
            )

    def _check_email_free(self, email: str | None, exclude_id: int | None = None) -> None:
        if not email:
            return
        query = select(self.model.id).where(self.model.email == email)
        if exclude_id is not None:
            query = query.where(self.model.id != exclude_id)
        if self.db.execute(query).first():
            raise DuplicateEntityCode(
                f"{self.label.capitalize()} with email '{email}' already exists",
                details={"email": email},
            )

    def _insert(self, entity, code: str) -> bool:
        """Insert the entity under `code`. False when the unique constraint fires."""
        setattr(entity, self.code_field, code)
        try:
            with self.db.begin_nested():
                self.db.add(entity)
        except IntegrityError:
            return False
        return True

    def _create(self, entity, requested_code: str | None):
        if requested_code:
            code = requested_code.strip().upper()
            self._check_code_free(code)
            if not self._insert(entity, code):
                raise DuplicateEntityCode(
                    f"{self.label.capitalize()} with code '{code}' already exists",
                    details={"code": code},
                )
        else:
            attempts = get_settings().CODE_ALLOCATION_MAX_ATTEMPTS
            for attempt in range(1, attempts + 1):
                code = self._next_code()
                if self._insert(entity, code):
                    break
                logger.warning(
                    "%s code %s taken concurrently (attempt %d/%d)",
                    self.label.capitalize(), code, attempt, attempts,
                )
            else:
                raise ConcurrentUpdateConflict(
                    f"Could not allocate a {self.label} code after {attempts} attempts",
                    details={"attempts": attempts},
                )
        logger.info("Created %s %s", self.label, code)

        self.linker.on_entity_created(entity)
        return entity

    def get(self, entity_id: int):
        entity = self.db.get(self.model, entity_id)
        if not entity:
            raise EntityNotFound(
                f"{self.label.capitalize()} {entity_id} not found",
                details={"entity_id": entity_id},
            )
        return entity

    def list_entities(self, include_inactive: bool = False) -> list:
        query = select(self.model)
        if not include_inactive:
            query = query.where(self.model.status != EntityStatus.INACTIVE)
        return list(
            self.db.execute(query.order_by(self._code_column())).scalars().all()
        )

    def update(self, entity_id: int, request):
        """
        Apply changes to an entity.

        Setting the status to inactive goes through the same guarded
        path as delete: refused while journal entries use the
        entity's account, otherwise the account is removed.
        Reactivating an entity links its account again.
        """
        entity = self.get(entity_id)
        changes = request.model_dump(exclude_unset=True)
        if "email" in changes:
            self._check_email_free(changes["email"], exclude_id=entity.id)

        deactivate = (
            changes.get("status") == EntityStatus.INACTIVE
            and entity.status != EntityStatus.INACTIVE
        )
        if deactivate:
            del changes["status"]
        reactivate = (
            changes.get("status") not in (None, EntityStatus.INACTIVE)
            and entity.status == EntityStatus.INACTIVE
        )

        old_name = entity.display_name
        for field, value in changes.items():
            if value is None and field in self.required_fields:
                continue
            setattr(entity, field, value)
        self.db.flush()

        if entity.display_name != old_name:
            self.linker.on_entity_renamed(entity)
        if deactivate:
            self.linker.on_entity_delete_requested(entity)
        elif reactivate:
            self.linker.on_entity_created(entity)
        return entity

    def delete(self, entity_id: int) -> None:
        """Soft delete: the record stays, inactive and without an account."""
        entity = self.get(entity_id)
        self.linker.on_entity_delete_requested(entity)

    def account_for(self, entity_id: int) -> EntityAccount:
        return self.linker.account_info(self.get(entity_id))

    def create_account_for(self, entity_id: int) -> EntityAccount:
        """Open the subsidiary account of an unlinked entity."""
        entity = self.get(entity_id)
        self.linker.create_account_for(entity)
        return self.linker.account_info(entity)

    def accounting_summary(self) -> SubsidiarySummary:
        return self.linker.accounting_summary(self.model)


class CustomerService(_EntityService):
    model = Customer
    code_field = "customer_code"
    code_prefix = "CUST"
    required_fields = ("first_name", "last_name", "email", "status")
    label = "customer"

    def create_customer(self, request: CustomerCreate) -> Customer:
        self._check_email_free(request.email)
        customer = Customer(
            first_name=request.first_name.strip(),
            last_name=request.last_name.strip(),
            company_name=request.company_name,
            email=request.email,
            phone=request.phone,
            auto_create_account=request.auto_create_account,
        )
        return self._create(customer, request.customer_code)

    def update_customer(self, customer_id: int, request: CustomerUpdate) -> Customer:
        return self.update(customer_id, request)

    def get_customer(self, customer_id: int) -> Customer:
        return self.get(customer_id)

    def list_customers(self, include_inactive: bool = False) -> list[Customer]:
        return self.list_entities(include_inactive)

    def delete_customer(self, customer_id: int) -> None:
        self.delete(customer_id)


class SupplierService(_EntityService):
    model = Supplier
    code_field = "supplier_code"
    code_prefix = "SUPP"
    required_fields = ("company_name", "status")
    label = "supplier"

    def create_supplier(self, request: SupplierCreate) -> Supplier:
        self._check_email_free(request.email)
        supplier = Supplier(
            company_name=request.company_name.strip(),
            contact_person=request.contact_person,
            email=request.email,
            phone=request.phone,
            auto_create_account=request.auto_create_account,
        )
        return self._create(supplier, request.supplier_code)

    def update_supplier(self, supplier_id: int, request: SupplierUpdate) -> Supplier:
        return self.update(supplier_id, request)

    def get_supplier(self, supplier_id: int) -> Supplier:
        return self.get(supplier_id)

    def list_suppliers(self, include_inactive: bool = False) -> list[Supplier]:
        return self.list_entities(include_inactive)

    def delete_supplier(self, supplier_id: int) -> None:
        self.delete(supplier_id)
