"""
Pydantic schemas for customers and suppliers.

Only the fields the accounting core cares about are modelled:
identity, display name, status and the accounting integration.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import Field

from erp_accounting.models.enums import EntityStatus
from erp_accounting.schemas.base import ApiModel


class AccountingIntegration(ApiModel):
    account_id: int | None
    account_code: str | None
    auto_create_account: bool


# --- Customer Schemas ---

class CustomerCreate(ApiModel):
    customer_code: str | None = Field(default=None, min_length=1, max_length=20)
    first_name: str = Field(min_length=1, max_length=50)
    last_name: str = Field(min_length=1, max_length=50)
    company_name: str | None = Field(default=None, max_length=200)
    email: str = Field(min_length=5, max_length=255)
    phone: str | None = Field(default=None, max_length=30)
    auto_create_account: bool = True


class CustomerUpdate(ApiModel):
    first_name: str | None = Field(default=None, min_length=1, max_length=50)
    last_name: str | None = Field(default=None, min_length=1, max_length=50)
    company_name: str | None = Field(default=None, max_length=200)
    email: str | None = Field(default=None, min_length=5, max_length=255)
    phone: str | None = Field(default=None, max_length=30)
    status: EntityStatus | None = None


class CustomerResponse(ApiModel):
    id: int
    customer_code: str
    first_name: str
    last_name: str
    company_name: str | None
    display_name: str
    email: str
    phone: str | None
    status: EntityStatus
    accounting_integration: AccountingIntegration
    created_at: datetime


# --- Supplier Schemas ---

class SupplierCreate(ApiModel):
    supplier_code: str | None = Field(default=None, min_length=1, max_length=20)
    company_name: str = Field(min_length=1, max_length=200)
    contact_person: str | None = Field(default=None, max_length=100)
    email: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=30)
    auto_create_account: bool = True


class SupplierUpdate(ApiModel):
    company_name: str | None = Field(default=None, min_length=1, max_length=200)
    contact_person: str | None = Field(default=None, max_length=100)
    email: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=30)
    status: EntityStatus | None = None


class SupplierResponse(ApiModel):
    id: int
    supplier_code: str
    company_name: str
    display_name: str
    contact_person: str | None
    email: str | None
    phone: str | None
    status: EntityStatus
    accounting_integration: AccountingIntegration
    created_at: datetime


# --- Reconciliation ---

class LinkResult(ApiModel):
    entity_type: str
    entity_id: int
    entity_code: str
    status: str
    account_id: int | None = None
    error: str | None = None


class MissingAccountsSummary(ApiModel):
    created: int
    linked: int
    skipped: int
    errors: int
    results: list[LinkResult]


# --- Subsidiary account views ---

class LinkedAccount(ApiModel):
    id: int
    account_code: str
    account_name: str
    current_balance: Decimal


class EntityAccount(ApiModel):
    """An entity together with its subsidiary account, if any."""
    entity_type: str
    entity_id: int
    entity_code: str
    display_name: str
    is_linked: bool
    account: LinkedAccount | None = None
    message: str | None = None


class SubsidiarySummaryRow(ApiModel):
    entity_id: int
    entity_code: str
    display_name: str
    account_id: int | None
    account_code: str | None
    account_name: str | None
    balance: Decimal


class SubsidiarySummary(ApiModel):
    entity_type: str
    total_entities: int
    linked_entities: int
    unlinked_entities: int
    total_balance: Decimal
    integration_percentage: Decimal
    entities: list[SubsidiarySummaryRow]
