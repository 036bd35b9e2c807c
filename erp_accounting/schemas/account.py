"""
Pydantic schemas for chart of accounts operations.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import Field, model_validator

from erp_accounting.models.account import normal_balance_for
from erp_accounting.models.enums import (
    AccountType,
    AccountCategory,
    NormalBalance,
)
from erp_accounting.schemas.base import ApiModel


# --- Request Schemas ---

class AccountCreate(ApiModel):
    """
    Request to create a ledger account.

    account_code is generated when omitted. normal_balance is
    derived from account_type; a contradicting value is rejected.
    """
    account_code: str | None = Field(default=None, min_length=1, max_length=20)
    account_name: str = Field(min_length=1, max_length=200)
    account_type: AccountType
    account_category: AccountCategory
    account_sub_category: str | None = Field(default=None, max_length=50)
    parent_account_id: int | None = None
    level: int = Field(default=1, ge=1, le=5)
    normal_balance: NormalBalance | None = None
    opening_balance: Decimal | None = None
    description: str | None = Field(default=None, max_length=500)
    is_active: bool = True
    is_system_account: bool = False
    allow_posting: bool = True
    tags: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def normal_balance_matches_type(self):
        expected = normal_balance_for(self.account_type)
        if self.normal_balance is None:
            self.normal_balance = expected
        elif self.normal_balance != expected:
            raise ValueError(
                f"{self.account_type.value} accounts have a "
                f"{expected.value} normal balance"
            )
        return self


class AccountUpdate(ApiModel):
    """Editable descriptive fields. Balance and type never change here."""
    account_name: str | None = Field(default=None, min_length=1, max_length=200)
    account_category: AccountCategory | None = None
    account_sub_category: str | None = Field(default=None, max_length=50)
    description: str | None = Field(default=None, max_length=500)
    is_active: bool | None = None
    allow_posting: bool | None = None


class DeduplicateRequest(ApiModel):
    """Tag prefix selecting the subsidiary accounts to scan."""
    tag_prefix: list[str] = Field(min_length=1, max_length=2)


# --- Response Schemas ---

class AccountResponse(ApiModel):
    id: int
    account_code: str
    account_name: str
    account_type: AccountType
    account_category: AccountCategory
    account_sub_category: str | None
    parent_account_id: int | None
    level: int
    normal_balance: NormalBalance
    opening_balance: Decimal
    current_balance: Decimal
    description: str | None
    is_active: bool
    is_system_account: bool
    allow_posting: bool
    tags: list[str]
    created_at: datetime
    updated_at: datetime


class DuplicateAccount(ApiModel):
    account_id: int
    account_code: str
    survivor_id: int
    entity_code: str
    reason: str | None = None


class DeduplicateResponse(ApiModel):
    tag_prefix: list[str]
    groups: int
    removed: list[DuplicateAccount]
    skipped: list[DuplicateAccount]
    repointed_entities: int


class BalanceAnomaly(ApiModel):
    """A cached balance that disagrees with the posted ledger."""
    account_id: int
    account_code: str
    account_name: str
    cached_balance: Decimal
    computed_balance: Decimal
    difference: Decimal
