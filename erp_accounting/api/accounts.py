"""
Chart of accounts API endpoints.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from erp_accounting.exceptions import AccountingError
from erp_accounting.models.base import get_db
from erp_accounting.models.enums import AccountType
from erp_accounting.schemas.account import (
    AccountCreate,
    AccountResponse,
    AccountUpdate,
    BalanceAnomaly,
    DeduplicateRequest,
    DeduplicateResponse,
)
from erp_accounting.services.chart_service import ChartService

router = APIRouter(prefix="/accounting/chart-of-accounts", tags=["Chart of Accounts"])


@router.get("", response_model=list[AccountResponse])
def list_accounts(
    account_type: AccountType | None = Query(default=None, alias="accountType"),
    include_inactive: bool = Query(default=False, alias="includeInactive"),
    db: Session = Depends(get_db),
):
    """List accounts ordered by code."""
    return ChartService(db).list_accounts(account_type, include_inactive)


@router.post("", response_model=AccountResponse, status_code=201)
def create_account(
    request: AccountCreate,
    db: Session = Depends(get_db),
):
    service = ChartService(db)
    try:
        account = service.create_account(request)
        db.commit()
        return account
    except AccountingError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())


@router.post("/initialize", response_model=list[AccountResponse], status_code=201)
def initialize_default_accounts(db: Session = Depends(get_db)):
    """Seed the standard system accounts. Returns only the ones created."""
    service = ChartService(db)
    try:
        created = service.initialize_default_accounts()
        db.commit()
        return created
    except AccountingError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())


@router.post("/deduplicate", response_model=DeduplicateResponse)
def deduplicate_accounts(
    request: DeduplicateRequest,
    db: Session = Depends(get_db),
):
    """
    Merge subsidiary accounts that carry the same entity tag.

    Pass e.g. {"tagPrefix": ["customer", "accounts-receivable"]}.
    """
    service = ChartService(db)
    try:
        result = service.deduplicate(request.tag_prefix)
        db.commit()
        return result
    except AccountingError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())


@router.get("/anomalies", response_model=list[BalanceAnomaly])
def balance_anomalies(db: Session = Depends(get_db)):
    """Accounts whose cached balance disagrees with the posted ledger."""
    return ChartService(db).balance_anomalies()


@router.post("/reconcile", response_model=list[BalanceAnomaly])
def reconcile_balances(db: Session = Depends(get_db)):
    """Reset drifted cached balances to the ledger values."""
    service = ChartService(db)
    try:
        repaired = service.reconcile_balances()
        db.commit()
        return repaired
    except AccountingError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())


@router.get("/{account_id}", response_model=AccountResponse)
def get_account(
    account_id: int,
    db: Session = Depends(get_db),
):
    try:
        return ChartService(db).get_account(account_id)
    except AccountingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())


@router.put("/{account_id}", response_model=AccountResponse)
def update_account(
    account_id: int,
    request: AccountUpdate,
    db: Session = Depends(get_db),
):
    """Edit descriptive fields. Balance, type and code cannot change."""
    service = ChartService(db)
    try:
        account = service.update_account(account_id, request)
        db.commit()
        return account
    except AccountingError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())


@router.delete("/{account_id}", status_code=204)
def delete_account(
    account_id: int,
    db: Session = Depends(get_db),
):
    """
    Delete an account.

    Refused for system accounts and for accounts that journal
    entries, child accounts or customers/suppliers still use.
    """
    service = ChartService(db)
    try:
        service.delete_account(account_id)
        db.commit()
        return Response(status_code=204)
    except AccountingError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())
