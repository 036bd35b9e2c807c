"""
Customer and supplier API endpoints.

Creating, renaming and deleting these records keeps their
subsidiary receivable/payable accounts in step.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from erp_accounting.exceptions import AccountingError
from erp_accounting.models.base import get_db
from erp_accounting.schemas.entity import (
    CustomerCreate,
    CustomerResponse,
    CustomerUpdate,
    EntityAccount,
    MissingAccountsSummary,
    SubsidiarySummary,
    SupplierCreate,
    SupplierResponse,
    SupplierUpdate,
)
from erp_accounting.services.entity_service import CustomerService, SupplierService
from erp_accounting.services.linker_service import LinkerService

router = APIRouter(tags=["Customers & Suppliers"])


# --- Customer Endpoints ---

@router.get("/customers", response_model=list[CustomerResponse])
def list_customers(
    include_inactive: bool = Query(default=False, alias="includeInactive"),
    db: Session = Depends(get_db),
):
    return CustomerService(db).list_customers(include_inactive)


@router.post("/customers", response_model=CustomerResponse, status_code=201)
def create_customer(
    request: CustomerCreate,
    db: Session = Depends(get_db),
):
    """Create a customer and its Accounts Receivable account."""
    service = CustomerService(db)
    try:
        customer = service.create_customer(request)
        db.commit()
        return customer
    except AccountingError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())


@router.get("/customers/accounting/summary", response_model=SubsidiarySummary)
def customer_accounting_summary(db: Session = Depends(get_db)):
    """How many active customers have an account, and what they owe in total."""
    return CustomerService(db).accounting_summary()


@router.get("/customers/{customer_id}", response_model=CustomerResponse)
def get_customer(
    customer_id: int,
    db: Session = Depends(get_db),
):
    try:
        return CustomerService(db).get_customer(customer_id)
    except AccountingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())


@router.put("/customers/{customer_id}", response_model=CustomerResponse)
def update_customer(
    customer_id: int,
    request: CustomerUpdate,
    db: Session = Depends(get_db),
):
    service = CustomerService(db)
    try:
        customer = service.update_customer(customer_id, request)
        db.commit()
        return customer
    except AccountingError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())


@router.delete("/customers/{customer_id}", status_code=204)
def delete_customer(
    customer_id: int,
    db: Session = Depends(get_db),
):
    """
    Deactivate a customer and remove its receivable account.

    Refused with 409 while any journal entry uses that account.
    """
    service = CustomerService(db)
    try:
        service.delete_customer(customer_id)
        db.commit()
        return Response(status_code=204)
    except AccountingError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())


@router.get("/customers/{customer_id}/account", response_model=EntityAccount)
def get_customer_account(
    customer_id: int,
    db: Session = Depends(get_db),
):
    try:
        return CustomerService(db).account_for(customer_id)
    except AccountingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())


@router.post("/customers/{customer_id}/create-account", response_model=EntityAccount, status_code=201)
def create_customer_account(
    customer_id: int,
    db: Session = Depends(get_db),
):
    """Open the account of a customer that has none. 400 when one is already linked."""
    service = CustomerService(db)
    try:
        info = service.create_account_for(customer_id)
        db.commit()
        return info
    except AccountingError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())


# --- Supplier Endpoints ---

@router.get("/suppliers", response_model=list[SupplierResponse])
def list_suppliers(
    include_inactive: bool = Query(default=False, alias="includeInactive"),
    db: Session = Depends(get_db),
):
    return SupplierService(db).list_suppliers(include_inactive)


@router.post("/suppliers", response_model=SupplierResponse, status_code=201)
def create_supplier(
    request: SupplierCreate,
    db: Session = Depends(get_db),
):
    """Create a supplier and its Accounts Payable account."""
    service = SupplierService(db)
    try:
        supplier = service.create_supplier(request)
        db.commit()
        return supplier
    except AccountingError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())


@router.get("/suppliers/accounting/summary", response_model=SubsidiarySummary)
def supplier_accounting_summary(db: Session = Depends(get_db)):
    """How many active suppliers have an account, and what is outstanding in total."""
    return SupplierService(db).accounting_summary()


@router.get("/suppliers/{supplier_id}", response_model=SupplierResponse)
def get_supplier(
    supplier_id: int,
    db: Session = Depends(get_db),
):
    try:
        return SupplierService(db).get_supplier(supplier_id)
    except AccountingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())


@router.put("/suppliers/{supplier_id}", response_model=SupplierResponse)
def update_supplier(
    supplier_id: int,
    request: SupplierUpdate,
    db: Session = Depends(get_db),
):
    service = SupplierService(db)
    try:
        supplier = service.update_supplier(supplier_id, request)
        db.commit()
        return supplier
    except AccountingError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())


@router.delete("/suppliers/{supplier_id}", status_code=204)
def delete_supplier(
    supplier_id: int,
    db: Session = Depends(get_db),
):
    service = SupplierService(db)
    try:
        service.delete_supplier(supplier_id)
        db.commit()
        return Response(status_code=204)
    except AccountingError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())


@router.get("/suppliers/{supplier_id}/account", response_model=EntityAccount)
def get_supplier_account(
    supplier_id: int,
    db: Session = Depends(get_db),
):
    try:
        return SupplierService(db).account_for(supplier_id)
    except AccountingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())


@router.post("/suppliers/{supplier_id}/create-account", response_model=EntityAccount, status_code=201)
def create_supplier_account(
    supplier_id: int,
    db: Session = Depends(get_db),
):
    """Open the account of a supplier that has none. 400 when one is already linked."""
    service = SupplierService(db)
    try:
        info = service.create_account_for(supplier_id)
        db.commit()
        return info
    except AccountingError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())


# --- Reconciliation ---

@router.post("/accounting/create-missing-accounts", response_model=MissingAccountsSummary)
def create_missing_accounts(db: Session = Depends(get_db)):
    """Link or create subsidiary accounts for every customer and supplier lacking one."""
    service = LinkerService(db)
    try:
        summary = service.create_missing_accounts()
        db.commit()
        return summary
    except AccountingError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())
