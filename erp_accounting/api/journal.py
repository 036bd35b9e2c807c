"""
Journal entry (voucher) API endpoints.

The acting user, when known, arrives in the X-User header and is
recorded as created_by / posted_by. Authentication happens upstream.
"""

from datetime import date

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Response
from sqlalchemy.orm import Session

from erp_accounting.exceptions import AccountingError
from erp_accounting.models.base import get_db
from erp_accounting.models.enums import VoucherStatus, VoucherType
from erp_accounting.schemas.journal import (
    BalanceCheck,
    BalanceCheckRequest,
    CancelRequest,
    DuplicateVoucherRequest,
    NextVoucherNumberResponse,
    ReversalResponse,
    ReverseRequest,
    VoucherCreate,
    VoucherListResponse,
    VoucherResponse,
    VoucherStatistics,
    VoucherTypeInfo,
    VoucherUpdate,
)
from erp_accounting.services.journal_service import JournalService

router = APIRouter(prefix="/accounting", tags=["Journal Entries"])


@router.get("/journal-entries", response_model=VoucherListResponse)
def list_vouchers(
    status: VoucherStatus | None = None,
    voucher_type: VoucherType | None = Query(default=None, alias="voucherType"),
    date_from: date | None = Query(default=None, alias="dateFrom"),
    date_to: date | None = Query(default=None, alias="dateTo"),
    search: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=200),
    db: Session = Depends(get_db),
):
    service = JournalService(db)
    items, total = service.list_vouchers(
        status=status,
        voucher_type=voucher_type,
        date_from=date_from,
        date_to=date_to,
        search=search,
        page=page,
        limit=limit,
    )
    return {
        "items": items,
        "page": page,
        "pages": service.page_count(total, limit),
        "total": total,
    }


@router.post("/journal-entries", response_model=VoucherResponse, status_code=201)
def create_voucher(
    request: VoucherCreate,
    user: str | None = Header(default=None, alias="X-User"),
    db: Session = Depends(get_db),
):
    """Create a DRAFT voucher. Balances are untouched until it is posted."""
    service = JournalService(db)
    try:
        entry = service.create_voucher(request, created_by=user)
        db.commit()
        return entry
    except AccountingError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())


@router.post("/journal-entries/validate-balance", response_model=BalanceCheck)
def validate_balance(request: BalanceCheckRequest):
    """Check whether a set of lines balances without saving anything."""
    return JournalService.validate_balance(request.entries)


@router.get("/journal-entries/stats", response_model=VoucherStatistics)
def voucher_statistics(
    date_from: date | None = Query(default=None, alias="dateFrom"),
    date_to: date | None = Query(default=None, alias="dateTo"),
    voucher_type: VoucherType | None = Query(default=None, alias="voucherType"),
    db: Session = Depends(get_db),
):
    return JournalService(db).voucher_statistics(date_from, date_to, voucher_type)


@router.get("/journal-entries/{voucher_id}", response_model=VoucherResponse)
def get_voucher(
    voucher_id: int,
    db: Session = Depends(get_db),
):
    try:
        return JournalService(db).get_voucher(voucher_id)
    except AccountingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())


@router.put("/journal-entries/{voucher_id}", response_model=VoucherResponse)
def update_voucher(
    voucher_id: int,
    request: VoucherUpdate,
    db: Session = Depends(get_db),
):
    """Edit a DRAFT voucher."""
    service = JournalService(db)
    try:
        entry = service.update_voucher(voucher_id, request)
        db.commit()
        return entry
    except AccountingError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())


@router.delete("/journal-entries/{voucher_id}", status_code=204)
def delete_voucher(
    voucher_id: int,
    db: Session = Depends(get_db),
):
    """Delete a DRAFT voucher. Posted vouchers are reversed instead."""
    service = JournalService(db)
    try:
        service.delete_voucher(voucher_id)
        db.commit()
        return Response(status_code=204)
    except AccountingError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())


@router.post("/journal-entries/{voucher_id}/post", response_model=VoucherResponse)
def post_voucher(
    voucher_id: int,
    user: str | None = Header(default=None, alias="X-User"),
    db: Session = Depends(get_db),
):
    """
    Post a DRAFT voucher and move the balances of its accounts.

    All lines are applied in one database transaction: if any
    line fails, nothing is posted.
    """
    service = JournalService(db)
    try:
        entry = service.post_voucher(voucher_id, posted_by=user)
        db.commit()
        return entry
    except AccountingError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())


@router.post("/journal-entries/{voucher_id}/reverse", response_model=ReversalResponse)
def reverse_voucher(
    voucher_id: int,
    request: ReverseRequest,
    user: str | None = Header(default=None, alias="X-User"),
    db: Session = Depends(get_db),
):
    """Reverse a POSTED voucher with a mirrored, immediately posted voucher."""
    service = JournalService(db)
    try:
        original, reversal = service.reverse_voucher(voucher_id, request.reason, user=user)
        db.commit()
        return {"original_entry": original, "reversal_entry": reversal}
    except AccountingError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())


@router.post("/journal-entries/{voucher_id}/cancel", response_model=VoucherResponse)
def cancel_voucher(
    voucher_id: int,
    request: CancelRequest,
    db: Session = Depends(get_db),
):
    service = JournalService(db)
    try:
        entry = service.cancel_voucher(voucher_id, request.reason)
        db.commit()
        return entry
    except AccountingError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())


@router.post(
    "/journal-entries/{voucher_id}/duplicate",
    response_model=VoucherResponse,
    status_code=201,
)
def duplicate_voucher(
    voucher_id: int,
    request: DuplicateVoucherRequest | None = None,
    user: str | None = Header(default=None, alias="X-User"),
    db: Session = Depends(get_db),
):
    """Copy a voucher into a new DRAFT dated today."""
    service = JournalService(db)
    try:
        entry = service.duplicate_voucher(voucher_id, request, created_by=user)
        db.commit()
        return entry
    except AccountingError as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())


@router.get("/next-voucher-number", response_model=NextVoucherNumberResponse)
def next_voucher_number(
    voucher_type: VoucherType = Query(default=VoucherType.JOURNAL, alias="voucherType"),
    on_date: date | None = Query(default=None, alias="date"),
    db: Session = Depends(get_db),
):
    """Preview the next voucher number without reserving it."""
    on_date = on_date or date.today()
    return {
        "next_voucher_number": JournalService(db).next_voucher_number(voucher_type, on_date),
        "voucher_type": voucher_type,
        "date": on_date,
    }


@router.get("/voucher-types", response_model=list[VoucherTypeInfo])
def voucher_types():
    return JournalService.voucher_types()
