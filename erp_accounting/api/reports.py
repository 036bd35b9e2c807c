"""
Report API endpoints.

Tabular reports answer JSON by default and CSV with ?format=csv.
"""

from datetime import date
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from erp_accounting.exceptions import AccountingError
from erp_accounting.models.base import get_db
from erp_accounting.schemas.report import (
    AccountingEquation,
    BalanceSheet,
    GeneralLedger,
    GeneralLedgerSummary,
    IncomeStatement,
    TrialBalance,
)
from erp_accounting.services import export_service
from erp_accounting.services.report_service import ReportService

router = APIRouter(prefix="/reports", tags=["Reports"])

ReportFormat = Literal["json", "csv"]


def csv_response(content: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type=export_service.CSV_CONTENT_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/general-ledger", response_model=GeneralLedgerSummary)
def general_ledger_summary(
    date_from: date | None = Query(default=None, alias="dateFrom"),
    date_to: date | None = Query(default=None, alias="dateTo"),
    format: ReportFormat = "json",
    db: Session = Depends(get_db),
):
    """Opening, movement and closing balance of every account, inactive ones included."""
    summary = ReportService(db).general_ledger_summary(date_from, date_to)
    if format == "csv":
        return csv_response(export_service.ledger_summary_csv(summary), "general-ledger-summary.csv")
    return summary


@router.get("/general-ledger/{account_id}", response_model=GeneralLedger)
def general_ledger(
    account_id: int,
    date_from: date | None = Query(default=None, alias="dateFrom"),
    date_to: date | None = Query(default=None, alias="dateTo"),
    format: ReportFormat = "json",
    db: Session = Depends(get_db),
):
    """Posted lines of one account with a running balance."""
    try:
        ledger = ReportService(db).general_ledger(account_id, date_from, date_to)
    except AccountingError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())

    if format == "csv":
        filename = f"general-ledger-{ledger.account.account_code}.csv"
        return csv_response(export_service.general_ledger_csv(ledger), filename)
    return ledger


@router.get("/trial-balance", response_model=TrialBalance)
def trial_balance(
    as_of_date: date | None = Query(default=None, alias="asOfDate"),
    include_zero_balances: bool = Query(default=False, alias="includeZeroBalances"),
    format: ReportFormat = "json",
    db: Session = Depends(get_db),
):
    report = ReportService(db).trial_balance(as_of_date, include_zero_balances)
    if format == "csv":
        filename = f"trial-balance-{report.summary.as_of_date.isoformat()}.csv"
        return csv_response(export_service.trial_balance_csv(report), filename)
    return report


@router.get("/accounting-equation", response_model=AccountingEquation)
def accounting_equation(
    as_of_date: date | None = Query(default=None, alias="asOfDate"),
    db: Session = Depends(get_db),
):
    return ReportService(db).accounting_equation_check(as_of_date)


@router.get("/income-statement", response_model=IncomeStatement)
def income_statement(
    date_from: date | None = Query(default=None, alias="dateFrom"),
    date_to: date | None = Query(default=None, alias="dateTo"),
    db: Session = Depends(get_db),
):
    return ReportService(db).income_statement(date_from, date_to)


@router.get("/balance-sheet", response_model=BalanceSheet)
def balance_sheet(
    as_of_date: date | None = Query(default=None, alias="asOfDate"),
    db: Session = Depends(get_db),
):
    return ReportService(db).balance_sheet(as_of_date)
