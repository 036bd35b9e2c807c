"""
CSV export of ledger reports.

Each exporter takes the report object produced by ReportService
and returns the CSV document as text.
"""

import csv
import io
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Any

from erp_accounting.schemas.report import (
    GeneralLedger,
    GeneralLedgerSummary,
    TrialBalance,
)

CSV_CONTENT_TYPE = "text/csv"

GENERAL_LEDGER_COLUMNS = [
    "Date", "Voucher Number", "Voucher Type", "Description",
    "Reference", "Debit", "Credit", "Balance",
]
TRIAL_BALANCE_COLUMNS = [
    "Account Code", "Account Name", "Account Type", "Debit", "Credit",
]
LEDGER_SUMMARY_COLUMNS = [
    "Account Code", "Account Name", "Account Type", "Opening Balance",
    "Total Debits", "Total Credits", "Closing Balance", "Transactions",
]


def format_value(value: Any) -> str:
    """Format a value for export. Money gets two fraction digits."""
    if value is None:
        return ""
    if isinstance(value, Decimal):
        return str(value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))
    if isinstance(value, date):
        return value.isoformat()
    if hasattr(value, "value"):
        return str(value.value)
    return str(value)


def export_to_csv(header: list[str], rows: list[list[Any]]) -> str:
    output = io.StringIO()
    writer = csv.writer(output, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(header)
    for row in rows:
        writer.writerow([format_value(value) for value in row])
    return output.getvalue()


def general_ledger_csv(ledger: GeneralLedger) -> str:
    """One row per ledger line."""
    return export_to_csv(GENERAL_LEDGER_COLUMNS, [
        [
            line.date,
            line.voucher_number,
            line.voucher_type,
            line.entry_description,
            line.reference_number,
            line.debit_amount,
            line.credit_amount,
            line.balance,
        ]
        for line in ledger.entries
    ])


def trial_balance_csv(trial_balance: TrialBalance) -> str:
    """One row per account, then a totals row."""
    rows = [
        [
            row.account_code,
            row.account_name,
            row.account_type,
            row.debit_balance,
            row.credit_balance,
        ]
        for row in trial_balance.accounts
    ]
    rows.append([
        "",
        "Total",
        "",
        trial_balance.summary.total_debits,
        trial_balance.summary.total_credits,
    ])
    return export_to_csv(TRIAL_BALANCE_COLUMNS, rows)


def ledger_summary_csv(summary: GeneralLedgerSummary) -> str:
    return export_to_csv(LEDGER_SUMMARY_COLUMNS, [
        [
            row.account.account_code,
            row.account.account_name,
            row.account.account_type,
            row.opening_balance,
            row.total_debits,
            row.total_credits,
            row.closing_balance,
            row.transaction_count,
        ]
        for row in summary.accounts
    ])
