"""Business logic services."""

from erp_accounting.services.chart_service import ChartService
from erp_accounting.services.journal_service import JournalService
from erp_accounting.services.linker_service import LinkerService
from erp_accounting.services.entity_service import CustomerService, SupplierService
from erp_accounting.services.report_service import ReportService

__all__ = [
    "ChartService",
    "JournalService",
    "LinkerService",
    "CustomerService",
    "SupplierService",
    "ReportService",
]
