"""
ERP Accounting Core: FastAPI application.

This is the entry point for the application.
All routers are registered here.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from erp_accounting.config import get_settings
from erp_accounting.exceptions import AccountingError
from erp_accounting.logging_config import configure_logging
from erp_accounting.api.health import router as health_router
from erp_accounting.api.accounts import router as accounts_router
from erp_accounting.api.journal import router as journal_router
from erp_accounting.api.entities import router as entities_router
from erp_accounting.api.reports import router as reports_router

settings = get_settings()
configure_logging()

logger = logging.getLogger("erp_accounting")

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Double-entry accounting core: chart of accounts, vouchers, "
                "subsidiary ledgers and financial reports",
)


@app.exception_handler(AccountingError)
async def accounting_error_handler(request: Request, exc: AccountingError):
    # Endpoints translate their own errors; this catches any that slip past.
    logger.warning(
        "Unhandled accounting error on %s %s: %s",
        request.method, request.url.path, exc.message,
    )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_dict()})


# Register routers
app.include_router(health_router)
app.include_router(accounts_router)
app.include_router(journal_router)
app.include_router(entities_router)
app.include_router(reports_router)

logger.info("%s %s started (%s)", settings.APP_NAME, settings.APP_VERSION, settings.ENVIRONMENT)
