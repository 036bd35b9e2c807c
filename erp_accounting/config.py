"""
Settings for the accounting core.

Everything comes from the environment (or a local .env file):
the database URL, logging output and the ledger tunables such
as the balance-update retry limit and voucher number padding.
"""

import os
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Environment-backed settings, read once at import."""

    # Application
    APP_NAME: str = "ERP Accounting Core"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"

    # Server
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "8000"))

    # Database
    DATABASE_URL: str = os.getenv(
        "DATABASE_URL",
        "postgresql://localhost:5432/erp_accounting"
    )

    # Environment
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "DEBUG" if DEBUG else "INFO")
    LOG_FORMAT: str = os.getenv("LOG_FORMAT", "console" if DEBUG else "json")

    # Ledger
    DEFAULT_CURRENCY: str = os.getenv("DEFAULT_CURRENCY", "BDT")
    BALANCE_UPDATE_MAX_RETRIES: int = int(
        os.getenv("BALANCE_UPDATE_MAX_RETRIES", "5")
    )
    VOUCHER_SEQUENCE_PADDING: int = int(
        os.getenv("VOUCHER_SEQUENCE_PADDING", "3")
    )
    CODE_ALLOCATION_MAX_ATTEMPTS: int = int(
        os.getenv("CODE_ALLOCATION_MAX_ATTEMPTS", "5")
    )


@lru_cache()
def get_settings() -> Settings:
    """Process-wide Settings instance."""
    return Settings()
