"""
Ledger Core FastAPI application.

The HTTP surface over the chart of accounts, the fiscal
calendar and the posting engine. All routers are registered
here.
"""

from fastapi import FastAPI

from ledger_core.config import get_settings
from ledger_core.logging_config import configure_logging
from ledger_core.api.health import router as health_router
from ledger_core.api.accounts import router as accounts_router
from ledger_core.api.fiscal_periods import router as fiscal_periods_router
from ledger_core.api.journal_entries import router as journal_entries_router

settings = get_settings()

configure_logging()

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Double-entry ledger: accounts, fiscal periods and journal posting",
)

# Register routers
app.include_router(health_router)
app.include_router(accounts_router)
app.include_router(fiscal_periods_router)
app.include_router(journal_entries_router)
