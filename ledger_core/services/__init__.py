"""Business logic services."""

from ledger_core.services.account_service import AccountService
from ledger_core.services.fiscal_period_service import FiscalPeriodService
from ledger_core.services.ledger_service import LedgerService
from ledger_core.services.outbox import OutboxRelay, record_event

__all__ = [
    "AccountService",
    "FiscalPeriodService",
    "LedgerService",
    "OutboxRelay",
    "record_event",
]
