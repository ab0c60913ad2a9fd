"""
Database models package.

All models must be imported here so that Alembic can discover
them through Base.metadata when generating migrations.
"""

from ledger_core.models.base import Base
from ledger_core.models.enums import (
    AccountType,
    PeriodType,
    PeriodStatus,
    EntryStatus,
)
from ledger_core.models.account import Account
from ledger_core.models.fiscal_period import FiscalPeriod
from ledger_core.models.journal_entry import JournalEntry, JournalEntryLine
from ledger_core.models.outbox_event import OutboxEvent

__all__ = [
    "Base",
    "AccountType",
    "PeriodType",
    "PeriodStatus",
    "EntryStatus",
    "Account",
    "FiscalPeriod",
    "JournalEntry",
    "JournalEntryLine",
    "OutboxEvent",
]
