"""
Shared enumerations for database models.

Using Python enums mapped to database enums ensures that
only valid values can be stored. An invalid account type
or entry status is caught at the database level, not just
in Python validation.
"""

import enum


class AccountType(str, enum.Enum):
    """The five fundamental accounting categories."""
    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"


# Classifications where a debit increases the balance
DEBIT_NORMAL_TYPES = frozenset({AccountType.ASSET, AccountType.EXPENSE})

# One-digit account number prefix per classification
ACCOUNT_NUMBER_PREFIXES: dict[AccountType, str] = {
    AccountType.ASSET: "1",
    AccountType.LIABILITY: "2",
    AccountType.EQUITY: "3",
    AccountType.REVENUE: "4",
    AccountType.EXPENSE: "5",
}


class PeriodType(str, enum.Enum):
    YEAR = "year"
    QUARTER = "quarter"
    MONTH = "month"


class PeriodStatus(str, enum.Enum):
    """Gate for postings. Only OPEN accepts entries."""
    OPEN = "open"
    CLOSED = "closed"
    LOCKED = "locked"


class EntryStatus(str, enum.Enum):
    """Lifecycle of a journal entry: draft -> posted -> reversed."""
    DRAFT = "draft"
    POSTED = "posted"
    REVERSED = "reversed"
