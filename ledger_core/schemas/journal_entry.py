"""
Pydantic schemas for journal entries.

EntryRequest / LineRequest are the contract that invoice,
payment and procurement workflows use to hand entries to the
posting engine. Field-level checks (non-negative amounts, two
decimals, currency length) live here; the rule that a line has
exactly one non-zero side is enforced by the engine so that it
raises the ledger's own ValidationError.
"""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from ledger_core.models.enums import EntryStatus


# --- Request Schemas ---

class LineRequest(BaseModel):
    """One debit or one credit against an account."""
    account_id: int
    description: str | None = Field(default=None, max_length=255)
    debit_amount: Decimal = Field(default=Decimal("0"), ge=0, decimal_places=2)
    credit_amount: Decimal = Field(default=Decimal("0"), ge=0, decimal_places=2)
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    exchange_rate: Decimal | None = Field(default=None, gt=0, decimal_places=6)


class EntryRequest(BaseModel):
    """
    A journal entry to record as a draft.

    Lines may be empty or unbalanced at this stage; balance is
    only required when the entry is posted. Without entry_date the
    entry is dated today by the ledger's clock.
    """
    entry_date: date | None = None
    entry_number: str | None = Field(default=None, min_length=1, max_length=50)
    reference: str | None = Field(default=None, max_length=255)
    description: str | None = None
    fiscal_period_id: int | None = None
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    tenant_id: int | None = None
    lines: list[LineRequest] = Field(default_factory=list)


class EntryUpdate(BaseModel):
    """
    Changes to a draft entry.

    When lines is given the whole line set is replaced; when it
    is omitted the existing lines are kept.
    """
    entry_date: date | None = None
    reference: str | None = Field(default=None, max_length=255)
    description: str | None = None
    lines: list[LineRequest] | None = None


class ReverseRequest(BaseModel):
    """Optional overrides for the header of a reversal entry."""
    entry_date: date | None = None
    reference: str | None = Field(default=None, max_length=255)
    description: str | None = None


# --- Response Schemas ---

class LineResponse(BaseModel):
    id: int
    line_number: int
    account_id: int
    description: str | None
    debit_amount: Decimal
    credit_amount: Decimal
    currency: str
    exchange_rate: Decimal | None

    model_config = {"from_attributes": True}


class EntryResponse(BaseModel):
    id: int
    entry_number: str
    entry_date: date
    reference: str | None
    description: str | None
    fiscal_period_id: int
    status: EntryStatus
    total_debit: Decimal
    total_credit: Decimal
    currency: str
    posted_at: datetime | None
    posted_by: int | None
    reversed_entry_id: int | None
    lines: list[LineResponse]

    model_config = {"from_attributes": True}


class IntegrityReport(BaseModel):
    """Result of a full ledger integrity check."""
    total_debits: Decimal
    total_credits: Decimal
    difference: Decimal
    is_balanced: bool
    mismatched_accounts: list[int]
