"""
Pydantic schemas for the chart of accounts.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from ledger_core.models.enums import AccountType


# --- Request Schemas ---

class AccountCreate(BaseModel):
    """
    Request to create an account.

    When account_number is omitted the registry assigns the next
    number for the classification prefix.
    """
    account_number: str | None = Field(default=None, min_length=1, max_length=50)
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    account_type: AccountType
    sub_type: str | None = Field(default=None, max_length=100)
    parent_id: int | None = None
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    is_active: bool = True
    is_system: bool = False
    allow_manual_entries: bool = True
    tenant_id: int | None = None


class AccountUpdate(BaseModel):
    """
    Partial update. Balance, number and classification are fixed
    once an account exists.
    """
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    sub_type: str | None = Field(default=None, max_length=100)
    parent_id: int | None = None
    is_active: bool | None = None
    allow_manual_entries: bool | None = None


# --- Response Schemas ---

class AccountResponse(BaseModel):
    id: int
    account_number: str
    name: str
    description: str | None
    account_type: AccountType
    sub_type: str | None
    parent_id: int | None
    currency: str
    balance: Decimal
    is_active: bool
    is_system: bool
    allow_manual_entries: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class AccountTreeNode(AccountResponse):
    """Account with its children, for the chart of accounts view."""
    children: list["AccountTreeNode"] = []


class AccountBalanceResponse(BaseModel):
    account_id: int
    account_number: str
    account_type: AccountType
    balance: Decimal
    currency: str
