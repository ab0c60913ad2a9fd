"""
Chart of accounts model.

Accounts form a tree through parent_id. The running balance is
a projection of every posted line against the account; only the
posting engine moves it, through AccountService.adjust_balance.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    String, Text, Boolean, DateTime, Numeric, ForeignKey,
    Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_core.models.base import Base, utcnow
from ledger_core.models.enums import AccountType, DEBIT_NORMAL_TYPES
from ledger_core.money import to_money


class Account(Base):
    """
    A node in the chart of accounts.

    Accounts with journal lines are never hard-deleted; removal
    sets deleted_at and is refused while lines or children exist.
    """

    __tablename__ = "accounts"

    id: Mapped[int] = mapped_column(primary_key=True)
    tenant_id: Mapped[int | None] = mapped_column(nullable=True, index=True)
    account_number: Mapped[str] = mapped_column(
        String(50), unique=True, nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    account_type: Mapped[AccountType] = mapped_column(
        SAEnum(AccountType, name="account_type_enum", create_constraint=True),
        nullable=False,
        index=True,
    )
    sub_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    parent_id: Mapped[int | None] = mapped_column(
        ForeignKey("accounts.id"), nullable=True, index=True
    )
    currency: Mapped[str] = mapped_column(
        String(3), nullable=False, default="USD"
    )
    balance: Mapped[Decimal] = mapped_column(
        Numeric(15, 2), nullable=False, default=Decimal("0.00")
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True
    )
    is_system: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    allow_manual_entries: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, onupdate=utcnow
    )
    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True, default=None
    )

    parent: Mapped["Account | None"] = relationship(
        remote_side=[id], back_populates="children"
    )
    children: Mapped[list["Account"]] = relationship(
        back_populates="parent", order_by="Account.account_number"
    )
    lines: Mapped[list["JournalEntryLine"]] = relationship(
        back_populates="account"
    )

    @property
    def is_debit_normal(self) -> bool:
        """Asset and expense accounts grow with debits."""
        return self.account_type in DEBIT_NORMAL_TYPES

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def balance_delta(self, amount, is_debit: bool) -> Decimal:
        """
        Signed change a posting of `amount` makes to this account.

        Pure: the caller decides when the new balance is stored.
        """
        amount = to_money(amount)
        increases = is_debit == self.is_debit_normal
        return amount if increases else -amount

    def __repr__(self) -> str:
        return f"<Account {self.account_number} ({self.account_type.value})>"
