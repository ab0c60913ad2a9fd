"""
Journal entry model.

An entry is a header plus lines; each line debits or credits
one account. The header's total_debit / total_credit are a
display cache. Whether an entry balances is always decided by
summing its lines again, never by trusting the cached totals.
"""

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    String, Text, Date, DateTime, Numeric, ForeignKey,
    Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_core.models.base import Base, utcnow
from ledger_core.models.enums import EntryStatus
from ledger_core.money import to_money, ZERO


class JournalEntry(Base):
    """
    Header of a double-entry transaction.

    Once posted or reversed the entry and its lines are frozen.
    A posted entry can only be undone by a reversal, which is a
    new entry linked through reversed_entry_id.
    """

    __tablename__ = "journal_entries"

    id: Mapped[int] = mapped_column(primary_key=True)
    tenant_id: Mapped[int | None] = mapped_column(nullable=True, index=True)
    entry_number: Mapped[str] = mapped_column(
        String(50), unique=True, nullable=False
    )
    entry_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    reference: Mapped[str | None] = mapped_column(String(255), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    fiscal_period_id: Mapped[int] = mapped_column(
        ForeignKey("fiscal_periods.id"), nullable=False, index=True
    )
    status: Mapped[EntryStatus] = mapped_column(
        SAEnum(EntryStatus, name="entry_status_enum", create_constraint=True),
        nullable=False,
        default=EntryStatus.DRAFT,
        index=True,
    )
    total_debit: Mapped[Decimal] = mapped_column(
        Numeric(15, 2), nullable=False, default=Decimal("0.00")
    )
    total_credit: Mapped[Decimal] = mapped_column(
        Numeric(15, 2), nullable=False, default=Decimal("0.00")
    )
    currency: Mapped[str] = mapped_column(
        String(3), nullable=False, default="USD"
    )
    posted_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True, default=None
    )
    posted_by: Mapped[int | None] = mapped_column(nullable=True)
    reversed_entry_id: Mapped[int | None] = mapped_column(
        ForeignKey("journal_entries.id"), nullable=True
    )
    created_by: Mapped[int | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, onupdate=utcnow
    )

    fiscal_period: Mapped["FiscalPeriod"] = relationship(
        back_populates="entries"
    )
    lines: Mapped[list["JournalEntryLine"]] = relationship(
        back_populates="entry",
        order_by="JournalEntryLine.line_number",
        cascade="all, delete-orphan",
    )
    reversed_entry: Mapped["JournalEntry | None"] = relationship(
        remote_side=[id], foreign_keys=[reversed_entry_id]
    )

    @property
    def is_draft(self) -> bool:
        return self.status == EntryStatus.DRAFT

    @property
    def is_posted(self) -> bool:
        return self.status == EntryStatus.POSTED

    @property
    def is_reversed(self) -> bool:
        return self.status == EntryStatus.REVERSED

    def line_totals(self) -> tuple[Decimal, Decimal]:
        """Sum debits and credits over the current lines."""
        total_debit = sum(
            (to_money(line.debit_amount) for line in self.lines), ZERO
        )
        total_credit = sum(
            (to_money(line.credit_amount) for line in self.lines), ZERO
        )
        return to_money(total_debit), to_money(total_credit)

    def __repr__(self) -> str:
        return f"<JournalEntry {self.entry_number} ({self.status.value})>"


class JournalEntryLine(Base):
    """
    One debit or one credit against one account.

    Exactly one of debit_amount / credit_amount is non-zero. The
    service validates this before a line is stored.
    """

    __tablename__ = "journal_entry_lines"

    id: Mapped[int] = mapped_column(primary_key=True)
    journal_entry_id: Mapped[int] = mapped_column(
        ForeignKey("journal_entries.id"), nullable=False, index=True
    )
    line_number: Mapped[int] = mapped_column(nullable=False, default=1)
    account_id: Mapped[int] = mapped_column(
        ForeignKey("accounts.id"), nullable=False, index=True
    )
    description: Mapped[str | None] = mapped_column(String(255), nullable=True)
    debit_amount: Mapped[Decimal] = mapped_column(
        Numeric(15, 2), nullable=False, default=Decimal("0.00")
    )
    credit_amount: Mapped[Decimal] = mapped_column(
        Numeric(15, 2), nullable=False, default=Decimal("0.00")
    )
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    exchange_rate: Mapped[Decimal | None] = mapped_column(
        Numeric(18, 6), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )

    entry: Mapped["JournalEntry"] = relationship(back_populates="lines")
    account: Mapped["Account"] = relationship(back_populates="lines")

    @property
    def is_debit(self) -> bool:
        return to_money(self.debit_amount) > 0

    @property
    def amount(self) -> Decimal:
        """The non-zero side of the line."""
        if self.is_debit:
            return to_money(self.debit_amount)
        return to_money(self.credit_amount)

    def __repr__(self) -> str:
        side = "DR" if self.is_debit else "CR"
        return f"<JournalEntryLine {side} {self.amount} account={self.account_id}>"
