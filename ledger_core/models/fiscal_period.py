"""
Fiscal period model.

A period is an inclusive date range with a status that gates
postings dated inside it. Status moves one way in normal
operation: open -> closed -> locked. A closed period may be
reopened; a locked one never.
"""

from datetime import date, datetime

from sqlalchemy import String, Date, DateTime, Integer, Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_core.models.base import Base, utcnow
from ledger_core.models.enums import PeriodType, PeriodStatus


VALID_TRANSITIONS: dict[PeriodStatus, set[PeriodStatus]] = {
    PeriodStatus.OPEN: {PeriodStatus.CLOSED},
    PeriodStatus.CLOSED: {PeriodStatus.OPEN, PeriodStatus.LOCKED},
    PeriodStatus.LOCKED: set(),  # Terminal
}


class FiscalPeriod(Base):
    __tablename__ = "fiscal_periods"

    id: Mapped[int] = mapped_column(primary_key=True)
    tenant_id: Mapped[int | None] = mapped_column(nullable=True, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    period_type: Mapped[PeriodType] = mapped_column(
        SAEnum(PeriodType, name="period_type_enum", create_constraint=True),
        nullable=False,
    )
    fiscal_year: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    start_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    end_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    status: Mapped[PeriodStatus] = mapped_column(
        SAEnum(PeriodStatus, name="period_status_enum", create_constraint=True),
        nullable=False,
        default=PeriodStatus.OPEN,
    )
    closed_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True, default=None
    )
    closed_by: Mapped[int | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow
    )

    entries: Mapped[list["JournalEntry"]] = relationship(
        back_populates="fiscal_period"
    )

    @property
    def is_open(self) -> bool:
        return self.status == PeriodStatus.OPEN

    def contains(self, on: date) -> bool:
        """Inclusive on both ends."""
        return self.start_date <= on <= self.end_date

    def can_accept(self, on: date) -> bool:
        """True if a posting dated `on` may land in this period now."""
        return self.is_open and self.contains(on)

    def can_transition_to(self, new_status: PeriodStatus) -> bool:
        return new_status in VALID_TRANSITIONS.get(self.status, set())

    def __repr__(self) -> str:
        return (
            f"<FiscalPeriod {self.name} "
            f"{self.start_date}..{self.end_date} ({self.status.value})>"
        )
