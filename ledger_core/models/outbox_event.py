"""
Outbox event model.

Notifications for other parts of the application (entry
posted, entry reversed) are written here in the same database
transaction as the change they describe. A relay delivers them
after commit, so a failing subscriber can never undo a posting.
"""

from datetime import datetime

from sqlalchemy import String, DateTime, JSON
from sqlalchemy.orm import Mapped, mapped_column

from ledger_core.models.base import Base, utcnow


class OutboxEvent(Base):
    """
    Pending or delivered notification.

    Rows are append-only apart from published_at, which the
    relay stamps once every subscriber has accepted the event.
    """

    __tablename__ = "outbox_events"

    id: Mapped[int] = mapped_column(primary_key=True)
    event_type: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    aggregate_id: Mapped[int] = mapped_column(nullable=False, index=True)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False
    )
    published_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True, default=None, index=True
    )

    def __repr__(self) -> str:
        state = "published" if self.published_at else "pending"
        return f"<OutboxEvent {self.event_type} #{self.aggregate_id} ({state})>"
