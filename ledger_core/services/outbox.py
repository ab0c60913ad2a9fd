"""
Outbox writer and relay for ledger notifications.

record_event() is called by the posting engine inside its unit of
work, so an EntryPosted notification exists exactly when the
posting committed. OutboxRelay runs later (a worker loop, a cron
job, a test) and hands pending events to subscribers.

Delivery is at-least-once: an event is stamped published only
after every subscriber returned, and a subscriber that raises
leaves the event pending for the next run. Subscribers must
therefore tolerate seeing the same event twice.
"""

import logging
from collections import defaultdict
from typing import Any, Callable

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_core.models.base import utcnow
from ledger_core.models.outbox_event import OutboxEvent

ENTRY_POSTED = "ledger.entry.posted"
ENTRY_REVERSED = "ledger.entry.reversed"

Subscriber = Callable[[str, dict[str, Any]], None]


def record_event(
    db: Session, event_type: str, aggregate_id: int, payload: dict[str, Any]
) -> OutboxEvent:
    """Add a pending event to the current transaction."""
    event = OutboxEvent(
        event_type=event_type,
        aggregate_id=aggregate_id,
        payload=payload,
    )
    db.add(event)
    return event


class OutboxRelay:
    """
    Deliver pending outbox events to in-process subscribers.

    Subscribe to a specific event type, or to "*" for all of them.
    """

    def __init__(
        self, db: Session, batch_size: int = 100, logger=None, clock=None
    ):
        self.db = db
        self.batch_size = batch_size
        self.logger = logger or logging.getLogger(__name__)
        self.clock = clock or utcnow
        self._subscribers: dict[str, list[Subscriber]] = defaultdict(list)

    def subscribe(self, event_type: str, handler: Subscriber) -> None:
        self._subscribers[event_type].append(handler)

    def pending(self) -> list[OutboxEvent]:
        """Unpublished events, oldest first."""
        events = self.db.execute(
            select(OutboxEvent)
            .where(OutboxEvent.published_at.is_(None))
            .order_by(OutboxEvent.id)
            .limit(self.batch_size)
        ).scalars().all()
        return list(events)

    def relay_pending(self) -> int:
        """
        Deliver one batch of pending events.

        Returns the number of events marked published.
        """
        delivered = 0
        for event in self.pending():
            handlers = self._subscribers[event.event_type] + self._subscribers["*"]
            try:
                for handler in handlers:
                    handler(event.event_type, dict(event.payload))
            except Exception:
                self.logger.exception(
                    "Outbox delivery failed, event left pending",
                    extra={"event_id": event.id, "event_type": event.event_type},
                )
                continue

            event.published_at = self.clock()
            self.db.commit()
            delivered += 1

        if delivered:
            self.logger.info(
                "Outbox events delivered", extra={"count": delivered}
            )
        return delivered
