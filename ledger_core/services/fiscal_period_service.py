"""
Fiscal period service: the calendar that gates postings.

A posting dated D is accepted only if an open period covers D.
The posting engine asks can_accept() at draft time and again
at post time, since a period may be closed in between.
"""

import logging
from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_core.exceptions import (
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from ledger_core.models.base import utcnow
from ledger_core.models.enums import PeriodStatus
from ledger_core.models.fiscal_period import FiscalPeriod
from ledger_core.schemas.fiscal_period import FiscalPeriodCreate
from ledger_core.unit_of_work import UnitOfWork


class FiscalPeriodService:

    def __init__(
        self, db: Session, uow: UnitOfWork | None = None, logger=None, clock=None
    ):
        self.db = db
        self.uow = uow or UnitOfWork(db)
        self.logger = logger or logging.getLogger(__name__)
        self.clock = clock or utcnow

    def create_period(self, request: FiscalPeriodCreate) -> FiscalPeriod:
        """
        Create a period.

        Raises ValidationError if the range is inverted or overlaps
        another period of the same type. A month may sit inside a
        quarter and a year; two months may not overlap.
        """
        if request.start_date > request.end_date:
            raise ValidationError(
                "start_date must not be after end_date",
                error_code="INVALID_PERIOD_RANGE",
                details={
                    "start_date": request.start_date.isoformat(),
                    "end_date": request.end_date.isoformat(),
                },
            )

        with self.uow.atomic():
            query = select(FiscalPeriod).where(
                FiscalPeriod.period_type == request.period_type,
                FiscalPeriod.start_date <= request.end_date,
                FiscalPeriod.end_date >= request.start_date,
            )
            if request.tenant_id is None:
                query = query.where(FiscalPeriod.tenant_id.is_(None))
            else:
                query = query.where(FiscalPeriod.tenant_id == request.tenant_id)

            overlapping = self.db.execute(query).scalars().first()
            if overlapping:
                raise ValidationError(
                    f"Period overlaps existing period '{overlapping.name}'",
                    error_code="OVERLAPPING_PERIOD",
                    details={"overlapping_period_id": overlapping.id},
                )

            period = FiscalPeriod(
                tenant_id=request.tenant_id,
                name=request.name,
                period_type=request.period_type,
                fiscal_year=request.fiscal_year,
                start_date=request.start_date,
                end_date=request.end_date,
                status=request.status,
            )
            self.db.add(period)
            self.db.flush()

        self.logger.info(
            "Fiscal period created",
            extra={"period_id": period.id, "period_name": period.name},
        )
        return period

    def get_period(self, period_id: int) -> FiscalPeriod:
        period = self.db.get(FiscalPeriod, period_id)
        if not period:
            raise NotFoundError(
                f"Fiscal period {period_id} not found",
                error_code="PERIOD_NOT_FOUND",
                details={"period_id": period_id},
            )
        return period

    def list_periods(
        self,
        fiscal_year: int | None = None,
        status: PeriodStatus | None = None,
    ) -> list[FiscalPeriod]:
        query = select(FiscalPeriod)
        if fiscal_year is not None:
            query = query.where(FiscalPeriod.fiscal_year == fiscal_year)
        if status is not None:
            query = query.where(FiscalPeriod.status == status)
        periods = self.db.execute(
            query.order_by(FiscalPeriod.start_date, FiscalPeriod.id)
        ).scalars().all()
        return list(periods)

    def get_open_periods(self) -> list[FiscalPeriod]:
        return self.list_periods(status=PeriodStatus.OPEN)

    def get_period_covering(self, on: date) -> FiscalPeriod | None:
        """
        The period whose inclusive range contains `on`, or None.

        When periods of different types nest, the narrowest one
        wins (a month before its quarter before its year).
        """
        periods = self.db.execute(
            select(FiscalPeriod).where(
                FiscalPeriod.start_date <= on,
                FiscalPeriod.end_date >= on,
            )
        ).scalars().all()
        if not periods:
            return None
        return min(
            periods,
            key=lambda period: (period.end_date - period.start_date, period.id),
        )

    def get_current_period(self, today: date | None = None) -> FiscalPeriod:
        today = today or date.today()
        period = self.get_period_covering(today)
        if period is None:
            raise NotFoundError(
                f"No fiscal period covers {today.isoformat()}",
                error_code="PERIOD_NOT_FOUND",
                details={"date": today.isoformat()},
            )
        return period

    def can_accept(self, period_id: int, on: date) -> bool:
        """True iff the period exists, is open and covers `on`."""
        period = self.db.get(FiscalPeriod, period_id)
        return period is not None and period.can_accept(on)

    # --- Status transitions ---

    def close_period(self, period_id: int, actor_id: int | None = None) -> FiscalPeriod:
        with self.uow.atomic():
            period = self._transition(period_id, PeriodStatus.CLOSED)
            period.closed_at = self.clock()
            period.closed_by = actor_id
            self.db.flush()

        self.logger.info(
            "Fiscal period closed",
            extra={"period_id": period.id, "actor_id": actor_id},
        )
        return period

    def reopen_period(self, period_id: int) -> FiscalPeriod:
        with self.uow.atomic():
            period = self._transition(period_id, PeriodStatus.OPEN)
            period.closed_at = None
            period.closed_by = None
            self.db.flush()

        self.logger.info("Fiscal period reopened", extra={"period_id": period.id})
        return period

    def lock_period(self, period_id: int) -> FiscalPeriod:
        with self.uow.atomic():
            period = self._transition(period_id, PeriodStatus.LOCKED)
            self.db.flush()

        self.logger.info("Fiscal period locked", extra={"period_id": period.id})
        return period

    def _transition(self, period_id: int, new_status: PeriodStatus) -> FiscalPeriod:
        period = self.get_period(period_id)
        if not period.can_transition_to(new_status):
            raise InvalidStateError(
                f"Cannot move period '{period.name}' from "
                f"{period.status.value} to {new_status.value}",
                error_code="INVALID_PERIOD_TRANSITION",
                details={
                    "period_id": period_id,
                    "from_status": period.status.value,
                    "to_status": new_status.value,
                },
            )
        period.status = new_status
        return period
