"""
Fiscal period API endpoints.
"""

from datetime import date

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ledger_core.api.deps import get_actor_id, http_error
from ledger_core.exceptions import LedgerError
from ledger_core.models.base import get_db
from ledger_core.models.enums import PeriodStatus
from ledger_core.services.fiscal_period_service import FiscalPeriodService
from ledger_core.schemas.fiscal_period import (
    FiscalPeriodCreate,
    FiscalPeriodResponse,
)

router = APIRouter(prefix="/fiscal-periods", tags=["Fiscal Periods"])


@router.post("", response_model=FiscalPeriodResponse, status_code=201)
def create_period(
    request: FiscalPeriodCreate,
    db: Session = Depends(get_db),
):
    service = FiscalPeriodService(db)
    try:
        return service.create_period(request)
    except LedgerError as e:
        raise http_error(e)


@router.get("", response_model=list[FiscalPeriodResponse])
def list_periods(
    fiscal_year: int | None = None,
    status: PeriodStatus | None = None,
    db: Session = Depends(get_db),
):
    service = FiscalPeriodService(db)
    return service.list_periods(fiscal_year=fiscal_year, status=status)


@router.get("/current", response_model=FiscalPeriodResponse)
def get_current_period(
    on: date | None = None,
    db: Session = Depends(get_db),
):
    """The period covering today, or the ?on= date."""
    service = FiscalPeriodService(db)
    try:
        return service.get_current_period(on)
    except LedgerError as e:
        raise http_error(e)


@router.get("/{period_id}", response_model=FiscalPeriodResponse)
def get_period(
    period_id: int,
    db: Session = Depends(get_db),
):
    service = FiscalPeriodService(db)
    try:
        return service.get_period(period_id)
    except LedgerError as e:
        raise http_error(e)


@router.post("/{period_id}/close", response_model=FiscalPeriodResponse)
def close_period(
    period_id: int,
    actor_id: int | None = Depends(get_actor_id),
    db: Session = Depends(get_db),
):
    """Close an open period. Drafts dated inside it can no longer post."""
    service = FiscalPeriodService(db)
    try:
        return service.close_period(period_id, actor_id=actor_id)
    except LedgerError as e:
        raise http_error(e)


@router.post("/{period_id}/reopen", response_model=FiscalPeriodResponse)
def reopen_period(
    period_id: int,
    db: Session = Depends(get_db),
):
    service = FiscalPeriodService(db)
    try:
        return service.reopen_period(period_id)
    except LedgerError as e:
        raise http_error(e)


@router.post("/{period_id}/lock", response_model=FiscalPeriodResponse)
def lock_period(
    period_id: int,
    db: Session = Depends(get_db),
):
    """Lock a closed period for good."""
    service = FiscalPeriodService(db)
    try:
        return service.lock_period(period_id)
    except LedgerError as e:
        raise http_error(e)
