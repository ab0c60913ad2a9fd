"""
Journal entry API endpoints.

Thin wrappers over LedgerService. Every rule (balance, period
gating, immutability) is enforced by the service; this layer
only maps its errors to status codes.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ledger_core.api.deps import get_actor_id, http_error
from ledger_core.exceptions import LedgerError
from ledger_core.models.base import get_db
from ledger_core.models.enums import EntryStatus
from ledger_core.services.ledger_service import LedgerService
from ledger_core.schemas.journal_entry import (
    EntryRequest,
    EntryUpdate,
    EntryResponse,
    ReverseRequest,
    IntegrityReport,
)

router = APIRouter(prefix="/journal-entries", tags=["Journal Entries"])


@router.post("", response_model=EntryResponse, status_code=201)
def create_entry(
    request: EntryRequest,
    actor_id: int | None = Depends(get_actor_id),
    db: Session = Depends(get_db),
):
    """Record a draft entry. Balance is checked when it is posted."""
    service = LedgerService(db)
    try:
        return service.create_entry(request, actor_id=actor_id)
    except LedgerError as e:
        raise http_error(e)


@router.get("", response_model=list[EntryResponse])
def list_entries(
    status: EntryStatus | None = None,
    fiscal_period_id: int | None = None,
    db: Session = Depends(get_db),
):
    service = LedgerService(db)
    return service.list_entries(status=status, fiscal_period_id=fiscal_period_id)


@router.get("/integrity", response_model=IntegrityReport)
def check_integrity(db: Session = Depends(get_db)):
    """
    Verify the whole ledger.

    Total debits must equal total credits across applied entries,
    and every stored balance must match its derived balance.
    """
    service = LedgerService(db)
    return service.check_integrity()


@router.get("/{entry_id}", response_model=EntryResponse)
def get_entry(
    entry_id: int,
    db: Session = Depends(get_db),
):
    service = LedgerService(db)
    try:
        return service.get_entry(entry_id)
    except LedgerError as e:
        raise http_error(e)


@router.put("/{entry_id}", response_model=EntryResponse)
def update_entry(
    entry_id: int,
    request: EntryUpdate,
    db: Session = Depends(get_db),
):
    service = LedgerService(db)
    try:
        return service.update_entry(entry_id, request)
    except LedgerError as e:
        raise http_error(e)


@router.delete("/{entry_id}", status_code=204)
def delete_entry(
    entry_id: int,
    db: Session = Depends(get_db),
):
    service = LedgerService(db)
    try:
        service.delete_entry(entry_id)
    except LedgerError as e:
        raise http_error(e)


@router.post("/{entry_id}/post", response_model=EntryResponse)
def post_entry(
    entry_id: int,
    actor_id: int | None = Depends(get_actor_id),
    db: Session = Depends(get_db),
):
    """
    Post a draft entry.

    Applies every line to its account balance and marks the entry
    posted, all in one transaction.
    """
    service = LedgerService(db)
    try:
        return service.post_entry(entry_id, actor_id=actor_id)
    except LedgerError as e:
        raise http_error(e)


@router.post("/{entry_id}/reverse", response_model=EntryResponse, status_code=201)
def reverse_entry(
    entry_id: int,
    request: ReverseRequest | None = None,
    actor_id: int | None = Depends(get_actor_id),
    db: Session = Depends(get_db),
):
    """Reverse a posted entry. Returns the new reversal entry."""
    service = LedgerService(db)
    try:
        return service.reverse_entry(entry_id, request, actor_id=actor_id)
    except LedgerError as e:
        raise http_error(e)
