"""
Chart of accounts API endpoints.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ledger_core.api.deps import http_error
from ledger_core.exceptions import LedgerError
from ledger_core.models.base import get_db
from ledger_core.models.enums import AccountType
from ledger_core.services.account_service import AccountService
from ledger_core.schemas.account import (
    AccountCreate,
    AccountUpdate,
    AccountResponse,
    AccountTreeNode,
    AccountBalanceResponse,
)

router = APIRouter(prefix="/accounts", tags=["Accounts"])


def _tree_node(node: dict) -> AccountTreeNode:
    response = AccountTreeNode.model_validate(node["account"], from_attributes=True)
    response.children = [_tree_node(child) for child in node["children"]]
    return response


@router.post("", response_model=AccountResponse, status_code=201)
def create_account(
    request: AccountCreate,
    db: Session = Depends(get_db),
):
    """Create an account. The number is generated when omitted."""
    service = AccountService(db)
    try:
        return service.create_account(request)
    except LedgerError as e:
        raise http_error(e)


@router.get("", response_model=list[AccountResponse])
def list_accounts(
    account_type: AccountType | None = None,
    active_only: bool = False,
    q: str | None = None,
    db: Session = Depends(get_db),
):
    """List accounts, or search them with ?q=."""
    service = AccountService(db)
    if q:
        return service.search(q)
    return service.list_accounts(account_type=account_type, active_only=active_only)


@router.get("/chart", response_model=list[AccountTreeNode])
def get_chart_of_accounts(db: Session = Depends(get_db)):
    """The account hierarchy, root accounts first."""
    service = AccountService(db)
    return [_tree_node(node) for node in service.get_chart_of_accounts()]


@router.get("/{account_id}", response_model=AccountResponse)
def get_account(
    account_id: int,
    db: Session = Depends(get_db),
):
    service = AccountService(db)
    try:
        return service.get_account(account_id)
    except LedgerError as e:
        raise http_error(e)


@router.get("/{account_id}/children", response_model=list[AccountResponse])
def get_children(
    account_id: int,
    db: Session = Depends(get_db),
):
    service = AccountService(db)
    try:
        return service.get_children(account_id)
    except LedgerError as e:
        raise http_error(e)


@router.patch("/{account_id}", response_model=AccountResponse)
def update_account(
    account_id: int,
    request: AccountUpdate,
    db: Session = Depends(get_db),
):
    """
    Update an account.

    Balance, number and type cannot be changed here; the balance
    only moves through posted journal entries.
    """
    service = AccountService(db)
    try:
        return service.update_account(account_id, request)
    except LedgerError as e:
        raise http_error(e)


@router.delete("/{account_id}", status_code=204)
def delete_account(
    account_id: int,
    db: Session = Depends(get_db),
):
    service = AccountService(db)
    try:
        service.delete_account(account_id)
    except LedgerError as e:
        raise http_error(e)


@router.get("/{account_id}/balance", response_model=AccountBalanceResponse)
def get_account_balance(
    account_id: int,
    db: Session = Depends(get_db),
):
    """Get the running balance maintained by the posting engine."""
    service = AccountService(db)
    try:
        account = service.get_account(account_id)
        return AccountBalanceResponse(
            account_id=account.id,
            account_number=account.account_number,
            account_type=account.account_type,
            balance=account.balance,
            currency=account.currency,
        )
    except LedgerError as e:
        raise http_error(e)
