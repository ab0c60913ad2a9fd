"""
Account service: the chart of accounts registry.

Accounts are kept as an id-indexed tree (parent_id references).
Every write validates the tree so a cycle can never be stored.

The balance column is an incrementally maintained projection of
posted lines. adjust_balance() is the only code path that writes
it, and the posting engine is its only caller in the application.
derive_balance() recomputes the same figure from history for
audits; it is never used while posting.
"""

import logging
from decimal import Decimal

from sqlalchemy import select, func, or_
from sqlalchemy.orm import Session

from ledger_core.config import get_settings
from ledger_core.exceptions import (
    ConflictError,
    NotFoundError,
    ValidationError,
)
from ledger_core.models.account import Account
from ledger_core.models.base import utcnow
from ledger_core.models.enums import (
    AccountType,
    EntryStatus,
    ACCOUNT_NUMBER_PREFIXES,
)
from ledger_core.models.journal_entry import JournalEntry, JournalEntryLine
from ledger_core.money import to_money
from ledger_core.schemas.account import AccountCreate, AccountUpdate
from ledger_core.unit_of_work import UnitOfWork

# First sequence handed out under each classification prefix
FIRST_ACCOUNT_SEQUENCE = 1000


class AccountService:

    def __init__(
        self, db: Session, uow: UnitOfWork | None = None, logger=None, clock=None
    ):
        self.db = db
        self.uow = uow or UnitOfWork(db)
        self.logger = logger or logging.getLogger(__name__)
        self.clock = clock or utcnow
        self.settings = get_settings()

    # --- Queries ---

    def _active_query(self):
        return select(Account).where(Account.deleted_at.is_(None))

    def get_account(self, account_id: int) -> Account:
        """Get an account by ID. Soft-deleted accounts are not found."""
        account = self.db.get(Account, account_id)
        if not account or account.is_deleted:
            raise NotFoundError(
                f"Account {account_id} not found",
                error_code="ACCOUNT_NOT_FOUND",
                details={"account_id": account_id},
            )
        return account

    def get_by_number(self, account_number: str) -> Account:
        account = self.db.execute(
            self._active_query().where(Account.account_number == account_number)
        ).scalar_one_or_none()
        if not account:
            raise NotFoundError(
                f"Account {account_number} not found",
                error_code="ACCOUNT_NOT_FOUND",
                details={"account_number": account_number},
            )
        return account

    def list_accounts(
        self,
        account_type: AccountType | None = None,
        active_only: bool = False,
    ) -> list[Account]:
        query = self._active_query()
        if account_type is not None:
            query = query.where(Account.account_type == account_type)
        if active_only:
            query = query.where(Account.is_active.is_(True))
        accounts = self.db.execute(
            query.order_by(Account.account_number)
        ).scalars().all()
        return list(accounts)

    def search(self, term: str) -> list[Account]:
        """Match name, number or description, case-insensitively."""
        pattern = f"%{term}%"
        accounts = self.db.execute(
            self._active_query()
            .where(or_(
                Account.name.ilike(pattern),
                Account.account_number.ilike(pattern),
                Account.description.ilike(pattern),
            ))
            .order_by(Account.account_number)
        ).scalars().all()
        return list(accounts)

    def get_children(self, account_id: int) -> list[Account]:
        self.get_account(account_id)
        children = self.db.execute(
            self._active_query()
            .where(Account.parent_id == account_id)
            .order_by(Account.account_number)
        ).scalars().all()
        return list(children)

    def get_chart_of_accounts(self) -> list[dict]:
        """
        The full hierarchy as nested dicts, roots first.

        Built from one query: accounts are indexed by id and
        attached to their parent's "children" list.
        """
        accounts = self.list_accounts()
        nodes = {
            account.id: {"account": account, "children": []}
            for account in accounts
        }
        roots = []
        for account in accounts:
            node = nodes[account.id]
            parent = nodes.get(account.parent_id)
            if parent is None:
                roots.append(node)
            else:
                parent["children"].append(node)
        return roots

    # --- Commands ---

    def create_account(self, request: AccountCreate) -> Account:
        """
        Create a new account.

        Assigns the next number for the classification when none
        is given. Raises ValidationError if the number is taken.
        """
        with self.uow.atomic():
            account_number = request.account_number or self._next_account_number(
                request.account_type
            )
            existing = self.db.execute(
                select(Account).where(Account.account_number == account_number)
            ).scalar_one_or_none()
            if existing:
                raise ValidationError(
                    f"Account with number '{account_number}' already exists",
                    error_code="DUPLICATE_ACCOUNT_NUMBER",
                    details={"account_number": account_number},
                )

            if request.parent_id is not None:
                self.get_account(request.parent_id)

            account = Account(
                tenant_id=request.tenant_id,
                account_number=account_number,
                name=request.name,
                description=request.description,
                account_type=request.account_type,
                sub_type=request.sub_type,
                parent_id=request.parent_id,
                currency=request.currency or self.settings.DEFAULT_CURRENCY,
                balance=Decimal("0.00"),
                is_active=request.is_active,
                is_system=request.is_system,
                allow_manual_entries=request.allow_manual_entries,
            )
            self.db.add(account)
            self.db.flush()

        self.logger.info(
            "Account created",
            extra={"account_id": account.id, "account_number": account.account_number},
        )
        return account

    def update_account(self, account_id: int, request: AccountUpdate) -> Account:
        """
        Apply a partial update.

        Passing parent_id explicitly as null moves the account to
        the root of the chart.
        """
        with self.uow.atomic():
            account = self.get_account(account_id)
            changes = request.model_dump(exclude_unset=True)

            if "parent_id" in changes:
                self._check_parent(account, changes["parent_id"])

            for field, value in changes.items():
                if value is None and field not in ("parent_id", "description", "sub_type"):
                    continue
                setattr(account, field, value)
            self.db.flush()

        self.logger.info(
            "Account updated",
            extra={"account_id": account.id, "fields": sorted(changes)},
        )
        return account

    def delete_account(self, account_id: int) -> None:
        """
        Soft-delete an account.

        Refused for system accounts, accounts with journal lines,
        and accounts that still have children.
        """
        with self.uow.atomic():
            account = self.get_account(account_id)

            if account.is_system:
                raise ConflictError(
                    f"Cannot delete system account {account.account_number}",
                    details={"account_id": account_id},
                )

            has_lines = self.db.execute(
                select(JournalEntryLine.id)
                .where(JournalEntryLine.account_id == account_id)
                .limit(1)
            ).first()
            if has_lines:
                raise ConflictError(
                    f"Cannot delete account {account.account_number} "
                    f"with journal entries",
                    details={"account_id": account_id},
                )

            has_children = self.db.execute(
                self._active_query()
                .where(Account.parent_id == account_id)
                .limit(1)
            ).first()
            if has_children:
                raise ConflictError(
                    f"Cannot delete account {account.account_number} "
                    f"with child accounts",
                    details={"account_id": account_id},
                )

            account.deleted_at = self.clock()
            account.is_active = False
            self.db.flush()

        self.logger.info("Account deleted", extra={"account_id": account_id})

    # --- Balance ---

    def lock_accounts(self, account_ids) -> dict[int, Account]:
        """
        Row-lock the given accounts, ascending by id, and return them.

        Must run inside the caller's unit of work. The rows are
        re-read so the balances are the committed ones.
        """
        ids = sorted(set(account_ids))
        accounts = self.db.execute(
            self._active_query()
            .where(Account.id.in_(ids))
            .order_by(Account.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalars().all()
        by_id = {account.id: account for account in accounts}

        missing = set(ids) - set(by_id)
        if missing:
            raise NotFoundError(
                f"Accounts not found: {sorted(missing)}",
                error_code="ACCOUNT_NOT_FOUND",
                details={"account_ids": sorted(missing)},
            )
        return by_id

    def adjust_balance(self, account_id: int, amount, is_debit: bool) -> Decimal:
        """
        Apply one posted debit or credit to an account's balance.

        Debit-normal accounts (asset, expense) grow with debits;
        the others grow with credits. The read-modify-write runs
        under the account's lock and row lock. Returns the new
        balance.
        """
        with self.uow.atomic():
            self.uow.hold_accounts([account_id])
            account = self.lock_accounts([account_id])[account_id]
            account.balance = to_money(
                account.balance + account.balance_delta(amount, is_debit)
            )
            self.db.flush()

        self.logger.debug(
            "Account balance adjusted",
            extra={
                "account_id": account_id,
                "amount": str(amount),
                "is_debit": is_debit,
                "balance": str(account.balance),
            },
        )
        return account.balance

    def derive_balance(self, account_id: int) -> Decimal:
        """
        Recompute a balance from posted and reversed entries.

        A reversed entry still counts: its effect is cancelled by
        the posted reversal entry, which is counted too.
        """
        account = self.get_account(account_id)

        total_debits, total_credits = self.db.execute(
            select(
                func.coalesce(func.sum(JournalEntryLine.debit_amount), 0),
                func.coalesce(func.sum(JournalEntryLine.credit_amount), 0),
            )
            .join(JournalEntry, JournalEntryLine.journal_entry_id == JournalEntry.id)
            .where(
                JournalEntryLine.account_id == account_id,
                JournalEntry.status.in_([EntryStatus.POSTED, EntryStatus.REVERSED]),
            )
        ).one()

        debits = to_money(Decimal(str(total_debits)))
        credits = to_money(Decimal(str(total_credits)))
        if account.is_debit_normal:
            return debits - credits
        return credits - debits

    # --- Helpers ---

    def _next_account_number(self, account_type: AccountType) -> str:
        """
        Next free number under the classification prefix.

        Asset accounts get 11000, 11001, ...; liability 21000, ...
        """
        prefix = ACCOUNT_NUMBER_PREFIXES[account_type]
        numbers = self.db.execute(
            select(Account.account_number)
            .where(Account.account_number.like(f"{prefix}%"))
        ).scalars().all()

        # Hand-assigned numbers such as "1000" are not part of the sequence
        sequences = [
            int(number[len(prefix):])
            for number in numbers
            if number[len(prefix):].isdigit()
            and int(number[len(prefix):]) >= FIRST_ACCOUNT_SEQUENCE
        ]
        sequence = max(sequences) + 1 if sequences else FIRST_ACCOUNT_SEQUENCE
        return f"{prefix}{sequence:04d}"

    def _check_parent(self, account: Account, parent_id: int | None) -> None:
        """Reject a parent that is missing or would close a cycle."""
        if parent_id is None:
            return
        if parent_id == account.id:
            raise ValidationError(
                "An account cannot be its own parent",
                error_code="ACCOUNT_CYCLE",
                details={"account_id": account.id},
            )

        # Walk up from the proposed parent; meeting the account means a cycle
        seen = set()
        current = self.get_account(parent_id)
        while current is not None:
            if current.id == account.id:
                raise ValidationError(
                    f"Moving account {account.account_number} under "
                    f"{parent_id} would create a cycle",
                    error_code="ACCOUNT_CYCLE",
                    details={"account_id": account.id, "parent_id": parent_id},
                )
            if current.id in seen:
                break
            seen.add(current.id)
            current = (
                self.db.get(Account, current.parent_id)
                if current.parent_id is not None
                else None
            )
