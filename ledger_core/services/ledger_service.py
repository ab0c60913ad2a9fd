"""
Ledger service: the posting engine.

This service enforces the fundamental rules:
1. An entry is posted only if its debits equal its credits
2. Posted and reversed entries are immutable
3. A posting lands only in an open fiscal period
4. Account balances move only when an entry is posted

Entry lifecycle:

    draft ──post──▶ posted ──reverse──▶ reversed
      │
    delete

No other service writes balances. Invoice, payment and
procurement workflows hand an EntryRequest to create_entry()
and then call post_entry().
"""

import logging
from datetime import date
from decimal import Decimal

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_core.config import get_settings
from ledger_core.exceptions import (
    AlreadyPostedError,
    CannotDeletePostedError,
    CannotModifyPostedError,
    LedgerStorageError,
    NoOpenPeriodError,
    NotFoundError,
    NotPostedError,
    PeriodClosedError,
    UnbalancedEntryError,
    ValidationError,
)
from ledger_core.models.account import Account
from ledger_core.models.base import utcnow
from ledger_core.models.enums import EntryStatus
from ledger_core.models.fiscal_period import FiscalPeriod
from ledger_core.models.journal_entry import JournalEntry, JournalEntryLine
from ledger_core.money import to_money, amounts_equal
from ledger_core.schemas.journal_entry import (
    EntryRequest,
    EntryUpdate,
    LineRequest,
    ReverseRequest,
)
from ledger_core.services.account_service import AccountService
from ledger_core.services.fiscal_period_service import FiscalPeriodService
from ledger_core.services.outbox import (
    ENTRY_POSTED,
    ENTRY_REVERSED,
    record_event,
)
from ledger_core.unit_of_work import UnitOfWork

# Statuses whose lines have been applied to account balances
APPLIED_STATUSES = (EntryStatus.POSTED, EntryStatus.REVERSED)

# Generated entry numbers: JE-202401-00001
ENTRY_SEQUENCE_WIDTH = 5
ENTRY_NUMBER_ATTEMPTS = 5


class LedgerService:
    """
    Create, post, reverse and delete journal entries.

    Dependencies are explicit: the session, the unit of work that
    scopes transactions and account locks, a logger and a clock.
    The acting user is passed to each command as actor_id.
    """

    def __init__(
        self,
        db: Session,
        uow: UnitOfWork | None = None,
        lock_manager=None,
        logger=None,
        clock=None,
    ):
        self.db = db
        self.uow = uow or UnitOfWork(db, lock_manager=lock_manager)
        self.logger = logger or logging.getLogger(__name__)
        self.clock = clock or utcnow
        self.settings = get_settings()
        self.accounts = AccountService(
            db, uow=self.uow, logger=self.logger, clock=self.clock
        )
        self.periods = FiscalPeriodService(
            db, uow=self.uow, logger=self.logger, clock=self.clock
        )

    # --- Queries ---

    def get_entry(self, entry_id: int) -> JournalEntry:
        entry = self.db.get(JournalEntry, entry_id)
        if not entry:
            raise NotFoundError(
                f"Journal entry {entry_id} not found",
                error_code="ENTRY_NOT_FOUND",
                details={"entry_id": entry_id},
            )
        return entry

    def list_entries(
        self,
        status: EntryStatus | None = None,
        fiscal_period_id: int | None = None,
    ) -> list[JournalEntry]:
        query = select(JournalEntry)
        if status is not None:
            query = query.where(JournalEntry.status == status)
        if fiscal_period_id is not None:
            query = query.where(JournalEntry.fiscal_period_id == fiscal_period_id)
        entries = self.db.execute(
            query.order_by(JournalEntry.entry_date, JournalEntry.id)
        ).scalars().all()
        return list(entries)

    def validate_balance(self, entry: JournalEntry) -> bool:
        """
        Recompute totals from the lines and compare them.

        The cached header totals are refreshed as a side effect
        but never read for the decision.
        """
        total_debit, total_credit = entry.line_totals()
        entry.total_debit = total_debit
        entry.total_credit = total_credit
        return amounts_equal(total_debit, total_credit)

    # --- Draft commands ---

    def create_entry(
        self, request: EntryRequest, actor_id: int | None = None
    ) -> JournalEntry:
        """
        Record a draft entry.

        Lines may be unbalanced at this stage. No account balance
        changes and no notification is written until posting.

        A generated number can lose a race with a concurrent
        creator; the insert is then rolled back and retried with a
        fresh number. A caller-supplied number is never retried.
        Inside an enclosing unit of work the collision propagates,
        since only the outermost scope can roll back.
        """
        retry = not request.entry_number and not self.uow.in_transaction
        attempts = ENTRY_NUMBER_ATTEMPTS if retry else 1

        for attempt in range(1, attempts + 1):
            try:
                return self._create_entry(request, actor_id)
            except LedgerStorageError as exc:
                if attempt == attempts or not isinstance(exc.__cause__, IntegrityError):
                    raise
                self.logger.warning(
                    "Entry number collision, retrying",
                    extra={"attempt": attempt},
                )

    def _create_entry(self, request: EntryRequest, actor_id: int | None) -> JournalEntry:
        entry_date = request.entry_date or self.clock().date()
        currency = request.currency or self.settings.DEFAULT_CURRENCY

        with self.uow.atomic():
            period = self._resolve_period(request.fiscal_period_id, entry_date)
            if request.entry_number:
                entry_number = request.entry_number
                self._check_entry_number_free(entry_number)
            else:
                entry_number = self._next_entry_number()

            entry = JournalEntry(
                tenant_id=request.tenant_id,
                entry_number=entry_number,
                entry_date=entry_date,
                reference=request.reference,
                description=request.description,
                fiscal_period_id=period.id,
                status=EntryStatus.DRAFT,
                total_debit=Decimal("0.00"),
                total_credit=Decimal("0.00"),
                currency=currency,
                created_by=actor_id,
            )
            self.db.add(entry)
            self.db.flush()

            self._add_lines(entry, request.lines)
            self.validate_balance(entry)
            self.db.flush()

        self.logger.info(
            "Journal entry created",
            extra={
                "entry_id": entry.id,
                "entry_number": entry.entry_number,
                "line_count": len(entry.lines),
            },
        )
        return entry

    def update_entry(self, entry_id: int, request: EntryUpdate) -> JournalEntry:
        """
        Change a draft entry.

        A new line set replaces the old one entirely; posted lines
        are never patched. Raises CannotModifyPostedError once the
        entry has left draft.
        """
        with self.uow.atomic():
            entry = self._lock_entry(entry_id)
            if not entry.is_draft:
                raise CannotModifyPostedError(
                    f"Journal entry {entry.entry_number} is {entry.status.value} "
                    f"and cannot be modified",
                    details={"entry_id": entry_id, "status": entry.status.value},
                )

            if request.entry_date is not None and request.entry_date != entry.entry_date:
                # Stay in the same period when it still covers the new date
                keep_period = entry.fiscal_period.contains(request.entry_date)
                period = self._resolve_period(
                    entry.fiscal_period_id if keep_period else None,
                    request.entry_date,
                )
                entry.entry_date = request.entry_date
                entry.fiscal_period_id = period.id

            if request.reference is not None:
                entry.reference = request.reference
            if request.description is not None:
                entry.description = request.description

            if request.lines is not None:
                entry.lines.clear()
                self.db.flush()
                self._add_lines(entry, request.lines)

            self.validate_balance(entry)
            self.db.flush()

        self.logger.info(
            "Journal entry updated",
            extra={"entry_id": entry.id, "entry_number": entry.entry_number},
        )
        return entry

    def delete_entry(self, entry_id: int) -> None:
        """Delete a draft entry: lines first, then the header."""
        with self.uow.atomic():
            entry = self._lock_entry(entry_id)
            if not entry.is_draft:
                raise CannotDeletePostedError(
                    f"Journal entry {entry.entry_number} is {entry.status.value} "
                    f"and cannot be deleted",
                    details={"entry_id": entry_id, "status": entry.status.value},
                )
            entry_number = entry.entry_number

            entry.lines.clear()
            self.db.flush()
            self.db.delete(entry)
            self.db.flush()

        self.logger.info(
            "Journal entry deleted",
            extra={"entry_id": entry_id, "entry_number": entry_number},
        )

    # --- Posting ---

    def post_entry(self, entry_id: int, actor_id: int | None = None) -> JournalEntry:
        """
        Post a draft entry and apply it to account balances.

        Checks, in order: the entry exists, is a draft, balances,
        and its period is open right now. Then every touched
        account is locked (ascending id), each line is applied
        through AccountService.adjust_balance, the entry becomes
        posted and an EntryPosted event is written to the outbox.

        All of it commits together. If anything fails nothing is
        written, including partial balance changes.
        """
        with self.uow.atomic():
            entry = self._lock_entry(entry_id)

            if not entry.is_draft:
                raise AlreadyPostedError(
                    f"Journal entry {entry.entry_number} is already {entry.status.value}",
                    details={"entry_id": entry_id, "status": entry.status.value},
                )
            if not entry.lines:
                raise ValidationError(
                    f"Journal entry {entry.entry_number} has no lines",
                    error_code="EMPTY_ENTRY",
                    details={"entry_id": entry_id},
                )
            if not self.validate_balance(entry):
                raise UnbalancedEntryError(
                    entry.id, entry.total_debit, entry.total_credit
                )

            # Period status may have changed since the draft was created
            period = self._lock_period(entry.fiscal_period_id)
            if period is None or not period.can_accept(entry.entry_date):
                raise PeriodClosedError(
                    f"Fiscal period does not accept postings dated "
                    f"{entry.entry_date.isoformat()}",
                    details={
                        "entry_id": entry_id,
                        "fiscal_period_id": entry.fiscal_period_id,
                        "period_status": period.status.value if period else None,
                    },
                )

            account_ids = sorted({line.account_id for line in entry.lines})
            self.uow.hold_accounts(account_ids)
            accounts = self.accounts.lock_accounts(account_ids)
            for account in accounts.values():
                self._check_account_usable(account)

            for line in entry.lines:
                self.accounts.adjust_balance(line.account_id, line.amount, line.is_debit)

            entry.status = EntryStatus.POSTED
            entry.posted_at = self.clock()
            entry.posted_by = actor_id
            record_event(
                self.db,
                ENTRY_POSTED,
                entry.id,
                {"entry_id": entry.id, "entry_number": entry.entry_number},
            )
            self.db.flush()

        self.logger.info(
            "Journal entry posted",
            extra={
                "entry_id": entry.id,
                "entry_number": entry.entry_number,
                "total": str(entry.total_debit),
                "actor_id": actor_id,
            },
        )
        return entry

    def reverse_entry(
        self,
        entry_id: int,
        request: ReverseRequest | None = None,
        actor_id: int | None = None,
    ) -> JournalEntry:
        """
        Reverse a posted entry with a mirror entry.

        The reversal keeps the original's period and currency and
        swaps debit and credit on every line. It goes through
        create_entry() and post_entry(), so it is validated like
        any other posting. Returns the reversal entry.
        """
        overrides = request or ReverseRequest()

        with self.uow.atomic():
            original = self._lock_entry(entry_id)
            if not original.is_posted:
                raise NotPostedError(
                    f"Journal entry {original.entry_number} is "
                    f"{original.status.value} and cannot be reversed",
                    details={"entry_id": entry_id, "status": original.status.value},
                )

            reversal_request = EntryRequest(
                entry_date=overrides.entry_date or original.entry_date,
                reference=overrides.reference
                or f"Reversal of {original.entry_number}",
                description=overrides.description
                or f"Reversal: {original.description or original.entry_number}",
                fiscal_period_id=original.fiscal_period_id,
                currency=original.currency,
                tenant_id=original.tenant_id,
                lines=[
                    LineRequest(
                        account_id=line.account_id,
                        description=line.description,
                        debit_amount=to_money(line.credit_amount),
                        credit_amount=to_money(line.debit_amount),
                        currency=line.currency,
                        exchange_rate=line.exchange_rate,
                    )
                    for line in original.lines
                ],
            )
            reversal = self.create_entry(reversal_request, actor_id=actor_id)
            self.post_entry(reversal.id, actor_id=actor_id)

            original.status = EntryStatus.REVERSED
            original.reversed_entry_id = reversal.id
            record_event(
                self.db,
                ENTRY_REVERSED,
                original.id,
                {
                    "entry_id": original.id,
                    "entry_number": original.entry_number,
                    "reversal_entry_id": reversal.id,
                    "reversal_entry_number": reversal.entry_number,
                },
            )
            self.db.flush()

        self.logger.info(
            "Journal entry reversed",
            extra={
                "entry_id": original.id,
                "entry_number": original.entry_number,
                "reversal_entry_id": reversal.id,
                "actor_id": actor_id,
            },
        )
        return reversal

    # --- Audit ---

    def check_integrity(self) -> dict:
        """
        Verify the ledger as a whole.

        Sums every applied line, and compares each account's stored
        balance with the balance derived from its history.
        """
        total_debits, total_credits = self.db.execute(
            select(
                func.coalesce(func.sum(JournalEntryLine.debit_amount), 0),
                func.coalesce(func.sum(JournalEntryLine.credit_amount), 0),
            )
            .join(JournalEntry, JournalEntryLine.journal_entry_id == JournalEntry.id)
            .where(JournalEntry.status.in_(APPLIED_STATUSES))
        ).one()
        total_debits = to_money(Decimal(str(total_debits)))
        total_credits = to_money(Decimal(str(total_credits)))

        mismatched = [
            account.id
            for account in self.accounts.list_accounts()
            if to_money(account.balance) != self.accounts.derive_balance(account.id)
        ]

        report = {
            "total_debits": total_debits,
            "total_credits": total_credits,
            "difference": total_debits - total_credits,
            "is_balanced": total_debits == total_credits,
            "mismatched_accounts": mismatched,
        }
        if not report["is_balanced"] or mismatched:
            self.logger.warning(
                "Ledger integrity check failed",
                extra={
                    "difference": str(report["difference"]),
                    "mismatched_accounts": mismatched,
                },
            )
        return report

    # --- Helpers ---

    def _resolve_period(self, period_id: int | None, on: date) -> FiscalPeriod:
        """
        Find the period an entry dated `on` belongs to.

        An explicit period must exist and accept the date. Without
        one, the narrowest period covering the date is used and
        must be open.
        """
        if period_id is not None:
            period = self.periods.get_period(period_id)
            if not period.can_accept(on):
                raise PeriodClosedError(
                    f"Fiscal period '{period.name}' cannot accept entries "
                    f"dated {on.isoformat()}",
                    details={
                        "fiscal_period_id": period.id,
                        "period_status": period.status.value,
                        "entry_date": on.isoformat(),
                    },
                )
            return period

        period = self.periods.get_period_covering(on)
        if period is None or not period.is_open:
            raise NoOpenPeriodError(
                f"No open fiscal period covers {on.isoformat()}",
                details={"entry_date": on.isoformat()},
            )
        return period

    def _add_lines(self, entry: JournalEntry, lines: list[LineRequest]) -> None:
        """Validate line requests and attach them to the entry."""
        for line_number, line in enumerate(lines, start=1):
            debit = to_money(line.debit_amount)
            credit = to_money(line.credit_amount)
            if (debit > 0) == (credit > 0):
                raise ValidationError(
                    f"Line {line_number} must have exactly one of "
                    f"debit_amount or credit_amount",
                    error_code="INVALID_LINE_AMOUNT",
                    details={
                        "line_number": line_number,
                        "debit_amount": str(debit),
                        "credit_amount": str(credit),
                    },
                )

            account = self.accounts.get_account(line.account_id)
            self._check_account_usable(account)

            entry.lines.append(
                JournalEntryLine(
                    line_number=line_number,
                    account_id=account.id,
                    description=line.description,
                    debit_amount=debit,
                    credit_amount=credit,
                    currency=line.currency or entry.currency,
                    exchange_rate=line.exchange_rate,
                )
            )
        self.db.flush()

    def _check_account_usable(self, account: Account) -> None:
        if not account.is_active:
            raise ValidationError(
                f"Account {account.account_number} is not active",
                error_code="INACTIVE_ACCOUNT",
                details={"account_id": account.id},
            )

    def _lock_entry(self, entry_id: int) -> JournalEntry:
        """Load an entry with a row lock, re-reading committed state."""
        entry = self.db.execute(
            select(JournalEntry)
            .where(JournalEntry.id == entry_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if not entry:
            raise NotFoundError(
                f"Journal entry {entry_id} not found",
                error_code="ENTRY_NOT_FOUND",
                details={"entry_id": entry_id},
            )
        return entry

    def _lock_period(self, period_id: int) -> FiscalPeriod | None:
        # Shared lock: concurrent postings proceed, a close waits for them
        return self.db.execute(
            select(FiscalPeriod)
            .where(FiscalPeriod.id == period_id)
            .with_for_update(read=True)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _check_entry_number_free(self, entry_number: str) -> None:
        existing = self.db.execute(
            select(JournalEntry.id).where(JournalEntry.entry_number == entry_number)
        ).first()
        if existing:
            raise ValidationError(
                f"Entry number '{entry_number}' is already in use",
                error_code="DUPLICATE_ENTRY_NUMBER",
                details={"entry_number": entry_number},
            )

    def _next_entry_number(self) -> str:
        """
        Next number in the current month's bucket: JE-202401-00001.

        Taken from the highest existing number, so concurrent
        creators may leave gaps; uniqueness is guarded by the
        column's unique constraint. The suffix is zero-padded to a
        fixed width, so the lexical maximum is the numeric one.
        """
        bucket = f"{self.settings.ENTRY_NUMBER_PREFIX}-{self.clock():%Y%m}-"
        highest = self.db.execute(
            select(func.max(JournalEntry.entry_number))
            .where(
                func.length(JournalEntry.entry_number) == len(bucket) + ENTRY_SEQUENCE_WIDTH,
                JournalEntry.entry_number.between(
                    bucket + "0" * ENTRY_SEQUENCE_WIDTH,
                    bucket + "9" * ENTRY_SEQUENCE_WIDTH,
                ),
            )
        ).scalar()

        suffix = highest[len(bucket):] if highest else ""
        sequence = int(suffix) + 1 if suffix.isdigit() else 1
        return f"{bucket}{sequence:0{ENTRY_SEQUENCE_WIDTH}d}"
