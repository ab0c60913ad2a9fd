"""
Comprehensive tests for the LedgerService posting engine.

Tests cover:
- Draft creation, numbering and line validation
- Period resolution and gating (at draft time and post time)
- Posting: balance check, balance propagation, double posting
- Atomicity: a failure mid-posting leaves no balance change
- Immutability of posted entries
- Reversal
- Outbox notifications and the integrity check
"""

import threading
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.exc import SQLAlchemyError

from ledger_core.exceptions import (
    AlreadyPostedError,
    CannotDeletePostedError,
    CannotModifyPostedError,
    LedgerStorageError,
    LockTimeoutError,
    NoOpenPeriodError,
    NotFoundError,
    NotPostedError,
    PeriodClosedError,
    UnbalancedEntryError,
    ValidationError,
)
from ledger_core.models.account import Account
from ledger_core.models.enums import AccountType, EntryStatus, PeriodType
from ledger_core.models.journal_entry import JournalEntry, JournalEntryLine
from ledger_core.models.outbox_event import OutboxEvent
from ledger_core.schemas.account import AccountCreate, AccountUpdate
from ledger_core.schemas.fiscal_period import FiscalPeriodCreate
from ledger_core.schemas.journal_entry import (
    EntryRequest,
    EntryUpdate,
    LineRequest,
    ReverseRequest,
)
from ledger_core.services.ledger_service import ENTRY_NUMBER_ATTEMPTS, LedgerService
from ledger_core.services.outbox import OutboxRelay, ENTRY_POSTED, ENTRY_REVERSED


# --- Helpers to reduce repetition ---

def debit(account, amount):
    return LineRequest(account_id=account.id, debit_amount=Decimal(amount))


def credit(account, amount):
    return LineRequest(account_id=account.id, credit_amount=Decimal(amount))


def make_entry(ledger, *lines, entry_date=date(2024, 1, 10), **kwargs):
    return ledger.create_entry(EntryRequest(
        entry_date=entry_date,
        lines=list(lines),
        **kwargs,
    ))


def balance_of(db_session, account):
    return db_session.get(Account, account.id).balance


# --- Draft Creation ---

class TestCreateEntry:

    def test_create_draft_computes_totals(self, ledger, january, cash, revenue):
        entry = make_entry(
            ledger, debit(cash, "100.00"), credit(revenue, "100.00"),
            reference="INV-1", description="Cash sale",
        )

        assert entry.status == EntryStatus.DRAFT
        assert entry.fiscal_period_id == january.id
        assert entry.total_debit == Decimal("100.00")
        assert entry.total_credit == Decimal("100.00")
        assert [line.line_number for line in entry.lines] == [1, 2]
        assert all(line.currency == "USD" for line in entry.lines)

    def test_create_does_not_touch_balances(self, ledger, db_session, january, cash, revenue):
        make_entry(ledger, debit(cash, "100.00"), credit(revenue, "100.00"))

        assert balance_of(db_session, cash) == Decimal("0.00")
        assert balance_of(db_session, revenue) == Decimal("0.00")

    def test_unbalanced_draft_allowed(self, ledger, january, cash, revenue):
        entry = make_entry(ledger, debit(cash, "50.00"), credit(revenue, "49.99"))

        assert entry.is_draft
        assert entry.total_debit == Decimal("50.00")
        assert entry.total_credit == Decimal("49.99")

    def test_empty_draft_allowed(self, ledger, january):
        entry = make_entry(ledger)

        assert entry.lines == []
        assert entry.total_debit == Decimal("0.00")

    def test_entry_numbers_are_sequential_per_month(self, ledger, january, cash):
        first = make_entry(ledger, debit(cash, "1.00"))
        second = make_entry(ledger, debit(cash, "1.00"))

        assert first.entry_number == "JE-202401-00001"
        assert second.entry_number == "JE-202401-00002"

    def test_duplicate_entry_number_rejected(self, ledger, january, cash):
        make_entry(ledger, debit(cash, "1.00"), entry_number="MANUAL-1")

        with pytest.raises(ValidationError, match="already in use"):
            make_entry(ledger, debit(cash, "1.00"), entry_number="MANUAL-1")

    def test_manual_numbers_in_bucket_do_not_break_sequence(self, ledger, january, cash):
        make_entry(ledger, debit(cash, "1.00"), entry_number="JE-202401-ADJ01")
        make_entry(ledger, debit(cash, "1.00"), entry_number="JE-202401-00007-B")

        entry = make_entry(ledger, debit(cash, "1.00"))

        assert entry.entry_number == "JE-202401-00001"

    def test_generated_number_retried_after_concurrent_create(
        self, ledger, session_factory, lock_manager, monkeypatch, january, cash
    ):
        other = session_factory()
        rival = LedgerService(other, lock_manager=lock_manager, clock=ledger.clock)
        next_number = ledger._next_entry_number
        issued = []

        def number_taken_by_rival():
            number = next_number()
            if not issued:
                # Another worker commits the same number before our insert
                rival.create_entry(EntryRequest(entry_date=date(2024, 1, 11)))
            issued.append(number)
            return number

        monkeypatch.setattr(ledger, "_next_entry_number", number_taken_by_rival)
        try:
            entry = make_entry(ledger, debit(cash, "1.00"))
        finally:
            other.close()

        assert issued == ["JE-202401-00001", "JE-202401-00002"]
        assert entry.entry_number == "JE-202401-00002"
        assert entry.lines[0].amount == Decimal("1.00")
        assert sorted(e.entry_number for e in ledger.list_entries()) == [
            "JE-202401-00001",
            "JE-202401-00002",
        ]

    def test_generated_number_gives_up_after_bounded_attempts(
        self, ledger, db_session, monkeypatch, january, cash
    ):
        taken = make_entry(ledger, debit(cash, "1.00")).entry_number
        calls = []

        def always_taken():
            calls.append(taken)
            return taken

        monkeypatch.setattr(ledger, "_next_entry_number", always_taken)

        with pytest.raises(LedgerStorageError):
            make_entry(ledger, debit(cash, "1.00"))

        assert len(calls) == ENTRY_NUMBER_ATTEMPTS
        assert db_session.query(JournalEntry).count() == 1

    def test_entry_date_defaults_to_today(self, ledger, january):
        entry = ledger.create_entry(EntryRequest())

        assert entry.entry_date == date(2024, 1, 15)
        assert entry.fiscal_period_id == january.id

    def test_defaulted_date_still_needs_open_period(self, ledger, periods, january):
        periods.close_period(january.id)

        with pytest.raises(NoOpenPeriodError):
            ledger.create_entry(EntryRequest())

    def test_line_with_both_sides_rejected(self, ledger, january, cash):
        line = LineRequest(
            account_id=cash.id,
            debit_amount=Decimal("10.00"),
            credit_amount=Decimal("10.00"),
        )
        with pytest.raises(ValidationError, match="exactly one"):
            make_entry(ledger, line)

    def test_line_with_no_amount_rejected(self, ledger, january, cash):
        with pytest.raises(ValidationError, match="exactly one"):
            make_entry(ledger, LineRequest(account_id=cash.id))

    def test_unknown_account_rejected(self, ledger, db_session, january):
        with pytest.raises(NotFoundError):
            make_entry(ledger, LineRequest(account_id=999, debit_amount=Decimal("1.00")))

        assert db_session.query(JournalEntry).count() == 0

    def test_inactive_account_rejected(self, ledger, accounts, january, cash):
        accounts.update_account(cash.id, AccountUpdate(is_active=False))

        with pytest.raises(ValidationError, match="not active"):
            make_entry(ledger, debit(cash, "1.00"))


# --- Period Resolution ---

class TestPeriodResolution:

    def test_no_covering_period(self, ledger, january, cash):
        with pytest.raises(NoOpenPeriodError):
            make_entry(ledger, debit(cash, "1.00"), entry_date=date(2024, 3, 1))

    def test_covering_period_closed(self, ledger, periods, january, cash):
        periods.close_period(january.id)

        with pytest.raises(NoOpenPeriodError):
            make_entry(ledger, debit(cash, "1.00"))

    def test_explicit_closed_period_rejected(self, ledger, periods, january, cash):
        periods.close_period(january.id)

        with pytest.raises(PeriodClosedError):
            make_entry(ledger, debit(cash, "1.00"), fiscal_period_id=january.id)

    def test_explicit_period_must_cover_date(self, ledger, january, cash):
        with pytest.raises(PeriodClosedError):
            make_entry(
                ledger, debit(cash, "1.00"),
                entry_date=date(2024, 2, 5), fiscal_period_id=january.id,
            )

    def test_explicit_unknown_period(self, ledger, january, cash):
        with pytest.raises(NotFoundError):
            make_entry(ledger, debit(cash, "1.00"), fiscal_period_id=999)


# --- Posting ---

class TestPostEntry:

    def test_cash_sale_scenario(self, ledger, db_session, january, cash, revenue):
        entry = make_entry(ledger, debit(cash, "100.00"), credit(revenue, "100.00"))

        posted = ledger.post_entry(entry.id, actor_id=42)

        assert posted.status == EntryStatus.POSTED
        assert posted.posted_by == 42
        assert posted.posted_at is not None
        assert balance_of(db_session, cash) == Decimal("100.00")
        assert balance_of(db_session, revenue) == Decimal("100.00")

    def test_unbalanced_scenario_changes_nothing(self, ledger, db_session, accounts, january):
        a = accounts.create_account(AccountCreate(name="A", account_type=AccountType.ASSET))
        b = accounts.create_account(AccountCreate(name="B", account_type=AccountType.LIABILITY))
        entry = make_entry(ledger, debit(a, "50.00"), credit(b, "49.99"))

        with pytest.raises(UnbalancedEntryError) as exc_info:
            ledger.post_entry(entry.id)

        assert exc_info.value.details["total_debit"] == "50.00"
        assert exc_info.value.details["total_credit"] == "49.99"
        assert balance_of(db_session, a) == Decimal("0.00")
        assert balance_of(db_session, b) == Decimal("0.00")
        assert ledger.get_entry(entry.id).status == EntryStatus.DRAFT

    def test_decimal_sums_balance_exactly(self, ledger, db_session, january, cash, revenue):
        entry = make_entry(
            ledger,
            debit(cash, "0.10"), debit(cash, "0.20"),
            credit(revenue, "0.30"),
        )

        ledger.post_entry(entry.id)

        assert balance_of(db_session, cash) == Decimal("0.30")

    def test_double_post_rejected(self, ledger, db_session, january, cash, revenue):
        entry = make_entry(ledger, debit(cash, "100.00"), credit(revenue, "100.00"))
        ledger.post_entry(entry.id)

        with pytest.raises(AlreadyPostedError):
            ledger.post_entry(entry.id)

        assert balance_of(db_session, cash) == Decimal("100.00")
        assert balance_of(db_session, revenue) == Decimal("100.00")

    def test_post_unknown_entry(self, ledger):
        with pytest.raises(NotFoundError):
            ledger.post_entry(999)

    def test_post_empty_entry_rejected(self, ledger, january):
        entry = make_entry(ledger)

        with pytest.raises(ValidationError, match="no lines"):
            ledger.post_entry(entry.id)

    def test_period_closed_after_draft(self, ledger, db_session, periods, january, cash, revenue):
        entry = make_entry(ledger, debit(cash, "100.00"), credit(revenue, "100.00"))
        periods.close_period(january.id)

        with pytest.raises(PeriodClosedError):
            ledger.post_entry(entry.id)

        assert ledger.get_entry(entry.id).status == EntryStatus.DRAFT
        assert balance_of(db_session, cash) == Decimal("0.00")

    def test_reopened_period_accepts_post(self, ledger, periods, january, cash, revenue):
        entry = make_entry(ledger, debit(cash, "100.00"), credit(revenue, "100.00"))
        periods.close_period(january.id)
        periods.reopen_period(january.id)

        assert ledger.post_entry(entry.id).is_posted

    def test_account_deactivated_after_draft(self, ledger, db_session, accounts, january, cash, revenue):
        entry = make_entry(ledger, debit(cash, "100.00"), credit(revenue, "100.00"))
        accounts.update_account(revenue.id, AccountUpdate(is_active=False))

        with pytest.raises(ValidationError, match="not active"):
            ledger.post_entry(entry.id)

        assert balance_of(db_session, cash) == Decimal("0.00")

    def test_storage_failure_rolls_back_everything(
        self, ledger, db_session, monkeypatch, january, cash, revenue
    ):
        entry = make_entry(ledger, debit(cash, "100.00"), credit(revenue, "100.00"))

        adjust = ledger.accounts.adjust_balance
        calls = []

        def failing_second_adjust(account_id, amount, is_debit):
            calls.append(account_id)
            if len(calls) == 2:
                raise SQLAlchemyError("connection lost")
            return adjust(account_id, amount, is_debit)

        monkeypatch.setattr(ledger.accounts, "adjust_balance", failing_second_adjust)

        with pytest.raises(LedgerStorageError) as exc_info:
            ledger.post_entry(entry.id)

        assert isinstance(exc_info.value.__cause__, SQLAlchemyError)
        assert calls == [cash.id, revenue.id]
        assert balance_of(db_session, cash) == Decimal("0.00")
        assert balance_of(db_session, revenue) == Decimal("0.00")
        assert ledger.get_entry(entry.id).status == EntryStatus.DRAFT

    def test_account_held_elsewhere_times_out(
        self, ledger, db_session, lock_manager, january, cash, revenue
    ):
        entry = make_entry(ledger, debit(cash, "100.00"), credit(revenue, "100.00"))
        lock_manager.timeout = 0.1
        held = threading.Event()
        finished = threading.Event()

        def other_worker():
            release = lock_manager.acquire(cash.id)
            held.set()
            finished.wait(timeout=5)
            release()

        thread = threading.Thread(target=other_worker)
        thread.start()
        assert held.wait(timeout=5)
        try:
            with pytest.raises(LockTimeoutError) as exc_info:
                ledger.post_entry(entry.id)
        finally:
            finished.set()
            thread.join()

        assert exc_info.value.retryable is True
        assert exc_info.value.details["account_id"] == cash.id
        assert balance_of(db_session, cash) == Decimal("0.00")
        assert balance_of(db_session, revenue) == Decimal("0.00")
        assert ledger.get_entry(entry.id).status == EntryStatus.DRAFT
        assert db_session.query(OutboxEvent).count() == 0

        # Lock free again: the same entry posts
        assert ledger.post_entry(entry.id).is_posted

    def test_balances_equal_signed_sum_of_postings(
        self, ledger, accounts, db_session, january, cash, revenue
    ):
        rent = accounts.create_account(AccountCreate(name="Rent", account_type=AccountType.EXPENSE))
        postings = [
            (debit(cash, "100.00"), credit(revenue, "100.00")),
            (debit(rent, "40.00"), credit(cash, "40.00")),
            (debit(cash, "15.50"), credit(revenue, "15.50")),
            (debit(revenue, "5.50"), credit(cash, "5.50")),
        ]
        for lines in postings:
            ledger.post_entry(make_entry(ledger, *lines).id)

        assert balance_of(db_session, cash) == Decimal("70.00")
        assert balance_of(db_session, revenue) == Decimal("110.00")
        assert balance_of(db_session, rent) == Decimal("40.00")
        for account in (cash, revenue, rent):
            assert accounts.derive_balance(account.id) == balance_of(db_session, account)


# --- Immutability ---

class TestImmutability:

    def test_update_draft_replaces_lines(self, ledger, db_session, january, cash, revenue):
        entry = make_entry(ledger, debit(cash, "10.00"), credit(revenue, "10.00"))

        updated = ledger.update_entry(entry.id, EntryUpdate(
            description="Corrected",
            lines=[debit(cash, "25.00"), credit(revenue, "25.00")],
        ))

        assert updated.description == "Corrected"
        assert [line.amount for line in updated.lines] == [Decimal("25.00"), Decimal("25.00")]
        assert updated.total_debit == Decimal("25.00")
        assert db_session.query(JournalEntryLine).count() == 2

    def test_update_without_lines_keeps_them(self, ledger, january, cash, revenue):
        entry = make_entry(ledger, debit(cash, "10.00"), credit(revenue, "10.00"))

        updated = ledger.update_entry(entry.id, EntryUpdate(reference="REF-9"))

        assert updated.reference == "REF-9"
        assert len(updated.lines) == 2

    def test_update_date_moves_to_covering_period(self, ledger, periods, january, cash):
        february = periods.create_period(FiscalPeriodCreate(
            name="February 2024",
            period_type=PeriodType.MONTH,
            fiscal_year=2024,
            start_date=date(2024, 2, 1),
            end_date=date(2024, 2, 29),
        ))
        entry = make_entry(ledger, debit(cash, "10.00"))

        updated = ledger.update_entry(entry.id, EntryUpdate(entry_date=date(2024, 2, 3)))

        assert updated.fiscal_period_id == february.id

    def test_posted_entry_cannot_be_updated(self, ledger, january, cash, revenue):
        entry = make_entry(ledger, debit(cash, "10.00"), credit(revenue, "10.00"))
        ledger.post_entry(entry.id)

        with pytest.raises(CannotModifyPostedError):
            ledger.update_entry(entry.id, EntryUpdate(
                lines=[debit(cash, "99.00"), credit(revenue, "99.00")],
            ))

        stored = ledger.get_entry(entry.id)
        assert [line.amount for line in stored.lines] == [Decimal("10.00"), Decimal("10.00")]
        assert stored.total_debit == Decimal("10.00")

    def test_posted_entry_cannot_be_deleted(self, ledger, january, cash, revenue):
        entry = make_entry(ledger, debit(cash, "10.00"), credit(revenue, "10.00"))
        ledger.post_entry(entry.id)

        with pytest.raises(CannotDeletePostedError):
            ledger.delete_entry(entry.id)

        assert ledger.get_entry(entry.id).is_posted

    def test_update_sees_post_from_other_session(
        self, ledger, db_session, session_factory, lock_manager, january, cash, revenue
    ):
        entry = make_entry(ledger, debit(cash, "100.00"), credit(revenue, "100.00"))
        # This session now holds the entry as a draft
        assert ledger.get_entry(entry.id).is_draft

        other = session_factory()
        try:
            LedgerService(other, lock_manager=lock_manager).post_entry(entry.id)
        finally:
            other.close()

        with pytest.raises(CannotModifyPostedError):
            ledger.update_entry(entry.id, EntryUpdate(
                lines=[debit(cash, "999.00"), credit(revenue, "999.00")],
            ))

        stored = ledger.get_entry(entry.id)
        assert stored.status == EntryStatus.POSTED
        assert [line.amount for line in stored.lines] == [Decimal("100.00"), Decimal("100.00")]
        assert stored.total_debit == Decimal("100.00")
        assert balance_of(db_session, cash) == Decimal("100.00")

    def test_delete_sees_post_from_other_session(
        self, ledger, db_session, session_factory, lock_manager, january, cash, revenue
    ):
        entry = make_entry(ledger, debit(cash, "100.00"), credit(revenue, "100.00"))
        assert ledger.get_entry(entry.id).is_draft

        other = session_factory()
        try:
            LedgerService(other, lock_manager=lock_manager).post_entry(entry.id)
        finally:
            other.close()

        with pytest.raises(CannotDeletePostedError):
            ledger.delete_entry(entry.id)

        stored = ledger.get_entry(entry.id)
        assert stored.is_posted
        assert len(stored.lines) == 2
        assert db_session.query(JournalEntryLine).count() == 2

    def test_delete_draft_removes_lines(self, ledger, db_session, january, cash, revenue):
        entry = make_entry(ledger, debit(cash, "10.00"), credit(revenue, "10.00"))

        ledger.delete_entry(entry.id)

        with pytest.raises(NotFoundError):
            ledger.get_entry(entry.id)
        assert db_session.query(JournalEntryLine).count() == 0


# --- Reversal ---

class TestReverseEntry:

    def test_reversal_scenario(self, ledger, db_session, january, cash, revenue):
        entry = make_entry(
            ledger, debit(cash, "100.00"), credit(revenue, "100.00"),
            description="Cash sale",
        )
        ledger.post_entry(entry.id)

        reversal = ledger.reverse_entry(entry.id, actor_id=3)

        assert reversal.status == EntryStatus.POSTED
        assert reversal.fiscal_period_id == january.id
        assert reversal.reference == f"Reversal of {entry.entry_number}"
        assert reversal.description == "Reversal: Cash sale"
        assert [
            (line.account_id, line.debit_amount, line.credit_amount)
            for line in reversal.lines
        ] == [
            (cash.id, Decimal("0.00"), Decimal("100.00")),
            (revenue.id, Decimal("100.00"), Decimal("0.00")),
        ]

        original = ledger.get_entry(entry.id)
        assert original.status == EntryStatus.REVERSED
        assert original.reversed_entry_id == reversal.id
        assert balance_of(db_session, cash) == Decimal("0.00")
        assert balance_of(db_session, revenue) == Decimal("0.00")

    def test_reversal_overrides(self, ledger, january, cash, revenue):
        entry = make_entry(ledger, debit(cash, "10.00"), credit(revenue, "10.00"))
        ledger.post_entry(entry.id)

        reversal = ledger.reverse_entry(entry.id, ReverseRequest(
            entry_date=date(2024, 1, 31),
            reference="VOID-1",
            description="Customer refund",
        ))

        assert reversal.entry_date == date(2024, 1, 31)
        assert reversal.reference == "VOID-1"
        assert reversal.description == "Customer refund"

    def test_draft_cannot_be_reversed(self, ledger, january, cash, revenue):
        entry = make_entry(ledger, debit(cash, "10.00"), credit(revenue, "10.00"))

        with pytest.raises(NotPostedError):
            ledger.reverse_entry(entry.id)

    def test_reversed_entry_cannot_be_reversed_again(self, ledger, db_session, january, cash, revenue):
        entry = make_entry(ledger, debit(cash, "10.00"), credit(revenue, "10.00"))
        ledger.post_entry(entry.id)
        ledger.reverse_entry(entry.id)

        with pytest.raises(NotPostedError):
            ledger.reverse_entry(entry.id)

        assert balance_of(db_session, cash) == Decimal("0.00")
        assert db_session.query(JournalEntry).count() == 2

    def test_reversed_entry_is_immutable(self, ledger, january, cash, revenue):
        entry = make_entry(ledger, debit(cash, "10.00"), credit(revenue, "10.00"))
        ledger.post_entry(entry.id)
        ledger.reverse_entry(entry.id)

        with pytest.raises(CannotModifyPostedError):
            ledger.update_entry(entry.id, EntryUpdate(description="edited"))
        with pytest.raises(AlreadyPostedError):
            ledger.post_entry(entry.id)

    def test_reversal_in_closed_period_leaves_original_posted(
        self, ledger, db_session, periods, january, cash, revenue
    ):
        entry = make_entry(ledger, debit(cash, "10.00"), credit(revenue, "10.00"))
        ledger.post_entry(entry.id)
        periods.close_period(january.id)

        with pytest.raises(PeriodClosedError):
            ledger.reverse_entry(entry.id)

        assert ledger.get_entry(entry.id).status == EntryStatus.POSTED
        assert db_session.query(JournalEntry).count() == 1
        assert balance_of(db_session, cash) == Decimal("10.00")


# --- Notifications and audit ---

class TestOutboxAndIntegrity:

    def test_posting_writes_entry_posted_event(self, ledger, db_session, january, cash, revenue):
        entry = make_entry(ledger, debit(cash, "10.00"), credit(revenue, "10.00"))
        relay = OutboxRelay(db_session)

        assert relay.pending() == []

        ledger.post_entry(entry.id)

        events = relay.pending()
        assert [event.event_type for event in events] == [ENTRY_POSTED]
        assert events[0].payload == {
            "entry_id": entry.id,
            "entry_number": entry.entry_number,
        }

    def test_failed_post_writes_no_event(self, ledger, db_session, january, cash, revenue):
        entry = make_entry(ledger, debit(cash, "10.00"), credit(revenue, "9.00"))

        with pytest.raises(UnbalancedEntryError):
            ledger.post_entry(entry.id)

        assert OutboxRelay(db_session).pending() == []

    def test_reversal_writes_events(self, ledger, db_session, january, cash, revenue):
        entry = make_entry(ledger, debit(cash, "10.00"), credit(revenue, "10.00"))
        ledger.post_entry(entry.id)
        reversal = ledger.reverse_entry(entry.id)

        events = OutboxRelay(db_session).pending()

        assert [event.event_type for event in events] == [
            ENTRY_POSTED, ENTRY_POSTED, ENTRY_REVERSED,
        ]
        assert events[2].payload["reversal_entry_id"] == reversal.id

    def test_integrity_check(self, ledger, db_session, january, cash, revenue):
        entry = make_entry(ledger, debit(cash, "75.00"), credit(revenue, "75.00"))
        ledger.post_entry(entry.id)
        make_entry(ledger, debit(cash, "5.00"))  # unposted drafts do not count

        report = ledger.check_integrity()

        assert report["total_debits"] == Decimal("75.00")
        assert report["total_credits"] == Decimal("75.00")
        assert report["is_balanced"] is True
        assert report["mismatched_accounts"] == []

    def test_integrity_check_flags_tampered_balance(self, ledger, db_session, january, cash, revenue):
        entry = make_entry(ledger, debit(cash, "75.00"), credit(revenue, "75.00"))
        ledger.post_entry(entry.id)

        db_session.get(Account, cash.id).balance = Decimal("1.00")
        db_session.commit()

        assert ledger.check_integrity()["mismatched_accounts"] == [cash.id]

    def test_list_entries_filters(self, ledger, january, cash, revenue):
        posted = make_entry(ledger, debit(cash, "1.00"), credit(revenue, "1.00"))
        ledger.post_entry(posted.id)
        draft = make_entry(ledger, debit(cash, "1.00"))

        assert [e.id for e in ledger.list_entries(status=EntryStatus.DRAFT)] == [draft.id]
        assert [e.id for e in ledger.list_entries(fiscal_period_id=january.id)] == [
            posted.id, draft.id,
        ]
