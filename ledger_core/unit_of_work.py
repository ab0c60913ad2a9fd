"""
Transaction scope shared by the ledger services.

Every mutating service call runs inside UnitOfWork.atomic(). The
scopes nest: a reversal opens one, then calls create and post,
which open their own. Only the outermost scope commits or rolls
back, so the reversal, its posting and the status change on the
original entry land together or not at all.

Account locks taken through hold_accounts() belong to the scope
and are released after the outermost commit or rollback, never
earlier, so no other writer can read a balance that is about to
be rolled back.
"""

import logging
from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ledger_core.exceptions import LedgerStorageError
from ledger_core.locks import get_lock_manager

logger = logging.getLogger(__name__)


class UnitOfWork:

    def __init__(self, db: Session, lock_manager=None):
        self.db = db
        self.lock_manager = lock_manager or get_lock_manager()
        self._depth = 0
        self._releases: dict[int, object] = {}

    @property
    def in_transaction(self) -> bool:
        return self._depth > 0

    @contextmanager
    def atomic(self):
        """
        Run the block as one all-or-nothing unit.

        SQLAlchemy errors roll the session back and surface as
        LedgerStorageError; ledger errors roll back and propagate
        unchanged.
        """
        self._depth += 1
        outermost = self._depth == 1
        try:
            yield self.db
            if outermost:
                self.db.commit()
        except SQLAlchemyError as exc:
            if outermost:
                self.db.rollback()
            logger.error(
                "Storage failure, unit of work rolled back",
                extra={"error": str(exc)},
            )
            raise LedgerStorageError(
                "Storage failure while applying ledger changes",
                details={"cause": exc.__class__.__name__},
            ) from exc
        except BaseException:
            if outermost:
                self.db.rollback()
            raise
        finally:
            self._depth -= 1
            if outermost:
                self._release_all()

    def hold_accounts(self, account_ids) -> None:
        """
        Lock the given accounts until the outermost scope ends.

        Ids are locked in ascending order so two postings over the
        same accounts cannot deadlock. Accounts this scope already
        holds are skipped.
        """
        if not self.in_transaction:
            raise RuntimeError("hold_accounts() must be called inside atomic()")

        for account_id in sorted(set(account_ids)):
            if account_id in self._releases:
                continue
            self._releases[account_id] = self.lock_manager.acquire(account_id)

    def _release_all(self) -> None:
        # Reverse acquisition order
        for account_id in reversed(list(self._releases)):
            release = self._releases.pop(account_id)
            release()
