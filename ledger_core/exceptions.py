"""
Typed errors raised by the ledger core.

Every expected failure is a LedgerError subclass so callers can
tell a rejected posting apart from a broken database. Each error
carries a machine-readable code, a details dict, and the HTTP
status the API layer should answer with.

Hierarchy:
    LedgerError
    ├── NotFoundError
    ├── ValidationError
    │   └── UnbalancedEntryError
    ├── PeriodError
    │   ├── NoOpenPeriodError
    │   └── PeriodClosedError
    ├── InvalidStateError
    │   ├── AlreadyPostedError
    │   ├── NotPostedError
    │   ├── CannotModifyPostedError
    │   └── CannotDeletePostedError
    ├── ConflictError
    ├── LockTimeoutError      (retryable)
    └── LedgerStorageError    (infrastructure, not a domain rule)
"""

from typing import Any


class LedgerError(Exception):
    """
    Base exception for all ledger operations.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context
    """

    default_error_code: str = "LEDGER_ERROR"
    status_code: int = 400
    retryable: bool = False

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert the error to a dictionary for API responses."""
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class NotFoundError(LedgerError):
    """Referenced entry, account or period does not exist."""

    default_error_code = "NOT_FOUND"
    status_code = 404


class ValidationError(LedgerError):
    """
    Malformed input.

    Duplicate account numbers, a line with both debit and credit
    set (or neither), inactive accounts on a line, overlapping
    fiscal periods, cyclic account parents.
    """

    default_error_code = "VALIDATION_ERROR"
    status_code = 422


class UnbalancedEntryError(ValidationError):
    """Total debits differ from total credits at post time."""

    default_error_code = "UNBALANCED_ENTRY"

    def __init__(self, entry_id: int, total_debit, total_credit):
        self.entry_id = entry_id
        self.total_debit = total_debit
        self.total_credit = total_credit
        super().__init__(
            f"Journal entry {entry_id} does not balance: "
            f"debits={total_debit}, credits={total_credit}",
            details={
                "entry_id": entry_id,
                "total_debit": str(total_debit),
                "total_credit": str(total_credit),
            },
        )


class PeriodError(LedgerError):
    """Base for fiscal period gating failures."""

    default_error_code = "PERIOD_ERROR"
    status_code = 409


class NoOpenPeriodError(PeriodError):
    """No open fiscal period covers the entry date."""

    default_error_code = "NO_OPEN_PERIOD"


class PeriodClosedError(PeriodError):
    """The resolved fiscal period cannot accept postings."""

    default_error_code = "PERIOD_CLOSED"


class InvalidStateError(LedgerError):
    """Base for state machine violations."""

    default_error_code = "INVALID_STATE"
    status_code = 409


class AlreadyPostedError(InvalidStateError):
    default_error_code = "ALREADY_POSTED"


class NotPostedError(InvalidStateError):
    default_error_code = "NOT_POSTED"


class CannotModifyPostedError(InvalidStateError):
    default_error_code = "CANNOT_MODIFY_POSTED"


class CannotDeletePostedError(InvalidStateError):
    default_error_code = "CANNOT_DELETE_POSTED"


class ConflictError(LedgerError):
    """Operation blocked by existing references (e.g. account deletion)."""

    default_error_code = "CONFLICT"
    status_code = 409


class LockTimeoutError(LedgerError):
    """
    A per-account lock could not be acquired in time.

    Nothing was written; the caller may retry the operation.
    """

    default_error_code = "LOCK_TIMEOUT"
    status_code = 503
    retryable = True


class LedgerStorageError(LedgerError):
    """
    Unexpected storage failure inside an atomic unit.

    The unit was rolled back. The original database exception is
    chained as __cause__.
    """

    default_error_code = "STORAGE_ERROR"
    status_code = 500
