"""
Shared dependencies and error mapping for the API routers.
"""

from fastapi import Header, HTTPException

from ledger_core.exceptions import LedgerError


def get_actor_id(x_actor_id: int | None = Header(default=None)) -> int | None:
    """
    The acting user, from the X-Actor-Id header.

    Identity is resolved upstream; the ledger only records it.
    """
    return x_actor_id


def http_error(error: LedgerError) -> HTTPException:
    """Translate a ledger error into the HTTP response it maps to."""
    return HTTPException(status_code=error.status_code, detail=error.to_dict())
