"""
Health check endpoint.

Reports whether the process is up and whether the ledger
database answers.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ledger_core.config import get_settings
from ledger_core.models.base import get_db

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check(db: Session = Depends(get_db)):
    """
    Return application health including database connectivity.

    A failed database check degrades the status instead of
    failing the request, so monitoring still gets an answer.
    """
    try:
        db.execute(text("SELECT 1"))
        db_status = "healthy"
    except SQLAlchemyError:
        logger.warning("Health check database query failed", exc_info=True)
        db_status = "unhealthy"

    settings = get_settings()
    return {
        "status": "healthy" if db_status == "healthy" else "degraded",
        "service": "ledger-core",
        "version": settings.APP_VERSION,
        "database": db_status,
    }
