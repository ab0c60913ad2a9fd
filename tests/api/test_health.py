"""
Tests for the health check endpoint.
"""

from unittest.mock import MagicMock

from sqlalchemy.exc import OperationalError

from ledger_core.main import app
from ledger_core.models.base import get_db


def test_health_check_returns_200(client):
    response = client.get("/health")
    assert response.status_code == 200


def test_health_check_returns_service_name(client):
    """
    The service name is parsed by monitoring; changing it
    breaks dashboards.
    """
    data = client.get("/health").json()
    assert data["service"] == "ledger-core"
    assert data["status"] == "healthy"
    assert data["database"] == "healthy"


def test_health_check_degrades_when_database_fails(client):
    broken = MagicMock()
    broken.execute.side_effect = OperationalError("SELECT 1", {}, Exception("refused"))
    app.dependency_overrides[get_db] = lambda: broken

    data = client.get("/health").json()

    assert data["status"] == "degraded"
    assert data["database"] == "unhealthy"
