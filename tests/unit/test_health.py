"""
Tests for health check endpoints.
"""

from unittest.mock import AsyncMock, patch

from fastapi import FastAPI
from fastapi.testclient import TestClient

from notubiz_sync.routes import health

app = FastAPI()
app.include_router(health.router)
client = TestClient(app)

HEALTHY_DB = {
    "healthy": True,
    "service": "database_pool",
    "pool_stats": {"pool_size": 2, "pool_available": 2, "pool_utilization_percent": 0},
}


def test_healthz_endpoint():
    """Test the basic health check endpoint."""
    response = client.get("/healthz")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_readyz_endpoint_all_services_healthy():
    with (
        patch("notubiz_sync.routes.health.fast_redis.ping", AsyncMock(return_value=True)),
        patch("notubiz_sync.routes.health.db_health_check", AsyncMock(return_value=HEALTHY_DB)),
        patch("notubiz_sync.routes.health.settings.NOTUBIZ_ORGANISATION_ID", "686"),
    ):
        response = client.get("/readyz")

    assert response.status_code == 200
    data = response.json()
    assert data["overall_ok"] is True
    assert data["checks"]["redis"]["ok"] is True
    assert data["checks"]["database"]["ok"] is True
    assert data["checks"]["database"]["pool_size"] == 2
    assert data["checks"]["configuration"]["ok"] is True


def test_readyz_endpoint_redis_unhealthy():
    with (
        patch("notubiz_sync.routes.health.fast_redis.ping", AsyncMock(return_value=False)),
        patch("notubiz_sync.routes.health.db_health_check", AsyncMock(return_value=HEALTHY_DB)),
        patch("notubiz_sync.routes.health.settings.NOTUBIZ_ORGANISATION_ID", "686"),
    ):
        response = client.get("/readyz")

    assert response.status_code == 200
    data = response.json()
    assert data["overall_ok"] is False
    assert data["checks"]["redis"]["ok"] is False


def test_readyz_endpoint_database_unhealthy():
    unhealthy = {"healthy": False, "service": "database_pool", "error": "Pool not initialized"}
    with (
        patch("notubiz_sync.routes.health.fast_redis.ping", AsyncMock(return_value=True)),
        patch("notubiz_sync.routes.health.db_health_check", AsyncMock(return_value=unhealthy)),
        patch("notubiz_sync.routes.health.settings.NOTUBIZ_ORGANISATION_ID", "686"),
    ):
        response = client.get("/readyz")

    data = response.json()
    assert data["overall_ok"] is False
    assert data["checks"]["database"]["error"] == "Pool not initialized"


def test_readyz_reports_missing_organisation():
    with (
        patch("notubiz_sync.routes.health.fast_redis.ping", AsyncMock(return_value=True)),
        patch("notubiz_sync.routes.health.db_health_check", AsyncMock(return_value=HEALTHY_DB)),
        patch("notubiz_sync.routes.health.settings.NOTUBIZ_ORGANISATION_ID", None),
    ):
        response = client.get("/readyz")

    data = response.json()
    assert data["overall_ok"] is False
    assert "NOTUBIZ_ORGANISATION_ID not set" in data["checks"]["configuration"]["issues"]
