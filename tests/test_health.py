"""Tests for health endpoints."""

from fastapi.testclient import TestClient

from novelhub.main import create_app


def test_liveness(client: TestClient) -> None:
    response = client.get("/health/live")
    assert response.status_code == 200
    assert response.json() == {"status": "alive"}


def test_readiness(client: TestClient) -> None:
    """Ready once the coordinator is wired; Redis is optional."""
    response = client.get("/health/ready")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ready"
    assert data["redis"] is False
    assert "environment" in data
    assert "debug" in data


def test_readiness_without_coordinator() -> None:
    response = TestClient(create_app()).get("/health/ready")
    assert response.status_code == 503
    assert response.json()["status"] == "not_ready"


def test_health(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["app_name"] == "novelhub"
    assert "version" in data


def test_root(client: TestClient) -> None:
    response = client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert "NovelHub" in data["message"]
    assert "version" in data
