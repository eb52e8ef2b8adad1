"""
Tests for the HTTP surface.

TestClient is used without the context manager so the lifespan (scheduler,
live provider, warm-up refresh) does not run; the PredictionService
dependency is overridden with one backed by the scripted provider.
"""

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from aipicks.etl.base import MissingCredentials
from aipicks.main import app
from aipicks.routes import core
from aipicks.state import get_prediction_service


@pytest.fixture
def client(service):
    app.dependency_overrides[get_prediction_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestToday:
    """Test GET /api/today."""

    def test_rows(self, client, provider):
        response = client.get("/api/today")

        assert response.status_code == 200
        data = response.json()
        assert data["date"] == "2026-10-19"
        assert data["stale"] is False
        assert data["reason"] is None
        assert data["total_from_api"] == 2
        assert [r["home"] for r in data["rows"]] == ["Gamma City", "Alpha FC"]
        row = data["rows"][0]
        assert set(row) >= {"league", "kickoff", "home", "away", "market", "pick", "probability", "edge"}

    def test_second_request_served_from_cache(self, client, provider):
        client.get("/api/today")
        client.get("/api/today")
        assert provider.calls["fixtures"] == 1

    def test_missing_key_reason(self, client, provider):
        provider.fixtures_error = MissingCredentials("FOOTBALL_DATA_KEY is not configured")
        data = client.get("/api/today").json()

        assert data["rows"] == []
        assert data["reason"] == "missing_api_key"


class TestCore:
    """Test health, telemetry, diagnostics and metrics."""

    def test_health_before_refresh(self, client):
        data = client.get("/health").json()
        assert data["status"] == "ok"
        assert data["cache_date"] is None
        assert data["cache_rows"] == 0

    def test_health_after_refresh(self, client):
        client.get("/api/today")
        data = client.get("/health").json()
        assert data["cache_date"] == "2026-10-19"
        assert data["cache_rows"] == 2

    def test_telemetry_shape(self, client):
        client.get("/api/today")
        data = client.get("/telemetry").json()
        assert set(data) == {"today_cache", "refresh", "fixtures", "memo"}
        assert data["today_cache"]["miss"] >= 1

    def test_diag(self, client):
        data = client.get("/diag").json()
        assert data["tz"] == "Europe/Istanbul"
        assert data["live"]["total_from_api"] == 2
        assert "counters" in data

    def test_metrics_open_without_token(self, client):
        response = client.get("/metrics")
        assert response.status_code == 200
        assert "aipicks_refresh_runs_total" in response.text

    def test_metrics_requires_configured_token(self, client):
        guarded = core.settings.model_copy(update={"METRICS_BEARER_TOKEN": "s3cret"})
        with patch.object(core, "settings", guarded):
            assert client.get("/metrics").status_code == 401
            assert client.get("/metrics", headers={"Authorization": "Bearer nope"}).status_code == 401
            ok = client.get("/metrics", headers={"Authorization": "Bearer s3cret"})
        assert ok.status_code == 200
