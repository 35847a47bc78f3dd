"""Tests for the /api/health endpoint."""

from teesheet import __version__


def test_health_reports_database(client):
    resp = client.get("/api/health")
    assert resp.status_code == 200

    data = resp.json()
    assert data["status"] == "ok"
    assert data["database"] == "ok"
    assert data["version"] == __version__
    assert "timestamp" in data


def test_health_degraded_without_database(client, monkeypatch):
    async def _down() -> bool:
        return False

    monkeypatch.setattr(client.app.state.store, "ping", _down)
    data = client.get("/api/health").json()
    assert data["status"] == "degraded"
    assert data["database"] == "unavailable"


def test_health_needs_no_token(unauthed_client):
    assert unauthed_client.get("/api/health").status_code == 200
