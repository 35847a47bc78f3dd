"""Tests for rate limiting behaviour."""

import pytest
from fastapi.testclient import TestClient

from teesheet.dependencies import get_current_actor
from teesheet.main import app
from tests.mocks.models import MOCK_ACTOR


class TestRateLimiting:
    """Verify that rate limiting kicks in for booking endpoints."""

    @pytest.fixture()
    def limited_client(self, _test_env):
        """
        TestClient with rate limiting **enabled** (unlike the default
        `client` fixture which disables it for convenience).
        """
        from teesheet.rate_limit import limiter

        limiter.enabled = True
        # Reset in-memory state so previous tests don't pollute counts
        limiter.reset()

        async def _mock_current_actor():
            return MOCK_ACTOR

        app.dependency_overrides[get_current_actor] = _mock_current_actor

        with TestClient(app, raise_server_exceptions=False) as tc:
            yield tc

        app.dependency_overrides.clear()
        limiter.enabled = False

    def test_booking_mutations_are_limited(self, limited_client):
        """Flight mutations are limited to 20 requests/minute."""
        for i in range(20):
            resp = limited_client.post("/api/flights/missing/cancel", json={"reason": "Rain"})
            # 404 is fine – we just need it not to be 429 yet
            assert resp.status_code == 404, f"Request {i + 1} should not be rate-limited"

        resp = limited_client.post("/api/flights/missing/cancel", json={"reason": "Rain"})
        assert resp.status_code == 429
        assert "Rate limit exceeded" in resp.text

    def test_reads_not_limited_at_low_volume(self, limited_client):
        """Tee-sheet reads at low volume should not be rate-limited."""
        for _ in range(25):
            resp = limited_client.get("/api/courses/missing/tee-sheet", params={"date": "2026-01-27"})
            assert resp.status_code == 404
