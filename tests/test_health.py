"""
tests/test_health.py -- Integration tests for GET /api/v1/health.

Covers:
  - 200 response with status, version, and components fields
  - components.sessions reports the session backend
  - No session is started for probes (no Set-Cookie, no record)
"""

from __future__ import annotations


def test_health_returns_200_with_components(app_client):
    """Health endpoint returns 200 with status, version, and components."""
    resp = app_client.client.get("/api/v1/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert "version" in data
    assert data["components"]["app"] == "ok"
    assert data["components"]["sessions"] == "ok"


def test_health_starts_no_session(app_client):
    """Probes must not mint a session record or cookie per hit."""
    client = app_client.client
    for _ in range(3):
        resp = client.get("/api/v1/health")
        assert "set-cookie" not in resp.headers
    assert len(app_client.backend) == 0
    assert client.cookies.get("taskflow_session") is None


def test_health_ignores_csrf_header_absence(app_client):
    """Health is a GET outside the session layer; no token needed."""
    resp = app_client.client.get("/api/v1/health", headers={})
    assert resp.status_code == 200
