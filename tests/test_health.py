"""Health endpoint tests."""

def test_health_returns_ok(client):
    """GET /health returns status ok and the live connection count."""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "ws_connections": 0}
