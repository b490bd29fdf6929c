"""
Health endpoints, JSON 404s and response headers.
"""


def test_health(anon_client):
    res = anon_client.get("/api/v1/health")
    assert res.status_code == 200
    assert res.get_json() == {"status": "ok", "app": "ReqBridge"}


def test_ready(anon_client):
    res = anon_client.get("/api/v1/health/ready")
    assert res.status_code == 200
    assert res.get_json()["status"] == "ok"


def test_live_reports_database(anon_client):
    res = anon_client.get("/api/v1/health/live")
    assert res.status_code == 200
    body = res.get_json()
    assert body["status"] == "healthy"
    assert body["checks"]["database"]["status"] == "ok"
    assert body["checks"]["database"]["latency_ms"] >= 0
    assert body["checks"]["app"]["testing"] is True
    assert body["checks"]["storage"]["status"] == "ok"
    # testing config blanks every provider key
    assert body["checks"]["ai"] == {"configured": [], "stub_fallback": True}


def test_unknown_route_is_json_404(anon_client):
    res = anon_client.get("/api/v1/does-not-exist")
    assert res.status_code == 404
    body = res.get_json()
    assert body["error"] == "Not found"
    assert body["code"] == "ERR_NOT_FOUND"
    assert body["path"] == "/api/v1/does-not-exist"


def test_protected_route_requires_login(anon_client):
    res = anon_client.get("/api/v1/projects")
    assert res.status_code == 401
    assert res.get_json()["error"] == "Authentication required"


def test_security_and_timing_headers(anon_client):
    res = anon_client.get("/api/v1/health", headers={"X-Request-ID": "abc123"})
    assert res.headers["X-Content-Type-Options"] == "nosniff"
    assert res.headers["X-Frame-Options"] == "SAMEORIGIN"
    assert "frame-ancestors 'self'" in res.headers["Content-Security-Policy"]
    assert res.headers["X-Request-ID"] == "abc123"
    assert float(res.headers["X-Request-Duration-Ms"]) >= 0
