"""Health endpoints: readiness, liveness (DB) and analysis service probe."""


class TestHealth:
    def test_ready(self, client):
        res = client.get("/api/v1/health/ready")
        assert res.status_code == 200
        assert res.get_json() == {"status": "ok"}

    def test_live(self, client):
        res = client.get("/api/v1/health/live")
        assert res.status_code == 200
        body = res.get_json()
        assert body["status"] == "healthy"
        assert body["checks"]["database"]["status"] == "ok"

    def test_agent_ok(self, client):
        res = client.get("/api/v1/health/agent")
        assert res.status_code == 200
        body = res.get_json()
        assert body["status"] == "ok"
        assert body["url"] == "http://analysis.test"

    def test_agent_down(self, client, fake_gateway):
        fake_gateway.healthy = False
        res = client.get("/api/v1/health/agent")
        assert res.status_code == 503
        body = res.get_json()
        assert body["status"] == "unavailable"
        assert "not reachable" in body["error"]

    def test_request_id_header(self, client):
        res = client.get("/api/v1/health/ready", headers={"X-Request-ID": "abc-123"})
        assert res.headers.get("X-Request-ID") == "abc-123"

    def test_unknown_route(self, client):
        res = client.get("/api/v1/nope")
        assert res.status_code == 404
        assert res.get_json()["code"] == "ERR_NOT_FOUND"
