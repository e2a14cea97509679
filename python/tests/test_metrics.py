"""Tests for the Prometheus metrics endpoint."""

from httpx import ASGITransport, AsyncClient

from apicheck.server import create_app

from conftest import make_config


class TestMetricsEndpoint:
    """Tests for GET /metrics."""

    async def test_metrics_returns_200(self, client):
        resp = await client.get("/metrics")
        assert resp.status_code == 200

    async def test_metrics_content_type(self, client):
        """GET /metrics returns Prometheus text format content type."""
        resp = await client.get("/metrics")
        ct = resp.headers.get("content-type", "")
        assert "text/plain" in ct or "openmetrics" in ct.lower()

    async def test_http_metrics_namespaced(self, client):
        """The instrumentator emits apicheck_http_requests_total."""
        await client.get("/api/ping")
        resp = await client.get("/metrics")
        assert "apicheck_http_requests_total" in resp.text

    async def test_record_lookups_counted(self, client):
        await client.get("/api/get-record/5")
        await client.get("/api/get-record/0")
        resp = await client.get("/metrics")
        body = resp.text
        assert 'apicheck_record_lookups_total{outcome="found"}' in body
        assert 'apicheck_record_lookups_total{outcome="invalid_id"}' in body

    async def test_metrics_carries_request_id(self, client):
        """/metrics still carries the request id header."""
        resp = await client.get("/metrics")
        assert "x-request-id" in resp.headers


class TestMetricsDisabled:
    """Apps built with metrics off expose no /metrics route."""

    async def test_metrics_not_served(self):
        app = create_app(make_config(metrics=False))
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
            resp = await ac.get("/metrics")
        assert resp.status_code == 404
