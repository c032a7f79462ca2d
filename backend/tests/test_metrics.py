"""
Tests for the request metrics middleware

Tests cover:
- Endpoint labels use the route template, not the raw path
- Routes without a path template (included routers) are skipped
- Requests still succeed through the middleware
"""

from fastapi import APIRouter, FastAPI
from fastapi.testclient import TestClient
from prometheus_client import REGISTRY
from starlette.requests import Request
from starlette.routing import Match

from jobboard.middleware.metrics import PrometheusMiddleware, setup_metrics


class PathlessRoute:
    """Routing entry without a ``path`` template, like an included router."""

    def matches(self, scope):
        return Match.NONE, {}


def build_app() -> FastAPI:
    app = FastAPI()
    router = APIRouter(prefix="/payments")

    @router.get("/{payment_id}")
    async def read_payment(payment_id: str):
        return {"id": payment_id}

    @app.get("/ads/{ad_id}")
    async def read_ad(ad_id: str):
        return {"id": ad_id}

    app.include_router(router)
    app.router.routes.insert(0, PathlessRoute())
    setup_metrics(app)
    return app


def make_request(app: FastAPI, path: str) -> Request:
    return Request(
        {"type": "http", "method": "GET", "path": path, "headers": [], "query_string": b"", "app": app}
    )


def request_count(endpoint: str, status: str) -> float:
    value = REGISTRY.get_sample_value(
        "http_requests_total", {"method": "GET", "endpoint": endpoint, "status": status}
    )
    return value or 0.0


class TestEndpointLabel:
    """Test route template resolution."""

    def test_uses_route_template(self):
        app = build_app()
        middleware = PrometheusMiddleware(app)

        assert middleware._get_endpoint(make_request(app, "/ads/abc")) == "/ads/{ad_id}"
        assert middleware._get_endpoint(make_request(app, "/payments/p1")) == "/payments/{payment_id}"

    def test_unmatched_path_falls_back_to_raw_path(self):
        app = build_app()
        middleware = PrometheusMiddleware(app)

        assert middleware._get_endpoint(make_request(app, "/nowhere")) == "/nowhere"


class TestMiddleware:
    """Test requests flowing through the middleware."""

    def test_request_with_pathless_route_succeeds(self):
        client = TestClient(build_app())
        before = request_count("/ads/{ad_id}", "200")

        response = client.get("/ads/abc")

        assert response.status_code == 200
        assert response.json() == {"id": "abc"}
        assert request_count("/ads/{ad_id}", "200") == before + 1

    def test_metrics_endpoint_exposed(self):
        client = TestClient(build_app())
        response = client.get("/metrics")
        assert response.status_code == 200
        assert "http_requests_total" in response.text
