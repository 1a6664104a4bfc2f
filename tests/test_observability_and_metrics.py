import pytest

from dental_saas.core import startup_checks
from dental_saas.core.metrics import InMemoryRequestMetrics, request_metrics
from dental_saas.middleware.observability import ObservabilityMiddleware
from dental_saas.routers.internal_metrics import router as metrics_router
from dental_saas.routers.treatments import router as treatments_router
from tests.fixtures_data import auth_headers, make_company, make_dentist


def test_metrics_aggregate_by_endpoint_and_company():
    metrics = InMemoryRequestMetrics()

    metrics.observe("/a", "GET", 200, 10.0, company_id="c1")
    metrics.observe("/a", "GET", 500, 30.0, company_id="c1")
    metrics.observe("/b", "POST", 201, 5.0)
    metrics.observe_webhook("invoice.payment_failed", "processed")

    assert metrics.snapshot()["GET /a"] == {
        "total_requests": 2,
        "total_duration_ms": 40.0,
        "avg_duration_ms": 20.0,
        "error_count": 1,
    }
    assert metrics.snapshot_per_company() == {"c1": {"requests": 2, "errors": 1, "avg_duration_ms": 20.0}}
    assert metrics.snapshot_webhooks() == {"invoice.payment_failed:processed": 1}


def test_middleware_tags_request_with_company_of_logged_dentist(build_client, db):
    request_metrics.reset()
    company = make_company(db)
    admin = make_dentist(db, company, is_admin=True)
    client = build_client(treatments_router, metrics_router)
    client.app.add_middleware(ObservabilityMiddleware)

    listed = client.get("/api/admin/treatments", headers={**auth_headers(admin), "X-Request-ID": "req-1"})
    metrics = client.get("/internal/metrics/companies", headers=auth_headers(admin))

    assert listed.headers["X-Request-ID"] == "req-1"
    assert metrics.status_code == 200
    assert metrics.json()["company_id"] == company.id
    assert metrics.json()["metrics"]["requests"] >= 1


def test_internal_metrics_require_admin(build_client, db):
    member = make_dentist(db, make_company(db))
    client = build_client(metrics_router)

    response = client.get("/internal/metrics/webhooks", headers=auth_headers(member))

    assert response.status_code == 403


def test_production_rejects_sqlite(monkeypatch):
    monkeypatch.setenv("ENV", "production")
    monkeypatch.delenv("ENVIRONMENT", raising=False)
    monkeypatch.setattr(startup_checks, "DATABASE_URL", "sqlite:///./x.db")

    with pytest.raises(RuntimeError, match="SQLite is forbidden"):
        startup_checks.validate_database_environment()


def test_production_requires_billing_and_session_secrets(monkeypatch):
    monkeypatch.setenv("ENV", "production")
    monkeypatch.delenv("ENVIRONMENT", raising=False)
    monkeypatch.setenv("STRIPE_SECRET_KEY", "")
    monkeypatch.setattr(startup_checks, "SESSION_SECRET", "segredo")

    with pytest.raises(RuntimeError) as exc_info:
        startup_checks.validate_required_secrets()

    assert "STRIPE_SECRET_KEY" in str(exc_info.value)
    assert "SESSION_SECRET" not in str(exc_info.value)
