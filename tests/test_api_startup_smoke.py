from fastapi.testclient import TestClient


REQUIRED_ROUTES = {
    "/api/companies/{slug}",
    "/api/check-cpf",
    "/api/register-patient/{company_slug}",
    "/api/cep/{cep}",
    "/api/admin/auth/login",
    "/api/admin/dentists",
    "/api/admin/create-first-admin",
    "/api/admin/patients/search",
    "/api/admin/treatments",
    "/api/admin/treatments/{treatment_id}/planning",
    "/api/admin/treatments/files/signed-url",
    "/api/subscription/complete",
    "/api/webhooks/stripe",
    "/internal/metrics/companies",
}


def test_api_startup_and_router_registration(monkeypatch):
    from dental_saas import main

    monkeypatch.setattr(main, "_startup_tasks", lambda: None)

    with TestClient(main.app) as client:
        response = client.get("/")
        health = client.get("/health")
        openapi_response = client.get("/openapi.json")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert health.json() == {"status": "healthy"}
    assert openapi_response.status_code == 200
    assert response.headers.get("x-request-id")

    paths = {route.path for route in main.app.routes}
    assert REQUIRED_ROUTES.issubset(paths)


def test_signed_url_route_is_not_shadowed_by_treatment_id():
    from dental_saas import main

    paths = [route.path for route in main.app.routes]

    assert paths.index("/api/admin/treatments/files/signed-url") < paths.index(
        "/api/admin/treatments/{treatment_id}"
    )
