import httpx
import pytest

from dental_saas.deps import get_postal_code_client
from dental_saas.routers.cep import router
from dental_saas.services.postal_code import PostalCodeClient, PostalCodeError


def _client_returning(status_code=200, payload=None, seen=None):
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(str(request.url))
        return httpx.Response(status_code, json=payload if payload is not None else {})

    return PostalCodeClient(base_url="https://viacep.test/ws", transport=httpx.MockTransport(handler))


def test_lookup_maps_address_fields():
    seen = []
    client = _client_returning(
        payload={
            "cep": "01310-100",
            "logradouro": "Avenida Paulista",
            "bairro": "Bela Vista",
            "localidade": "São Paulo",
            "uf": "SP",
        },
        seen=seen,
    )

    address = client.lookup("01310-100")

    assert seen == ["https://viacep.test/ws/01310100/json/"]
    assert address == {
        "cep": "01310100",
        "street": "Avenida Paulista",
        "neighborhood": "Bela Vista",
        "city": "São Paulo",
        "state": "SP",
    }


def test_lookup_rejects_malformed_cep_without_calling_upstream():
    seen = []
    client = _client_returning(seen=seen)

    with pytest.raises(PostalCodeError) as exc_info:
        client.lookup("1234")

    assert exc_info.value.status_code == 400
    assert seen == []


def test_lookup_not_found_flag_returns_404():
    client = _client_returning(payload={"erro": True})

    with pytest.raises(PostalCodeError) as exc_info:
        client.lookup("99999999")

    assert exc_info.value.status_code == 404
    assert exc_info.value.message == "CEP não encontrado."


def test_upstream_failure_returns_500():
    client = _client_returning(status_code=502)

    with pytest.raises(PostalCodeError) as exc_info:
        client.lookup("01310100")

    assert exc_info.value.status_code == 500


def test_cep_route_maps_errors_to_http(build_client):
    app_client = build_client(router)
    app_client.app.dependency_overrides[get_postal_code_client] = lambda: _client_returning(payload={"erro": "true"})

    not_found = app_client.get("/api/cep/99999-999")
    invalid = app_client.get("/api/cep/123")

    assert not_found.status_code == 404
    assert not_found.json()["detail"] == "CEP não encontrado."
    assert invalid.status_code == 400
