from dental_saas.routers.public_intake import router
from dental_saas.services.tenant_resolver import TenantResolver
from tests.fixtures_data import make_company
from utils.slug import normalize_slug, validate_company_slug


def test_validate_company_slug_rules():
    assert validate_company_slug("clinica-x")
    assert validate_company_slug("ab")
    assert not validate_company_slug("a")
    assert not validate_company_slug("-clinica")
    assert not validate_company_slug("clinica-")
    assert not validate_company_slug("clinica--x")
    assert not validate_company_slug("clínica")
    assert not validate_company_slug("x" * 51)


def test_normalize_slug_removes_accents_and_symbols():
    assert normalize_slug("Clínica Sorriso & Cia!") == "clinica-sorriso-cia"


def test_resolve_slug_normalizes_case_and_whitespace(db):
    company = make_company(db, slug="clinica-x")

    assert TenantResolver.resolve_slug(db, "  Clinica-X ").id == company.id


def test_resolve_slug_returns_none_for_empty_malformed_and_unknown(db):
    make_company(db, slug="clinica-x")

    assert TenantResolver.resolve_slug(db, "") is None
    assert TenantResolver.resolve_slug(db, None) is None
    assert TenantResolver.resolve_slug(db, "clinica--x") is None
    assert TenantResolver.resolve_slug(db, "outra-clinica") is None


def test_public_company_endpoint(build_client, db):
    make_company(db, slug="clinica-x", name="Clínica X")
    make_company(db, slug="clinica-fechada", is_active=False)
    client = build_client(router)

    found = client.get("/api/companies/clinica-x")
    inactive = client.get("/api/companies/clinica-fechada")
    missing = client.get("/api/companies/nao-existe")

    assert found.status_code == 200
    assert found.json()["display_name"] == "Clínica X"
    assert found.json()["registration_enabled"] is True
    assert inactive.json()["registration_enabled"] is False
    assert missing.status_code == 404
