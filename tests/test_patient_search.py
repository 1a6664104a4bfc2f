from dental_saas.models.anamnesis import Anamnesis
from dental_saas.models.treatment import Treatment
from dental_saas.routers.patients import router
from dental_saas.services.treatments import ANAMNESIS_YES_NO_FIELDS
from tests.fixtures_data import auth_headers, make_company, make_dentist, make_patient


def _seed(db):
    company = make_company(db)
    dentist = make_dentist(db, company)
    joao = make_patient(db, company)
    maria = make_patient(db, company, cpf="52998224725", email="maria@example.com", name="Maria Souza")
    return company, dentist, joao, maria


def test_simple_search_prefers_cpf_digits(build_client, db):
    _, dentist, joao, _ = _seed(db)
    client = build_client(router)

    response = client.get("/api/admin/patients/search?query=111.444", headers=auth_headers(dentist))

    assert [entry["id"] for entry in response.json()] == [joao.id]


def test_simple_search_falls_back_to_name(build_client, db):
    _, dentist, _, maria = _seed(db)
    client = build_client(router)

    response = client.get("/api/admin/patients/search?query=MARIA", headers=auth_headers(dentist))
    empty = client.get("/api/admin/patients/search?query=", headers=auth_headers(dentist))

    assert [entry["name"] for entry in response.json()] == [maria.name]
    assert empty.json() == []


def test_search_never_crosses_companies(build_client, db):
    _, dentist, _, _ = _seed(db)
    other = make_company(db, slug="outra-clinica")
    make_patient(db, other, cpf="11144477735", name="Joao Silva Outro")
    client = build_client(router)

    response = client.get("/api/admin/patients/search?query=11144477735", headers=auth_headers(dentist))

    assert len(response.json()) == 1


def test_advanced_search_needs_three_characters_and_matches_email(build_client, db):
    _, dentist, _, maria = _seed(db)
    client = build_client(router)

    short = client.get("/api/admin/patients/advanced-search?query=ma", headers=auth_headers(dentist))
    by_email = client.get(
        "/api/admin/patients/advanced-search?query=maria@exa",
        headers=auth_headers(dentist),
    )
    wildcard = client.get("/api/admin/patients/advanced-search?query=%25%25%25", headers=auth_headers(dentist))

    assert short.json() == []
    assert [entry["id"] for entry in by_email.json()] == [maria.id]
    assert wildcard.json() == []


def test_patient_detail_with_treatments_and_latest_anamnesis(build_client, db):
    _, dentist, joao, _ = _seed(db)
    older = Treatment(patient_id=joao.id, dentist_id=dentist.id, description="Antigo")
    db.add(older)
    db.flush()
    newer = Treatment(patient_id=joao.id, dentist_id=dentist.id, description="Recente")
    db.add(newer)
    db.flush()
    answers = {field: False for field in ANAMNESIS_YES_NO_FIELDS}
    db.add(Anamnesis(treatment_id=older.id, **{**answers, "smoker": True}))
    db.add(Anamnesis(treatment_id=newer.id, **answers))
    db.commit()
    client = build_client(router)

    plain = client.get(f"/api/admin/patients/{joao.id}", headers=auth_headers(dentist))
    detailed = client.get(f"/api/admin/patients/{joao.id}?include_treatments=true", headers=auth_headers(dentist))

    assert "treatments" not in plain.json()
    body = detailed.json()
    assert [entry["description"] for entry in body["treatments"]] == ["Recente", "Antigo"]
    assert body["latest_anamnesis"]["treatment_id"] == newer.id


def test_patient_of_another_company_is_404(build_client, db):
    _, dentist, _, _ = _seed(db)
    foreign = make_patient(db, make_company(db, slug="outra-clinica"), name="Fora")
    client = build_client(router)

    response = client.get(f"/api/admin/patients/{foreign.id}", headers=auth_headers(dentist))

    assert response.status_code == 404
