from dental_saas.models.patient import Patient
from dental_saas.routers.public_intake import router
from dental_saas.services.patient_intake import IntakeState, can_transition
from tests.fixtures_data import PATIENT_REGISTRATION_PAYLOAD, make_company, make_patient


def test_register_patient_stores_digits_only_and_normalized_fields(build_client, db):
    company = make_company(db)
    client = build_client(router)

    response = client.post(f"/api/register-patient/{company.slug}", json=PATIENT_REGISTRATION_PAYLOAD)

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["state"] == "success"
    assert body["company"]["slug"] == company.slug

    patient = db.query(Patient).one()
    assert patient.cpf == "11144477735"
    assert patient.phone == "11988887777"
    assert patient.zip_code == "01310100"
    assert patient.email == "maria@example.com"
    assert patient.state == "SP"
    assert patient.has_insurance is False
    assert patient.insurance_name is None


def test_duplicate_cpf_in_same_company_is_rejected_without_new_row(build_client, db):
    company = make_company(db)
    make_patient(db, company, cpf="11144477735", email="outro@example.com")
    client = build_client(router)

    response = client.post(f"/api/register-patient/{company.slug}", json=PATIENT_REGISTRATION_PAYLOAD)

    assert response.status_code == 400
    assert response.json()["detail"] == "CPF já cadastrado nesta empresa"
    assert db.query(Patient).count() == 1


def test_duplicate_email_in_same_company_is_rejected(build_client, db):
    company = make_company(db)
    make_patient(db, company, cpf="99988877766", email="maria@example.com")
    client = build_client(router)

    response = client.post(f"/api/register-patient/{company.slug}", json=PATIENT_REGISTRATION_PAYLOAD)

    assert response.status_code == 400
    assert response.json()["detail"] == "E-mail já cadastrado nesta empresa"


def test_same_cpf_is_allowed_in_another_company(build_client, db):
    first = make_company(db, slug="clinica-um")
    second = make_company(db, slug="clinica-dois")
    make_patient(db, first, cpf="11144477735", email="maria@example.com")
    client = build_client(router)

    response = client.post(f"/api/register-patient/{second.slug}", json=PATIENT_REGISTRATION_PAYLOAD)

    assert response.status_code == 201
    assert db.query(Patient).filter(Patient.company_id == second.id).count() == 1


def test_insurance_name_without_number_is_rejected(build_client, db):
    company = make_company(db)
    client = build_client(router)
    payload = {**PATIENT_REGISTRATION_PAYLOAD, "insuranceName": "Amil"}

    response = client.post(f"/api/register-patient/{company.slug}", json=payload)

    assert response.status_code == 400
    assert response.json()["detail"]["error"] == "Dados incompletos"
    assert db.query(Patient).count() == 0


def test_insurance_pair_sets_has_insurance(build_client, db):
    company = make_company(db)
    client = build_client(router)
    payload = {**PATIENT_REGISTRATION_PAYLOAD, "insuranceName": "Amil", "insuranceNumber": "123.456-7"}

    response = client.post(f"/api/register-patient/{company.slug}", json=payload)

    assert response.status_code == 201
    patient = db.query(Patient).one()
    assert patient.has_insurance is True
    assert patient.insurance_number == "1234567"


def test_register_patient_unknown_company_returns_404(build_client):
    client = build_client(router)

    response = client.post("/api/register-patient/nao-existe", json=PATIENT_REGISTRATION_PAYLOAD)

    assert response.status_code == 404
    assert response.json()["detail"] == "Empresa não encontrada"


def test_check_cpf_formatted_and_digits_find_the_same_patient(build_client, db):
    company = make_company(db)
    make_patient(db, company, cpf="11144477735")
    client = build_client(router)

    formatted = client.post("/api/check-cpf", json={"cpf": "111.444.777-35", "companySlug": company.slug})
    digits = client.post("/api/check-cpf", json={"cpf": "11144477735", "companySlug": company.slug})

    assert formatted.status_code == digits.status_code == 200
    assert formatted.json() == digits.json()
    assert formatted.json()["state"] == "already-exists"
    assert formatted.json()["valid"] is False


def test_check_cpf_new_patient_goes_to_registration_form(build_client, db):
    company = make_company(db)
    client = build_client(router)

    response = client.post("/api/check-cpf", json={"cpf": "529.982.247-25", "companySlug": company.slug})

    assert response.status_code == 200
    assert response.json() == {"valid": True, "state": "registration-form", "cpf": "52998224725"}


def test_check_cpf_rejects_missing_and_short_values(build_client, db):
    company = make_company(db)
    client = build_client(router)

    missing = client.post("/api/check-cpf", json={"companySlug": company.slug})
    short = client.post("/api/check-cpf", json={"cpf": "123.456", "companySlug": company.slug})

    assert missing.status_code == 400
    assert missing.json()["detail"]["error"] == "CPF não fornecido"
    assert short.status_code == 400
    assert short.json()["detail"] == {"valid": False, "error": "CPF deve ter 11 dígitos"}


def test_intake_transitions_allow_reset_but_not_skipping_steps():
    assert can_transition(IntakeState.CPF_ENTRY, IntakeState.REGISTRATION_FORM)
    assert can_transition(IntakeState.REGISTRATION_FORM, IntakeState.SUCCESS)
    assert can_transition(IntakeState.SUCCESS, IntakeState.CPF_ENTRY)
    assert not can_transition(IntakeState.CPF_ENTRY, IntakeState.SUCCESS)
    assert not can_transition(IntakeState.ALREADY_EXISTS, IntakeState.REGISTRATION_FORM)


def test_check_cpf_only_looks_inside_the_given_company(build_client, db):
    company = make_company(db, slug="clinica-sorriso")
    other = make_company(db, slug="outra")
    make_patient(db, other, cpf="11144477735")
    client = build_client(router)

    response = client.post("/api/check-cpf", json={"cpf": "111.444.777-35", "companySlug": company.slug})

    assert response.status_code == 200
    assert response.json()["state"] == "registration-form"


def test_check_cpf_requires_company_slug(build_client, db):
    company = make_company(db)
    make_patient(db, company, cpf="11144477735")
    client = build_client(router)

    without_slug = client.post("/api/check-cpf", json={"cpf": "11144477735"})
    unknown = client.post("/api/check-cpf", json={"cpf": "11144477735", "companySlug": "nao-existe"})

    assert without_slug.status_code == 400
    assert without_slug.json()["detail"]["fields"] == ["companySlug"]
    assert unknown.status_code == 404


def test_insurance_number_without_digits_is_rejected(build_client, db):
    company = make_company(db)
    client = build_client(router)
    payload = {**PATIENT_REGISTRATION_PAYLOAD, "insuranceName": "Amil", "insuranceNumber": "ABC"}

    response = client.post(f"/api/register-patient/{company.slug}", json=payload)

    assert response.status_code == 400
    assert response.json()["detail"]["fields"] == ["insuranceNumber"]
    assert db.query(Patient).count() == 0


def test_blank_insurance_pair_registers_without_insurance(build_client, db):
    company = make_company(db)
    client = build_client(router)
    payload = {**PATIENT_REGISTRATION_PAYLOAD, "insuranceName": " ", "insuranceNumber": ""}

    response = client.post(f"/api/register-patient/{company.slug}", json=payload)

    assert response.status_code == 201
    patient = db.query(Patient).one()
    assert patient.has_insurance is False
    assert patient.insurance_number is None


def test_zip_code_and_phone_are_checked_by_digit_count(build_client, db):
    company = make_company(db)
    client = build_client(router)

    letters = client.post(
        f"/api/register-patient/{company.slug}", json={**PATIENT_REGISTRATION_PAYLOAD, "zipCode": "abcdefgh"}
    )
    nine_digits = client.post(
        f"/api/register-patient/{company.slug}", json={**PATIENT_REGISTRATION_PAYLOAD, "zipCode": "01310-1000"}
    )
    short_phone = client.post(
        f"/api/register-patient/{company.slug}", json={**PATIENT_REGISTRATION_PAYLOAD, "phone": "(11) 9-x-y-z-w"}
    )
    long_phone = client.post(
        f"/api/register-patient/{company.slug}", json={**PATIENT_REGISTRATION_PAYLOAD, "phone": "+55 11 98888-7777"}
    )

    assert letters.status_code == 400
    assert letters.json()["detail"]["fields"] == ["zipCode"]
    assert nine_digits.status_code == 400
    assert short_phone.status_code == 400
    assert short_phone.json()["detail"]["fields"] == ["phone"]
    assert long_phone.status_code == 400
    assert db.query(Patient).count() == 0
