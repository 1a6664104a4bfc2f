from dental_saas.models.admin_audit_log import AdminAuditLog
from dental_saas.models.auth_user import AuthUser
from dental_saas.models.company import Company
from dental_saas.models.dentist import Dentist
from dental_saas.routers.auth import router as auth_router
from dental_saas.routers.dentists import router as dentists_router
from dental_saas.services.sessions import SESSION_COOKIE
from tests.fixtures_data import auth_headers, make_company, make_dentist

NEW_DENTIST = {
    "name": "Dr. Bruno",
    "email": "Bruno@Example.com",
    "password": "senha123",
    "specialty": "Ortodontia",
    "registrationNumber": "CRO-SP 12345",
}


def _client(build_client):
    return build_client(auth_router, dentists_router)


def test_login_sets_session_cookie_and_me_reads_it(build_client, db):
    company = make_company(db)
    make_dentist(db, company, is_admin=True)
    client = _client(build_client)

    response = client.post(
        "/api/admin/auth/login",
        json={"email": "DENTISTA@example.com", "password": "segredo123"},
    )

    assert response.status_code == 200
    assert response.json()["ok"] is True
    token = response.cookies.get(SESSION_COOKIE)
    assert token
    set_cookie = response.headers["set-cookie"].lower()
    assert "httponly" in set_cookie
    assert "samesite=lax" in set_cookie

    me = client.get("/api/admin/auth/me", headers={"Cookie": f"{SESSION_COOKIE}={token}"})
    assert me.status_code == 200
    assert me.json()["company"]["slug"] == company.slug
    assert me.json()["is_admin"] is True


def test_login_with_wrong_password_returns_401(build_client, db):
    make_dentist(db, make_company(db))
    client = _client(build_client)

    response = client.post(
        "/api/admin/auth/login",
        json={"email": "dentista@example.com", "password": "errada"},
    )

    assert response.status_code == 401
    assert response.json()["detail"] == "E-mail ou senha inválidos"


def test_me_rejects_tampered_token(build_client):
    client = _client(build_client)

    response = client.get("/api/admin/auth/me", headers={"Authorization": "Bearer nao-e-um-token"})

    assert response.status_code == 401
    assert response.json()["detail"] == "Sessão inválida ou expirada"


def test_admin_creates_dentist_in_own_company(build_client, db):
    company = make_company(db)
    admin = make_dentist(db, company, is_admin=True)
    client = _client(build_client)

    response = client.post("/api/admin/dentists", json=NEW_DENTIST, headers=auth_headers(admin))

    assert response.status_code == 201
    body = response.json()
    assert body["email"] == "bruno@example.com"
    assert body["company_id"] == company.id
    assert body["is_admin"] is False
    assert db.query(AuthUser).filter(AuthUser.email == "bruno@example.com").count() == 1
    assert db.query(AdminAuditLog).filter(AdminAuditLog.action == "create_dentist").count() == 1


def test_duplicate_email_is_rejected(build_client, db):
    company = make_company(db)
    admin = make_dentist(db, company, is_admin=True)
    client = _client(build_client)

    response = client.post(
        "/api/admin/dentists",
        json={**NEW_DENTIST, "email": "dentista@example.com"},
        headers=auth_headers(admin),
    )

    assert response.status_code == 400
    assert response.json()["detail"] == "E-mail já cadastrado"


def test_non_admin_cannot_manage_roster(build_client, db):
    company = make_company(db)
    member = make_dentist(db, company)
    client = _client(build_client)

    create = client.post("/api/admin/dentists", json=NEW_DENTIST, headers=auth_headers(member))
    listing = client.get("/api/admin/dentists", headers=auth_headers(member))

    assert create.status_code == 403
    assert listing.status_code == 403
    assert db.query(Dentist).count() == 1


def test_admin_cannot_delete_self(build_client, db):
    company = make_company(db)
    admin = make_dentist(db, company, is_admin=True)
    client = _client(build_client)

    response = client.delete(f"/api/admin/dentists/{admin.id}", headers=auth_headers(admin))

    assert response.status_code == 403
    assert response.json()["detail"] == "Você não pode excluir seu próprio usuário"


def test_delete_dentist_removes_login_account(build_client, db):
    company = make_company(db)
    admin = make_dentist(db, company, is_admin=True)
    member = make_dentist(db, company, email="membro@example.com", name="Dr. Membro")
    client = _client(build_client)

    response = client.delete(f"/api/admin/dentists/{member.id}", headers=auth_headers(admin))

    assert response.status_code == 200
    assert db.query(Dentist).filter(Dentist.id == member.id).count() == 0
    assert db.query(AuthUser).filter(AuthUser.id == member.id).count() == 0


def test_admin_cannot_touch_dentist_of_another_company(build_client, db):
    company = make_company(db)
    admin = make_dentist(db, company, is_admin=True)
    foreign = make_dentist(db, make_company(db, slug="outra-clinica"), email="fora@example.com")
    client = _client(build_client)

    update = client.put(
        f"/api/admin/dentists/{foreign.id}",
        json={"name": "Hack"},
        headers=auth_headers(admin),
    )
    delete = client.delete(f"/api/admin/dentists/{foreign.id}", headers=auth_headers(admin))

    assert update.status_code == 404
    assert delete.status_code == 404


def test_update_dentist_promotes_to_admin(build_client, db):
    company = make_company(db)
    admin = make_dentist(db, company, is_admin=True)
    member = make_dentist(db, company, email="membro@example.com")
    client = _client(build_client)

    response = client.put(
        f"/api/admin/dentists/{member.id}",
        json={"name": "Dra. Membro", "isAdmin": True},
        headers=auth_headers(admin),
    )

    assert response.status_code == 200
    assert response.json()["name"] == "Dra. Membro"
    assert response.json()["is_admin"] is True


def test_profile_update_changes_password(build_client, db):
    company = make_company(db)
    dentist = make_dentist(db, company)
    client = _client(build_client)

    response = client.put(
        "/api/admin/profile",
        json={"specialty": "Endodontia", "password": "nova-senha"},
        headers=auth_headers(dentist),
    )
    login = client.post(
        "/api/admin/auth/login",
        json={"email": "dentista@example.com", "password": "nova-senha"},
    )

    assert response.status_code == 200
    assert response.json()["specialty"] == "Endodontia"
    assert login.status_code == 200


def test_company_info_update_is_admin_only_and_audited(build_client, db):
    company = make_company(db)
    admin = make_dentist(db, company, is_admin=True)
    member = make_dentist(db, company, email="membro@example.com")
    client = _client(build_client)

    forbidden = client.put(
        "/api/admin/company-info",
        json={"displayName": "Sorriso"},
        headers=auth_headers(member),
    )
    invalid = client.put(
        "/api/admin/company-info",
        json={"primaryColor": "azul"},
        headers=auth_headers(admin),
    )
    response = client.put(
        "/api/admin/company-info",
        json={"displayName": "Sorriso", "primaryColor": "#0055ff"},
        headers=auth_headers(admin),
    )

    assert forbidden.status_code == 403
    assert invalid.status_code == 422
    assert response.status_code == 200
    assert response.json()["display_name"] == "Sorriso"
    db.expire_all()
    assert db.query(Company).one().primary_color == "#0055ff"
    assert db.query(AdminAuditLog).filter(AdminAuditLog.action == "update_company_info").count() == 1


def test_first_admin_only_while_no_dentist_exists(build_client, db):
    company = make_company(db)
    client = _client(build_client)
    payload = {
        "name": "Dra. Fundadora",
        "email": "fundadora@example.com",
        "password": "senha123",
        "companySlug": company.slug,
    }

    first = client.post("/api/admin/create-first-admin", json=payload)
    second = client.post(
        "/api/admin/create-first-admin",
        json={**payload, "email": "outra@example.com"},
    )
    unknown = client.post(
        "/api/admin/create-first-admin",
        json={**payload, "companySlug": "nao-existe"},
    )

    assert first.status_code == 201
    assert first.json()["dentist"]["is_admin"] is True
    assert second.status_code == 400
    assert unknown.status_code == 404
