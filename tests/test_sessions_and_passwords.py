import time

from starlette.requests import Request

from dental_saas.services import sessions
from dental_saas.services.passwords import hash_password, verify_password
from dental_saas.services.sessions import (
    SESSION_COOKIE,
    build_session_cookie_options,
    create_session,
    decode_session,
    extract_session_token,
)


def _request(headers=None):
    raw_headers = [(key.lower().encode(), value.encode()) for key, value in (headers or {}).items()]
    return Request({"type": "http", "method": "GET", "path": "/", "headers": raw_headers, "query_string": b""})


def test_session_roundtrip_keeps_claims():
    token = create_session({"user_id": "abc", "email": "a@b.com"})

    payload = decode_session(token)

    assert payload["user_id"] == "abc"
    assert payload["exp"] > time.time()


def test_expired_or_tampered_session_is_rejected():
    expired = create_session({"user_id": "abc", "exp": int(time.time()) - 10})
    valid = create_session({"user_id": "abc"})

    assert decode_session(expired) is None
    assert decode_session(valid + "x") is None
    assert decode_session("lixo") is None


def test_session_signed_with_other_secret_is_rejected(monkeypatch):
    token = create_session({"user_id": "abc"})
    monkeypatch.setattr(sessions, "SESSION_SECRET", "outro-segredo")

    assert decode_session(token) is None


def test_cookie_takes_precedence_over_bearer():
    request = _request({"Cookie": f"{SESSION_COOKIE}=from-cookie", "Authorization": "Bearer from-header"})

    assert extract_session_token(request) == "from-cookie"
    assert extract_session_token(_request({"Authorization": "Bearer  tok "})) == "tok"
    assert extract_session_token(_request({"Authorization": "Basic abc"})) is None


def test_public_hosts_always_get_secure_cookies(monkeypatch):
    monkeypatch.setattr(sessions, "SESSION_COOKIE_SECURE", False)
    monkeypatch.setattr(sessions, "SESSION_COOKIE_SAMESITE", "none")

    local = build_session_cookie_options(_request({"Host": "localhost:8000"}))
    public = build_session_cookie_options(_request({"Host": "app.clinica.com.br"}))

    assert local["secure"] is False
    assert local["samesite"] == "lax"
    assert public["secure"] is True
    assert public["samesite"] == "none"
    assert public["httponly"] is True


def test_password_hash_verifies_only_the_right_password():
    hashed = hash_password("segredo123")

    assert hashed != "segredo123"
    assert verify_password("segredo123", hashed)
    assert not verify_password("outra", hashed)
    assert not verify_password("segredo123", None)


def test_legacy_pbkdf2_hashes_still_verify():
    from dental_saas.services import passwords

    legacy = passwords._pbkdf2_encode("antiga123")

    assert legacy.startswith("pbkdf2$")
    assert verify_password("antiga123", legacy)
    assert not verify_password("nova", legacy)
