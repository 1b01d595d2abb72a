"""Auth API tests."""

from safetrail.core.config import settings
from safetrail.services.auth_service import ensure_bootstrap_admin


def test_register_and_login(client):
    r = client.post(
        "/auth/register",
        json={"email": "auth_basic@test.com", "password": "pass", "full_name": "Basic", "role": "tourist"},
    )
    assert r.status_code == 200
    assert r.json()["role"] == "tourist"

    r = client.post("/auth/login", json={"email": "auth_basic@test.com", "password": "pass"})
    assert r.status_code == 200
    assert r.json()["role"] == "tourist"
    assert r.json()["expires_in"] == settings.jwt_expire_minutes * 60
    token = r.json()["access_token"]

    me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["email"] == "auth_basic@test.com"


def test_role_defaults_to_tourist(client):
    r = client.post(
        "/auth/register",
        json={"email": "auth_default@test.com", "password": "pass", "full_name": "Default"},
    )
    assert r.status_code == 200
    assert r.json()["role"] == "tourist"


def test_duplicate_email_rejected(client):
    payload = {"email": "auth_dup@test.com", "password": "pass", "full_name": "Dup"}
    assert client.post("/auth/register", json=payload).status_code == 200
    r = client.post("/auth/register", json=payload)
    assert r.status_code == 400
    assert r.json()["detail"] == "Email already registered"
    assert r.json()["error"]["code"] == "VALIDATION_ERROR"


def test_unknown_role_rejected(client):
    r = client.post(
        "/auth/register",
        json={"email": "auth_role@test.com", "password": "pass", "full_name": "X", "role": "police"},
    )
    assert r.status_code == 422


def test_wrong_password(client):
    client.post(
        "/auth/register",
        json={"email": "auth_wrong@test.com", "password": "pass", "full_name": "W"},
    )
    r = client.post("/auth/login", json={"email": "auth_wrong@test.com", "password": "nope"})
    assert r.status_code == 401


def test_me_requires_token(client):
    assert client.get("/auth/me").status_code == 401
    r = client.get("/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401


def test_self_registered_admin_refused(client, make_tourist):
    t_headers, _ = make_tourist("signup_victim")
    alert_id = client.post("/tourists/me/emergency", headers=t_headers, json={"type": "security"}).json()["alert_id"]

    r = client.post(
        "/auth/register",
        json={"email": "auth_selfadmin@test.com", "password": "pass", "full_name": "Mallory", "role": "admin"},
    )
    assert r.status_code == 403
    assert r.json()["error"]["code"] == "STAFF_SIGNUP_FORBIDDEN"

    login = client.post("/auth/login", json={"email": "auth_selfadmin@test.com", "password": "pass"})
    assert login.status_code == 401
    assert client.get(f"/alerts/{alert_id}", headers=t_headers).json()["status"] == "active"


def test_admin_creates_government_account(client, staff, make_user):
    s_headers, s_user = staff
    body = {"email": "auth_gov@test.com", "password": "patrol-2026", "full_name": "Patrol", "role": "government"}
    r = client.post("/auth/staff", headers=s_headers, json=body)
    assert r.status_code == 201
    assert r.json()["role"] == "government"

    login = client.post("/auth/login", json={"email": body["email"], "password": body["password"]})
    assert login.json()["role"] == "government"
    gov_headers = {"Authorization": f"Bearer {login.json()['access_token']}"}

    # only admins hand out staff accounts
    other = {**body, "email": "auth_gov2@test.com"}
    assert client.post("/auth/staff", headers=gov_headers, json=other).status_code == 403
    t_headers, _ = make_user("auth_staff_tourist")
    assert client.post("/auth/staff", headers=t_headers, json=other).status_code == 403
    assert client.post("/auth/staff", json=other).status_code == 401


def test_staff_account_role_must_be_staff(client, staff):
    s_headers, _ = staff
    body = {"email": "auth_staff_bad@test.com", "password": "patrol-2026", "full_name": "X", "role": "tourist"}
    assert client.post("/auth/staff", headers=s_headers, json=body).status_code == 422


def test_bootstrap_admin_seeded_once(db_session, monkeypatch):
    monkeypatch.setattr(settings, "bootstrap_admin_email", "auth_root@test.com")
    monkeypatch.setattr(settings, "bootstrap_admin_password", "root-password")
    first = ensure_bootstrap_admin(db_session)
    again = ensure_bootstrap_admin(db_session)
    assert first.role == "admin"
    assert again.id == first.id


def test_bootstrap_admin_needs_both_settings(db_session, monkeypatch):
    monkeypatch.setattr(settings, "bootstrap_admin_email", "auth_half@test.com")
    monkeypatch.setattr(settings, "bootstrap_admin_password", None)
    assert ensure_bootstrap_admin(db_session) is None
