from dataclasses import replace
from datetime import timedelta

from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from Auth import bruteforce
from Auth.auth import COOKIE_NAME
from Core.limiter import limiter

from conftest import ADMIN_EMAIL, ADMIN_PASSWORD, PASSWORD, login, register


def test_register_sets_cookie_and_me_works(client):
    body = register(client, email="New@Example.com")
    assert body["user"]["email"] == "new@example.com"
    assert body["user"]["role"] == "user"
    assert "token" in body
    assert COOKIE_NAME in client.cookies

    me = client.get("/api/auth/me")
    assert me.status_code == 200, me.text
    assert me.json()["user"]["email"] == "new@example.com"
    assert me.json()["user"]["provider"] == "local"


def test_register_duplicate_email(client):
    register(client)
    res = client.post("/api/auth/register", json={"email": "member@example.com", "password": PASSWORD})
    assert res.status_code == 400
    assert res.json()["error"] == "validation_failed"
    assert res.json()["details"][0]["field"] == "email"


def test_register_weak_password(client):
    res = client.post("/api/auth/register", json={"email": "weak@example.com", "password": "short"})
    assert res.status_code == 400
    fields = {d["field"] for d in res.json()["details"]}
    assert fields == {"password"}


def test_bad_email_is_validation_failed(client):
    res = client.post("/api/auth/login", json={"email": "not-an-email", "password": "x"})
    assert res.status_code == 400
    body = res.json()
    assert body["error"] == "validation_failed"
    assert body["details"][0]["field"] == "email"


def test_login_and_bearer_header(client, make_client):
    register(client)
    token = login(client, "member@example.com", PASSWORD).json()["token"]

    other = make_client()
    assert other.get("/api/auth/me").status_code == 401
    res = other.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert res.status_code == 200


def test_me_without_credentials(client):
    res = client.get("/api/auth/me")
    assert res.status_code == 401
    assert res.json()["error"] == "authentication_missing"


def test_me_with_garbage_token(client):
    res = client.get("/api/auth/me", headers={"Authorization": "Bearer garbage"})
    assert res.status_code == 401
    assert res.json()["error"] == "authentication_invalid"


def test_expired_token(client, frozen_clock, settings):
    register(client)
    frozen_clock.advance(seconds=int(settings.token_lifetime.total_seconds()))
    res = client.get("/api/auth/me")
    assert res.status_code == 401
    assert res.json()["error"] == "authentication_expired"


def test_unknown_email_and_wrong_password_look_the_same(client):
    register(client)
    unknown = login(client, "nobody@example.com", PASSWORD)
    wrong = login(client, "member@example.com", "Wrong1234")
    assert unknown.status_code == wrong.status_code == 401
    assert unknown.json() == wrong.json()
    assert unknown.json()["message"] == "Invalid email or password"


def test_lockout_after_five_failures(client, make_client, frozen_clock):
    register(client)
    for _ in range(4):
        assert login(client, "member@example.com", "Wrong1234").status_code == 401

    fifth = login(client, "member@example.com", "Wrong1234")
    assert fifth.status_code == 423
    assert fifth.json()["error"] == "account_locked"
    assert fifth.json()["unlockAt"].endswith("Z")

    # the correct password does not help while locked
    locked = login(client, "member@example.com", PASSWORD)
    assert locked.status_code == 423

    frozen_clock.advance(minutes=16)
    res = login(client, "member@example.com", PASSWORD)
    assert res.status_code == 200, res.text


def test_ip_throttle_applies_to_other_accounts(client):
    register(client, email="first@example.com")
    register(client, email="second@example.com")
    for _ in range(5):
        login(client, "first@example.com", "Wrong1234")

    res = login(client, "second@example.com", PASSWORD)
    assert res.status_code == 429
    assert res.json()["error"] == "rate_limited"
    assert res.json()["retryAfter"] == 15


def test_successful_login_resets_counter(client, db):
    from Auth import users

    register(client)
    for _ in range(3):
        login(client, "member@example.com", "Wrong1234")
    assert login(client, "member@example.com", PASSWORD).status_code == 200
    assert users.find_active_by_email(db, "member@example.com").failed_login_count == 0


def test_seeded_admin_gets_admin_role(client):
    res = login(client, ADMIN_EMAIL, ADMIN_PASSWORD)
    assert res.status_code == 200, res.text
    assert res.json()["user"]["role"] == "admin"
    assert client.get("/api/auth/me").json()["user"]["role"] == "admin"


def test_refresh_reissues_token(client, frozen_clock):
    register(client)
    frozen_clock.advance(minutes=30)
    res = client.post("/api/auth/refresh")
    assert res.status_code == 200, res.text
    frozen_clock.advance(minutes=45)
    # the first token is past its hour by now; the cookie carries the new one
    assert client.get("/api/auth/me").status_code == 200


def test_logout_clears_cookie(client):
    register(client)
    assert client.post("/api/auth/logout").status_code == 200
    assert client.get("/api/auth/me").status_code == 401


def test_deleted_user_token_is_invalid(client):
    body = register(client)
    token = body["token"]
    res = client.request("DELETE", "/api/user/account", json={"password": PASSWORD})
    assert res.status_code == 200, res.text

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 401
    assert me.json()["error"] == "authentication_invalid"

    # the email stays taken and the account cannot log in
    assert login(client, "member@example.com", PASSWORD).status_code == 401


# ─── Google sign-in ────────────────────────────────────────────────────────
def test_firebase_login_creates_member(client, google_token):
    res = client.post("/api/auth/firebase-login", json={"idToken": google_token(email="Fan@Gmail.com")})
    assert res.status_code == 200, res.text
    user = res.json()["user"]
    assert user["email"] == "fan@gmail.com"
    assert user["role"] == "user"

    me = client.get("/api/auth/me")
    assert me.status_code == 200
    assert me.json()["user"]["email"] == "fan@gmail.com"


def test_firebase_login_links_existing_account(client, google_token):
    first = register(client, email="linked@gmail.com")
    res = client.post("/api/auth/firebase-login", json={"idToken": google_token(email="linked@gmail.com")})
    assert res.status_code == 200
    assert res.json()["user"]["id"] == first["user"]["id"]


def test_firebase_admin_from_allow_list(client, google_token):
    res = client.post("/api/auth/firebase-login", json={"idToken": google_token(email=ADMIN_EMAIL, sub="g-admin")})
    assert res.status_code == 200
    assert res.json()["user"]["role"] == "admin"


def test_firebase_token_used_directly_as_bearer(client, make_client, google_token):
    raw = google_token(email="direct@gmail.com")
    other = make_client()
    res = other.get("/api/auth/me", headers={"Authorization": f"Bearer {raw}"})
    assert res.status_code == 200, res.text
    assert res.json()["user"]["provider"] == "firebase"
    assert res.json()["user"]["role"] == "user"


def test_firebase_login_bad_token(client, google_token):
    res = client.post("/api/auth/firebase-login", json={"idToken": google_token(aud="wrong-project")})
    assert res.status_code == 401
    assert res.json()["message"] == "Invalid token"


def test_forwarded_for_is_ignored_from_untrusted_peer(client):
    register(client, email="first@example.com")
    register(client, email="second@example.com")
    for i in range(5):
        client.post(
            "/api/auth/login",
            json={"email": "first@example.com", "password": "Wrong1234"},
            headers={"X-Forwarded-For": f"203.0.113.{i}"},
        )
    # all five failures count against the real peer
    assert login(client, "second@example.com", PASSWORD).status_code == 429


def test_health(client):
    res = client.get("/api/health")
    assert res.status_code == 200
    assert res.json()["status"] == "ok"
    assert res.headers["X-Content-Type-Options"] == "nosniff"


def test_lockout_scenario_end_to_end(client, db, frozen_clock):
    from Auth import users

    res = client.post("/api/auth/register", json={"email": "a@example.com", "password": "Passw0rd!"})
    assert res.status_code == 201
    for _ in range(5):
        login(client, "a@example.com", "wrong-password")

    sixth = login(client, "a@example.com", "wrong-password")
    assert sixth.status_code == 423
    assert sixth.json()["unlockAt"] == (frozen_clock.now + timedelta(minutes=15)).isoformat() + "Z"
    assert login(client, "a@example.com", "Passw0rd!").status_code == 423

    frozen_clock.advance(minutes=15)
    assert login(client, "a@example.com", "Passw0rd!").status_code == 200
    user = users.find_active_by_email(db, "a@example.com")
    assert user.failed_login_count == 0
    assert user.locked_until is None


# ─── roles follow the account, not the token ──────────────────────────────
def _app(settings, engine, federated, **overrides):
    from main import create_app

    limiter.reset()
    return create_app(settings=replace(settings, **overrides), engine=engine, federated=federated)


def test_registering_allow_listed_email_does_not_grant_admin(settings, engine, federated):
    with TestClient(_app(settings, engine, federated, admin_password=None)) as c:
        res = c.post("/api/auth/register", json={"email": ADMIN_EMAIL, "password": "Attack3r99"})
        assert res.status_code == 201, res.text
        assert res.json()["user"]["role"] == "user"
        assert c.get("/api/admin/dashboard").status_code == 403

        res = login(c, ADMIN_EMAIL, "Attack3r99")
        assert res.json()["user"]["role"] == "user"


def test_password_session_ignores_allow_list_after_google_link(settings, engine, federated, google_token):
    boss = "boss@gmail.com"
    with TestClient(_app(settings, engine, federated, admin_emails=frozenset({boss}), admin_password=None)) as c:
        register(c, email=boss)
        res = c.post("/api/auth/firebase-login", json={"idToken": google_token(email=boss, sub="g-boss")})
        assert res.json()["user"]["role"] == "admin"

        # same account, signed in with the password instead of Google
        res = login(c, boss, PASSWORD)
        assert res.json()["user"]["role"] == "user"
        assert c.get("/api/admin/dashboard").status_code == 403


def test_revoked_allow_list_downgrades_issued_session(settings, engine, federated, google_token):
    boss = "boss@gmail.com"
    with TestClient(_app(settings, engine, federated, admin_emails=frozenset({boss}), admin_password=None)) as c:
        res = c.post("/api/auth/firebase-login", json={"idToken": google_token(email=boss, sub="g-boss")})
        assert res.json()["user"]["role"] == "admin"
        session_token = res.json()["token"]
        assert c.get("/api/admin/dashboard").status_code == 200

    with TestClient(_app(settings, engine, federated, admin_emails=frozenset(), admin_password=None)) as c:
        bearer = {"Authorization": f"Bearer {session_token}"}
        assert c.get("/api/admin/dashboard", headers=bearer).status_code == 403
        assert c.get("/api/auth/me", headers=bearer).json()["user"]["role"] == "user"


def test_demoted_admin_loses_access_immediately(admin_client, db):
    from Auth import users

    assert admin_client.get("/api/admin/dashboard").status_code == 200
    admin = users.find_active_by_email(db, ADMIN_EMAIL)
    admin.role = "user"
    db.add(admin)
    db.commit()
    assert admin_client.get("/api/admin/dashboard").status_code == 403


def test_record_attempt_failure_does_not_block_login(client, monkeypatch):
    register(client)

    def broken_session(*args, **kwargs):
        raise OperationalError("INSERT INTO login_attempts", {}, Exception("database is locked"))

    monkeypatch.setattr(bruteforce, "Session", broken_session)
    assert login(client, "member@example.com", PASSWORD).status_code == 200
    assert login(client, "member@example.com", "Wrong1234").status_code == 401
