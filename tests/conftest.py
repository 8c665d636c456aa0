import os
from datetime import timedelta

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from fastapi.testclient import TestClient
from jose import jwk, jwt
from sqlmodel import Session

os.environ.setdefault("JWT_SECRET", "test-secret")

from Auth.database import init_db, make_engine  # noqa: E402
from Auth.federated import FederatedVerifier, ISSUER_PREFIX  # noqa: E402
from Core import clock  # noqa: E402
from Core.config import Settings  # noqa: E402
from Core.limiter import limiter  # noqa: E402

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "AdminPass1"
PROJECT_ID = "healthlife-test"
KID = "test-key-1"
PASSWORD = "Secret123"


class FrozenClock:
    def __init__(self, start):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def frozen_clock(monkeypatch):
    frozen = FrozenClock(clock.utcnow().replace(microsecond=0))
    monkeypatch.setattr(clock, "utcnow", frozen)
    return frozen


@pytest.fixture
def settings():
    return Settings(
        jwt_secret="test-secret",
        token_lifetime=timedelta(hours=1),
        admin_emails=frozenset({ADMIN_EMAIL}),
        admin_password=ADMIN_PASSWORD,
        firebase_project_id=PROJECT_ID,
        database_url="sqlite://",
        allowed_origins=("http://localhost:5173",),
        sweep_interval_minutes=0,
    )


@pytest.fixture
def engine(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'test.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    with Session(engine) as session:
        yield session


# ─── Google sign-in keys ───────────────────────────────────────────────────
@pytest.fixture(scope="session")
def rsa_keys():
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode()
    public_pem = key.public_key().public_bytes(
        serialization.Encoding.PEM,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()
    public_jwk = jwk.construct(public_pem, "RS256").to_dict()
    public_jwk["kid"] = KID
    return private_pem, {"keys": [public_jwk]}


@pytest.fixture
def federated(rsa_keys):
    _, jwks = rsa_keys
    return FederatedVerifier(PROJECT_ID, key_loader=lambda: jwks)


@pytest.fixture
def google_token(rsa_keys):
    """Factory for RS256 ID tokens shaped like Firebase's."""
    private_pem, _ = rsa_keys

    def _make(email="member@gmail.com", sub="google-uid-1", kid=KID, **overrides):
        now = clock.to_timestamp(clock.utcnow())
        claims = {
            "iss": ISSUER_PREFIX + PROJECT_ID,
            "aud": PROJECT_ID,
            "sub": sub,
            "email": email,
            "email_verified": True,
            "name": "Google Member",
            "iat": now,
            "exp": now + 3600,
        }
        claims.update(overrides)
        claims = {k: v for k, v in claims.items() if v is not None}
        return jwt.encode(claims, private_pem, algorithm="RS256", headers={"kid": kid})

    return _make


# ─── application ───────────────────────────────────────────────────────────
@pytest.fixture
def app(settings, engine, federated):
    from main import create_app

    limiter.reset()
    return create_app(settings=settings, engine=engine, federated=federated)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def make_client(app):
    """Extra clients with their own cookie jar, sharing the same app."""
    clients = []

    def _make():
        c = TestClient(app)
        clients.append(c)
        return c

    yield _make
    for c in clients:
        c.close()


def register(client, email="member@example.com", password=PASSWORD, name="Member"):
    res = client.post("/api/auth/register", json={"email": email, "password": password, "name": name})
    assert res.status_code == 201, res.text
    return res.json()


def login(client, email, password):
    return client.post("/api/auth/login", json={"email": email, "password": password})


@pytest.fixture
def admin_client(client):
    res = login(client, ADMIN_EMAIL, ADMIN_PASSWORD)
    assert res.status_code == 200, res.text
    return client
