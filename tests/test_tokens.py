from datetime import timedelta

import pytest
from jose import jwt

from Auth.tokens import AdminPolicy, FederatedToken, LocalToken, TokenService, classify
from Core.errors import AuthenticationExpired, AuthenticationInvalid

from conftest import ADMIN_EMAIL, KID


@pytest.fixture
def tokens(federated, frozen_clock):
    return TokenService(
        "test-secret",
        lifetime=timedelta(hours=1),
        admin_policy=AdminPolicy.of([ADMIN_EMAIL]),
        federated=federated,
    )


def test_issue_then_verify_round_trip(tokens):
    raw = tokens.issue(42, "member@example.com", "user", "Member")
    identity = tokens.verify(raw)
    assert identity.subject == "42"
    assert identity.email == "member@example.com"
    assert identity.role == "user"
    assert identity.display_name == "Member"
    assert identity.provider == "local"
    assert not identity.is_admin


def test_expired_exactly_at_exp(tokens, frozen_clock):
    raw = tokens.issue(1, "member@example.com", "user")
    frozen_clock.advance(hours=1, seconds=-1)
    assert tokens.verify(raw).subject == "1"
    frozen_clock.advance(seconds=1)
    with pytest.raises(AuthenticationExpired):
        tokens.verify(raw)


def test_wrong_secret_is_invalid(tokens):
    other = TokenService("another-secret")
    with pytest.raises(AuthenticationInvalid):
        tokens.verify(other.issue(1, "member@example.com", "user"))


def test_unknown_role_claim_is_invalid(tokens, frozen_clock):
    raw = jwt.encode(
        {"sub": "1", "email": "member@example.com", "role": "superuser", "exp": 4102444800},
        "test-secret",
        algorithm="HS256",
    )
    with pytest.raises(AuthenticationInvalid):
        tokens.verify(raw)


@pytest.mark.parametrize("raw", ["", "not-a-jwt", "a.b.c"])
def test_garbage_is_invalid(tokens, raw):
    with pytest.raises(AuthenticationInvalid):
        tokens.verify(raw)


def test_classify_by_header(tokens, google_token):
    assert isinstance(classify(tokens.issue(1, "a@example.com", "user")), LocalToken)
    credential = classify(google_token())
    assert isinstance(credential, FederatedToken)
    assert credential.kid == KID


def test_federated_role_from_allow_list(tokens, google_token):
    member = tokens.verify(google_token(email="Member@Gmail.com"))
    assert member.provider == "firebase"
    assert member.email == "member@gmail.com"
    assert member.role == "user"

    admin = tokens.verify(google_token(email=ADMIN_EMAIL))
    assert admin.role == "admin"


def test_federated_provider_role_claims_are_ignored(tokens, google_token):
    identity = tokens.verify(google_token(role="admin", admin=True))
    assert identity.role == "user"


def test_federated_local_admin_lookup(tokens, google_token):
    identity = tokens.verify(google_token(email="staff@gmail.com"), is_local_admin=lambda e: e == "staff@gmail.com")
    assert identity.role == "admin"


def test_revoking_allow_list_downgrades_federated_token(federated, google_token, frozen_clock):
    raw = google_token(email="former@gmail.com")
    before = TokenService("test-secret", admin_policy=AdminPolicy.of(["former@gmail.com"]), federated=federated)
    after = TokenService("test-secret", admin_policy=AdminPolicy.of([]), federated=federated)
    assert before.verify(raw).role == "admin"
    assert after.verify(raw).role == "user"


def test_federated_without_verifier_is_invalid(google_token, frozen_clock):
    with pytest.raises(AuthenticationInvalid):
        TokenService("test-secret").verify(google_token())


def test_admin_policy_normalizes():
    policy = AdminPolicy.of([" Admin@Example.com ", ""])
    assert policy.allows("admin@example.com")
    assert not policy.allows(None)
    assert policy.role_for("someone@example.com", "admin") == "admin"
    assert policy.role_for("someone@example.com", "user") == "user"


def test_allow_list_needs_a_verified_email():
    policy = AdminPolicy.of([ADMIN_EMAIL])
    assert policy.role_for(ADMIN_EMAIL, "user") == "user"
    assert policy.role_for(ADMIN_EMAIL, "user", email_verified=True) == "admin"


def test_verified_flag_survives_reissue(tokens):
    raw = tokens.issue(7, "g@gmail.com", "user", email_verified=True)
    identity = tokens.verify(raw)
    assert identity.email_verified
    assert tokens.verify(tokens.issue_for(identity)).email_verified
    assert not tokens.verify(tokens.issue(7, "g@gmail.com", "user")).email_verified
