# Auth/tokens.py
"""
Session tokens.

Two kinds of bearer credential reach the API:

* LocalToken      - HS256 JWT minted by this service after any successful login.
* FederatedToken  - Firebase (Google sign-in) ID token, RS256 signed by Google.

``TokenService.verify`` classifies the credential by its (unverified) JOSE
header and dispatches to the matching verifier. For federated tokens the role
is recomputed from the admin allow-list on every call; claims from the
provider never grant privileges.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Iterable, Optional, Union

from jose import JWTError, jwt

from Auth.federated import FederatedVerifier
from Auth.models import Role
from Core import clock
from Core.errors import AuthenticationExpired, AuthenticationInvalid

ALGORITHM = "HS256"
DEFAULT_LIFETIME = timedelta(days=7)


@dataclass(frozen=True)
class Identity:
    subject: str
    email: str
    role: str
    display_name: Optional[str] = None
    provider: str = "local"            # 'local' | 'firebase'
    email_verified: bool = False       # proven by the identity provider
    expires_at: Optional[datetime] = None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.admin.value

    def public(self) -> dict:
        return {
            "id": self.subject,
            "email": self.email,
            "role": self.role,
            "displayName": self.display_name,
            "provider": self.provider,
        }


@dataclass(frozen=True)
class AdminPolicy:
    """The administrator allow-list, consulted at verification time."""

    emails: frozenset[str] = frozenset()

    @classmethod
    def of(cls, emails: Iterable[str]) -> "AdminPolicy":
        return cls(frozenset(e.strip().lower() for e in emails if e and e.strip()))

    def allows(self, email: str | None) -> bool:
        return bool(email) and email.strip().lower() in self.emails

    def role_for(self, email: str | None, stored_role: str | None = None, email_verified: bool = False) -> str:
        """The allow-list only vouches for an email the identity provider has verified."""
        if stored_role == Role.admin.value:
            return Role.admin.value
        if email_verified and self.allows(email):
            return Role.admin.value
        return Role.user.value


@dataclass(frozen=True)
class LocalToken:
    raw: str


@dataclass(frozen=True)
class FederatedToken:
    raw: str
    kid: str


Credential = Union[LocalToken, FederatedToken]


def classify(raw: str) -> Credential:
    """Tell the two credential kinds apart without verifying anything."""
    try:
        header = jwt.get_unverified_header(raw)
    except JWTError:
        raise AuthenticationInvalid()
    if header.get("alg") == "RS256" and header.get("kid"):
        return FederatedToken(raw=raw, kid=header["kid"])
    return LocalToken(raw=raw)


class TokenService:
    def __init__(
        self,
        secret: str,
        lifetime: timedelta = DEFAULT_LIFETIME,
        admin_policy: AdminPolicy | None = None,
        federated: FederatedVerifier | None = None,
        now: Callable[[], datetime] | None = None,
    ):
        if not secret:
            raise ValueError("a signing secret is required")
        self._secret = secret
        self.lifetime = lifetime
        self.admin_policy = admin_policy or AdminPolicy()
        self.federated = federated
        self._now = now

    def now(self) -> datetime:
        return self._now() if self._now else clock.utcnow()

    # --- issue -----------------------------------------------------------
    def issue(
        self,
        subject,
        email: str,
        role: str,
        name: str | None = None,
        email_verified: bool = False,
    ) -> str:
        issued = self.now()
        claims = {
            "sub": str(subject),
            "email": email,
            "role": role,
            "iat": clock.to_timestamp(issued),
            "exp": clock.to_timestamp(issued + self.lifetime),
        }
        if name:
            claims["name"] = name
        if email_verified:
            claims["email_verified"] = True
        return jwt.encode(claims, self._secret, algorithm=ALGORITHM)

    def issue_for(self, identity: Identity) -> str:
        return self.issue(
            identity.subject,
            identity.email,
            identity.role,
            identity.display_name,
            email_verified=identity.email_verified,
        )

    # --- verify ----------------------------------------------------------
    def verify(
        self,
        raw: str,
        is_local_admin: Callable[[str], bool] | None = None,
    ) -> Identity:
        if not raw:
            raise AuthenticationInvalid()
        credential = classify(raw)
        if isinstance(credential, FederatedToken):
            return self._verify_federated(credential, is_local_admin)
        return self._verify_local(credential)

    def _verify_local(self, credential: LocalToken) -> Identity:
        try:
            claims = jwt.decode(
                credential.raw,
                self._secret,
                algorithms=[ALGORITHM],
                options={"verify_exp": False},   # expiry is checked below, against our clock
            )
        except JWTError:
            raise AuthenticationInvalid()

        exp = claims.get("exp")
        if not isinstance(exp, (int, float)) or not claims.get("sub") or not claims.get("email"):
            raise AuthenticationInvalid()
        if clock.to_timestamp(self.now()) >= exp:
            raise AuthenticationExpired()

        role = claims.get("role")
        if role not in (Role.user.value, Role.admin.value):
            raise AuthenticationInvalid()
        return Identity(
            subject=str(claims["sub"]),
            email=claims["email"],
            role=role,
            display_name=claims.get("name"),
            provider="local",
            email_verified=claims.get("email_verified") is True,
            expires_at=clock.from_timestamp(exp),
        )

    def _verify_federated(
        self,
        credential: FederatedToken,
        is_local_admin: Callable[[str], bool] | None,
    ) -> Identity:
        if self.federated is None:
            raise AuthenticationInvalid()
        claims = self.federated.verify(credential.raw, credential.kid)

        email = (claims.get("email") or "").strip().lower()
        if not email:
            raise AuthenticationInvalid()
        local_admin = bool(is_local_admin and is_local_admin(email))
        role = self.admin_policy.role_for(email, Role.admin.value if local_admin else None, email_verified=True)
        return Identity(
            subject=str(claims["sub"]),
            email=email,
            role=role,
            display_name=claims.get("name"),
            provider="firebase",
            email_verified=True,
            expires_at=clock.from_timestamp(claims["exp"]) if claims.get("exp") else None,
        )
