from dataclasses import replace
from typing import Annotated, Callable, Optional

from fastapi import Depends, Request
from sqlmodel import Session, select

from Auth import audit, users
from Auth.database import get_session
from Auth.models import Role, User
from Auth.tokens import Identity, TokenService
from Core.errors import AuthenticationExpired, AuthenticationInvalid, AuthenticationMissing, AuthorizationDenied
from Core.limiter import client_ip

COOKIE_NAME = "authToken"


# ---------------------------------------------------------------------------
# 1. Token uit cookie of Authorization-header halen
# ---------------------------------------------------------------------------
def extract_token(request: Request) -> Optional[str]:
    token = request.cookies.get(COOKIE_NAME)
    if token:
        return token
    auth_header = request.headers.get("Authorization") or ""
    if auth_header.lower().startswith("bearer "):
        return auth_header[7:].strip() or None
    return None


def get_token_service(request: Request) -> TokenService:
    return request.app.state.tokens


def resolve_identity(raw: str, db: Session, tokens: TokenService) -> Identity:
    """
    Verify the credential and tie it to the live user record.
    A deleted (or vanished) user makes the credential invalid.
    """
    identity = tokens.verify(raw, is_local_admin=lambda email: users.is_local_admin(db, email))

    if identity.provider == "local":
        user = users.find_active_by_id(db, identity.subject)
        if not user or user.email != identity.email:
            raise AuthenticationInvalid()
        # the role claim may be stale; the account and allow-list decide
        role = users.role_of(user, tokens.admin_policy, email_verified=identity.email_verified)
        return replace(identity, role=role, display_name=user.name or identity.display_name)

    user = db.exec(select(User).where(User.email == identity.email)).first()
    if user is None:
        return identity
    if user.deleted_at is not None:
        raise AuthenticationInvalid()
    return replace(identity, subject=str(user.id), display_name=user.name or identity.display_name)


# ---------------------------------------------------------------------------
# 2. Huidige gebruiker bepalen
# ---------------------------------------------------------------------------
def get_current_identity(
    request: Request,
    db: Annotated[Session, Depends(get_session)],
    tokens: Annotated[TokenService, Depends(get_token_service)],
) -> Identity:
    """401 when no credential is presented, or when it is expired/invalid."""
    token = extract_token(request)
    if not token:
        audit.auth_failure(AuthenticationMissing.kind, ip=client_ip(request), path=request.url.path)
        raise AuthenticationMissing()
    try:
        return resolve_identity(token, db, tokens)
    except (AuthenticationExpired, AuthenticationInvalid) as e:
        audit.auth_failure(e.kind, ip=client_ip(request), path=request.url.path)
        raise


def get_optional_identity(
    request: Request,
    db: Annotated[Session, Depends(get_session)],
    tokens: Annotated[TokenService, Depends(get_token_service)],
) -> Optional[Identity]:
    """Like get_current_identity, but anonymous callers get None instead of an error."""
    token = extract_token(request)
    if not token:
        return None
    try:
        return resolve_identity(token, db, tokens)
    except (AuthenticationExpired, AuthenticationInvalid):
        return None


# ---------------------------------------------------------------------------
# 3. Role-based dependency-factory
# ---------------------------------------------------------------------------
def role_required(*allowed_roles: str) -> Callable:
    """
    Use as Depends(role_required("admin")).
    Returns the current Identity when its role is allowed, else 403.
    """

    def _wrapper(
        request: Request,
        identity: Annotated[Identity, Depends(get_current_identity)],
    ) -> Identity:
        if identity.role not in allowed_roles:
            audit.auth_failure(
                AuthorizationDenied.kind,
                ip=client_ip(request),
                path=request.url.path,
                user=identity.subject,
                role=identity.role,
            )
            raise AuthorizationDenied()
        return identity

    return _wrapper


require_admin = role_required(Role.admin.value)

CurrentIdentity = Annotated[Identity, Depends(get_current_identity)]
OptionalIdentity = Annotated[Optional[Identity], Depends(get_optional_identity)]
AdminIdentity = Annotated[Identity, Depends(require_admin)]
DbSession = Annotated[Session, Depends(get_session)]
