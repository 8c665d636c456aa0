# Auth/routes.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response, status
from pydantic import BaseModel, EmailStr, Field

from Auth import audit, bruteforce, users
from Auth.auth import COOKIE_NAME, CurrentIdentity, DbSession, get_token_service
from Auth.models import User
from Auth.tokens import Identity, TokenService
from Core.clock import to_timestamp
from Core.errors import AccountLocked, AuthenticationExpired, AuthenticationInvalid, RateLimited
from Core.limiter import AUTH_LIMIT, client_ip, limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])

INVALID_CREDENTIALS = "Invalid email or password"


class Credentials(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=256)


class RegisterIn(BaseModel):
    email: EmailStr
    password: str = Field(max_length=256)
    name: Optional[str] = Field(default=None, max_length=100)


class FirebaseLoginIn(BaseModel):
    idToken: str = Field(min_length=1)


def public_user(user: User, role: Optional[str] = None) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "role": role or user.role,
        "createdAt": user.created_at.isoformat() if user.created_at else None,
    }


def set_session_cookie(request: Request, response: Response, token: str) -> None:
    settings = request.app.state.settings
    response.set_cookie(
        key=COOKIE_NAME,
        value=token,
        max_age=int(settings.token_lifetime.total_seconds()),
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )


def clear_session_cookie(request: Request, response: Response) -> None:
    response.delete_cookie(
        COOKIE_NAME,
        httponly=True,
        secure=request.app.state.settings.is_production,
        samesite="lax",
    )


def _locked(user: User) -> AccountLocked:
    return AccountLocked(unlockAt=user.locked_until.isoformat() + "Z")


def _ensure_ip_not_throttled(request: Request, db, ip: str) -> None:
    if bruteforce.count_recent_failures(db, ip) >= bruteforce.MAX_FAILED_ATTEMPTS:
        audit.rate_limit_hit(ip, request.url.path)
        raise RateLimited(
            "Too many failed login attempts. Please try again in 15 minutes.",
            retryAfter=bruteforce.ATTEMPT_WINDOW_MINUTES,
        )


@router.post("/login", summary="Email/password login")
@limiter.limit(AUTH_LIMIT)
def login(
    request: Request,
    response: Response,
    creds: Credentials,
    db: DbSession,
    tokens: TokenService = Depends(get_token_service),
):
    """Validate credentials and issue a signed session token with a role claim."""
    engine = request.app.state.engine
    ip = client_ip(request)
    email = str(creds.email).lower()

    user = users.find_active_by_email(db, email)
    if user:
        bruteforce.clear_expired_lock(db, user)
        if bruteforce.is_locked(user):
            bruteforce.record_attempt(engine, ip, email, False)
            audit.login_attempt(ip, email, False)
            raise _locked(user)

    _ensure_ip_not_throttled(request, db, ip)

    if not user or not users.password_matches(user, creds.password):
        bruteforce.record_attempt(engine, ip, email, False)
        audit.login_attempt(ip, email, False)
        if user and bruteforce.register_failure(db, user):
            raise _locked(user)
        raise AuthenticationInvalid(INVALID_CREDENTIALS)

    bruteforce.reset_failures(db, user)
    bruteforce.record_attempt(engine, ip, email, True)
    audit.login_attempt(ip, email, True)

    role = users.role_of(user, tokens.admin_policy)
    token = tokens.issue(user.id, user.email, role, user.name)
    set_session_cookie(request, response, token)
    return {"message": "Login successful", "user": public_user(user, role), "token": token}


@router.post("/firebase-login", summary="Google sign-in via Firebase ID token")
@limiter.limit(AUTH_LIMIT)
def firebase_login(
    request: Request,
    response: Response,
    body: FirebaseLoginIn,
    db: DbSession,
    tokens: TokenService = Depends(get_token_service),
):
    """
    Any verified Google account may sign in. A local account is created or
    linked on first sign-in; the role comes from the admin allow-list.
    """
    engine = request.app.state.engine
    ip = client_ip(request)
    _ensure_ip_not_throttled(request, db, ip)

    try:
        identity: Identity = tokens.verify(body.idToken, is_local_admin=lambda e: users.is_local_admin(db, e))
        if identity.provider != "firebase":
            raise AuthenticationInvalid()
    except (AuthenticationInvalid, AuthenticationExpired):
        bruteforce.record_attempt(engine, ip, "unknown", False)
        audit.login_attempt(ip, "unknown", False, provider="firebase")
        raise AuthenticationInvalid("Invalid token")

    user = users.get_or_create_federated(db, identity.subject, identity.email, identity.display_name)
    if user.deleted_at is not None:
        bruteforce.record_attempt(engine, ip, identity.email, False)
        audit.login_attempt(ip, identity.email, False, provider="firebase")
        raise AuthenticationInvalid("Invalid token")

    bruteforce.record_attempt(engine, ip, identity.email, True)
    audit.login_attempt(ip, identity.email, True, provider="firebase")

    role = users.role_of(user, tokens.admin_policy, email_verified=True)
    token = tokens.issue(user.id, user.email, role, user.name, email_verified=True)
    set_session_cookie(request, response, token)
    return {"message": "Login successful", "user": public_user(user, role), "token": token}


@router.post("/register", status_code=status.HTTP_201_CREATED, summary="Create a member account")
@limiter.limit(AUTH_LIMIT)
def register(
    request: Request,
    response: Response,
    body: RegisterIn,
    db: DbSession,
    tokens: TokenService = Depends(get_token_service),
):
    name = body.name.strip() if body.name else None
    user = users.create_user(db, str(body.email), body.password, name=name or None)
    logger.info("Registered user %s", user.id)

    role = users.role_of(user, tokens.admin_policy)
    token = tokens.issue(user.id, user.email, role, user.name)
    set_session_cookie(request, response, token)
    return {"message": "Registration successful", "user": public_user(user, role), "token": token}


@router.get("/me")
def me(identity: CurrentIdentity):
    return {"user": identity.public()}


@router.post("/refresh")
def refresh(
    request: Request,
    response: Response,
    identity: CurrentIdentity,
    tokens: TokenService = Depends(get_token_service),
):
    token = tokens.issue_for(identity)
    set_session_cookie(request, response, token)
    expires = tokens.now() + tokens.lifetime
    return {"message": "Token refreshed", "token": token, "expiresAt": to_timestamp(expires)}


@router.post("/logout")
def logout(request: Request, response: Response):
    clear_session_cookie(request, response)
    return {"message": "Logged out successfully"}
