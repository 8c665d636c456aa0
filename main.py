#!/usr/bin/env python3
import asyncio
import logging
import math
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from Auth import audit, bruteforce, users
from Auth.database import init_db, make_engine
from Auth.federated import FederatedVerifier
from Auth.models import Role, User
from Auth.routes import router as auth_router
from Auth.tokens import AdminPolicy, TokenService
from Content import site_settings
from Content.account import router as account_router
from Content.admin import router as admin_router
from Content.announcements import router as announcements_router
from Content.blog import router as blog_router
from Content.contact import router as contact_router
from Content.reviews import router as reviews_router
from Core import clock
from Core.config import Settings, load_settings
from Core.errors import AppError, Conflict, RateLimited, ValidationFailed
from Core.limiter import client_ip, limiter
from Core.logging_config import configure_logging

logger = logging.getLogger(__name__)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}


# ─── STARTUP HELPERS ───────────────────────────────────────────────────────
def seed_admin(engine: Engine, settings: Settings) -> None:
    """Create the local admin from ADMIN_EMAIL/ADMIN_PASSWORD when it does not exist yet."""
    if not settings.admin_password or not settings.admin_emails:
        return
    email = sorted(settings.admin_emails)[0]
    with Session(engine) as db:
        if db.exec(select(User).where(User.email == email)).first():
            return
        try:
            users.create_user(db, email, settings.admin_password, name="Admin", role=Role.admin.value)
        except ValidationFailed as e:
            logger.error("Admin user not created: %s", e.extra.get("details"))
            return
    logger.info("Admin user created: %s", email)


def seed_settings(engine: Engine) -> None:
    with Session(engine) as db:
        site_settings.seed_defaults(db)


async def sweep_login_attempts(engine: Engine, interval_minutes: int) -> None:
    """Periodically drop login attempts older than the retention window."""
    while True:
        await asyncio.sleep(interval_minutes * 60)
        try:
            await asyncio.to_thread(bruteforce.sweep, engine)
        except Exception:
            logger.exception("Login attempt sweep failed")


def build_token_service(settings: Settings, federated: Optional[FederatedVerifier] = None) -> TokenService:
    if federated is None and settings.firebase_project_id:
        federated = FederatedVerifier(settings.firebase_project_id)
    return TokenService(
        settings.jwt_secret,
        lifetime=settings.token_lifetime,
        admin_policy=AdminPolicy.of(settings.admin_emails),
        federated=federated,
    )


# ─── EXCEPTION HANDLERS ────────────────────────────────────────────────────
def _error(exc: AppError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def app_error_handler(request: Request, exc: AppError):
    return _error(exc)


async def validation_error_handler(request: Request, exc: RequestValidationError):
    details = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        details.append({"field": ".".join(loc) or "body", "message": err.get("msg", "Invalid value")})
    return _error(ValidationFailed(details=details))


async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    audit.rate_limit_hit(client_ip(request), request.url.path)
    # retryAfter is in minutes, like the login throttle
    window_seconds = exc.limit.limit.get_expiry()
    return _error(RateLimited(retryAfter=max(1, math.ceil(window_seconds / 60))))


async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.warning("Integrity error on %s: %s", request.url.path, exc.orig)
    return _error(Conflict())


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    settings = request.app.state.settings
    message = "An unexpected error occurred" if settings.is_production else str(exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "server_error", "message": message},
    )


# ─── FASTAPI SETUP ─────────────────────────────────────────────────────────
def create_app(
    settings: Optional[Settings] = None,
    engine: Optional[Engine] = None,
    federated: Optional[FederatedVerifier] = None,
) -> FastAPI:
    settings = settings or load_settings()
    configure_logging(settings)
    engine = engine or make_engine(settings.database_url)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        init_db(engine)
        seed_admin(engine, settings)
        seed_settings(engine)
        sweeper = None
        if settings.sweep_interval_minutes > 0:
            sweeper = asyncio.create_task(sweep_login_attempts(engine, settings.sweep_interval_minutes))
        logger.info("Server started (%s)", settings.environment)
        yield
        if sweeper:
            sweeper.cancel()
            try:
                await sweeper
            except asyncio.CancelledError:
                pass

    app = FastAPI(
        title="HealthLife",
        description="HealthLife website and admin console API",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.engine = engine
    app.state.tokens = build_token_service(settings, federated)
    app.state.limiter = limiter
    limiter.enabled = settings.ratelimit_enabled

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.allowed_origins),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        started = clock.utcnow()
        response = await call_next(request)
        for header, value in SECURITY_HEADERS.items():
            response.headers.setdefault(header, value)
        if settings.is_production:
            response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
        elapsed_ms = (clock.utcnow() - started).total_seconds() * 1000
        logger.info("%s %s %s %.0fms", request.method, request.url.path, response.status_code, elapsed_ms)
        return response

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    # ─── ROOT & HEALTH ─────────────────────────────────────────────────────
    @app.get("/", include_in_schema=False)
    def root():
        return {"status": "ok"}

    @app.get("/api/health", tags=["Health"])
    def health_check():
        return {"status": "ok", "timestamp": clock.utcnow().isoformat() + "Z"}

    for router in (
        auth_router,
        reviews_router,
        blog_router,
        announcements_router,
        contact_router,
        site_settings.router,
        account_router,
        admin_router,
    ):
        app.include_router(router)

    return app


# ─── Uvicorn LAUNCH (DEV ONLY) ─────────────────────────────────────────────
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:create_app",
        factory=True,
        host="0.0.0.0",
        port=int(os.getenv("PORT", 8000)),
        reload=True,
    )
