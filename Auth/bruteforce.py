# Auth/bruteforce.py
"""
Brute-force protection.

Two independent mechanisms:
- per-IP throttling over the login_attempts log (many accounts, one origin)
- per-account lockout on the users row (one account, many origins)
"""
import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import delete, func, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from Auth.models import LoginAttempt, User
from Core import clock

logger = logging.getLogger(__name__)

MAX_FAILED_ATTEMPTS = 5
ATTEMPT_WINDOW_MINUTES = 15
LOCKOUT_MINUTES = 15
RETENTION_HOURS = 24


def record_attempt(engine: Engine, ip: str, email: str, success: bool) -> None:
    """Best effort: a failing insert is logged, never raised."""
    try:
        with Session(engine) as db:
            db.add(LoginAttempt(
                ip_address=ip,
                email=email or "unknown",
                success=success,
                attempted_at=clock.utcnow(),
            ))
            db.commit()
    except SQLAlchemyError:
        logger.exception("Failed to record login attempt for %s", ip)


def count_recent_failures(db: Session, ip: str, window_minutes: int = ATTEMPT_WINDOW_MINUTES) -> int:
    cutoff = clock.utcnow() - timedelta(minutes=window_minutes)
    return db.exec(
        select(func.count())
        .select_from(LoginAttempt)
        .where(
            LoginAttempt.ip_address == ip,
            LoginAttempt.success == False,  # noqa: E712
            LoginAttempt.attempted_at > cutoff,
        )
    ).one()


def sweep(engine: Engine, retention_hours: int = RETENTION_HOURS) -> int:
    cutoff = clock.utcnow() - timedelta(hours=retention_hours)
    with Session(engine) as db:
        result = db.exec(delete(LoginAttempt).where(LoginAttempt.attempted_at < cutoff))
        db.commit()
    deleted = result.rowcount or 0
    if deleted:
        logger.info("Swept %d login attempts older than %dh", deleted, retention_hours)
    return deleted


# ─── per-account lockout ────────────────────────────────────────────────────
def is_locked(user: User, now: Optional[datetime] = None) -> bool:
    now = now or clock.utcnow()
    return user.locked_until is not None and user.locked_until > now


def clear_expired_lock(db: Session, user: User) -> None:
    """An elapsed lock starts the account on a fresh counter."""
    if user.locked_until is not None and not is_locked(user):
        reset_failures(db, user)


def register_failure(db: Session, user: User) -> Optional[datetime]:
    """Bump the failure counter; returns the unlock time when this failure locks the account."""
    db.exec(
        update(User)
        .where(User.id == user.id)
        .values(failed_login_count=User.failed_login_count + 1)
    )
    db.commit()
    db.refresh(user)
    if user.failed_login_count < MAX_FAILED_ATTEMPTS:
        return None

    user.locked_until = clock.utcnow() + timedelta(minutes=LOCKOUT_MINUTES)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user.locked_until


def reset_failures(db: Session, user: User) -> None:
    if user.failed_login_count == 0 and user.locked_until is None:
        return
    user.failed_login_count = 0
    user.locked_until = None
    db.add(user)
    db.commit()
    db.refresh(user)
