# Auth/audit.py
from typing import Any

from sqlmodel import Session

from Auth.models import AuditLog
from Auth.tokens import Identity
from Core.logging_config import security_logger


def _fmt(fields: dict) -> str:
    return " ".join(f"{k}={v}" for k, v in fields.items() if v is not None)


def login_attempt(ip: str, email: str, success: bool, provider: str = "local") -> None:
    security_logger.info("Login attempt %s", _fmt({"ip": ip, "email": email, "success": success, "provider": provider}))


def auth_failure(kind: str, ip: str | None = None, path: str | None = None, **extra: Any) -> None:
    security_logger.warning("Auth failure %s", _fmt({"kind": kind, "ip": ip, "path": path, **extra}))


def rate_limit_hit(ip: str, endpoint: str) -> None:
    security_logger.warning("Rate limit exceeded %s", _fmt({"ip": ip, "endpoint": endpoint}))


def admin_action(db: Session, actor: Identity, action: str, **details: Any) -> AuditLog:
    """Log an admin mutation and keep a row of it in audit_logs."""
    security_logger.info("Admin action %s", _fmt({"user": actor.subject, "action": action, **details}))
    entry = AuditLog(
        actor_id=actor.subject,
        actor_email=actor.email,
        action=action,
        details={k: v for k, v in details.items() if v is not None},
    )
    db.add(entry)
    db.commit()
    return entry
