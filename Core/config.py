# Core/config.py
import os
import re
from dataclasses import dataclass, field
from datetime import timedelta

from dotenv import load_dotenv

from Core.errors import ConfigError

load_dotenv()

_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhd]?)\s*$")
_UNITS = {"s": "seconds", "m": "minutes", "h": "hours", "d": "days", "": "seconds"}


def parse_duration(value: str) -> timedelta:
    """'7d', '12h', '30m', '45s' or a bare number of seconds."""
    match = _DURATION_RE.match(value or "")
    if not match:
        raise ConfigError(f"Invalid duration: {value!r}")
    amount, unit = match.groups()
    return timedelta(**{_UNITS[unit]: int(amount)})


def _csv(value: str | None) -> tuple[str, ...]:
    return tuple(item.strip() for item in (value or "").split(",") if item.strip())


def _flag(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    jwt_secret: str
    token_lifetime: timedelta = timedelta(days=7)
    admin_emails: frozenset[str] = frozenset()
    admin_password: str | None = None
    firebase_project_id: str | None = None
    database_url: str = "sqlite:///./app.db"
    environment: str = "development"
    allowed_origins: tuple[str, ...] = ("http://localhost:5173",)
    trusted_proxies: tuple[str, ...] = field(default_factory=tuple)
    log_level: str = "INFO"
    log_dir: str | None = None
    sweep_interval_minutes: int = 60
    ratelimit_enabled: bool = True

    def __post_init__(self):
        if not self.jwt_secret:
            raise ConfigError("JWT_SECRET environment variable is required")

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


def load_settings() -> Settings:
    """Build Settings from the process environment (and .env)."""
    secret = os.getenv("JWT_SECRET")
    if not secret:
        raise ConfigError("JWT_SECRET environment variable is required")

    admins = _csv(os.getenv("ADMIN_EMAILS")) + _csv(os.getenv("ADMIN_EMAIL"))

    return Settings(
        jwt_secret=secret,
        token_lifetime=parse_duration(os.getenv("JWT_EXPIRES_IN", "7d")),
        admin_emails=frozenset(email.lower() for email in admins),
        admin_password=os.getenv("ADMIN_PASSWORD") or None,
        firebase_project_id=os.getenv("FIREBASE_PROJECT_ID") or None,
        database_url=os.getenv("DATABASE_URL", "sqlite:///./app.db"),
        environment=os.getenv("ENVIRONMENT", "development"),
        allowed_origins=_csv(os.getenv("ALLOWED_ORIGINS", "http://localhost:5173")),
        trusted_proxies=_csv(os.getenv("TRUSTED_PROXIES")),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_dir=os.getenv("LOG_DIR") or None,
        sweep_interval_minutes=int(os.getenv("SWEEP_INTERVAL_MINUTES", "60")),
        ratelimit_enabled=_flag(os.getenv("RATELIMIT_ENABLED"), True),
    )
