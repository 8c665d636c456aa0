# Auth/models.py
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from Core.clock import utc_column, utcnow


class Role(str, Enum):
    user = "user"
    admin = "admin"


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: int | None = Field(default=None, primary_key=True)
    email: str = Field(index=True, unique=True, nullable=False)   # altijd lower-case
    hashed_password: Optional[str] = None                         # None = alleen Google-login
    name: Optional[str] = None
    role: str = Field(default=Role.user.value, index=True)
    firebase_uid: Optional[str] = Field(default=None, index=True, unique=True)
    failed_login_count: int = Field(default=0, nullable=False)
    locked_until: Optional[datetime] = Field(default=None, sa_column=utc_column(nullable=True))
    deleted_at: Optional[datetime] = Field(default=None, sa_column=utc_column(nullable=True, index=True))
    created_at: datetime = Field(default_factory=utcnow, sa_column=utc_column())
    updated_at: datetime = Field(default_factory=utcnow, sa_column=utc_column())


class LoginAttempt(SQLModel, table=True):
    __tablename__ = "login_attempts"

    id: int | None = Field(default=None, primary_key=True)
    ip_address: str = Field(index=True)
    email: str
    success: bool = False
    attempted_at: datetime = Field(default_factory=utcnow, sa_column=utc_column(index=True))


class AuditLog(SQLModel, table=True):
    __tablename__ = "audit_logs"

    id: int | None = Field(default=None, primary_key=True)
    actor_id: str
    actor_email: str
    action: str = Field(index=True)
    details: dict = Field(default_factory=dict, sa_column=Column(JSON))
    created_at: datetime = Field(default_factory=utcnow, sa_column=utc_column())
