# Content/schemas.py
"""Request bodies. Free-text fields are sanitized before the length checks run."""
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from Content.common import sanitize


class _Clean(BaseModel):
    @field_validator("*", mode="before")
    @classmethod
    def _strip(cls, value):
        if isinstance(value, str):
            return sanitize(value)
        return value


class ReviewIn(_Clean):
    authorName: str = Field(min_length=2, max_length=100)
    email: Optional[EmailStr] = None
    rating: int = Field(ge=1, le=5)
    content: str = Field(min_length=10, max_length=2000)

    @field_validator("email", mode="before")
    @classmethod
    def _blank_email(cls, value):
        return value or None


class ContactIn(_Clean):
    name: str = Field(min_length=2, max_length=100)
    email: EmailStr
    subject: Optional[str] = Field(default=None, max_length=200)
    message: str = Field(min_length=10, max_length=5000)


class BlogPostIn(BaseModel):
    title: str = Field(min_length=5, max_length=200)
    content: str = Field(min_length=50)
    excerpt: Optional[str] = Field(default=None, max_length=500)
    category: Optional[str] = Field(default=None, max_length=50)
    status: Optional[Literal["draft", "published"]] = None

    @field_validator("title", "excerpt", "category", mode="before")
    @classmethod
    def _clean(cls, value):
        return sanitize(value) if isinstance(value, str) else value

    @field_validator("content", mode="before")
    @classmethod
    def _trim(cls, value):
        return value.strip() if isinstance(value, str) else value


class AnnouncementIn(_Clean):
    type: Literal["new_app", "update", "announcement"] = "announcement"
    title: str = Field(min_length=2, max_length=200)
    content: str = Field(min_length=2, max_length=10000)
    status: Literal["draft", "published"] = "draft"


class StatusIn(BaseModel):
    status: str


class SettingsIn(BaseModel):
    settings: Dict[str, Any]


class AppsIn(BaseModel):
    releasedApps: List[str]


class ProfileIn(_Clean):
    name: Optional[str] = Field(default=None, max_length=100)


class PasswordChangeIn(BaseModel):
    currentPassword: str = Field(min_length=1)
    newPassword: str = Field(max_length=256)


class AccountDeleteIn(BaseModel):
    password: Optional[str] = None
