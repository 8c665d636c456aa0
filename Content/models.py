# Content/models.py
from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel

from Core.clock import utc_column, utcnow

REVIEW_STATUSES = ("pending", "approved", "rejected")
POST_STATUSES = ("draft", "published")
ANNOUNCEMENT_TYPES = ("new_app", "update", "announcement")
CONTACT_STATUSES = ("unread", "read", "replied")


class Review(SQLModel, table=True):
    __tablename__ = "reviews"

    id: int | None = Field(default=None, primary_key=True)
    user_id: Optional[int] = Field(default=None, foreign_key="users.id", index=True)
    author_name: str
    email: Optional[str] = None
    rating: int
    content: str
    status: str = Field(default="pending", index=True)
    ip_address: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow, sa_column=utc_column(index=True))
    updated_at: datetime = Field(default_factory=utcnow, sa_column=utc_column())


class BlogPost(SQLModel, table=True):
    __tablename__ = "blog_posts"

    id: int | None = Field(default=None, primary_key=True)
    title: str
    slug: str = Field(index=True, unique=True)
    content: str
    excerpt: Optional[str] = None
    category: str = Field(default="general", index=True)
    status: str = Field(default="draft", index=True)
    views: int = 0
    author_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow, sa_column=utc_column(index=True))
    updated_at: datetime = Field(default_factory=utcnow, sa_column=utc_column())


class Announcement(SQLModel, table=True):
    __tablename__ = "announcements"

    id: int | None = Field(default=None, primary_key=True)
    type: str = Field(default="announcement", index=True)
    title: str
    content: str
    status: str = Field(default="draft", index=True)
    author_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow, sa_column=utc_column(index=True))
    updated_at: datetime = Field(default_factory=utcnow, sa_column=utc_column())


class ContactSubmission(SQLModel, table=True):
    __tablename__ = "contact_submissions"

    id: int | None = Field(default=None, primary_key=True)
    user_id: Optional[int] = Field(default=None, foreign_key="users.id", index=True)
    name: str
    email: str
    subject: Optional[str] = None
    message: str
    status: str = Field(default="unread", index=True)
    ip_address: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow, sa_column=utc_column(index=True))


class SiteSetting(SQLModel, table=True):
    __tablename__ = "site_settings"

    key: str = Field(primary_key=True)
    value: str
    updated_at: datetime = Field(default_factory=utcnow, sa_column=utc_column())


class PageVisit(SQLModel, table=True):
    __tablename__ = "visitor_stats"

    id: int | None = Field(default=None, primary_key=True)
    page: str = Field(index=True)
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    visited_at: datetime = Field(default_factory=utcnow, sa_column=utc_column(index=True))
