# Content/admin.py
"""
Admin console API. Every route requires the admin role; every mutation
leaves an AuditLog row and a security-log line behind.
"""
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Path, Query, status
from sqlalchemy import case, func
from sqlmodel import Session, select

from Auth import audit
from Auth.auth import AdminIdentity, DbSession
from Auth.models import AuditLog
from Content import site_settings
from Content.announcements import announcement_out
from Content.blog import default_excerpt, make_slug, post_detail, post_summary
from Content.common import AdminPage, iso
from Content.contact import submission_out
from Content.models import (
    CONTACT_STATUSES,
    REVIEW_STATUSES,
    Announcement,
    BlogPost,
    ContactSubmission,
    PageVisit,
    Review,
)
from Content.reviews import review_stats
from Content.schemas import AnnouncementIn, BlogPostIn, SettingsIn, StatusIn
from Core import clock
from Core.errors import NotFound, ValidationFailed

router = APIRouter(prefix="/api/admin", tags=["Admin"])

VISITOR_WINDOW_DAYS = 30


def _get_or_404(db: Session, model, item_id: int, label: str):
    item = db.get(model, item_id)
    if item is None:
        raise NotFound(f"{label} not found")
    return item


def _check_status(value: str, allowed: tuple) -> str:
    if value not in allowed:
        raise ValidationFailed.for_field("status", f"status must be one of: {', '.join(allowed)}")
    return value


# ─── dashboard ──────────────────────────────────────────────────────────────
def blog_stats(db: Session) -> dict:
    total, published, views = db.exec(
        select(
            func.count(BlogPost.id),
            func.sum(case((BlogPost.status == "published", 1), else_=0)),
            func.sum(BlogPost.views),
        )
    ).one()
    return {"total": total or 0, "published": published or 0, "totalViews": views or 0}


def visitor_stats(db: Session, days: int = VISITOR_WINDOW_DAYS) -> dict:
    cutoff = clock.utcnow() - timedelta(days=days)
    total = db.exec(
        select(func.count()).select_from(PageVisit).where(PageVisit.visited_at > cutoff)
    ).one()
    unique = db.exec(
        select(func.count(func.distinct(PageVisit.ip_address))).where(PageVisit.visited_at > cutoff)
    ).one()
    top = db.exec(
        select(PageVisit.page, func.count().label("visits"))
        .where(PageVisit.visited_at > cutoff)
        .group_by(PageVisit.page)
        .order_by(func.count().desc(), PageVisit.page)
        .limit(5)
    ).all()
    return {
        "total": total,
        "unique": unique,
        "topPages": [{"page": page, "visits": visits} for page, visits in top],
    }


@router.get("/dashboard")
def dashboard(db: DbSession, admin: AdminIdentity):
    unread = db.exec(
        select(func.count()).select_from(ContactSubmission).where(ContactSubmission.status == "unread")
    ).one()
    return {
        "reviews": review_stats(db),
        "blog": blog_stats(db),
        "visitors": visitor_stats(db),
        "contacts": {"unread": unread},
    }


# ─── reviews ────────────────────────────────────────────────────────────────
def admin_review(r: Review) -> dict:
    return {
        "id": r.id,
        "userId": r.user_id,
        "authorName": r.author_name,
        "email": r.email,
        "rating": r.rating,
        "content": r.content,
        "status": r.status,
        "ipAddress": r.ip_address,
        "createdAt": iso(r.created_at),
        "updatedAt": iso(r.updated_at),
    }


@router.get("/reviews")
def list_reviews(db: DbSession, admin: AdminIdentity, page: AdminPage, status: Optional[str] = Query(default=None)):
    query = select(Review)
    if status:
        query = query.where(Review.status == _check_status(status, REVIEW_STATUSES))
    rows = db.exec(
        query.order_by(Review.created_at.desc(), Review.id.desc()).offset(page.offset).limit(page.limit)
    ).all()
    return page.envelope("reviews", [admin_review(r) for r in rows])


@router.put("/reviews/{review_id}/status")
def update_review_status(body: StatusIn, db: DbSession, admin: AdminIdentity, review_id: int = Path(ge=1)):
    new_status = _check_status(body.status, REVIEW_STATUSES)
    review = _get_or_404(db, Review, review_id, "Review")
    review.status = new_status
    review.updated_at = clock.utcnow()
    db.add(review)
    db.commit()
    audit.admin_action(db, admin, "UPDATE_REVIEW_STATUS", reviewId=review_id, status=new_status)
    return {"message": f"Review status updated to {new_status}"}


@router.delete("/reviews/{review_id}")
def delete_review(db: DbSession, admin: AdminIdentity, review_id: int = Path(ge=1)):
    review = _get_or_404(db, Review, review_id, "Review")
    db.delete(review)
    db.commit()
    audit.admin_action(db, admin, "DELETE_REVIEW", reviewId=review_id)
    return {"message": "Review deleted successfully"}


# ─── blog ───────────────────────────────────────────────────────────────────
@router.get("/blog")
def list_posts(db: DbSession, admin: AdminIdentity, page: AdminPage):
    rows = db.exec(
        select(BlogPost).order_by(BlogPost.created_at.desc(), BlogPost.id.desc()).offset(page.offset).limit(page.limit)
    ).all()
    return page.envelope("posts", [post_summary(p) for p in rows])


@router.get("/blog/{post_id}")
def get_post(db: DbSession, admin: AdminIdentity, post_id: int = Path(ge=1)):
    return {"post": post_detail(_get_or_404(db, BlogPost, post_id, "Post"))}


@router.post("/blog", status_code=status.HTTP_201_CREATED)
def create_post(body: BlogPostIn, db: DbSession, admin: AdminIdentity):
    post = BlogPost(
        title=body.title,
        slug=make_slug(body.title),
        content=body.content,
        excerpt=body.excerpt or default_excerpt(body.content),
        category=body.category or "general",
        status=body.status or "draft",
        author_id=admin.subject,
    )
    db.add(post)
    db.commit()
    db.refresh(post)
    audit.admin_action(db, admin, "CREATE_BLOG_POST", postId=post.id, title=post.title)
    return {"message": "Blog post created successfully", "postId": post.id, "slug": post.slug}


@router.put("/blog/{post_id}")
def update_post(body: BlogPostIn, db: DbSession, admin: AdminIdentity, post_id: int = Path(ge=1)):
    post = _get_or_404(db, BlogPost, post_id, "Post")
    if body.title != post.title:
        post.slug = make_slug(body.title)
    post.title = body.title
    post.content = body.content
    post.excerpt = body.excerpt or default_excerpt(body.content)
    post.category = body.category or post.category
    post.status = body.status or post.status
    post.updated_at = clock.utcnow()
    db.add(post)
    db.commit()
    db.refresh(post)
    audit.admin_action(db, admin, "UPDATE_BLOG_POST", postId=post_id)
    return {"message": "Blog post updated successfully", "slug": post.slug}


@router.delete("/blog/{post_id}")
def delete_post(db: DbSession, admin: AdminIdentity, post_id: int = Path(ge=1)):
    post = _get_or_404(db, BlogPost, post_id, "Post")
    db.delete(post)
    db.commit()
    audit.admin_action(db, admin, "DELETE_BLOG_POST", postId=post_id)
    return {"message": "Blog post deleted successfully"}


# ─── announcements ──────────────────────────────────────────────────────────
@router.get("/announcements")
def list_announcements(db: DbSession, admin: AdminIdentity, page: AdminPage):
    rows = db.exec(
        select(Announcement)
        .order_by(Announcement.created_at.desc(), Announcement.id.desc())
        .offset(page.offset)
        .limit(page.limit)
    ).all()
    return page.envelope("announcements", [announcement_out(a, admin=True) for a in rows])


@router.post("/announcements", status_code=status.HTTP_201_CREATED)
def create_announcement(body: AnnouncementIn, db: DbSession, admin: AdminIdentity):
    item = Announcement(
        type=body.type,
        title=body.title,
        content=body.content,
        status=body.status,
        author_id=admin.subject,
    )
    db.add(item)
    db.commit()
    db.refresh(item)
    audit.admin_action(db, admin, "CREATE_ANNOUNCEMENT", announcementId=item.id, type=item.type)
    return {"message": "Announcement created successfully", "announcementId": item.id}


@router.put("/announcements/{announcement_id}")
def update_announcement(
    body: AnnouncementIn, db: DbSession, admin: AdminIdentity, announcement_id: int = Path(ge=1)
):
    item = _get_or_404(db, Announcement, announcement_id, "Announcement")
    item.type = body.type
    item.title = body.title
    item.content = body.content
    item.status = body.status
    item.updated_at = clock.utcnow()
    db.add(item)
    db.commit()
    audit.admin_action(db, admin, "UPDATE_ANNOUNCEMENT", announcementId=announcement_id)
    return {"message": "Announcement updated successfully"}


@router.delete("/announcements/{announcement_id}")
def delete_announcement(db: DbSession, admin: AdminIdentity, announcement_id: int = Path(ge=1)):
    item = _get_or_404(db, Announcement, announcement_id, "Announcement")
    db.delete(item)
    db.commit()
    audit.admin_action(db, admin, "DELETE_ANNOUNCEMENT", announcementId=announcement_id)
    return {"message": "Announcement deleted successfully"}


# ─── site settings ──────────────────────────────────────────────────────────
@router.get("/settings")
def get_settings(db: DbSession, admin: AdminIdentity):
    return {"settings": site_settings.get_all(db)}


@router.put("/settings")
def update_settings(body: SettingsIn, db: DbSession, admin: AdminIdentity):
    updated = []
    for key, value in body.settings.items():
        if key not in site_settings.EDITABLE_KEYS or not isinstance(value, str):
            continue
        site_settings.set_value(db, key, value.strip()[: site_settings.MAX_VALUE_LENGTH])
        updated.append(key)
    audit.admin_action(db, admin, "UPDATE_SETTINGS", keys=",".join(updated))
    return {"message": "Settings updated successfully", "updated": updated}


# ─── contacts ───────────────────────────────────────────────────────────────
@router.get("/contacts")
def list_contacts(db: DbSession, admin: AdminIdentity, page: AdminPage, status: Optional[str] = Query(default=None)):
    query = select(ContactSubmission)
    if status:
        query = query.where(ContactSubmission.status == _check_status(status, CONTACT_STATUSES))
    rows = db.exec(
        query.order_by(ContactSubmission.created_at.desc(), ContactSubmission.id.desc())
        .offset(page.offset)
        .limit(page.limit)
    ).all()
    return page.envelope("contacts", [submission_out(c) for c in rows])


@router.put("/contacts/{contact_id}/status")
def update_contact_status(body: StatusIn, db: DbSession, admin: AdminIdentity, contact_id: int = Path(ge=1)):
    new_status = _check_status(body.status, CONTACT_STATUSES)
    submission = _get_or_404(db, ContactSubmission, contact_id, "Contact submission")
    submission.status = new_status
    db.add(submission)
    db.commit()
    audit.admin_action(db, admin, "UPDATE_CONTACT_STATUS", contactId=contact_id, status=new_status)
    return {"message": f"Contact status updated to {new_status}"}


# ─── audit log ──────────────────────────────────────────────────────────────
@router.get("/audit")
def list_audit(db: DbSession, admin: AdminIdentity, page: AdminPage, action: Optional[str] = Query(default=None)):
    query = select(AuditLog)
    if action:
        query = query.where(AuditLog.action == action)
    rows = db.exec(
        query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).offset(page.offset).limit(page.limit)
    ).all()
    entries = [
        {
            "id": e.id,
            "actorId": e.actor_id,
            "actorEmail": e.actor_email,
            "action": e.action,
            "details": e.details,
            "createdAt": iso(e.created_at),
        }
        for e in rows
    ]
    return page.envelope("entries", entries)
