# Content/account.py
"""Self-service for signed-in members: profile, password, account, own reviews and inquiries."""
from typing import Optional

from fastapi import APIRouter, Path, Request, Response
from sqlalchemy import func
from sqlmodel import Session, select

from Auth import users
from Auth.auth import CurrentIdentity, DbSession
from Auth.models import User
from Auth.routes import clear_session_cookie
from Auth.tokens import Identity
from Content.common import AdminPage, iso
from Content.contact import submission_out
from Content.models import ContactSubmission, Review
from Content.schemas import AccountDeleteIn, PasswordChangeIn, ProfileIn
from Core.errors import AuthenticationInvalid, NotFound, ValidationFailed

router = APIRouter(prefix="/api/user", tags=["User"])


def _own_user(db: Session, identity: Identity) -> User:
    user = users.find_active_by_id(db, identity.subject)
    if user is None:
        raise NotFound("User not found")
    return user


def profile_out(user: User, identity: Identity) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "role": identity.role,
        "hasPassword": user.hashed_password is not None,
        "createdAt": iso(user.created_at),
        "updatedAt": iso(user.updated_at),
    }


@router.get("/profile")
def get_profile(db: DbSession, identity: CurrentIdentity):
    return {"user": profile_out(_own_user(db, identity), identity)}


@router.put("/profile")
def update_profile(body: ProfileIn, db: DbSession, identity: CurrentIdentity):
    user = users.update_profile(db, _own_user(db, identity), body.name or None)
    return {"message": "Profile updated successfully", "user": profile_out(user, identity)}


@router.put("/password")
def change_password(body: PasswordChangeIn, db: DbSession, identity: CurrentIdentity):
    user = _own_user(db, identity)
    if user.hashed_password is None:
        raise ValidationFailed.for_field("currentPassword", "This account signs in with Google and has no password")
    if not users.password_matches(user, body.currentPassword):
        raise AuthenticationInvalid("Current password is incorrect")
    users.change_password(db, user, body.newPassword)
    return {"message": "Password changed successfully"}


@router.delete("/account")
def delete_account(
    request: Request,
    response: Response,
    db: DbSession,
    identity: CurrentIdentity,
    body: Optional[AccountDeleteIn] = None,
):
    user = _own_user(db, identity)
    if user.hashed_password is not None:
        password = body.password if body else None
        if not password:
            raise ValidationFailed.for_field("password", "Password is required to delete your account")
        if not users.password_matches(user, password):
            raise AuthenticationInvalid("Password is incorrect")
    users.soft_delete(db, user)
    clear_session_cookie(request, response)
    return {"message": "Account deleted successfully"}


@router.get("/reviews")
def my_reviews(db: DbSession, identity: CurrentIdentity):
    user = _own_user(db, identity)
    rows = db.exec(
        select(Review).where(Review.user_id == user.id).order_by(Review.created_at.desc(), Review.id.desc())
    ).all()
    return {
        "reviews": [
            {
                "id": r.id,
                "authorName": r.author_name,
                "rating": r.rating,
                "content": r.content,
                "status": r.status,
                "createdAt": iso(r.created_at),
            }
            for r in rows
        ]
    }


@router.delete("/reviews/{review_id}")
def delete_my_review(db: DbSession, identity: CurrentIdentity, review_id: int = Path(ge=1)):
    user = _own_user(db, identity)
    review = db.get(Review, review_id)
    # someone else's review looks the same as a missing one
    if review is None or review.user_id != user.id:
        raise NotFound("Review not found")
    db.delete(review)
    db.commit()
    return {"message": "Review deleted successfully"}


@router.get("/inquiries")
def my_inquiries(db: DbSession, identity: CurrentIdentity, page: AdminPage):
    user = _own_user(db, identity)
    total = db.exec(
        select(func.count()).select_from(ContactSubmission).where(ContactSubmission.user_id == user.id)
    ).one()
    rows = db.exec(
        select(ContactSubmission)
        .where(ContactSubmission.user_id == user.id)
        .order_by(ContactSubmission.created_at.desc(), ContactSubmission.id.desc())
        .offset(page.offset)
        .limit(page.limit)
    ).all()
    return page.envelope("inquiries", [submission_out(c) for c in rows], total=total)
