# Content/reviews.py
from typing import Optional

from fastapi import APIRouter, Path, Request, status
from sqlalchemy import case, func
from sqlmodel import Session, select

from Auth.auth import DbSession, OptionalIdentity
from Auth.tokens import Identity
from Content.common import PublicPage, iso, record_visit
from Content.models import Review
from Content.schemas import ReviewIn
from Core.errors import NotFound
from Core.limiter import REVIEW_LIMIT, client_ip, limiter

router = APIRouter(prefix="/api/reviews", tags=["Reviews"])


def public_review(r: Review) -> dict:
    return {
        "id": r.id,
        "authorName": r.author_name,
        "rating": r.rating,
        "content": r.content,
        "createdAt": iso(r.created_at),
    }


def review_stats(db: Session) -> dict:
    total, pending, approved, avg_rating = db.exec(
        select(
            func.count(Review.id),
            func.sum(case((Review.status == "pending", 1), else_=0)),
            func.sum(case((Review.status == "approved", 1), else_=0)),
            func.avg(case((Review.status == "approved", Review.rating), else_=None)),
        )
    ).one()
    return {
        "total": total or 0,
        "pending": pending or 0,
        "approved": approved or 0,
        "averageRating": round(float(avg_rating), 1) if avg_rating is not None else 0,
    }


def user_id_of(identity: Optional[Identity]) -> Optional[int]:
    """Local user id behind an identity, when there is one."""
    if identity is None:
        return None
    try:
        return int(identity.subject)
    except ValueError:
        return None


@router.get("")
def list_reviews(db: DbSession, page: PublicPage):
    rows = db.exec(
        select(Review)
        .where(Review.status == "approved")
        .order_by(Review.created_at.desc(), Review.id.desc())
        .offset(page.offset)
        .limit(page.limit)
    ).all()
    return page.envelope("reviews", [public_review(r) for r in rows])


@router.get("/stats")
def get_stats(db: DbSession):
    stats = review_stats(db)
    return {"total": stats["total"], "approved": stats["approved"], "averageRating": stats["averageRating"]}


@router.get("/{review_id}")
def get_review(db: DbSession, review_id: int = Path(ge=1)):
    review = db.get(Review, review_id)
    # only approved reviews are public
    if not review or review.status != "approved":
        raise NotFound("Review not found")
    return {"review": public_review(review)}


@router.post("", status_code=status.HTTP_201_CREATED)
@limiter.limit(REVIEW_LIMIT)
def submit_review(request: Request, body: ReviewIn, db: DbSession, identity: OptionalIdentity):
    review = Review(
        user_id=user_id_of(identity),
        author_name=body.authorName,
        email=str(body.email).lower() if body.email else (identity.email if identity else None),
        rating=body.rating,
        content=body.content,
        ip_address=client_ip(request),
    )
    db.add(review)
    db.commit()
    db.refresh(review)
    record_visit(db, request, "/reviews")
    return {
        "message": "Review submitted successfully. It will be visible after approval.",
        "reviewId": review.id,
    }
