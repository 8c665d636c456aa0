# Content/blog.py
import re
import time
from typing import Optional

from fastapi import APIRouter, Path, Query, Request
from sqlalchemy import update
from sqlmodel import select

from Auth.auth import DbSession
from Content.common import PublicPage, iso, record_visit
from Content.models import BlogPost
from Core.errors import NotFound

router = APIRouter(prefix="/api/blog", tags=["Blog"])

SLUG_PATTERN = r"^[a-z0-9-]+$"


def make_slug(title: str, now_ms: Optional[int] = None) -> str:
    """'Hello, World!' -> 'hello-world-1718000000000'"""
    base = re.sub(r"[^a-z0-9\s-]", "", title.lower())
    base = re.sub(r"\s+", "-", base)[:100]
    return f"{base}-{now_ms if now_ms is not None else int(time.time() * 1000)}"


EXCERPT_LENGTH = 200


def default_excerpt(content: str) -> str:
    if len(content) <= EXCERPT_LENGTH:
        return content
    return content[:EXCERPT_LENGTH] + "..."


def post_summary(p: BlogPost) -> dict:
    return {
        "id": p.id,
        "title": p.title,
        "slug": p.slug,
        "excerpt": p.excerpt,
        "category": p.category,
        "status": p.status,
        "views": p.views,
        "createdAt": iso(p.created_at),
    }


def post_detail(p: BlogPost) -> dict:
    return {
        **post_summary(p),
        "content": p.content,
        "authorId": p.author_id,
        "updatedAt": iso(p.updated_at),
    }


@router.get("")
def list_posts(db: DbSession, page: PublicPage, category: Optional[str] = Query(default=None, max_length=50)):
    query = select(BlogPost).where(BlogPost.status == "published")
    if category:
        query = query.where(BlogPost.category == category)
    rows = db.exec(
        query.order_by(BlogPost.created_at.desc(), BlogPost.id.desc()).offset(page.offset).limit(page.limit)
    ).all()
    return page.envelope("posts", [post_summary(p) for p in rows])


@router.get("/categories")
def list_categories(db: DbSession):
    rows = db.exec(
        select(BlogPost.category)
        .where(BlogPost.status == "published", BlogPost.category.is_not(None), BlogPost.category != "")
        .distinct()
        .order_by(BlogPost.category)
    ).all()
    return {"categories": list(rows)}


@router.get("/{slug}")
def get_post(request: Request, db: DbSession, slug: str = Path(max_length=200, pattern=SLUG_PATTERN)):
    post = db.exec(select(BlogPost).where(BlogPost.slug == slug)).first()
    if not post or post.status != "published":
        raise NotFound("Post not found")

    db.exec(update(BlogPost).where(BlogPost.id == post.id).values(views=BlogPost.views + 1))
    db.commit()
    db.refresh(post)
    record_visit(db, request, f"/blog/{slug}")
    return {"post": post_detail(post)}
