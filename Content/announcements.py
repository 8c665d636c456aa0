# Content/announcements.py
from typing import Literal, Optional

from fastapi import APIRouter, Query
from sqlmodel import select

from Auth.auth import DbSession
from Content.common import PublicPage, iso
from Content.models import Announcement

router = APIRouter(prefix="/api/announcements", tags=["Announcements"])


def announcement_out(a: Announcement, admin: bool = False) -> dict:
    out = {
        "id": a.id,
        "type": a.type,
        "title": a.title,
        "content": a.content,
        "createdAt": iso(a.created_at),
    }
    if admin:
        out.update({"status": a.status, "authorId": a.author_id, "updatedAt": iso(a.updated_at)})
    return out


@router.get("")
def list_announcements(
    db: DbSession,
    page: PublicPage,
    type: Optional[Literal["new_app", "update", "announcement"]] = Query(default=None),
):
    query = select(Announcement).where(Announcement.status == "published")
    if type:
        query = query.where(Announcement.type == type)
    rows = db.exec(
        query.order_by(Announcement.created_at.desc(), Announcement.id.desc()).offset(page.offset).limit(page.limit)
    ).all()
    return page.envelope("announcements", [announcement_out(a) for a in rows])
