# Content/common.py
import logging
import re
from dataclasses import dataclass
from typing import Annotated, Any, Callable, Optional

from fastapi import Depends, Query, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from Content.models import PageVisit
from Core.limiter import client_ip

logger = logging.getLogger(__name__)

_ANGLE_BRACKETS = re.compile(r"[<>]")


def sanitize(value: Optional[str]) -> Optional[str]:
    """Trim and drop angle brackets from free text."""
    if value is None:
        return None
    return _ANGLE_BRACKETS.sub("", value).strip()


@dataclass(frozen=True)
class Page:
    page: int
    limit: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def envelope(self, key: str, items: list, **extra: Any) -> dict:
        return {
            key: items,
            "pagination": {"page": self.page, "limit": self.limit, "hasMore": len(items) == self.limit},
            **extra,
        }


def pagination(default_limit: int = 10) -> Callable[..., Page]:
    def _page(
        page: Annotated[int, Query(ge=1)] = 1,
        limit: Annotated[int, Query(ge=1, le=100)] = default_limit,
    ) -> Page:
        return Page(page=page, limit=limit)

    return _page


PublicPage = Annotated[Page, Depends(pagination(10))]
AdminPage = Annotated[Page, Depends(pagination(20))]


def record_visit(db: Session, request: Request, page: str) -> None:
    """Visitor statistics are nice to have; a failed insert must not fail the request."""
    try:
        db.add(PageVisit(
            page=page,
            ip_address=client_ip(request),
            user_agent=(request.headers.get("user-agent") or "")[:255] or None,
        ))
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Could not record visit to %s", page)


def iso(moment) -> Optional[str]:
    return moment.isoformat() if moment else None
