# Content/contact.py
import logging

from fastapi import APIRouter, Request, status

from Auth.auth import DbSession, OptionalIdentity
from Content import site_settings
from Content.common import iso
from Content.models import ContactSubmission
from Content.reviews import user_id_of
from Content.schemas import ContactIn
from Core.limiter import CONTACT_LIMIT, client_ip, limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/contact", tags=["Contact"])


def submission_out(c: ContactSubmission) -> dict:
    return {
        "id": c.id,
        "name": c.name,
        "email": c.email,
        "subject": c.subject,
        "message": c.message,
        "status": c.status,
        "createdAt": iso(c.created_at),
    }


@router.post("", status_code=status.HTTP_201_CREATED)
@limiter.limit(CONTACT_LIMIT)
def submit_contact(request: Request, body: ContactIn, db: DbSession, identity: OptionalIdentity):
    submission = ContactSubmission(
        user_id=user_id_of(identity),
        name=body.name,
        email=str(body.email).lower(),
        subject=body.subject or None,
        message=body.message,
        ip_address=client_ip(request),
    )
    db.add(submission)
    db.commit()
    db.refresh(submission)
    logger.info("Contact submission %s received", submission.id)
    return {
        "message": "Your message has been sent successfully. We will get back to you soon.",
        "submissionId": submission.id,
    }


@router.get("/info")
def contact_info(db: DbSession):
    settings = site_settings.get_all(db)
    return {
        "contactEmail": settings.get("contact_email") or site_settings.DEFAULT_SETTINGS["contact_email"],
        "siteName": settings.get("site_name") or site_settings.DEFAULT_SETTINGS["site_name"],
    }
