# Content/site_settings.py
from typing import Dict, List, Optional

from fastapi import APIRouter, Request
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlmodel import Session, select

from Auth import audit
from Auth.auth import AdminIdentity, DbSession
from Content.common import record_visit
from Content.models import SiteSetting
from Content.schemas import AppsIn
from Core import clock


router = APIRouter(prefix="/api/settings", tags=["Settings"])

DEFAULT_SETTINGS = {
    "site_name": "HealthLife App",
    "site_description": "The best apps for a healthy lifestyle",
    "contact_email": "contact@healthlife.app",
    "app_store_url": "https://apps.apple.com",
    "play_store_url": "https://play.google.com",
}

EDITABLE_KEYS = tuple(DEFAULT_SETTINGS)
MAX_VALUE_LENGTH = 500

APP_KEYS = (
    "wayback", "wayfit", "waymuscle", "waybrain", "wayview",
    "waysound", "waylog", "wayspot", "wayrest", "waystory",
)


# ─── store ──────────────────────────────────────────────────────────────────
def get_all(db: Session) -> Dict[str, str]:
    return {s.key: s.value for s in db.exec(select(SiteSetting)).all()}


def get_value(db: Session, key: str) -> Optional[str]:
    setting = db.get(SiteSetting, key)
    return setting.value if setting else None


def set_value(db: Session, key: str, value: str) -> None:
    """Insert-or-update keyed by the setting key."""
    now = clock.utcnow()
    dialect = db.get_bind().dialect.name
    if dialect in ("sqlite", "postgresql"):
        insert = sqlite_insert if dialect == "sqlite" else pg_insert
        stmt = insert(SiteSetting).values(key=key, value=value, updated_at=now)
        stmt = stmt.on_conflict_do_update(
            index_elements=[SiteSetting.key],
            set_={"value": value, "updated_at": now},
        )
        db.exec(stmt)
    else:
        setting = db.get(SiteSetting, key) or SiteSetting(key=key, value=value)
        setting.value = value
        setting.updated_at = now
        db.add(setting)
    db.commit()


def seed_defaults(db: Session) -> None:
    existing = get_all(db)
    for key, value in DEFAULT_SETTINGS.items():
        if key not in existing:
            db.add(SiteSetting(key=key, value=value))
    db.commit()


def released_apps(db: Session) -> List[str]:
    raw = get_value(db, "released_apps") or ""
    return [key for key in raw.split(",") if key]


# ─── routes ─────────────────────────────────────────────────────────────────
@router.get("/public")
def public_settings(request: Request, db: DbSession):
    settings = get_all(db)
    record_visit(db, request, "/")
    return {
        "siteName": settings.get("site_name") or DEFAULT_SETTINGS["site_name"],
        "siteDescription": settings.get("site_description") or DEFAULT_SETTINGS["site_description"],
        "appStoreUrl": settings.get("app_store_url") or "#",
        "playStoreUrl": settings.get("play_store_url") or "#",
        "releasedApps": released_apps(db),
    }


@router.get("/apps")
def get_apps(db: DbSession, admin: AdminIdentity):
    released = set(released_apps(db))
    return {"apps": [{"key": key, "released": key in released} for key in APP_KEYS]}


@router.put("/apps")
def update_apps(body: AppsIn, db: DbSession, admin: AdminIdentity):
    valid = [key for key in APP_KEYS if key in set(body.releasedApps)]
    set_value(db, "released_apps", ",".join(valid))
    audit.admin_action(db, admin, "UPDATE_RELEASED_APPS", releasedApps=",".join(valid))
    return {"message": "App release status updated", "releasedApps": valid}
