# Auth/users.py
from typing import Optional

from sqlmodel import Session, select

from Auth.models import Role, User
from Auth.security import hash_password, normalize_email, password_problems, verify_password
from Auth.tokens import AdminPolicy
from Core import clock
from Core.errors import ValidationFailed


def find_active_by_email(db: Session, email: str) -> Optional[User]:
    return db.exec(
        select(User).where(User.email == normalize_email(email), User.deleted_at.is_(None))
    ).first()


def find_active_by_id(db: Session, user_id) -> Optional[User]:
    try:
        user_id = int(user_id)
    except (TypeError, ValueError):
        return None
    return db.exec(
        select(User).where(User.id == user_id, User.deleted_at.is_(None))
    ).first()


def is_local_admin(db: Session, email: str) -> bool:
    user = find_active_by_email(db, email)
    return bool(user and user.role == Role.admin.value)


def role_of(user: User, policy: AdminPolicy, email_verified: bool = False) -> str:
    """
    Stored role, or admin through the allow-list when the session proved the
    email with the identity provider. A password alone never does.
    """
    return policy.role_for(user.email, user.role, email_verified=email_verified)


def check_password_policy(password: str, field: str = "password") -> None:
    problems = password_problems(password)
    if problems:
        raise ValidationFailed(details=[{"field": field, "message": p} for p in problems])


def create_user(
    db: Session,
    email: str,
    password: str,
    name: Optional[str] = None,
    role: str = Role.user.value,
) -> User:
    """Email is unique across all rows, soft-deleted ones included."""
    email = normalize_email(email)
    check_password_policy(password)
    if db.exec(select(User).where(User.email == email)).first():
        raise ValidationFailed.for_field("email", "Email is already registered")

    user = User(email=email, hashed_password=hash_password(password), name=name, role=role)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def get_or_create_federated(db: Session, uid: str, email: str, name: Optional[str] = None) -> User:
    """
    Link a Google account to the local user with the same email, or create one.
    The admin allow-list is never written into the stored role.
    """
    email = normalize_email(email)
    user = db.exec(select(User).where(User.email == email)).first()
    if user and user.deleted_at is not None:
        return user
    if user:
        if not user.firebase_uid:
            user.firebase_uid = uid
        if not user.name and name:
            user.name = name
        user.updated_at = clock.utcnow()
    else:
        user = User(email=email, firebase_uid=uid, name=name, role=Role.user.value)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def update_profile(db: Session, user: User, name: Optional[str]) -> User:
    user.name = name
    user.updated_at = clock.utcnow()
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def change_password(db: Session, user: User, new_password: str, field: str = "newPassword") -> None:
    check_password_policy(new_password, field=field)
    user.hashed_password = hash_password(new_password)
    user.updated_at = clock.utcnow()
    db.add(user)
    db.commit()


def soft_delete(db: Session, user: User) -> None:
    user.deleted_at = clock.utcnow()
    user.updated_at = user.deleted_at
    db.add(user)
    db.commit()


def password_matches(user: User, password: str) -> bool:
    return verify_password(password, user.hashed_password)
