# Auth/security.py
import os
import re

from dotenv import load_dotenv
from passlib.context import CryptContext

load_dotenv()
pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")

PEPPER = os.getenv("PEPPER", "")      # extra geheim, niet in de database

PASSWORD_MIN_LENGTH = 8


def hash_password(password: str) -> str:
    return pwd_context.hash(password + PEPPER)


def verify_password(plain: str, hashed: str | None) -> bool:
    if not hashed:
        return False
    try:
        return pwd_context.verify(plain + PEPPER, hashed)
    except ValueError:
        # unknown/garbled hash format
        return False


def password_problems(password: str) -> list[str]:
    """Empty list when the password satisfies the complexity policy."""
    problems = []
    if len(password or "") < PASSWORD_MIN_LENGTH:
        problems.append(f"Password must be at least {PASSWORD_MIN_LENGTH} characters")
    if not re.search(r"[a-z]", password or ""):
        problems.append("Password must contain a lower-case letter")
    if not re.search(r"[A-Z]", password or ""):
        problems.append("Password must contain an upper-case letter")
    if not re.search(r"\d", password or ""):
        problems.append("Password must contain a digit")
    return problems


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()
