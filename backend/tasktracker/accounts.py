"""Signup, login and current-user lookup.

Service functions take an open ``Session`` and raise ``tasktracker.errors``
exceptions; the HTTP layer turns those into responses.
"""

from __future__ import annotations

import logging

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .auth import hash_password, make_token, verify_password
from .errors import AuthError, ConflictError, NotFoundError, ValidationError
from .models import User
from .schemas import UserOut

logger = logging.getLogger(__name__)

MIN_PASSWORD_LEN = 6
MIN_USERNAME_LEN = 3


def normalize_email(email: str) -> str:
    return email.strip().lower()


def user_out(u: User) -> UserOut:
    return UserOut(id=int(u.id), username=u.username, email=u.email, created_at=u.created_at)


def _validate_signup(email: str, username: str, password: str) -> None:
    if not email or not username or not password:
        raise ValidationError("All fields are required")

    problems: list[str] = []
    if len(password) < MIN_PASSWORD_LEN:
        problems.append(f"Password must be at least {MIN_PASSWORD_LEN} characters long")
    if len(username) < MIN_USERNAME_LEN:
        problems.append(f"Username must be at least {MIN_USERNAME_LEN} characters long")
    if "@" not in email or "." not in email.split("@")[-1]:
        problems.append("Please enter a valid email")
    if problems:
        raise ValidationError.from_messages(problems)


def signup(s: Session, email: str | None, username: str | None, password: str | None) -> tuple[str, UserOut]:
    """Create a user and return ``(token, public user)``."""
    email = normalize_email(email or "")
    username = (username or "").strip()
    password = password or ""
    _validate_signup(email, username, password)

    existing = s.execute(select(User).where(User.email == email)).scalars().first()
    if existing is not None:
        raise ConflictError("Email already exists")
    existing = s.execute(select(User).where(User.username == username)).scalars().first()
    if existing is not None:
        raise ConflictError("Username already exists")

    u = User(email=email, username=username, password_hash=hash_password(password))
    s.add(u)
    try:
        s.commit()
    except IntegrityError as exc:
        # lost a race against a concurrent signup
        s.rollback()
        raise ConflictError("Email or username already exists") from exc
    s.refresh(u)

    logger.info("user signed up: id=%s username=%s", u.id, u.username)
    return make_token(int(u.id), u.username), user_out(u)


def login(s: Session, email_or_username: str | None, password: str | None) -> tuple[str, UserOut]:
    """
    Check credentials and return ``(token, public user)``.

    Unknown user and wrong password fail the same way.
    """
    ident = (email_or_username or "").strip()
    if not ident or not password:
        raise ValidationError("Email/username and password are required")

    u = (
        s.execute(select(User).where(or_(User.email == ident.lower(), User.username == ident)))
        .scalars()
        .first()
    )
    if u is None or not verify_password(password, u.password_hash):
        logger.info("failed login for %r", ident)
        raise AuthError("Invalid credentials", status_code=400)

    logger.info("user logged in: id=%s", u.id)
    return make_token(int(u.id), u.username), user_out(u)


def get_current_user(s: Session, user_id: int) -> UserOut:
    u = s.get(User, user_id)
    if u is None:
        raise NotFoundError("User not found")
    return user_out(u)
