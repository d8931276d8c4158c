from __future__ import annotations

from collections.abc import Iterator

from fastapi import Header, HTTPException
from sqlalchemy.orm import Session

from . import db
from .auth import TokenUser, verify_token
from .errors import AuthError


def get_db() -> Iterator[Session]:
    if db.engine is None:
        raise HTTPException(status_code=503, detail="db not ready")
    with Session(db.engine) as s:
        yield s


def get_current_user(authorization: str | None = Header(default=None)) -> TokenUser:
    if not authorization:
        raise AuthError("No token, authorization denied")
    if not authorization.lower().startswith("bearer "):
        raise AuthError("Token is not valid")
    token = authorization.split(" ", 1)[1].strip()
    return verify_token(token)
