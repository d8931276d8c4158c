"""Password hashing and bearer tokens.

Hashes are stored as ``pbkdf2_sha256$<iterations>$<salt>$<digest>`` with
unpadded urlsafe base64 fields, so the iteration count can be raised later
without invalidating existing users.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import os
import secrets
import time
from dataclasses import dataclass
from typing import Any

import jwt

from .errors import AuthError

JWT_SECRET = os.environ.get("JWT_SECRET", "dev-secret-change-me")
JWT_ALG = "HS256"
JWT_TTL_SECONDS = 7 * 24 * 3600  # fixed, not configurable

PBKDF2_ITERS = int(os.environ.get("PBKDF2_ITERS", "200000"))
HASH_SCHEME = "pbkdf2_sha256"
SALT_BYTES = 16
DIGEST_BYTES = 32


@dataclass(frozen=True, slots=True)
class TokenUser:
    user_id: int
    username: str


def _derive(password: str, salt: bytes, iterations: int, length: int = DIGEST_BYTES) -> bytes:
    return hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations, dklen=length)


def _encode_field(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _decode_field(field: str) -> bytes:
    return base64.urlsafe_b64decode(field + "=" * (-len(field) % 4))


def hash_password(password: str) -> str:
    salt = secrets.token_bytes(SALT_BYTES)
    digest = _derive(password, salt, PBKDF2_ITERS)
    return "$".join([HASH_SCHEME, str(PBKDF2_ITERS), _encode_field(salt), _encode_field(digest)])


def verify_password(password: str, stored: str) -> bool:
    parts = stored.split("$")
    if len(parts) != 4 or parts[0] != HASH_SCHEME:
        return False
    try:
        iterations = int(parts[1])
        salt, expected = _decode_field(parts[2]), _decode_field(parts[3])
    except (ValueError, binascii.Error):
        return False
    return hmac.compare_digest(_derive(password, salt, iterations, len(expected)), expected)


def make_token(user_id: int, username: str, *, now: int | None = None) -> str:
    issued = int(time.time()) if now is None else now
    claims = {"sub": str(user_id), "username": username, "iat": issued, "exp": issued + JWT_TTL_SECONDS}
    return jwt.encode(claims, JWT_SECRET, algorithm=JWT_ALG)


def decode_token(token: str) -> dict[str, Any]:
    return jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALG], options={"require": ["sub", "exp"]})


def verify_token(token: str) -> TokenUser:
    """Resolve a bearer token to the user it was issued for."""
    try:
        claims = decode_token(token)
        return TokenUser(user_id=int(claims["sub"]), username=str(claims.get("username", "")))
    except jwt.ExpiredSignatureError as exc:
        raise AuthError("Token has expired") from exc
    except (jwt.InvalidTokenError, ValueError) as exc:
        raise AuthError("Token is not valid") from exc
