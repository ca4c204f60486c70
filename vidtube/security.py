"""
Password hashing and JWT helpers.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import bcrypt
import jwt

from vidtube.config import Settings
from vidtube.db import UserRecord

JWT_ALGORITHM = "HS256"
# bcrypt only looks at the first 72 bytes and newer releases reject longer input.
MAX_PASSWORD_BYTES = 72


class TokenError(Exception):
    """Raised when a token fails signature, expiry or claim checks."""


def password_too_long(password: str) -> bool:
    return len(password.encode("utf-8")) > MAX_PASSWORD_BYTES


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Stored value is not a bcrypt hash.
        return False


def _encode(claims: Dict[str, Any], secret: str, expiry_minutes: int) -> str:
    now = datetime.now(timezone.utc)
    payload = dict(claims)
    payload.update(
        {
            "iat": now,
            "exp": now + timedelta(minutes=expiry_minutes),
            "jti": uuid.uuid4().hex,
        }
    )
    return jwt.encode(payload, secret, algorithm=JWT_ALGORITHM)


def _decode(token: str, secret: str) -> Dict[str, Any]:
    try:
        payload = jwt.decode(token, secret, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError as exc:
        raise TokenError("Token has expired") from exc
    except jwt.InvalidTokenError as exc:
        raise TokenError("Invalid token") from exc
    if not payload.get("_id"):
        raise TokenError("Token missing subject")
    return payload


def create_access_token(user: UserRecord, settings: Settings) -> str:
    return _encode(
        {
            "_id": user.user_id,
            "email": user.email,
            "username": user.username,
            "fullName": user.full_name,
        },
        settings.access_token_secret,
        settings.access_token_expiry_minutes,
    )


def create_refresh_token(user: UserRecord, settings: Settings) -> str:
    return _encode(
        {"_id": user.user_id},
        settings.refresh_token_secret,
        settings.refresh_token_expiry_minutes,
    )


def decode_access_token(token: str, settings: Settings) -> Dict[str, Any]:
    return _decode(token, settings.access_token_secret)


def decode_refresh_token(token: str, settings: Settings) -> Dict[str, Any]:
    return _decode(token, settings.refresh_token_secret)
