"""
Session lifecycle: issuing, rotating and clearing the single refresh token.

A user holds at most one refresh token. Login and refresh overwrite it, which
invalidates whatever token was issued before; logout clears it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from fastapi import Response

from vidtube.config import Settings
from vidtube.db import DbClient, UserRecord
from vidtube.errors import ApiError
from vidtube.security import (
    TokenError,
    create_access_token,
    create_refresh_token,
    decode_refresh_token,
)

logger = logging.getLogger(__name__)

ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"


@dataclass
class TokenPair:
    access_token: str
    refresh_token: str


def issue_tokens(db: DbClient, user: UserRecord, settings: Settings) -> TokenPair:
    """Mint a new pair and store the refresh token, replacing any previous one."""
    try:
        pair = TokenPair(
            access_token=create_access_token(user, settings),
            refresh_token=create_refresh_token(user, settings),
        )
        db.set_refresh_token(user.user_id, pair.refresh_token)
    except Exception as exc:
        logger.exception("Token generation failed for user %s", user.user_id)
        raise ApiError(
            500, "Something went wrong while generating refresh and access token"
        ) from exc
    return pair


def rotate_refresh_token(
    db: DbClient, incoming_token: str | None, settings: Settings
) -> tuple[UserRecord, TokenPair]:
    if not incoming_token:
        raise ApiError(401, "unauthorized request")
    try:
        claims = decode_refresh_token(incoming_token, settings)
    except TokenError as exc:
        logger.warning("Rejected refresh token: %s", exc)
        raise ApiError(401, str(exc)) from exc

    user = db.get_user(claims["_id"])
    if not user:
        raise ApiError(401, "Invalid refresh token")
    if incoming_token != user.refresh_token:
        logger.warning("Stale refresh token presented for user %s", user.user_id)
        raise ApiError(401, "Refresh token is expired or used")

    return user, issue_tokens(db, user, settings)


def end_session(db: DbClient, user: UserRecord) -> None:
    db.set_refresh_token(user.user_id, None)


def set_session_cookies(response: Response, pair: TokenPair, settings: Settings) -> None:
    for name, value, minutes in (
        (ACCESS_COOKIE, pair.access_token, settings.access_token_expiry_minutes),
        (REFRESH_COOKIE, pair.refresh_token, settings.refresh_token_expiry_minutes),
    ):
        response.set_cookie(
            name,
            value,
            max_age=minutes * 60,
            httponly=True,
            secure=settings.cookie_secure,
        )


def clear_session_cookies(response: Response, settings: Settings) -> None:
    for name in (ACCESS_COOKIE, REFRESH_COOKIE):
        response.delete_cookie(name, httponly=True, secure=settings.cookie_secure)
