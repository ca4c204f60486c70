"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, Request

from vidtube.config import Settings, get_settings
from vidtube.db import DbClient, InMemoryDbClient, SqlDbClient, UserRecord
from vidtube.errors import ApiError
from vidtube.security import TokenError, decode_access_token
from vidtube.storage import AssetStorage, InMemoryAssetStorage, S3AssetStorage

logger = logging.getLogger(__name__)

_db_client: DbClient | None = None
_asset_storage: AssetStorage | None = None


def get_db_client() -> DbClient:
    """
    Return a singleton DB client so user and session state persists across requests.
    """
    global _db_client
    if _db_client:
        return _db_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        _db_client = InMemoryDbClient()
    else:
        _db_client = SqlDbClient(settings.database_url)
    return _db_client


def get_asset_storage() -> AssetStorage:
    global _asset_storage
    if _asset_storage:
        return _asset_storage

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.asset_bucket:
        _asset_storage = InMemoryAssetStorage()
    else:
        _asset_storage = S3AssetStorage(
            bucket=settings.asset_bucket,
            region=settings.asset_region or "",
            endpoint=settings.asset_endpoint or "",
            access_key_id=settings.aws_access_key_id or "",
            secret_access_key=settings.aws_secret_access_key or "",
            public_base_url=settings.asset_public_base_url or "",
        )
    return _asset_storage


def _extract_access_token(request: Request) -> Optional[str]:
    token = request.cookies.get("accessToken")
    if token:
        return token
    header = request.headers.get("Authorization", "")
    if header.startswith("Bearer "):
        return header[len("Bearer "):].strip() or None
    return None


def get_current_user(
    request: Request,
    db: DbClient = Depends(get_db_client),
    settings: Settings = Depends(get_settings),
) -> UserRecord:
    """Resolve the caller from the access token cookie or bearer header."""
    token = _extract_access_token(request)
    if not token:
        raise ApiError(401, "Unauthorized request")
    try:
        claims = decode_access_token(token, settings)
    except TokenError as exc:
        logger.warning("Rejected access token on %s: %s", request.url.path, exc)
        raise ApiError(401, str(exc) or "Invalid access token") from exc

    user = db.get_user(claims["_id"])
    if not user:
        raise ApiError(401, "Invalid Access Token")
    return user
