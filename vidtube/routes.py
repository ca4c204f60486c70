"""
HTTP routes for the video platform API.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, File, Form, Request, Response, UploadFile

from vidtube.config import Settings, get_settings
from vidtube.db import DbClient, DuplicateRecordError, UserRecord, normalize_email
from vidtube.dependencies import get_asset_storage, get_current_user, get_db_client
from vidtube.errors import ApiError
from vidtube.schemas import (
    ChangePasswordRequest,
    ChannelProfileResponse,
    LoginData,
    LoginRequest,
    OwnerPublic,
    RefreshRequest,
    SubscriptionPublic,
    TokenData,
    UpdateAccountRequest,
    UserPublic,
    VideoPublic,
    api_response,
)
from vidtube.security import hash_password, password_too_long, verify_password
from vidtube.sessions import (
    REFRESH_COOKIE,
    clear_session_cookies,
    end_session,
    issue_tokens,
    rotate_refresh_token,
    set_session_cookies,
)
from vidtube.storage import AssetStorage
from vidtube.uploads import discard_asset, store_upload

logger = logging.getLogger(__name__)

users_router = APIRouter(prefix="/users", tags=["users"])
subscriptions_router = APIRouter(prefix="/subscriptions", tags=["subscriptions"])
videos_router = APIRouter(prefix="/videos", tags=["videos"])


def _blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


@users_router.post("/register", status_code=201)
async def register_user(
    full_name: str = Form("", alias="fullName"),
    email: str = Form(""),
    username: str = Form(""),
    password: str = Form(""),
    avatar: Optional[UploadFile] = File(None),
    cover_image: Optional[UploadFile] = File(None, alias="coverImage"),
    db: DbClient = Depends(get_db_client),
    storage: AssetStorage = Depends(get_asset_storage),
    settings: Settings = Depends(get_settings),
):
    if any(_blank(field) for field in (full_name, email, username, password)):
        raise ApiError(400, "All fields are required")
    if password_too_long(password):
        raise ApiError(400, "Password is too long")

    email = normalize_email(email)
    username = username.strip().lower()
    if db.find_user_by_username_or_email(username, email):
        raise ApiError(409, "User with email or username already exists")

    avatar_url = await store_upload(
        storage,
        avatar,
        folder="avatars",
        label="Avatar",
        max_bytes=settings.max_upload_bytes,
    )
    try:
        cover_url = await store_upload(
            storage,
            cover_image,
            folder="covers",
            label="Cover image",
            max_bytes=settings.max_upload_bytes,
            required=False,
        )
    except ApiError:
        discard_asset(storage, avatar_url)
        raise

    try:
        user = db.create_user(
            username=username,
            email=email,
            full_name=full_name.strip(),
            password_hash=hash_password(password),
            avatar=avatar_url,
            cover_image=cover_url,
        )
    except DuplicateRecordError as exc:
        discard_asset(storage, avatar_url)
        discard_asset(storage, cover_url)
        raise ApiError(409, "User with email or username already exists") from exc

    logger.info("Registered user %s", user.user_id)
    return api_response(
        UserPublic.from_record(user), "User registered Successfully", status_code=201
    )


@users_router.post("/login")
def login_user(
    payload: LoginRequest,
    response: Response,
    db: DbClient = Depends(get_db_client),
    settings: Settings = Depends(get_settings),
):
    if _blank(payload.username) and _blank(payload.email):
        raise ApiError(400, "username or email is required")

    user = db.find_user_by_username_or_email(
        (payload.username or "").strip() or None, (payload.email or "").strip() or None
    )
    if not user:
        raise ApiError(404, "User does not exist")

    if not verify_password(payload.password, user.password_hash):
        logger.warning("Wrong password for user %s", user.user_id)
        raise ApiError(401, "Invalid user credentials")

    pair = issue_tokens(db, user, settings)
    set_session_cookies(response, pair, settings)
    logger.info("User %s logged in", user.user_id)
    data = LoginData(
        user=UserPublic.from_record(user),
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
    )
    return api_response(data, "User logged In Successfully")


@users_router.post("/logout")
def logout_user(
    response: Response,
    user: UserRecord = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
    settings: Settings = Depends(get_settings),
):
    end_session(db, user)
    clear_session_cookies(response, settings)
    logger.info("User %s logged out", user.user_id)
    return api_response({}, "User logged Out")


@users_router.post("/refresh-token")
def refresh_access_token(
    request: Request,
    response: Response,
    payload: Optional[RefreshRequest] = Body(None),
    db: DbClient = Depends(get_db_client),
    settings: Settings = Depends(get_settings),
):
    incoming = request.cookies.get(REFRESH_COOKIE) or (
        payload.refresh_token if payload else None
    )
    user, pair = rotate_refresh_token(db, incoming, settings)
    set_session_cookies(response, pair, settings)
    logger.info("Rotated refresh token for user %s", user.user_id)
    return api_response(
        TokenData(access_token=pair.access_token, refresh_token=pair.refresh_token),
        "Access token refreshed",
    )


@users_router.post("/change-password")
def change_current_password(
    payload: ChangePasswordRequest,
    user: UserRecord = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    if not verify_password(payload.old_password, user.password_hash):
        raise ApiError(400, "Invalid old password")
    if password_too_long(payload.new_password):
        raise ApiError(400, "Password is too long")
    db.update_user(user.user_id, password_hash=hash_password(payload.new_password))
    logger.info("Password changed for user %s", user.user_id)
    return api_response({}, "Password changed successfully")


@users_router.get("/current-user")
def get_current_user_profile(user: UserRecord = Depends(get_current_user)):
    return api_response(UserPublic.from_record(user), "User fetched successfully")


@users_router.patch("/update-account")
def update_account_details(
    payload: UpdateAccountRequest,
    user: UserRecord = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    if _blank(payload.full_name) or _blank(payload.email):
        raise ApiError(400, "All fields are required")

    email = normalize_email(payload.email)
    existing = db.find_user_by_username_or_email(None, email)
    if existing and existing.user_id != user.user_id:
        raise ApiError(409, "Email is already in use")
    try:
        updated = db.update_user(
            user.user_id, full_name=payload.full_name.strip(), email=email
        )
    except DuplicateRecordError as exc:
        raise ApiError(409, "Email is already in use") from exc
    return api_response(
        UserPublic.from_record(updated), "Account details updated successfully"
    )


async def _replace_image(
    *,
    user: UserRecord,
    upload: Optional[UploadFile],
    field: str,
    folder: str,
    label: str,
    db: DbClient,
    storage: AssetStorage,
    settings: Settings,
) -> UserRecord:
    old_url = getattr(user, field)
    new_url = await store_upload(
        storage,
        upload,
        folder=folder,
        label=label,
        max_bytes=settings.max_upload_bytes,
    )
    updated = db.update_user(user.user_id, **{field: new_url})
    discard_asset(storage, old_url)
    return updated


@users_router.patch("/avatar")
async def update_user_avatar(
    avatar: Optional[UploadFile] = File(None),
    user: UserRecord = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
    storage: AssetStorage = Depends(get_asset_storage),
    settings: Settings = Depends(get_settings),
):
    updated = await _replace_image(
        user=user,
        upload=avatar,
        field="avatar",
        folder="avatars",
        label="Avatar",
        db=db,
        storage=storage,
        settings=settings,
    )
    return api_response(UserPublic.from_record(updated), "Avatar image updated successfully")


@users_router.patch("/cover-image")
async def update_user_cover_image(
    cover_image: Optional[UploadFile] = File(None, alias="coverImage"),
    user: UserRecord = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
    storage: AssetStorage = Depends(get_asset_storage),
    settings: Settings = Depends(get_settings),
):
    updated = await _replace_image(
        user=user,
        upload=cover_image,
        field="cover_image",
        folder="covers",
        label="Cover image",
        db=db,
        storage=storage,
        settings=settings,
    )
    return api_response(UserPublic.from_record(updated), "Cover image updated successfully")


@users_router.get("/c/{username}")
def get_user_channel_profile(
    username: str,
    user: UserRecord = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    if _blank(username):
        raise ApiError(400, "username is missing")
    profile = db.get_channel_profile(username.strip(), viewer_id=user.user_id)
    if not profile:
        raise ApiError(404, "channel does not exists")
    return api_response(
        ChannelProfileResponse.from_profile(profile), "User channel fetched successfully"
    )


@users_router.get("/history")
def get_watch_history(
    user: UserRecord = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    history = [VideoPublic.from_watched(item) for item in db.get_watch_history(user.user_id)]
    return api_response(history, "Watch history fetched successfully")


def _channel_or_404(db: DbClient, username: str) -> UserRecord:
    channel = db.get_user_by_username(username.strip())
    if not channel:
        raise ApiError(404, "channel does not exists")
    return channel


@subscriptions_router.post("/c/{username}")
def subscribe_to_channel(
    username: str,
    response: Response,
    user: UserRecord = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    channel = _channel_or_404(db, username)
    if channel.user_id == user.user_id:
        raise ApiError(400, "You cannot subscribe to your own channel")

    record, created = db.subscribe(user.user_id, channel.user_id)
    status_code = 201 if created else 200
    response.status_code = status_code
    data = SubscriptionPublic(
        id=record.subscription_id,
        subscriber=record.subscriber_id,
        channel=record.channel_id,
        created_at=record.created_at,
    )
    message = "Subscribed successfully" if created else "Already subscribed"
    return api_response(data, message, status_code=status_code)


@subscriptions_router.delete("/c/{username}")
def unsubscribe_from_channel(
    username: str,
    user: UserRecord = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    channel = _channel_or_404(db, username)
    if not db.unsubscribe(user.user_id, channel.user_id):
        raise ApiError(404, "Subscription not found")
    return api_response({}, "Unsubscribed successfully")


@videos_router.post("", status_code=201)
async def publish_video(
    title: str = Form(""),
    description: str = Form(""),
    duration: float = Form(0.0, ge=0),
    is_published: bool = Form(True, alias="isPublished"),
    video_file: Optional[UploadFile] = File(None, alias="videoFile"),
    thumbnail: Optional[UploadFile] = File(None),
    user: UserRecord = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
    storage: AssetStorage = Depends(get_asset_storage),
    settings: Settings = Depends(get_settings),
):
    if _blank(title):
        raise ApiError(400, "Title is required")

    video_url = await store_upload(
        storage,
        video_file,
        folder="videos",
        label="Video",
        media_type="video",
        max_bytes=settings.max_upload_bytes,
    )
    try:
        thumbnail_url = await store_upload(
            storage,
            thumbnail,
            folder="thumbnails",
            label="Thumbnail",
            max_bytes=settings.max_upload_bytes,
        )
    except ApiError:
        discard_asset(storage, video_url)
        raise

    video = db.create_video(
        owner_id=user.user_id,
        title=title.strip(),
        description=description.strip(),
        video_file=video_url,
        thumbnail=thumbnail_url,
        duration=duration,
        is_published=is_published,
    )
    logger.info("User %s published video %s", user.user_id, video.video_id)
    return api_response(VideoPublic.from_record(video), "Video published", status_code=201)


@videos_router.get("/{video_id}")
def watch_video(
    video_id: str,
    user: UserRecord = Depends(get_current_user),
    db: DbClient = Depends(get_db_client),
):
    video = db.get_video(video_id)
    if not video or (not video.is_published and video.owner_id != user.user_id):
        raise ApiError(404, "Video not found")

    db.increment_video_views(video.video_id)
    db.add_to_watch_history(user.user_id, video.video_id)
    video = db.get_video(video.video_id)
    owner = db.get_user(video.owner_id)
    data = VideoPublic.from_record(video)
    if owner:
        data.owner = OwnerPublic(
            full_name=owner.full_name, username=owner.username, avatar=owner.avatar
        )
    return api_response(data, "Video fetched successfully")
