"""
Pydantic schemas for the video platform API.

JSON bodies use camelCase field names; Python code uses snake_case.
"""

from __future__ import annotations

from typing import Any, Optional, Union

from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from vidtube.db import ChannelProfile, OwnerSummary, UserRecord, VideoRecord, WatchedVideo


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def api_response(data: Any, message: str = "Success", status_code: int = 200) -> dict:
    """Wrap ``data`` in the standard success envelope."""
    return {
        "statusCode": status_code,
        "data": jsonable_encoder(data, by_alias=True),
        "message": message,
        "success": status_code < 400,
    }


class LoginRequest(CamelModel):
    username: Optional[str] = None
    email: Optional[str] = None
    password: str = Field(..., min_length=1)


class RefreshRequest(CamelModel):
    refresh_token: Optional[str] = None


class ChangePasswordRequest(CamelModel):
    old_password: str
    new_password: str = Field(..., min_length=1)


class UpdateAccountRequest(CamelModel):
    full_name: Optional[str] = None
    email: Optional[str] = None


class UserPublic(CamelModel):
    id: str
    username: str
    email: str
    full_name: str
    avatar: str
    cover_image: str
    watch_history: list[str]
    created_at: float
    updated_at: float

    @classmethod
    def from_record(cls, user: UserRecord) -> "UserPublic":
        return cls(
            id=user.user_id,
            username=user.username,
            email=user.email,
            full_name=user.full_name,
            avatar=user.avatar,
            cover_image=user.cover_image,
            watch_history=list(user.watch_history),
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class LoginData(CamelModel):
    user: UserPublic
    access_token: str
    refresh_token: str


class TokenData(CamelModel):
    access_token: str
    refresh_token: str


class ChannelProfileResponse(CamelModel):
    full_name: str
    username: str
    email: str
    avatar: str
    cover_image: str
    subscribers_count: int
    channels_subscribed_to_count: int
    is_subscribed: bool

    @classmethod
    def from_profile(cls, profile: ChannelProfile) -> "ChannelProfileResponse":
        user = profile.user
        return cls(
            full_name=user.full_name,
            username=user.username,
            email=user.email,
            avatar=user.avatar,
            cover_image=user.cover_image,
            subscribers_count=profile.subscribers_count,
            channels_subscribed_to_count=profile.channels_subscribed_to_count,
            is_subscribed=profile.is_subscribed,
        )


class OwnerPublic(CamelModel):
    full_name: str
    username: str
    avatar: str

    @classmethod
    def from_summary(cls, owner: Optional[OwnerSummary]) -> Optional["OwnerPublic"]:
        if owner is None:
            return None
        return cls(full_name=owner.full_name, username=owner.username, avatar=owner.avatar)


class VideoPublic(CamelModel):
    id: str
    title: str
    description: str
    video_file: str
    thumbnail: str
    duration: float
    views: int
    is_published: bool
    created_at: float
    # Owner id, or the owner's public summary where it was joined in.
    owner: Optional[Union[OwnerPublic, str]] = None

    @classmethod
    def from_record(cls, video: VideoRecord) -> "VideoPublic":
        return cls(
            id=video.video_id,
            title=video.title,
            description=video.description,
            video_file=video.video_file,
            thumbnail=video.thumbnail,
            duration=video.duration,
            views=video.views,
            is_published=video.is_published,
            created_at=video.created_at,
            owner=video.owner_id,
        )

    @classmethod
    def from_watched(cls, item: WatchedVideo) -> "VideoPublic":
        return cls.from_record(item.video).model_copy(
            update={"owner": OwnerPublic.from_summary(item.owner)}
        )


class SubscriptionPublic(CamelModel):
    id: str
    subscriber: str
    channel: str
    created_at: float
