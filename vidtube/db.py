"""
Database abstraction for Postgres and an in-memory test implementation.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from typing import Dict, Optional, Protocol

from sqlalchemy import (
    Boolean,
    Column,
    Float,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    create_engine,
    delete,
    exists,
    func,
    or_,
    select,
    update,
)
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, aliased, declarative_base, sessionmaker


class DuplicateRecordError(Exception):
    """Raised when a write would break a uniqueness rule."""


def normalize_email(email: Optional[str]) -> Optional[str]:
    """Emails are stored and compared lower-case."""
    if email is None:
        return None
    return email.strip().lower()


class DbClient(Protocol):
    """Interface for database access."""

    def create_user(
        self,
        *,
        username: str,
        email: str,
        full_name: str,
        password_hash: str,
        avatar: str,
        cover_image: str = "",
    ) -> "UserRecord":
        ...

    def get_user(self, user_id: str) -> Optional["UserRecord"]:
        ...

    def get_user_by_username(self, username: str) -> Optional["UserRecord"]:
        ...

    def find_user_by_username_or_email(
        self, username: Optional[str], email: Optional[str]
    ) -> Optional["UserRecord"]:
        ...

    def update_user(
        self,
        user_id: str,
        *,
        full_name: Optional[str] = None,
        email: Optional[str] = None,
        avatar: Optional[str] = None,
        cover_image: Optional[str] = None,
        password_hash: Optional[str] = None,
    ) -> Optional["UserRecord"]:
        ...

    def set_refresh_token(self, user_id: str, token: Optional[str]) -> None:
        ...

    def create_video(
        self,
        *,
        owner_id: str,
        title: str,
        description: str,
        video_file: str,
        thumbnail: str,
        duration: float = 0.0,
        is_published: bool = True,
    ) -> "VideoRecord":
        ...

    def get_video(self, video_id: str) -> Optional["VideoRecord"]:
        ...

    def increment_video_views(self, video_id: str) -> None:
        ...

    def add_to_watch_history(self, user_id: str, video_id: str) -> None:
        ...

    def subscribe(
        self, subscriber_id: str, channel_id: str
    ) -> tuple["SubscriptionRecord", bool]:
        ...

    def unsubscribe(self, subscriber_id: str, channel_id: str) -> bool:
        ...

    def get_channel_profile(
        self, username: str, viewer_id: Optional[str] = None
    ) -> Optional["ChannelProfile"]:
        ...

    def get_watch_history(self, user_id: str) -> list["WatchedVideo"]:
        ...


@dataclass
class UserRecord:
    user_id: str
    username: str
    email: str
    full_name: str
    avatar: str
    password_hash: str
    cover_image: str = ""
    refresh_token: Optional[str] = None
    watch_history: list[str] = field(default_factory=list)
    created_at: float = field(default_factory=lambda: time.time())
    updated_at: float = field(default_factory=lambda: time.time())


@dataclass
class VideoRecord:
    video_id: str
    owner_id: str
    title: str
    description: str
    video_file: str
    thumbnail: str
    duration: float = 0.0
    views: int = 0
    is_published: bool = True
    created_at: float = field(default_factory=lambda: time.time())


@dataclass
class SubscriptionRecord:
    subscription_id: str
    subscriber_id: str
    channel_id: str
    created_at: float = field(default_factory=lambda: time.time())


@dataclass
class OwnerSummary:
    full_name: str
    username: str
    avatar: str


@dataclass
class WatchedVideo:
    video: VideoRecord
    owner: Optional[OwnerSummary]


@dataclass
class ChannelProfile:
    user: UserRecord
    subscribers_count: int
    channels_subscribed_to_count: int
    is_subscribed: bool


class InMemoryDbClient:
    """Simple in-memory database for development and tests."""

    def __init__(self):
        self.users: Dict[str, UserRecord] = {}
        self.videos: Dict[str, VideoRecord] = {}
        self.subscriptions: Dict[str, SubscriptionRecord] = {}

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.users.clear()
        self.videos.clear()
        self.subscriptions.clear()

    def _taken(self, username: Optional[str], email: Optional[str], exclude: str = "") -> bool:
        email = normalize_email(email)
        for user in self.users.values():
            if user.user_id == exclude:
                continue
            if (username and user.username == username) or (email and user.email == email):
                return True
        return False

    def create_user(
        self,
        *,
        username: str,
        email: str,
        full_name: str,
        password_hash: str,
        avatar: str,
        cover_image: str = "",
    ) -> UserRecord:
        username = username.lower()
        email = normalize_email(email)
        if self._taken(username, email):
            raise DuplicateRecordError("username or email already exists")
        record = UserRecord(
            user_id=uuid.uuid4().hex,
            username=username,
            email=email,
            full_name=full_name,
            avatar=avatar,
            cover_image=cover_image,
            password_hash=password_hash,
        )
        self.users[record.user_id] = record
        return record

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        return self.users.get(user_id)

    def get_user_by_username(self, username: str) -> Optional[UserRecord]:
        username = username.lower()
        for user in self.users.values():
            if user.username == username:
                return user
        return None

    def find_user_by_username_or_email(
        self, username: Optional[str], email: Optional[str]
    ) -> Optional[UserRecord]:
        username = username.lower() if username else None
        email = normalize_email(email)
        for user in self.users.values():
            if (username and user.username == username) or (email and user.email == email):
                return user
        return None

    def update_user(
        self,
        user_id: str,
        *,
        full_name: Optional[str] = None,
        email: Optional[str] = None,
        avatar: Optional[str] = None,
        cover_image: Optional[str] = None,
        password_hash: Optional[str] = None,
    ) -> Optional[UserRecord]:
        user = self.users.get(user_id)
        if not user:
            return None
        email = normalize_email(email)
        if email is not None and self._taken(None, email, exclude=user_id):
            raise DuplicateRecordError("email already exists")
        if full_name is not None:
            user.full_name = full_name
        if email is not None:
            user.email = email
        if avatar is not None:
            user.avatar = avatar
        if cover_image is not None:
            user.cover_image = cover_image
        if password_hash is not None:
            user.password_hash = password_hash
        user.updated_at = time.time()
        return user

    def set_refresh_token(self, user_id: str, token: Optional[str]) -> None:
        user = self.users.get(user_id)
        if user:
            user.refresh_token = token
            user.updated_at = time.time()

    def create_video(
        self,
        *,
        owner_id: str,
        title: str,
        description: str,
        video_file: str,
        thumbnail: str,
        duration: float = 0.0,
        is_published: bool = True,
    ) -> VideoRecord:
        record = VideoRecord(
            video_id=uuid.uuid4().hex,
            owner_id=owner_id,
            title=title,
            description=description,
            video_file=video_file,
            thumbnail=thumbnail,
            duration=duration,
            is_published=is_published,
        )
        self.videos[record.video_id] = record
        return record

    def get_video(self, video_id: str) -> Optional[VideoRecord]:
        return self.videos.get(video_id)

    def increment_video_views(self, video_id: str) -> None:
        video = self.videos.get(video_id)
        if video:
            video.views += 1

    def add_to_watch_history(self, user_id: str, video_id: str) -> None:
        user = self.users.get(user_id)
        if not user:
            return
        if video_id in user.watch_history:
            user.watch_history.remove(video_id)
        user.watch_history.append(video_id)

    def subscribe(
        self, subscriber_id: str, channel_id: str
    ) -> tuple[SubscriptionRecord, bool]:
        for sub in self.subscriptions.values():
            if sub.subscriber_id == subscriber_id and sub.channel_id == channel_id:
                return sub, False
        record = SubscriptionRecord(
            subscription_id=uuid.uuid4().hex,
            subscriber_id=subscriber_id,
            channel_id=channel_id,
        )
        self.subscriptions[record.subscription_id] = record
        return record, True

    def unsubscribe(self, subscriber_id: str, channel_id: str) -> bool:
        for key, sub in list(self.subscriptions.items()):
            if sub.subscriber_id == subscriber_id and sub.channel_id == channel_id:
                del self.subscriptions[key]
                return True
        return False

    def get_channel_profile(
        self, username: str, viewer_id: Optional[str] = None
    ) -> Optional[ChannelProfile]:
        user = self.get_user_by_username(username)
        if not user:
            return None
        subscribers = [
            s.subscriber_id
            for s in self.subscriptions.values()
            if s.channel_id == user.user_id
        ]
        subscribed_to = [
            s for s in self.subscriptions.values() if s.subscriber_id == user.user_id
        ]
        return ChannelProfile(
            user=user,
            subscribers_count=len(subscribers),
            channels_subscribed_to_count=len(subscribed_to),
            is_subscribed=viewer_id is not None and viewer_id in subscribers,
        )

    def get_watch_history(self, user_id: str) -> list[WatchedVideo]:
        user = self.users.get(user_id)
        if not user:
            return []
        items: list[WatchedVideo] = []
        for video_id in user.watch_history:
            video = self.videos.get(video_id)
            if not video:
                continue
            owner = self.users.get(video.owner_id)
            summary = (
                OwnerSummary(
                    full_name=owner.full_name,
                    username=owner.username,
                    avatar=owner.avatar,
                )
                if owner
                else None
            )
            items.append(WatchedVideo(video=video, owner=summary))
        return items


class SqlDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlDbClient")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    def _watch_history_ids(self, session: Session, user_id: str) -> list[str]:
        rows = session.execute(
            select(WatchHistoryRow.video_id)
            .where(WatchHistoryRow.user_id == user_id)
            .order_by(WatchHistoryRow.position)
        )
        return [video_id for (video_id,) in rows]

    def _to_user_record(self, session: Session, row: "UserRow") -> UserRecord:
        return UserRecord(
            user_id=row.id,
            username=row.username,
            email=row.email,
            full_name=row.full_name,
            avatar=row.avatar,
            cover_image=row.cover_image,
            password_hash=row.password_hash,
            refresh_token=row.refresh_token,
            watch_history=self._watch_history_ids(session, row.id),
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def _to_video_record(self, row: "VideoRow") -> VideoRecord:
        return VideoRecord(
            video_id=row.id,
            owner_id=row.owner_id,
            title=row.title,
            description=row.description,
            video_file=row.video_file,
            thumbnail=row.thumbnail,
            duration=row.duration,
            views=row.views,
            is_published=row.is_published,
            created_at=row.created_at,
        )

    def create_user(
        self,
        *,
        username: str,
        email: str,
        full_name: str,
        password_hash: str,
        avatar: str,
        cover_image: str = "",
    ) -> UserRecord:
        now = time.time()
        row = UserRow(
            id=uuid.uuid4().hex,
            username=username.lower(),
            email=normalize_email(email),
            full_name=full_name,
            avatar=avatar,
            cover_image=cover_image,
            password_hash=password_hash,
            refresh_token=None,
            created_at=now,
            updated_at=now,
        )
        with self.Session() as session:
            session.add(row)
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise DuplicateRecordError("username or email already exists") from exc
            return self._to_user_record(session, row)

    def get_user(self, user_id: str) -> Optional[UserRecord]:
        with self.Session() as session:
            row = session.get(UserRow, user_id)
            if not row:
                return None
            return self._to_user_record(session, row)

    def get_user_by_username(self, username: str) -> Optional[UserRecord]:
        with self.Session() as session:
            row = session.scalars(
                select(UserRow).where(UserRow.username == username.lower())
            ).first()
            if not row:
                return None
            return self._to_user_record(session, row)

    def find_user_by_username_or_email(
        self, username: Optional[str], email: Optional[str]
    ) -> Optional[UserRecord]:
        clauses = []
        if username:
            clauses.append(UserRow.username == username.lower())
        if email:
            clauses.append(UserRow.email == normalize_email(email))
        if not clauses:
            return None
        with self.Session() as session:
            row = session.scalars(select(UserRow).where(or_(*clauses))).first()
            if not row:
                return None
            return self._to_user_record(session, row)

    def update_user(
        self,
        user_id: str,
        *,
        full_name: Optional[str] = None,
        email: Optional[str] = None,
        avatar: Optional[str] = None,
        cover_image: Optional[str] = None,
        password_hash: Optional[str] = None,
    ) -> Optional[UserRecord]:
        values = {
            "full_name": full_name,
            "email": normalize_email(email),
            "avatar": avatar,
            "cover_image": cover_image,
            "password_hash": password_hash,
        }
        values = {key: value for key, value in values.items() if value is not None}
        with self.Session() as session:
            row = session.get(UserRow, user_id)
            if not row:
                return None
            for key, value in values.items():
                setattr(row, key, value)
            row.updated_at = time.time()
            try:
                session.commit()
            except IntegrityError as exc:
                session.rollback()
                raise DuplicateRecordError("email already exists") from exc
            return self._to_user_record(session, row)

    def set_refresh_token(self, user_id: str, token: Optional[str]) -> None:
        with self.Session() as session:
            session.execute(
                update(UserRow)
                .where(UserRow.id == user_id)
                .values(refresh_token=token, updated_at=time.time())
            )
            session.commit()

    def create_video(
        self,
        *,
        owner_id: str,
        title: str,
        description: str,
        video_file: str,
        thumbnail: str,
        duration: float = 0.0,
        is_published: bool = True,
    ) -> VideoRecord:
        row = VideoRow(
            id=uuid.uuid4().hex,
            owner_id=owner_id,
            title=title,
            description=description,
            video_file=video_file,
            thumbnail=thumbnail,
            duration=duration,
            views=0,
            is_published=is_published,
            created_at=time.time(),
        )
        with self.Session() as session:
            session.add(row)
            session.commit()
            return self._to_video_record(row)

    def get_video(self, video_id: str) -> Optional[VideoRecord]:
        with self.Session() as session:
            row = session.get(VideoRow, video_id)
            return self._to_video_record(row) if row else None

    def increment_video_views(self, video_id: str) -> None:
        with self.Session() as session:
            session.execute(
                update(VideoRow)
                .where(VideoRow.id == video_id)
                .values(views=VideoRow.views + 1)
            )
            session.commit()

    def add_to_watch_history(self, user_id: str, video_id: str) -> None:
        with self.Session() as session:
            next_position = session.scalar(
                select(func.coalesce(func.max(WatchHistoryRow.position), 0)).where(
                    WatchHistoryRow.user_id == user_id
                )
            ) + 1
            row = session.get(WatchHistoryRow, (user_id, video_id))
            if row:
                row.position = next_position
                row.watched_at = time.time()
            else:
                session.add(
                    WatchHistoryRow(
                        user_id=user_id,
                        video_id=video_id,
                        position=next_position,
                        watched_at=time.time(),
                    )
                )
            session.commit()

    def subscribe(
        self, subscriber_id: str, channel_id: str
    ) -> tuple[SubscriptionRecord, bool]:
        with self.Session() as session:
            row = session.scalars(
                select(SubscriptionRow).where(
                    SubscriptionRow.subscriber_id == subscriber_id,
                    SubscriptionRow.channel_id == channel_id,
                )
            ).first()
            created = False
            if not row:
                row = SubscriptionRow(
                    id=uuid.uuid4().hex,
                    subscriber_id=subscriber_id,
                    channel_id=channel_id,
                    created_at=time.time(),
                )
                session.add(row)
                session.commit()
                created = True
            return (
                SubscriptionRecord(
                    subscription_id=row.id,
                    subscriber_id=row.subscriber_id,
                    channel_id=row.channel_id,
                    created_at=row.created_at,
                ),
                created,
            )

    def unsubscribe(self, subscriber_id: str, channel_id: str) -> bool:
        with self.Session() as session:
            result = session.execute(
                delete(SubscriptionRow).where(
                    SubscriptionRow.subscriber_id == subscriber_id,
                    SubscriptionRow.channel_id == channel_id,
                )
            )
            session.commit()
            return result.rowcount > 0

    def get_channel_profile(
        self, username: str, viewer_id: Optional[str] = None
    ) -> Optional[ChannelProfile]:
        subscribers_count = (
            select(func.count(SubscriptionRow.id))
            .where(SubscriptionRow.channel_id == UserRow.id)
            .scalar_subquery()
        )
        subscribed_to_count = (
            select(func.count(SubscriptionRow.id))
            .where(SubscriptionRow.subscriber_id == UserRow.id)
            .scalar_subquery()
        )
        is_subscribed = exists().where(
            SubscriptionRow.channel_id == UserRow.id,
            SubscriptionRow.subscriber_id == viewer_id,
        )
        stmt = select(
            UserRow,
            subscribers_count.label("subscribers_count"),
            subscribed_to_count.label("channels_subscribed_to_count"),
            is_subscribed.label("is_subscribed"),
        ).where(UserRow.username == username.lower())
        with self.Session() as session:
            result = session.execute(stmt).first()
            if not result:
                return None
            row, subscribers, subscribed_to, subscribed = result
            return ChannelProfile(
                user=self._to_user_record(session, row),
                subscribers_count=int(subscribers or 0),
                channels_subscribed_to_count=int(subscribed_to or 0),
                is_subscribed=viewer_id is not None and bool(subscribed),
            )

    def get_watch_history(self, user_id: str) -> list[WatchedVideo]:
        owner = aliased(UserRow)
        stmt = (
            select(VideoRow, owner)
            .join(WatchHistoryRow, WatchHistoryRow.video_id == VideoRow.id)
            .outerjoin(owner, owner.id == VideoRow.owner_id)
            .where(WatchHistoryRow.user_id == user_id)
            .order_by(WatchHistoryRow.position)
        )
        with self.Session() as session:
            items: list[WatchedVideo] = []
            for video_row, owner_row in session.execute(stmt):
                summary = (
                    OwnerSummary(
                        full_name=owner_row.full_name,
                        username=owner_row.username,
                        avatar=owner_row.avatar,
                    )
                    if owner_row
                    else None
                )
                items.append(
                    WatchedVideo(video=self._to_video_record(video_row), owner=summary)
                )
            return items


Base = declarative_base()


class UserRow(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True)
    username = Column(String, nullable=False, unique=True, index=True)
    email = Column(String, nullable=False, unique=True, index=True)
    full_name = Column(String, nullable=False)
    avatar = Column(String, nullable=False)
    cover_image = Column(String, nullable=False, default="")
    password_hash = Column(String, nullable=False)
    refresh_token = Column(String, nullable=True)
    created_at = Column(Float, nullable=False)
    updated_at = Column(Float, nullable=False)


class VideoRow(Base):
    __tablename__ = "videos"

    id = Column(String, primary_key=True)
    owner_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(String, nullable=False, default="")
    video_file = Column(String, nullable=False)
    thumbnail = Column(String, nullable=False)
    duration = Column(Float, nullable=False, default=0.0)
    views = Column(Integer, nullable=False, default=0)
    is_published = Column(Boolean, nullable=False, default=True)
    created_at = Column(Float, nullable=False)


class SubscriptionRow(Base):
    __tablename__ = "subscriptions"
    __table_args__ = (UniqueConstraint("subscriber_id", "channel_id"),)

    id = Column(String, primary_key=True)
    subscriber_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    channel_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(Float, nullable=False)


class WatchHistoryRow(Base):
    __tablename__ = "watch_history"

    user_id = Column(String, ForeignKey("users.id"), primary_key=True)
    video_id = Column(String, ForeignKey("videos.id"), primary_key=True)
    position = Column(Integer, nullable=False)
    watched_at = Column(Float, nullable=False)
