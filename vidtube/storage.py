"""
Asset storage for user images and videos: S3-compatible bucket and in-memory testing.
"""

from __future__ import annotations

import logging
import os
import uuid
from dataclasses import dataclass
from typing import Optional, Protocol
from urllib.parse import urlparse

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger(__name__)


class AssetUploadError(Exception):
    """Raised when an asset could not be pushed to the host."""


class AssetStorage(Protocol):
    """Defines the operations the API needs from the asset host."""

    def upload_file(
        self, src_path: str, folder: str, filename: str, content_type: Optional[str] = None
    ) -> str:
        ...

    def delete_url(self, url: str) -> bool:
        ...


def build_object_key(folder: str, filename: str) -> str:
    """Return a unique key under ``folder`` keeping the original extension."""
    _, ext = os.path.splitext(filename or "")
    return f"{folder.strip('/')}/{uuid.uuid4().hex}{ext.lower()}"


def key_from_url(base_url: str, url: str) -> Optional[str]:
    """
    Extract the object key from a public asset URL.

    Returns None when the URL does not point inside ``base_url``.
    """
    if not url:
        return None
    base = urlparse(base_url.rstrip("/"))
    parsed = urlparse(url)
    if (parsed.scheme, parsed.netloc) != (base.scheme, base.netloc):
        return None
    prefix = base.path.rstrip("/") + "/"
    if not parsed.path.startswith(prefix):
        return None
    key = parsed.path[len(prefix):]
    return key or None


@dataclass
class InMemoryAssetStorage:
    """Test double for asset host interactions."""

    base_url: str = "https://assets.example.test/media"
    stored_objects: dict = None

    def __post_init__(self):
        if self.stored_objects is None:
            self.stored_objects = {}

    def upload_file(
        self, src_path: str, folder: str, filename: str, content_type: Optional[str] = None
    ) -> str:
        key = build_object_key(folder, filename)
        with open(src_path, "rb") as f:
            self.stored_objects[key] = f.read()
        return f"{self.base_url}/{key}"

    def delete_url(self, url: str) -> bool:
        key = key_from_url(self.base_url, url)
        if key is None or key not in self.stored_objects:
            return False
        del self.stored_objects[key]
        return True

    def reset(self) -> None:
        self.stored_objects.clear()


@dataclass
class S3AssetStorage:
    """
    Asset host backed by an S3-compatible bucket with public-read objects.
    """

    bucket: str
    region: str
    endpoint: str
    access_key_id: str
    secret_access_key: str
    public_base_url: str = ""

    def __post_init__(self):
        config = Config(
            s3={"addressing_style": "virtual"},
            signature_version="s3v4",
        )
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint or None,
            region_name=self.region or None,
            aws_access_key_id=self.access_key_id or None,
            aws_secret_access_key=self.secret_access_key or None,
            config=config,
        )
        if not self.public_base_url:
            host = urlparse(self.endpoint).netloc if self.endpoint else "s3.amazonaws.com"
            self.public_base_url = f"https://{self.bucket}.{host}"

    def upload_file(
        self, src_path: str, folder: str, filename: str, content_type: Optional[str] = None
    ) -> str:
        key = build_object_key(folder, filename)
        extra_args = {"ContentType": content_type} if content_type else None
        try:
            self._client.upload_file(src_path, self.bucket, key, ExtraArgs=extra_args)
        except (BotoCoreError, ClientError) as exc:
            raise AssetUploadError(f"upload of {filename!r} failed") from exc
        url = f"{self.public_base_url.rstrip('/')}/{key}"
        logger.info("Uploaded asset %s", url)
        return url

    def delete_url(self, url: str) -> bool:
        key = key_from_url(self.public_base_url, url)
        if key is None:
            return False
        try:
            self._client.delete_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError):
            # Callers only delete after the replacement is stored.
            logger.exception("Failed to delete asset %s", key)
            return False
        logger.info("Deleted asset %s", key)
        return True
