"""
Helpers for pushing multipart uploads to the asset host.
"""

from __future__ import annotations

import logging
import os
import tempfile
from typing import Optional

from fastapi import UploadFile

from vidtube.errors import ApiError
from vidtube.storage import AssetStorage, AssetUploadError

logger = logging.getLogger(__name__)


def _has_file(upload: Optional[UploadFile]) -> bool:
    return upload is not None and bool(upload.filename)


async def store_upload(
    storage: AssetStorage,
    upload: Optional[UploadFile],
    *,
    folder: str,
    label: str,
    media_type: str = "image",
    max_bytes: Optional[int] = None,
    required: bool = True,
) -> str:
    """
    Validate ``upload`` and push it to the asset host, returning its public URL.

    Returns an empty string when the file is optional and absent. The upload is
    staged in a temporary file that is removed whether or not the push succeeds.
    """
    if not _has_file(upload):
        if required:
            raise ApiError(400, f"{label} file is required")
        return ""

    content_type = upload.content_type or ""
    if not content_type.startswith(f"{media_type}/"):
        raise ApiError(400, f"{label} must be a {media_type} file")

    data = await upload.read()
    if not data:
        raise ApiError(400, f"{label} file is empty")
    if max_bytes is not None and len(data) > max_bytes:
        raise ApiError(413, f"{label} file is too large")

    _, suffix = os.path.splitext(upload.filename)
    with tempfile.NamedTemporaryFile(suffix=suffix, delete=True) as temp_file:
        temp_file.write(data)
        temp_file.flush()
        try:
            url = storage.upload_file(
                temp_file.name, folder, upload.filename, content_type=content_type
            )
        except AssetUploadError as exc:
            logger.warning("Upload of %s failed: %s", label, exc)
            raise ApiError(400, f"Error while uploading {label.lower()}") from exc

    logger.info("Stored %s as %s", label.lower(), url)
    return url


def discard_asset(storage: AssetStorage, url: str) -> None:
    """Delete a previously stored asset; an empty or foreign URL is ignored."""
    if not url:
        return
    if storage.delete_url(url):
        logger.info("Removed replaced asset %s", url)
