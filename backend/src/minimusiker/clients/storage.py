"""R2 object storage: presigned URLs and key layout.

Binary audio never passes through the API. The browser PUTs straight to a
presigned URL and then confirms the upload; playback and downloads use
presigned GET URLs.

Key layout:
    recordings/{eventId}/{classId}/{songId}/raw/{timestamp}_{filename}
    recordings/{eventId}/{classId}/{songId}/final/final_{timestamp}.{ext}
    logos/{einrichtungId}/logo.{ext}
"""

import asyncio
import re
import time
from datetime import timedelta
from typing import Optional
from urllib.parse import urlparse

from loguru import logger
from minio import Minio
from minio.error import S3Error

from minimusiker.core.config import settings
from minimusiker.core.errors import StorageError, ValidationError

ALLOWED_AUDIO_TYPES = {
    "audio/mpeg",
    "audio/mp3",
    "audio/wav",
    "audio/x-wav",
    "audio/mp4",
    "audio/aac",
    "audio/x-m4a",
}

ALLOWED_LOGO_TYPES = {"image/png", "image/jpeg", "image/svg+xml", "image/webp"}

_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-z0-9.-]")


def sanitize_filename(filename: str) -> str:
    """Lowercase, replace anything outside ``[a-z0-9.-]`` and cap at 50 chars."""
    return _UNSAFE_FILENAME_CHARS.sub("_", filename.lower())[:50]


def file_extension(filename: str, default: str = "mp3") -> str:
    return filename.rsplit(".", 1)[-1].lower() if "." in filename else default


def _now_ms() -> int:
    return int(time.time() * 1000)


def raw_audio_key(
    event_id: str,
    class_id: str,
    song_id: str,
    filename: str,
    timestamp: Optional[int] = None,
) -> str:
    ts = timestamp if timestamp is not None else _now_ms()
    return (
        f"recordings/{event_id}/{class_id}/{song_id}/raw/"
        f"{ts}_{sanitize_filename(filename)}"
    )


def final_audio_key(
    event_id: str,
    class_id: str,
    song_id: str,
    filename: str,
    timestamp: Optional[int] = None,
) -> str:
    ts = timestamp if timestamp is not None else _now_ms()
    return (
        f"recordings/{event_id}/{class_id}/{song_id}/final/"
        f"final_{ts}.{file_extension(filename)}"
    )


def logo_key(einrichtung_id: str, filename: str) -> str:
    return f"logos/{einrichtung_id}/logo.{file_extension(filename, 'png')}"


def validate_audio_content_type(content_type: str) -> None:
    if content_type not in ALLOWED_AUDIO_TYPES:
        raise ValidationError("Invalid file type. Allowed: MP3, WAV, M4A/AAC")


def validate_logo_content_type(content_type: str) -> None:
    if content_type not in ALLOWED_LOGO_TYPES:
        raise ValidationError("Invalid file type. Allowed: PNG, JPEG, SVG, WebP")


class R2Storage:
    """Presigned URL access to the R2 bucket through the S3 API."""

    def __init__(self, client: Optional[Minio] = None, bucket: Optional[str] = None):
        """Initialize storage.

        Args:
            client: Optional preconfigured Minio client; built lazily from
                    settings when omitted.
            bucket: Bucket name, defaults to settings.
        """
        self._client = client
        self.bucket = bucket or settings.R2_BUCKET_NAME

    def _ensure_client(self) -> Minio:
        if self._client is None:
            if not settings.R2_ENDPOINT:
                raise StorageError("R2 storage is not configured")
            parsed = urlparse(settings.R2_ENDPOINT)
            self._client = Minio(
                parsed.netloc or parsed.path,
                access_key=settings.R2_ACCESS_KEY_ID,
                secret_key=settings.R2_SECRET_ACCESS_KEY,
                secure=parsed.scheme != "http",
                region=settings.R2_REGION,
            )
        return self._client

    async def presigned_put_url(self, key: str, expires: Optional[int] = None) -> str:
        client = self._ensure_client()
        seconds = expires or settings.UPLOAD_URL_EXPIRY
        try:
            return await asyncio.to_thread(
                client.presigned_put_object,
                self.bucket,
                key,
                expires=timedelta(seconds=seconds),
            )
        except S3Error as e:
            logger.error(f"Failed to presign upload for {key}: {e}")
            raise StorageError(f"Failed to generate upload URL: {e}") from e

    async def presigned_get_url(
        self,
        key: str,
        expires: Optional[int] = None,
        download_name: Optional[str] = None,
    ) -> str:
        """Signed GET URL; ``download_name`` forces an attachment download."""
        client = self._ensure_client()
        seconds = expires or settings.PREVIEW_URL_EXPIRY
        headers = None
        if download_name:
            headers = {
                "response-content-disposition": f'attachment; filename="{download_name}"'
            }
        try:
            return await asyncio.to_thread(
                client.presigned_get_object,
                self.bucket,
                key,
                expires=timedelta(seconds=seconds),
                response_headers=headers,
            )
        except S3Error as e:
            logger.error(f"Failed to presign download for {key}: {e}")
            raise StorageError(f"Failed to generate download URL: {e}") from e

    async def object_exists(self, key: str) -> bool:
        client = self._ensure_client()
        try:
            await asyncio.to_thread(client.stat_object, self.bucket, key)
            return True
        except S3Error as e:
            if e.code in ("NoSuchKey", "NoSuchObject", "NotFound"):
                return False
            logger.error(f"Failed to stat {key}: {e}")
            raise StorageError(f"Failed to check object: {e}") from e

    async def delete_object(self, key: str) -> None:
        client = self._ensure_client()
        try:
            await asyncio.to_thread(client.remove_object, self.bucket, key)
            logger.info(f"Deleted R2 object {key}")
        except S3Error as e:
            logger.error(f"Failed to delete {key}: {e}")
            raise StorageError(f"Failed to delete object: {e}") from e
