"""School (Einrichtung) logos stored in R2."""

from loguru import logger

from minimusiker.clients.storage import R2Storage, logo_key, validate_logo_content_type
from minimusiker.core.config import settings
from minimusiker.core.errors import ValidationError
from minimusiker.core.models import Einrichtung
from minimusiker.services.repository import Repository
from minimusiker.services.views import UploadTicket


class LogoService:
    def __init__(self, repo: Repository, storage: R2Storage):
        self.repo = repo
        self.storage = storage

    async def request_logo_upload(
        self, einrichtung_id: str, filename: str, content_type: str
    ) -> UploadTicket:
        validate_logo_content_type(content_type)
        if not filename:
            raise ValidationError("Filename is required")
        einrichtung = await self.repo.get(Einrichtung, einrichtung_id)
        key = logo_key(einrichtung.record_id, filename)
        url = await self.storage.presigned_put_url(key, settings.UPLOAD_URL_EXPIRY)
        return UploadTicket(upload_url=url, r2_key=key, expires_in=settings.UPLOAD_URL_EXPIRY)

    async def confirm_logo_upload(self, einrichtung_id: str, r2_key: str) -> Einrichtung:
        """Point the Einrichtung at its new logo and drop the previous object."""
        einrichtung = await self.repo.get(Einrichtung, einrichtung_id)
        if not r2_key.startswith(f"logos/{einrichtung.record_id}/"):
            raise ValidationError("Invalid upload key for this logo")
        if not await self.storage.object_exists(r2_key):
            raise ValidationError("Uploaded file not found in storage")

        previous = einrichtung.logo_key
        updated = await self.repo.update(Einrichtung, einrichtung.record_id, logo_key=r2_key)
        if previous and previous != r2_key:
            await self.storage.delete_object(previous)
        logger.info(f"Logo of {einrichtung.name or einrichtung.record_id} set to {r2_key}")
        return updated

    async def get_logo_url(self, einrichtung_id: str) -> str:
        einrichtung = await self.repo.get(Einrichtung, einrichtung_id)
        if not einrichtung.logo_key:
            return ""
        return await self.storage.presigned_get_url(
            einrichtung.logo_key, settings.DOWNLOAD_URL_EXPIRY
        )
