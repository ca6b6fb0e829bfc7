"""
Profile photo storage on Cloudinary.
"""

import logging

import cloudinary.uploader
from fastapi import HTTPException
from fastapi.concurrency import run_in_threadpool

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = {"image/jpeg", "image/png", "image/webp", "image/gif"}
MAX_IMAGE_BYTES = 5 * 1024 * 1024
UPLOAD_FOLDER = "academy/avatars"


class CloudinaryStorage:
    def __init__(self, settings):
        self.configured = bool(
            settings.cloudinary_cloud_name
            and settings.cloudinary_api_key
            and settings.cloudinary_api_secret
        )
        self._config = {
            "cloud_name": settings.cloudinary_cloud_name,
            "api_key": settings.cloudinary_api_key,
            "api_secret": settings.cloudinary_api_secret,
            "secure": True,
        }

    async def upload_image(self, content: bytes, public_id: str) -> str:
        """Upload bytes and return the public https URL"""
        if not self.configured:
            raise HTTPException(status_code=503, detail="Image storage is not configured")

        try:
            result = await run_in_threadpool(
                cloudinary.uploader.upload,
                content,
                folder=UPLOAD_FOLDER,
                public_id=public_id,
                overwrite=True,
                resource_type="image",
                **self._config,
            )
        except Exception as e:
            logger.warning("Cloudinary upload failed for %s: %s", public_id, e)
            raise HTTPException(status_code=502, detail="Image upload failed")

        return result.get("secure_url") or result.get("url")


def validate_image(content_type: str, content: bytes):
    if content_type not in ALLOWED_IMAGE_TYPES:
        raise HTTPException(status_code=400, detail=f"File type {content_type} not allowed.")
    if len(content) > MAX_IMAGE_BYTES:
        raise HTTPException(status_code=413, detail="Payload too large. Max 5MB allowed.")
