"""
Blob storage for hero images and portfolio media.
Buckets map to Cloudinary folders and blob names to public ids; an in-memory
implementation backs development and tests.
"""
import cloudinary
import cloudinary.uploader
import cloudinary.utils
from cloudinary.exceptions import Error as CloudinaryError
from typing import Dict, Optional, Protocol, Tuple
from urllib.parse import urlparse
import asyncio
import logging
import posixpath

from portfolio_cms.config import Settings, settings
from portfolio_cms.services.content_store import StoreResult

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = {"jpg", "jpeg", "png", "gif", "webp", "avif", "bmp", "svg", "tiff"}


class BlobStorage(Protocol):
    """Operations the views need from blob storage."""

    async def upload(self, bucket: str, name: str, data: bytes) -> StoreResult[str]:
        ...

    def public_url(self, bucket: str, name: str) -> str:
        ...

    async def remove(self, bucket: str, name: str) -> StoreResult[None]:
        ...


def blob_name_from_url(url: Optional[str]) -> Optional[str]:
    """
    Recover the blob name from a public URL (its last path segment).

    Example: "https://.../hero-images/0f3a.webp" -> "0f3a.webp"
    """
    if not url:
        return None
    name = posixpath.basename(urlparse(url).path)
    return name or None


def split_extension(name: str) -> Tuple[str, str]:
    stem, _, ext = name.rpartition(".")
    if not stem:
        return name, ""
    return stem, ext.lower()


class InMemoryBlobStorage:
    """Test double for blob storage interactions."""

    def __init__(self, base_url: str = "https://storage.example.test"):
        self.base_url = base_url
        self.objects: Dict[Tuple[str, str], bytes] = {}

    async def upload(self, bucket: str, name: str, data: bytes) -> StoreResult[str]:
        if (bucket, name) in self.objects:
            return StoreResult.failure("The resource already exists", code="Duplicate")
        self.objects[(bucket, name)] = bytes(data)
        return StoreResult.success(f"{bucket}/{name}")

    def public_url(self, bucket: str, name: str) -> str:
        return f"{self.base_url}/{bucket}/{name}"

    async def remove(self, bucket: str, name: str) -> StoreResult[None]:
        self.objects.pop((bucket, name), None)
        return StoreResult.success()

    def exists(self, bucket: str, name: str) -> bool:
        return (bucket, name) in self.objects


class CloudinaryBlobStorage:
    """
    Cloudinary-backed blob storage.
    Images are stored as image resources; video and audio as video resources,
    which is how Cloudinary files audio.
    """

    def __init__(
        self,
        cloud_name: str,
        api_key: str,
        api_secret: str,
        max_retries: int = 3
    ):
        self.max_retries = max_retries
        cloudinary.config(
            cloud_name=cloud_name,
            api_key=api_key,
            api_secret=api_secret,
            secure=True  # Always use HTTPS for secure URLs
        )

    @staticmethod
    def _locate(bucket: str, name: str) -> Tuple[str, str, str]:
        stem, ext = split_extension(name)
        resource_type = "image" if ext in IMAGE_EXTENSIONS else "video"
        return f"{bucket}/{stem}", ext, resource_type

    async def upload(self, bucket: str, name: str, data: bytes) -> StoreResult[str]:
        """
        Upload bytes under bucket/name, retrying transient Cloudinary errors
        with exponential backoff (1s, 2s, 4s).
        """
        public_id, _, resource_type = self._locate(bucket, name)

        for attempt in range(self.max_retries):
            try:
                result = await asyncio.to_thread(
                    cloudinary.uploader.upload,
                    data,
                    public_id=public_id,
                    resource_type=resource_type,
                    overwrite=False,
                )
                logger.info(f"Successfully uploaded blob: {result['public_id']}")
                return StoreResult.success(result["public_id"])

            except CloudinaryError as e:
                logger.warning(f"Cloudinary upload error (attempt {attempt + 1}/{self.max_retries}): {str(e)}")
                if attempt < self.max_retries - 1:
                    await asyncio.sleep(2 ** attempt)
                    continue
                logger.error(f"Cloudinary upload failed after {self.max_retries} attempts: {str(e)}")
                return StoreResult.failure(str(e))

            except Exception as e:
                logger.error(f"Unexpected error during upload of {public_id}: {str(e)}", exc_info=True)
                return StoreResult.failure(str(e))

        return StoreResult.failure(f"Upload of {public_id} was not attempted")

    def public_url(self, bucket: str, name: str) -> str:
        public_id, ext, resource_type = self._locate(bucket, name)
        url, _ = cloudinary.utils.cloudinary_url(
            public_id,
            resource_type=resource_type,
            format=ext or None,
            secure=True,
        )
        return url

    async def remove(self, bucket: str, name: str) -> StoreResult[None]:
        public_id, _, resource_type = self._locate(bucket, name)

        for attempt in range(self.max_retries):
            try:
                # Invalidate CDN cache so the asset disappears from public URLs
                result = await asyncio.to_thread(
                    cloudinary.uploader.destroy,
                    public_id,
                    invalidate=True,
                    resource_type=resource_type,
                )
                if result.get('result') in ('ok', 'not found'):
                    logger.info(f"Deleted blob {public_id} (result: {result.get('result')})")
                    return StoreResult.success()
                logger.warning(f"Unexpected Cloudinary delete result for {public_id}: {result}")
                return StoreResult.failure(f"Failed to remove {name}: {result.get('result')}")

            except CloudinaryError as e:
                logger.warning(f"Cloudinary delete error (attempt {attempt + 1}/{self.max_retries}) for {public_id}: {str(e)}")
                if attempt < self.max_retries - 1:
                    await asyncio.sleep(2 ** attempt)
                    continue
                return StoreResult.failure(str(e))

            except Exception as e:
                logger.error(f"Unexpected error during removal of {public_id}: {str(e)}", exc_info=True)
                return StoreResult.failure(str(e))

        return StoreResult.failure(f"Removal of {public_id} was not attempted")


def validate_cloudinary_config(config: Optional[Settings] = None) -> bool:
    """
    Validate that Cloudinary is properly configured.

    Returns:
        bool: True if Cloudinary is configured, False otherwise
    """
    config = config or settings
    if not config.CLOUDINARY_CLOUD_NAME:
        logger.warning("CLOUDINARY_CLOUD_NAME not configured")
        return False
    if not config.CLOUDINARY_API_KEY:
        logger.warning("CLOUDINARY_API_KEY not configured")
        return False
    if not config.CLOUDINARY_API_SECRET:
        logger.warning("CLOUDINARY_API_SECRET not configured")
        return False

    return True
