"""
Upload helper shared by the hero and portfolio management bindings.
"""
import logging
import uuid
from typing import Optional

from portfolio_cms.services.blob_storage import BlobStorage, blob_name_from_url
from portfolio_cms.services.content_store import StoreResult
from portfolio_cms.utils.image_converter import optimize_image_upload

logger = logging.getLogger(__name__)


async def upload_media(
    blobs: BlobStorage,
    bucket: str,
    filename: str,
    data: bytes,
    optimize_images: bool = False,
) -> StoreResult[str]:
    """
    Store the file under a random name and return its public URL.
    Images are re-encoded as WebP first when optimize_images is set.
    """
    if optimize_images:
        ext, data = optimize_image_upload(filename, data)
    else:
        ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else "bin"

    name = f"{uuid.uuid4().hex}.{ext}"
    result = await blobs.upload(bucket, name, data)
    if not result.ok:
        logger.error(f"Upload of {filename} to {bucket} failed: {result.error}")
        return StoreResult.failure(result.error.message)

    url = blobs.public_url(bucket, name)
    logger.info(f"Uploaded {filename} to {bucket} as {name}")
    return StoreResult.success(url)


async def remove_media(blobs: BlobStorage, bucket: str, url: Optional[str]) -> StoreResult[None]:
    """Remove the blob a public URL points at; URLs without a name are skipped."""
    name = blob_name_from_url(url)
    if not name:
        logger.warning(f"Could not derive a blob name from {url!r}, skipping removal")
        return StoreResult.success()
    return await blobs.remove(bucket, name)
