"""
Hero carousel bindings: the public rotating carousel and its admin screen.
"""
import asyncio
import contextlib
import logging
from typing import List, Optional

from portfolio_cms.bindings.base import (
    ActionResult,
    ActionStatus,
    Binding,
    Confirm,
    confirmed,
)
from portfolio_cms.bindings.ordering import OrderedBinding
from portfolio_cms.bindings.uploads import remove_media, upload_media
from portfolio_cms.config import settings
from portfolio_cms.schemas import HeroImage, HeroImageDraft
from portfolio_cms.services.blob_storage import BlobStorage
from portfolio_cms.services.content_store import HERO_IMAGES, OrderBy, eq

logger = logging.getLogger(__name__)


class HeroBinding(Binding[List[HeroImage]]):
    """
    Active hero images in display order, plus the carousel position.

    The position advances every rotation_seconds while more than one image
    is active and goes back to 0 whenever the number of images changes.
    """

    collections = (HERO_IMAGES,)

    def __init__(self, store, subscriptions, notifier, rotation_seconds: float = settings.HERO_ROTATION_SECONDS):
        super().__init__(store, subscriptions, notifier)
        self.rotation_seconds = rotation_seconds
        self.current_index = 0
        self._rotation_task: Optional[asyncio.Task] = None

    async def _fetch(self):
        return await self.store.query(
            HERO_IMAGES,
            [eq("is_active", True)],
            order_by=OrderBy("display_order"),
        )

    def _build(self, rows) -> List[HeroImage]:
        return [HeroImage.model_validate(row) for row in rows]

    def _apply(self, snapshot: List[HeroImage]) -> None:
        if len(snapshot) != len(self._snapshot):
            self.current_index = 0
        super()._apply(snapshot)

    @property
    def current_image(self) -> Optional[HeroImage]:
        if not self._snapshot:
            return None
        return self._snapshot[self.current_index]

    def advance(self) -> int:
        if len(self._snapshot) > 1:
            self.current_index = (self.current_index + 1) % len(self._snapshot)
        return self.current_index

    async def mount(self) -> List[HeroImage]:
        snapshot = await super().mount()
        if self._rotation_task is None or self._rotation_task.done():
            self._rotation_task = asyncio.get_running_loop().create_task(self._rotate())
        return snapshot

    async def unmount(self) -> None:
        if self._rotation_task is not None:
            self._rotation_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._rotation_task
            self._rotation_task = None
        await super().unmount()

    async def _rotate(self) -> None:
        while True:
            await asyncio.sleep(self.rotation_seconds)
            self.advance()


class HeroManagementBinding(OrderedBinding):
    """All hero images for the admin screen, with upload/toggle/delete."""

    collections = (HERO_IMAGES,)

    def __init__(
        self,
        store,
        subscriptions,
        notifier,
        blobs: BlobStorage,
        bucket: str = settings.HERO_BUCKET,
        optimize_images: bool = settings.CONVERT_UPLOADS_TO_WEBP,
    ):
        super().__init__(store, subscriptions, notifier)
        self.blobs = blobs
        self.bucket = bucket
        self.optimize_images = optimize_images

    async def _fetch(self):
        return await self.store.query(HERO_IMAGES, order_by=OrderBy("display_order"))

    def _build(self, rows) -> List[HeroImage]:
        return [HeroImage.model_validate(row) for row in rows]

    def find(self, image_id: str) -> Optional[HeroImage]:
        return next((image for image in self._snapshot if image.id == image_id), None)

    async def upload(self, filename: str, data: bytes, draft: HeroImageDraft) -> ActionResult:
        """Upload the file, then add it at the end of the carousel."""
        if not data:
            return self._invalid("Please choose an image to upload")

        uploaded = await upload_media(self.blobs, self.bucket, filename, data, self.optimize_images)
        if not uploaded.ok:
            return self._fail(uploaded.error.message)

        result = await self.store.insert(HERO_IMAGES, {
            "image_url": uploaded.data,
            "title": draft.title.strip() or None,
            "subtitle": draft.subtitle.strip() or None,
            "is_active": draft.is_active,
            "display_order": len(self._snapshot),
        })
        if not result.ok:
            # Nothing references the blob yet, so drop it
            await remove_media(self.blobs, self.bucket, uploaded.data)
            return self._fail(result.error.message)

        message = "Hero image uploaded successfully!"
        self.notifier.success(message)
        await self.refresh()
        return ActionResult(ActionStatus.SUCCESS, message, HeroImage.model_validate(result.data))

    async def toggle_active(self, image_id: str) -> ActionResult:
        image = self.find(image_id)
        if image is None:
            return self._fail("Image not found")
        return await self._mutate(
            self.store.update(HERO_IMAGES, image_id, {"is_active": not image.is_active}),
            "Status updated",
            "Failed to update status",
        )

    async def delete(self, image_id: str, confirm: Confirm) -> ActionResult:
        """Remove the blob, then the row. A failed row delete leaves a dangling image_url."""
        image = self.find(image_id)
        if image is None:
            return self._fail("Image not found")
        if not await confirmed(confirm, "Are you sure you want to delete this image?"):
            return ActionResult.cancelled()

        removed = await remove_media(self.blobs, self.bucket, image.image_url)
        if not removed.ok:
            logger.warning(f"Blob removal failed for hero image {image_id}, deleting row anyway: {removed.error}")

        result = await self.store.delete(HERO_IMAGES, image_id)
        if not result.ok:
            logger.warning(f"Hero image {image_id} kept after its blob was removed: {image.image_url}")
            return self._fail(result.error.message)

        self.notifier.success("Image deleted")
        await self.refresh()
        return ActionResult(ActionStatus.SUCCESS, "Image deleted")
