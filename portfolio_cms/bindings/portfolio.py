"""
Portfolio bindings: the public gallery with its category filter and the
admin screen for managing items and their media.
"""
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
from portfolio_cms.schemas import PortfolioItem, PortfolioItemDraft
from portfolio_cms.services.blob_storage import BlobStorage
from portfolio_cms.services.content_store import PORTFOLIO_ITEMS, OrderBy, eq

logger = logging.getLogger(__name__)

ALL_CATEGORIES = "all"
MEDIA_TYPES = ("image", "video", "music")


def categories_of(items: List[PortfolioItem]) -> List[str]:
    """The "all" pseudo-category followed by distinct categories in first-seen order."""
    categories = [ALL_CATEGORIES]
    for item in items:
        if item.category and item.category not in categories:
            categories.append(item.category)
    return categories


def filter_by_category(items: List[PortfolioItem], category: str) -> List[PortfolioItem]:
    if category == ALL_CATEGORIES:
        return list(items)
    return [item for item in items if item.category == category]


class PortfolioBinding(Binding[List[PortfolioItem]]):
    """Published items in display order; category filtering never re-queries."""

    collections = (PORTFOLIO_ITEMS,)

    async def _fetch(self):
        return await self.store.query(
            PORTFOLIO_ITEMS,
            [eq("is_published", True)],
            order_by=OrderBy("display_order"),
        )

    def _build(self, rows) -> List[PortfolioItem]:
        return [PortfolioItem.model_validate(row) for row in rows]

    @property
    def categories(self) -> List[str]:
        return categories_of(self._snapshot)

    def items_in(self, category: str) -> List[PortfolioItem]:
        return filter_by_category(self._snapshot, category)


class PortfolioManagementBinding(OrderedBinding):
    """All portfolio items for the admin screen."""

    collections = (PORTFOLIO_ITEMS,)

    def __init__(
        self,
        store,
        subscriptions,
        notifier,
        blobs: BlobStorage,
        bucket: str = settings.PORTFOLIO_BUCKET,
        optimize_images: bool = settings.CONVERT_UPLOADS_TO_WEBP,
    ):
        super().__init__(store, subscriptions, notifier)
        self.blobs = blobs
        self.bucket = bucket
        self.optimize_images = optimize_images

    async def _fetch(self):
        return await self.store.query(PORTFOLIO_ITEMS, order_by=OrderBy("display_order"))

    def _build(self, rows) -> List[PortfolioItem]:
        return [PortfolioItem.model_validate(row) for row in rows]

    def find(self, item_id: str) -> Optional[PortfolioItem]:
        return next((item for item in self._snapshot if item.id == item_id), None)

    @staticmethod
    def _validate(draft: PortfolioItemDraft) -> Optional[str]:
        if not draft.title.strip():
            return "Please enter a title"
        if draft.media_type not in MEDIA_TYPES:
            return f"Unsupported media type: {draft.media_type}"
        return None

    async def _upload(self, filename: str, data: bytes, is_image: bool):
        return await upload_media(
            self.blobs, self.bucket, filename, data,
            optimize_images=self.optimize_images and is_image,
        )

    async def create(
        self,
        draft: PortfolioItemDraft,
        media_filename: str,
        media_data: bytes,
        thumbnail_filename: Optional[str] = None,
        thumbnail_data: Optional[bytes] = None,
    ) -> ActionResult:
        error = self._validate(draft)
        if error is None and not media_data:
            error = "Please choose a media file to upload"
        if error:
            return self._invalid(error)

        media = await self._upload(media_filename, media_data, draft.media_type == "image")
        if not media.ok:
            return self._fail(media.error.message)

        thumbnail_url = None
        if thumbnail_data:
            thumbnail = await self._upload(thumbnail_filename or "thumbnail", thumbnail_data, True)
            if not thumbnail.ok:
                await remove_media(self.blobs, self.bucket, media.data)
                return self._fail(thumbnail.error.message)
            thumbnail_url = thumbnail.data

        result = await self.store.insert(PORTFOLIO_ITEMS, {
            "title": draft.title.strip(),
            "description": draft.description.strip() or None,
            "media_url": media.data,
            "media_type": draft.media_type,
            "thumbnail_url": thumbnail_url or media.data,
            "category": draft.category.strip() or None,
            "display_order": len(self._snapshot),
        })
        if not result.ok:
            for url in {media.data, thumbnail_url} - {None}:
                await remove_media(self.blobs, self.bucket, url)
            return self._fail(result.error.message)

        self.notifier.success("Item added!")
        await self.refresh()
        return ActionResult(ActionStatus.SUCCESS, "Item added!", PortfolioItem.model_validate(result.data))

    async def edit(
        self,
        item_id: str,
        draft: PortfolioItemDraft,
        media_filename: Optional[str] = None,
        media_data: Optional[bytes] = None,
    ) -> ActionResult:
        """Replace the item's metadata and, when a file is given, its media."""
        item = self.find(item_id)
        if item is None:
            return self._fail("Item not found")
        error = self._validate(draft)
        if error:
            return self._invalid(error)

        changes = {
            "title": draft.title.strip(),
            "description": draft.description.strip() or None,
            "media_type": draft.media_type,
            "category": draft.category.strip() or None,
        }
        replaced_urls = set()
        if media_data:
            media = await self._upload(media_filename or "media", media_data, draft.media_type == "image")
            if not media.ok:
                return self._fail(media.error.message)
            changes["media_url"] = media.data
            changes["thumbnail_url"] = media.data
            replaced_urls = {item.media_url, item.thumbnail_url} - {None}

        result = await self.store.update(PORTFOLIO_ITEMS, item_id, changes)
        if not result.ok:
            if "media_url" in changes:
                await remove_media(self.blobs, self.bucket, changes["media_url"])
            return self._fail(result.error.message)

        for url in replaced_urls:
            removed = await remove_media(self.blobs, self.bucket, url)
            if not removed.ok:
                logger.warning(f"Could not remove replaced media {url}: {removed.error}")

        self.notifier.success("Item updated!")
        await self.refresh()
        return ActionResult(ActionStatus.SUCCESS, "Item updated!", PortfolioItem.model_validate(result.data))

    async def toggle_published(self, item_id: str) -> ActionResult:
        item = self.find(item_id)
        if item is None:
            return self._fail("Item not found")
        return await self._mutate(
            self.store.update(PORTFOLIO_ITEMS, item_id, {"is_published": not item.is_published}),
            "Status updated",
            "Failed to update status",
        )

    async def delete(self, item_id: str, confirm: Confirm) -> ActionResult:
        item = self.find(item_id)
        if item is None:
            return self._fail("Item not found")
        if not await confirmed(confirm, "Are you sure you want to delete this item?"):
            return ActionResult.cancelled()

        for url in {item.media_url, item.thumbnail_url} - {None}:
            removed = await remove_media(self.blobs, self.bucket, url)
            if not removed.ok:
                logger.warning(f"Blob removal failed for portfolio item {item_id}: {removed.error}")

        result = await self.store.delete(PORTFOLIO_ITEMS, item_id)
        if not result.ok:
            logger.warning(f"Portfolio item {item_id} kept after its media was removed: {item.media_url}")
            return self._fail("Failed to delete")

        self.notifier.success("Item deleted")
        await self.refresh()
        return ActionResult(ActionStatus.SUCCESS, "Item deleted")
