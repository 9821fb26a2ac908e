"""
CMS API routes for the admin dashboard.
Every endpoint requires a signed-in admin; see dependencies.require_admin.
"""
from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from typing import List, Optional
import logging

from portfolio_cms.bindings.messages import MessageFilter
from portfolio_cms.dependencies import ContentContext, get_settled_context, require_admin
from portfolio_cms.routes.responses import action_response, confirm_flag
from portfolio_cms.schemas import (
    Credentials,
    HeroImage,
    HeroImageDraft,
    MessagesResponse,
    NewsPost,
    NewsPostDraft,
    OverviewStats,
    PortfolioItem,
    PortfolioItemDraft,
    ReorderRequest,
    SiteSettingsForm,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cms", tags=["CMS"], dependencies=[Depends(require_admin)])

CONFIRM_QUERY = Query(False, description="Must be true to actually delete")


def _require_image(file: UploadFile) -> None:
    if not file.content_type or not file.content_type.startswith('image/'):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"error": "Invalid file type", "detail": f"File '{file.filename}' is not a valid image file"}
        )


# ---------------------------------------------------------------------------
# Overview
# ---------------------------------------------------------------------------
@router.get("/overview", response_model=OverviewStats)
async def get_overview(context: ContentContext = Depends(get_settled_context)):
    """Get dashboard counts for every content collection."""
    return context.overview.snapshot


# ---------------------------------------------------------------------------
# Hero images
# ---------------------------------------------------------------------------
@router.get("/hero-images", response_model=List[HeroImage])
async def list_hero_images(context: ContentContext = Depends(get_settled_context)):
    """Get all hero images, active or not, in display order."""
    return context.hero_admin.snapshot


@router.post("/hero-images", status_code=status.HTTP_201_CREATED)
async def upload_hero_image(
    file: UploadFile = File(...),
    title: str = Form(""),
    subtitle: str = Form(""),
    is_active: bool = Form(True),
    context: ContentContext = Depends(get_settled_context)
):
    """
    Upload a hero image and append it to the carousel.

    Raises:
        HTTPException: 400 if the file is not an image, 500 if upload or save fails
    """
    _require_image(file)
    data = await file.read()
    draft = HeroImageDraft(title=title, subtitle=subtitle, is_active=is_active)
    return action_response(await context.hero_admin.upload(file.filename or "image", data, draft))


@router.put("/hero-images/reorder")
async def reorder_hero_images(
    request: ReorderRequest,
    context: ContentContext = Depends(get_settled_context)
):
    """Move the given hero images to the front, in the given order."""
    return action_response(await context.hero_admin.reorder(request.ids))


@router.patch("/hero-images/{image_id}/toggle-active")
async def toggle_hero_image(image_id: str, context: ContentContext = Depends(get_settled_context)):
    return action_response(await context.hero_admin.toggle_active(image_id))


@router.delete("/hero-images/{image_id}")
async def delete_hero_image(
    image_id: str,
    confirm: bool = CONFIRM_QUERY,
    context: ContentContext = Depends(get_settled_context)
):
    """Delete a hero image and its stored file. Without confirm=true nothing happens."""
    return action_response(await context.hero_admin.delete(image_id, confirm_flag(confirm)))


# ---------------------------------------------------------------------------
# Portfolio items
# ---------------------------------------------------------------------------
@router.get("/portfolio-items", response_model=List[PortfolioItem])
async def list_portfolio_items(context: ContentContext = Depends(get_settled_context)):
    return context.portfolio_admin.snapshot


@router.post("/portfolio-items", status_code=status.HTTP_201_CREATED)
async def create_portfolio_item(
    media: UploadFile = File(...),
    thumbnail: Optional[UploadFile] = File(None),
    title: str = Form(""),
    description: str = Form(""),
    media_type: str = Form("image"),
    category: str = Form(""),
    context: ContentContext = Depends(get_settled_context)
):
    """
    Create a portfolio item with its media file and optional thumbnail.

    Raises:
        HTTPException: 400 if the form is incomplete, 500 if upload or save fails
    """
    draft = PortfolioItemDraft(title=title, description=description, media_type=media_type, category=category)
    thumbnail_data = None
    if thumbnail is not None:
        _require_image(thumbnail)
        thumbnail_data = await thumbnail.read()

    result = await context.portfolio_admin.create(
        draft,
        media.filename or "media",
        await media.read(),
        thumbnail_filename=thumbnail.filename if thumbnail is not None else None,
        thumbnail_data=thumbnail_data,
    )
    return action_response(result)


@router.put("/portfolio-items/reorder")
async def reorder_portfolio_items(
    request: ReorderRequest,
    context: ContentContext = Depends(get_settled_context)
):
    return action_response(await context.portfolio_admin.reorder(request.ids))


@router.put("/portfolio-items/{item_id}")
async def update_portfolio_item(
    item_id: str,
    media: Optional[UploadFile] = File(None),
    title: str = Form(""),
    description: str = Form(""),
    media_type: str = Form("image"),
    category: str = Form(""),
    context: ContentContext = Depends(get_settled_context)
):
    """Update a portfolio item's details; a new media file replaces the old one."""
    draft = PortfolioItemDraft(title=title, description=description, media_type=media_type, category=category)
    media_data = await media.read() if media is not None else None
    result = await context.portfolio_admin.edit(
        item_id,
        draft,
        media_filename=media.filename if media is not None else None,
        media_data=media_data,
    )
    return action_response(result)


@router.patch("/portfolio-items/{item_id}/toggle-published")
async def toggle_portfolio_item(item_id: str, context: ContentContext = Depends(get_settled_context)):
    return action_response(await context.portfolio_admin.toggle_published(item_id))


@router.delete("/portfolio-items/{item_id}")
async def delete_portfolio_item(
    item_id: str,
    confirm: bool = CONFIRM_QUERY,
    context: ContentContext = Depends(get_settled_context)
):
    return action_response(await context.portfolio_admin.delete(item_id, confirm_flag(confirm)))


# ---------------------------------------------------------------------------
# News posts
# ---------------------------------------------------------------------------
@router.get("/news-posts", response_model=List[NewsPost])
async def list_news_posts(context: ContentContext = Depends(get_settled_context)):
    """Get every news post, drafts included, newest first."""
    return context.news_admin.snapshot


@router.post("/news-posts", status_code=status.HTTP_201_CREATED)
async def create_news_post(draft: NewsPostDraft, context: ContentContext = Depends(get_settled_context)):
    return action_response(await context.news_admin.create(draft))


@router.put("/news-posts/{post_id}")
async def update_news_post(
    post_id: str,
    draft: NewsPostDraft,
    context: ContentContext = Depends(get_settled_context)
):
    return action_response(await context.news_admin.edit(post_id, draft))


@router.patch("/news-posts/{post_id}/toggle-published")
async def toggle_news_post(post_id: str, context: ContentContext = Depends(get_settled_context)):
    return action_response(await context.news_admin.toggle_published(post_id))


@router.delete("/news-posts/{post_id}")
async def delete_news_post(
    post_id: str,
    confirm: bool = CONFIRM_QUERY,
    context: ContentContext = Depends(get_settled_context)
):
    return action_response(await context.news_admin.delete(post_id, confirm_flag(confirm)))


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------
@router.get("/messages", response_model=MessagesResponse)
async def list_messages(
    which: MessageFilter = Query(MessageFilter.ALL, alias="filter", description="all, unread or read"),
    context: ContentContext = Depends(get_settled_context)
):
    """
    Get contact submissions, newest first.

    Args:
        which: Which messages to include; counts always cover every message
    """
    messages = context.messages
    return MessagesResponse(
        filter=which.value,
        total_count=len(messages.snapshot),
        unread_count=messages.unread_count,
        messages=messages.messages_in(which),
    )


@router.patch("/messages/{message_id}/toggle-read")
async def toggle_message(message_id: str, context: ContentContext = Depends(get_settled_context)):
    return action_response(await context.messages.toggle_read(message_id))


@router.delete("/messages/{message_id}")
async def delete_message(
    message_id: str,
    confirm: bool = CONFIRM_QUERY,
    context: ContentContext = Depends(get_settled_context)
):
    return action_response(await context.messages.delete(message_id, confirm_flag(confirm)))


# ---------------------------------------------------------------------------
# Site settings
# ---------------------------------------------------------------------------
@router.get("/site-settings", response_model=SiteSettingsForm)
async def get_site_settings_form(context: ContentContext = Depends(get_settled_context)):
    """Get the settings form; after a failed save it still holds the unsaved values."""
    return context.site_settings.form


@router.put("/site-settings")
async def save_site_settings(form: SiteSettingsForm, context: ContentContext = Depends(get_settled_context)):
    """
    Save every setting.

    Raises:
        HTTPException: 500 if a key could not be saved; keys before it stay saved
    """
    return action_response(await context.site_settings.save(form))


# ---------------------------------------------------------------------------
# Admin accounts
# ---------------------------------------------------------------------------
@router.post("/users", status_code=status.HTTP_201_CREATED)
async def create_admin_user(credentials: Credentials, context: ContentContext = Depends(get_settled_context)):
    """Create another admin account."""
    return action_response(await context.users.create_admin(credentials))
