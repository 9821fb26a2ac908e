"""
Public API routes for the portfolio site.
Read endpoints serve binding snapshots; the contact form is the only write.
"""
from fastapi import APIRouter, Depends, Query, Request, status
from typing import List
import logging

from portfolio_cms.bindings.portfolio import ALL_CATEGORIES
from portfolio_cms.dependencies import ContentContext, get_context, get_settled_context
from portfolio_cms.routes.responses import action_response
from portfolio_cms.schemas import (
    ContactDraft,
    HeroResponse,
    NewsCard,
    PortfolioResponse,
    SiteSettingsForm,
)
from portfolio_cms.utils.rate_limit import RATE_LIMITS, limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Public"])


@router.get("/hero", response_model=HeroResponse)
async def get_hero(context: ContentContext = Depends(get_settled_context)):
    """
    Get the hero carousel: active images in display order, the image
    currently shown and the artist name to overlay.
    """
    hero = context.hero
    return HeroResponse(
        artist_name=context.site_settings.snapshot.artist_name,
        images=hero.snapshot,
        current_index=hero.current_index,
        rotation_seconds=hero.rotation_seconds,
    )


@router.get("/portfolio", response_model=PortfolioResponse)
async def get_portfolio(
    category: str = Query(ALL_CATEGORIES, description="Category to show, or 'all'"),
    context: ContentContext = Depends(get_settled_context)
):
    """
    Get published portfolio items, optionally narrowed to one category.

    Args:
        category: Category name from the returned category list

    Returns:
        PortfolioResponse: Category list plus the items in the selected category
    """
    portfolio = context.portfolio
    return PortfolioResponse(
        categories=portfolio.categories,
        selected_category=category,
        items=portfolio.items_in(category),
    )


@router.get("/news", response_model=List[NewsCard])
async def get_news(context: ContentContext = Depends(get_settled_context)):
    """Get the latest published news posts, newest first."""
    return context.news.cards()


@router.get("/site-settings", response_model=SiteSettingsForm)
async def get_site_settings(context: ContentContext = Depends(get_settled_context)):
    return context.site_settings.snapshot


@router.post("/contact", status_code=status.HTTP_201_CREATED)
@limiter.limit(RATE_LIMITS["contact"])
async def submit_contact(
    request: Request,
    draft: ContactDraft,
    context: ContentContext = Depends(get_context)
):
    """
    Submit the public contact form.

    Returns:
        dict: Action result with the stored submission

    Raises:
        HTTPException: 400 if a required field is empty or the email is invalid,
            500 if the submission could not be stored
    """
    result = await context.contact_form.submit(draft)
    if result.ok:
        logger.info(f"Contact submission received from {draft.email.strip()}")
    return action_response(result)
