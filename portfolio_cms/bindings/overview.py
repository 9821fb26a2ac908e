"""
Dashboard overview: aggregate counts, fetched without transferring rows.
"""
import asyncio

from portfolio_cms.bindings.base import Binding
from portfolio_cms.schemas import OverviewStats
from portfolio_cms.services.content_store import (
    CONTACT_SUBMISSIONS,
    HERO_IMAGES,
    NEWS_POSTS,
    PORTFOLIO_ITEMS,
    StoreResult,
    eq,
)


class OverviewBinding(Binding[OverviewStats]):
    collections = (HERO_IMAGES, PORTFOLIO_ITEMS, NEWS_POSTS, CONTACT_SUBMISSIONS)

    def initial_state(self) -> OverviewStats:
        return OverviewStats()

    async def _fetch(self) -> StoreResult[OverviewStats]:
        hero, portfolio, news, messages, unread = await asyncio.gather(
            self.store.count(HERO_IMAGES),
            self.store.count(PORTFOLIO_ITEMS),
            self.store.count(NEWS_POSTS),
            self.store.count(CONTACT_SUBMISSIONS),
            self.store.count(CONTACT_SUBMISSIONS, [eq("is_read", False)]),
        )
        for result in (hero, portfolio, news, messages, unread):
            if not result.ok:
                return StoreResult.failure(result.error.message)

        return StoreResult.success(OverviewStats(
            hero_images=hero.data,
            portfolio_items=portfolio.data,
            news_posts=news.data,
            messages=messages.data,
            unread_messages=unread.data,
        ))
