"""
News bindings: the public feed of recent posts and the admin editor.
"""
from typing import List, Optional

from portfolio_cms.bindings.base import ActionResult, Binding, Confirm, confirmed
from portfolio_cms.config import settings
from portfolio_cms.schemas import NewsCard, NewsPost, NewsPostDraft
from portfolio_cms.services.content_store import NEWS_POSTS, OrderBy, eq

NEWEST_FIRST = OrderBy("published_at", descending=True)


def display_excerpt(post: NewsPost, length: int = settings.NEWS_EXCERPT_LENGTH) -> str:
    """The excerpt, or the content cut to length when there is none."""
    text = post.excerpt or post.content
    if len(text) <= length:
        return text
    return text[:length].rstrip() + "…"


class NewsBinding(Binding[List[NewsPost]]):
    """Most recent published posts, newest first."""

    collections = (NEWS_POSTS,)

    def __init__(self, store, subscriptions, notifier, limit: int = settings.NEWS_LIMIT):
        super().__init__(store, subscriptions, notifier)
        self.limit = limit

    async def _fetch(self):
        return await self.store.query(
            NEWS_POSTS,
            [eq("is_published", True)],
            order_by=NEWEST_FIRST,
            limit=self.limit,
        )

    def _build(self, rows) -> List[NewsPost]:
        return [NewsPost.model_validate(row) for row in rows]

    def cards(self) -> List[NewsCard]:
        return [
            NewsCard(**post.model_dump(), display_excerpt=display_excerpt(post))
            for post in self._snapshot
        ]


class NewsManagementBinding(Binding[List[NewsPost]]):
    """Every post, newest first, with create/edit/publish/delete."""

    collections = (NEWS_POSTS,)

    async def _fetch(self):
        return await self.store.query(NEWS_POSTS, order_by=NEWEST_FIRST)

    def _build(self, rows) -> List[NewsPost]:
        return [NewsPost.model_validate(row) for row in rows]

    def find(self, post_id: str) -> Optional[NewsPost]:
        return next((post for post in self._snapshot if post.id == post_id), None)

    @staticmethod
    def _validate(draft: NewsPostDraft) -> Optional[str]:
        if not draft.title.strip():
            return "Please enter a title"
        if not draft.content.strip():
            return "Please enter some content"
        return None

    @staticmethod
    def _fields(draft: NewsPostDraft) -> dict:
        return {
            "title": draft.title.strip(),
            "content": draft.content,
            "excerpt": draft.excerpt.strip() or None,
            "image_url": draft.image_url.strip() or None,
        }

    async def create(self, draft: NewsPostDraft) -> ActionResult:
        error = self._validate(draft)
        if error:
            return self._invalid(error)
        record = {**self._fields(draft), "is_published": draft.is_published}
        return await self._mutate(self.store.insert(NEWS_POSTS, record), "Post created!")

    async def edit(self, post_id: str, draft: NewsPostDraft) -> ActionResult:
        """Full replace of title, content, excerpt and image; the publish flag is left alone."""
        if self.find(post_id) is None:
            return self._fail("Post not found")
        error = self._validate(draft)
        if error:
            return self._invalid(error)
        return await self._mutate(
            self.store.update(NEWS_POSTS, post_id, self._fields(draft)),
            "Post updated!",
        )

    async def toggle_published(self, post_id: str) -> ActionResult:
        post = self.find(post_id)
        if post is None:
            return self._fail("Post not found")
        return await self._mutate(
            self.store.update(NEWS_POSTS, post_id, {"is_published": not post.is_published}),
            "Status updated",
            "Failed to update status",
        )

    async def delete(self, post_id: str, confirm: Confirm) -> ActionResult:
        if self.find(post_id) is None:
            return self._fail("Post not found")
        if not await confirmed(confirm, "Are you sure you want to delete this post?"):
            return ActionResult.cancelled()
        return await self._mutate(
            self.store.delete(NEWS_POSTS, post_id),
            "Post deleted",
            "Failed to delete",
        )
