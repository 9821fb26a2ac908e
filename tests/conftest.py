"""
Portfolio CMS - Pytest Configuration & Shared Fixtures

Provides reusable fixtures for:
- In-memory content store, blob storage and change feed
- A notification log standing in for the dashboard's toasts
- Stores that fail selected calls, for failure-path tests
- Row factories for every content collection
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional, Tuple

import pytest

from portfolio_cms.services.auth_service import AuthService
from portfolio_cms.services.blob_storage import InMemoryBlobStorage
from portfolio_cms.services.content_store import (
    CONTACT_SUBMISSIONS,
    HERO_IMAGES,
    NEWS_POSTS,
    PORTFOLIO_ITEMS,
    InMemoryContentStore,
    StoreResult,
)
from portfolio_cms.services.notifications import NotificationLog
from portfolio_cms.services.realtime import LocalChangeFeed, SubscriptionManager

TEST_SECRET = "test-secret-key-for-jwt-signing-only"


# ---------------------------------------------------------------------------
# Backends
# ---------------------------------------------------------------------------


@pytest.fixture
def feed() -> LocalChangeFeed:
    return LocalChangeFeed()


@pytest.fixture
def store(feed: LocalChangeFeed) -> InMemoryContentStore:
    return InMemoryContentStore(feed)


@pytest.fixture
def subscriptions(feed: LocalChangeFeed) -> SubscriptionManager:
    return SubscriptionManager(feed)


@pytest.fixture
def blobs() -> InMemoryBlobStorage:
    return InMemoryBlobStorage()


@pytest.fixture
def notifier() -> NotificationLog:
    return NotificationLog()


@pytest.fixture
def auth(store: InMemoryContentStore) -> AuthService:
    return AuthService(store, secret=TEST_SECRET, expire_minutes=60, min_password_length=6)


class FailingContentStore(InMemoryContentStore):
    """
    In-memory store that fails chosen calls.

    fail_on[(operation, collection)] = n fails the n-th such call (1-based);
    n = 0 fails every such call.
    """

    def __init__(self, feed: Optional[LocalChangeFeed] = None):
        super().__init__(feed)
        self.fail_on: Dict[Tuple[str, str], int] = {}
        self.failure_message = "connection reset by peer"

    def _should_fail(self, operation: str, collection: str) -> bool:
        target = self.fail_on.get((operation, collection))
        if target is None:
            return False
        return target == 0 or self.calls_to(operation, collection) == target

    async def query(self, collection, filters=(), order_by=None, limit=None):
        result = await super().query(collection, filters, order_by, limit)
        if self._should_fail("query", collection):
            return StoreResult.failure(self.failure_message)
        return result

    async def count(self, collection, filters=()):
        result = await super().count(collection, filters)
        if self._should_fail("count", collection):
            return StoreResult.failure(self.failure_message)
        return result

    async def insert(self, collection, record):
        self.calls.append(("insert", collection))
        if self._should_fail("insert", collection):
            return StoreResult.failure(self.failure_message)
        self.calls.pop()
        return await super().insert(collection, record)

    async def update(self, collection, record_id, changes):
        self.calls.append(("update", collection))
        if self._should_fail("update", collection):
            return StoreResult.failure(self.failure_message)
        self.calls.pop()
        return await super().update(collection, record_id, changes)

    async def upsert(self, collection, record, on_conflict="key"):
        self.calls.append(("upsert", collection))
        if self._should_fail("upsert", collection):
            return StoreResult.failure(self.failure_message)
        self.calls.pop()
        return await super().upsert(collection, record, on_conflict)

    async def delete(self, collection, record_id):
        self.calls.append(("delete", collection))
        if self._should_fail("delete", collection):
            return StoreResult.failure(self.failure_message)
        self.calls.pop()
        return await super().delete(collection, record_id)


@pytest.fixture
def failing_store(feed: LocalChangeFeed) -> FailingContentStore:
    return FailingContentStore(feed)


class FailingBlobStorage(InMemoryBlobStorage):
    """Blob storage whose removals always fail."""

    async def remove(self, bucket, name):
        return StoreResult.failure("Storage unavailable")


@pytest.fixture
def failing_blobs() -> FailingBlobStorage:
    return FailingBlobStorage()


# ---------------------------------------------------------------------------
# Row factories (synchronous seeding straight into the tables)
# ---------------------------------------------------------------------------

_BASE_TIME = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


def _seed(store: InMemoryContentStore, collection: str, row: dict) -> dict:
    store.tables[collection].append(row)
    return row


@pytest.fixture
def add_hero(store) -> Callable[..., dict]:
    counter = {"n": 0}

    def factory(display_order: int, is_active: bool = True, **fields) -> dict:
        counter["n"] += 1
        row = {
            "id": f"hero-{counter['n']}",
            "image_url": f"https://storage.example.test/hero-images/hero-{counter['n']}.webp",
            "title": None,
            "subtitle": None,
            "is_active": is_active,
            "display_order": display_order,
            "created_at": _BASE_TIME,
            "updated_at": _BASE_TIME,
        }
        row.update(fields)
        return _seed(store, HERO_IMAGES, row)

    return factory


@pytest.fixture
def add_portfolio_item(store) -> Callable[..., dict]:
    counter = {"n": 0}

    def factory(category: Optional[str], display_order: int = 0, is_published: bool = True, **fields) -> dict:
        counter["n"] += 1
        row = {
            "id": f"item-{counter['n']}",
            "title": f"Piece {counter['n']}",
            "description": None,
            "media_url": f"https://storage.example.test/portfolio-media/item-{counter['n']}.png",
            "media_type": "image",
            "thumbnail_url": None,
            "category": category,
            "is_published": is_published,
            "display_order": display_order,
            "created_at": _BASE_TIME,
            "updated_at": _BASE_TIME,
        }
        row.update(fields)
        return _seed(store, PORTFOLIO_ITEMS, row)

    return factory


@pytest.fixture
def add_news_post(store) -> Callable[..., dict]:
    counter = {"n": 0}

    def factory(days_ago: int = 0, is_published: bool = True, **fields) -> dict:
        counter["n"] += 1
        row = {
            "id": f"post-{counter['n']}",
            "title": f"Post {counter['n']}",
            "content": f"Content of post {counter['n']}",
            "excerpt": None,
            "image_url": None,
            "is_published": is_published,
            "published_at": _BASE_TIME - timedelta(days=days_ago),
            "created_at": _BASE_TIME,
            "updated_at": _BASE_TIME,
        }
        row.update(fields)
        return _seed(store, NEWS_POSTS, row)

    return factory


@pytest.fixture
def add_message(store) -> Callable[..., dict]:
    counter = {"n": 0}

    def factory(is_read: bool = False, minutes_ago: int = 0, **fields) -> dict:
        counter["n"] += 1
        row = {
            "id": f"msg-{counter['n']}",
            "name": "Visitor",
            "email": "visitor@example.com",
            "subject": None,
            "message": "Hello!",
            "is_read": is_read,
            "created_at": _BASE_TIME - timedelta(minutes=minutes_ago),
        }
        row.update(fields)
        return _seed(store, CONTACT_SUBMISSIONS, row)

    return factory
