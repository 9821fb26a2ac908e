"""
Content store abstraction for the remote structured-data service and an
in-memory implementation for development and tests.

Every operation is async and reports failure through StoreResult instead of
raising, so callers can surface the message and keep their snapshot intact.
"""

from __future__ import annotations

import copy
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import (
    Any,
    Callable,
    Dict,
    Generic,
    Iterable,
    List,
    Optional,
    Protocol,
    Sequence,
    Tuple,
    TypeVar,
)

from portfolio_cms.services.realtime import (
    DELETE,
    INSERT,
    UPDATE,
    ChangeEvent,
    ChangeFeed,
    LocalChangeFeed,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

HERO_IMAGES = "hero_images"
PORTFOLIO_ITEMS = "portfolio_items"
NEWS_POSTS = "news_posts"
CONTACT_SUBMISSIONS = "contact_submissions"
SITE_SETTINGS = "site_settings"
ADMIN_USERS = "admin_users"

# Collections views subscribe to for change notifications
WATCHED_COLLECTIONS = (HERO_IMAGES, PORTFOLIO_ITEMS, NEWS_POSTS, CONTACT_SUBMISSIONS)


@dataclass(frozen=True)
class Filter:
    """Equality (op="eq") or set-membership (op="in") predicate on one field."""

    field: str
    value: Any
    op: str = "eq"

    def matches(self, record: dict) -> bool:
        if self.op == "in":
            return record.get(self.field) in self.value
        return record.get(self.field) == self.value


def eq(field_name: str, value: Any) -> Filter:
    return Filter(field_name, value)


def in_(field_name: str, values: Iterable[Any]) -> Filter:
    return Filter(field_name, tuple(values), op="in")


@dataclass(frozen=True)
class OrderBy:
    field: str
    descending: bool = False


@dataclass
class StoreError:
    message: str
    code: Optional[str] = None

    def __str__(self) -> str:
        return self.message


@dataclass
class StoreResult(Generic[T]):
    data: Optional[T] = None
    error: Optional[StoreError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, data: Optional[T] = None) -> "StoreResult[T]":
        return cls(data=data)

    @classmethod
    def failure(cls, message: str, code: Optional[str] = None) -> "StoreResult[T]":
        return cls(error=StoreError(message=message, code=code))


class ContentStore(Protocol):
    """Operations the views need from the structured-data service."""

    async def query(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        order_by: Optional[OrderBy] = None,
        limit: Optional[int] = None,
    ) -> StoreResult[List[dict]]:
        ...

    async def count(self, collection: str, filters: Sequence[Filter] = ()) -> StoreResult[int]:
        ...

    async def insert(self, collection: str, record: dict) -> StoreResult[dict]:
        ...

    async def update(self, collection: str, record_id: str, changes: dict) -> StoreResult[dict]:
        ...

    async def upsert(self, collection: str, record: dict, on_conflict: str = "key") -> StoreResult[dict]:
        ...

    async def delete(self, collection: str, record_id: str) -> StoreResult[None]:
        ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class _Table:
    required: Tuple[str, ...]
    defaults: Dict[str, Callable[[], Any]] = field(default_factory=dict)
    unique: Tuple[str, ...] = ()
    timestamps: Tuple[str, ...] = ("created_at",)

    @property
    def columns(self) -> set:
        return {"id", *self.required, *self.defaults, *self.timestamps}


_TABLES: Dict[str, _Table] = {
    HERO_IMAGES: _Table(
        required=("image_url",),
        defaults={
            "title": lambda: None,
            "subtitle": lambda: None,
            "is_active": lambda: True,
            "display_order": lambda: 0,
        },
        timestamps=("created_at", "updated_at"),
    ),
    PORTFOLIO_ITEMS: _Table(
        required=("title", "media_url"),
        defaults={
            "description": lambda: None,
            "media_type": lambda: "image",
            "thumbnail_url": lambda: None,
            "category": lambda: None,
            "is_published": lambda: True,
            "display_order": lambda: 0,
        },
        timestamps=("created_at", "updated_at"),
    ),
    NEWS_POSTS: _Table(
        required=("title", "content"),
        defaults={
            "excerpt": lambda: None,
            "image_url": lambda: None,
            "is_published": lambda: True,
            "published_at": _utcnow,
        },
        timestamps=("created_at", "updated_at"),
    ),
    CONTACT_SUBMISSIONS: _Table(
        required=("name", "email", "message"),
        defaults={"subject": lambda: None, "is_read": lambda: False},
    ),
    SITE_SETTINGS: _Table(
        required=("key",),
        defaults={"value": lambda: None},
        unique=("key",),
        timestamps=(),
    ),
    ADMIN_USERS: _Table(
        required=("email", "password_hash"),
        unique=("email",),
    ),
}


def _sort_key(value: Any) -> tuple:
    # None sorts last, like Postgres NULLS LAST on ascending order
    return (value is None, value)


class InMemoryContentStore:
    """
    Ordered in-memory tables mirroring the Postgres schema.

    Rows keep insertion order, so equal sort keys come back in fetch order.
    Every call is recorded in `calls` as (operation, collection).
    """

    def __init__(self, feed: Optional[ChangeFeed] = None):
        self.feed = feed or LocalChangeFeed()
        self.tables: Dict[str, List[dict]] = {name: [] for name in _TABLES}
        self.calls: List[Tuple[str, str]] = []

    def reset(self) -> None:
        for rows in self.tables.values():
            rows.clear()
        self.calls.clear()

    def calls_to(self, operation: str, collection: Optional[str] = None) -> int:
        return sum(
            1 for op, name in self.calls
            if op == operation and (collection is None or name == collection)
        )

    async def query(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        order_by: Optional[OrderBy] = None,
        limit: Optional[int] = None,
    ) -> StoreResult[List[dict]]:
        self.calls.append(("query", collection))
        rows = self.tables.get(collection)
        if rows is None:
            return self._missing(collection)

        matched = [row for row in rows if all(f.matches(row) for f in filters)]
        if order_by is not None:
            matched = sorted(
                matched,
                key=lambda row: _sort_key(row.get(order_by.field)),
                reverse=order_by.descending,
            )
        if limit is not None:
            matched = matched[:limit]
        return StoreResult.success([copy.deepcopy(row) for row in matched])

    async def count(self, collection: str, filters: Sequence[Filter] = ()) -> StoreResult[int]:
        self.calls.append(("count", collection))
        rows = self.tables.get(collection)
        if rows is None:
            return self._missing(collection)
        return StoreResult.success(sum(1 for row in rows if all(f.matches(row) for f in filters)))

    async def insert(self, collection: str, record: dict) -> StoreResult[dict]:
        self.calls.append(("insert", collection))
        table = _TABLES.get(collection)
        if table is None:
            return self._missing(collection)

        error = self._check_columns(collection, record) or self._check_required(table, record)
        if error:
            return StoreResult.failure(error)

        row = {"id": str(uuid.uuid4())}
        for name, default in table.defaults.items():
            row[name] = default()
        for name in table.timestamps:
            row[name] = _utcnow()
        row.update(copy.deepcopy(record))

        conflict = self._check_unique(collection, table, row)
        if conflict:
            return StoreResult.failure(conflict, code="23505")

        self.tables[collection].append(row)
        self._publish(collection, INSERT, row["id"])
        return StoreResult.success(copy.deepcopy(row))

    async def update(self, collection: str, record_id: str, changes: dict) -> StoreResult[dict]:
        self.calls.append(("update", collection))
        table = _TABLES.get(collection)
        if table is None:
            return self._missing(collection)

        error = self._check_columns(collection, changes)
        if error:
            return StoreResult.failure(error)

        row = self._find(collection, record_id)
        if row is None:
            return StoreResult.failure(f"Record {record_id} not found in {collection}")

        candidate = {**row, **copy.deepcopy(changes)}
        conflict = self._check_unique(collection, table, candidate, exclude=row)
        if conflict:
            return StoreResult.failure(conflict, code="23505")

        row.update(copy.deepcopy(changes))
        if "updated_at" in table.timestamps:
            row["updated_at"] = _utcnow()
        self._publish(collection, UPDATE, record_id)
        return StoreResult.success(copy.deepcopy(row))

    async def upsert(self, collection: str, record: dict, on_conflict: str = "key") -> StoreResult[dict]:
        self.calls.append(("upsert", collection))
        table = _TABLES.get(collection)
        if table is None:
            return self._missing(collection)

        error = self._check_columns(collection, record) or self._check_required(table, record)
        if error:
            return StoreResult.failure(error)

        existing = next(
            (row for row in self.tables[collection] if row.get(on_conflict) == record.get(on_conflict)),
            None,
        )
        if existing is None:
            row = {"id": str(uuid.uuid4())}
            for name, default in table.defaults.items():
                row[name] = default()
            for name in table.timestamps:
                row[name] = _utcnow()
            row.update(copy.deepcopy(record))
            self.tables[collection].append(row)
            self._publish(collection, INSERT, row["id"])
            return StoreResult.success(copy.deepcopy(row))

        existing.update(copy.deepcopy(record))
        if "updated_at" in table.timestamps:
            existing["updated_at"] = _utcnow()
        self._publish(collection, UPDATE, existing["id"])
        return StoreResult.success(copy.deepcopy(existing))

    async def delete(self, collection: str, record_id: str) -> StoreResult[None]:
        self.calls.append(("delete", collection))
        if collection not in self.tables:
            return self._missing(collection)

        row = self._find(collection, record_id)
        if row is None:
            return StoreResult.failure(f"Record {record_id} not found in {collection}")

        self.tables[collection].remove(row)
        self._publish(collection, DELETE, record_id)
        return StoreResult.success()

    def _find(self, collection: str, record_id: str) -> Optional[dict]:
        return next((row for row in self.tables[collection] if row["id"] == record_id), None)

    def _publish(self, collection: str, event_type: str, record_id: str) -> None:
        self.feed.publish(ChangeEvent(collection, event_type, record_id))

    @staticmethod
    def _missing(collection: str) -> StoreResult:
        return StoreResult.failure(f'relation "{collection}" does not exist', code="42P01")

    @staticmethod
    def _check_columns(collection: str, record: dict) -> Optional[str]:
        unknown = set(record) - _TABLES[collection].columns
        if unknown:
            return f"Could not find the '{sorted(unknown)[0]}' column of '{collection}'"
        return None

    @staticmethod
    def _check_required(table: _Table, record: dict) -> Optional[str]:
        for name in table.required:
            if record.get(name) is None:
                return f'null value in column "{name}" violates not-null constraint'
        return None

    def _check_unique(
        self, collection: str, table: _Table, row: dict, exclude: Optional[dict] = None
    ) -> Optional[str]:
        for name in table.unique:
            for other in self.tables[collection]:
                if other is not exclude and other.get(name) == row.get(name):
                    return f'duplicate key value violates unique constraint "{collection}_{name}_key"'
        return None
