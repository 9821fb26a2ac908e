"""
Content store backed by the Supabase PostgreSQL database through SQLAlchemy.
Collections map to the models in portfolio_cms.models.
"""
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker
from typing import List, Optional, Sequence
import logging

from portfolio_cms.models import COLLECTION_MODELS
from portfolio_cms.services.content_store import Filter, OrderBy, StoreResult
from portfolio_cms.services.realtime import (
    DELETE,
    INSERT,
    UPDATE,
    ChangeEvent,
    ChangeFeed,
    LocalChangeFeed,
)

logger = logging.getLogger(__name__)


def _to_dict(obj) -> dict:
    return {column.name: getattr(obj, column.name) for column in obj.__table__.columns}


def _integrity_code(error: IntegrityError) -> Optional[str]:
    # asyncpg reports the SQLSTATE; sqlite only says so in the message
    sqlstate = getattr(error.orig, "sqlstate", None)
    if sqlstate:
        return sqlstate
    if "unique" in str(error.orig).lower():
        return "23505"
    return None


class SqlContentStore:
    """
    SQLAlchemy implementation of the content store.
    Each operation runs in its own session and commits before publishing
    the change event.
    """

    def __init__(self, session_factory: async_sessionmaker, feed: Optional[ChangeFeed] = None):
        self.session_factory = session_factory
        self.feed = feed or LocalChangeFeed()

    def _model(self, collection: str):
        model = COLLECTION_MODELS.get(collection)
        if model is None:
            raise LookupError(f'relation "{collection}" does not exist')
        return model

    @staticmethod
    def _column(model, name: str):
        if name not in model.__table__.columns:
            raise LookupError(f"Could not find the '{name}' column of '{model.__tablename__}'")
        return getattr(model, name)

    @staticmethod
    def _tiebreak(model) -> list:
        """Ties keep insertion order."""
        keys = [model.created_at.asc()] if hasattr(model, "created_at") else []
        return keys + [model.id.asc()]

    def _where(self, model, filters: Sequence[Filter]) -> list:
        clauses = []
        for f in filters:
            column = self._column(model, f.field)
            if f.op == "in":
                clauses.append(column.in_(list(f.value)))
            else:
                clauses.append(column == f.value)
        return clauses

    async def query(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        order_by: Optional[OrderBy] = None,
        limit: Optional[int] = None,
    ) -> StoreResult[List[dict]]:
        try:
            model = self._model(collection)
            stmt = select(model)
            clauses = self._where(model, filters)
            if clauses:
                stmt = stmt.where(*clauses)
            if order_by is not None:
                column = self._column(model, order_by.field)
                stmt = stmt.order_by(column.desc() if order_by.descending else column.asc())
                stmt = stmt.order_by(*self._tiebreak(model))
            if limit is not None:
                stmt = stmt.limit(limit)

            async with self.session_factory() as session:
                result = await session.execute(stmt)
                rows = [_to_dict(obj) for obj in result.scalars().all()]

            logger.debug(f"Retrieved {len(rows)} rows from {collection}")
            return StoreResult.success(rows)

        except Exception as e:
            logger.error(f"Query on {collection} failed: {str(e)}", exc_info=True)
            return StoreResult.failure(str(e))

    async def count(self, collection: str, filters: Sequence[Filter] = ()) -> StoreResult[int]:
        try:
            model = self._model(collection)
            stmt = select(func.count()).select_from(model)
            clauses = self._where(model, filters)
            if clauses:
                stmt = stmt.where(*clauses)

            async with self.session_factory() as session:
                result = await session.execute(stmt)
                return StoreResult.success(result.scalar_one())

        except Exception as e:
            logger.error(f"Count on {collection} failed: {str(e)}", exc_info=True)
            return StoreResult.failure(str(e))

    async def insert(self, collection: str, record: dict) -> StoreResult[dict]:
        try:
            model = self._model(collection)
            async with self.session_factory() as session:
                try:
                    obj = model(**record)
                    session.add(obj)
                    await session.commit()
                    await session.refresh(obj)
                except Exception:
                    await session.rollback()
                    raise
                row = _to_dict(obj)

        except IntegrityError as e:
            logger.warning(f"Insert into {collection} rejected: {str(e.orig)}")
            return StoreResult.failure(str(e.orig), code=_integrity_code(e))

        except Exception as e:
            logger.error(f"Insert into {collection} failed: {str(e)}", exc_info=True)
            return StoreResult.failure(str(e))

        logger.info(f"Inserted {collection} row {row['id']}")
        self.feed.publish(ChangeEvent(collection, INSERT, row["id"]))
        return StoreResult.success(row)

    async def update(self, collection: str, record_id: str, changes: dict) -> StoreResult[dict]:
        try:
            model = self._model(collection)
            for name in changes:
                self._column(model, name)

            async with self.session_factory() as session:
                try:
                    result = await session.execute(
                        update(model).where(model.id == record_id).values(**changes)
                    )
                    if result.rowcount == 0:
                        await session.rollback()
                        return StoreResult.failure(f"Record {record_id} not found in {collection}")
                    await session.commit()
                except Exception:
                    await session.rollback()
                    raise

                refreshed = await session.execute(select(model).where(model.id == record_id))
                row = _to_dict(refreshed.scalar_one())

        except Exception as e:
            logger.error(f"Update of {collection} row {record_id} failed: {str(e)}", exc_info=True)
            return StoreResult.failure(str(e))

        logger.info(f"Updated {collection} row {record_id}")
        self.feed.publish(ChangeEvent(collection, UPDATE, record_id))
        return StoreResult.success(row)

    async def upsert(self, collection: str, record: dict, on_conflict: str = "key") -> StoreResult[dict]:
        try:
            model = self._model(collection)
            conflict_column = self._column(model, on_conflict)

            async with self.session_factory() as session:
                try:
                    result = await session.execute(
                        select(model).where(conflict_column == record.get(on_conflict))
                    )
                    obj = result.scalar_one_or_none()
                    if obj is None:
                        event_type = INSERT
                        obj = model(**record)
                        session.add(obj)
                    else:
                        event_type = UPDATE
                        for name, value in record.items():
                            self._column(model, name)
                            setattr(obj, name, value)
                    await session.commit()
                    await session.refresh(obj)
                except Exception:
                    await session.rollback()
                    raise
                row = _to_dict(obj)

        except Exception as e:
            logger.error(f"Upsert into {collection} failed: {str(e)}", exc_info=True)
            return StoreResult.failure(str(e))

        self.feed.publish(ChangeEvent(collection, event_type, row["id"]))
        return StoreResult.success(row)

    async def delete(self, collection: str, record_id: str) -> StoreResult[None]:
        try:
            model = self._model(collection)
            async with self.session_factory() as session:
                try:
                    result = await session.execute(delete(model).where(model.id == record_id))
                    if result.rowcount == 0:
                        await session.rollback()
                        return StoreResult.failure(f"Record {record_id} not found in {collection}")
                    await session.commit()
                except Exception:
                    await session.rollback()
                    raise

        except Exception as e:
            logger.error(f"Delete of {collection} row {record_id} failed: {str(e)}", exc_info=True)
            return StoreResult.failure(str(e))

        logger.info(f"Deleted {collection} row {record_id}")
        self.feed.publish(ChangeEvent(collection, DELETE, record_id))
        return StoreResult.success()
