"""
SQLAlchemy models for the content collections.
Table names double as collection names in the content store.
"""
import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text, false, true
from sqlalchemy.sql import func

from portfolio_cms.database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class HeroImage(Base):
    """Carousel image shown on the public landing page."""
    __tablename__ = "hero_images"

    id = Column(String(36), primary_key=True, default=_new_id)
    image_url = Column(String, nullable=False)
    title = Column(String, nullable=True)
    subtitle = Column(String, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, server_default=true())
    display_order = Column(Integer, nullable=False, default=0, index=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), onupdate=_utcnow, nullable=False)


class PortfolioItem(Base):
    """Portfolio entry; media_type is one of image, video, music."""
    __tablename__ = "portfolio_items"

    id = Column(String(36), primary_key=True, default=_new_id)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    media_url = Column(String, nullable=False)
    media_type = Column(String(16), nullable=False, default="image")
    thumbnail_url = Column(String, nullable=True)
    category = Column(String, nullable=True)
    is_published = Column(Boolean, nullable=False, default=True, server_default=true())
    display_order = Column(Integer, nullable=False, default=0, index=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), onupdate=_utcnow, nullable=False)


class NewsPost(Base):
    __tablename__ = "news_posts"

    id = Column(String(36), primary_key=True, default=_new_id)
    title = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    excerpt = Column(Text, nullable=True)
    image_url = Column(String, nullable=True)
    is_published = Column(Boolean, nullable=False, default=True, server_default=true())
    published_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), onupdate=_utcnow, nullable=False)


class ContactSubmission(Base):
    """Message sent through the public contact form."""
    __tablename__ = "contact_submissions"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String, nullable=False)
    email = Column(String, nullable=False)
    subject = Column(String, nullable=True)
    message = Column(Text, nullable=False)
    is_read = Column(Boolean, nullable=False, default=False, server_default=false())
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False, index=True)


class SiteSetting(Base):
    """Key/value site configuration row (artist name, about text, social links)."""
    __tablename__ = "site_settings"

    id = Column(String(36), primary_key=True, default=_new_id)
    key = Column(String(64), unique=True, nullable=False)
    value = Column(Text, nullable=True)


class AdminUser(Base):
    __tablename__ = "admin_users"

    id = Column(String(36), primary_key=True, default=_new_id)
    email = Column(String, unique=True, nullable=False, index=True)
    password_hash = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)


# Collection name -> model, used by the SQL content store
COLLECTION_MODELS = {
    model.__tablename__: model
    for model in (HeroImage, PortfolioItem, NewsPost, ContactSubmission, SiteSetting, AdminUser)
}
