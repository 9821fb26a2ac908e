"""
Pydantic schemas for content records, editable drafts and API responses.
Records are validated from store rows; drafts carry form state into actions.
"""
from pydantic import BaseModel, ConfigDict, field_validator
from datetime import datetime
from typing import Optional, List


# ---------------------------------------------------------------------------
# Records (snapshot rows)
# ---------------------------------------------------------------------------
class HeroImage(BaseModel):
    """Carousel image as stored in hero_images."""
    id: str
    image_url: str
    title: Optional[str] = None
    subtitle: Optional[str] = None
    is_active: bool = True
    display_order: int = 0

    model_config = ConfigDict(from_attributes=True)


class PortfolioItem(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    media_url: str
    media_type: str = "image"
    thumbnail_url: Optional[str] = None
    category: Optional[str] = None
    is_published: bool = True
    display_order: int = 0

    model_config = ConfigDict(from_attributes=True)

    @property
    def preview_url(self) -> str:
        """Thumbnail for gallery tiles, falling back to the media itself."""
        return self.thumbnail_url or self.media_url


class NewsPost(BaseModel):
    id: str
    title: str
    content: str
    excerpt: Optional[str] = None
    image_url: Optional[str] = None
    is_published: bool = True
    published_at: datetime

    model_config = ConfigDict(from_attributes=True)


class NewsCard(NewsPost):
    """Public news entry with the excerpt used for display."""
    display_excerpt: str


class ContactSubmission(BaseModel):
    id: str
    name: str
    email: str
    subject: Optional[str] = None
    message: str
    is_read: bool = False
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# Fallbacks for every recognized site setting key
DEFAULT_ARTIST_NAME = "Winxel ( Yna )"
DEFAULT_ABOUT_TEXT = "Artist, Creator, Dreamer"
DEFAULT_SOCIAL_URL = ""


class SiteSettingsForm(BaseModel):
    """
    Fixed-shape site configuration folded from key/value rows.
    Field order is the order keys are saved in.
    """
    artist_name: str = DEFAULT_ARTIST_NAME
    about_text: str = DEFAULT_ABOUT_TEXT
    social_instagram: str = DEFAULT_SOCIAL_URL
    social_twitter: str = DEFAULT_SOCIAL_URL
    social_youtube: str = DEFAULT_SOCIAL_URL
    social_spotify: str = DEFAULT_SOCIAL_URL


# ---------------------------------------------------------------------------
# Drafts (editable form state, passed by value to actions)
# ---------------------------------------------------------------------------
class HeroImageDraft(BaseModel):
    title: str = ""
    subtitle: str = ""
    is_active: bool = True


class PortfolioItemDraft(BaseModel):
    title: str = ""
    description: str = ""
    media_type: str = "image"
    category: str = ""


class NewsPostDraft(BaseModel):
    title: str = ""
    content: str = ""
    excerpt: str = ""
    image_url: str = ""
    is_published: bool = True


class ContactDraft(BaseModel):
    name: str = ""
    email: str = ""
    subject: str = ""
    message: str = ""


class Credentials(BaseModel):
    """Email and password, used for login and for creating admin accounts."""
    email: str = ""
    password: str = ""


class ReorderRequest(BaseModel):
    """
    Ids in the desired display order.
    Ids not listed keep their relative order after the listed ones.
    """
    ids: List[str]

    @field_validator('ids')
    @classmethod
    def validate_unique_ids(cls, v):
        if len(v) != len(set(v)):
            raise ValueError('Duplicate ids are not allowed')
        return v


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------
class HeroResponse(BaseModel):
    artist_name: str
    images: List[HeroImage]
    current_index: int
    rotation_seconds: float


class PortfolioResponse(BaseModel):
    categories: List[str]
    selected_category: str
    items: List[PortfolioItem]


class MessagesResponse(BaseModel):
    filter: str
    total_count: int
    unread_count: int
    messages: List[ContactSubmission]


class OverviewStats(BaseModel):
    hero_images: int = 0
    portfolio_items: int = 0
    news_posts: int = 0
    messages: int = 0
    unread_messages: int = 0


class SessionResponse(BaseModel):
    authenticated: bool
    email: Optional[str] = None
    expires_at: Optional[datetime] = None
