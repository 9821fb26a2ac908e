"""
Dependency wiring for the FastAPI app.

build_context() picks the backends from settings and creates the app-wide
bindings; routes reach the context through request.app.state.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Set

from fastapi import Depends, HTTPException, Request, status

from portfolio_cms.bindings.base import Binding
from portfolio_cms.bindings.hero import HeroBinding, HeroManagementBinding
from portfolio_cms.bindings.messages import ContactFormBinding, MessagesBinding
from portfolio_cms.bindings.news import NewsBinding, NewsManagementBinding
from portfolio_cms.bindings.overview import OverviewBinding
from portfolio_cms.bindings.portfolio import PortfolioBinding, PortfolioManagementBinding
from portfolio_cms.bindings.settings import SiteSettingsBinding
from portfolio_cms.bindings.users import UserManagementBinding
from portfolio_cms.config import Settings, settings as default_settings
from portfolio_cms.services.auth_service import SIGNED_OUT, AuthService, Session
from portfolio_cms.services.blob_storage import (
    BlobStorage,
    CloudinaryBlobStorage,
    InMemoryBlobStorage,
    validate_cloudinary_config,
)
from portfolio_cms.services.content_store import ContentStore, InMemoryContentStore
from portfolio_cms.services.notifications import LoggingNotifier, Notifier
from portfolio_cms.services.realtime import LocalChangeFeed, SubscriptionManager
from portfolio_cms.services.session_guard import GuardDecision, SessionGuard
from portfolio_cms.utils.jwt_auth import token_from_request

logger = logging.getLogger(__name__)


@dataclass
class ContentContext:
    """Backends and the app-wide bindings served over HTTP."""

    config: Settings
    feed: LocalChangeFeed
    store: ContentStore
    blobs: BlobStorage
    subscriptions: SubscriptionManager
    notifier: Notifier
    auth: AuthService

    hero: HeroBinding = field(init=False)
    portfolio: PortfolioBinding = field(init=False)
    news: NewsBinding = field(init=False)
    site_settings: SiteSettingsBinding = field(init=False)
    hero_admin: HeroManagementBinding = field(init=False)
    portfolio_admin: PortfolioManagementBinding = field(init=False)
    news_admin: NewsManagementBinding = field(init=False)
    messages: MessagesBinding = field(init=False)
    overview: OverviewBinding = field(init=False)
    contact_form: ContactFormBinding = field(init=False)
    users: UserManagementBinding = field(init=False)

    def __post_init__(self):
        deps = (self.store, self.subscriptions, self.notifier)
        cfg = self.config
        self.hero = HeroBinding(*deps, rotation_seconds=cfg.HERO_ROTATION_SECONDS)
        self.portfolio = PortfolioBinding(*deps)
        self.news = NewsBinding(*deps, limit=cfg.NEWS_LIMIT)
        self.site_settings = SiteSettingsBinding(*deps)
        self.hero_admin = HeroManagementBinding(
            *deps, blobs=self.blobs, bucket=cfg.HERO_BUCKET,
            optimize_images=cfg.CONVERT_UPLOADS_TO_WEBP,
        )
        self.portfolio_admin = PortfolioManagementBinding(
            *deps, blobs=self.blobs, bucket=cfg.PORTFOLIO_BUCKET,
            optimize_images=cfg.CONVERT_UPLOADS_TO_WEBP,
        )
        self.news_admin = NewsManagementBinding(*deps)
        self.messages = MessagesBinding(*deps)
        self.overview = OverviewBinding(*deps)
        self.contact_form = ContactFormBinding(self.store, self.notifier)
        self.users = UserManagementBinding(self.auth, self.notifier, cfg.MIN_PASSWORD_LENGTH)

        self.admin_mounted = False
        self._admin_sessions: Set[str] = set()
        self._admin_lock = asyncio.Lock()
        self._pending: Set[asyncio.Task] = set()
        self.auth.on_auth_state_change(self._on_auth_state_change)

    @property
    def public_bindings(self) -> List[Binding]:
        return [self.hero, self.portfolio, self.news, self.site_settings]

    @property
    def admin_bindings(self) -> List[Binding]:
        return [self.hero_admin, self.portfolio_admin, self.news_admin, self.messages, self.overview]

    @property
    def bindings(self) -> List[Binding]:
        return self.public_bindings + self.admin_bindings

    async def mount_all(self) -> None:
        """Mount the public bindings. Admin bindings wait for an allowed session."""
        for binding in self.public_bindings:
            await binding.mount()
        logger.info(f"Mounted {len(self.public_bindings)} public content bindings")

    async def admit(self, session: Session) -> None:
        """Record a session the guard allowed; the first one mounts the admin bindings."""
        async with self._admin_lock:
            self._admin_sessions.add(session.token_id)
            if self.admin_mounted:
                return
            for binding in self.admin_bindings:
                await binding.mount()
            self.admin_mounted = True
        logger.info(f"Mounted admin bindings for {session.email}")

    async def release_admin(self) -> None:
        """Unmount the admin bindings once no admitted session is left."""
        async with self._admin_lock:
            if self._admin_sessions or not self.admin_mounted:
                return
            for binding in self.admin_bindings:
                await binding.unmount()
            self.admin_mounted = False
        logger.info("Last admin session ended, admin bindings unmounted")

    def _on_auth_state_change(self, event: str, session: Session) -> None:
        if event != SIGNED_OUT or session.token_id not in self._admin_sessions:
            return
        self._admin_sessions.discard(session.token_id)
        if not self._admin_sessions:
            task = asyncio.get_running_loop().create_task(self.release_admin())
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    async def settle(self) -> None:
        """Wait for pending admin unmounts, then for pending change deliveries."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
        await self.subscriptions.flush()

    async def unmount_all(self) -> None:
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
        self._admin_sessions.clear()
        for binding in self.bindings:
            await binding.unmount()
        self.admin_mounted = False
        await self.subscriptions.flush()
        self.subscriptions.close()


def build_context(config: Optional[Settings] = None) -> ContentContext:
    """
    Create the backends for the given settings.
    In-memory backends are used when asked for, or when the real ones are
    not configured.
    """
    config = config or default_settings
    feed = LocalChangeFeed()

    store: ContentStore
    if config.USE_IN_MEMORY_BACKENDS or not config.DATABASE_URL:
        logger.warning("Using in-memory content store; data is lost on restart")
        store = InMemoryContentStore(feed)
    else:
        # Imported lazily so in-memory deployments never build the global engine
        from portfolio_cms.database import AsyncSessionLocal
        from portfolio_cms.services.sql_content_store import SqlContentStore
        store = SqlContentStore(AsyncSessionLocal, feed)

    blobs: BlobStorage
    if config.USE_IN_MEMORY_BACKENDS or not validate_cloudinary_config(config):
        logger.warning("Using in-memory blob storage")
        blobs = InMemoryBlobStorage()
    else:
        blobs = CloudinaryBlobStorage(
            cloud_name=config.CLOUDINARY_CLOUD_NAME,
            api_key=config.CLOUDINARY_API_KEY,
            api_secret=config.CLOUDINARY_API_SECRET,
        )

    return ContentContext(
        config=config,
        feed=feed,
        store=store,
        blobs=blobs,
        subscriptions=SubscriptionManager(feed),
        notifier=LoggingNotifier(),
        auth=AuthService(
            store,
            secret=config.JWT_SECRET_KEY,
            expire_minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES,
            min_password_length=config.MIN_PASSWORD_LENGTH,
        ),
    )


def get_context(request: Request) -> ContentContext:
    return request.app.state.context


async def get_settled_context(context: ContentContext = Depends(get_context)) -> ContentContext:
    """The context once pending change deliveries have refreshed every binding."""
    await context.settle()
    return context


async def require_admin(
    token: Optional[str] = Depends(token_from_request),
    context: ContentContext = Depends(get_context),
) -> Session:
    """
    FastAPI dependency guarding admin routes.
    Unauthenticated callers get a 303 to the login path before any content is read.
    """
    guard = SessionGuard(
        context.auth,
        token,
        login_path=context.config.LOGIN_PATH,
        public_root=context.config.PUBLIC_ROOT_PATH,
    )
    await guard.mount()
    try:
        decision = guard.decide()
    finally:
        guard.unmount()

    if decision.kind != GuardDecision.ALLOW:
        raise HTTPException(
            status_code=status.HTTP_303_SEE_OTHER,
            detail={"error": "Authentication required", "detail": "Please sign in to continue"},
            headers={"Location": decision.location or context.config.LOGIN_PATH},
        )
    await context.admit(guard.session)
    return guard.session
