"""
Session guard for admin views.

A guard resolves its session once on mount and then follows auth state
changes: UNKNOWN moves to AUTHENTICATED or UNAUTHENTICATED, and a sign-out of
the guarded session moves it to UNAUTHENTICATED. Admin views consult
decide() before loading anything.
"""
import enum
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from portfolio_cms.config import settings
from portfolio_cms.services.auth_service import SIGNED_IN, SIGNED_OUT, AuthService, Session
from portfolio_cms.services.content_store import StoreResult
from portfolio_cms.services.notifications import Notifier

logger = logging.getLogger(__name__)


class SessionState(str, enum.Enum):
    UNKNOWN = "unknown"
    AUTHENTICATED = "authenticated"
    UNAUTHENTICATED = "unauthenticated"


class GuardDecision(str, enum.Enum):
    LOADING = "loading"
    ALLOW = "allow"
    REDIRECT = "redirect"


@dataclass(frozen=True)
class Decision:
    kind: GuardDecision
    location: Optional[str] = None


class SessionGuard:
    def __init__(
        self,
        auth: AuthService,
        token: Optional[str] = None,
        login_path: str = settings.LOGIN_PATH,
        public_root: str = settings.PUBLIC_ROOT_PATH,
        notifier: Optional[Notifier] = None,
    ):
        self.auth = auth
        self.token = token
        self.login_path = login_path
        self.public_root = public_root
        self.notifier = notifier
        self.state = SessionState.UNKNOWN
        self.session: Optional[Session] = None
        self._unsubscribe: Optional[Callable[[], None]] = None

    async def mount(self) -> SessionState:
        """Resolve the session once and start following auth changes."""
        if self._unsubscribe is None:
            self._unsubscribe = self.auth.on_auth_state_change(self._on_auth_change)
        return await self.resolve()

    async def resolve(self) -> SessionState:
        result = await self.auth.get_session(self.token)
        if not result.ok:
            logger.warning(f"Session lookup failed: {result.error}")
            self._set(None)
        else:
            self._set(result.data)
        return self.state

    def unmount(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def decide(self) -> Decision:
        if self.state == SessionState.UNKNOWN:
            return Decision(GuardDecision.LOADING)
        if self.state == SessionState.UNAUTHENTICATED:
            return Decision(GuardDecision.REDIRECT, self.login_path)
        return Decision(GuardDecision.ALLOW)

    async def login(self, email: str, password: str) -> StoreResult[Session]:
        """Exchange credentials for a session; the auth error message is passed through as-is."""
        result = await self.auth.sign_in_with_password(email, password)
        if not result.ok:
            if self.notifier is not None:
                self.notifier.error(result.error.message)
            return result
        self.token = result.data.token
        self._set(result.data)
        return result

    async def logout(self) -> Decision:
        """Clear the session; the caller is sent to the public root."""
        result = await self.auth.sign_out(self.token)
        if not result.ok:
            logger.warning(f"Sign-out failed, clearing local session anyway: {result.error}")
        self.token = None
        self._set(None)
        return Decision(GuardDecision.REDIRECT, self.public_root)

    def _set(self, session: Optional[Session]) -> None:
        self.session = session
        self.state = SessionState.AUTHENTICATED if session else SessionState.UNAUTHENTICATED

    def _on_auth_change(self, event: str, session: Session) -> None:
        if event == SIGNED_OUT and self.session is not None and session.token_id == self.session.token_id:
            logger.debug(f"Guarded session for {session.email} ended")
            self._set(None)
        elif event == SIGNED_IN and session.token == self.token:
            self._set(session)
